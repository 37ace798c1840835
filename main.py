import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from starlette.middleware.base import BaseHTTPMiddleware

from config import APP_NAME, APP_VERSION, ENVIRONMENT, LOG_LEVEL
from core.logging import configure_logging, request_id_var
from db import create_tables
from routers.messaging import api as messaging_api
from routers.messaging.dispatcher import MessageRouter
from routers.messaging.registry import ConnectionRegistry

log_level = configure_logging(environment=ENVIRONMENT, log_level=LOG_LEVEL)
logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        # Honour an upstream id so logs line up across proxies
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        token = request_id_var.set(request_id)
        request.state.request_id = request_id

        start_time = time.time()
        query_str = f"?{request.url.query}" if request.query_params else ""
        logger.info(
            f"REQUEST | method={request.method} | path={request.url.path}{query_str} | "
            f"ip={request.client.host if request.client else 'unknown'}"
        )

        try:
            response = await call_next(request)
            process_time = time.time() - start_time
            logger.info(
                f"RESPONSE | method={request.method} | path={request.url.path} | "
                f"status={response.status_code} | time={process_time:.3f}s"
            )
            response.headers["X-Request-ID"] = request_id
            return response
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"ERROR | method={request.method} | path={request.url.path} | "
                f"error={type(e).__name__}: {str(e)} | time={process_time:.3f}s",
                exc_info=True,
            )
            raise
        finally:
            request_id_var.reset(token)


def _custom_openapi(app: FastAPI):
    def openapi():
        if app.openapi_schema:
            return app.openapi_schema
        openapi_schema = get_openapi(
            title=APP_NAME,
            version=APP_VERSION,
            description="""
            FanLink Backend API

            ## Authentication
            Every endpoint except `/` and `/health` requires a Bearer JWT.
            The live channel takes the same token as a query parameter: `/ws?token=<jwt>`.
            """,
            routes=app.routes,
        )
        openapi_schema.setdefault("components", {})["securitySchemes"] = {
            "bearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
            }
        }
        openapi_schema["security"] = [{"bearerAuth": []}]
        app.openapi_schema = openapi_schema
        return openapi_schema

    return openapi


def create_app(registry: ConnectionRegistry = None, message_router: MessageRouter = None) -> FastAPI:
    """
    Build the application.

    The connection registry and message router are created here and stored on
    `app.state`, so every app (and every test) gets its own instances.
    """
    app = FastAPI(
        title=APP_NAME,
        description="Fan/creator messaging backend with gem-metered chat",
        version=APP_VERSION,
    )
    app.openapi = _custom_openapi(app)

    app.state.registry = registry or ConnectionRegistry()
    app.state.message_router = message_router or MessageRouter(app.state.registry)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*", "Authorization", "Content-Type", "Accept", "Origin", "X-Requested-With"],
    )

    app.include_router(messaging_api.router)

    @app.on_event("startup")
    async def startup_event():
        create_tables()
        logger.info(f"{APP_NAME} started successfully (environment={ENVIRONMENT})")

    @app.get("/")
    async def read_root():
        """
        Root endpoint to check if the server is running.
        Returns basic API information.
        """
        return {
            "status": "online",
            "message": f"Welcome to {APP_NAME}!",
            "version": APP_VERSION,
            "environment": ENVIRONMENT,
        }

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint for monitoring.
        """
        return {"status": "healthy", "connections": len(app.state.registry)}

    return app


app = create_app()
