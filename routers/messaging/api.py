from fastapi import APIRouter

from . import admin, gems, messages, worker, ws

# REST surface lives under /api; the live channel is served at /ws.
router = APIRouter()
rest_router = APIRouter(prefix="/api")
rest_router.include_router(messages.router)
rest_router.include_router(gems.router)
rest_router.include_router(worker.router)
rest_router.include_router(admin.router)
router.include_router(rest_router)
router.include_router(ws.router)
