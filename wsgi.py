"""Server entrypoint for deployment on various platforms."""
import logging
import os

import uvicorn

from main import app  # noqa: F401

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    # Get port from environment variable or use default
    port = int(os.environ.get("PORT", 8000))
    log_level = os.environ.get("LOG_LEVEL", "info").lower()

    logger.info(f"Starting uvicorn server on port {port}")
    uvicorn.run(
        "main:app",
        host="0.0.0.0",  # bind to all interfaces
        port=port,
        log_level=log_level,
        access_log=False,  # RequestLoggingMiddleware already logs every request
    )
