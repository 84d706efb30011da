import logging

import uvicorn

from bonfire_node.config import (
    BONFIRE_PORT, BONFIRE_HOST, LOG_LEVEL, ensure_directories,
)

logger = logging.getLogger(__name__)


if __name__ == "__main__":
    ensure_directories()
    logger.info(f"Starting relay on {BONFIRE_HOST}:{BONFIRE_PORT}")

    uvicorn.run(
        "bonfire_node.main:app",
        port=BONFIRE_PORT,
        host=BONFIRE_HOST,
        reload=False,
        log_level=LOG_LEVEL.lower(),
    )
