"""Entry point for running the API server: ``python -m api``."""
import logging

import uvicorn

from core.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    logging.basicConfig(
        level=settings.effective_log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.effective_log_level.lower(),
    )
