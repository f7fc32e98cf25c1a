from __future__ import annotations

import logging

from dotenv import load_dotenv

from crm_backend.application import create_app
from crm_backend.core.config import AppConfig
from crm_backend.core.logging import setup_logging

load_dotenv()
APP_CONFIG = AppConfig.from_env()
setup_logging(APP_CONFIG.logging.level)
LOGGER = logging.getLogger(__name__)

app = create_app(APP_CONFIG)
LOGGER.info("CRM API configured", extra={"path": str(APP_CONFIG.storage.data_dir)})


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(
        "web_api:app",
        host=os.getenv("API_HOST", "127.0.0.1"),
        port=int(os.getenv("API_PORT", "8000")),
        log_config=None,
    )
