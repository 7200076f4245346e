"""Run the personachat HTTP server: ``python -m personachat`` or ``personachat``."""

import logging

import uvicorn

from personachat.api.app import create_app
from personachat.core.config import PersonaChatConfig
from personachat.logging_setup import configure_logging
from personachat.runtime import get_runtime

logger = logging.getLogger(__name__)


def run_server() -> None:
    """Load configuration, build the runtime and serve it with uvicorn."""
    config = PersonaChatConfig.load()
    configure_logging(config.log_level)

    try:
        app = create_app(get_runtime(config))
        uvicorn.run(app, host=config.host, port=config.port, log_config=None)
    except KeyboardInterrupt:
        logger.info("Server interrupted by user")
    except Exception as e:
        logger.error("Server error: %s", e, exc_info=True)
        raise


if __name__ == "__main__":
    run_server()
