import uvicorn
from dotenv import load_dotenv

from datavault.config import settings
from datavault.utils.logger import get_logger

logger = get_logger(__name__)


def start():
    """
    Main entry point to start the DataVault analytics API server.
    Reads configuration from settings.py and any local .env file.
    """
    load_dotenv()

    logger.info("=" * 50)
    logger.info(f"STARTING {settings.APP_NAME}")
    logger.info(f"Version: {settings.APP_VERSION}")
    logger.info(f"Environment: {'Development' if settings.DEBUG else 'Production'}")
    logger.info(f"Assistant: {settings.DEFAULT_MODEL if settings.assistant_enabled else 'local mock'}")
    logger.info("=" * 50)

    try:
        uvicorn.run(
            "datavault.api.routes:app",
            host=settings.HOST,
            port=settings.PORT,
            reload=settings.DEBUG,
            log_level="info"
        )
    except KeyboardInterrupt:
        logger.info("Shutting down server...")
    except Exception as e:
        logger.error(f"Failed to start server: {str(e)}")
        raise


if __name__ == "__main__":
    start()
