import logging

from focus_voyage.config.settings import settings

def setup_logging(debug: bool = False):
    """Configure logging for the application"""
    # Create logs directory if it doesn't exist
    log_dir = settings.LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if (debug or settings.DEBUG) else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_dir / "focus_voyage.log"),
            logging.StreamHandler()  # Also log to console
        ]
    )
    # Clock anomalies are emitted as warnings
    logging.captureWarnings(True)

    logger = logging.getLogger(__name__)
    logger.info("Logging initialized")
