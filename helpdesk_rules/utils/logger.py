"""
Simple logging wrapper - console only, no files
"""
import logging


# Configure basic logging for the entire app
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s - %(message)s"
)

# Pre-configured loggers
logger = logging.getLogger("helpdesk_rules")
engine_logger = logging.getLogger("helpdesk_rules.engine")
important_logger = logging.getLogger("helpdesk_rules.important")

def log_important(message: str) -> None:
    """Log important events"""
    important_logger.info(f"IMPORTANT - {message}")
