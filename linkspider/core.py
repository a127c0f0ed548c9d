"""
FILE DESCRIPTION: Foundational module for spider configuration and logging.
KEY FUNCTIONS/CLASSES: setup_logger, ContextFormatter, configuration constants, logger
"""

import logging
import sys
import os
from datetime import datetime, timezone
from dotenv import load_dotenv

# === CONFIGURATION SECTION ===

load_dotenv()


def _env_flag(name, default):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_depth(name, default):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    if value.strip().lower() in ("none", "unlimited"):
        return None
    return int(value)


# Crawl limits
MAX_DEPTH = _env_depth("SPIDER_MAX_DEPTH", 5)
THREAD_COUNT = int(os.getenv("SPIDER_THREADS", 2))
MAX_DURATION = float(os.getenv("SPIDER_MAX_DURATION", 0))  # seconds, 0 = unlimited

# Parsers enabled by default
PARSE_COMMENTS = _env_flag("SPIDER_PARSE_COMMENTS", True)
PARSE_ROBOTS_TXT = _env_flag("SPIDER_PARSE_ROBOTS_TXT", False)
PARSE_SITEMAP_XML = _env_flag("SPIDER_PARSE_SITEMAP_XML", False)

# Network settings for the default fetcher
REQUEST_TIMEOUT = float(os.getenv("SPIDER_REQUEST_TIMEOUT", 20))
VERIFY_TLS = _env_flag("SPIDER_VERIFY_TLS", False)
MAX_RETRIES = int(os.getenv("SPIDER_MAX_RETRIES", 2))
RETRY_DELAY = float(os.getenv("SPIDER_RETRY_DELAY", 5))
USER_AGENT = os.getenv(
    "SPIDER_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36",
)

LOG_LEVEL = os.getenv("SPIDER_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("SPIDER_LOG_FILE") or None


# === LOGGING SECTION ===

class ContextFormatter(logging.Formatter):
    """
    FLOW: Receives a log record -> Extracts timestamp -> Formats it as
    [ Tue Jan 06 05:32:41 AM UTC 2026 ] -> Prepends level and context (worker name or 'root').
    """
    def format(self, record):
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        timestamp = dt.strftime("%a %b %d %I:%M:%S %p UTC %Y")
        context = getattr(record, 'context', 'root')
        message = f"[ {timestamp} ] : {record.levelname} : {context} : {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def setup_logger(name="linkspider", log_file=None, level=logging.INFO):
    """
    FLOW: Initializes/Retrieves logger -> Checks for existing handlers to prevent duplicates ->
    Sets propagation for child loggers -> Attaches Console and optional File handlers with ContextFormatter.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    if name != "linkspider":
        logger.propagate = True
        setup_logger("linkspider", log_file=log_file, level=level)
        return logger

    formatter = ContextFormatter()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler (optional)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def add_log_file(log_file, logger_name="linkspider"):
    """Attach an extra file handler to an already configured logger."""
    target = logging.getLogger(logger_name)
    for handler in target.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == os.path.abspath(log_file):
            return target
    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(ContextFormatter())
    target.addHandler(file_handler)
    return target


# Global logger instance
logger = setup_logger(log_file=LOG_FILE, level=getattr(logging, LOG_LEVEL, logging.INFO))
