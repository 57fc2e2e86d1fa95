"""Logging setup for the application."""

import logging
import sys

# Chatty at DEBUG: one line per upstream request, including URLs
NOISY_LOGGERS = ("urllib3", "httpx", "httpcore")


def setup_logger(log_level: str = "INFO", name: str = "nixpkgs_pr_tracker") -> logging.Logger:
    """
    Configure logging once for the CLI or the API server.

    Log lines go to stdout so they interleave with uvicorn's own output.
    HTTP client libraries stay at WARNING even when the application runs at
    DEBUG.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            unknown values fall back to INFO
        name: Logger name (default: nixpkgs_pr_tracker)

    Returns:
        logging.Logger: Configured logger instance
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stdout,
        force=True,  # Override any existing configuration
    )

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(numeric_level, logging.WARNING))

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    return logger
