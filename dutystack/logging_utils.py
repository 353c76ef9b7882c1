"""
Logging utilities.

Usage:
    from dutystack.logging_utils import configure_logging, structured_log

    configure_logging("INFO")
    structured_log("INFO", "hts_aggregated", hts_code="392690", countries=4)
"""

import json
import logging
from datetime import datetime

logger = logging.getLogger("dutystack.jobs")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for scripts and the web app."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
        ]
    )


def structured_log(level: str, event: str, **kwargs) -> None:
    """
    Emit structured log message with context.

    Usage:
        structured_log("ERROR", "hts_aggregation_failed", hts_code="392690", error="...")
    """
    log_data = {
        "event": event,
        "timestamp": datetime.utcnow().isoformat(),
        **kwargs
    }

    # Format as JSON for machine parsing
    message = json.dumps(log_data, default=str)

    if level == "DEBUG":
        logger.debug(message)
    elif level == "WARNING":
        logger.warning(message)
    elif level == "ERROR":
        logger.error(message)
    else:
        logger.info(message)
