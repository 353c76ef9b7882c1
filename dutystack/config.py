"""
Application Configuration

Environment variables (loaded from .env when present):
    SQLALCHEMY_DATABASE_URI: Database URL (default: sqlite:///dutystack.db)
    LOG_LEVEL: Root log level (default: INFO)
    HIGH_TARIFF_THRESHOLD: Additional duty % that triggers the elevated-country alert (default: 25)
    COST_MIN_CONFIDENCE: Minimum confidence score for landed cost comparison (default: 20)
"""

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return float(value)


class Config:
    """Flask configuration read by create_app()."""

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "SQLALCHEMY_DATABASE_URI",
        "sqlite:///dutystack.db",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    HIGH_TARIFF_THRESHOLD = _env_float("HIGH_TARIFF_THRESHOLD", 25.0)
    COST_MIN_CONFIDENCE = _env_float("COST_MIN_CONFIDENCE", 20.0)
