"""
Flask application factory.

Usage:
    from dutystack.web import create_app

    app = create_app({"SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
"""

from typing import Any, Mapping, Optional

from flask import Flask

from dutystack.config import Config
from dutystack.logging_utils import configure_logging
from dutystack.web.db import db


def create_app(config_overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)

    # Register models with the metadata before create_all()
    from dutystack.web.db import models  # noqa: F401

    from dutystack.web.views.tariff_views import bp as tariff_bp
    app.register_blueprint(tariff_bp)

    return app
