"""
Pytest fixtures for duty stacking tests.

Provides:
- Flask app and test client fixtures (in-memory SQLite)
- Factory fixtures for country profiles, overrides and shipments
"""

import os
import sys
from datetime import datetime

import pytest

# Set testing environment before importing app
os.environ["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"

# Add the project directory to the Python path
project_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_dir not in sys.path:
    sys.path.insert(0, project_dir)


# ============================================================================
# Flask App Fixtures
# ============================================================================

@pytest.fixture
def app():
    """Create Flask application for testing."""
    from dutystack.web import create_app
    from dutystack.web.db import db

    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        "LOG_LEVEL": "WARNING",
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def db_session(app):
    """Database session for direct DB access in tests."""
    from dutystack.web.db import db
    yield db.session


# ============================================================================
# Factory Fixtures
# ============================================================================

@pytest.fixture
def make_profile(db_session):
    """Factory for CountryTariffProfile rows."""
    from dutystack.web.db.models import CountryTariffProfile

    def _make(country_code="VN", country_name=None, **kwargs):
        kwargs.setdefault("last_verified", datetime(2025, 5, 1))
        return CountryTariffProfile.create(
            country_code=country_code,
            country_name=country_name or country_code,
            **kwargs
        )

    return _make


@pytest.fixture
def make_override(db_session):
    """Factory for HtsTariffOverride rows."""
    from dutystack.web.db.models import HtsTariffOverride, ProgramType

    def _make(profile, hts_code, match_type, rate, override_type=ProgramType.SECTION_301.value, **kwargs):
        return HtsTariffOverride.create(
            country_profile_id=profile.id,
            override_type=override_type,
            match_type=match_type,
            hts_code=hts_code,
            rate=rate,
            **kwargs
        )

    return _make


@pytest.fixture
def make_shipment(db_session):
    """Factory for ShipmentRecord rows (not committed until the test commits)."""
    from dutystack.web.db.models import ShipmentRecord

    def _make(country, hts_code, unit_value, quantity=10, arrival_date=None, **kwargs):
        declared = kwargs.pop("declared_value", None)
        if declared is None and unit_value is not None:
            declared = unit_value * quantity
        return ShipmentRecord.create(
            commit=False,
            shipper_country=country,
            hts_code=hts_code,
            unit_value=unit_value,
            quantity=quantity,
            declared_value=declared,
            arrival_date=arrival_date or datetime(2025, 5, 1),
            **kwargs
        )

    return _make


# ============================================================================
# Sample Data Fixtures
# ============================================================================

@pytest.fixture
def china_profile(make_profile):
    """China: elevated, IEEPA baseline + fentanyl, Section 301 active."""
    return make_profile(
        "CN", "China",
        trade_status="elevated",
        ieepa_baseline_rate=10,
        fentanyl_active=True,
        fentanyl_rate=10,
        reciprocal_rate=10,
        section_301_active=True,
        section_301_default_rate=25,
    )


@pytest.fixture
def mexico_profile(make_profile):
    """Mexico: USMCA waives base duty, IEEPA fentanyl still applies."""
    return make_profile(
        "MX", "Mexico",
        has_fta=True,
        fta_name="USMCA",
        fta_waives_base_duty=True,
        fta_waives_ieepa=False,
        ieepa_exempt=False,
        ieepa_baseline_rate=0,
        fentanyl_active=True,
        fentanyl_rate=25,
    )


@pytest.fixture
def vietnam_profile(make_profile):
    """Vietnam: baseline 10, reciprocal ceiling 20."""
    return make_profile(
        "VN", "Vietnam",
        ieepa_baseline_rate=10,
        reciprocal_rate=20,
    )
