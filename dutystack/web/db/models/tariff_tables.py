"""
SQLAlchemy models for the country tariff catalog.

These tables are populated by the external registry sync job and are
read-only to the calculator:
- CountryTariffProfile: One row per ISO country with FTA, IEEPA and Section 301 scalars
- TariffProgram: Named program rows per profile (listing/audit only)
- HtsTariffOverride: Product-specific rates (Section 301 lists, AD/CVD, etc.)

All rates are stored as percentages (25 means 25%).

Override precedence (most specific wins):
    exact > prefix (longest first) > chapter
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any

from sqlalchemy import Index, case, func, or_, and_, text
from dutystack.web.db import db
from dutystack.web.db.models.base import BaseModel


# =============================================================================
# Enums for Type Safety
# =============================================================================

class TradeStatus(str, Enum):
    """Trade relationship of a country with the US."""
    NORMAL = "normal"
    ELEVATED = "elevated"
    RESTRICTED = "restricted"
    SANCTIONED = "sanctioned"
    FTA = "fta"


class ProgramType(str, Enum):
    """Trade remedy program categories."""
    IEEPA_BASELINE = "ieepa_baseline"
    IEEPA_FENTANYL = "ieepa_fentanyl"
    IEEPA_RECIPROCAL = "ieepa_reciprocal"
    SECTION_301 = "section_301"
    SECTION_232 = "section_232"
    ADCVD = "adcvd"
    FTA = "fta"


class MatchType(str, Enum):
    """How an override's hts_code is matched against a product code."""
    EXACT = "exact"        # hts_code == full cleaned code
    PREFIX = "prefix"      # hts_code is a leading substring (2+ digits)
    CHAPTER = "chapter"    # hts_code is the 2-digit chapter


def _num(value) -> Optional[float]:
    return float(value) if value is not None else None


# =============================================================================
# Country Tariff Profile
# =============================================================================

class CountryTariffProfile(BaseModel):
    """
    Complete tariff profile for one country of origin.

    total_additional_rate is a cached convenience value. The calculator never
    reads it; see services.profile_registry.recalculate_total_rate().
    """
    __tablename__ = "country_tariff_profiles"

    id = db.Column(db.Integer, primary_key=True)
    country_code = db.Column(db.String(2), unique=True, nullable=False, index=True)  # ISO 3166-1 alpha-2
    country_name = db.Column(db.String(128), nullable=False)
    region = db.Column(db.String(64), nullable=True)
    trade_status = db.Column(db.String(16), nullable=False, default=TradeStatus.NORMAL.value)

    # FTA
    has_fta = db.Column(db.Boolean, nullable=False, default=False)
    fta_name = db.Column(db.String(128), nullable=True)  # "USMCA", "KORUS FTA"
    fta_waives_base_duty = db.Column(db.Boolean, nullable=False, default=False)
    fta_waives_ieepa = db.Column(db.Boolean, nullable=False, default=False)  # Only USMCA

    # IEEPA
    ieepa_exempt = db.Column(db.Boolean, nullable=False, default=False)
    ieepa_baseline_rate = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    fentanyl_active = db.Column(db.Boolean, nullable=False, default=False)
    fentanyl_rate = db.Column(db.Numeric(6, 2), nullable=True)
    reciprocal_rate = db.Column(db.Numeric(6, 2), nullable=True)  # Ceiling, includes baseline

    # Section 301
    section_301_active = db.Column(db.Boolean, nullable=False, default=False)
    section_301_default_rate = db.Column(db.Numeric(6, 2), nullable=True)

    total_additional_rate = db.Column(db.Numeric(7, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    last_verified = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    programs = db.relationship(
        "TariffProgram",
        backref="country_profile",
        lazy="select",
        cascade="all, delete-orphan",
    )
    overrides = db.relationship(
        "HtsTariffOverride",
        backref="country_profile",
        lazy="select",
        cascade="all, delete-orphan",
    )

    @classmethod
    def get_by_code(cls, country_code: str) -> Optional["CountryTariffProfile"]:
        """Get profile by ISO code (case-insensitive)."""
        if not country_code:
            return None
        return cls.query.filter_by(country_code=country_code.strip().upper()).first()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "country_code": self.country_code,
            "country_name": self.country_name,
            "region": self.region,
            "trade_status": self.trade_status,
            "has_fta": self.has_fta,
            "fta_name": self.fta_name,
            "fta_waives_base_duty": self.fta_waives_base_duty,
            "fta_waives_ieepa": self.fta_waives_ieepa,
            "ieepa_exempt": self.ieepa_exempt,
            "ieepa_baseline_rate": _num(self.ieepa_baseline_rate),
            "fentanyl_active": self.fentanyl_active,
            "fentanyl_rate": _num(self.fentanyl_rate),
            "reciprocal_rate": _num(self.reciprocal_rate),
            "section_301_active": self.section_301_active,
            "section_301_default_rate": _num(self.section_301_default_rate),
            "total_additional_rate": _num(self.total_additional_rate),
            "last_verified": self.last_verified.isoformat() if self.last_verified else None,
        }

    def __repr__(self):
        return f"<CountryTariffProfile {self.country_code}>"


# =============================================================================
# Tariff Program (display/audit)
# =============================================================================

class TariffProgram(BaseModel):
    """
    Individual named program attached to a profile.

    Used for listing and audit. The calculator reads the profile scalars,
    never this table.
    """
    __tablename__ = "tariff_programs"
    __table_args__ = (
        Index("idx_tariff_program_profile_type", "country_profile_id", "program_type"),
    )

    id = db.Column(db.Integer, primary_key=True)
    country_profile_id = db.Column(
        db.Integer, db.ForeignKey("country_tariff_profiles.id"), nullable=False
    )
    program_type = db.Column(db.String(32), nullable=False)  # ProgramType value
    name = db.Column(db.String(256), nullable=False)  # "IEEPA Fentanyl Emergency"
    rate = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    chapter_99_code = db.Column(db.String(16), nullable=True)  # "9903.01.24"
    legal_reference = db.Column(db.String(256), nullable=True)  # "Executive Order 14195"
    effective_date = db.Column(db.Date, nullable=True)
    active = db.Column(db.Boolean, nullable=False, default=True)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "country_profile_id": self.country_profile_id,
            "program_type": self.program_type,
            "name": self.name,
            "rate": _num(self.rate),
            "chapter_99_code": self.chapter_99_code,
            "legal_reference": self.legal_reference,
            "effective_date": self.effective_date.isoformat() if self.effective_date else None,
            "active": self.active,
        }


# =============================================================================
# HTS Tariff Override
# =============================================================================

MATCH_PRIORITY = {
    MatchType.EXACT.value: 0,
    MatchType.PREFIX.value: 1,
    MatchType.CHAPTER.value: 2,
}


class HtsTariffOverride(BaseModel):
    """
    Product-specific rate for a (profile, program) pair.

    At most one active row may exist per (profile, override_type, match_type,
    hts_code). Two rows at the same specificity are a data error, rejected by
    the partial unique index rather than resolved by store order.
    """
    __tablename__ = "hts_tariff_overrides"
    __table_args__ = (
        Index(
            "uq_active_hts_override",
            "country_profile_id", "override_type", "match_type", "hts_code",
            unique=True,
            sqlite_where=text("active = 1"),
            postgresql_where=text("active"),
        ),
        Index("idx_hts_override_lookup", "country_profile_id", "override_type", "hts_code"),
    )

    id = db.Column(db.Integer, primary_key=True)
    country_profile_id = db.Column(
        db.Integer, db.ForeignKey("country_tariff_profiles.id"), nullable=False
    )
    override_type = db.Column(db.String(32), nullable=False)  # ProgramType value, e.g. "section_301"
    match_type = db.Column(db.String(16), nullable=False)  # MatchType value
    hts_code = db.Column(db.String(10), nullable=False)  # Digits only, length depends on match_type
    rate = db.Column(db.Numeric(6, 2), nullable=False)
    list_name = db.Column(db.String(64), nullable=True)  # "List 3"
    hts_description = db.Column(db.Text, nullable=True)
    legal_reference = db.Column(db.String(256), nullable=True)
    active = db.Column(db.Boolean, nullable=False, default=True)

    @classmethod
    def get_override(
        cls,
        country_profile_id: int,
        clean_hts: str,
        override_type: str,
    ) -> Optional["HtsTariffOverride"]:
        """
        Get the most specific active override for a cleaned HTS code.

        Single query equivalent to trying, in order:
        1. exact match on the full code
        2. prefix match from the full length down to 2 digits
        3. chapter match on the first 2 digits

        Args:
            country_profile_id: CountryTariffProfile.id
            clean_hts: Digits-only HTS code (see services.hts.clean_hts_code)
            override_type: ProgramType value

        Returns:
            HtsTariffOverride if found, None otherwise
        """
        prefixes = [clean_hts[:length] for length in range(len(clean_hts), 1, -1)]

        return cls.query.filter(
            cls.country_profile_id == country_profile_id,
            cls.override_type == override_type,
            cls.active.is_(True),
            or_(
                and_(
                    cls.match_type == MatchType.EXACT.value,
                    cls.hts_code == clean_hts,
                ),
                and_(
                    cls.match_type == MatchType.PREFIX.value,
                    cls.hts_code.in_(prefixes),
                ),
                and_(
                    cls.match_type == MatchType.CHAPTER.value,
                    cls.hts_code == clean_hts[:2],
                ),
            ),
        ).order_by(
            case(MATCH_PRIORITY, value=cls.match_type, else_=3),
            # Longest prefix first
            func.length(cls.hts_code).desc(),
            cls.id,
        ).first()

    @property
    def rate_pct(self) -> float:
        return float(self.rate) if self.rate is not None else 0.0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "country_profile_id": self.country_profile_id,
            "override_type": self.override_type,
            "match_type": self.match_type,
            "hts_code": self.hts_code,
            "rate": _num(self.rate),
            "list_name": self.list_name,
            "hts_description": self.hts_description,
            "legal_reference": self.legal_reference,
            "active": self.active,
        }

    def __repr__(self):
        return f"<HtsTariffOverride {self.override_type} {self.match_type}:{self.hts_code}>"
