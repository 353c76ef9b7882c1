"""
Profile Registry

Read helpers over the country tariff catalog plus maintenance of the cached
CountryTariffProfile.total_additional_rate column.

The calculator never reads the cached total; it is kept for listing and
sorting. validate_all_profiles() reports rows whose cached value has drifted
from the scalar columns.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from dutystack.web.db import db
from dutystack.web.db.models.tariff_tables import CountryTariffProfile, TariffProgram

logger = logging.getLogger(__name__)


def _pct(value) -> float:
    return float(value) if value is not None else 0.0


def get_tariff_profile(country_code: str) -> Optional[CountryTariffProfile]:
    return CountryTariffProfile.get_by_code(country_code)


def get_all_active_programs(country_code: str) -> List[TariffProgram]:
    """Active programs for a country, grouped by type with the highest rate first."""
    profile = CountryTariffProfile.get_by_code(country_code)
    if not profile:
        return []

    return TariffProgram.query.filter(
        TariffProgram.country_profile_id == profile.id,
        TariffProgram.active.is_(True),
    ).order_by(
        TariffProgram.program_type,
        TariffProgram.rate.desc(),
    ).all()


def get_all_country_profiles(
    trade_status: Optional[str] = None,
    has_fta: Optional[bool] = None,
    order_by: str = "name",
) -> List[CountryTariffProfile]:
    """
    List country profiles with optional filters.

    Args:
        trade_status: TradeStatus value to filter on
        has_fta: Only countries with (True) or without (False) an FTA
        order_by: "name" (alphabetical) or "rate" (highest total first)
    """
    query = CountryTariffProfile.query

    if trade_status:
        query = query.filter(CountryTariffProfile.trade_status == trade_status)
    if has_fta is not None:
        query = query.filter(CountryTariffProfile.has_fta.is_(has_fta))

    if order_by == "rate":
        query = query.order_by(
            CountryTariffProfile.total_additional_rate.desc(),
            CountryTariffProfile.country_name,
        )
    elif order_by == "name":
        query = query.order_by(CountryTariffProfile.country_name)
    else:
        raise ValueError(f"order_by must be 'name' or 'rate', got {order_by!r}")

    return query.all()


def compute_total_rate(profile: CountryTariffProfile) -> float:
    """
    Total additional rate implied by a profile's scalar columns.

    Mirrors the calculator's country-level stacking: IEEPA baseline, fentanyl
    when active, reciprocal excess over the baseline, and the Section 301
    default. Product-specific overrides are not included.
    """
    total = 0.0

    if not profile.ieepa_exempt:
        baseline = _pct(profile.ieepa_baseline_rate)
        total += baseline
        if profile.fentanyl_active:
            total += _pct(profile.fentanyl_rate)
        if profile.reciprocal_rate is not None:
            total += max(0.0, _pct(profile.reciprocal_rate) - baseline)

    if profile.section_301_active:
        total += _pct(profile.section_301_default_rate)

    return total


def recalculate_total_rate(country_code: str, commit: bool = True) -> float:
    """
    Recompute and persist the cached total for one country.

    Returns:
        The new total, or 0 if the country has no profile
    """
    profile = CountryTariffProfile.get_by_code(country_code)
    if not profile:
        logger.warning(f"Cannot recalculate total rate: no profile for {country_code}")
        return 0.0

    total = compute_total_rate(profile)
    profile.update(
        commit=commit,
        total_additional_rate=total,
        last_verified=datetime.utcnow(),
    )
    logger.info(f"Recalculated total additional rate for {profile.country_code}: {total:g}%")
    return total


def validate_all_profiles(tolerance: float = 0.1, fix: bool = False) -> Dict[str, Any]:
    """
    Compare every profile's cached total against the recomputed one.

    Args:
        tolerance: Allowed absolute difference in percentage points
        fix: Persist recomputed totals for mismatched profiles

    Returns:
        {"valid": n, "invalid": m, "issues": [{country_code, stored, calculated}, ...]}
    """
    valid = 0
    issues = []

    for profile in CountryTariffProfile.query.order_by(CountryTariffProfile.country_code).all():
        stored = _pct(profile.total_additional_rate)
        calculated = compute_total_rate(profile)

        if abs(stored - calculated) <= tolerance:
            valid += 1
            continue

        issues.append({
            "country_code": profile.country_code,
            "stored": stored,
            "calculated": calculated,
        })
        logger.warning(
            f"Total rate mismatch for {profile.country_code}: "
            f"stored {stored:g}%, calculated {calculated:g}%"
        )

        if fix:
            profile.update(
                commit=False,
                total_additional_rate=calculated,
                last_verified=datetime.utcnow(),
            )

    if fix and issues:
        db.session.commit()

    return {"valid": valid, "invalid": len(issues), "issues": issues}
