"""
Effective Tariff Calculator - Deterministic Duty Stacking Service

Combines the country profile, product overrides and the Section 232 tables
into one effective duty rate with an ordered, explainable breakdown.

Evaluation order (fixed, drives the breakdown narrative):
1. PROFILE LOOKUP - Missing profile degrades to base MFN + warning (never raises)
2. FTA DISCOUNT - Waives base duty only; IEEPA persists unless flagged
3. IEEPA - Baseline + fentanyl + reciprocal excess over baseline
4. SECTION 301 - Product override, else "(estimated)" profile default
5. SECTION 232 - Steel / aluminum / automobiles flat rate
6. AD/CVD - Pluggable rate source (none configured by default)
7. TOTALS - effective = max(0, base - fta_discount + additional)
8. ALERTS - Elevated trade status with additional duties above threshold

All rates are percentages. The breakdown lists every contributing rate
exactly once, in the order above, and is rendered as-is by the UI.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any, Protocol

from flask import current_app, has_app_context

from dutystack.services.hts import clean_hts_code
from dutystack.services.override_resolver import resolve_override
from dutystack.services.section232 import (
    Section232Catalog,
    DEFAULT_CATALOG,
    SECTION_232_LEGAL_REFERENCE,
)
from dutystack.web.db.models.tariff_tables import (
    CountryTariffProfile,
    ProgramType,
    TradeStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_HIGH_TARIFF_THRESHOLD = 25.0

IEEPA_RECIPROCAL_REFERENCE = "Executive Order 14257"
IEEPA_FENTANYL_REFERENCE = "Executive Order 14195"


# =============================================================================
# Result Data Classes
# =============================================================================

@dataclass
class BreakdownLine:
    """One contributing rate in the effective tariff narrative."""
    program: str
    rate: float
    description: str
    legal_reference: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        result = {
            "program": self.program,
            "rate": self.rate,
            "description": self.description,
        }
        if self.legal_reference:
            result["legal_reference"] = self.legal_reference
        return result


@dataclass
class IeepaBreakdown:
    baseline: float = 0.0
    fentanyl: float = 0.0
    reciprocal: float = 0.0  # Excess over baseline only

    @property
    def total(self) -> float:
        return self.baseline + self.fentanyl + self.reciprocal

    def as_dict(self) -> Dict[str, float]:
        return {
            "baseline": self.baseline,
            "fentanyl": self.fentanyl,
            "reciprocal": self.reciprocal,
        }


@dataclass
class EffectiveTariffResult:
    """
    Full result of an effective tariff computation.

    warnings is the user-facing caveat channel and must be rendered.
    """
    country_code: str
    country_name: str
    trade_status: str
    base_mfn_rate: float

    has_fta: bool = False
    fta_name: Optional[str] = None
    fta_discount: float = 0.0
    fta_waives_ieepa: bool = False

    ieepa_rate: float = 0.0
    ieepa_breakdown: IeepaBreakdown = field(default_factory=IeepaBreakdown)

    section_301_rate: float = 0.0
    section_301_lists: List[str] = field(default_factory=list)

    section_232_rate: float = 0.0
    section_232_product: Optional[str] = None

    adcvd_rate: float = 0.0
    adcvd_warning: Optional[str] = None

    total_additional_duties: float = 0.0
    effective_rate: float = 0.0

    breakdown: List[BreakdownLine] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    data_freshness: str = "No data available"
    last_verified: Optional[datetime] = None

    def as_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "country_code": self.country_code,
            "country_name": self.country_name,
            "trade_status": self.trade_status,
            "base_mfn_rate": self.base_mfn_rate,
            "has_fta": self.has_fta,
            "fta_name": self.fta_name,
            "fta_discount": self.fta_discount,
            "fta_waives_ieepa": self.fta_waives_ieepa,
            "ieepa_rate": self.ieepa_rate,
            "ieepa_breakdown": self.ieepa_breakdown.as_dict(),
            "section_301_rate": self.section_301_rate,
            "section_301_lists": list(self.section_301_lists),
            "section_232_rate": self.section_232_rate,
            "section_232_product": self.section_232_product,
            "adcvd_rate": self.adcvd_rate,
            "adcvd_warning": self.adcvd_warning,
            "total_additional_duties": self.total_additional_duties,
            "effective_rate": self.effective_rate,
            "breakdown": [line.as_dict() for line in self.breakdown],
            "warnings": list(self.warnings),
            "data_freshness": self.data_freshness,
            "last_verified": self.last_verified.isoformat() if self.last_verified else None,
        }


# =============================================================================
# AD/CVD Rate Source (extension point)
# =============================================================================

@dataclass(frozen=True)
class AdcvdRate:
    """Case-specific AD/CVD rate supplied by an external source."""
    rate: float
    case_number: str
    description: str = "Antidumping / countervailing duty order"
    legal_reference: Optional[str] = None
    warning: Optional[str] = None


class AdcvdRateSource(Protocol):
    def lookup(self, profile: CountryTariffProfile, clean_hts: str) -> Optional[AdcvdRate]:
        ...


class NullAdcvdSource:
    """No AD/CVD data. Case-specific lookup remains a manual step."""

    def lookup(self, profile: CountryTariffProfile, clean_hts: str) -> Optional[AdcvdRate]:
        return None


# =============================================================================
# Effective Tariff Calculator
# =============================================================================

def _pct(value) -> float:
    return float(value) if value is not None else 0.0


class TariffCalculator:
    """
    Deterministic effective tariff calculator.

    Usage:
        calculator = TariffCalculator()
        result = calculator.compute("CN", "3926.90.99.10", base_mfn_rate=5.3)

        print(f"Effective rate: {result.effective_rate}%")
        for line in result.breakdown:
            print(f"  {line.program}: {line.rate}%")
    """

    def __init__(
        self,
        section_232_catalog: Section232Catalog = DEFAULT_CATALOG,
        adcvd_source: Optional[AdcvdRateSource] = None,
        high_tariff_threshold: Optional[float] = None,
    ):
        """
        Initialize the calculator.

        Args:
            section_232_catalog: Section 232 coverage tables
            adcvd_source: AD/CVD rate source (defaults to NullAdcvdSource)
            high_tariff_threshold: Additional duty % above which elevated
                                   countries get an alert. Defaults to the
                                   HIGH_TARIFF_THRESHOLD app setting.
        """
        self.section_232_catalog = section_232_catalog
        self.adcvd_source = adcvd_source or NullAdcvdSource()
        self._high_tariff_threshold = high_tariff_threshold

    @property
    def high_tariff_threshold(self) -> float:
        if self._high_tariff_threshold is not None:
            return self._high_tariff_threshold
        if has_app_context():
            return float(current_app.config.get("HIGH_TARIFF_THRESHOLD", DEFAULT_HIGH_TARIFF_THRESHOLD))
        return DEFAULT_HIGH_TARIFF_THRESHOLD

    def compute(
        self,
        country_code: str,
        hts_code: str,
        base_mfn_rate: float = 0.0,
        include_section_232: bool = True,
    ) -> EffectiveTariffResult:
        """
        Compute the effective tariff for a product from a country.

        Args:
            country_code: ISO 2-letter country code (any case)
            hts_code: HTS code, any length, with or without dots
            base_mfn_rate: Base MFN rate in percent, if known
            include_section_232: Check steel/aluminum/automobile tables

        Returns:
            EffectiveTariffResult with rate components, breakdown and warnings

        Raises:
            InvalidHtsCodeError: If hts_code is empty or not numeric
        """
        clean_hts = clean_hts_code(hts_code)
        upper_country = (country_code or "").strip().upper()
        base_mfn = float(base_mfn_rate or 0.0)

        # =================================================================
        # STEP 1: PROFILE LOOKUP
        # =================================================================
        profile = CountryTariffProfile.get_by_code(upper_country)

        if not profile:
            return self._missing_profile_result(upper_country, base_mfn)

        result = EffectiveTariffResult(
            country_code=upper_country,
            country_name=profile.country_name,
            trade_status=profile.trade_status,
            base_mfn_rate=base_mfn,
            has_fta=bool(profile.has_fta),
            fta_name=profile.fta_name,
            fta_waives_ieepa=bool(profile.fta_waives_ieepa),
            effective_rate=base_mfn,
            data_freshness=f"Last verified: {profile.last_verified.date().isoformat()}"
                if profile.last_verified else "No data available",
            last_verified=profile.last_verified,
        )

        # =================================================================
        # STEP 2: FTA DISCOUNT
        # =================================================================
        self._apply_fta(result, profile)

        # =================================================================
        # STEP 3: IEEPA
        # =================================================================
        if not profile.ieepa_exempt:
            self._apply_ieepa(result, profile)

        # =================================================================
        # STEP 4: SECTION 301
        # =================================================================
        if profile.section_301_active:
            self._apply_section_301(result, profile, clean_hts)

        # =================================================================
        # STEP 5: SECTION 232
        # =================================================================
        if include_section_232:
            self._apply_section_232(result, clean_hts)

        # =================================================================
        # STEP 6: AD/CVD
        # =================================================================
        self._apply_adcvd(result, profile, clean_hts)

        # =================================================================
        # STEP 7: TOTALS
        # =================================================================
        result.total_additional_duties = (
            result.ieepa_rate
            + result.section_301_rate
            + result.section_232_rate
            + result.adcvd_rate
        )
        result.effective_rate = max(
            0.0,
            result.base_mfn_rate - result.fta_discount + result.total_additional_duties,
        )

        # =================================================================
        # STEP 8: ALERTS
        # =================================================================
        if (
            profile.trade_status == TradeStatus.ELEVATED.value
            and result.total_additional_duties > self.high_tariff_threshold
        ):
            result.warnings.append(
                f"HIGH TARIFF ALERT: {profile.country_name} faces "
                f"{result.total_additional_duties:g}% additional duties"
            )

        return result

    def _missing_profile_result(self, country_code: str, base_mfn: float) -> EffectiveTariffResult:
        """Fail-soft result: base MFN only, clearly flagged."""
        logger.error(f"No tariff profile for {country_code} - run the tariff registry sync first")

        result = EffectiveTariffResult(
            country_code=country_code,
            country_name=country_code,
            trade_status=TradeStatus.NORMAL.value,
            base_mfn_rate=base_mfn,
            effective_rate=base_mfn,
        )
        result.breakdown.append(BreakdownLine(
            program="Missing Data",
            rate=0.0,
            description="Tariff registry needs to be synced for this country",
        ))
        result.warnings.append(
            f"No tariff data for {country_code}. Run the tariff registry sync job "
            f"to populate this country; only the base MFN rate was applied."
        )
        return result

    def _apply_fta(self, result: EffectiveTariffResult, profile: CountryTariffProfile) -> None:
        if not (profile.has_fta and profile.fta_waives_base_duty):
            return

        fta_name = profile.fta_name or "FTA"
        result.fta_discount = result.base_mfn_rate
        result.breakdown.append(BreakdownLine(
            program=f"{fta_name} (Base Duty Waiver)",
            rate=-result.base_mfn_rate or 0.0,
            description="FTA waives base MFN duty",
        ))

        # An FTA never removes IEEPA duties unless explicitly flagged
        if not profile.fta_waives_ieepa:
            result.warnings.append(
                f"{fta_name} waives base duty but IEEPA tariffs still apply"
            )

    def _apply_ieepa(self, result: EffectiveTariffResult, profile: CountryTariffProfile) -> None:
        ieepa = result.ieepa_breakdown
        baseline = _pct(profile.ieepa_baseline_rate)

        if baseline > 0:
            ieepa.baseline = baseline
            result.breakdown.append(BreakdownLine(
                program="IEEPA Universal Baseline",
                rate=baseline,
                description="Reciprocal baseline tariff - applies to nearly all countries",
                legal_reference=IEEPA_RECIPROCAL_REFERENCE,
            ))

        if profile.fentanyl_active:
            fentanyl = _pct(profile.fentanyl_rate)
            if fentanyl > 0:
                ieepa.fentanyl = fentanyl
                result.breakdown.append(BreakdownLine(
                    program="IEEPA Fentanyl Emergency",
                    rate=fentanyl,
                    description="Fentanyl crisis emergency tariff",
                    legal_reference=IEEPA_FENTANYL_REFERENCE,
                ))

        # The country reciprocal rate is a ceiling that already includes the
        # baseline; only the excess is a distinct duty.
        if profile.reciprocal_rate is not None:
            excess = max(0.0, _pct(profile.reciprocal_rate) - baseline)
            if excess > 0:
                ieepa.reciprocal = excess
                result.breakdown.append(BreakdownLine(
                    program="IEEPA Country Reciprocal",
                    rate=excess,
                    description=f"Additional reciprocal tariff for {profile.country_name}",
                    legal_reference=IEEPA_RECIPROCAL_REFERENCE,
                ))

        result.ieepa_rate = ieepa.total

    def _apply_section_301(
        self,
        result: EffectiveTariffResult,
        profile: CountryTariffProfile,
        clean_hts: str,
    ) -> None:
        override = resolve_override(profile.id, clean_hts, ProgramType.SECTION_301)

        if override:
            list_name = override.list_name or "Trade Act"
            result.section_301_rate = override.rate_pct
            result.section_301_lists.append(override.list_name or "Section 301")
            result.breakdown.append(BreakdownLine(
                program=f"Section 301 ({list_name})",
                rate=override.rate_pct,
                description=override.hts_description or "Section 301 trade action tariff",
                legal_reference=override.legal_reference,
            ))
            return

        default_rate = _pct(profile.section_301_default_rate)
        if default_rate > 0:
            result.section_301_rate = default_rate
            result.breakdown.append(BreakdownLine(
                program="Section 301 (estimated)",
                rate=default_rate,
                description="Default Section 301 rate - verify product-specific rate",
            ))

    def _apply_section_232(self, result: EffectiveTariffResult, clean_hts: str) -> None:
        section_232 = self.section_232_catalog.classify(clean_hts)
        if not section_232.applies:
            return

        result.section_232_rate = section_232.rate
        result.section_232_product = section_232.product
        result.breakdown.append(BreakdownLine(
            program=f"Section 232 ({section_232.product})",
            rate=section_232.rate,
            description=f"National security tariff on {section_232.product}",
            legal_reference=SECTION_232_LEGAL_REFERENCE,
        ))

    def _apply_adcvd(
        self,
        result: EffectiveTariffResult,
        profile: CountryTariffProfile,
        clean_hts: str,
    ) -> None:
        adcvd = self.adcvd_source.lookup(profile, clean_hts)
        if adcvd is None:
            return

        if adcvd.warning:
            result.adcvd_warning = adcvd.warning
            result.warnings.append(adcvd.warning)

        if adcvd.rate > 0:
            result.adcvd_rate = adcvd.rate
            result.breakdown.append(BreakdownLine(
                program=f"AD/CVD ({adcvd.case_number})",
                rate=adcvd.rate,
                description=adcvd.description,
                legal_reference=adcvd.legal_reference,
            ))


# =============================================================================
# Convenience Functions
# =============================================================================

def compute_effective_tariff(
    country_code: str,
    hts_code: str,
    base_mfn_rate: float = 0.0,
    include_section_232: bool = True,
) -> EffectiveTariffResult:
    """
    Convenience function for effective tariff computation.

    Example:
        result = compute_effective_tariff("VN", "6109.10.00", base_mfn_rate=16.5)
        print(result.effective_rate, result.warnings)
    """
    return get_tariff_calculator().compute(
        country_code,
        hts_code,
        base_mfn_rate=base_mfn_rate,
        include_section_232=include_section_232,
    )


# =============================================================================
# Singleton Calculator Instance
# =============================================================================

_calculator: Optional[TariffCalculator] = None


def get_tariff_calculator() -> TariffCalculator:
    """Get the singleton calculator instance."""
    global _calculator
    if _calculator is None:
        _calculator = TariffCalculator()
    return _calculator
