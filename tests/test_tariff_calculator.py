"""
Tests for the effective tariff calculator.

Covers the fixed evaluation order:
FTA -> IEEPA -> Section 301 -> Section 232 -> AD/CVD -> totals -> alerts
"""

import math

import pytest

from dutystack.errors import InvalidHtsCodeError
from dutystack.services.section232 import Section232Catalog
from dutystack.services.tariff_calculator import (
    AdcvdRate,
    TariffCalculator,
    compute_effective_tariff,
)
from dutystack.web.db.models import MatchType


def programs(result):
    return [line.program for line in result.breakdown]


def additional_lines(result):
    """Breakdown lines that are additional duties (everything but FTA waivers)."""
    return [line for line in result.breakdown if "Base Duty Waiver" not in line.program]


class FixedAdcvdSource:
    def __init__(self, rate, warning=None):
        self.rate = AdcvdRate(rate=rate, case_number="A-570-979", warning=warning)

    def lookup(self, profile, clean_hts):
        return self.rate


# =============================================================================
# Missing Data
# =============================================================================

class TestMissingProfile:

    def test_missing_profile_degrades_to_base(self, app):
        result = compute_effective_tariff("ZZ", "6109.10.00", base_mfn_rate=16.5)

        assert result.effective_rate == 16.5
        assert result.total_additional_duties == 0
        assert programs(result) == ["Missing Data"]
        assert result.breakdown[0].rate == 0
        assert any("No tariff data for ZZ" in w for w in result.warnings)
        assert result.data_freshness == "No data available"

    def test_missing_profile_does_not_raise_for_lowercase(self, app):
        result = compute_effective_tariff("zz", "6109.10.00")
        assert result.country_code == "ZZ"
        assert result.effective_rate == 0

    def test_invalid_hts_raises_before_lookup(self, app):
        with pytest.raises(InvalidHtsCodeError):
            compute_effective_tariff("ZZ", "")


# =============================================================================
# FTA
# =============================================================================

class TestFta:

    def test_usmca_waives_base_but_not_ieepa(self, app, mexico_profile):
        result = compute_effective_tariff("MX", "6109.10.00", base_mfn_rate=5)

        assert result.fta_discount == 5
        assert programs(result)[0] == "USMCA (Base Duty Waiver)"
        assert result.breakdown[0].rate == -5
        assert "USMCA waives base duty but IEEPA tariffs still apply" in result.warnings
        assert result.ieepa_breakdown.fentanyl == 25
        assert result.effective_rate == 25

    def test_zero_base_waiver_is_positive_zero(self, app, mexico_profile):
        result = compute_effective_tariff("MX", "6109.10.00", base_mfn_rate=0)

        waiver = result.breakdown[0]
        assert waiver.program == "USMCA (Base Duty Waiver)"
        assert math.copysign(1.0, waiver.rate) == 1.0
        assert result.as_dict()["breakdown"][0]["rate"] == 0.0

    def test_fta_waiving_ieepa_has_no_warning(self, app, make_profile):
        make_profile(
            "CA", "Canada",
            has_fta=True,
            fta_name="USMCA",
            fta_waives_base_duty=True,
            fta_waives_ieepa=True,
            ieepa_exempt=True,
            fentanyl_active=True,
            fentanyl_rate=25,
        )
        result = compute_effective_tariff("CA", "6109.10.00", base_mfn_rate=5)

        assert result.warnings == []
        assert result.ieepa_rate == 0
        assert result.effective_rate == 0

    def test_fta_without_base_waiver(self, app, make_profile):
        make_profile("KR", "South Korea", has_fta=True, fta_name="KORUS FTA",
                     fta_waives_base_duty=False, ieepa_baseline_rate=10)
        result = compute_effective_tariff("KR", "6109.10.00", base_mfn_rate=5)

        assert result.fta_discount == 0
        assert result.effective_rate == 15


# =============================================================================
# IEEPA
# =============================================================================

class TestIeepa:

    def test_reciprocal_counts_only_excess(self, app, vietnam_profile):
        result = compute_effective_tariff("VN", "6109.10.00", base_mfn_rate=16.5)

        assert result.ieepa_breakdown.baseline == 10
        assert result.ieepa_breakdown.reciprocal == 10
        assert result.ieepa_rate == 20
        assert programs(result) == ["IEEPA Universal Baseline", "IEEPA Country Reciprocal"]
        assert result.effective_rate == pytest.approx(36.5)

    def test_reciprocal_below_baseline_adds_nothing(self, app, make_profile):
        make_profile("GB", "United Kingdom", ieepa_baseline_rate=10, reciprocal_rate=10)
        result = compute_effective_tariff("GB", "6109.10.00")

        assert result.ieepa_breakdown.reciprocal == 0
        assert "IEEPA Country Reciprocal" not in programs(result)
        assert result.ieepa_rate == 10

    def test_exempt_country_skips_ieepa(self, app, make_profile):
        make_profile("CA", "Canada", ieepa_exempt=True, ieepa_baseline_rate=10,
                     fentanyl_active=True, fentanyl_rate=35)
        result = compute_effective_tariff("CA", "6109.10.00")

        assert result.ieepa_rate == 0
        assert result.breakdown == []

    def test_inactive_fentanyl_ignored(self, app, make_profile):
        make_profile("IN", "India", ieepa_baseline_rate=10, fentanyl_active=False, fentanyl_rate=20)
        result = compute_effective_tariff("IN", "6109.10.00")

        assert result.ieepa_breakdown.fentanyl == 0
        assert result.ieepa_rate == 10


# =============================================================================
# Section 301 / 232 / AD/CVD
# =============================================================================

class TestSection301:

    def test_override_rate_used(self, app, china_profile, make_override):
        make_override(china_profile, "3926909910", MatchType.EXACT.value, 7.5, list_name="List 4A")
        result = compute_effective_tariff("CN", "3926.90.99.10")

        assert result.section_301_rate == 7.5
        assert result.section_301_lists == ["List 4A"]
        assert "Section 301 (List 4A)" in programs(result)

    def test_default_rate_is_estimated(self, app, china_profile):
        result = compute_effective_tariff("CN", "6109.10.00")

        assert result.section_301_rate == 25
        assert "Section 301 (estimated)" in programs(result)

    def test_inactive_section_301(self, app, vietnam_profile, make_override):
        make_override(vietnam_profile, "61", MatchType.CHAPTER.value, 25)
        result = compute_effective_tariff("VN", "6109.10.00")

        assert result.section_301_rate == 0


class TestSection232:

    def test_steel_line_added(self, app, vietnam_profile):
        result = compute_effective_tariff("VN", "7318.15.00")

        assert result.section_232_rate == 25
        assert result.section_232_product == "Steel"
        assert programs(result)[-1] == "Section 232 (Steel)"

    def test_can_be_disabled(self, app, vietnam_profile):
        result = compute_effective_tariff("VN", "7318.15.00", include_section_232=False)

        assert result.section_232_rate == 0
        assert "Section 232 (Steel)" not in programs(result)

    def test_custom_catalog(self, app, vietnam_profile):
        calculator = TariffCalculator(section_232_catalog=Section232Catalog(steel_rate=50.0))
        assert calculator.compute("VN", "7318.15.00").section_232_rate == 50


class TestAdcvd:

    def test_default_source_adds_nothing(self, app, china_profile):
        result = compute_effective_tariff("CN", "8541.43.00")
        assert result.adcvd_rate == 0
        assert result.adcvd_warning is None

    def test_supplied_source(self, app, china_profile):
        calculator = TariffCalculator(adcvd_source=FixedAdcvdSource(
            93.5, warning="Solar cells may be subject to AD/CVD orders",
        ))
        result = calculator.compute("CN", "8541.43.00")

        assert result.adcvd_rate == 93.5
        assert "AD/CVD (A-570-979)" in programs(result)
        assert "Solar cells may be subject to AD/CVD orders" in result.warnings


# =============================================================================
# Totals and Alerts
# =============================================================================

class TestTotals:

    def test_full_stack_for_china(self, app, china_profile, make_override):
        make_override(china_profile, "3926909910", MatchType.EXACT.value, 15)
        result = compute_effective_tariff("CN", "3926.90.99.10", base_mfn_rate=5.3)

        assert programs(result) == [
            "IEEPA Universal Baseline",
            "IEEPA Fentanyl Emergency",
            "Section 301 (Trade Act)",
        ]
        assert result.total_additional_duties == 35
        assert result.effective_rate == pytest.approx(40.3)

    def test_breakdown_sums_to_total(self, app, china_profile, make_override):
        make_override(china_profile, "73", MatchType.CHAPTER.value, 25, list_name="List 3")
        result = compute_effective_tariff("CN", "7318.15.00", base_mfn_rate=3.4)

        assert sum(line.rate for line in additional_lines(result)) == pytest.approx(
            result.total_additional_duties
        )
        assert result.effective_rate == pytest.approx(
            result.base_mfn_rate - result.fta_discount + result.total_additional_duties
        )

    def test_effective_rate_never_negative(self, app, make_profile):
        make_profile("SG", "Singapore", has_fta=True, fta_name="USSFTA",
                     fta_waives_base_duty=True, fta_waives_ieepa=True, ieepa_exempt=True)
        result = compute_effective_tariff("SG", "6109.10.00", base_mfn_rate=12)

        assert result.effective_rate == 0
        assert result.effective_rate >= 0


class TestAlerts:

    def test_high_tariff_alert_for_elevated(self, app, china_profile):
        result = compute_effective_tariff("CN", "6109.10.00")

        assert result.total_additional_duties == 45
        assert any(w.startswith("HIGH TARIFF ALERT") for w in result.warnings)

    def test_threshold_from_config(self, app, china_profile):
        app.config["HIGH_TARIFF_THRESHOLD"] = 50
        result = compute_effective_tariff("CN", "6109.10.00")

        assert not any(w.startswith("HIGH TARIFF ALERT") for w in result.warnings)

    def test_no_alert_for_normal_status(self, app, make_profile):
        make_profile("BR", "Brazil", ieepa_baseline_rate=10, reciprocal_rate=50)
        result = compute_effective_tariff("BR", "6109.10.00")

        assert result.total_additional_duties == 50
        assert not any(w.startswith("HIGH TARIFF ALERT") for w in result.warnings)


class TestResultSerialization:

    def test_as_dict(self, app, vietnam_profile):
        data = compute_effective_tariff("vn", "6109.10.00", base_mfn_rate=16.5).as_dict()

        assert data["country_code"] == "VN"
        assert data["country_name"] == "Vietnam"
        assert data["ieepa_breakdown"] == {"baseline": 10.0, "fentanyl": 0.0, "reciprocal": 10.0}
        assert data["data_freshness"] == "Last verified: 2025-05-01"
        assert data["breakdown"][0]["legal_reference"] == "Executive Order 14257"
