"""Tests for stored cost lookup and landed cost comparison."""

import pytest

from dutystack.errors import InvalidHtsCodeError
from dutystack.services.landed_cost import (
    MPF_MAX,
    MPF_MIN,
    calculate_fees,
    compare_landed_costs,
    data_quality_tier,
    get_hts_cost_data,
    shipping_cost_per_unit,
)
from dutystack.web.db.models import HtsCostByCountry


@pytest.fixture
def make_cost_row(db_session):
    def _make(country_code, avg, confidence, hts_code="610910", country_name=None):
        return HtsCostByCountry.create(
            hts_code=hts_code,
            country_code=country_code,
            country_name=country_name or country_code,
            avg_unit_value=avg,
            median_unit_value=avg,
            min_unit_value=avg,
            max_unit_value=avg,
            std_deviation=0,
            shipment_count=10,
            total_quantity=100,
            total_value=avg * 100,
            confidence_score=confidence,
        )
    return _make


@pytest.fixture
def three_origins(china_profile, vietnam_profile, mexico_profile, make_cost_row):
    make_cost_row("CN", 10.0, 80, country_name="China")
    make_cost_row("VN", 8.0, 50, country_name="Vietnam")
    make_cost_row("MX", 9.0, 25, country_name="Mexico")


class TestDataQualityTier:

    @pytest.mark.parametrize("score,tier", [(100, "high"), (70, "high"), (69, "medium"),
                                            (40, "medium"), (39, "low"), (0, "low")])
    def test_tiers(self, score, tier):
        assert data_quality_tier(score) == tier


class TestGetHtsCostData:

    def test_ordered_by_confidence(self, app, three_origins):
        rows = get_hts_cost_data("6109.10.00.12")
        assert [r.country_code for r in rows] == ["CN", "VN", "MX"]

    def test_unknown_code(self, app):
        assert get_hts_cost_data("610990") == []

    def test_short_code(self, app):
        with pytest.raises(InvalidHtsCodeError):
            get_hts_cost_data("6109")


class TestCompareLandedCosts:

    def test_sorted_cheapest_first(self, app, three_origins):
        comparison = compare_landed_costs("6109.10.00", base_mfn_rate=16.5)

        assert [c.country_code for c in comparison.countries] == ["VN", "MX", "CN"]
        assert [c.landed_cost for c in comparison.countries] == [10.92, 11.25, 16.15]
        assert [c.effective_rate for c in comparison.countries] == pytest.approx([36.5, 25, 61.5])
        assert comparison.cheapest_country == "VN"
        assert comparison.most_expensive_country == "CN"
        assert comparison.average_cost == 12.77

    def test_savings_vs_china(self, app, three_origins):
        by_country = {c.country_code: c for c in compare_landed_costs("610910", base_mfn_rate=16.5).countries}

        assert by_country["VN"].savings_vs_china == 5.23
        assert by_country["VN"].savings_percent == 32
        assert by_country["MX"].savings_vs_china == 4.9
        assert by_country["MX"].savings_percent == 30
        assert by_country["CN"].savings_vs_china is None

    def test_quality_tiers(self, app, three_origins):
        tiers = {c.country_code: c.data_quality for c in compare_landed_costs("610910").countries}
        assert tiers == {"CN": "high", "VN": "medium", "MX": "low"}

    def test_min_confidence(self, app, three_origins):
        comparison = compare_landed_costs("610910", min_confidence=30)
        assert {c.country_code for c in comparison.countries} == {"CN", "VN"}

    def test_default_min_confidence_from_config(self, app, three_origins):
        app.config["COST_MIN_CONFIDENCE"] = 60
        comparison = compare_landed_costs("610910")
        assert [c.country_code for c in comparison.countries] == ["CN"]

    def test_include_countries(self, app, three_origins):
        comparison = compare_landed_costs("610910", include_countries=["vn"], exclude_countries=["VN"])
        assert [c.country_code for c in comparison.countries] == ["VN"]
        assert comparison.countries[0].savings_vs_china is None

    def test_exclude_countries(self, app, three_origins):
        comparison = compare_landed_costs("610910", exclude_countries=["CN"])
        assert {c.country_code for c in comparison.countries} == {"VN", "MX"}
        assert all(c.savings_percent is None for c in comparison.countries)

    def test_missing_profile_carries_warning(self, app, make_cost_row):
        make_cost_row("BD", 5.0, 50)
        [line] = compare_landed_costs("610910", base_mfn_rate=10).countries

        assert line.effective_rate == 10
        assert line.landed_cost == 5.5
        assert any("No tariff data for BD" in w for w in line.warnings)

    def test_empty(self, app):
        comparison = compare_landed_costs("610910")
        assert comparison.countries == []
        assert comparison.cheapest_country is None
        assert comparison.average_cost == 0


class TestFeesAndShipping:

    def test_mpf_minimum(self):
        fees = calculate_fees(1000)
        assert fees.mpf == MPF_MIN
        assert fees.hmf == pytest.approx(1.25)

    def test_mpf_maximum(self):
        fees = calculate_fees(1_000_000)
        assert fees.mpf == MPF_MAX
        assert fees.hmf == pytest.approx(1250)

    def test_mpf_within_range(self):
        fees = calculate_fees(50_000)
        assert fees.mpf == pytest.approx(173.2)
        assert fees.total == pytest.approx(173.2 + 62.5)

    def test_fees_per_unit(self):
        fees = calculate_fees(10_000).per_unit(1000)
        assert fees.as_dict() == pytest.approx({"mpf": 0.03464, "hmf": 0.0125, "total": 0.04714})

    def test_shipping_rates(self):
        assert shipping_cost_per_unit("CN", 0.5) == pytest.approx(0.4)
        assert shipping_cost_per_unit("MX", 2.0) == pytest.approx(0.8)
        assert shipping_cost_per_unit("XK", 0.5) == pytest.approx(0.5)


class TestTotalLandedCost:

    def test_components(self, app, three_origins):
        by_country = {c.country_code: c for c in compare_landed_costs("610910", base_mfn_rate=16.5).countries}

        china = by_country["CN"]
        assert china.shipping_cost == 0.4
        assert china.transit_days == 28
        assert china.fees.mpf == pytest.approx(0.03464)
        assert china.total_landed_cost == 16.6

        # 8,000 entry value is below the MPF floor
        vietnam = by_country["VN"]
        assert vietnam.fees.mpf == pytest.approx(MPF_MIN / 1000)
        assert vietnam.total_landed_cost == 11.41

        assert by_country["MX"].total_landed_cost == 11.49

    def test_duty_only_cost_drives_ranking(self, app, three_origins):
        comparison = compare_landed_costs("610910", base_mfn_rate=16.5)

        assert [c.country_code for c in comparison.countries] == ["VN", "MX", "CN"]
        assert comparison.countries[0].savings_vs_china == 5.23

    def test_small_entry_spreads_minimum_fee(self, app, three_origins):
        [line] = compare_landed_costs("610910", base_mfn_rate=16.5, include_countries=["VN"],
                                      quantity=10).countries

        assert line.fees.mpf == pytest.approx(2.775)
        assert line.fees.hmf == pytest.approx(0.01)
        assert line.total_landed_cost == pytest.approx(14.16, abs=0.01)

    def test_weight_scales_shipping(self, app, three_origins):
        [line] = compare_landed_costs("610910", include_countries=["CN"], weight_per_unit_kg=2).countries
        assert line.shipping_cost == 1.6

    def test_unknown_origin_uses_defaults(self, app, make_cost_row):
        make_cost_row("XK", 5.0, 50)
        [line] = compare_landed_costs("610910").countries

        assert line.shipping_cost == 0.5
        assert line.transit_days == 30

    @pytest.mark.parametrize("kwargs", [{"quantity": 0}, {"quantity": -5}, {"weight_per_unit_kg": -1}])
    def test_bad_quantity_or_weight(self, app, kwargs):
        with pytest.raises(ValueError):
            compare_landed_costs("610910", **kwargs)

    def test_as_dict(self, app, three_origins):
        data = compare_landed_costs("610910", quantity=500, weight_per_unit_kg=1).as_dict()

        assert data["quantity"] == 500
        assert data["weight_per_unit_kg"] == 1
        assert set(data["countries"][0]["fees"]) == {"mpf", "hmf", "total"}
        assert "total_landed_cost" in data["countries"][0]
