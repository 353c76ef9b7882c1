"""Tests for the cost store writer (upsert by hts_code + country_code)."""

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from dutystack.errors import StoreFailure
from dutystack.services.cost_aggregation import CostAggregationResult
from dutystack.services.cost_store import save_aggregated_costs, upsert_cost_row
from dutystack.web.db import db
from dutystack.web.db.models import HtsCostByCountry


def make_result(country_code="CN", avg=5.0, **kwargs):
    values = dict(
        hts_code="610910",
        country_code=country_code,
        country_name=country_code,
        avg_unit_value=avg,
        median_unit_value=avg,
        min_unit_value=avg,
        max_unit_value=avg,
        std_deviation=0.0,
        shipment_count=3,
        total_quantity=30,
        total_value=avg * 30,
        confidence_score=52,
        oldest_shipment=datetime(2025, 1, 1),
        newest_shipment=datetime(2025, 5, 1),
    )
    values.update(kwargs)
    return CostAggregationResult(**values)


class TestUpsertCostRow:

    def test_insert_then_update(self, app):
        assert upsert_cost_row(make_result()) is True
        db.session.commit()

        assert upsert_cost_row(make_result(avg=6.0, confidence_score=60)) is False
        db.session.commit()

        row = HtsCostByCountry.get_for("610910", "CN")
        assert HtsCostByCountry.query.count() == 1
        assert row.avg_unit_value == 6.0
        assert row.confidence_score == 60

    def test_last_calculated_refreshed(self, app):
        upsert_cost_row(make_result(), now=datetime(2025, 1, 1))
        db.session.commit()
        upsert_cost_row(make_result(), now=datetime(2025, 2, 1))
        db.session.commit()

        assert HtsCostByCountry.get_for("610910", "CN").last_calculated == datetime(2025, 2, 1)


class TestSaveAggregatedCosts:

    def test_counts(self, app):
        assert save_aggregated_costs([make_result("CN"), make_result("VN")]) == {
            "created": 2, "updated": 0,
        }
        assert save_aggregated_costs([make_result("CN"), make_result("IN")]) == {
            "created": 1, "updated": 1,
        }
        assert HtsCostByCountry.query.count() == 3

    def test_idempotent(self, app):
        results = [make_result("CN"), make_result("VN", avg=4.2)]
        save_aggregated_costs(results)
        before = {r.country_code: r.as_dict() for r in HtsCostByCountry.query.all()}

        assert save_aggregated_costs(results) == {"created": 0, "updated": 2}
        after = {r.country_code: r.as_dict() for r in HtsCostByCountry.query.all()}

        for data in list(before.values()) + list(after.values()):
            data.pop("last_calculated")
        assert before == after

    def test_write_failure_wrapped(self, app, monkeypatch):
        def failing_commit():
            raise OperationalError("UPDATE hts_cost_by_country", {}, Exception("database is locked"))

        monkeypatch.setattr(db.session, "commit", failing_commit)

        with pytest.raises(StoreFailure) as exc_info:
            save_aggregated_costs([make_result("CN")])

        assert exc_info.value.hts_code == "610910"
        monkeypatch.undo()
        assert HtsCostByCountry.query.count() == 0
