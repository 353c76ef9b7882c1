"""
Cost Store Writer

Upserts aggregated cost statistics into hts_cost_by_country keyed by
(hts_code, country_code). Re-running with identical shipment data rewrites
identical statistics; only last_calculated moves.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, Optional, TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from dutystack.errors import StoreFailure
from dutystack.web.db import db
from dutystack.web.db.models.shipments import HtsCostByCountry

if TYPE_CHECKING:
    from dutystack.services.cost_aggregation import CostAggregationResult

logger = logging.getLogger(__name__)

# Columns copied from CostAggregationResult on every write
STAT_FIELDS = (
    "country_name",
    "avg_unit_value",
    "median_unit_value",
    "min_unit_value",
    "max_unit_value",
    "std_deviation",
    "shipment_count",
    "total_quantity",
    "total_value",
    "confidence_score",
    "oldest_shipment",
    "newest_shipment",
)


def upsert_cost_row(result: "CostAggregationResult", now: Optional[datetime] = None) -> bool:
    """
    Insert or update one cost row. Does not commit.

    Returns:
        True if a row was created, False if an existing row was updated
    """
    now = now or datetime.utcnow()
    values = {name: getattr(result, name) for name in STAT_FIELDS}

    existing = HtsCostByCountry.get_for(result.hts_code, result.country_code)
    if existing:
        for name, value in values.items():
            setattr(existing, name, value)
        existing.last_calculated = now
        return False

    db.session.add(HtsCostByCountry(
        hts_code=result.hts_code,
        country_code=result.country_code,
        last_calculated=now,
        **values,
    ))
    return True


def save_aggregated_costs(results: Iterable["CostAggregationResult"]) -> Dict[str, int]:
    """
    Upsert a batch of aggregation results in one transaction.

    Returns:
        {"created": n, "updated": m}

    Raises:
        StoreFailure: If the write fails (the transaction is rolled back)
    """
    created = 0
    updated = 0
    hts_code = None
    now = datetime.utcnow()

    try:
        for result in results:
            hts_code = result.hts_code
            if upsert_cost_row(result, now=now):
                created += 1
            else:
                updated += 1
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to save cost rows for HTS {hts_code}: {e}")
        raise StoreFailure(hts_code or "", str(e)) from e

    logger.info(f"Saved cost rows for HTS {hts_code}: {created} created, {updated} updated")
    return {"created": created, "updated": updated}
