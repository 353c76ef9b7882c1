"""
HTS Cost Aggregation Engine

Turns historical import shipments into per-country unit cost estimates for
an HTS-6 subheading:

1. NORMALIZE - HTS code to 6 digits
2. FETCH - Shipments under the subheading with a positive unit value
3. GROUP - By origin country
4. PER COUNTRY:
   a. IQR outlier removal (only with 4+ values)
   b. avg / median / population std dev / min / max on the cleaned values
   c. Quantity and value totals on ALL shipments (trade volume, not pricing)
   d. Oldest / newest arrival dates
   e. Confidence score 0-100 (volume + quantity + recency + consistency)
5. SORT - Confidence descending

The batch driver aggregates every subheading present in the shipment table,
each in its own unit of work so one failing code never aborts the run.
"""

import logging
import math
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any, Sequence

from sqlalchemy.exc import SQLAlchemyError

from dutystack.errors import DutyStackError, InvalidHtsCodeError, StoreFailure
from dutystack.logging_utils import structured_log
from dutystack.services.cost_store import save_aggregated_costs
from dutystack.services.hts import to_hts6
from dutystack.web.db import db
from dutystack.web.db.models.shipments import ShipmentRecord

logger = logging.getLogger(__name__)

MIN_VALUES_FOR_OUTLIER_REMOVAL = 4
IQR_MULTIPLIER = 1.5

COUNTRY_NAMES = {
    'CN': 'China', 'VN': 'Vietnam', 'IN': 'India', 'MX': 'Mexico',
    'TH': 'Thailand', 'ID': 'Indonesia', 'BD': 'Bangladesh', 'TR': 'Turkey',
    'TW': 'Taiwan', 'KR': 'South Korea', 'JP': 'Japan', 'DE': 'Germany',
    'IT': 'Italy', 'PL': 'Poland', 'GB': 'United Kingdom', 'MY': 'Malaysia',
    'PH': 'Philippines', 'PK': 'Pakistan', 'KH': 'Cambodia', 'EG': 'Egypt',
    'BR': 'Brazil', 'CA': 'Canada', 'FR': 'France', 'ES': 'Spain',
}


# =============================================================================
# Result Data Classes
# =============================================================================

@dataclass
class CostAggregationResult:
    """Aggregated unit cost statistics for one (HTS-6, country) pair."""
    hts_code: str
    country_code: str
    country_name: str
    avg_unit_value: float
    median_unit_value: float
    min_unit_value: float
    max_unit_value: float
    std_deviation: float
    shipment_count: int
    total_quantity: float
    total_value: float
    confidence_score: int
    oldest_shipment: Optional[datetime] = None
    newest_shipment: Optional[datetime] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "hts_code": self.hts_code,
            "country_code": self.country_code,
            "country_name": self.country_name,
            "avg_unit_value": self.avg_unit_value,
            "median_unit_value": self.median_unit_value,
            "min_unit_value": self.min_unit_value,
            "max_unit_value": self.max_unit_value,
            "std_deviation": self.std_deviation,
            "shipment_count": self.shipment_count,
            "total_quantity": self.total_quantity,
            "total_value": self.total_value,
            "confidence_score": self.confidence_score,
            "oldest_shipment": self.oldest_shipment.isoformat() if self.oldest_shipment else None,
            "newest_shipment": self.newest_shipment.isoformat() if self.newest_shipment else None,
        }


@dataclass
class AggregationStats:
    """Outcome of a full aggregation run."""
    hts_codes_processed: int = 0
    countries_processed: int = 0
    created: int = 0
    updated: int = 0
    duration_ms: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "hts_codes_processed": self.hts_codes_processed,
            "countries_processed": self.countries_processed,
            "created": self.created,
            "updated": self.updated,
            "duration_ms": self.duration_ms,
            "errors": list(self.errors),
        }


# =============================================================================
# Statistical Functions
# =============================================================================

def round2(value: float) -> float:
    """Round half up to 2 decimals."""
    return math.floor(value * 100 + 0.5) / 100


def calculate_median(values: Sequence[float]) -> float:
    """Median, interpolating the two middle values for even counts."""
    if not values:
        return 0.0

    ordered = sorted(values)
    mid = len(ordered) // 2

    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def calculate_std_dev(values: Sequence[float], mean: float) -> float:
    """Population standard deviation (divides by n)."""
    if len(values) < 2:
        return 0.0

    square_diffs = sum((value - mean) ** 2 for value in values)
    return math.sqrt(square_diffs / len(values))


def remove_outliers(values: Sequence[float]) -> List[float]:
    """
    Drop values outside [q1 - 1.5*IQR, q3 + 1.5*IQR].

    Quartiles are taken by index (floor(0.25n), floor(0.75n)) on the sorted
    values. With fewer than 4 values nothing is removed. Input order is kept.

    Example:
        remove_outliers([1, 2, 2, 3, 3, 3, 4, 4, 100])
        # q1=2, q3=4, iqr=2, bounds [-1, 7] -> [1, 2, 2, 3, 3, 3, 4, 4]
    """
    if len(values) < MIN_VALUES_FOR_OUTLIER_REMOVAL:
        return list(values)

    ordered = sorted(values)
    q1 = ordered[math.floor(len(ordered) * 0.25)]
    q3 = ordered[math.floor(len(ordered) * 0.75)]
    iqr = q3 - q1

    lower_bound = q1 - IQR_MULTIPLIER * iqr
    upper_bound = q3 + IQR_MULTIPLIER * iqr

    return [value for value in values if lower_bound <= value <= upper_bound]


# =============================================================================
# Confidence Scoring
# =============================================================================

def volume_points(shipment_count: int) -> int:
    return min(40, shipment_count * 2)


def quantity_points(total_quantity: float) -> int:
    if total_quantity >= 10000:
        return 20
    if total_quantity >= 1000:
        return 15
    if total_quantity >= 100:
        return 10
    return 5


def recency_points(newest_shipment: Optional[datetime], as_of: datetime) -> int:
    if newest_shipment is None:
        return 0

    days_since = (as_of - newest_shipment).total_seconds() / 86400
    if days_since < 90:
        return 25
    if days_since < 180:
        return 20
    if days_since < 365:
        return 10
    return 5


def consistency_points(std_deviation: float, avg_value: float) -> int:
    if avg_value <= 0:
        return 0

    cv = std_deviation / avg_value  # Coefficient of variation
    if cv < 0.2:
        return 15
    if cv < 0.4:
        return 10
    if cv < 0.6:
        return 5
    return 0


def calculate_confidence_score(
    shipment_count: int,
    total_quantity: float,
    newest_shipment: Optional[datetime],
    std_deviation: float,
    avg_value: float,
    as_of: Optional[datetime] = None,
) -> int:
    """
    Score data quality 0-100.

    Components (each capped independently):
    - Volume: up to 40 (2 per shipment)
    - Quantity: 5 / 10 / 15 / 20 by total units
    - Recency: 25 / 20 / 10 / 5 by days since newest shipment, 0 if undated
    - Consistency: 15 / 10 / 5 / 0 by coefficient of variation
    """
    as_of = as_of or datetime.utcnow()

    score = (
        volume_points(shipment_count)
        + quantity_points(total_quantity)
        + recency_points(newest_shipment, as_of)
        + consistency_points(std_deviation, avg_value)
    )
    return min(100, score)


# =============================================================================
# Aggregation
# =============================================================================

def get_country_name(country_code: str, shipments: Sequence[ShipmentRecord] = ()) -> str:
    for shipment in shipments:
        if shipment.shipper_country_name:
            return shipment.shipper_country_name
    return COUNTRY_NAMES.get(country_code, country_code)


def summarize_country(
    hts6: str,
    country_code: str,
    shipments: Sequence[ShipmentRecord],
    as_of: datetime,
) -> Optional[CostAggregationResult]:
    """
    Compute statistics for one country's shipments.

    Returns None when no usable unit value survives outlier removal.
    """
    unit_values = [s.unit_value for s in shipments if s.unit_value is not None and s.unit_value > 0]
    if not unit_values:
        return None

    cleaned = remove_outliers(unit_values)
    if not cleaned:
        return None

    avg = sum(cleaned) / len(cleaned)
    median = calculate_median(cleaned)
    std_dev = calculate_std_dev(cleaned, avg)

    # Totals reflect all trade volume, outliers included
    total_quantity = sum(s.quantity or 0 for s in shipments)
    total_value = sum(s.declared_value or 0 for s in shipments)

    dates = sorted(s.arrival_date for s in shipments if s.arrival_date is not None)
    oldest = dates[0] if dates else None
    newest = dates[-1] if dates else None

    confidence = calculate_confidence_score(
        len(shipments),
        total_quantity,
        newest,
        std_dev,
        avg,
        as_of=as_of,
    )

    return CostAggregationResult(
        hts_code=hts6,
        country_code=country_code,
        country_name=get_country_name(country_code, shipments),
        avg_unit_value=round2(avg),
        median_unit_value=round2(median),
        min_unit_value=round2(min(cleaned)),
        max_unit_value=round2(max(cleaned)),
        std_deviation=round2(std_dev),
        shipment_count=len(shipments),
        total_quantity=total_quantity,
        total_value=total_value,
        confidence_score=confidence,
        oldest_shipment=oldest,
        newest_shipment=newest,
    )


def aggregate_hts_costs(
    hts_code: str,
    as_of: Optional[datetime] = None,
) -> List[CostAggregationResult]:
    """
    Aggregate unit costs for an HTS code across all origin countries.

    Args:
        hts_code: HTS code with at least 6 digits (separators allowed)
        as_of: Reference time for recency scoring (defaults to now, UTC)

    Returns:
        One CostAggregationResult per country, highest confidence first.
        Empty list when no priced shipments exist.

    Raises:
        InvalidHtsCodeError: If the code is malformed or shorter than 6 digits
        StoreFailure: If the shipment query fails
    """
    hts6 = to_hts6(hts_code)
    as_of = as_of or datetime.utcnow()

    try:
        shipments = ShipmentRecord.find_priced_for_hts(hts6)
    except SQLAlchemyError as e:
        raise StoreFailure(hts6, str(e)) from e

    if not shipments:
        return []

    by_country: "OrderedDict[str, List[ShipmentRecord]]" = OrderedDict()
    for shipment in shipments:
        by_country.setdefault(shipment.shipper_country, []).append(shipment)

    results = []
    for country_code, country_shipments in by_country.items():
        summary = summarize_country(hts6, country_code, country_shipments, as_of)
        if summary is not None:
            results.append(summary)

    # Best-supported estimates first (stable for ties)
    results.sort(key=lambda r: r.confidence_score, reverse=True)

    return results


def distinct_hts6_codes() -> List[str]:
    """Distinct 6-digit subheadings present in the shipment table, sorted."""
    codes = set()
    for hts_code in ShipmentRecord.distinct_hts_codes():
        try:
            codes.add(to_hts6(hts_code))
        except InvalidHtsCodeError:
            # Kept as-is so the batch run reports it as a failed code
            logger.warning(f"Malformed HTS code in shipment table: {hts_code!r}")
            codes.add(hts_code)
    return sorted(codes)


def aggregate_all_hts_costs(as_of: Optional[datetime] = None) -> AggregationStats:
    """
    Aggregate and persist costs for every HTS-6 code in the shipment table.

    Each code is aggregated and upserted in its own transaction. A failure is
    rolled back, recorded in stats.errors and the run continues.
    """
    start_time = time.monotonic()
    as_of = as_of or datetime.utcnow()
    stats = AggregationStats()
    countries = set()

    hts_codes = distinct_hts6_codes()
    structured_log("INFO", "aggregation_started", hts_codes=len(hts_codes))

    for hts6 in hts_codes:
        stats.hts_codes_processed += 1
        try:
            results = aggregate_hts_costs(hts6, as_of=as_of)
            if results:
                counts = save_aggregated_costs(results)
                stats.created += counts["created"]
                stats.updated += counts["updated"]
            countries.update(r.country_code for r in results)
            structured_log("DEBUG", "hts_aggregated", hts_code=hts6, countries=len(results))
        except (DutyStackError, SQLAlchemyError) as e:
            db.session.rollback()
            stats.errors.append({"hts_code": hts6, "error": str(e)})
            structured_log("ERROR", "hts_aggregation_failed", hts_code=hts6, error=str(e))

    stats.countries_processed = len(countries)
    stats.duration_ms = int((time.monotonic() - start_time) * 1000)

    structured_log("INFO", "aggregation_complete", **stats.as_dict())
    return stats
