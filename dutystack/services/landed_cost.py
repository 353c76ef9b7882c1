"""
Landed Cost Comparison

Combines stored unit-cost statistics (hts_cost_by_country) with the effective
tariff per origin country. Every figure is per unit.

    landed_cost       = avg_unit_value * (1 + effective_rate / 100)
    total_landed_cost = landed_cost + shipping_cost + fees.total

Shipping is a per-kg ocean/land estimate to the US West Coast. Fees are the
Merchandise Processing Fee (clamped per entry) and the Harbor Maintenance Fee,
computed on the whole shipment value and spread over its quantity. Countries
are ranked and compared on landed_cost.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Iterable

from flask import current_app, has_app_context

from dutystack.services.cost_aggregation import round2
from dutystack.services.hts import to_hts6
from dutystack.services.tariff_calculator import TariffCalculator, get_tariff_calculator
from dutystack.web.db.models.shipments import HtsCostByCountry

logger = logging.getLogger(__name__)

DEFAULT_MIN_CONFIDENCE = 20
DEFAULT_QUANTITY = 1000
DEFAULT_WEIGHT_PER_UNIT_KG = 0.5
CHINA = "CN"

# Merchandise Processing Fee: 0.3464% of entry value, min $27.75, max $538.40
MPF_RATE = 0.003464
MPF_MIN = 27.75
MPF_MAX = 538.40

# Harbor Maintenance Fee: 0.125% of entry value (ocean shipments)
HMF_RATE = 0.00125

# USD per kg to the US West Coast
SHIPPING_COST_PER_KG = {
    'CN': 0.80, 'VN': 0.90, 'IN': 1.10, 'BD': 1.20, 'TH': 0.95, 'ID': 1.00,
    'MY': 0.90, 'PH': 0.95, 'TW': 0.85, 'KR': 0.80, 'JP': 0.75,
    'MX': 0.40,  # Land/rail
    'CA': 0.35,
    'DE': 1.20, 'IT': 1.25, 'TR': 1.10,
}
DEFAULT_SHIPPING_COST_PER_KG = 1.00

TRANSIT_DAYS = {
    'CN': 28, 'VN': 30, 'IN': 35, 'BD': 38, 'TH': 32, 'ID': 35, 'MY': 30,
    'PH': 28, 'TW': 22, 'KR': 20, 'JP': 18, 'MX': 5, 'CA': 3, 'DE': 18,
    'IT': 20, 'TR': 22,
}
DEFAULT_TRANSIT_DAYS = 30


def data_quality_tier(confidence_score: float) -> str:
    if confidence_score >= 70:
        return "high"
    if confidence_score >= 40:
        return "medium"
    return "low"


@dataclass
class CustomsFees:
    mpf: float = 0.0
    hmf: float = 0.0

    @property
    def total(self) -> float:
        return self.mpf + self.hmf

    def per_unit(self, quantity: float) -> "CustomsFees":
        return CustomsFees(mpf=self.mpf / quantity, hmf=self.hmf / quantity)

    def as_dict(self) -> Dict[str, float]:
        return {
            "mpf": self.mpf,
            "hmf": self.hmf,
            "total": self.total,
        }


def calculate_fees(shipment_value: float) -> CustomsFees:
    """MPF (clamped to [MPF_MIN, MPF_MAX]) and HMF for one entry."""
    mpf = max(MPF_MIN, min(MPF_MAX, shipment_value * MPF_RATE))
    return CustomsFees(mpf=mpf, hmf=shipment_value * HMF_RATE)


def shipping_cost_per_unit(country_code: str, weight_per_unit_kg: float) -> float:
    return SHIPPING_COST_PER_KG.get(country_code, DEFAULT_SHIPPING_COST_PER_KG) * weight_per_unit_kg


@dataclass
class LandedCostLine:
    """Landed cost of one unit from one origin country."""
    country_code: str
    country_name: str
    avg_unit_value: float
    effective_rate: float
    tariff_amount: float
    landed_cost: float
    shipping_cost: float
    transit_days: int
    fees: CustomsFees
    total_landed_cost: float
    confidence_score: int
    data_quality: str
    shipment_count: int
    warnings: List[str] = field(default_factory=list)
    savings_vs_china: Optional[float] = None
    savings_percent: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "country_code": self.country_code,
            "country_name": self.country_name,
            "avg_unit_value": self.avg_unit_value,
            "effective_rate": self.effective_rate,
            "tariff_amount": self.tariff_amount,
            "landed_cost": self.landed_cost,
            "shipping_cost": self.shipping_cost,
            "transit_days": self.transit_days,
            "fees": self.fees.as_dict(),
            "total_landed_cost": self.total_landed_cost,
            "confidence_score": self.confidence_score,
            "data_quality": self.data_quality,
            "shipment_count": self.shipment_count,
            "warnings": list(self.warnings),
            "savings_vs_china": self.savings_vs_china,
            "savings_percent": self.savings_percent,
        }


@dataclass
class LandedCostComparison:
    hts_code: str
    base_mfn_rate: float
    quantity: float = DEFAULT_QUANTITY
    weight_per_unit_kg: float = DEFAULT_WEIGHT_PER_UNIT_KG
    countries: List[LandedCostLine] = field(default_factory=list)

    @property
    def cheapest_country(self) -> Optional[str]:
        return self.countries[0].country_code if self.countries else None

    @property
    def most_expensive_country(self) -> Optional[str]:
        return self.countries[-1].country_code if self.countries else None

    @property
    def average_cost(self) -> float:
        if not self.countries:
            return 0.0
        return round2(sum(c.landed_cost for c in self.countries) / len(self.countries))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "hts_code": self.hts_code,
            "base_mfn_rate": self.base_mfn_rate,
            "quantity": self.quantity,
            "weight_per_unit_kg": self.weight_per_unit_kg,
            "countries": [c.as_dict() for c in self.countries],
            "cheapest_country": self.cheapest_country,
            "most_expensive_country": self.most_expensive_country,
            "average_cost": self.average_cost,
        }


def get_hts_cost_data(hts_code: str) -> List[HtsCostByCountry]:
    """Stored cost rows for an HTS code (any length >= 6), best-supported first."""
    return HtsCostByCountry.for_hts(to_hts6(hts_code))


def _default_min_confidence() -> float:
    if has_app_context():
        return float(current_app.config.get("COST_MIN_CONFIDENCE", DEFAULT_MIN_CONFIDENCE))
    return DEFAULT_MIN_CONFIDENCE


def _normalize_codes(codes: Optional[Iterable[str]]) -> Optional[set]:
    if not codes:
        return None
    return {code.strip().upper() for code in codes if code and code.strip()}


def compare_landed_costs(
    hts_code: str,
    base_mfn_rate: float = 0.0,
    min_confidence: Optional[float] = None,
    include_countries: Optional[Iterable[str]] = None,
    exclude_countries: Optional[Iterable[str]] = None,
    quantity: float = DEFAULT_QUANTITY,
    weight_per_unit_kg: float = DEFAULT_WEIGHT_PER_UNIT_KG,
    calculator: Optional[TariffCalculator] = None,
) -> LandedCostComparison:
    """
    Compare per-unit landed cost across every origin with stored cost data.

    Args:
        hts_code: HTS code, at least 6 digits
        base_mfn_rate: Base MFN rate in percent applied to every origin
        min_confidence: Skip rows below this confidence (defaults to COST_MIN_CONFIDENCE)
        include_countries: Only these origins (takes precedence over exclude)
        exclude_countries: Skip these origins
        quantity: Units per entry, used to spread MPF/HMF per unit
        weight_per_unit_kg: Shipping weight per unit
        calculator: TariffCalculator to use (defaults to the shared instance)

    Returns:
        LandedCostComparison with countries sorted cheapest first

    Raises:
        InvalidHtsCodeError: If hts_code has fewer than 6 digits
        ValueError: If quantity is not positive or weight is negative
    """
    hts6 = to_hts6(hts_code)
    if quantity <= 0:
        raise ValueError(f"quantity must be positive, got {quantity}")
    if weight_per_unit_kg < 0:
        raise ValueError(f"weight_per_unit_kg must not be negative, got {weight_per_unit_kg}")
    calculator = calculator or get_tariff_calculator()
    if min_confidence is None:
        min_confidence = _default_min_confidence()

    include = _normalize_codes(include_countries)
    exclude = _normalize_codes(exclude_countries)

    comparison = LandedCostComparison(
        hts_code=hts6,
        base_mfn_rate=float(base_mfn_rate or 0.0),
        quantity=quantity,
        weight_per_unit_kg=weight_per_unit_kg,
    )

    for row in HtsCostByCountry.for_hts(hts6, min_confidence=min_confidence):
        if include is not None:
            if row.country_code not in include:
                continue
        elif exclude is not None and row.country_code in exclude:
            continue

        tariff = calculator.compute(
            row.country_code,
            hts_code,
            base_mfn_rate=comparison.base_mfn_rate,
        )
        tariff_amount = row.avg_unit_value * tariff.effective_rate / 100
        landed = row.avg_unit_value + tariff_amount
        shipping = shipping_cost_per_unit(row.country_code, weight_per_unit_kg)
        fees = calculate_fees(row.avg_unit_value * quantity).per_unit(quantity)

        comparison.countries.append(LandedCostLine(
            country_code=row.country_code,
            country_name=row.country_name,
            avg_unit_value=row.avg_unit_value,
            effective_rate=tariff.effective_rate,
            tariff_amount=round2(tariff_amount),
            landed_cost=round2(landed),
            shipping_cost=round2(shipping),
            transit_days=TRANSIT_DAYS.get(row.country_code, DEFAULT_TRANSIT_DAYS),
            fees=fees,
            total_landed_cost=round2(landed + shipping + fees.total),
            confidence_score=row.confidence_score,
            data_quality=data_quality_tier(row.confidence_score),
            shipment_count=row.shipment_count,
            warnings=list(tariff.warnings),
        ))

    comparison.countries.sort(key=lambda c: c.landed_cost)

    china = next((c for c in comparison.countries if c.country_code == CHINA), None)
    if china and china.landed_cost > 0:
        for line in comparison.countries:
            if line.country_code == CHINA:
                continue
            line.savings_vs_china = round2(china.landed_cost - line.landed_cost)
            line.savings_percent = math.floor(line.savings_vs_china / china.landed_cost * 100 + 0.5)

    logger.info(
        f"Landed cost comparison for {hts6}: {len(comparison.countries)} countries, "
        f"cheapest {comparison.cheapest_country}"
    )
    return comparison
