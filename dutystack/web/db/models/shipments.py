"""
SQLAlchemy models for historical import shipments and derived unit costs.

- ShipmentRecord: One raw import event (immutable, written by ingestion)
- HtsCostByCountry: Aggregated unit-cost statistics per (HTS-6, country),
  regenerated by services.cost_aggregation and never hand-edited
"""

from datetime import datetime
from typing import Optional, List, Dict, Any

from sqlalchemy import UniqueConstraint, Index, String, func
from dutystack.services.hts import HTS_SEPARATORS
from dutystack.web.db import db
from dutystack.web.db.models.base import BaseModel


class ShipmentRecord(BaseModel):
    """Historical import shipment (bill of lading level)."""
    __tablename__ = "shipment_records"
    __table_args__ = (
        Index("idx_shipment_hts_country", "hts_code", "shipper_country"),
    )

    id = db.Column(db.Integer, primary_key=True)
    shipper_country = db.Column(db.String(2), nullable=False, index=True)  # ISO-2 origin
    shipper_country_name = db.Column(db.String(128), nullable=True)
    hts_code = db.Column(db.String(16), nullable=False, index=True)  # As received, separators allowed
    product_description = db.Column(db.Text, nullable=True)
    unit_value = db.Column(db.Float, nullable=True)  # USD per unit
    quantity = db.Column(db.Float, nullable=True)
    declared_value = db.Column(db.Float, nullable=True)  # USD
    arrival_date = db.Column(db.DateTime, nullable=True)
    carrier = db.Column(db.String(128), nullable=True)
    port_of_lading = db.Column(db.String(128), nullable=True)
    port_of_unlading = db.Column(db.String(128), nullable=True)
    source = db.Column(db.String(64), nullable=True)  # "bol", "census", "synthetic"
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    @classmethod
    def normalized_hts_code(cls):
        """hts_code with the separators accepted by clean_hts_code stripped, as SQL."""
        expr = cls.hts_code
        for separator in HTS_SEPARATORS:
            expr = func.replace(expr, separator, "", type_=String)
        return expr

    @classmethod
    def find_priced_for_hts(cls, hts6: str) -> List["ShipmentRecord"]:
        """All shipments under an HTS-6 code with a positive unit value."""
        return cls.query.filter(
            cls.normalized_hts_code().startswith(hts6, autoescape=True),
            cls.unit_value.isnot(None),
            cls.unit_value > 0,
        ).order_by(cls.id).all()

    @classmethod
    def distinct_hts_codes(cls) -> List[str]:
        rows = db.session.query(cls.hts_code).distinct().all()
        return [row[0] for row in rows if row[0]]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "shipper_country": self.shipper_country,
            "shipper_country_name": self.shipper_country_name,
            "hts_code": self.hts_code,
            "product_description": self.product_description,
            "unit_value": self.unit_value,
            "quantity": self.quantity,
            "declared_value": self.declared_value,
            "arrival_date": self.arrival_date.isoformat() if self.arrival_date else None,
            "carrier": self.carrier,
            "port_of_lading": self.port_of_lading,
            "port_of_unlading": self.port_of_unlading,
            "source": self.source,
        }


class HtsCostByCountry(BaseModel):
    """
    Unit cost statistics per (HTS-6, country).

    Invariant: min_unit_value <= median_unit_value <= max_unit_value and
    avg_unit_value within [min, max] (statistics use the outlier-filtered set).
    """
    __tablename__ = "hts_cost_by_country"
    __table_args__ = (
        UniqueConstraint('hts_code', 'country_code', name='uq_hts_cost_country'),
    )

    id = db.Column(db.Integer, primary_key=True)
    hts_code = db.Column(db.String(6), nullable=False, index=True)
    country_code = db.Column(db.String(2), nullable=False, index=True)
    country_name = db.Column(db.String(128), nullable=False)

    avg_unit_value = db.Column(db.Float, nullable=False)
    median_unit_value = db.Column(db.Float, nullable=False)
    min_unit_value = db.Column(db.Float, nullable=False)
    max_unit_value = db.Column(db.Float, nullable=False)
    std_deviation = db.Column(db.Float, nullable=False, default=0)

    # Totals cover every shipment, including outliers
    shipment_count = db.Column(db.Integer, nullable=False, default=0)
    total_quantity = db.Column(db.Float, nullable=False, default=0)
    total_value = db.Column(db.Float, nullable=False, default=0)

    confidence_score = db.Column(db.Integer, nullable=False, default=0)  # 0-100
    oldest_shipment = db.Column(db.DateTime, nullable=True)
    newest_shipment = db.Column(db.DateTime, nullable=True)
    last_calculated = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    @classmethod
    def get_for(cls, hts_code: str, country_code: str) -> Optional["HtsCostByCountry"]:
        return cls.query.filter_by(hts_code=hts_code, country_code=country_code).first()

    @classmethod
    def for_hts(cls, hts6: str, min_confidence: Optional[float] = None) -> List["HtsCostByCountry"]:
        """Stored rows for an HTS-6 code, best-supported first."""
        query = cls.query.filter(cls.hts_code == hts6)
        if min_confidence is not None:
            query = query.filter(cls.confidence_score >= min_confidence)
        return query.order_by(cls.confidence_score.desc(), cls.country_code).all()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
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
            "last_calculated": self.last_calculated.isoformat() if self.last_calculated else None,
        }

    def __repr__(self):
        return f"<HtsCostByCountry {self.hts_code}/{self.country_code}>"
