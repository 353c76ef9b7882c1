"""
DutyStack - duty stacking and cost aggregation core.

Two deterministic engines backed by the tariff catalog tables:
- Effective tariff calculator (FTA, IEEPA, Section 301/232, AD/CVD stacking)
- Shipment cost aggregator (outlier removal, statistics, confidence scoring)
"""

__version__ = "1.0.0"
