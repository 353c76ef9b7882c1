from .base import BaseModel as Model
from .tariff_tables import (
    CountryTariffProfile,
    TariffProgram,
    HtsTariffOverride,
    TradeStatus,
    ProgramType,
    MatchType,
)
from .shipments import ShipmentRecord, HtsCostByCountry
