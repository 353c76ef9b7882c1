"""
HTS Override Resolver

Finds the most specific product-level override for a country profile:
    exact match > longest prefix match > chapter match > None

A None result means the caller falls back to the program default rate.
"""

import logging
from typing import Optional, Union

from dutystack.services.hts import clean_hts_code
from dutystack.web.db.models.tariff_tables import HtsTariffOverride, ProgramType

logger = logging.getLogger(__name__)


def resolve_override(
    country_profile_id: int,
    hts_code: str,
    override_type: Union[ProgramType, str],
) -> Optional[HtsTariffOverride]:
    """
    Resolve the override for a product.

    Args:
        country_profile_id: CountryTariffProfile.id
        hts_code: HTS code with or without separators
        override_type: Program category, e.g. ProgramType.SECTION_301

    Returns:
        HtsTariffOverride if any active override matches, None otherwise

    Raises:
        InvalidHtsCodeError: If hts_code is empty or not numeric
    """
    clean = clean_hts_code(hts_code)
    type_value = override_type.value if isinstance(override_type, ProgramType) else override_type

    override = HtsTariffOverride.get_override(country_profile_id, clean, type_value)

    if override:
        logger.debug(
            f"Override for profile={country_profile_id} hts={clean} type={type_value}: "
            f"{override.match_type}:{override.hts_code} rate={override.rate}"
        )
    else:
        logger.debug(f"No override for profile={country_profile_id} hts={clean} type={type_value}")

    return override
