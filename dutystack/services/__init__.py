"""
Duty Stacking Services

Note: Imports are lazy to avoid circular imports with the Flask models.
Use explicit imports from submodules when needed:
    from dutystack.services.tariff_calculator import compute_effective_tariff
    from dutystack.services.cost_aggregation import aggregate_all_hts_costs
    from dutystack.services.landed_cost import compare_landed_costs
"""


def __getattr__(name):
    """Lazy import to avoid circular imports."""
    if name in ('TariffCalculator', 'EffectiveTariffResult', 'compute_effective_tariff',
                'get_tariff_calculator'):
        from dutystack.services.tariff_calculator import (
            TariffCalculator, EffectiveTariffResult, compute_effective_tariff,
            get_tariff_calculator
        )
        mapping = {
            'TariffCalculator': TariffCalculator,
            'EffectiveTariffResult': EffectiveTariffResult,
            'compute_effective_tariff': compute_effective_tariff,
            'get_tariff_calculator': get_tariff_calculator,
        }
        return mapping[name]

    if name == 'resolve_override':
        from dutystack.services.override_resolver import resolve_override
        return resolve_override

    if name in ('Section232Catalog', 'classify_section_232'):
        from dutystack.services.section232 import Section232Catalog, classify_section_232
        return Section232Catalog if name == 'Section232Catalog' else classify_section_232

    if name in ('aggregate_hts_costs', 'aggregate_all_hts_costs', 'AggregationStats'):
        from dutystack.services.cost_aggregation import (
            aggregate_hts_costs, aggregate_all_hts_costs, AggregationStats
        )
        mapping = {
            'aggregate_hts_costs': aggregate_hts_costs,
            'aggregate_all_hts_costs': aggregate_all_hts_costs,
            'AggregationStats': AggregationStats,
        }
        return mapping[name]

    if name == 'save_aggregated_costs':
        from dutystack.services.cost_store import save_aggregated_costs
        return save_aggregated_costs

    if name in ('get_hts_cost_data', 'compare_landed_costs'):
        from dutystack.services.landed_cost import get_hts_cost_data, compare_landed_costs
        return get_hts_cost_data if name == 'get_hts_cost_data' else compare_landed_costs

    raise AttributeError(f"module 'dutystack.services' has no attribute '{name}'")
