#!/usr/bin/env python
"""
Aggregate Costs - Rebuild hts_cost_by_country from shipment records.

Runs as a standalone process (not inside Flask web). Safe to re-run: rows
are upserted by (hts_code, country_code).

Usage:
    # Aggregate every HTS-6 code in the shipment table
    python scripts/aggregate_costs.py

    # Aggregate one code and print the results without saving
    python scripts/aggregate_costs.py --hts 6109.10 --dry-run

Scheduling:
    # Nightly via cron
    0 3 * * * cd /path/to/dutystack && python scripts/aggregate_costs.py
"""

import sys
import os
import json
import logging

import click

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dutystack.errors import DutyStackError
from dutystack.services.cost_aggregation import aggregate_hts_costs, aggregate_all_hts_costs
from dutystack.services.cost_store import save_aggregated_costs
from dutystack.web import create_app

logger = logging.getLogger(__name__)


@click.command()
@click.option('--hts', 'hts_code', default=None,
              help='Aggregate a single HTS code (6+ digits). Default: all codes')
@click.option('--dry-run', is_flag=True,
              help='Print aggregated statistics without saving (requires --hts)')
def main(hts_code: str, dry_run: bool):
    """Aggregate shipment unit values into per-country cost statistics."""
    if dry_run and not hts_code:
        raise click.UsageError("--dry-run requires --hts")

    app = create_app()

    with app.app_context():
        logger.info("=" * 60)
        logger.info("COST AGGREGATION RUN")
        logger.info("=" * 60)

        if not hts_code:
            stats = aggregate_all_hts_costs()
            click.echo(json.dumps(stats.as_dict(), indent=2))
            if stats.errors:
                logger.warning(f"{len(stats.errors)} HTS code(s) failed")
                sys.exit(1)
            return

        try:
            results = aggregate_hts_costs(hts_code)
        except DutyStackError as e:
            raise click.ClickException(str(e))

        for result in results:
            click.echo(
                f"{result.country_code:<4} {result.country_name:<24} "
                f"avg ${result.avg_unit_value:>10.2f}  median ${result.median_unit_value:>10.2f}  "
                f"n={result.shipment_count:<5} confidence={result.confidence_score}"
            )

        if not results:
            logger.info(f"No priced shipments for HTS {hts_code}")
            return

        if dry_run:
            logger.info("Dry run - nothing saved")
            return

        try:
            counts = save_aggregated_costs(results)
        except DutyStackError as e:
            raise click.ClickException(str(e))
        logger.info(f"Saved: {counts['created']} created, {counts['updated']} updated")


if __name__ == '__main__':
    main()
