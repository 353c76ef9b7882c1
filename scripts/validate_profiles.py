#!/usr/bin/env python
"""
Validate Profiles - Check cached country total rates against their components.

Usage:
    # Report mismatches
    python scripts/validate_profiles.py

    # Persist recomputed totals for mismatched profiles
    python scripts/validate_profiles.py --fix
"""

import sys
import os
import logging

import click

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dutystack.services.profile_registry import validate_all_profiles
from dutystack.web import create_app

logger = logging.getLogger(__name__)


@click.command()
@click.option('--fix', is_flag=True, help='Persist recomputed totals')
@click.option('--tolerance', default=0.1, show_default=True, type=float,
              help='Allowed difference in percentage points')
def main(fix: bool, tolerance: float):
    """Report country profiles whose cached total_additional_rate has drifted."""
    app = create_app()

    with app.app_context():
        report = validate_all_profiles(tolerance=tolerance, fix=fix)

        click.echo(f"Valid profiles:   {report['valid']}")
        click.echo(f"Invalid profiles: {report['invalid']}")
        for issue in report["issues"]:
            click.echo(
                f"  {issue['country_code']}: stored {issue['stored']:g}%, "
                f"calculated {issue['calculated']:g}%"
            )

        if report["invalid"] and fix:
            logger.info(f"Fixed {report['invalid']} profile(s)")
        elif report["invalid"]:
            sys.exit(1)


if __name__ == '__main__':
    main()
