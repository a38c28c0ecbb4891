#!/usr/bin/env python3
"""Print storage usage and headline figures of the stored invoice snapshot.

Usage:
    PYTHONPATH=. python scripts/storage_report.py [--purge] [--details]

``--purge`` removes invoices whose client or number is an extraction
diagnostic before reporting. ``--details`` adds the customer table and the
monthly competitor amounts.
"""
import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from reconquest.config import configure_logging, load_settings
from reconquest.engine import build_engine


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--purge", action="store_true", help="purge extraction failures first")
    parser.add_argument("--details", action="store_true", help="print customer and monthly tables")
    args = parser.parse_args(argv)

    settings = load_settings()
    configure_logging(settings.log_level)

    with build_engine(settings) as engine:
        if args.purge:
            removed = engine.purge_extraction_failures()
            print(f"Purged {removed} invoice(s).")
        info = engine.get_storage_info()
        stats = engine.get_dashboard_stats()

        print(f"Invoices          : {info.total_invoices} ({info.item_count} in snapshot)")
        print(f"Snapshot size     : {info.formatted_size} ({info.usage_ratio:.1%} of budget)")
        if info.near_limit:
            print("                    near the storage limit")
        print(f"Last saved        : {info.last_saved or '-'}")
        print(f"Clients identified: {stats.clients_identified.value:.0f}")
        print(f"Business potential: {stats.business_potential.value:,.2f} EUR")
        print(f"Competitor brands : {engine.get_competitor_brands_count()}")
        for share in engine.get_competitor_share():
            print(f"  {share.name:<12} {share.amount:>12,.2f} EUR  {share.percentage:>3d}%")

        if args.details:
            customers = engine.customer_profiles_frame()
            print("\nCustomers by competitor amount:")
            print(customers.head(20).to_string(index=False) if not customers.empty else "  (none)")
            monthly = engine.monthly_competitor_amounts()
            print("\nCompetitor amount per month:")
            print(monthly.to_string(index=False) if not monthly.empty else "  (none)")


if __name__ == "__main__":
    main()
