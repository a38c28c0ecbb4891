#!/usr/bin/env python3
"""Replace the stored invoice snapshot with the demonstration dataset.

Usage:
    PYTHONPATH=. python scripts/load_demo_data.py [--count 50] [--seed 42]

Writes through the configured storage backend (config.yaml, DATABASE_URL,
REDIS_URL), so the next engine start restores the demo invoices.
"""
import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from reconquest.config import configure_logging, load_settings
from reconquest.data.demo_data import generate_demo_invoices
from reconquest.engine import build_engine


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--count", type=int, default=None, help="number of invoices")
    parser.add_argument("--seed", type=int, default=None, help="random seed")
    args = parser.parse_args(argv)

    settings = load_settings()
    configure_logging(settings.log_level)
    count = args.count or settings.demo_invoice_count
    seed = args.seed if args.seed is not None else settings.demo_seed

    with build_engine(settings) as engine:
        engine.set_invoices(generate_demo_invoices(count, seed=seed))
        info = engine.get_storage_info()

    print(f"Demo data loaded: {info.item_count} invoices, {info.formatted_size}.")
    if info.evicted_count:
        print(f"Warning: {info.evicted_count} invoices did not fit the storage budget.")


if __name__ == "__main__":
    main()
