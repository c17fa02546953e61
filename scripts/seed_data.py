#!/usr/bin/env python
"""
Seed script to populate the database with a sample building for local development.

Usage:
    python scripts/seed_data.py
    python scripts/seed_data.py --no-levies
"""

import argparse

from strata.config import SessionLocal, init_db
from strata.seeds.sample_data import DEFAULT_ADMIN_PASSWORD, DEFAULT_USER_PASSWORD, seed_database


def main():
    parser = argparse.ArgumentParser(description="Seed the strata database with sample data.")
    parser.add_argument("--no-levies", action="store_true", help="Skip generating a sample levy batch")
    args = parser.parse_args()

    init_db()
    with SessionLocal() as session:
        counts = seed_database(session, with_levies=not args.no_levies)

    if not counts:
        print("Database already contains users; nothing seeded.")
        return
    summary = ", ".join(f"{count} {name.replace('_', ' ')}" for name, count in counts.items())
    print(f"Seed complete: {summary}.")
    print(f"Admin password: '{DEFAULT_ADMIN_PASSWORD}'. Other accounts: '{DEFAULT_USER_PASSWORD}'.")


if __name__ == "__main__":
    main()
