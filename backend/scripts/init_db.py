#!/usr/bin/env python3
"""
Initialize the ride tracking database.

Usage:
    python -m backend.scripts.init_db [--seed]

This script:
1. Checks the database connection
2. Creates the tables if they do not exist
3. Optionally seeds a demo route, bus and today's rides
"""

import argparse
import sys

from sqlalchemy import inspect

from backend.config import config
from backend.db import database


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Ride tracking database initialization")
    parser.add_argument("--seed", action="store_true", help="Insert demo route, bus and rides for today")
    args = parser.parse_args(argv)

    print("=" * 60)
    print("Ride Tracking Database Initialization")
    print("=" * 60)
    print(f"\nDatabase URL: {config.DATABASE_URL.split('@')[-1]}")

    print("\nInitializing database connection...")
    engine = database.init_engine()
    if engine is None:
        print("\nFailed to connect to database!")
        print("  Check DATABASE_URL and that the server is running.")
        return 1
    print("Database connection successful!")

    print("\nCreating tables...")
    try:
        database.create_tables()
    except Exception as e:
        print(f"Error creating tables: {e}")
        return 1

    print("\nAvailable tables:")
    for table_name in inspect(engine).get_table_names():
        print(f"   - {table_name}")

    if args.seed:
        from backend.create_mock_data import seed_demo_data

        session = database.SessionLocal()
        try:
            summary = seed_demo_data(session)
        finally:
            session.close()
        print(f"\nSeeded route {summary['route_id']}, bus {summary['bus_id']}, "
              f"{len(summary['ride_ids'])} ride(s) for {summary['date']}")

    print("\n" + "=" * 60)
    print("Database initialization complete!")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
