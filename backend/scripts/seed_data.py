"""CLI script to load the demo users and products into the configured DB.
Usage: python scripts/seed_data.py [--reset]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `wala` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from wala.database import engine, create_db_and_tables, drop_db_and_tables
from wala.utils.seed import seed_demo_data


def main(reset: bool = False):
    """Create tables (optionally dropping them first) and seed demo data.

    Seeding is skipped when the database already has users.
    """
    if reset:
        drop_db_and_tables()
    create_db_and_tables()
    with Session(engine) as session:
        if seed_demo_data(session):
            print('Demo data loaded')
        else:
            print('Database already has users, nothing to do')


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--reset', action='store_true', help='Drop all tables before seeding')
    args = parser.parse_args()
    main(reset=args.reset)
