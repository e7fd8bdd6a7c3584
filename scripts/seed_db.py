"""Seed the books collection with the sample data from data/books.json.

Replaces all existing books; safe to re-run since the data is sample data.

Usage: .venv/bin/python scripts/seed_db.py [--seed-file PATH] [--log-level DEBUG]
"""

import sys

from bookstore.seeding.cli import main

if __name__ == "__main__":
    sys.exit(main())
