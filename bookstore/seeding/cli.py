"""Command-line entry point for the seeder.

Exit status: 0 on success (index failures included), otherwise the
exit_code of the SeedError that aborted the run.
"""

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from motor.motor_asyncio import AsyncIOMotorClient
from pydantic import ValidationError

from bookstore.config import Settings
from bookstore.logging_config import configure_logging
from bookstore.seeding.dataset import load_books
from bookstore.seeding.errors import ConfigurationError, SeedError
from bookstore.seeding.report import render_error, render_result
from bookstore.seeding.service import Seeder


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bookstore-seed",
        description="Drop and reload the books collection with the sample dataset.",
    )
    parser.add_argument("--seed-file", help="JSON array of books (default: SEED_FILE)")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING... (default: LOG_LEVEL)")
    parser.add_argument(
        "--json-logs", action="store_true", default=None, help="emit logs as JSON lines"
    )
    return parser


def main(argv: Optional[Sequence[str]] = None, client_factory=AsyncIOMotorClient) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings()
    except ValidationError as exc:
        error = ConfigurationError("invalid settings", step="config", cause=exc)
        print(render_error(error), file=sys.stderr)
        return error.exit_code

    configure_logging(
        level=args.log_level or settings.LOG_LEVEL,
        json_logs=settings.LOG_JSON if args.json_logs is None else args.json_logs,
    )

    try:
        books = load_books(args.seed_file or settings.SEED_FILE)
        seeder = Seeder(settings, books, client_factory=client_factory)
        result = asyncio.run(seeder.seed())
    except SeedError as exc:
        print(render_error(exc), file=sys.stderr)
        return exc.exit_code

    print(render_result(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
