#!/usr/bin/env python3
"""Create or upgrade the rate limit table for RATE_LIMIT_BACKEND=database."""

from __future__ import annotations

import argparse
from pathlib import Path

from alembic import command
from alembic.config import Config

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def alembic_config() -> Config:
    return Config(str(PROJECT_ROOT / "alembic.ini"))


def upgrade_head(sql_only: bool = False) -> None:
    command.upgrade(alembic_config(), "head", sql=sql_only)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--sql",
        action="store_true",
        help="print the migration SQL instead of applying it",
    )
    args = parser.parse_args(argv)
    upgrade_head(sql_only=args.sql)


if __name__ == "__main__":
    main()
