#!/usr/bin/env python3
"""Apply Alembic migrations for the certissuer database."""

from __future__ import annotations

import argparse
from pathlib import Path

from alembic.config import Config

from alembic import command

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def alembic_config(project_root: Path = PROJECT_ROOT) -> Config:
    cfg = Config(str(project_root / "alembic.ini"))
    cfg.set_main_option("script_location", str(project_root / "alembic"))
    return cfg


def upgrade(revision: str = "head", sql: bool = False) -> None:
    command.upgrade(alembic_config(), revision, sql=sql)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("revision", nargs="?", default="head")
    parser.add_argument(
        "--sql", action="store_true", help="print SQL instead of applying it"
    )
    args = parser.parse_args(argv)
    upgrade(args.revision, sql=args.sql)


if __name__ == "__main__":
    main()
