from __future__ import annotations

import argparse
import json
import sys

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.business.migration.engine import MigrationEngine
from app.core.config import get_settings
from app.logging import configure_logging


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="python -m app.business.migration",
        description="Migrate legacy single-table products into the catalog and store listings.",
    )
    parser.add_argument("--database-url", default=None, help="defaults to DATABASE_URL from the environment")
    args = parser.parse_args(argv)

    configure_logging()
    database_url = args.database_url or get_settings().database_url
    engine = create_engine(database_url, pool_pre_ping=True, future=True)
    try:
        factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
        report = MigrationEngine(factory).run()
    finally:
        engine.dispose()

    print(json.dumps(report.as_dict(), indent=2))
    return 0 if report.ok else 1


if __name__ == "__main__":
    sys.exit(main())
