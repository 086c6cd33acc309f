from __future__ import annotations

import argparse
import json

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.escolastica.core.config import settings
from app.escolastica.core.logging import configure_logging
from app.escolastica.services.expiration import ExpirationSweeper


def run_sweep(*, database_url: str | None = None) -> int:
    engine = create_engine(database_url or settings.DATABASE_URL, future=True)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    try:
        with SessionLocal() as db:
            return ExpirationSweeper(db).sweep()
    finally:
        engine.dispose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Expire pending student transfers past their deadline")
    parser.add_argument("--database-url", default=None, help="Overrides DATABASE_URL")
    args = parser.parse_args(argv)
    configure_logging()
    expired = run_sweep(database_url=args.database_url)
    print(json.dumps({"expired": expired}))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
