# clinic/db/init_db.py
from __future__ import annotations

import argparse
import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from clinic.db.base import Base
from clinic.db.session import engine as default_engine

# Import all models so metadata is complete
import clinic.models  # noqa: F401

logger = logging.getLogger(__name__)


def create_tables(engine: Engine = default_engine) -> None:
    Base.metadata.create_all(bind=engine)
    logger.info("Tables ready: %s", sorted(inspect(engine).get_table_names()))


def drop_tables(engine: Engine = default_engine) -> None:
    Base.metadata.drop_all(bind=engine)


def main() -> None:
    parser = argparse.ArgumentParser(description="Create clinic tables")
    parser.add_argument("--drop", action="store_true", help="drop all tables first")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    if args.drop:
        drop_tables()
    create_tables()


if __name__ == "__main__":
    main()
