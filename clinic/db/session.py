# clinic/db/session.py
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from clinic.core.config import settings


def make_engine(uri: str) -> Engine:
    if uri.startswith("sqlite"):
        return create_engine(
            uri,
            connect_args={"check_same_thread": False},
            future=True,
        )
    return create_engine(
        uri,
        pool_pre_ping=True,
        pool_recycle=280,
        pool_size=10,
        max_overflow=20,
        future=True,
    )


engine: Engine = make_engine(settings.SQLALCHEMY_DATABASE_URI)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)
