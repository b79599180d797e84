"""
Database engine, session factory and declarative base
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker

from printshop.config import settings


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value):
    """Convert an offset-aware datetime to naive UTC; naive values are assumed to be UTC already"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class ModelMixin:
    """Column-level serialization shared by every model"""

    def to_dict(self, exclude=()):
        data = {}
        for column in self.__table__.columns:
            if column.key in exclude:
                continue
            value = getattr(self, column.key)
            if isinstance(value, enum.Enum):
                value = value.value
            data[column.key] = value
        return data


Base = declarative_base(cls=ModelMixin)


def build_engine(url: str):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args, pool_pre_ping=True)


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """FastAPI dependency yielding one session per request"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    # models must be imported so their tables are registered on Base.metadata
    import printshop.models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)


def drop_tables(bind=None):
    import printshop.models  # noqa: F401
    Base.metadata.drop_all(bind=bind or engine)


def ping(db) -> bool:
    db.execute(text("SELECT 1"))
    return True
