from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from exambank.core.config import settings


def _engine_options() -> dict:
    if settings.is_sqlite():
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "pool_pre_ping": True,
    }


engine = create_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO, future=True, **_engine_options())
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create tables that don't exist yet."""
    from exambank.models.orm import Base

    Base.metadata.create_all(bind=bind or engine)
