from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from settings import settings


def build_engine(url: str) -> Engine:
    """Create an engine with pool settings suited to the backend behind ``url``."""

    database_url = make_url(url)
    engine_kwargs: dict = {"pool_pre_ping": True}

    if database_url.drivername.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if database_url.database in (None, "", ":memory:"):
            engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs.update(
            {
                "pool_size": settings.DB_POOL_SIZE,
                "max_overflow": settings.DB_MAX_OVERFLOW,
                "pool_recycle": settings.DB_POOL_RECYCLE,
            }
        )

    return create_engine(url, **engine_kwargs)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


class Base(DeclarativeBase):
    pass


def init_db(bind: Engine | None = None) -> None:
    # models must be imported so their tables are registered on the metadata
    import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def check_connection(bind: Engine | None = None) -> None:
    with (bind or engine).connect() as connection:
        connection.execute(text("SELECT 1"))


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
