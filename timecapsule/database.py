from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from timecapsule.config import Settings

Base = declarative_base()


def make_engine(settings: Settings):
    url = settings.database_url
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url == "sqlite://":
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        url,
        pool_pre_ping=True,  # Check connections before using them
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
    )


def make_session_factory(engine):
    # Records leave the session once a unit of work commits
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@contextmanager
def session_scope(session_factory):
    """
    One transaction per block: commit on success, roll back on any error.
    Usage:
        with session_scope(SessionLocal) as db:
            db.add(capsule)
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine):
    """Create all tables for the registered models."""
    from timecapsule import models  # noqa: F401  (registers the tables)
    Base.metadata.create_all(bind=engine)
