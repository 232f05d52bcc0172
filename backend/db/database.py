import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _set_sqlite_pragma(dbapi_connection, connection_record):
    _ = connection_record
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(database_url: str) -> Engine:
    connect_args: dict = {}
    engine_kwargs: dict = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        if database_url in {"sqlite://", "sqlite:///:memory:"}:
            # One shared connection, otherwise every session sees its own empty database.
            engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, connect_args=connect_args, echo=False, **engine_kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _set_sqlite_pragma)
    return engine


def create_session_factory(database_url: str | None, *, create_tables: bool = True) -> sessionmaker | None:
    """Build a session factory for DATABASE_URL, or None when no URL is configured."""
    url = (database_url or "").strip()
    if not url:
        return None

    import db.models  # noqa: F401  (register tables on Base.metadata)

    engine = create_db_engine(url)
    if create_tables:
        Base.metadata.create_all(bind=engine)
    logger.info(f"Database engine ready ({engine.dialect.name})")
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
