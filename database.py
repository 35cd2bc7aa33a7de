from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from config import get_settings


def _create_engine() -> Engine:
    settings = get_settings()
    from sqlalchemy import create_engine

    if settings.database_url.startswith("sqlite"):
        eng = create_engine(
            settings.database_url, connect_args={"check_same_thread": False}
        )
        event.listen(eng, "connect", _enable_sqlite_pragmas)
        return eng

    return create_engine(
        settings.database_url,
        pool_size=settings.pool_size,
        pool_pre_ping=True,
    )


def _enable_sqlite_pragmas(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


engine = _create_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass

