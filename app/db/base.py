"""
Database engine, session factory and the declarative Base.

`get_db` is the FastAPI dependency: one session per request, always closed.
"""
from collections.abc import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from app.core.config import settings


class Base(DeclarativeBase):
    pass


# Execution option naming the SQLite BEGIN mode (DEFERRED when absent).
WRITE_LOCK_OPTION = "sqlite_begin_mode"


def _create_engine(url: str):
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    eng = create_engine(
        url,
        connect_args={
            "check_same_thread": False,
            "timeout": settings.SQLITE_BUSY_TIMEOUT_SECONDS,
        },
    )

    # pysqlite manages transactions itself, which breaks SAVEPOINT; hand
    # control back to SQLAlchemy and turn on FK cascades. WAL keeps an open
    # read transaction from blocking a background task's write.
    @event.listens_for(eng, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if ":memory:" not in url:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(eng, "begin")
    def _on_begin(conn):
        mode = conn.get_execution_options().get(WRITE_LOCK_OPTION)
        conn.exec_driver_sql(f"BEGIN {mode}" if mode else "BEGIN")

    return eng


engine = _create_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def begin_write(db: Session) -> None:
    """
    Commit whatever *db* has open and start a transaction meant to write.

    On SQLite the transaction takes the write lock immediately, so a
    concurrent writer waits (up to the busy timeout) and then reads the
    winner's committed rows, hitting the unique constraints instead of
    "database is locked". Other backends get an ordinary transaction and
    rely on SELECT ... FOR UPDATE and the constraints.

    Every caller must commit or roll back on all paths.
    """
    db.commit()
    db.connection(execution_options={WRITE_LOCK_OPTION: "IMMEDIATE"})


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
