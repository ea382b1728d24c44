import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from sqlalchemy import Select, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import Settings
from errors import CommitTimeoutError


def build_engine(settings: Settings) -> Engine:
    connect_args: dict[str, object] = {}
    if settings.database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    eng = create_engine(settings.database_url, connect_args=connect_args)
    if settings.database_url.startswith("sqlite"):
        event.listen(eng, "connect", _enable_sqlite_pragmas)
    return eng


def _enable_sqlite_pragmas(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


@contextmanager
def transaction_scope(
    session_factory: sessionmaker[Session],
    *,
    max_commit_secs: Optional[float] = None,
    clock: Callable[[], float] = time.monotonic,
) -> Iterator[Session]:
    """All writes made inside the block commit together or not at all.

    When ``max_commit_secs`` is given and the block plus its final flush
    takes longer, the transaction is rolled back instead of committed and
    ``CommitTimeoutError`` is raised. The check runs just before the commit.
    """
    started = clock()
    session: Session = session_factory()
    try:
        yield session
        session.flush()
        elapsed = clock() - started
        if max_commit_secs is not None and elapsed > max_commit_secs:
            raise CommitTimeoutError(
                f"transaction exceeded {max_commit_secs}s (took {elapsed:.2f}s)"
            )
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def stream_in_pages(
    session_factory: sessionmaker[Session],
    stmt: Select,
    key_column: Any,
    *,
    page_size: int = 100,
) -> Iterator[Any]:
    """Yield the rows of ``stmt`` one page at a time, keyed on ``key_column``.

    Each page is read in a short-lived session, so rows come back detached
    and no read cursor stays open while the caller commits its own writes.
    Every row is yielded at most once per call.
    """
    last_key = None
    while True:
        page_stmt = stmt
        if last_key is not None:
            page_stmt = page_stmt.where(key_column > last_key)
        page_stmt = page_stmt.order_by(key_column).limit(page_size)
        with session_factory() as session:
            rows = session.scalars(page_stmt).all()
        if not rows:
            return
        yield from rows
        last_key = getattr(rows[-1], key_column.key)
        if len(rows) < page_size:
            return
