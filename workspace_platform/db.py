from __future__ import annotations

import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence
from urllib.parse import urlparse

from workspace_platform.schema import get_schema_sql


# Held while DDL runs so concurrent API/script starts don't race on CREATE TABLE.
_SCHEMA_LOCK_KEY = 2147483646

# A quoted literal (either quote style, doubled quotes as escapes) or a bare '?'.
_PLACEHOLDER_RE = re.compile(r"""'(?:[^']|'')*'|"(?:[^"]|"")*"|\?""")


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def _detect_dialect(dsn: str) -> str:
    """'postgres' for postgres:// and postgresql:// URLs, else 'sqlite'."""
    scheme = urlparse((dsn or "").strip()).scheme.lower()
    return "postgres" if scheme in ("postgres", "postgresql") else "sqlite"


def _qmark_to_pct(sql: str) -> str:
    """Rewrite sqlite `?` placeholders as psycopg2 `%s`, leaving quoted literals alone."""
    return _PLACEHOLDER_RE.sub(lambda m: "%s" if m.group(0) == "?" else m.group(0), sql)


class PGConnection:
    """Just enough of the sqlite3.Connection surface over psycopg2 for our CRUD modules.

    `execute` returns the psycopg2 cursor itself; with RealDictCursor its rows
    index by column name like sqlite3.Row.
    """

    dialect = "postgres"

    def __init__(self, raw: Any):
        self.raw = raw

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> Any:
        cur = self.raw.cursor()
        cur.execute(_qmark_to_pct(sql), tuple(params or ()))
        return cur

    def commit(self) -> None:
        self.raw.commit()

    def rollback(self) -> None:
        self.raw.rollback()

    def close(self) -> None:
        self.raw.close()


def _open_postgres(dsn: str) -> PGConnection:
    try:
        import psycopg2
        import psycopg2.extras
    except ImportError as e:
        raise RuntimeError("DSN is a Postgres URL but psycopg2 is missing; pip install '.[postgres]'") from e
    return PGConnection(psycopg2.connect(dsn, cursor_factory=psycopg2.extras.RealDictCursor))


def _open_sqlite(dsn: str) -> sqlite3.Connection:
    path = dsn[len("sqlite:///") :] if dsn.lower().startswith("sqlite:///") else dsn
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    # check_same_thread=False: background provisioning threads open their own
    # connections, but the API's threadpool may hand one across threads.
    conn = sqlite3.connect(path, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA busy_timeout=5000;")
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@contextmanager
def connect(db_dsn: str) -> Iterator[Any]:
    """Open a connection for one unit of work: commit on success, roll back on error.

    SQLite for file paths (and sqlite:/// URLs), psycopg2 for Postgres URLs.
    Either way callers write `?` placeholders and read rows by column name.
    """
    dsn = (db_dsn or "").strip()
    conn = _open_postgres(dsn) if _detect_dialect(dsn) == "postgres" else _open_sqlite(dsn)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_dsn: str) -> None:
    """Create all tables (idempotent)."""
    dialect = _detect_dialect(db_dsn)
    _debug(f"Initializing DB ({dialect}) at {db_dsn}")
    ddl = get_schema_sql(dialect)
    with connect(db_dsn) as conn:
        if dialect != "postgres":
            # SQLite takes an exclusive lock for DDL on its own
            conn.executescript(ddl)
            return
        conn.execute("SELECT pg_advisory_lock(?);", (_SCHEMA_LOCK_KEY,))
        try:
            for stmt in (s.strip() for s in ddl.split(";")):
                if stmt:
                    conn.execute(stmt)
        finally:
            conn.execute("SELECT pg_advisory_unlock(?);", (_SCHEMA_LOCK_KEY,))


def is_unique_violation(exc: BaseException) -> bool:
    """True if `exc` is a UNIQUE / PRIMARY KEY violation on either engine."""
    if isinstance(exc, sqlite3.IntegrityError):
        return "UNIQUE constraint failed" in str(exc)
    # psycopg2.errors.UniqueViolation carries SQLSTATE 23505
    return str(getattr(exc, "pgcode", "") or "") == "23505"
