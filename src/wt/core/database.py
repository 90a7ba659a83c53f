"""Postgres database isolation.

Each slot gets its own database cloned from the template database
(``baseDatabaseName``) with ``CREATE DATABASE ... TEMPLATE``. Admin
statements run against the ``postgres`` maintenance database on the same
server, in autocommit mode since ``CREATE/DROP DATABASE`` cannot run in a
transaction. Driver errors propagate unchanged.
"""
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional
from urllib.parse import urlsplit, urlunsplit

import psycopg
from psycopg import sql

from wt.core.env_patcher import parse_env_line, unquote_value
from wt.core.exceptions import ConflictError, NotFoundError, PatchError
from wt.core.utils.io import read_text

logger = logging.getLogger(__name__)

MAINTENANCE_DB = "postgres"
DEFAULT_CONNECT_TIMEOUT = 30

_TERMINATE_SQL = (
    "SELECT pg_terminate_backend(pid) FROM pg_stat_activity "
    "WHERE datname = %s AND pid <> pg_backend_pid()"
)


def admin_conninfo(database_url: str) -> str:
    """Point ``database_url`` at the maintenance database and drop its query.

    Query strings such as Prisma's ``?schema=public`` are not libpq
    parameters and would be rejected by the driver.
    """
    parts = urlsplit(database_url)
    return urlunsplit((parts.scheme, parts.netloc, f"/{MAINTENANCE_DB}", "", ""))


@contextmanager
def admin_connection(database_url: str, *, connect_timeout: Optional[float] = None) -> Iterator[psycopg.Connection]:
    """Connect to the maintenance database for admin operations."""
    timeout = int(connect_timeout or DEFAULT_CONNECT_TIMEOUT)
    conn = psycopg.connect(admin_conninfo(database_url), autocommit=True, connect_timeout=timeout)
    try:
        yield conn
    finally:
        conn.close()


def _log_sql(conn: psycopg.Connection, statement: sql.Composable | str, params: tuple = ()) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    text = statement if isinstance(statement, str) else statement.as_string(conn)
    if params:
        bindings = ", ".join(f"${i}={value!r}" for i, value in enumerate(params, start=1))
        text = f"{text} -- {bindings}"
    logger.debug("SQL: %s", text)


def _execute(conn: psycopg.Connection, statement: sql.Composable | str, params: tuple = ()) -> psycopg.Cursor:
    _log_sql(conn, statement, params)
    return conn.execute(statement, params or None)


def create_database(
    database_url: str,
    template_name: str,
    target_name: str,
    *,
    connect_timeout: Optional[float] = None,
) -> None:
    """Create ``target_name`` as a copy of ``template_name``.

    Open connections to the template are terminated first; Postgres
    refuses to copy a database that has other sessions.
    """
    with admin_connection(database_url, connect_timeout=connect_timeout) as conn:
        _execute(conn, _TERMINATE_SQL, (template_name,))
        _execute(
            conn,
            sql.SQL("CREATE DATABASE {} TEMPLATE {}").format(
                sql.Identifier(target_name), sql.Identifier(template_name)
            ),
        )
    logger.info("Created database '%s' from template '%s'", target_name, template_name)


def drop_database(
    database_url: str,
    db_name: str,
    template_name: str,
    *,
    connect_timeout: Optional[float] = None,
) -> None:
    """Drop ``db_name`` if it exists. Refuses to drop the template database.

    Raises:
        ConflictError: If ``db_name`` is the template database.
    """
    if db_name == template_name:
        raise ConflictError(
            f"Refusing to drop template database: {template_name}",
            context={"database": db_name},
        )
    with admin_connection(database_url, connect_timeout=connect_timeout) as conn:
        _execute(conn, _TERMINATE_SQL, (db_name,))
        _execute(conn, sql.SQL("DROP DATABASE IF EXISTS {}").format(sql.Identifier(db_name)))
    logger.info("Dropped database '%s'", db_name)


def database_exists(database_url: str, db_name: str, *, connect_timeout: Optional[float] = None) -> bool:
    with admin_connection(database_url, connect_timeout=connect_timeout) as conn:
        row = _execute(conn, "SELECT 1 FROM pg_database WHERE datname = %s", (db_name,)).fetchone()
    return row is not None


def list_databases_by_pattern(
    database_url: str,
    pattern: str,
    *,
    connect_timeout: Optional[float] = None,
) -> List[str]:
    """Return database names matching a SQL ``LIKE`` pattern, sorted."""
    with admin_connection(database_url, connect_timeout=connect_timeout) as conn:
        rows = _execute(
            conn,
            "SELECT datname FROM pg_database WHERE datname LIKE %s ORDER BY datname",
            (pattern,),
        ).fetchall()
    return [row[0] for row in rows]


def read_database_url(main_root: Path | str) -> str:
    """Return ``DATABASE_URL`` from the main worktree's ``.env``.

    Falls back to the ``DATABASE_URL`` environment variable.

    Raises:
        NotFoundError: If neither source defines it.
    """
    env_path = Path(main_root) / ".env"
    if env_path.is_file():
        for line in read_text(env_path).splitlines():
            parsed = parse_env_line(line)
            if parsed is None or parsed[0] != "DATABASE_URL":
                continue
            try:
                _, value = unquote_value(parsed[1])
            except PatchError:
                continue
            if value:
                return value

    url = os.environ.get("DATABASE_URL")
    if url:
        return url
    raise NotFoundError(
        f"DATABASE_URL not found in {env_path} or the environment",
        context={"envFile": str(env_path)},
    )


__all__ = [
    "admin_conninfo",
    "admin_connection",
    "create_database",
    "drop_database",
    "database_exists",
    "list_databases_by_pattern",
    "read_database_url",
]
