"""
Thin seam over mysql‑connector.  Every driver exception is translated into
the sqlimport hierarchy here so the importer never sees ``mysql.connector``
types.
"""
from __future__ import annotations
import logging

import mysql.connector
from mysql.connector import errorcode, errors

from sqlimport.config import ConnectionSettings
from sqlimport.errors import DatabaseConnectionError, SQLExecutionError, abbreviate

log = logging.getLogger(__name__)

# Client errors that mean the link itself is gone.
_LINK_LOST = {
    errorcode.CR_SERVER_GONE_ERROR,
    errorcode.CR_SERVER_LOST,
    errorcode.CR_SERVER_LOST_EXTENDED,
}


def quote_identifier(name: str) -> str:
    return "`" + name.replace("`", "``") + "`"


def connect(settings: ConnectionSettings):
    """
    Open a connection **already inside** ``settings.database`` (when set).

    If that database does not exist (error 1049) and
    ``settings.create_database`` is *True*, it is created and the connection
    retried; otherwise the failure surfaces as :class:`DatabaseConnectionError`.
    """
    try:
        return mysql.connector.connect(**settings.dsn(), autocommit=True)
    except mysql.connector.Error as err:
        if not (err.errno == errorcode.ER_BAD_DB_ERROR and settings.create_database):
            # Bubble up anything else (bad credentials, network failure, etc.)
            raise DatabaseConnectionError(f"Cannot connect to {settings!r}: {err.msg}") from err

    _create_database(settings)
    try:
        return mysql.connector.connect(**settings.dsn(), autocommit=True)
    except mysql.connector.Error as err:
        raise DatabaseConnectionError(f"Cannot connect to {settings!r}: {err.msg}") from err


def _create_database(settings: ConnectionSettings) -> None:
    log.info("Database %r not found, creating it", settings.database)
    try:
        with mysql.connector.connect(**settings.dsn(with_database=False), autocommit=True) as tmp:
            with tmp.cursor() as cur:
                cur.execute(
                    f"CREATE DATABASE IF NOT EXISTS {quote_identifier(settings.database)} "
                    "DEFAULT CHARACTER SET utf8mb4 "
                    "COLLATE utf8mb4_unicode_ci"
                )
    except mysql.connector.Error as err:
        raise DatabaseConnectionError(
            f"Cannot create database {settings.database!r}: {err.msg}"
        ) from err


def _is_alive(conn) -> bool:
    try:
        return bool(conn.is_connected())
    except mysql.connector.Error:
        return False


def execute(conn, sql: str) -> int:
    """
    Run one statement and return the row count of its first result.

    Every further result set (``CALL`` of a procedure that selects) is
    drained so the connection is ready for the next statement.
    """
    try:
        with conn.cursor(buffered=True) as cur:
            cur.execute(sql)
            rowcount = cur.rowcount
            while cur.nextset():
                pass
            return rowcount
    except mysql.connector.Error as err:
        if err.errno in _LINK_LOST or not _is_alive(conn):
            raise DatabaseConnectionError(f"Connection lost: {err.msg}") from err
        raise SQLExecutionError(
            err.msg or str(err),
            statement=sql,
            errno=err.errno,
            sqlstate=err.sqlstate,
        ) from err


def select_database(conn, name: str) -> None:
    try:
        with conn.cursor() as cur:
            cur.execute(f"USE {quote_identifier(name)}")
    except mysql.connector.Error as err:
        raise DatabaseConnectionError(f"Cannot switch to database {name!r}: {err.msg}") from err
    log.debug("switched to database %s", abbreviate(name, 64))


def close(conn, force: bool = False) -> None:
    """
    End *conn*.  ``force`` drops the socket without the quit handshake, which
    also aborts a statement another thread is waiting on.
    """
    try:
        if force:
            conn.shutdown()
        else:
            conn.close()
    except mysql.connector.Error as err:
        raise DatabaseConnectionError(f"Error while closing connection: {err.msg}") from err
