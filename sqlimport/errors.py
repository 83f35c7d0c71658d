"""
Exception hierarchy shared by every sqlimport module.

Everything the importer raises on purpose derives from :class:`SQLImportError`
so callers can catch one type at the top of a deployment script.
"""
from __future__ import annotations

import pathlib


class SQLImportError(Exception):
    """Base class for all user‑visible import failures."""


class ConfigError(SQLImportError):
    """Raised for any user‑visible configuration problem."""


class FileSystemError(SQLImportError):
    """A dump path is missing, is not a dump file, or cannot be read."""


class UnsupportedEncodingError(SQLImportError, ValueError):
    """The requested text encoding is not on the allow‑list."""


class DatabaseConnectionError(SQLImportError):
    """Connect, close or database switch failed at the driver level."""


class ParseError(SQLImportError):
    """
    The dump text is malformed: an unterminated quote or block comment at end
    of file, an undecodable byte sequence, or a bad ``DELIMITER`` directive.
    """

    def __init__(
        self,
        message: str,
        *,
        offset: int | None = None,
        path: pathlib.Path | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.offset = offset
        self.path = path

    def __str__(self) -> str:
        where = []
        if self.path is not None:
            where.append(str(self.path))
        if self.offset is not None:
            where.append(f"offset {self.offset}")
        return f"{self.message} ({', '.join(where)})" if where else self.message


class SQLExecutionError(SQLImportError):
    """The server rejected a statement."""

    def __init__(
        self,
        message: str,
        *,
        statement: str,
        errno: int | None = None,
        sqlstate: str | None = None,
        path: pathlib.Path | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.statement = statement
        self.errno = errno
        self.sqlstate = sqlstate
        self.path = path

    def __str__(self) -> str:
        head = f"{self.path}: {self.message}" if self.path else self.message
        return f"{head}\n  while executing: {abbreviate(self.statement)}"


def abbreviate(sql: str, limit: int = 120) -> str:
    """Collapse whitespace and cut *sql* down to *limit* characters for messages."""
    flat = " ".join(sql.split())
    return flat if len(flat) <= limit else flat[: limit - 3] + "..."
