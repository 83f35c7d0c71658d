"""
Pytest fixtures for the sqlimport test suite.

Provides:
- ``fake_driver``: an in‑memory stand‑in for :mod:`sqlimport.driver` that
  records every statement and keeps just enough catalogue state (databases,
  tables, row counts, functions) to assert on import results
- ``importer``: an :class:`Importer` wired to the fake driver
- paths to the sample and broken dump files
"""
from __future__ import annotations

import pathlib
import re

import pytest

from sqlimport.config import ConnectionSettings
from sqlimport.errors import DatabaseConnectionError, SQLExecutionError
from sqlimport.importer import Importer

HERE = pathlib.Path(__file__).parent
SAMPLE_DIR = HERE / "sample_dump_files"
BROKEN_DIR = HERE / "broken_dump_files"

_CREATE_TABLE = re.compile(r"CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?`?(\w+)`?", re.I)
_DROP_TABLE = re.compile(r"^DROP\s+TABLE\s+(?:IF\s+EXISTS\s+)?`?(\w+)`?", re.I)
_INSERT = re.compile(r"^INSERT\s+INTO\s+`?(\w+)`?", re.I)
_CREATE_FUNCTION = re.compile(r"CREATE\s+FUNCTION\s+`?(\w+)`?", re.I)


def _strip_comments(sql: str) -> str:
    lines = [ln for ln in sql.splitlines() if not re.match(r"\s*(--|#)", ln)]
    text = "\n".join(lines)
    return re.sub(r"/\*(?!!).*?\*/", "", text, flags=re.S).strip()


def _count_rows(sql: str) -> int:
    """Rows in a VALUES list, counted outside string literals."""
    values = sql[sql.upper().index("VALUES") + len("VALUES"):]
    depth, rows, quote, escape = 0, 0, "", False
    for ch in values:
        if quote:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == quote:
                quote = ""
        elif ch in "'\"":
            quote = ch
        elif ch == "(":
            if depth == 0:
                rows += 1
            depth += 1
        elif ch == ")":
            depth -= 1
    return rows


class FakeConnection:
    def __init__(self, database: str | None) -> None:
        self.database = database
        self.open = True
        self.closed_with: bool | None = None


class FakeDriver:
    """Mimics the ``sqlimport.driver`` function set against an in‑memory catalogue."""

    def __init__(self) -> None:
        self.databases: dict[str, dict] = {"testdb": self._empty(), "otherdb": self._empty()}
        self.executed: list[str] = []
        self.connects = 0
        self.connections: list[FakeConnection] = []
        self.fail_close: Exception | None = None

    @staticmethod
    def _empty() -> dict:
        return {"tables": {}, "functions": set()}

    def db(self, name: str = "testdb") -> dict:
        return self.databases[name]

    def tables(self, name: str = "testdb") -> dict[str, list[str]]:
        return self.databases[name]["tables"]

    # -- driver API --------------------------------------------------------
    def connect(self, settings: ConnectionSettings) -> FakeConnection:
        if settings.host != "localhost":
            raise DatabaseConnectionError(f"Unknown MySQL server host {settings.host!r}")
        if settings.database and settings.database not in self.databases:
            if not settings.create_database:
                raise DatabaseConnectionError(f"Unknown database {settings.database!r}")
            self.databases[settings.database] = self._empty()
        self.connects += 1
        conn = FakeConnection(settings.database)
        self.connections.append(conn)
        return conn

    def select_database(self, conn: FakeConnection, name: str) -> None:
        if name not in self.databases:
            raise DatabaseConnectionError(f"Cannot switch to database {name!r}")
        conn.database = name

    def execute(self, conn: FakeConnection, sql: str) -> int:
        if not conn.open:
            raise DatabaseConnectionError("Connection lost")
        self.executed.append(sql)
        body = _strip_comments(sql)
        if not body:
            raise SQLExecutionError("Query was empty", statement=sql, errno=1065)
        if body.startswith("/*!"):
            return 0
        if conn.database is None:
            raise SQLExecutionError("No database selected", statement=sql, errno=1046)
        db = self.databases[conn.database]

        m = _DROP_TABLE.match(body)
        if m:
            db["tables"].pop(m.group(1), None)
            return 0
        m = _CREATE_TABLE.match(body)
        if m:
            if m.group(1) in db["tables"]:
                raise SQLExecutionError(f"Table '{m.group(1)}' already exists", statement=sql, errno=1050)
            db["tables"][m.group(1)] = []
            return 0
        m = _CREATE_FUNCTION.match(body)
        if m:
            db["functions"].add(m.group(1))
            return 0
        m = _INSERT.match(body)
        if m:
            table = m.group(1)
            if table not in db["tables"]:
                raise SQLExecutionError(f"Table '{table}' doesn't exist", statement=sql, errno=1146)
            n = _count_rows(body)
            db["tables"][table].extend([body] * n)
            return n
        if body.upper().startswith(("SET ", "SELECT ")):
            return 0
        raise SQLExecutionError("You have an error in your SQL syntax", statement=sql, errno=1064)

    def close(self, conn: FakeConnection, force: bool = False) -> None:
        if self.fail_close is not None:
            raise self.fail_close
        conn.open = False
        conn.closed_with = force


@pytest.fixture
def fake_driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def settings() -> ConnectionSettings:
    return ConnectionSettings(user="tester", password="secret", database="testdb")


@pytest.fixture
def importer(settings, fake_driver) -> Importer:
    imp = Importer(settings, driver=fake_driver, chunk_size=512)
    yield imp
    imp.disconnect()


@pytest.fixture
def test_sql() -> pathlib.Path:
    return SAMPLE_DIR / "test.sql"
