"""Stream MySQL dump files into a database over one connection."""
from __future__ import annotations

__version__ = "0.1.0"

from sqlimport.config import ConnectionSettings  # noqa: E402
from sqlimport.errors import (  # noqa: E402
    ConfigError,
    DatabaseConnectionError,
    FileSystemError,
    ParseError,
    SQLExecutionError,
    SQLImportError,
    UnsupportedEncodingError,
)
from sqlimport.importer import Importer, ImportProgress  # noqa: E402
from sqlimport.paths import DumpFile  # noqa: E402

__all__ = [
    "ConfigError",
    "ConnectionSettings",
    "DatabaseConnectionError",
    "DumpFile",
    "FileSystemError",
    "ImportProgress",
    "Importer",
    "ParseError",
    "SQLExecutionError",
    "SQLImportError",
    "UnsupportedEncodingError",
]
