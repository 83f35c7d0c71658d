from __future__ import annotations
import copy
import logging
import os
import pathlib
import time
import typing as t
from dataclasses import dataclass

from sqlimport import charsets, driver as default_driver, paths, splitter
from sqlimport.config import ConnectionSettings
from sqlimport.errors import (
    FileSystemError,
    ParseError,
    SQLExecutionError,
    abbreviate,
)
from sqlimport.paths import DumpFile

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportProgress:
    """Snapshot handed to the progress callback after every statement."""

    total_files: int
    file_no: int
    bytes_processed: int
    total_bytes: int
    file_path: pathlib.Path
    statements: int

    @property
    def percent(self) -> float:
        if not self.total_bytes:
            return 100.0
        return round(self.bytes_processed / self.total_bytes * 100, 2)


ProgressCallback = t.Callable[[ImportProgress], t.Any]
CompletedCallback = t.Callable[[t.Optional[Exception], DumpFile], t.Any]


class Importer:
    """
    Imports dump files over **one** connection, strictly in order.

    The connection is opened lazily by the first import (or :meth:`connect`)
    and kept until :meth:`disconnect`; the importer may be reused for any
    number of :meth:`import_` calls.  It is not safe to share one instance
    between threads, except for calling ``disconnect(force=True)`` to abort.

    Statements run with autocommit: a failure stops the batch but whatever
    already ran stays applied.
    """

    def __init__(
        self,
        settings: ConnectionSettings,
        *,
        encoding: str = charsets.DEFAULT_ENCODING,
        chunk_size: int = splitter.DEFAULT_CHUNK_SIZE,
        driver=default_driver,
    ) -> None:
        self.settings = copy.copy(settings)
        self.chunk_size = chunk_size
        self._driver = driver
        self._conn = None
        self._imported: list[DumpFile] = []
        self._progress_cb: ProgressCallback | None = None
        self._completed_cb: CompletedCallback | None = None
        self._encoding = charsets.DEFAULT_ENCODING
        self.set_encoding(encoding)

    def __enter__(self) -> "Importer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.disconnect()

    # --------------------------------------------------------------------- #
    # Session state
    # --------------------------------------------------------------------- #
    @property
    def encoding(self) -> str:
        return self._encoding

    @property
    def connected(self) -> bool:
        return self._conn is not None

    def set_encoding(self, name: str) -> None:
        charsets.validate(name)
        self._encoding = name

    def use(self, database: str) -> None:
        """Make *database* the target, switching the live connection if any."""
        if self._conn is not None:
            self._driver.select_database(self._conn, database)
            log.info("Using database %r", database)
        self.settings.database = database

    def connect(self) -> None:
        if self._conn is not None:
            return
        self._conn = self._driver.connect(self.settings)
        log.info("Connected to %r", self.settings)

    def disconnect(self, force: bool = False) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        self._driver.close(conn, force=force)
        log.info("Disconnected%s", " (forced)" if force else "")

    def on_progress(self, callback: t.Any) -> None:
        """Register *callback*; anything that is not callable clears it."""
        self._progress_cb = callback if callable(callback) else None

    def on_dump_completed(self, callback: t.Any) -> None:
        """Register *callback*; anything that is not callable clears it."""
        self._completed_cb = callback if callable(callback) else None

    def get_imported(self) -> list[DumpFile]:
        return list(self._imported)

    # --------------------------------------------------------------------- #
    # Importing
    # --------------------------------------------------------------------- #
    def import_(self, *inputs: str | os.PathLike) -> list[DumpFile]:
        """
        Import every file named by *inputs* (files or directories), in order.

        The first failure stops the batch and is re‑raised after the
        completion callback has seen it.  Returns the files imported by this
        call.
        """
        files = paths.resolve(*inputs, encoding=self._encoding)
        log.info("Importing %d file(s)", len(files))
        for file_no, dump in enumerate(files, start=1):
            self._import_dump(dump, file_no, len(files))
        return files

    def import_single_file(self, path: str | os.PathLike) -> DumpFile:
        p = pathlib.Path(path).expanduser()
        if not p.is_file():
            raise FileSystemError(f"{p} does not exist or is not a file")
        if not paths.is_dump_file(p):
            raise FileSystemError(f"{p} is not a {paths.DUMP_SUFFIX} dump file")
        dump = DumpFile(p.resolve(), charsets.validate(self._encoding))
        self._import_dump(dump, 1, 1)
        return dump

    def _import_dump(self, dump: DumpFile, file_no: int, total_files: int) -> None:
        try:
            self.connect()
            self._execute_file(dump, file_no, total_files)
        except Exception as exc:
            if isinstance(exc, (ParseError, SQLExecutionError)) and exc.path is None:
                exc.path = dump.path
            log.error("Import of %s failed: %s", dump.path, exc)
            self._notify_completed(exc, dump)
            raise

        self._imported.append(dump)
        self._notify_completed(None, dump)

    def _execute_file(self, dump: DumpFile, file_no: int, total_files: int) -> int:
        start = time.perf_counter()
        conn = self._conn
        count = 0
        reported = 0
        try:
            fh = dump.path.open("rb")
        except OSError as exc:
            raise FileSystemError(f"Cannot open {dump.path}: {exc.strerror or exc}") from exc

        with fh:
            total_bytes = os.fstat(fh.fileno()).st_size
            log.info(
                "[%d/%d] %s (%d bytes, %s)",
                file_no, total_files, dump.path, total_bytes, dump.encoding,
            )
            try:
                for stmt in splitter.split(fh, dump.encoding, self.chunk_size):
                    log.debug("executing %s", abbreviate(stmt.text))
                    self._driver.execute(conn, stmt.text)
                    count += 1
                    reported = fh.tell()
                    self._notify_progress(
                        ImportProgress(total_files, file_no, reported, total_bytes, dump.path, count)
                    )
                if reported < total_bytes:
                    # trailing comments / blank lines after the last statement
                    self._notify_progress(
                        ImportProgress(total_files, file_no, total_bytes, total_bytes, dump.path, count)
                    )
            except OSError as exc:
                raise FileSystemError(f"Cannot read {dump.path}: {exc.strerror or exc}") from exc

        log.info(
            "Imported %s: %d statement(s) in %d ms",
            dump.path, count, int((time.perf_counter() - start) * 1000),
        )
        return count

    def _notify_progress(self, progress: ImportProgress) -> None:
        if self._progress_cb is not None:
            self._progress_cb(progress)

    def _notify_completed(self, error: Exception | None, dump: DumpFile) -> None:
        if self._completed_cb is not None:
            self._completed_cb(error, dump)
