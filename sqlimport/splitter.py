"""
Streaming statement splitter for MySQL dump files.

The splitter is a push parser: :meth:`StatementSplitter.feed` takes decoded
text in pieces of any size and returns the statements completed by it, so a
dump never has to be held in memory as a whole.  :func:`split` wires it to a
binary file handle read in bounded chunks.

Lexical rules follow the MySQL client:

• ``'…'`` and ``"…"`` honour backslash escapes, ```…``` does not.
• ``#`` starts a line comment anywhere; ``--`` only when followed by
  whitespace or a control character.
• ``/*…*/`` is a comment; ``/*!…*/`` and ``/*+…*/`` are executable and count
  as statement content.
• ``DELIMITER <token>`` at a statement boundary swaps the terminator.
"""
from __future__ import annotations

import codecs
import enum
import logging
import typing as t
from dataclasses import dataclass

from sqlimport.errors import ParseError

log = logging.getLogger(__name__)

DEFAULT_DELIMITER = ";"
DEFAULT_CHUNK_SIZE = 64 * 1024
DIRECTIVE_KEYWORD = "delimiter"


class Mode(enum.Enum):
    NORMAL = "normal text"
    IN_SINGLE_QUOTE = "single-quoted string"
    IN_DOUBLE_QUOTE = "double-quoted string"
    IN_BACKTICK = "backtick-quoted identifier"
    IN_LINE_COMMENT = "line comment"
    IN_BLOCK_COMMENT = "block comment"
    IN_DIRECTIVE = "DELIMITER directive"


# NORMAL -> quote mode on the opening character, back on the same character.
_OPENERS: dict[str, Mode] = {
    "'": Mode.IN_SINGLE_QUOTE,
    '"': Mode.IN_DOUBLE_QUOTE,
    "`": Mode.IN_BACKTICK,
}
_CLOSERS: dict[Mode, str] = {mode: ch for ch, mode in _OPENERS.items()}

# Modes that must not be open when the input ends.
_UNTERMINATED = frozenset(
    {Mode.IN_SINGLE_QUOTE, Mode.IN_DOUBLE_QUOTE, Mode.IN_BACKTICK, Mode.IN_BLOCK_COMMENT}
)


@dataclass(frozen=True)
class Statement:
    """
    One complete statement, trimmed, without its terminator.

    ``start`` is the character offset of its first non‑comment character and
    ``end`` the offset where the terminator began (or the end of input).
    """

    text: str
    start: int
    end: int

    def __str__(self) -> str:
        return self.text


class StatementSplitter:
    """Character‑level state machine.  Create a fresh instance per input."""

    def __init__(self, delimiter: str = DEFAULT_DELIMITER) -> None:
        if not delimiter:
            raise ValueError("delimiter must not be empty")
        self.delimiter: str = delimiter
        self.mode: Mode = Mode.NORMAL
        self.pending_escape: bool = False
        self.offset: int = 0                 # characters consumed so far

        self._buf: list[str] = []
        self._origin = 0                     # offset of _buf[0]
        self._content = 0                    # non‑comment, non‑blank chars in _buf
        self._start = 0                      # offset of the first of them
        self._run = 0                        # trailing chars of _buf added in NORMAL
        self._opened_at = 0                  # where the open quote / comment began
        self._comment_len = 0
        self._comment_prev = ""
        self._line_start = 0                 # index into _buf
        self._content_at_line = 0
        self._directive_possible = True
        self._closed = False

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def feed(self, text: str) -> list[Statement]:
        if self._closed:
            raise RuntimeError("splitter already closed; create a new one")
        out: list[Statement] = []
        step = self._step
        for ch in text:
            stmt = step(ch)
            if stmt is not None:
                out.append(stmt)
        return out

    def close(self) -> list[Statement]:
        """Signal end of input and return the trailing statement, if any."""
        if self._closed:
            return []
        self._closed = True

        if self.pending_escape or self.mode in _UNTERMINATED:
            raise ParseError(
                f"Unterminated {self.mode.value} at end of input",
                offset=self._opened_at,
            )
        if self.mode is Mode.IN_DIRECTIVE:
            self._apply_directive()
            return []
        self._check_bare_directive()
        end = len(self._buf)
        if self._run >= 2 and self._buf[-1] == "-" and self._buf[-2] == "-":
            # end of input also ends the line, so a trailing "--" is a comment
            self._content -= 2
            end -= 2
        if not self._content:
            self._reset()
            return []
        body = "".join(self._buf[self._start - self._origin:end])
        stmt = Statement(body.strip(), self._start, self._origin + end)
        self._reset()
        return [stmt]

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #
    def _step(self, ch: str) -> Statement | None:
        pos = self.offset
        self.offset += 1
        self._buf.append(ch)
        mode = self.mode

        if mode is Mode.NORMAL:
            return self._normal(ch, pos)

        if mode is Mode.IN_LINE_COMMENT:
            if ch == "\n":
                self._to_normal()
                self._new_line()
        elif mode is Mode.IN_BLOCK_COMMENT:
            if self._comment_len == 0 and ch in "!+":
                self._count(self._opened_at)
            elif ch == "/" and self._comment_prev == "*":
                self._to_normal()
                return None
            self._comment_prev = ch
            self._comment_len += 1
        elif mode is Mode.IN_DIRECTIVE:
            if ch == "\n":
                self._apply_directive()
        elif self.pending_escape:
            self.pending_escape = False
        elif ch == "\\" and mode is not Mode.IN_BACKTICK:
            self.pending_escape = True
        elif ch == _CLOSERS[mode]:
            self._to_normal()
        return None

    def _normal(self, ch: str, pos: int) -> Statement | None:
        self._run += 1
        buf = self._buf
        delim = self.delimiter
        n = len(delim)

        if ch == delim[-1] and self._run >= n and (n == 1 or "".join(buf[-n:]) == delim):
            return self._emit(n, pos)

        if ch in _OPENERS:
            self._count(pos)
            self._enter(_OPENERS[ch], pos)
            return None

        if ch == "#":
            self._enter(Mode.IN_LINE_COMMENT, pos)
            return None

        if ch == "*" and self._run >= 2 and buf[-2] == "/":
            self._content -= 1               # the "/" was counted as content
            self._enter(Mode.IN_BLOCK_COMMENT, pos - 1)
            self._comment_len = 0
            self._comment_prev = ""
            return None

        if ch <= " ":
            if self._run >= 3 and buf[-2] == "-" and buf[-3] == "-":
                self._content -= 2           # "--" was counted as content
                if ch == "\n":
                    self._run = 0
                    self._new_line()
                else:
                    self._enter(Mode.IN_LINE_COMMENT, pos - 2)
                return None
            if ch == "\n":
                self._check_bare_directive()
                self._new_line()
            elif self._directive_possible and not self._content_at_line:
                word = self._first_word(exclude_last=True)
                if word.lower() == DIRECTIVE_KEYWORD:
                    self.mode = Mode.IN_DIRECTIVE
                    self._directive_possible = False
                elif word:
                    self._directive_possible = False
            return None

        self._count(pos)
        return None

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _enter(self, mode: Mode, pos: int) -> None:
        self.mode = mode
        self._opened_at = pos
        self._run = 0
        self._directive_possible = False

    def _to_normal(self) -> None:
        self.mode = Mode.NORMAL
        self._run = 0

    def _count(self, pos: int) -> None:
        if not self._content:
            self._start = pos
        self._content += 1

    def _new_line(self) -> None:
        self._line_start = len(self._buf)
        self._content_at_line = self._content
        self._directive_possible = not self._content

    def _first_word(self, exclude_last: bool = False) -> str:
        end = len(self._buf) - 1 if exclude_last else len(self._buf)
        return "".join(self._buf[self._line_start:end]).strip()

    def _check_bare_directive(self) -> None:
        if (
            self.mode is Mode.NORMAL
            and self._directive_possible
            and not self._content_at_line
            and self._first_word().lower() == DIRECTIVE_KEYWORD
        ):
            raise ParseError("DELIMITER must be followed by a terminator", offset=self.offset)

    def _apply_directive(self) -> None:
        line = "".join(self._buf[self._line_start:])
        parts = line.split()
        if len(parts) < 2:
            raise ParseError("DELIMITER must be followed by a terminator", offset=self.offset)
        log.debug("delimiter changed from %r to %r at offset %d", self.delimiter, parts[1], self.offset)
        self.delimiter = parts[1]
        self._reset()

    def _emit(self, n: int, pos: int) -> Statement | None:
        has_content = self._content > 0
        body = "".join(self._buf[self._start - self._origin:-n]) if has_content else ""
        start = self._start
        self._reset()
        if not has_content:
            return None
        return Statement(body.strip(), start, pos - n + 1)

    def _reset(self) -> None:
        self.mode = Mode.NORMAL
        self._buf.clear()
        self._origin = self.offset
        self._content = 0
        self._run = 0
        self._line_start = 0
        self._content_at_line = 0
        self._directive_possible = True


def split(
    fh: t.BinaryIO | t.TextIO,
    encoding: str = "utf-8-sig",
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    *,
    delimiter: str = DEFAULT_DELIMITER,
) -> t.Iterator[Statement]:
    """
    Lazily yield the statements of *fh* in document order.

    *fh* is read ``chunk_size`` units at a time; bytes are decoded with an
    incremental *encoding* decoder so multi‑byte characters may straddle
    chunks.  The generator is single‑use.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    decoder = codecs.getincrementaldecoder(encoding)(errors="strict")
    splitter = StatementSplitter(delimiter)
    consumed = 0
    while True:
        chunk = fh.read(chunk_size)
        if isinstance(chunk, str):
            text = chunk
        else:
            try:
                text = decoder.decode(chunk, final=not chunk)
            except UnicodeDecodeError as exc:
                raise ParseError(
                    f"Cannot decode input as {encoding}: {exc.reason}",
                    offset=consumed + exc.start,
                ) from exc
            consumed += len(chunk)
        yield from splitter.feed(text)
        if not chunk:
            break
    yield from splitter.close()


def split_string(sql: str, *, delimiter: str = DEFAULT_DELIMITER) -> list[Statement]:
    """Split an in‑memory script; convenient for small inputs and tests."""
    splitter = StatementSplitter(delimiter)
    return splitter.feed(sql) + splitter.close()
