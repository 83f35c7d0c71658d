"""
Allow‑list of text encodings a dump file may be read with.
"""
from __future__ import annotations

from sqlimport.errors import UnsupportedEncodingError

DEFAULT_ENCODING = "utf8"

# user‑facing name -> Python codec
_CODECS: dict[str, str] = {
    "utf8": "utf-8-sig",
    "utf-8": "utf-8-sig",
    "utf8mb4": "utf-8-sig",
    "ucs2": "utf-16-le",
    "ucs-2": "utf-16-le",
    "utf16le": "utf-16-le",
    "utf-16le": "utf-16-le",
    "latin1": "latin-1",
    "latin-1": "latin-1",
    "ascii": "ascii",
}


def supported() -> list[str]:
    """Return the accepted encoding names, sorted."""
    return sorted(_CODECS)


def validate(name: str) -> str:
    """
    Return the Python codec for the encoding *name* (case‑insensitive).

    The UTF‑8 family decodes with ``utf-8-sig`` so a leading byte‑order mark
    written by some editors never reaches the server.
    """
    if not isinstance(name, str):
        raise UnsupportedEncodingError(f"Encoding must be a string, got {name!r}")
    try:
        return _CODECS[name.strip().lower()]
    except KeyError:
        raise UnsupportedEncodingError(
            f"Unsupported encoding {name!r}; expected one of: {', '.join(supported())}"
        ) from None
