"""Shared helpers — hashing, timestamps, collation."""

from __future__ import annotations

import hashlib
import unicodedata
from datetime import datetime, timezone
from pathlib import Path


def sha256_file(path: Path) -> str:
    """Return the hex SHA-256 digest of *path*."""
    h = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def utcnow_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


# Script groups in Korean collation order: symbols, digits, Hangul, Latin, rest.
_SYMBOL, _DIGIT, _HANGUL, _LATIN, _OTHER = range(5)

_HANGUL_RANGES = (
    (0x1100, 0x11FF),  # conjoining jamo
    (0x3130, 0x318F),  # compatibility jamo
    (0xA960, 0xA97F),
    (0xAC00, 0xD7A3),  # syllables
    (0xD7B0, 0xD7FF),
)


def _script_group(ch: str) -> int:
    category = unicodedata.category(ch)
    if category[0] in "ZPSC":
        return _SYMBOL
    if category[0] == "N":
        return _DIGIT
    cp = ord(ch)
    if any(lo <= cp <= hi for lo, hi in _HANGUL_RANGES):
        return _HANGUL
    if unicodedata.name(ch, "").startswith("LATIN"):
        return _LATIN
    return _OTHER


def collation_key(text: str) -> tuple[tuple[tuple[int, str], ...], str]:
    """Sort key approximating Korean locale collation.

    Characters compare by script group first (symbols and spaces, digits,
    Hangul, Latin, everything else), then by folded code point within the
    group. Hangul syllables are already in dictionary order by code point.
    Lower case sorts before upper case on ties, as ICU does.
    """
    normalized = unicodedata.normalize("NFKC", text)
    primary = tuple((_script_group(ch), ch) for ch in normalized.casefold())
    return primary, normalized.swapcase()
