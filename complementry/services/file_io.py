"""Safe file read helpers."""

from __future__ import annotations

from pathlib import Path


def read_text(path: str, *, encoding: str = "utf-8", errors: str = "strict") -> str:
    return Path(path).read_text(encoding=encoding, errors=errors)


def read_text_capped(path: str, cap_chars: int, *, encoding: str = "utf-8") -> str:
    """Read at most ``cap_chars`` characters. Raises ``OSError``/``UnicodeDecodeError``."""
    with open(path, "r", encoding=encoding) as handle:
        return str(handle.read(max(0, int(cap_chars))) or "")


def try_read_text_capped(path: str, cap_chars: int, *, encoding: str = "utf-8") -> str | None:
    """Like ``read_text_capped`` but returns ``None`` for missing or unreadable files."""
    try:
        return read_text_capped(path, cap_chars, encoding=encoding)
    except (OSError, UnicodeDecodeError, ValueError):
        return None
