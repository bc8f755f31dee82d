"""Language-id resolution helpers for documents.

Pure utility functions that map filenames/extensions to the language id the
host editor reports for a buffer.
"""

from __future__ import annotations

from pathlib import Path

MARKDOWN_LANGUAGE_ID = "markdown"
PLAINTEXT_LANGUAGE_ID = "plaintext"

_EXTENSION_LANGUAGE_IDS: dict[str, str] = {
    ".md": MARKDOWN_LANGUAGE_ID,
    ".markdown": MARKDOWN_LANGUAGE_ID,
    ".mdown": MARKDOWN_LANGUAGE_ID,
    ".mkd": MARKDOWN_LANGUAGE_ID,
    ".mdx": "mdx",
    ".txt": PLAINTEXT_LANGUAGE_ID,
    ".text": PLAINTEXT_LANGUAGE_ID,
    ".rst": "restructuredtext",
    ".adoc": "asciidoc",
    ".html": "html",
    ".htm": "html",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".py": "python",
}

_FILENAME_LANGUAGE_IDS: dict[str, str] = {
    "readme": MARKDOWN_LANGUAGE_ID,
    "changelog": MARKDOWN_LANGUAGE_ID,
}


def language_id_for_path(file_path: str) -> str:
    path = Path(str(file_path or ""))
    by_suffix = _EXTENSION_LANGUAGE_IDS.get(path.suffix.lower())
    if by_suffix:
        return by_suffix
    return _FILENAME_LANGUAGE_IDS.get(path.name.lower(), PLAINTEXT_LANGUAGE_ID)


def normalize_language_id(value: object, default: str = MARKDOWN_LANGUAGE_ID) -> str:
    text = str(value or "").strip().lower()
    return text or default
