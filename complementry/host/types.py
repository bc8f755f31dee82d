"""Small editor-boundary dataclasses for documents, positions, and suggestions."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from complementry.services.file_io import read_text
from complementry.services.language_id import language_id_for_path


@dataclass(frozen=True)
class Position:
    line: int
    character: int


@dataclass(frozen=True)
class Range:
    start: Position
    end: Position

    @classmethod
    def empty_at(cls, position: Position) -> "Range":
        return cls(start=position, end=position)

    @property
    def is_empty(self) -> bool:
        return self.start == self.end


@dataclass(frozen=True)
class InlineCompletionItem:
    insert_text: str
    range: Range


@dataclass(frozen=True)
class TextDocument:
    """Read-only snapshot of a host buffer.

    Positions are zero-based; ``character`` counts code points within the line.
    Out-of-range positions are clamped to the nearest valid offset.
    """

    uri: str
    language_id: str
    text: str
    version: int = 0

    @classmethod
    def from_path(cls, path: str, *, version: int = 0) -> "TextDocument":
        resolved = Path(path).expanduser().resolve()
        return cls(
            uri=resolved.as_uri(),
            language_id=language_id_for_path(str(resolved)),
            text=read_text(str(resolved)),
            version=version,
        )

    def offset_at(self, position: Position) -> int:
        # Only "\n" breaks lines, matching position_at and the host's numbering.
        lines = self.text.split("\n")
        line = max(0, int(position.line))
        if line >= len(lines):
            return len(self.text)

        offset = sum(len(item) + 1 for item in lines[:line])
        content_len = len(lines[line].rstrip("\r"))
        return offset + max(0, min(content_len, int(position.character)))

    def position_at(self, offset: int) -> Position:
        target = max(0, min(len(self.text), int(offset)))
        prefix = self.text[:target]
        line = prefix.count("\n")
        line_start = prefix.rfind("\n") + 1
        return Position(line=line, character=target - line_start)

    def text_before(self, position: Position) -> str:
        return self.text[: self.offset_at(position)]

    def text_after(self, position: Position) -> str:
        return self.text[self.offset_at(position):]
