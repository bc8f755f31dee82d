from __future__ import annotations

import re
from dataclasses import dataclass, field

from complementry.ai.document_settings import DocumentSettingsStore
from complementry.host.types import Position, TextDocument
from complementry.services.file_io import try_read_text_capped


CURSOR_MARKER = "[CURSOR HERE]"
CONTEXT_FILE_HEADER = "\n--- Context from {path} ---\n{text}\n"

_PLACEHOLDER_RE = re.compile(r"\{(document|before_cursor|after_cursor|context_files|cursor)\}")


@dataclass(slots=True)
class PromptContext:
    before_cursor: str
    after_cursor: str
    document: str
    context_files: str
    loaded_files: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)

    def values(self) -> dict[str, str]:
        return {
            "document": self.document,
            "before_cursor": self.before_cursor,
            "after_cursor": self.after_cursor,
            "context_files": self.context_files,
            "cursor": CURSOR_MARKER,
        }


class PromptAssembler:
    def __init__(self, settings_store: DocumentSettingsStore, *, context_file_max_chars: int = 200000) -> None:
        self._settings = settings_store
        self.context_file_max_chars = max(1, int(context_file_max_chars))
        self.last_context: PromptContext | None = None

    def build(self, document: TextDocument, position: Position, default_template: str) -> str:
        settings = self._settings.get(document.uri)
        template = settings.prompt_template if settings.prompt_template is not None else default_template
        context = self.build_context(document, position)
        self.last_context = context
        return self.render(str(template or ""), context)

    def build_context(self, document: TextDocument, position: Position) -> PromptContext:
        loaded: list[str] = []
        skipped: list[str] = []
        parts: list[str] = []
        for file_path in self._settings.context_files(document.uri):
            text = try_read_text_capped(file_path, self.context_file_max_chars)
            if text is None:
                skipped.append(file_path)
                continue
            loaded.append(file_path)
            parts.append(CONTEXT_FILE_HEADER.format(path=file_path, text=text))

        return PromptContext(
            before_cursor=document.text_before(position),
            after_cursor=document.text_after(position),
            document=document.text,
            context_files="".join(parts),
            loaded_files=loaded,
            skipped_files=skipped,
        )

    @staticmethod
    def render(template: str, context: PromptContext) -> str:
        # Single pass so placeholder-like text inside the document is kept verbatim.
        values = context.values()
        return _PLACEHOLDER_RE.sub(lambda match: values[match.group(1)], template)
