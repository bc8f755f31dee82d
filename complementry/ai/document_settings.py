from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class DocumentSettings:
    prompt_template: str | None = None
    context_files: list[str] = field(default_factory=list)


class DocumentSettingsStore:
    """In-memory per-document settings keyed by document URI.

    Entries are created on first access and live for the session.
    """

    def __init__(self) -> None:
        self._settings: dict[str, DocumentSettings] = {}

    def get(self, document_id: str) -> DocumentSettings:
        key = str(document_id or "")
        settings = self._settings.get(key)
        if settings is None:
            settings = DocumentSettings()
            self._settings[key] = settings
        return settings

    def set_prompt_template(self, document_id: str, template: str) -> None:
        self.get(document_id).prompt_template = str(template)

    def clear_prompt_template(self, document_id: str) -> None:
        self.get(document_id).prompt_template = None

    def add_context_file(self, document_id: str, file_path: str) -> bool:
        settings = self.get(document_id)
        path = str(file_path)
        if path in settings.context_files:
            return False
        settings.context_files.append(path)
        return True

    def remove_context_file(self, document_id: str, file_path: str) -> bool:
        settings = self.get(document_id)
        path = str(file_path)
        if path not in settings.context_files:
            return False
        settings.context_files.remove(path)
        return True

    def context_files(self, document_id: str) -> list[str]:
        return list(self.get(document_id).context_files)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._settings

    def __len__(self) -> int:
        return len(self._settings)
