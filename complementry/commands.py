"""Command handlers exposed to the host under stable command ids.

Pickers and input boxes belong to the host; every handler receives its
arguments already collected.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from complementry.ai.document_settings import DocumentSettingsStore
from complementry.ai.inline_controller import CompletionTriggerController
from complementry.host.editor_host import EditorHost
from complementry.host.types import Position, TextDocument


TRIGGER_COMPLETION = "complementry.triggerCompletion"
CONFIGURE = "complementry.configure"
ADD_CONTEXT_FILE = "complementry.addContextFile"
REMOVE_CONTEXT_FILE = "complementry.removeContextFile"
SET_PROMPT_TEMPLATE = "complementry.setPromptTemplate"

COMMAND_IDS = (
    TRIGGER_COMPLETION,
    CONFIGURE,
    ADD_CONTEXT_FILE,
    REMOVE_CONTEXT_FILE,
    SET_PROMPT_TEMPLATE,
)


def describe_settings(store: DocumentSettingsStore, document_id: str) -> str:
    settings = store.get(document_id)
    files = "\n  - ".join(settings.context_files) if settings.context_files else "None"
    template = settings.prompt_template if settings.prompt_template is not None else "Using default"
    return f"Prompt: {template}\n\nContext Files:\n  - {files}"


class ComplementryCommands:
    def __init__(
        self,
        *,
        host: EditorHost,
        settings_store: DocumentSettingsStore,
        controller: CompletionTriggerController,
    ) -> None:
        self._host = host
        self._settings = settings_store
        self._controller = controller

    def handlers(self) -> dict[str, Callable[..., Any]]:
        return {
            TRIGGER_COMPLETION: self.trigger_completion,
            CONFIGURE: self.configure,
            ADD_CONTEXT_FILE: self.add_context_files,
            REMOVE_CONTEXT_FILE: self.remove_context_files,
            SET_PROMPT_TEMPLATE: self.set_prompt_template,
        }

    def trigger_completion(self, document: TextDocument | None, position: Position | None) -> int | None:
        if document is None or position is None:
            self._host.show_status(
                f"Complementry: Please open a {self._controller.config.language_id} file", "warning"
            )
            return None
        return self._controller.trigger_completion(document, position)

    def configure(self, document: TextDocument | None) -> str | None:
        if document is None:
            return None
        summary = describe_settings(self._settings, document.uri)
        self._host.show_status(summary, "info")
        return summary

    def add_context_files(self, document: TextDocument | None, paths: Iterable[str] | None) -> int:
        if document is None or not paths:
            return 0
        added = 0
        for path in paths:
            if self._settings.add_context_file(document.uri, str(path)):
                added += 1
        self._host.show_status(f"Added {added} context file(s)", "info")
        return added

    def remove_context_files(self, document: TextDocument | None, paths: Iterable[str] | None) -> int:
        if document is None:
            return 0
        if not self._settings.context_files(document.uri):
            self._host.show_status("No context files configured", "info")
            return 0
        if not paths:
            return 0
        removed = 0
        for path in paths:
            if self._settings.remove_context_file(document.uri, str(path)):
                removed += 1
        self._host.show_status(f"Removed {removed} context file(s)", "info")
        return removed

    def set_prompt_template(self, document: TextDocument | None, template: str | None) -> bool:
        # None means the host's input box was dismissed.
        if document is None or template is None:
            return False
        self._settings.set_prompt_template(document.uri, template)
        self._host.show_status("Prompt template updated", "info")
        return True

    def prompt_template_seed(self, document: TextDocument) -> str:
        """Initial value for the host's template input box."""
        current = self._settings.get(document.uri).prompt_template
        if current is not None:
            return current
        return self._controller.config.default_prompt_template
