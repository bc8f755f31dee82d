"""Session wiring: builds the components and binds them to an editor host."""

from __future__ import annotations

import concurrent.futures
from collections.abc import Callable
from typing import Any

from PySide6.QtCore import QObject

from complementry.ai.document_settings import DocumentSettingsStore
from complementry.ai.inline_controller import CompletionTriggerController
from complementry.ai.inline_provider import ComplementryCompletionProvider
from complementry.ai.openai_compatible_client import OpenAICompatibleClient
from complementry.ai.prompt_assembler import PromptAssembler
from complementry.ai.provider_base import AIProviderClient
from complementry.ai.request_coordinator import CompletionRequestCoordinator
from complementry.commands import ComplementryCommands
from complementry.host.editor_host import EditorHost


class ComplementryExtension(QObject):
    def __init__(
        self,
        host: EditorHost,
        *,
        provider_client: AIProviderClient | None = None,
        executor: concurrent.futures.Executor | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.host = host
        self.settings_store = DocumentSettingsStore()
        self.coordinator = CompletionRequestCoordinator(self)
        self.prompt_assembler = PromptAssembler(self.settings_store)
        self.controller = CompletionTriggerController(
            host=host,
            provider_client=provider_client or OpenAICompatibleClient(),
            coordinator=self.coordinator,
            prompt_assembler=self.prompt_assembler,
            executor=executor,
            parent=self,
        )
        self.provider = ComplementryCompletionProvider(
            self.coordinator,
            language_id=self.controller.config.language_id,
        )
        self.commands = ComplementryCommands(
            host=host,
            settings_store=self.settings_store,
            controller=self.controller,
        )
        self._disposers: list[Callable[[], None]] = []
        self._active = False

        self.controller.statusMessage.connect(self._on_status_message)
        self.controller.busyChanged.connect(self._on_busy_changed)
        self.controller.diagnostic.connect(self.host.log)
        self.coordinator.diagnostic.connect(self.host.log)

    @property
    def is_active(self) -> bool:
        return self._active

    def activate(self, settings: Any = None) -> None:
        if self._active:
            return
        if settings is not None:
            self.update_settings(settings)
        self._disposers.append(
            self.host.register_inline_completion_provider(self.provider.language_id, self.provider)
        )
        for command_id, handler in self.commands.handlers().items():
            self._disposers.append(self.host.register_command(command_id, handler))
        self._active = True
        self.host.log("Complementry extension activated")

    def update_settings(self, settings: Any) -> None:
        self.controller.update_settings(settings)
        self.provider.language_id = self.controller.config.language_id

    def deactivate(self) -> None:
        if not self._active:
            return
        self.controller.shutdown()
        while self._disposers:
            dispose = self._disposers.pop()
            dispose()
        self._active = False
        self.host.log("Complementry extension deactivated")

    def _on_status_message(self, message: str, level: str) -> None:
        self.host.show_status(message, level)

    def _on_busy_changed(self, busy: bool, message: str) -> None:
        self.host.set_busy(busy, message)
