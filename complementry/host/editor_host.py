from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any, Protocol

from complementry.host.types import InlineCompletionItem, Position, TextDocument


class InlineCompletionProvider(Protocol):
    def provide(
        self, document: TextDocument, position: Position
    ) -> Future[list[InlineCompletionItem]] | None: ...


class EditorHost(ABC):
    """Services the editor supplies to the add-on.

    ``register_*`` methods return a disposer that undoes the registration.
    All methods are called on the GUI thread.
    """

    @abstractmethod
    def register_inline_completion_provider(
        self,
        language_id: str,
        provider: InlineCompletionProvider,
    ) -> Callable[[], None]:
        raise NotImplementedError

    @abstractmethod
    def register_command(self, command_id: str, callback: Callable[..., Any]) -> Callable[[], None]:
        raise NotImplementedError

    @abstractmethod
    def trigger_inline_suggest(self) -> None:
        """Ask the host to call the inline provider again for the active editor."""
        raise NotImplementedError

    @abstractmethod
    def show_status(self, message: str, level: str = "info") -> None:
        raise NotImplementedError

    def set_busy(self, busy: bool, message: str = "") -> None:
        return None

    def log(self, message: str) -> None:
        return None
