from __future__ import annotations

from concurrent.futures import Future

from complementry.ai.request_coordinator import CompletionRequestCoordinator
from complementry.host.types import Position, TextDocument
from complementry.services.language_id import MARKDOWN_LANGUAGE_ID, normalize_language_id


class ComplementryCompletionProvider:
    """Host callback for inline suggestions.

    Never triggers work on its own: it either hands back the outstanding
    request's future (the host awaits it) or declines with ``None``.
    """

    def __init__(
        self,
        coordinator: CompletionRequestCoordinator,
        *,
        language_id: str = MARKDOWN_LANGUAGE_ID,
    ) -> None:
        self._coordinator = coordinator
        self.language_id = normalize_language_id(language_id)

    def provide(self, document: TextDocument, position: Position) -> Future | None:
        if not self.supports(document):
            return None
        return self._coordinator.peek_pending(document.uri)

    def supports(self, document: TextDocument) -> bool:
        return normalize_language_id(document.language_id, "") == self.language_id
