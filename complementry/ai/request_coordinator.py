from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass

from PySide6.QtCore import QObject, Signal

from complementry.host.types import InlineCompletionItem, Position, Range


@dataclass(slots=True)
class PendingRequest:
    generation: int
    document_id: str
    position: Position
    future: Future


class CompletionRequestCoordinator(QObject):
    """Single-slot owner of the one outstanding completion request.

    The host treats an immediate "no suggestion" as a cached answer for the
    cursor/version pair, so while a request is outstanding the provider hands
    back this slot's future instead. Starting a request swaps the slot: the
    previous future settles empty before the new one is stored. Every future
    settles exactly once. Must only be used from the GUI thread.
    """

    diagnostic = Signal(str)
    pendingChanged = Signal(bool)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._slot: PendingRequest | None = None
        self._generation = 0

    def begin_request(self, document_id: str, position: Position) -> int:
        previous = self._slot
        self._slot = None
        if previous is not None:
            self._settle(previous, [], reason="superseded")

        self._generation += 1
        future: Future = Future()
        # Running futures refuse cancel(); only this coordinator settles them.
        future.set_running_or_notify_cancel()
        self._slot = PendingRequest(
            generation=self._generation,
            document_id=str(document_id or ""),
            position=position,
            future=future,
        )
        if previous is None:
            self.pendingChanged.emit(True)
        return self._generation

    def peek_pending(self, document_id: str) -> Future | None:
        slot = self._slot
        if slot is None or slot.document_id != str(document_id or ""):
            return None
        return slot.future

    def has_pending(self) -> bool:
        return self._slot is not None

    def pending_generation(self) -> int | None:
        slot = self._slot
        return None if slot is None else slot.generation

    def pending_position(self) -> Position | None:
        slot = self._slot
        return None if slot is None else slot.position

    def resolve(self, items: list[InlineCompletionItem], *, generation: int | None = None) -> bool:
        slot = self._take(generation, action="resolve")
        if slot is None:
            return False
        self._settle(slot, list(items or []), reason="resolved")
        self.pendingChanged.emit(False)
        return True

    def cancel(self, *, generation: int | None = None) -> bool:
        slot = self._take(generation, action="cancel")
        if slot is None:
            return False
        self._settle(slot, [], reason="cancelled")
        self.pendingChanged.emit(False)
        return True

    def complete_with_text(self, generation: int, text: str) -> bool:
        slot = self._slot
        if slot is None or slot.generation != generation:
            self.diagnostic.emit(f"Dropped completion for stale request #{generation}.")
            return False
        if not str(text or ""):
            return self.resolve([], generation=generation)
        item = InlineCompletionItem(insert_text=str(text), range=Range.empty_at(slot.position))
        return self.resolve([item], generation=generation)

    def expire(self, generation: int) -> bool:
        slot = self._slot
        if slot is None or slot.generation != generation:
            return False
        self.diagnostic.emit(f"Request #{generation} timed out; resolving empty.")
        return self.cancel(generation=generation)

    def _take(self, generation: int | None, *, action: str) -> PendingRequest | None:
        slot = self._slot
        if slot is None:
            self.diagnostic.emit(f"Ignored {action}: no request is pending.")
            return None
        if generation is not None and slot.generation != generation:
            self.diagnostic.emit(
                f"Ignored {action} for stale request #{generation}; request #{slot.generation} is pending."
            )
            return None
        self._slot = None
        return slot

    def _settle(self, slot: PendingRequest, items: list[InlineCompletionItem], *, reason: str) -> None:
        if slot.future.done():
            self.diagnostic.emit(f"Request #{slot.generation} was already settled by the host ({reason}).")
            return
        slot.future.set_result(items)
        self.diagnostic.emit(f"Request #{slot.generation} {reason} with {len(items)} item(s).")
