from __future__ import annotations

import concurrent.futures
import queue
from dataclasses import dataclass
from typing import Any

from PySide6.QtCore import QObject, QTimer, Signal

from complementry.ai.prompt_assembler import CURSOR_MARKER, PromptAssembler
from complementry.ai.provider_base import AIProviderClient
from complementry.ai.request_coordinator import CompletionRequestCoordinator
from complementry.ai.settings_schema import NormalizedComplementryConfig, default_complementry_settings
from complementry.host.editor_host import EditorHost
from complementry.host.types import Position, TextDocument


@dataclass(slots=True)
class _CompletionWorkItem:
    generation: int
    document_id: str
    prompt: str
    cfg: NormalizedComplementryConfig


class CompletionTriggerController(QObject):
    """Runs one user-triggered completion from trigger to settled future.

    Order per trigger: open the coordinator slot, build the prompt, ask the
    host to re-request suggestions (so its provider call finds the slot),
    then hand the backend call to the worker pool. Worker results come back
    through a queue drained on the GUI thread, which is the only thread that
    touches the coordinator.
    """

    statusMessage = Signal(str, str)  # message, level
    busyChanged = Signal(bool, str)
    suggestionReady = Signal(object)  # {generation, document_id, text, ok, status_text, ...}
    diagnostic = Signal(str)

    def __init__(
        self,
        *,
        host: EditorHost,
        provider_client: AIProviderClient,
        coordinator: CompletionRequestCoordinator,
        prompt_assembler: PromptAssembler,
        executor: concurrent.futures.Executor | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._host = host
        self._provider = provider_client
        self._coordinator = coordinator
        self._assembler = prompt_assembler

        self._owns_executor = executor is None
        self._executor = executor or concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="complementry-ai"
        )
        self._inflight: concurrent.futures.Future | None = None
        self._result_queue: queue.Queue[dict[str, Any]] = queue.Queue()

        self._result_pump = QTimer(self)
        self._result_pump.setInterval(16)
        self._result_pump.timeout.connect(self.drain_results)
        self._result_pump.start()

        self._timeout_timer = QTimer(self)
        self._timeout_timer.setSingleShot(True)
        self._timeout_timer.timeout.connect(self._on_request_timeout)
        self._timeout_generation = 0

        self._busy = False
        self._cfg = NormalizedComplementryConfig.from_mapping(default_complementry_settings())

    @property
    def config(self) -> NormalizedComplementryConfig:
        return self._cfg

    def update_settings(self, cfg: Any) -> None:
        self._cfg = NormalizedComplementryConfig.from_mapping(cfg)
        self._assembler.context_file_max_chars = self._cfg.context_file_max_chars

    def trigger_completion(self, document: TextDocument, position: Position) -> int | None:
        cfg = self._cfg
        if str(document.language_id or "").strip().lower() != cfg.language_id:
            self.statusMessage.emit(f"Complementry: Please open a {cfg.language_id} file", "warning")
            return None
        if cfg.missing_connection_fields():
            self.statusMessage.emit("Complementry: Please configure API endpoint and key in settings", "warning")
            return None

        self._timeout_timer.stop()
        self._cancel_inflight_work()
        generation = self._coordinator.begin_request(document.uri, position)

        try:
            prompt = self._assembler.build(document, position, cfg.default_prompt_template)
        except Exception as exc:
            self._coordinator.cancel(generation=generation)
            self._set_busy(False)
            self.statusMessage.emit(f"Complementry: Could not build prompt ({exc})", "error")
            return None

        context = self._assembler.last_context
        if context is not None and context.skipped_files:
            self.diagnostic.emit(
                f"Skipped {len(context.skipped_files)} unreadable context file(s): {', '.join(context.skipped_files)}"
            )

        self._set_busy(True, "Complementry: Fetching completion...")
        self._host.trigger_inline_suggest()

        item = _CompletionWorkItem(generation=generation, document_id=document.uri, prompt=prompt, cfg=cfg)
        try:
            fut = self._executor.submit(self._run_worker, item)
        except RuntimeError:
            self._coordinator.cancel(generation=generation)
            self._set_busy(False)
            self.statusMessage.emit("Complementry: Completion service is unavailable right now.", "error")
            return None

        self._inflight = fut
        fut.add_done_callback(lambda future, work=item: self._queue_result(work, future))
        return generation

    def cancel_pending(self) -> bool:
        self._timeout_timer.stop()
        self._cancel_inflight_work()
        cancelled = False
        if self._coordinator.has_pending():
            cancelled = self._coordinator.cancel()
        self._set_busy(False)
        return cancelled

    def shutdown(self) -> None:
        self.cancel_pending()
        self._result_pump.stop()
        self.drain_results()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def drain_results(self) -> None:
        while True:
            try:
                payload = self._result_queue.get_nowait()
            except queue.Empty:
                return
            if not isinstance(payload, dict):
                continue
            self._handle_worker_result(payload)

    def _queue_result(self, item: _CompletionWorkItem, future: concurrent.futures.Future) -> None:
        if future.cancelled():
            return
        try:
            payload = future.result()
        except Exception as exc:
            payload = {
                "generation": item.generation,
                "document_id": item.document_id,
                "text": "",
                "ok": False,
                "status_text": f"Completion request failed ({type(exc).__name__}).",
                "finish_reason": "",
                "usage": {},
            }
        self._result_queue.put(payload)

    def _handle_worker_result(self, payload: dict[str, Any]) -> None:
        generation = int(payload.get("generation") or 0)
        if generation <= 0:
            return
        if payload.get("started"):
            self._arm_timeout(generation, int(payload.get("timeout_ms") or 0))
            return
        if generation != self._coordinator.pending_generation():
            self.diagnostic.emit(f"Dropped result for superseded or expired request #{generation}.")
            return

        self._timeout_timer.stop()
        self._inflight = None
        ok = bool(payload.get("ok", False))
        text = str(payload.get("text") or "")
        status_text = str(payload.get("status_text") or "").strip()

        if ok:
            text = self._sanitize_completion(text)
            payload["text"] = text
            self._coordinator.complete_with_text(generation, text)
            if not text.strip():
                self.statusMessage.emit("Complementry: No completion", "info")
        else:
            self._coordinator.cancel(generation=generation)
            self.statusMessage.emit(f"Complementry: {status_text or 'No completion'}", "error")

        usage = payload.get("usage")
        if isinstance(usage, dict) and usage:
            self.diagnostic.emit(f"Request #{generation} usage: {usage}")
        self._set_busy(False)
        self.suggestionReady.emit(payload)

    def _run_worker(self, item: _CompletionWorkItem) -> dict[str, Any]:
        cfg = item.cfg
        # Time spent queued behind an earlier call does not count against the timeout.
        self._result_queue.put(
            {"generation": item.generation, "started": True, "timeout_ms": cfg.request_timeout_ms}
        )
        result = self._provider.complete(
            item.prompt,
            cfg.model,
            cfg.max_output_tokens,
            cfg.temperature,
            base_url=cfg.base_url,
            api_key=cfg.api_key,
            timeout_s=cfg.timeout_s,
        )
        return {
            "generation": item.generation,
            "document_id": item.document_id,
            "text": str(result.text or "") if result.ok else "",
            "ok": bool(result.ok),
            "status_text": str(result.status_text or ""),
            "finish_reason": str(result.finish_reason or ""),
            "usage": dict(result.usage or {}),
        }

    def _arm_timeout(self, generation: int, timeout_ms: int) -> None:
        if timeout_ms <= 0 or generation != self._coordinator.pending_generation():
            return
        self._timeout_generation = generation
        self._timeout_timer.start(timeout_ms)

    def _on_request_timeout(self) -> None:
        generation = self._timeout_generation
        if not self._coordinator.expire(generation):
            return
        self._cancel_inflight_work()
        self._set_busy(False)
        self.statusMessage.emit("Complementry: Completion request timed out", "warning")

    def _cancel_inflight_work(self) -> None:
        existing = self._inflight
        self._inflight = None
        if existing is not None and not existing.done():
            # Only queued work can be cancelled; a running call finishes and is dropped as stale.
            existing.cancel()

    def _sanitize_completion(self, text: str) -> str:
        cleaned = str(text or "").replace("\r", "")
        if cleaned.startswith(CURSOR_MARKER):
            cleaned = cleaned[len(CURSOR_MARKER):]
        return cleaned

    def _set_busy(self, busy: bool, message: str = "") -> None:
        if busy == self._busy:
            return
        self._busy = busy
        self.busyChanged.emit(busy, message)
