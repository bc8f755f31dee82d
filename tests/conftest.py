"""Test configuration and shared fixtures."""

from __future__ import annotations

import concurrent.futures
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any

from PySide6.QtCore import QCoreApplication
import pytest

from complementry.ai.provider_base import AIProviderClient, CompletionRequest, CompletionResult, ProviderResult
from complementry.extension import ComplementryExtension
from complementry.host.editor_host import EditorHost, InlineCompletionProvider
from complementry.host.types import Position, TextDocument


MARKDOWN_URI = "file:///notes/doc.md"
VALID_SETTINGS = {
    "base_url": "https://llm.example.test/v1",
    "api_key": "sk-test",
    "model": "gpt-4",
}


class SynchronousExecutor(concurrent.futures.Executor):
    """Runs submitted work inline so results are queued before ``submit`` returns."""

    def __init__(self) -> None:
        self.submitted = 0
        self.closed = False

    def submit(self, fn, /, *args, **kwargs):
        if self.closed:
            raise RuntimeError("cannot schedule new futures after shutdown")
        self.submitted += 1
        future: Future = Future()
        future.set_running_or_notify_cancel()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        self.closed = True


class DeferredExecutor(concurrent.futures.Executor):
    """Holds submitted work until ``run_next`` is called."""

    def __init__(self) -> None:
        self.queue: list[tuple[Future, Callable[[], Any]]] = []

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        self.queue.append((future, lambda: fn(*args, **kwargs)))
        return future

    def run_next(self) -> None:
        future, call = self.queue.pop(0)
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(call())
        except Exception as exc:
            future.set_exception(exc)

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        if cancel_futures:
            for future, _call in self.queue:
                future.cancel()
            self.queue.clear()


class ScriptedProviderClient(AIProviderClient):
    """Returns queued results in order and records every request."""

    def __init__(self, *results: CompletionResult | Exception) -> None:
        self.results: list[CompletionResult | Exception] = list(results)
        self.requests: list[CompletionRequest] = []

    def test_connection(self, *, base_url: str, api_key: str, timeout_s: float = 10.0) -> ProviderResult:
        return ProviderResult(ok=True, status_text="Connection successful.")

    def complete_request(self, request: CompletionRequest) -> CompletionResult:
        self.requests.append(request)
        if not self.results:
            return CompletionResult(ok=False, status_text="No scripted result.", error_kind="empty")
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class BlockingProviderClient(ScriptedProviderClient):
    """Holds each backend call until ``release`` is set."""

    def __init__(self, *results: CompletionResult | Exception) -> None:
        super().__init__(*results)
        self.started = threading.Event()
        self.release = threading.Event()

    def complete_request(self, request: CompletionRequest) -> CompletionResult:
        self.started.set()
        self.release.wait(10.0)
        return super().complete_request(request)


class RecordingEditorHost(EditorHost):
    """Fake editor that re-enters the provider whenever suggestions are re-requested."""

    def __init__(self) -> None:
        self.providers: dict[str, InlineCompletionProvider] = {}
        self.commands: dict[str, Callable[..., Any]] = {}
        self.statuses: list[tuple[str, str]] = []
        self.busy_events: list[tuple[bool, str]] = []
        self.logs: list[str] = []
        self.active: tuple[TextDocument, Position] | None = None
        self.handles: list[Future | None] = []

    def register_inline_completion_provider(self, language_id: str, provider: InlineCompletionProvider):
        self.providers[language_id] = provider
        return lambda: self.providers.pop(language_id, None)

    def register_command(self, command_id: str, callback: Callable[..., Any]):
        self.commands[command_id] = callback
        return lambda: self.commands.pop(command_id, None)

    def trigger_inline_suggest(self) -> None:
        if self.active is None:
            self.handles.append(None)
            return
        document, position = self.active
        provider = self.providers.get(document.language_id)
        self.handles.append(provider.provide(document, position) if provider is not None else None)

    def show_status(self, message: str, level: str = "info") -> None:
        self.statuses.append((message, level))

    def set_busy(self, busy: bool, message: str = "") -> None:
        self.busy_events.append((busy, message))

    def log(self, message: str) -> None:
        self.logs.append(message)

    def open(self, document: TextDocument, position: Position) -> None:
        self.active = (document, position)


def markdown_document(text: str, *, uri: str = MARKDOWN_URI) -> TextDocument:
    return TextDocument(uri=uri, language_id="markdown", text=text)


def wait_for(predicate: Callable[[], bool], timeout_s: float = 5.0) -> bool:
    """Process Qt events until ``predicate`` holds or the deadline passes."""
    deadline = time.monotonic() + timeout_s
    while True:
        QCoreApplication.processEvents()
        if predicate():
            return True
        if time.monotonic() >= deadline:
            return False
        time.sleep(0.01)


@pytest.fixture(scope="session", autouse=True)
def qapp() -> QCoreApplication:
    """Single Qt application for the whole run; timers need one to exist."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    return app


@pytest.fixture
def host() -> RecordingEditorHost:
    return RecordingEditorHost()


@pytest.fixture
def sync_executor() -> SynchronousExecutor:
    return SynchronousExecutor()


@pytest.fixture
def make_extension(host: RecordingEditorHost, sync_executor: SynchronousExecutor):
    """Factory for an activated extension over the recording host."""
    created: list[ComplementryExtension] = []

    def _make(
        *results: CompletionResult | Exception,
        settings: dict[str, Any] | None = None,
        executor: concurrent.futures.Executor | None = None,
    ) -> tuple[ComplementryExtension, ScriptedProviderClient]:
        client = ScriptedProviderClient(*results)
        extension = ComplementryExtension(host, provider_client=client, executor=executor or sync_executor)
        extension.activate(dict(VALID_SETTINGS if settings is None else settings))
        created.append(extension)
        return extension, client

    yield _make
    for extension in created:
        extension.deactivate()
