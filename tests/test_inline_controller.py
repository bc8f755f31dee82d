from __future__ import annotations

import concurrent.futures

from complementry.ai.provider_base import CompletionResult
from complementry.extension import ComplementryExtension
from complementry.host.types import InlineCompletionItem, Position, Range, TextDocument

from conftest import VALID_SETTINGS, BlockingProviderClient, DeferredExecutor, markdown_document, wait_for


def _ok(text: str, **extra) -> CompletionResult:
    return CompletionResult(ok=True, status_text="Completion received.", text=text, **extra)


def test_end_to_end_foo_bar(make_extension, host):
    extension, client = make_extension(_ok("baz"))
    extension.settings_store.set_prompt_template(
        "file:///notes/doc.md", "{before_cursor}[X]{after_cursor}"
    )
    document = markdown_document("foobar")
    position = Position(0, 3)
    host.open(document, position)

    generation = extension.controller.trigger_completion(document, position)

    assert generation is not None
    assert [request.prompt for request in client.requests] == ["foo[X]bar"]
    [handle] = host.handles
    assert handle is not None and not handle.done()

    extension.controller.drain_results()

    assert handle.result() == [
        InlineCompletionItem(insert_text="baz", range=Range(Position(0, 3), Position(0, 3)))
    ]
    assert not extension.coordinator.has_pending()


def test_backend_request_uses_configuration(make_extension, host):
    extension, client = make_extension(
        _ok("x"),
        settings={
            "base_url": "https://llm.example.test",
            "api_key": "secret",
            "model": "gpt-4o-mini",
            "max_output_tokens": 64,
            "request_timeout_ms": 5000,
        },
    )
    document = markdown_document("text")
    host.open(document, Position(0, 4))

    extension.controller.trigger_completion(document, Position(0, 4))

    [request] = client.requests
    assert request.model == "gpt-4o-mini"
    assert request.max_output_tokens == 64
    assert request.temperature == 0.7
    assert request.base_url == "https://llm.example.test"
    assert request.api_key == "secret"
    assert request.timeout_s == 5.0


def test_host_is_reinvoked_before_backend_answers(make_extension, host):
    executor = DeferredExecutor()
    extension, _client = make_extension(_ok("later"), executor=executor)
    document = markdown_document("abc")
    host.open(document, Position(0, 3))

    extension.controller.trigger_completion(document, Position(0, 3))

    # The backend call has not run yet, but the host already holds the handle.
    assert len(executor.queue) == 1
    [handle] = host.handles
    assert handle is extension.coordinator.peek_pending(document.uri)

    executor.run_next()
    extension.controller.drain_results()

    assert handle.result()[0].insert_text == "later"


def test_missing_configuration_reports_and_does_not_start(make_extension, host):
    extension, client = make_extension(settings={"base_url": "", "api_key": ""})
    document = markdown_document("abc")
    host.open(document, Position(0, 0))

    assert extension.controller.trigger_completion(document, Position(0, 0)) is None

    assert client.requests == []
    assert host.handles == []
    assert not extension.coordinator.has_pending()
    assert ("Complementry: Please configure API endpoint and key in settings", "warning") in host.statuses


def test_non_markdown_document_is_rejected(make_extension, host):
    extension, client = make_extension(_ok("x"))
    document = TextDocument(uri="file:///a.py", language_id="python", text="x")

    assert extension.controller.trigger_completion(document, Position(0, 0)) is None

    assert client.requests == []
    assert ("Complementry: Please open a markdown file", "warning") in host.statuses


def test_backend_failure_resolves_empty_and_reports(make_extension, host):
    extension, _client = make_extension(
        CompletionResult(ok=False, status_text="Provider is unavailable (503). Try again later.", error_kind="http_error")
    )
    document = markdown_document("abc")
    host.open(document, Position(0, 3))

    extension.controller.trigger_completion(document, Position(0, 3))
    extension.controller.drain_results()

    [handle] = host.handles
    assert handle.result() == []
    assert ("Complementry: Provider is unavailable (503). Try again later.", "error") in host.statuses
    assert host.busy_events == [(True, "Complementry: Fetching completion..."), (False, "")]


def test_worker_exception_resolves_empty(make_extension, host):
    extension, _client = make_extension(ConnectionResetError("boom"))
    document = markdown_document("abc")
    host.open(document, Position(0, 3))

    extension.controller.trigger_completion(document, Position(0, 3))
    extension.controller.drain_results()

    [handle] = host.handles
    assert handle.result() == []
    assert ("Complementry: Completion request failed (ConnectionResetError).", "error") in host.statuses
    assert not extension.coordinator.has_pending()


def test_superseded_result_is_dropped(make_extension, host):
    executor = DeferredExecutor()
    extension, _client = make_extension(_ok("first"), _ok("second"), executor=executor)
    document = markdown_document("abc")
    host.open(document, Position(0, 1))
    extension.controller.trigger_completion(document, Position(0, 1))
    host.open(document, Position(0, 2))
    extension.controller.trigger_completion(document, Position(0, 2))
    first_handle, second_handle = host.handles

    assert first_handle.result() == []
    # Queued work for the superseded request was cancelled before it ran.
    assert executor.queue[0][0].cancelled()

    executor.run_next()
    executor.run_next()
    extension.controller.drain_results()

    [item] = second_handle.result()
    assert item.insert_text == "first"
    assert item.range.start == Position(0, 2)


def test_late_result_of_running_superseded_request_is_dropped(make_extension, host):
    executor = DeferredExecutor()
    extension, _client = make_extension(_ok("stale"), _ok("fresh"), executor=executor)
    document = markdown_document("abc")
    host.open(document, Position(0, 1))
    extension.controller.trigger_completion(document, Position(0, 1))
    executor.run_next()  # finished on the worker, not yet drained

    host.open(document, Position(0, 2))
    extension.controller.trigger_completion(document, Position(0, 2))
    extension.controller.drain_results()

    second_handle = host.handles[1]
    assert not second_handle.done()
    assert any("superseded or expired request" in message for message in host.logs)

    executor.run_next()
    extension.controller.drain_results()
    assert second_handle.result()[0].insert_text == "fresh"


def test_timeout_timer_expires_running_request(host):
    client = BlockingProviderClient(_ok("too late"))
    executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    extension = ComplementryExtension(host, provider_client=client, executor=executor)
    extension.activate({**VALID_SETTINGS, "request_timeout_ms": 1000})
    try:
        document = markdown_document("abc")
        host.open(document, Position(0, 3))
        extension.controller.trigger_completion(document, Position(0, 3))
        [handle] = host.handles

        assert client.started.wait(5.0)
        assert wait_for(handle.done, 5.0)

        assert handle.result() == []
        assert ("Complementry: Completion request timed out", "warning") in host.statuses
        assert host.busy_events[-1] == (False, "")
    finally:
        client.release.set()
        extension.deactivate()
        executor.shutdown(wait=True)


def test_completed_request_is_not_expired_later(make_extension, host):
    extension, _client = make_extension(_ok("kept"), settings={**VALID_SETTINGS, "request_timeout_ms": 1000})
    document = markdown_document("abc")
    host.open(document, Position(0, 3))

    extension.controller.trigger_completion(document, Position(0, 3))
    extension.controller.drain_results()
    wait_for(lambda: False, 1.5)

    assert host.handles[0].result()[0].insert_text == "kept"
    assert not any("timed out" in message for message, _level in host.statuses)
    assert not extension.controller._timeout_timer.isActive()


def test_time_queued_behind_another_call_does_not_count(make_extension, host):
    executor = DeferredExecutor()
    extension, _client = make_extension(
        _ok("eventually"), settings={**VALID_SETTINGS, "request_timeout_ms": 1000}, executor=executor
    )
    document = markdown_document("abc")
    host.open(document, Position(0, 3))
    extension.controller.trigger_completion(document, Position(0, 3))
    [handle] = host.handles

    wait_for(lambda: False, 1.5)

    assert not handle.done()
    assert not any("timed out" in message for message, _level in host.statuses)

    executor.run_next()
    extension.controller.drain_results()

    assert handle.result()[0].insert_text == "eventually"


def test_empty_sanitized_completion_reports_no_completion(make_extension, host):
    extension, _client = make_extension(_ok("\r"))
    document = markdown_document("abc")
    host.open(document, Position(0, 3))

    extension.controller.trigger_completion(document, Position(0, 3))
    extension.controller.drain_results()

    assert host.handles[0].result() == []
    assert ("Complementry: No completion", "info") in host.statuses


def test_echoed_cursor_marker_is_removed(make_extension, host):
    extension, _client = make_extension(_ok("[CURSOR HERE] and more\r\n"))
    document = markdown_document("abc")
    host.open(document, Position(0, 3))

    extension.controller.trigger_completion(document, Position(0, 3))
    extension.controller.drain_results()

    assert host.handles[0].result()[0].insert_text == " and more\n"


def test_skipped_context_files_are_logged(make_extension, host, tmp_path):
    extension, _client = make_extension(_ok("x"))
    document = markdown_document("abc")
    missing = str(tmp_path / "missing.md")
    extension.settings_store.add_context_file(document.uri, missing)
    host.open(document, Position(0, 3))

    extension.controller.trigger_completion(document, Position(0, 3))

    assert any(missing in message for message in host.logs)


def test_cancel_pending_settles_handle(make_extension, host):
    executor = DeferredExecutor()
    extension, _client = make_extension(_ok("x"), executor=executor)
    document = markdown_document("abc")
    host.open(document, Position(0, 3))
    extension.controller.trigger_completion(document, Position(0, 3))

    assert extension.controller.cancel_pending() is True

    assert host.handles[0].result() == []
    assert executor.queue[0][0].cancelled()


def test_every_handle_settles_after_many_triggers(make_extension, host):
    executor = DeferredExecutor()
    results = [_ok(f"r{index}") for index in range(4)]
    extension, _client = make_extension(*results, executor=executor)
    document = markdown_document("abcdef")
    for column in range(4):
        host.open(document, Position(0, column))
        extension.controller.trigger_completion(document, Position(0, column))

    while executor.queue:
        executor.run_next()
    extension.controller.drain_results()

    assert all(handle.done() for handle in host.handles)
    assert [len(handle.result()) for handle in host.handles] == [0, 0, 0, 1]
