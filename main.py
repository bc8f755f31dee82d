import argparse
import os
import sys
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any

from PySide6.QtCore import QCoreApplication, QTimer

from complementry.commands import ADD_CONTEXT_FILE, TRIGGER_COMPLETION
from complementry.extension import ComplementryExtension
from complementry.host.editor_host import EditorHost, InlineCompletionProvider
from complementry.host.types import Position, TextDocument
from complementry.settings_store import JsonSettingsStore, SettingsStoreError


class ConsoleEditorHost(EditorHost):
    """Headless host: one document, output on stdout, diagnostics on stderr."""

    def __init__(self, document: TextDocument, position: Position, *, verbose: bool = False) -> None:
        self.document = document
        self.position = position
        self.verbose = verbose
        self.commands: dict[str, Callable[..., Any]] = {}
        self.providers: dict[str, InlineCompletionProvider] = {}
        self.suggestion: str | None = None
        self.finished = False

    def register_inline_completion_provider(self, language_id: str, provider: InlineCompletionProvider) -> Callable[[], None]:
        self.providers[language_id] = provider
        return lambda: self.providers.pop(language_id, None)

    def register_command(self, command_id: str, callback: Callable[..., Any]) -> Callable[[], None]:
        self.commands[command_id] = callback
        return lambda: self.commands.pop(command_id, None)

    def trigger_inline_suggest(self) -> None:
        provider = self.providers.get(self.document.language_id)
        handle = provider.provide(self.document, self.position) if provider is not None else None
        if handle is None:
            self._finish(None)
            return
        handle.add_done_callback(self._on_suggestions)

    def show_status(self, message: str, level: str = "info") -> None:
        print(f"[{level}] {message}", file=sys.stderr)

    def set_busy(self, busy: bool, message: str = "") -> None:
        if busy and message:
            print(message, file=sys.stderr)

    def log(self, message: str) -> None:
        if self.verbose:
            print(f"[log] {message}", file=sys.stderr)

    def _on_suggestions(self, future: Future) -> None:
        items = future.result()
        self._finish(items[0].insert_text if items else None)

    def _finish(self, text: str | None) -> None:
        self.suggestion = text
        self.finished = True
        # Done callbacks may arrive before the event loop starts.
        QTimer.singleShot(0, QCoreApplication.quit)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="complementry", description="Fetch one AI continuation for a document.")
    parser.add_argument("file", help="Document to continue.")
    parser.add_argument("--line", type=int, default=None, help="Zero-based cursor line (default: end of file).")
    parser.add_argument("--column", type=int, default=0, help="Zero-based cursor column.")
    parser.add_argument("--config", default=None, help="JSON settings file with a 'complementry' section.")
    parser.add_argument("--context", action="append", default=[], help="Context file to include (repeatable).")
    parser.add_argument("--template", default=None, help="Prompt template override for this document.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Print diagnostics.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)

    store = JsonSettingsStore(args.config)
    try:
        store.load(strict=True)
    except SettingsStoreError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 2

    try:
        document = TextDocument.from_path(args.file)
    except (OSError, UnicodeDecodeError) as exc:
        print(f"[error] Could not open '{args.file}': {exc}", file=sys.stderr)
        return 2

    if args.line is None:
        position = document.position_at(len(document.text))
    else:
        position = Position(line=max(0, args.line), character=max(0, args.column))

    app = QCoreApplication.instance() or QCoreApplication([sys.argv[0]])
    host = ConsoleEditorHost(document, position, verbose=args.verbose)
    extension = ComplementryExtension(host)
    extension.activate(store.section())

    if args.template is not None:
        extension.settings_store.set_prompt_template(document.uri, args.template)
    if args.context:
        host.commands[ADD_CONTEXT_FILE](document, [os.path.abspath(path) for path in args.context])

    generation = host.commands[TRIGGER_COMPLETION](document, position)
    if generation is not None and not host.finished:
        app.exec()

    extension.deactivate()
    if host.suggestion is None:
        return 1
    print(host.suggestion)
    return 0


if __name__ == "__main__":
    sys.exit(main())
