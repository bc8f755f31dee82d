from .editor_host import EditorHost, InlineCompletionProvider
from .types import InlineCompletionItem, Position, Range, TextDocument

__all__ = [
    "EditorHost",
    "InlineCompletionItem",
    "InlineCompletionProvider",
    "Position",
    "Range",
    "TextDocument",
]
