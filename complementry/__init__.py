"""Complementry: user-triggered AI continuations for markdown documents."""

__version__ = "0.1.0"
