from __future__ import annotations

import sys

import click


def read_stdin() -> str | None:
    if sys.stdin is None or sys.stdin.isatty():
        return None
    data = sys.stdin.read().strip()
    return data or None


def open_editor() -> str | None:
    content = click.edit("", extension=".md")
    if content is None:
        return None
    return content.strip() or None


def read_content(positional: str | None) -> str | None:
    """Reply content comes from stdin, then the argument, then $EDITOR."""
    content = read_stdin()
    if not content and positional:
        content = positional
    if not content:
        content = open_editor()
    if not content or not content.strip():
        return None
    return content
