"""Depth-bounded tree enumeration."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from stardust.namespace.base import Entry, Folder, Link, String
from stardust.namespace.context import Context


@dataclass(frozen=True)
class EnumEntry:
    """One enumerated node. ``name`` is the slash path below the start entry."""

    name: str
    type: str
    string_value: str


class Enumerator:
    """Walks ``start`` depth-first, yielding the start entry itself first.

    Children are visited in sorted name order; ``max_depth`` of 1 lists the
    start entry and its direct children.
    """

    def __init__(self, ctx: Context | None, start: Entry, max_depth: int = 1):
        self.ctx = ctx
        self.start = start
        self.max_depth = max_depth

    def run(self) -> Iterator[EnumEntry]:
        yield from self._visit(self.start, "", 0)

    def _visit(self, entry: Entry, name: str, depth: int) -> Iterator[EnumEntry]:
        yield EnumEntry(name=name, type=entry.kind.value, string_value=_string_value(entry))
        if depth >= self.max_depth or not isinstance(entry, Folder):
            return
        for child_name in sorted(entry.children()):
            child = entry.fetch(child_name)
            if child is None:
                continue
            path = f"{name}/{child_name}" if name else child_name
            yield from self._visit(child, path, depth + 1)


def _string_value(entry: Entry) -> str:
    if isinstance(entry, String):
        return entry.get()
    if isinstance(entry, Link):
        return entry.target
    return ""
