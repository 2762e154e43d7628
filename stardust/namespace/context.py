"""Path-resolving facade over a namespace root."""

from __future__ import annotations

from stardust.namespace.base import Entry, File, Folder, Function, Link, String
from stardust.utils.helpers import split_path

MAX_LINK_HOPS = 16


class Context:
    """Resolves slash paths against one root entry.

    Lookups never raise on absence; they return ``None``. Links are followed
    relative to the root, up to ``MAX_LINK_HOPS`` per lookup.
    """

    def __init__(self, name: str, root: Entry):
        self._name = name
        self._root = root

    @property
    def root(self) -> Entry:
        return self._root

    def name(self) -> str:
        return self._name

    def get(self, path: str) -> Entry | None:
        return self._walk(split_path(path), hops=0)

    def get_string(self, path: str) -> String | None:
        entry = self.get(path)
        return entry if isinstance(entry, String) else None

    def get_folder(self, path: str) -> Folder | None:
        entry = self.get(path)
        return entry if isinstance(entry, Folder) else None

    def get_file(self, path: str) -> File | None:
        entry = self.get(path)
        return entry if isinstance(entry, File) else None

    def get_function(self, path: str) -> Function | None:
        entry = self.get(path)
        return entry if isinstance(entry, Function) else None

    def put(self, path: str, entry: Entry | None) -> bool:
        """Write or delete (``entry=None``) the entry at ``path``."""
        parts = split_path(path)
        if not parts:
            return False
        parent = self._walk(parts[:-1], hops=0)
        if not isinstance(parent, Folder):
            return False
        return parent.put(parts[-1], entry)

    def _walk(self, parts: list[str], hops: int) -> Entry | None:
        entry: Entry | None = self._root
        for part in parts:
            entry = self._follow(entry, hops)
            if not isinstance(entry, Folder):
                return None
            entry = entry.fetch(part)
            if entry is None:
                return None
        return self._follow(entry, hops)

    def _follow(self, entry: Entry | None, hops: int) -> Entry | None:
        while isinstance(entry, Link):
            if hops >= MAX_LINK_HOPS:
                return None
            hops += 1
            entry = self._walk(split_path(entry.target), hops)
        return entry

    def __repr__(self) -> str:
        return f"Context({self._name!r})"
