"""In-memory entry implementations."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

from stardust.namespace.base import Entry, File, Folder, Function, Link, String

if TYPE_CHECKING:
    from stardust.namespace.context import Context

FunctionImpl = Callable[["Context | None", "Entry | None"], "Entry | None"]


class MemString(String):
    def __init__(self, name: str, value: str, tag: str = ""):
        self._name = name
        self._value = value
        self._tag = tag

    @property
    def name(self) -> str:
        return self._name

    @property
    def tag(self) -> str:
        return self._tag

    def get(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"MemString({self._name!r}, {self._value!r})"


class MemFolder(Folder):
    """Folder backed by a dict; child operations are atomic."""

    def __init__(self, name: str):
        self._name = name
        self._children: dict[str, Entry] = {}
        self._lock = threading.Lock()

    @classmethod
    def of(cls, name: str, *entries: Entry) -> "MemFolder":
        folder = cls(name)
        for entry in entries:
            folder.put(entry.name, entry)
        return folder

    @property
    def name(self) -> str:
        return self._name

    def children(self) -> list[str]:
        with self._lock:
            return list(self._children)

    def fetch(self, name: str) -> Entry | None:
        with self._lock:
            return self._children.get(name)

    def put(self, name: str, entry: Entry | None) -> bool:
        if not name:
            return False
        with self._lock:
            if entry is None:
                self._children.pop(name, None)
            else:
                self._children[name] = entry
        return True

    def __repr__(self) -> str:
        return f"MemFolder({self._name!r}, children={self.children()!r})"


class ReadOnlyFolder(Folder):
    """Read-only view over another folder; nested folders stay read-only."""

    def __init__(self, target: Folder, name: str | None = None):
        self._target = target
        self._name = name or target.name

    @property
    def name(self) -> str:
        return self._name

    def children(self) -> list[str]:
        return self._target.children()

    def fetch(self, name: str) -> Entry | None:
        entry = self._target.fetch(name)
        if isinstance(entry, Folder):
            return ReadOnlyFolder(entry)
        return entry

    def put(self, name: str, entry: Entry | None) -> bool:
        return False


class MemFile(File):
    def __init__(self, name: str, data: bytes | str):
        self._name = name
        self._data = data.encode("utf-8") if isinstance(data, str) else bytes(data)

    @property
    def name(self) -> str:
        return self._name

    def size(self) -> int:
        return len(self._data)

    def read(self, offset: int = 0, length: int | None = None) -> bytes:
        if length is None:
            return self._data[offset:]
        return self._data[offset:offset + length]


class MemFunction(Function):
    """Function entry wrapping a Python callable ``impl(ctx, input)``."""

    def __init__(self, name: str, impl: FunctionImpl):
        self._name = name
        self._impl = impl

    @property
    def name(self) -> str:
        return self._name

    def invoke(self, ctx: "Context | None", input: Entry | None) -> Entry | None:
        return self._impl(ctx, input)


class MemLink(Link):
    def __init__(self, name: str, target: str):
        self._name = name
        self._target = target

    @property
    def name(self) -> str:
        return self._name

    @property
    def target(self) -> str:
        return self._target


def function_folder(name: str, impl: FunctionImpl) -> MemFolder:
    """Folder exposing ``impl`` at ``<name>/invoke``, the callable layout."""
    return MemFolder.of(name, MemFunction("invoke", impl))
