"""Entry model for the namespace tree.

Every node is one of five variants. Absence is plain ``None``; no variant
stands for "missing".
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from stardust.namespace.context import Context


class EntryKind(str, Enum):
    """Variant tag carried by every entry class."""

    STRING = "String"
    FOLDER = "Folder"
    FILE = "File"
    FUNCTION = "Function"
    LINK = "Link"


class Entry(ABC):
    """A named node in the namespace."""

    kind: ClassVar[EntryKind]

    @property
    @abstractmethod
    def name(self) -> str:
        ...


class String(Entry):
    """Text leaf with a free-form type tag (write-only metadata)."""

    kind = EntryKind.STRING

    @property
    def tag(self) -> str:
        return ""

    @abstractmethod
    def get(self) -> str:
        ...


class Folder(Entry):
    """Mutable container of named children."""

    kind = EntryKind.FOLDER

    @abstractmethod
    def children(self) -> list[str]:
        """Child names; order is not guaranteed."""

    @abstractmethod
    def fetch(self, name: str) -> Entry | None:
        ...

    @abstractmethod
    def put(self, name: str, entry: Entry | None) -> bool:
        """Upsert ``entry`` under ``name``; ``None`` deletes."""


class File(Entry):
    """Byte blob."""

    kind = EntryKind.FILE

    @abstractmethod
    def size(self) -> int:
        ...

    @abstractmethod
    def read(self, offset: int = 0, length: int | None = None) -> bytes:
        ...


class Function(Entry):
    """Invokable entry; invocation may block."""

    kind = EntryKind.FUNCTION

    @abstractmethod
    def invoke(self, ctx: "Context | None", input: Entry | None) -> Entry | None:
        ...


class Link(Entry):
    """Pointer to another path inside the same root."""

    kind = EntryKind.LINK

    @property
    @abstractmethod
    def target(self) -> str:
        ...
