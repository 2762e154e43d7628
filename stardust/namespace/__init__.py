"""Typed namespace tree: entries, contexts, and in-memory storage."""

from stardust.namespace.base import Entry, EntryKind, File, Folder, Function, Link, String
from stardust.namespace.context import Context
from stardust.namespace.enumeration import EnumEntry, Enumerator
from stardust.namespace.inmem import (
    MemFile,
    MemFolder,
    MemFunction,
    MemLink,
    MemString,
    ReadOnlyFolder,
    function_folder,
)
from stardust.namespace.toolbox import mkdirp

__all__ = [
    "Context",
    "EnumEntry",
    "Entry",
    "EntryKind",
    "Enumerator",
    "File",
    "Folder",
    "Function",
    "Link",
    "MemFile",
    "MemFolder",
    "MemFunction",
    "MemLink",
    "MemString",
    "ReadOnlyFolder",
    "String",
    "function_folder",
    "mkdirp",
]
