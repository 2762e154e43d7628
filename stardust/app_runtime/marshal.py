"""Value marshaling between Lua values and namespace entries.

Lua to entry:

    nil            -> no entry
    string         -> String tagged "string"
    number         -> String tagged "number", canonical decimal text
    boolean        -> String tagged "boolean", "yes" / "no"
    table          -> Folder, children converted recursively
    context handle -> the referenced entry itself (by reference)

Entry to Lua:

    None   -> nil
    String -> string (tag dropped)
    Folder -> table keyed by child name

Tags are written but never read back, so ``42`` reads back as ``"42"``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loguru import logger
from lupa import LuaRuntime, lua_type

from stardust.app_runtime.contracts import SyscallError
from stardust.app_runtime.handles import ContextHandle, HandleArena
from stardust.namespace.base import Entry, Folder, String
from stardust.namespace.inmem import MemFolder, MemString
from stardust.utils.helpers import format_number


class UnsupportedValueError(SyscallError):
    """A Lua value has no entry representation."""


class UnrepresentableEntryError(SyscallError):
    """An entry has no Lua representation."""


def script_type(value: Any) -> str:
    """Lua type name of a value as seen from Python."""
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, (str, bytes)):
        return "string"
    return lua_type(value) or "userdata"


# Iterates with pairs() so read-only proxies (``__pairs``) expose their data.
_ENTRIES_LUA = """
local pairs = pairs
return function(t)
  local keys, values, n = {}, {}, 0
  for k, v in pairs(t) do
    n = n + 1
    keys[n] = k
    values[n] = v
  end
  return keys, values, n
end
"""


class ValueMarshaler:
    """Converts values for one Lua runtime and its handle arena."""

    def __init__(self, lua: LuaRuntime, arena: HandleArena):
        self.lua = lua
        self.arena = arena
        self._entries = lua.execute(_ENTRIES_LUA)

    def _table_items(self, table: Any) -> list[tuple[Any, Any]]:
        keys, values, count = self._entries(table)
        return [(keys[i], values[i]) for i in range(1, int(count) + 1)]

    def to_entry(self, value: Any, name: str = "input") -> Entry | None:
        if value is None:
            return None
        if isinstance(value, bool):
            return MemString(name, "yes" if value else "no", "boolean")
        if isinstance(value, (int, float)):
            return MemString(name, format_number(value), "number")
        if isinstance(value, str):
            return MemString(name, value, "string")
        if isinstance(value, bytes):
            return MemString(name, value.decode("utf-8", errors="replace"), "string")
        if isinstance(value, ContextHandle):
            ctx = self.arena.lookup(value)
            if ctx is None:
                raise UnsupportedValueError("Stardust received a stale context handle")
            logger.debug("Lua passed native context {}", ctx.name())
            return ctx.get(".")
        if lua_type(value) == "table":
            folder = MemFolder(name)
            for key, item in self._table_items(value):
                key_text = self._key_text(key)
                child = self.to_entry(item, key_text)
                if child is not None:
                    folder.put(key_text, child)
            return folder
        raise UnsupportedValueError(
            f"Stardust received unmanageable thing of type {script_type(value)}"
        )

    def to_lua(self, entry: Entry | None) -> Any:
        if entry is None:
            return None
        if isinstance(entry, String):
            return entry.get()
        if isinstance(entry, Folder):
            table = self.lua.table()
            for key in entry.children():
                child = entry.fetch(key)
                if child is not None:
                    table[key] = self.to_lua(child)
            return table
        raise UnrepresentableEntryError(
            f"Entry {entry.name} of type {entry.kind.value} can't be represented in Lua"
        )

    @staticmethod
    def _key_text(key: Any) -> str:
        if isinstance(key, str):
            return key
        if isinstance(key, (int, float)) and not isinstance(key, bool):
            return format_number(key)
        raise UnsupportedValueError(f"Stardust can't use a {script_type(key)} as a table key")


def input_from_mapping(name: str, data: Mapping[str, Any]) -> MemFolder:
    """Build a spawn input folder from host-side Python data.

    Lists become folders keyed ``"1".."n"``, the way Lua arrays marshal.
    """
    folder = MemFolder(name)
    for key, value in data.items():
        key = str(key)
        if value is None:
            continue
        if isinstance(value, Mapping):
            folder.put(key, input_from_mapping(key, value))
        elif isinstance(value, (list, tuple)):
            items = {str(idx): item for idx, item in enumerate(value, start=1)}
            folder.put(key, input_from_mapping(key, items))
        elif isinstance(value, bool):
            folder.put(key, MemString(key, "yes" if value else "no", "boolean"))
        elif isinstance(value, (int, float)):
            folder.put(key, MemString(key, format_number(value), "number"))
        else:
            folder.put(key, MemString(key, str(value), "string"))
    return folder
