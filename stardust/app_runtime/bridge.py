"""Syscall bridge: the ``ctx`` table a routine talks to.

Every syscall checks the owning process for a pending abort before it
touches anything; suspending syscalls check again once they resume.
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from loguru import logger
from lupa import LuaRuntime, lua_type

from stardust.app_runtime.contracts import (
    STATUS_RUNNING,
    AbortRequested,
    ProcessParams,
    SyscallError,
)
from stardust.app_runtime.handles import ContextHandle, HandleArena
from stardust.app_runtime.marshal import (
    UnrepresentableEntryError,
    ValueMarshaler,
    script_type,
)
from stardust.app_runtime.path_resolver import LuaPathResolver
from stardust.namespace.base import Folder, String
from stardust.namespace.context import Context
from stardust.namespace.enumeration import Enumerator
from stardust.namespace.toolbox import mkdirp as ensure_folders
from stardust.utils.helpers import format_number, rfc3339, rfc3339_nano, split_path

if TYPE_CHECKING:
    from stardust.app_runtime.process import Process

_FREEZE_LUA = """
function(root)
  local function freeze(t)
    for k, v in pairs(t) do
      if type(v) == "table" then t[k] = freeze(v) end
    end
    return setmetatable({}, {
      __index = t,
      __newindex = function() error("input is read-only", 2) end,
      __pairs = function() return next, t, nil end,
      __len = function() return #t end,
    })
  end
  return freeze(root)
end
"""

_SANDBOX_LUA = """
os = nil
io = nil
debug = nil
package = nil
require = nil
dofile = nil
loadfile = nil
load = nil
"""


class MalformedInputError(SyscallError):
    """Spawn input could not be exposed to Lua."""


def _deny_attribute_access(obj: Any, attr_name: str, is_setting: bool) -> str:
    raise AttributeError(f"access to {attr_name!r} is not allowed")


def new_lua_runtime(sandbox: bool = False) -> LuaRuntime:
    """Fresh Lua state with no route back into Python internals."""
    lua = LuaRuntime(
        unpack_returned_tuples=True,
        register_eval=False,
        register_builtins=False,
        attribute_filter=_deny_attribute_access,
    )
    if sandbox:
        lua.execute(_SANDBOX_LUA)
    return lua


def syscall(name: str, *, suspends: bool = False) -> Callable:
    """Mark a bridge method as the ``ctx.<name>`` syscall."""

    def decorate(method: Callable) -> Callable:
        @functools.wraps(method)
        def wrapper(self: "SyscallBridge", *args: Any) -> Any:
            self.process.check_health()
            if not suspends:
                return method(self, *args)
            try:
                result = method(self, *args)
            except AbortRequested:
                raise
            except Exception as exc:
                # an abort requested while suspended outranks the call's own error
                if self.process.abort_requested:
                    try:
                        self.process.check_health()
                    except AbortRequested as abort:
                        raise abort from exc
                raise
            self.process.check_health()
            return result

        wrapper.syscall_name = name  # type: ignore[attr-defined]
        return wrapper

    return decorate


class SyscallBridge:
    """Implements the syscalls for one process and its Lua runtime."""

    def __init__(self, process: "Process", lua: LuaRuntime):
        self.process = process
        self.app = process.app
        self.lua = lua
        self.arena = HandleArena()
        self.marshal = ValueMarshaler(lua, self.arena)
        self.paths = LuaPathResolver(self.arena, self.app.ctx)
        self.log = logger.bind(
            app=self.app.app_name,
            pid=process.process_id,
            routine=process.params.routine_name,
        )

    def install(self) -> None:
        """Expose ``ctx`` and, when the spawn carried input, ``input``."""
        table = self.lua.table()
        for attr_name, attr in vars(type(self)).items():
            name = getattr(attr, "syscall_name", None)
            if name:
                table[name] = getattr(self, attr_name)
        globals_ = self.lua.globals()
        globals_["ctx"] = table

        if self.process.params.input is not None:
            globals_["input"] = self._build_input(self.process.params.input)

    def _build_input(self, folder: Folder) -> Any:
        table = self.lua.table()
        for key in folder.children():
            child = folder.fetch(key)
            try:
                table[key] = self.marshal.to_lua(child)
            except UnrepresentableEntryError as exc:
                raise MalformedInputError(f"input entry {key} wasn't a recognizable type") from exc
        freeze = self.lua.eval(_FREEZE_LUA)
        return freeze(table)

    def _wrap(self, ctx: Context) -> ContextHandle:
        return self.arena.wrap(ctx)

    # ctx.startRoutine(name[, inputTable])
    @syscall("startRoutine")
    def start_routine(self, name: Any = None, input_table: Any = None, *rest: Any) -> None:
        if not isinstance(name, str) or not name:
            raise SyscallError("startRoutine() needs a routine name")
        folder = None
        if input_table is not None:
            if lua_type(input_table) != "table":
                raise SyscallError(f"startRoutine() input must be a table, got {script_type(input_table)}")
            self.log.debug("Reading Lua table for routine input {}", name)
            folder = self.marshal.to_entry(input_table, "input")

        params = ProcessParams(routine_name=name, parent_id=self.process.process_id, input=folder)
        child = self.app.start_routine(params)
        if child is None:
            self.log.info("Lua routine {} was not started, app is {}", name, self.app.status)
        else:
            self.log.info("Lua started routine {} as pid {}", name, child.process_id)

    # ctx.mkdirp([pathRoot,] pathParts string...) Context
    @syscall("mkdirp")
    def mkdirp(self, *args: Any) -> ContextHandle:
        ctx, path = self.paths.resolve(args)
        self.log.debug("Lua mkdirp to {} from {}", path, ctx.name())

        if not ensure_folders(ctx, path):
            raise SyscallError(f"mkdirp() couldn't create folders for path {path}")
        folder = ctx.get_folder(path)
        if folder is None:
            raise SyscallError(f"mkdirp() couldn't find folder at path {path}")
        return self._wrap(Context(ctx.name() + path, folder))

    # ctx.import(wireUri) Context
    @syscall("import", suspends=True)
    def import_wire(self, wire_uri: Any = None, *rest: Any) -> ContextHandle | None:
        if not isinstance(wire_uri, str):
            raise SyscallError(f"import() needs a wire URI string, got {script_type(wire_uri)}")
        self.log.info("Lua opening wire {}", wire_uri)
        self.process.set_status(f"Waiting: Dialing {wire_uri}")
        try:
            wire = self.app.dialer.open_wire(wire_uri) if self.app.dialer else None
        finally:
            self.process.set_status(STATUS_RUNNING)

        if wire is None:
            self.log.info("Lua failed to open wire {}", wire_uri)
            return None
        self.log.info("Lua successfully opened wire {}", wire_uri)
        return self._wrap(Context(wire_uri, wire))

    # ctx.read([pathRoot,] pathParts string...) string
    @syscall("read")
    def read(self, *args: Any) -> str:
        ctx, path = self.paths.resolve(args)
        self.log.debug("Lua read from {} from {}", path, ctx.name())

        string = ctx.get_string(path)
        if string is None:
            self.log.debug("Lua read() found no string at path {}", path)
            return ""
        return string.get()

    # ctx.readDir([pathRoot,] pathParts string...) table
    @syscall("readDir")
    def read_dir(self, *args: Any) -> Any:
        ctx, path = self.paths.resolve(args)
        self.log.debug("Lua readdir on {} from {}", path, ctx.name())

        folder = ctx.get_folder(path)
        if folder is None:
            self.log.debug("Lua readDir() found no folder at path {}", path)
            return self.lua.table()
        return self.marshal.to_lua(folder)

    # ctx.store([pathRoot,] pathParts string..., value any) bool
    @syscall("store")
    def store(self, *args: Any) -> bool:
        if not args or args[-1] is None:
            raise SyscallError("store() can't store nils, use ctx.unlink()")
        ctx, path = self.paths.resolve(args[:-1])
        parts = split_path(path)
        entry = self.marshal.to_entry(args[-1], parts[-1] if parts else "value")
        if entry is None:
            raise SyscallError("store() can't store nils, use ctx.unlink()")

        self.log.debug("Lua store to {} from {} of {!r}", path, ctx.name(), entry)
        return ctx.put(path, entry)

    # ctx.unlink([pathRoot,] pathParts string...) bool
    @syscall("unlink")
    def unlink(self, *args: Any) -> bool:
        ctx, path = self.paths.resolve(args)
        self.log.debug("Lua unlink of {} from {}", path, ctx.name())
        return ctx.put(path, None)

    # ctx.invoke([pathRoot,] pathParts string..., input any) string|Context
    @syscall("invoke", suspends=True)
    def invoke(self, *args: Any) -> Any:
        input_entry = self.marshal.to_entry(args[-1], "input") if args else None
        ctx, path = self.paths.resolve(args[:-1])
        self.process.set_status(
            f"Blocked: Invoking {ctx.name()}{path} since {rfc3339_nano()}"
        )
        self.log.debug("Lua invoke of {} from {} with input {!r}", path, ctx.name(), input_entry)

        function = ctx.get_function(f"{path}/invoke")
        if function is None:
            raise SyscallError(f"Tried to invoke function {ctx.name()}{path} but did not exist")

        output = function.invoke(self.app.ctx, input_entry)
        self.process.set_status(STATUS_RUNNING)

        if output is None:
            return None
        if isinstance(output, String):
            return output.get()
        return self._wrap(Context("output:/", output))

    # ctx.enumerate([pathRoot,] pathParts string...) {name, path, type, stringValue}[]
    @syscall("enumerate")
    def enumerate_entries(self, *args: Any) -> Any:
        ctx, path = self.paths.resolve(args)
        self.log.debug("Lua enumeration on {} from {}", path, ctx.name())

        start = ctx.get(path)
        if start is None:
            raise SyscallError(f"enumerate() couldn't find path {path}")

        results = self.lua.table()
        for idx, res in enumerate(Enumerator(self.app.ctx, start, 1).run()):
            # the first result is the start entry itself
            if idx == 0:
                continue
            results[idx] = self.lua.table_from({
                "name": res.name.rsplit("/", 1)[-1],
                "path": res.name,
                "type": res.type,
                "stringValue": res.string_value,
            })
        return results

    # ctx.log(messageParts any...)
    @syscall("log")
    def log_line(self, *args: Any) -> None:
        parts = []
        for value in args:
            if isinstance(value, str):
                parts.append(value)
            elif isinstance(value, (int, float)) and not isinstance(value, bool):
                parts.append(format_number(value))
            elif isinstance(value, ContextHandle):
                ctx = self.arena.lookup(value)
                parts.append(ctx.name() if ctx else "[lua userdata]")
            else:
                parts.append(f"[lua {script_type(value)}]")
        self.log.info("Lua log: {}", " ".join(parts))

    # ctx.sleep(milliseconds int)
    @syscall("sleep", suspends=True)
    def sleep(self, milliseconds: Any = None, *rest: Any) -> None:
        if isinstance(milliseconds, float) and milliseconds.is_integer():
            milliseconds = int(milliseconds)
        if not isinstance(milliseconds, int) or isinstance(milliseconds, bool):
            raise SyscallError(f"sleep() needs integer milliseconds, got {script_type(milliseconds)}")

        self.process.set_status(f"Sleeping: Since {rfc3339_nano()}")
        self.process.pause(max(milliseconds, 0) / 1000)
        self.process.set_status(STATUS_RUNNING)

    # ctx.timestamp() string
    @syscall("timestamp")
    def timestamp(self, *args: Any) -> str:
        return rfc3339()

    # ctx.splitString(text, delimiter) string[]
    @syscall("splitString")
    def split_string(self, text: Any = None, delimiter: Any = None, *rest: Any) -> Any:
        if not isinstance(text, str) or not isinstance(delimiter, str):
            raise SyscallError("splitString() needs a string and a delimiter string")
        parts = list(text) if delimiter == "" else text.split(delimiter)
        return self.lua.table(*parts)
