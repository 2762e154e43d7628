"""Resolve syscall arguments into a (Context, path) pair."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from stardust.app_runtime.contracts import SyscallError
from stardust.app_runtime.handles import ContextHandle, HandleArena
from stardust.app_runtime.marshal import script_type
from stardust.namespace.context import Context
from stardust.utils.helpers import join_path


class InvalidPathArgumentError(SyscallError):
    """A path position held something other than a string."""


class LuaPathResolver:
    """Reads ``[handle,] segment...`` argument lists.

    A leading context handle picks the base Context; otherwise the app root
    is used. Segments are joined with ``/`` under a leading ``/``; no
    segments resolves to the base itself.
    """

    def __init__(self, arena: HandleArena, default: Context):
        self.arena = arena
        self.default = default

    def resolve(self, args: Sequence[Any]) -> tuple[Context, str]:
        args = list(args)
        ctx = self.default
        if args and isinstance(args[0], ContextHandle):
            handle = args.pop(0)
            found = self.arena.lookup(handle)
            if found is None:
                raise InvalidPathArgumentError(f"unknown context handle {handle!r}")
            ctx = found

        parts: list[str] = []
        for idx, arg in enumerate(args, start=1):
            if not isinstance(arg, str):
                raise InvalidPathArgumentError(
                    f"path argument #{idx} must be a string, got {script_type(arg)}"
                )
            parts.append(arg)
        return ctx, join_path(*parts)
