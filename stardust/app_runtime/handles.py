"""Opaque context handles handed to Lua.

Lua never holds a Context directly. It holds a ``ContextHandle`` token that
the owning bridge's ``HandleArena`` maps back to a Context.
"""

from __future__ import annotations

import itertools
import threading

from stardust.namespace.context import Context


class ContextHandle:
    """Token standing for a Context owned by a HandleArena."""

    __slots__ = ("token", "arena_id")

    def __init__(self, token: int, arena_id: int):
        self.token = token
        self.arena_id = arena_id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ContextHandle):
            return NotImplemented
        return (self.token, self.arena_id) == (other.token, other.arena_id)

    def __hash__(self) -> int:
        return hash((self.token, self.arena_id))

    def __repr__(self) -> str:
        return f"ContextHandle({self.arena_id}:{self.token})"


_arena_ids = itertools.count()


class HandleArena:
    """Per-process table of Contexts reachable from Lua."""

    def __init__(self) -> None:
        self.arena_id = next(_arena_ids)
        self._tokens = itertools.count(1)
        self._contexts: dict[int, Context] = {}
        self._lock = threading.Lock()

    def wrap(self, ctx: Context) -> ContextHandle:
        with self._lock:
            token = next(self._tokens)
            self._contexts[token] = ctx
        return ContextHandle(token, self.arena_id)

    def lookup(self, handle: ContextHandle) -> Context | None:
        """Context behind ``handle``, or None for a foreign or unknown handle."""
        if handle.arena_id != self.arena_id:
            return None
        with self._lock:
            return self._contexts.get(handle.token)

    def __len__(self) -> int:
        return len(self._contexts)
