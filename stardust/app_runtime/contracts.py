"""Contracts shared by the process engine: spawn requests, statuses, errors."""

from __future__ import annotations

from dataclasses import dataclass

from stardust.namespace.base import Folder

STATUS_PENDING = "Pending"
STATUS_READY = "Ready"
STATUS_RUNNING = "Running"
STATUS_STOPPING = "Stopping"
STATUS_STOPPED = "Stopped"
STATUS_COMPLETED = "Completed"
STATUS_ABORTED = "Aborted"

_TERMINAL_PREFIXES = ("Terminated:", "Failed:")

# App statuses under which new routines may be spawned.
SPAWNABLE_STATUSES = frozenset({STATUS_READY, STATUS_PENDING})


def is_terminal(status: str) -> bool:
    """True once a process status can no longer change."""
    return status in (STATUS_COMPLETED, STATUS_ABORTED) or status.startswith(_TERMINAL_PREFIXES)


def terminated(message: str) -> str:
    return f"Terminated: {message}"


def failed(reason: str) -> str:
    return f"Failed: {reason}"


class SyscallError(RuntimeError):
    """Raised inside a syscall; unwinds the whole routine."""


class AbortRequested(SyscallError):
    """Cooperative cancellation observed at a syscall boundary."""


@dataclass(frozen=True)
class ProcessParams:
    """Spawn request for one routine."""

    routine_name: str
    parent_id: str = ""
    input: Folder | None = None
