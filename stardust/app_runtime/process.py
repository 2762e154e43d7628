"""One routine execution and its lifecycle.

Status moves ``Pending -> Running``, may pass through transient
``Sleeping:``, ``Blocked:`` and ``Waiting:`` states inside syscalls, and ends
in exactly one terminal status: ``Completed``, ``Terminated: <error>``,
``Failed: <reason>`` or ``Aborted``. Terminal statuses are final.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from loguru import logger
from lupa import LuaError

from stardust.app_runtime.bridge import MalformedInputError, SyscallBridge, new_lua_runtime
from stardust.app_runtime.contracts import (
    STATUS_ABORTED,
    STATUS_COMPLETED,
    STATUS_PENDING,
    STATUS_RUNNING,
    AbortRequested,
    ProcessParams,
    SyscallError,
    failed,
    is_terminal,
    terminated,
)
from stardust.namespace.base import Entry, Folder
from stardust.namespace.inmem import MemString
from stardust.utils.helpers import rfc3339_nano

if TYPE_CHECKING:
    from stardust.app_runtime.app import App

_FIELDS = ("ProcessID", "ParentID", "RoutineName", "Status", "StartTime", "EndTime", "AbortTime")


class Process(Folder):
    """A routine execution, readable as a folder of status strings."""

    def __init__(self, app: "App", params: ProcessParams, process_id: str):
        self.app = app
        self.params = params
        self.process_id = process_id
        self.start_time = rfc3339_nano()
        self.end_time = ""
        self.abort_time = ""
        self._status = STATUS_PENDING
        self._status_lock = threading.Lock()
        self._abort = threading.Event()
        self._abort_observed = False
        self._done = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def name(self) -> str:
        return self.process_id

    @property
    def status(self) -> str:
        return self._status

    @property
    def finished(self) -> bool:
        """True once the worker has exited and ``end_time`` is set."""
        return self._done.is_set()

    def set_status(self, status: str) -> bool:
        with self._status_lock:
            if is_terminal(self._status):
                return False
            self._status = status
            return True

    def abort(self, stamp: str | None = None) -> bool:
        """Request cooperative cancellation. Only the first request sticks."""
        with self._status_lock:
            if self.abort_time:
                return False
            self.abort_time = stamp or rfc3339_nano()
        self._abort.set()
        return True

    @property
    def abort_requested(self) -> bool:
        return self._abort.is_set()

    def check_health(self) -> None:
        """Raise the abort sentinel if cancellation was requested."""
        if self._abort.is_set():
            self._abort_observed = True
            raise AbortRequested(f"process {self.process_id} aborted at {self.abort_time}")

    def pause(self, seconds: float) -> None:
        """Suspend the worker; an abort request cuts the pause short."""
        self._abort.wait(seconds)

    def wait(self, timeout: float | None = None) -> bool:
        return self._done.wait(timeout)

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._run,
            name=f"{self.app.app_name}:{self.process_id}:{self.params.routine_name}",
            daemon=True,
        )
        self._thread.start()

    def _run(self) -> None:
        log = logger.bind(app=self.app.app_name, pid=self.process_id)
        log.info("Starting routine {} as pid {}", self.params.routine_name, self.process_id)
        try:
            self.set_status(self._execute())
        except Exception as exc:  # noqa: BLE001
            log.exception("Routine {} crashed: {}", self.params.routine_name, exc)
            self.set_status(terminated(str(exc)))
        finally:
            self.end_time = rfc3339_nano()
            self._done.set()
        log.info("Lua routine {} {}", self.params.routine_name, self.status)

    def _execute(self) -> str:
        """Run the routine and return the terminal status it earned."""
        source_path = self.app.config.routine_path(self.params.routine_name)
        source = self.app.ctx.get_file(source_path)
        if source is None:
            return failed(f"file {source_path} not found")
        source_text = source.read().decode("utf-8", errors="replace")

        lua = new_lua_runtime(sandbox=self.app.config.sandbox)
        bridge = SyscallBridge(self, lua)
        try:
            bridge.install()
        except MalformedInputError as exc:
            return failed(str(exc))

        if self._abort.is_set():
            return STATUS_ABORTED

        self.set_status(STATUS_RUNNING)
        try:
            lua.execute(source_text)
        except AbortRequested:
            return STATUS_ABORTED
        except (SyscallError, LuaError) as exc:
            status = terminated(str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Routine {} raised {}: {}", self.params.routine_name, type(exc).__name__, exc)
            status = terminated(str(exc))
        else:
            status = STATUS_COMPLETED

        # an observed abort wins even if the script swallowed it with pcall
        if self._abort_observed:
            return STATUS_ABORTED
        return status

    # Folder view: read-only status strings

    def children(self) -> list[str]:
        return list(_FIELDS)

    def fetch(self, name: str) -> Entry | None:
        values = {
            "ProcessID": self.process_id,
            "ParentID": self.params.parent_id,
            "RoutineName": self.params.routine_name,
            "Status": self.status,
            "StartTime": self.start_time,
            "EndTime": self.end_time,
            "AbortTime": self.abort_time,
        }
        if name not in values:
            return None
        return MemString(name, values[name])

    def put(self, name: str, entry: Entry | None) -> bool:
        return False

    def __repr__(self) -> str:
        return f"Process({self.app.app_name}:{self.process_id} {self.params.routine_name!r} {self.status!r})"
