"""Per-app process registry with spawn, stop and restart."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from loguru import logger

from stardust.app_runtime.config import AppRuntimeConfig
from stardust.app_runtime.contracts import (
    SPAWNABLE_STATUSES,
    STATUS_PENDING,
    STATUS_READY,
    STATUS_STOPPED,
    STATUS_STOPPING,
    ProcessParams,
    is_terminal,
)
from stardust.app_runtime.process import Process
from stardust.namespace.base import Entry, Folder
from stardust.namespace.context import Context
from stardust.namespace.inmem import MemFolder, MemString
from stardust.utils.helpers import rfc3339_nano

if TYPE_CHECKING:
    from stardust.app_runtime.session import Session
    from stardust.app_runtime.wire import WireDialer


class ProcessRegistry(MemFolder):
    """Processes of one registry generation, keyed by pid."""

    def __init__(self) -> None:
        super().__init__("processes")

    def all(self) -> list[Process]:
        found = []
        for pid in self.children():
            entry = self.fetch(pid)
            if isinstance(entry, Process):
                found.append(entry)
        return found

    def live(self) -> list[Process]:
        return [p for p in self.all() if not is_terminal(p.status)]


class App(Folder):
    """A tenant: its namespace mount plus the processes running against it.

    Spawning and restarting are serialized by ``_lock``. Syscalls never take
    it, apart from ``startRoutine`` which goes through ``start_routine``.
    """

    def __init__(
        self,
        app_name: str,
        namespace: MemFolder,
        ctx: Context,
        *,
        config: AppRuntimeConfig | None = None,
        session: "Session | None" = None,
        dialer: "WireDialer | None" = None,
    ):
        self.app_name = app_name
        self.namespace = namespace
        self.ctx = ctx
        self.config = config or AppRuntimeConfig()
        self.session = session
        self.dialer = dialer
        self.status = STATUS_PENDING
        self.processes = ProcessRegistry()
        self.namespace.put("processes", self.processes)
        self._next_pid = 0
        self._lock = threading.RLock()
        self._restart_guard = threading.Lock()

    @property
    def name(self) -> str:
        return self.app_name

    @property
    def next_pid(self) -> int:
        return self._next_pid

    def start_routine(self, params: ProcessParams) -> Process | None:
        """Spawn a routine without waiting for it.

        Returns None when the app is not accepting work (stopping, stopped,
        failed); the registry is left untouched in that case.
        """
        with self._lock:
            if self.status not in SPAWNABLE_STATUSES:
                logger.debug(
                    "Rejected routine {} for {}: app is {}",
                    params.routine_name,
                    self.app_name,
                    self.status,
                )
                return None
            pid = str(self._next_pid)
            self._next_pid += 1
            process = Process(self, params, pid)
            self.processes.put(pid, process)
            process.start()
        return process

    def launch(self) -> Process | None:
        return self.start_routine(ProcessParams(routine_name=self.config.launch_routine))

    def stop(self) -> None:
        """Abort and drain every live process, leaving the app Stopped."""
        with self._restart_guard:
            self._abort_and_drain()
            with self._lock:
                self.status = STATUS_STOPPED
        logger.info("StopApp: {} is stopped", self.app_name)

    def restart(self) -> str:
        """Abort and drain, reset ephemeral state, then relaunch.

        The drain has no timeout: a routine stuck outside a syscall keeps
        the app in Stopping until it finishes.
        """
        if self.status.startswith("Failed:"):
            logger.warning("RestartApp: {} has no usable mount ({})", self.app_name, self.status)
            return self.status

        with self._restart_guard:
            self._abort_and_drain()
            with self._lock:
                self._next_pid = 0
                self.processes = ProcessRegistry()
                self.namespace.put("processes", self.processes)
                self.ctx.put("state", MemFolder("state"))
                self.ctx.put("export", MemFolder("export"))

                logger.info("RestartApp: state of {} has been reset. Firing up the app again.", self.app_name)
                self.status = STATUS_READY
                self.launch()
        return "ok"

    def _abort_and_drain(self) -> None:
        with self._lock:
            if self.status == STATUS_STOPPED:
                logger.info("RestartApp: {} is already stopped", self.app_name)
                return
            self.status = STATUS_STOPPING
            logger.info("RestartApp: stopping {}", self.app_name)

            stamp = rfc3339_nano()
            running = self.processes.live()
            for process in running:
                process.abort(stamp)

        logger.info("RestartApp: aborting {} running processes", len(running))
        while True:
            still_running = [p for p in running if not p.finished]
            if not still_running:
                logger.info("RestartApp: all processes of {} have terminated.", self.app_name)
                return
            logger.info("RestartApp: {} processes still running...", len(still_running))
            still_running[0].wait(self.config.drain_poll_s)

    # Folder view: name, status, and the live registry

    def children(self) -> list[str]:
        return ["AppName", "Status", "processes"]

    def fetch(self, name: str) -> Entry | None:
        if name == "AppName":
            return MemString(name, self.app_name)
        if name == "Status":
            return MemString(name, self.status)
        if name == "processes":
            return self.processes
        return None

    def put(self, name: str, entry: Entry | None) -> bool:
        return False

    def __repr__(self) -> str:
        return f"App({self.app_name!r} {self.status!r})"
