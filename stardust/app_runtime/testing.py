"""Fixtures for building apps in tests and local experiments."""

from __future__ import annotations

import time
from collections.abc import Callable

from stardust.app_runtime.app import App
from stardust.app_runtime.config import AppRuntimeConfig
from stardust.app_runtime.contracts import STATUS_READY, ProcessParams
from stardust.app_runtime.process import Process
from stardust.app_runtime.wire import WireDialer
from stardust.namespace.base import Folder
from stardust.namespace.context import Context
from stardust.namespace.inmem import MemFile, MemFolder, ReadOnlyFolder


def routines_folder(routines: dict[str, str], ext: str = "lua") -> MemFolder:
    folder = MemFolder("routines")
    for name, source in routines.items():
        folder.put(f"{name}.{ext}", MemFile(f"{name}.{ext}", source))
    return folder


def make_app(
    routines: dict[str, str],
    *,
    config: AppRuntimeConfig | None = None,
    dialer: WireDialer | None = None,
    app_name: str = "demo",
) -> App:
    """A Ready app with fresh state/export mounts and the given routines."""
    config = config or AppRuntimeConfig(drain_poll_s=0.05)
    root = MemFolder.of(app_name, MemFolder("state"), MemFolder("export"))
    source = MemFolder.of(app_name, routines_folder(routines, config.routine_ext))
    root.put("source", ReadOnlyFolder(source, "source"))
    app = App(
        app_name,
        root,
        Context(f"app:/~{app_name}", root),
        config=config,
        dialer=dialer or WireDialer(),
    )
    app.status = STATUS_READY
    return app


def run_routine(app: App, routine_name: str, input: Folder | None = None, timeout: float = 5.0) -> Process:
    """Spawn a routine and block until it finishes."""
    process = app.start_routine(ProcessParams(routine_name=routine_name, input=input))
    if process is None:
        raise RuntimeError(f"{app.app_name} rejected {routine_name}")
    if not process.wait(timeout):
        raise RuntimeError(f"{routine_name} did not finish, status {process.status}")
    return process


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
