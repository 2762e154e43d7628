"""Chart session: discovers apps and builds their namespace mounts."""

from __future__ import annotations

import threading

from loguru import logger

from stardust.app_runtime.app import App
from stardust.app_runtime.config import AppRuntimeConfig
from stardust.app_runtime.contracts import STATUS_PENDING, STATUS_READY, failed
from stardust.app_runtime.wire import WireDialer
from stardust.namespace.base import Entry, Folder
from stardust.namespace.context import Context
from stardust.namespace.inmem import MemFolder, ReadOnlyFolder
from stardust.namespace.toolbox import mkdirp


class Session:
    """Apps found under ``/apps`` of one opened chart.

    Each app gets a private mount::

        state    fresh folder, reset on restart
        export   fresh folder, reset on restart
        session  the chart root
        source   read-only view of /apps/<app>
        config   /config/<app>, created when missing
        persist  /persist/<app>, created when missing
        processes  the app's process registry
    """

    def __init__(
        self,
        chart_url: str,
        *,
        dialer: WireDialer,
        config: AppRuntimeConfig | None = None,
    ):
        self.chart_url = chart_url
        self.dialer = dialer
        self.config = config or AppRuntimeConfig()
        self.apps = MemFolder("apps")
        self.status = STATUS_PENDING
        self.root: Entry | None = None
        self.ctx: Context | None = None
        self._opened = threading.Event()

    def open(self) -> "Session":
        """Dial the chart, mount every app and launch it. Blocks."""
        try:
            self._open()
        finally:
            self._opened.set()
        return self

    def wait_opened(self, timeout: float | None = None) -> bool:
        return self._opened.wait(timeout)

    def get_app(self, app_name: str) -> App | None:
        entry = self.apps.fetch(app_name)
        return entry if isinstance(entry, App) else None

    def all_apps(self) -> list[App]:
        return [app for name in sorted(self.apps.children()) if (app := self.get_app(name))]

    def stop(self) -> None:
        for app in self.all_apps():
            app.stop()

    def _open(self) -> None:
        logger.info("Opening URL {}", self.chart_url)
        root = self.dialer.open_link(self.chart_url)
        if root is None:
            self.status = failed(f"couldn't open chart {self.chart_url}")
            logger.warning("Session {}: {}", self.chart_url, self.status)
            return
        self.root = root
        self.ctx = Context(self.chart_url, root)

        app_folder = self.ctx.get_folder("/apps")
        if app_folder is None:
            logger.warning("Chart {} has no /apps folder", self.chart_url)
        else:
            for app_name in sorted(app_folder.children()):
                self._add_app(app_name)
        self.status = STATUS_READY

    def _add_app(self, app_name: str) -> None:
        try:
            app = self._build_app(app_name)
        except Exception as exc:  # noqa: BLE001
            logger.error("Couldn't mount app {}: {}", app_name, exc)
            app = App(
                app_name,
                MemFolder(app_name),
                Context(f"app:/~{app_name}", MemFolder(app_name)),
                config=self.config,
                session=self,
                dialer=self.dialer,
            )
            app.status = failed(f"mount failed: {exc}")
            self.apps.put(app_name, app)
            return

        logger.info("Adding app {}", app_name)
        self.apps.put(app_name, app)
        app.status = STATUS_READY
        app.launch()

    def _build_app(self, app_name: str) -> App:
        if self.ctx is None or self.root is None:
            raise RuntimeError(f"session {self.chart_url} is not open")
        root_dir = MemFolder.of(app_name, MemFolder("state"), MemFolder("export"))
        root_dir.put("session", self.root)

        source = self.ctx.get_folder(f"/apps/{app_name}")
        if source is not None:
            root_dir.put("source", ReadOnlyFolder(source, "source"))

        for mount in ("config", "persist"):
            folder = self._locate_or_create(f"/{mount}/{app_name}", app_name)
            if folder is not None:
                root_dir.put(mount, folder)

        return App(
            app_name,
            root_dir,
            Context(f"app:/~{app_name}", root_dir),
            config=self.config,
            session=self,
            dialer=self.dialer,
        )

    def _locate_or_create(self, path: str, app_name: str) -> Folder | None:
        if self.ctx is None:
            raise RuntimeError(f"session {self.chart_url} is not open")
        folder = self.ctx.get_folder(path)
        if folder is not None:
            return folder

        logger.info("Creating {} folder for {}", path, app_name)
        mkdirp(self.ctx, path)
        folder = self.ctx.get_folder(path)
        if folder is None:
            logger.warning("Couldn't create {}", path)
        return folder
