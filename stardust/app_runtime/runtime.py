"""Async host facade over chart sessions."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

from loguru import logger

from stardust.app_runtime.app import App
from stardust.app_runtime.config import AppRuntimeConfig
from stardust.app_runtime.contracts import ProcessParams
from stardust.app_runtime.marshal import input_from_mapping
from stardust.app_runtime.process import Process
from stardust.app_runtime.session import Session
from stardust.app_runtime.wire import WireDialer


class UnknownTargetError(LookupError):
    """Raised when a chart or app name doesn't resolve."""


class AppRuntime:
    """Owns one Session per chart URL and drives them from asyncio.

    Session bootstrap and app restarts block on worker threads, so they run
    off the event loop.
    """

    def __init__(self, *, dialer: WireDialer | None = None, config: AppRuntimeConfig | None = None):
        self.dialer = dialer or WireDialer()
        self.config = config or AppRuntimeConfig()
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()
        self._bootstraps: set[asyncio.Task] = set()

    async def open_session(self, chart_url: str, *, wait: bool = False) -> Session:
        """Return the chart's session, bootstrapping it in the background."""
        async with self._lock:
            existing = self._sessions.get(chart_url)
            if existing:
                return existing
            session = Session(chart_url, dialer=self.dialer, config=self.config)
            self._sessions[chart_url] = session

        task = asyncio.create_task(asyncio.to_thread(session.open))
        self._bootstraps.add(task)
        task.add_done_callback(self._bootstraps.discard)
        if wait:
            await task
        logger.info("Returning session {}", chart_url)
        return session

    def get_session(self, chart_url: str) -> Session | None:
        return self._sessions.get(chart_url)

    async def start_routine(
        self,
        chart_url: str,
        app_name: str,
        routine_name: str,
        input: Mapping[str, Any] | None = None,
    ) -> Process | None:
        app = self._require_app(chart_url, app_name)
        params = ProcessParams(
            routine_name=routine_name,
            input=input_from_mapping("input", input) if input is not None else None,
        )
        return app.start_routine(params)

    async def restart_app(self, chart_url: str, app_name: str) -> str:
        app = self._require_app(chart_url, app_name)
        return await asyncio.to_thread(app.restart)

    async def stop_app(self, chart_url: str, app_name: str) -> None:
        app = self._require_app(chart_url, app_name)
        await asyncio.to_thread(app.stop)

    def snapshot(self) -> dict[str, Any]:
        """JSON-friendly view of every session, app and process."""
        return {
            url: {
                "status": session.status,
                "apps": {app.app_name: _describe_app(app) for app in session.all_apps()},
            }
            for url, session in self._sessions.items()
        }

    async def stop(self) -> None:
        """Wait for pending bootstraps, then stop every app."""
        if self._bootstraps:
            await asyncio.gather(*self._bootstraps, return_exceptions=True)
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            await asyncio.to_thread(session.stop)

    def _require_app(self, chart_url: str, app_name: str) -> App:
        session = self._sessions.get(chart_url)
        if session is None:
            raise UnknownTargetError(f"no session for chart {chart_url}")
        app = session.get_app(app_name)
        if app is None:
            raise UnknownTargetError(f"no app {app_name} in chart {chart_url}")
        return app


def _describe_app(app: App) -> dict[str, Any]:
    return {
        "status": app.status,
        "processes": [
            {
                "pid": p.process_id,
                "parent": p.params.parent_id,
                "routine": p.params.routine_name,
                "status": p.status,
                "startTime": p.start_time,
                "endTime": p.end_time,
            }
            for p in sorted(app.processes.all(), key=lambda p: int(p.process_id))
        ],
    }
