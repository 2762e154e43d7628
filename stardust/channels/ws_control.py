"""WebSocket channel for inspecting and steering the app runtime."""

from __future__ import annotations

import asyncio
import json
import uuid
from typing import Any

from loguru import logger
from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from stardust.app_runtime.config import AppRuntimeConfig
from stardust.app_runtime.runtime import AppRuntime, UnknownTargetError


class ControlRequestError(ValueError):
    """A control request was malformed."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


class WSControlChannel:
    """Serve runtime control over a small JSON request/response protocol.

    After a ``connect`` frame each request carries an ``id`` and a ``type``:

        open     {chart}                       open (or reuse) a chart session
        status   {}                            snapshot of sessions/apps/processes
        start    {chart, app, routine, input?} spawn a routine
        restart  {chart, app}                  restart an app and wait for it
        stop     {chart, app}                  stop an app
    """

    name = "ws_control"

    def __init__(self, config: AppRuntimeConfig, runtime: AppRuntime):
        self.config = config
        self.runtime = runtime
        self._server: Any = None
        self._connections: dict[str, ServerConnection] = {}
        self._running = False

    async def start(self) -> None:
        """Start WebSocket server and keep it running."""
        self._running = True
        self._server = await serve(self._handle_client, self.config.control_host, self.config.control_port)
        logger.info("ws_control listening on ws://{}:{}", self.config.control_host, self.config.control_port)

        try:
            await self._server.wait_closed()
        finally:
            self._running = False

    async def stop(self) -> None:
        """Stop server and drop all connections."""
        self._running = False

        for ws in list(self._connections.values()):
            try:
                await ws.close(code=1001, reason="server stopping")
            except ConnectionClosed:
                pass
        self._connections.clear()

        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def handle_request(self, data: dict[str, Any]) -> dict[str, Any]:
        """Answer one request frame with a ``result`` or ``error`` frame."""
        request_id = str(data.get("id") or "").strip()
        if not request_id:
            return _error_frame(None, "bad_request", "id is required")

        msg_type = str(data.get("type") or "").strip()
        try:
            result = await self._dispatch(msg_type, data)
        except ControlRequestError as e:
            return _error_frame(request_id, e.code, str(e))
        except UnknownTargetError as e:
            return _error_frame(request_id, "not_found", str(e))
        return {"type": "result", "id": request_id, "result": result}

    async def _dispatch(self, msg_type: str, data: dict[str, Any]) -> Any:
        if msg_type == "status":
            return self.runtime.snapshot()

        if msg_type == "open":
            chart = _require_str(data, "chart")
            session = await self.runtime.open_session(chart)
            return {"chart": chart, "status": session.status}

        if msg_type == "start":
            chart, app, routine = (_require_str(data, key) for key in ("chart", "app", "routine"))
            payload = data.get("input")
            if payload is not None and not isinstance(payload, dict):
                raise ControlRequestError("bad_request", "input must be an object")
            process = await self.runtime.start_routine(chart, app, routine, payload)
            if process is None:
                return {"started": False}
            return {"started": True, "pid": process.process_id, "status": process.status}

        if msg_type == "restart":
            chart, app = _require_str(data, "chart"), _require_str(data, "app")
            return {"restarted": await self.runtime.restart_app(chart, app)}

        if msg_type == "stop":
            chart, app = _require_str(data, "chart"), _require_str(data, "app")
            await self.runtime.stop_app(chart, app)
            return {"stopped": True}

        raise ControlRequestError("unsupported_type", f"unsupported message type: {msg_type or '<empty>'}")

    async def _handle_client(self, websocket: ServerConnection) -> None:
        """Handle one websocket connection lifecycle."""
        conn_id = uuid.uuid4().hex
        self._connections[conn_id] = websocket
        logger.info("ws_control client connected conn_id={}", conn_id)

        try:
            if not await self._handshake(websocket):
                return
            async for raw in websocket:
                data = _parse_json(raw)
                if data is None:
                    await _send_json(websocket, _error_frame(None, "bad_request", "invalid JSON payload"))
                    continue
                await _send_json(websocket, await self.handle_request(data))
        except ConnectionClosed:
            pass
        except Exception as e:
            logger.warning("ws_control connection error conn_id={}: {}", conn_id, e)
        finally:
            self._connections.pop(conn_id, None)
            logger.info("ws_control client disconnected conn_id={}", conn_id)

    async def _handshake(self, ws: ServerConnection) -> bool:
        """Validate initial connect frame and reply connected/error."""
        try:
            raw = await asyncio.wait_for(ws.recv(), timeout=10)
        except asyncio.TimeoutError:
            await _send_json(ws, _error_frame(None, "bad_request", "connect message timeout"))
            await ws.close(code=1002, reason="connect timeout")
            return False

        data = _parse_json(raw)
        if data is None or data.get("type") != "connect":
            await _send_json(ws, _error_frame(None, "bad_request", "first message must be connect"))
            await ws.close(code=1002, reason="invalid handshake")
            return False

        if self.config.control_token and str(data.get("token") or "") != self.config.control_token:
            await _send_json(ws, _error_frame(None, "unauthorized", "invalid token"))
            await ws.close(code=1008, reason="unauthorized")
            return False

        await _send_json(ws, {"type": "connected", "scopes": ["runtime.control"]})
        return True


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ControlRequestError("bad_request", f"{key} is required")
    return value.strip()


def _error_frame(request_id: str | None, code: str, message: str) -> dict[str, Any]:
    frame: dict[str, Any] = {"type": "error", "error": {"code": code, "message": message}}
    if request_id:
        frame["id"] = request_id
    return frame


def _parse_json(raw: Any) -> dict[str, Any] | None:
    """Best-effort JSON parse for text/bytes frames."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="ignore")
    if not isinstance(raw, str):
        return None
    try:
        obj = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return obj if isinstance(obj, dict) else None


async def _send_json(ws: ServerConnection, payload: dict[str, Any]) -> None:
    await ws.send(json.dumps(payload, ensure_ascii=False))
