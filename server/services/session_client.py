"""
WhatsApp Session Client - JSON-RPC 2.0 client for the browser automation bridge.

The bridge owns the actual WhatsApp Web session (browser, auth persistence,
QR pairing). This client only speaks its small command/event contract:

Commands (request/response):
- initialize: start the WhatsApp Web session
- send_message: {chat_id, message, quoted_message_id?} -> {message_id}
- logout: unlink the device
- info: -> {pushname, wid, platform}
- destroy: close the browser session

Events (notifications, no id):
- event.qr: {qr}
- event.authenticated: {}
- event.ready: {}
- event.auth_failure: {reason}
- event.message: {id, from, body}
- event.disconnected: {reason}
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional, Set

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from constants import BRIDGE_COMMANDS, BRIDGE_EVENT_TYPES
from core.config import Settings
from core.logging import get_logger
from models.whatsapp import ClientInfo, InboundMessage, SessionEvent, SessionEventType
from services.exceptions import SessionCommandError, SessionNotStartedError

logger = get_logger(__name__)

EventHandler = Callable[[SessionEvent], Awaitable[None]]


def parse_bridge_event(method: str, params: Optional[dict]) -> Optional[SessionEvent]:
    """Convert a bridge notification into a SessionEvent, or None if unknown."""
    event_type = BRIDGE_EVENT_TYPES.get(method)
    if event_type is None:
        return None
    params = params or {}

    if event_type == SessionEventType.MESSAGE.value:
        return SessionEvent(
            type=SessionEventType.MESSAGE,
            message=InboundMessage.model_validate(params),
        )

    return SessionEvent(
        type=SessionEventType(event_type),
        qr=params.get("qr") or params.get("code"),
        reason=params.get("reason"),
    )


class SessionClient:
    """Single shared connection to the WhatsApp session bridge.

    The connection is re-established on demand: a command issued while the
    link is down reconnects first and re-sends ``initialize`` in the
    background, the same way the bridge is brought up at startup.
    """

    def __init__(self, settings: Settings):
        self.url = settings.session_rpc_url
        self._connect_timeout = settings.session_connect_timeout
        self._command_timeout = settings.session_command_timeout
        self.ws = None
        self.req_id = 0
        self.pending: dict[int, asyncio.Future] = {}
        self._connected = False
        self._stopped = False
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._init_task: Optional[asyncio.Task] = None
        self._event_tasks: Set[asyncio.Task] = set()
        self._event_handler: Optional[EventHandler] = None

    @property
    def connected(self) -> bool:
        """Check if actually connected - verify WebSocket is open."""
        if not self._connected or not self.ws:
            return False
        return self.ws.state is State.OPEN

    def set_event_handler(self, handler: EventHandler) -> None:
        """Set callback for session lifecycle events."""
        self._event_handler = handler

    async def connect(self) -> None:
        logger.info(f"[WhatsApp RPC] Connecting to {self.url}...")
        self.ws = await asyncio.wait_for(
            websockets.connect(self.url, ping_interval=30, max_size=16 * 1024 * 1024),
            timeout=self._connect_timeout
        )
        self._connected = True
        logger.info("[WhatsApp RPC] WebSocket connected, starting receive loop")
        self._task = asyncio.create_task(self._recv(self.ws))

    async def start(self) -> bool:
        """Connect to the bridge and request session initialization.

        Returns once the WebSocket is up; ``initialize`` runs in the
        background because the bridge only answers it after pairing.
        A failure leaves the process running in a non-ready state.
        """
        self._stopped = False
        try:
            async with self._lock:
                await self._open()
        except SessionNotStartedError:
            await self._drop_connection("Session client closed")
            return False
        return True

    async def ensure_connected(self, method: str = "connect") -> None:
        """Reconnect and re-initialize if the bridge link is down."""
        if self.connected:
            return
        async with self._lock:
            if self.connected:
                return
            if self._stopped:
                raise SessionNotStartedError(method)
            logger.info("[WhatsApp RPC] Bridge link down, reconnecting", method=method)
            await self._drop_connection("Reconnecting to WhatsApp session service")
            await self._open(method)

    async def _open(self, method: str = "connect") -> None:
        try:
            await self.connect()
        except asyncio.TimeoutError:
            logger.error("[WhatsApp RPC] Bridge not responding", url=self.url)
            raise SessionNotStartedError(method)
        except (ConnectionRefusedError, OSError) as e:
            logger.error("[WhatsApp RPC] Bridge connection refused", url=self.url, error=str(e))
            raise SessionNotStartedError(method)
        except WebSocketException as e:
            logger.error("[WhatsApp RPC] Bridge handshake failed", url=self.url, error=str(e))
            raise SessionNotStartedError(method)
        self._start_initialize()

    def _start_initialize(self) -> None:
        # An initialize left over from a dropped link can never be answered
        if self._init_task and not self._init_task.done():
            self._init_task.cancel()
        self._init_task = asyncio.create_task(self._initialize_in_background())

    async def _initialize_in_background(self) -> None:
        try:
            await self._request("initialize")
            logger.info("[WhatsApp RPC] Session initialized")
        except SessionCommandError as e:
            logger.error("[WhatsApp RPC] Session initialization failed", error=str(e))

    async def close(self) -> None:
        """Drop the bridge link and cancel outstanding handler work."""
        await self._drop_connection("Session client closed")

        current = asyncio.current_task()
        tasks = [t for t in (self._init_task, *self._event_tasks) if t and t is not current]
        self._init_task = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _drop_connection(self, reason: str) -> None:
        self._connected = False
        if self._task:
            self._task.cancel()
            self._task = None
        ws, self.ws = self.ws, None
        if ws:
            await ws.close()
        self._fail_pending(reason)

    def _fail_pending(self, reason: str) -> None:
        for req_id, future in list(self.pending.items()):
            if not future.done():
                future.set_exception(SessionCommandError(f"request {req_id}", reason))

    @staticmethod
    def _parse_frame(msg) -> Optional[dict]:
        try:
            data = json.loads(msg)
        except ValueError as e:
            logger.error("[WhatsApp RPC] Malformed frame from bridge, skipping", error=str(e))
            return None
        if not isinstance(data, dict):
            logger.error("[WhatsApp RPC] Non-object frame from bridge, skipping",
                         frame_type=type(data).__name__)
            return None
        return data

    async def _recv(self, ws) -> None:
        try:
            async for msg in ws:
                data = self._parse_frame(msg)
                if data is None:
                    continue
                req_id = data.get("id")
                if isinstance(req_id, int) and req_id in self.pending:
                    future = self.pending[req_id]
                    if not future.done():
                        future.set_result(data)
                elif isinstance(data.get("method"), str) and "id" not in data:
                    params = data.get("params")
                    self._dispatch(data["method"], params if isinstance(params, dict) else None)
        except ConnectionClosed as e:
            logger.warning(f"[WhatsApp RPC] Connection closed: {e}")
        finally:
            # A replaced link's loop must not touch the current one
            if ws is self.ws:
                was_connected = self._connected
                self._connected = False
                self._fail_pending("Connection to WhatsApp session service lost")
                if was_connected:
                    self._dispatch("event.disconnected", {"reason": "bridge connection lost"})

    def _dispatch(self, method: str, params: Optional[dict]) -> None:
        """Hand an event to the handler without blocking the receive loop.

        Handlers may issue commands of their own (relay replies), whose
        responses arrive through this same loop.
        """
        try:
            event = parse_bridge_event(method, params)
        except ValueError as e:
            logger.error("[WhatsApp RPC] Invalid event payload", method=method, error=str(e))
            return
        if event is None:
            logger.debug("[WhatsApp RPC] Ignoring unknown event", method=method)
            return
        if self._event_handler is None:
            return
        task = asyncio.create_task(self._run_handler(event))
        self._event_tasks.add(task)
        task.add_done_callback(self._event_tasks.discard)

    async def _run_handler(self, event: SessionEvent) -> None:
        try:
            await self._event_handler(event)
        except Exception:
            logger.exception("[WhatsApp RPC] Event handler error", event=event.type.value)

    async def call(self, method: str, params: Any = None) -> Any:
        if method not in BRIDGE_COMMANDS:
            raise ValueError(f"Unknown bridge command: {method}")
        await self.ensure_connected(method)
        return await self._request(method, params)

    async def _request(self, method: str, params: Any = None) -> Any:
        if not self.connected:
            raise SessionNotStartedError(method)
        self.req_id += 1
        req_id = self.req_id
        req = {"jsonrpc": "2.0", "id": req_id, "method": method}
        if params:
            req["params"] = params

        future = asyncio.get_running_loop().create_future()
        self.pending[req_id] = future

        try:
            await self.ws.send(json.dumps(req))
            resp = await asyncio.wait_for(future, self._command_timeout)
            error = resp.get("error")
            if error:
                message = error.get("message", "RPC Error") if isinstance(error, dict) else str(error)
                raise SessionCommandError(method, message)
            return resp.get("result")
        except asyncio.TimeoutError:
            raise SessionCommandError(
                method, f"RPC call '{method}' timed out after {self._command_timeout}s"
            )
        except ConnectionClosed as e:
            logger.error(f"[WhatsApp RPC] Connection closed during {method}: {e}")
            self._connected = False
            raise SessionCommandError(method, f"Connection lost during {method}")
        finally:
            self.pending.pop(req_id, None)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        await self.call("initialize")

    async def send_message(self, chat_id: str, text: str,
                           quoted_message_id: Optional[str] = None) -> Optional[str]:
        """Send a text message. Returns the bridge's message id when it reports one."""
        params = {"chat_id": chat_id, "message": text}
        if quoted_message_id:
            params["quoted_message_id"] = quoted_message_id
        result = await self.call("send_message", params)
        if isinstance(result, dict):
            return result.get("message_id")
        return None

    async def logout(self) -> None:
        await self.call("logout")

    async def get_info(self) -> ClientInfo:
        result = await self.call("info")
        if not isinstance(result, dict):
            raise SessionCommandError("info", "No client info available")
        wid = result.get("wid")
        # whatsapp-web.js style bridges send the wid as an object
        if isinstance(wid, dict):
            wid = wid.get("_serialized")
        if not wid:
            raise SessionCommandError("info", "Client info has no wid")
        return ClientInfo(
            pushname=result.get("pushname"),
            wid=wid,
            platform=result.get("platform"),
        )

    async def destroy(self) -> None:
        """Tear down the browser session and the bridge connection (best effort).

        No reconnect is attempted afterwards until ``start`` is called again.
        """
        self._stopped = True
        if self.connected:
            try:
                await self._request("destroy")
            except SessionCommandError as e:
                logger.warning("[WhatsApp RPC] Destroy failed", error=str(e))
        await self.close()
