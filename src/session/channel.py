"""
Duplex command channel to the backend over a websocket

The channel reconnects on its own. Every connection starts with the
handshake frame, then any frames queued while the connection was down.
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import aiohttp

from .protocol import decode_frame, encode_frame

logger = logging.getLogger(__name__)

# Channel status events
CONNECTED = 'connected'
CONNECTION_LOST = 'connection-lost'
CONNECTION_RESTORED = 'connection-restored'

MAX_PENDING_FRAMES = 100


class SessionChannel:
    """Websocket client carrying NUL-framed commands"""

    def __init__(self, session: aiohttp.ClientSession, url: str, config: Optional[Dict] = None):
        config = config or {}
        self.session = session
        self.url = url
        self.reconnect_delay = config.get('reconnect_delay_seconds', 1)
        self.max_reconnect_delay = config.get('max_reconnect_delay_seconds', 30)
        self.heartbeat = config.get('heartbeat_seconds', 30)
        self.min_stable = config.get('min_stable_seconds', 5)

        self.running = False
        self._task: Optional[asyncio.Task] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._ready = False
        self._ever_connected = False
        self._send_lock = asyncio.Lock()
        self._pending: List[str] = []

        self._handshake: Optional[Callable[[], Tuple[str, Any]]] = None
        self.command_handlers: List[Callable] = []
        self.status_callbacks: List[Callable[[str], Any]] = []

        self.stats = {
            'connections': 0,
            'disconnects': 0,
            'frames_sent': 0,
            'frames_received': 0,
            'frames_dropped': 0
        }

    # ================== REGISTRATION ==================

    def set_handshake(self, handshake: Callable[[], Tuple[str, Any]]):
        """Frame (command, arg) sent first on every new connection"""
        self._handshake = handshake

    def add_command_handler(self, handler: Callable[[str, Any], Any]):
        """Handler called with (command, arg) for every inbound frame"""
        self.command_handlers.append(handler)

    def add_status_callback(self, callback: Callable[[str], Any]):
        """Callback for connected / connection-lost / connection-restored"""
        self.status_callbacks.append(callback)

    @property
    def connected(self) -> bool:
        return self._ready and self._ws is not None and not self._ws.closed

    # ================== LIFECYCLE ==================

    async def start(self):
        if self.running:
            return
        self.running = True
        self._task = asyncio.create_task(self._connection_loop())
        logger.info(f"Session channel started for {self.url}")

    async def stop(self):
        self.running = False
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        if self._task:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        logger.info(f"Session channel stopped (stats: {self.stats})")

    async def _connection_loop(self):
        failures = 0
        while self.running:
            if failures:
                delay = min(self.reconnect_delay * 2 ** (failures - 1), self.max_reconnect_delay)
                logger.debug(f"Reconnecting in {delay:.1f}s (attempt {failures + 1})")
                await asyncio.sleep(delay)

            try:
                ws = await self.session.ws_connect(self.url, heartbeat=self.heartbeat)
            except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
                failures += 1
                logger.warning(f"Backend connection to {self.url} failed: {e}")
                continue

            connected_at = time.monotonic()
            try:
                await self._on_connected(ws)
                await self._read_loop(ws)
            except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
                logger.warning(f"Backend connection error: {e}")
            finally:
                self._ready = False
                self._ws = None
                if not ws.closed:
                    await ws.close()

            # A backend that accepts then closes at once backs off like a failed connect
            if time.monotonic() - connected_at < self.min_stable:
                failures += 1
            else:
                failures = 0

            if self.running:
                self.stats['disconnects'] += 1
                logger.warning("Backend connection lost, reconnecting")
                await self._emit_status(CONNECTION_LOST)

    async def _on_connected(self, ws: aiohttp.ClientWebSocketResponse):
        self._ws = ws
        self.stats['connections'] += 1

        async with self._send_lock:
            if self._handshake is not None:
                command, arg = self._handshake()
                await ws.send_str(encode_frame(command, arg))
                self.stats['frames_sent'] += 1

            pending, self._pending = self._pending, []
            for frame in pending:
                await ws.send_str(frame)
                self.stats['frames_sent'] += 1
            if pending:
                logger.info(f"Flushed {len(pending)} queued frames")
            self._ready = True

        restored = self._ever_connected
        self._ever_connected = True
        logger.info(f"Connected to backend {self.url}")
        await self._emit_status(CONNECTION_RESTORED if restored else CONNECTED)

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse):
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                data = msg.data
            elif msg.type == aiohttp.WSMsgType.BINARY:
                data = msg.data.decode('utf-8', errors='replace')
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.warning(f"Websocket error: {ws.exception()}")
                break
            else:
                continue

            try:
                command, arg = decode_frame(data)
            except ValueError as e:
                logger.warning(f"Dropping malformed frame: {e}")
                continue

            self.stats['frames_received'] += 1
            await self._dispatch(command, arg)

    async def _dispatch(self, command: str, arg: Any):
        logger.debug(f"<- {command}")
        for handler in self.command_handlers:
            try:
                result = handler(command, arg)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Command handler failed for {command}: {e}")

    async def _emit_status(self, event: str):
        for callback in self.status_callbacks:
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Status callback failed for {event}: {e}")

    # ================== SENDING ==================

    async def send(self, command: str, arg: Any = None) -> bool:
        """
        Send a command. While disconnected the frame is queued and flushed
        after the next handshake; returns False in that case.
        """
        frame = encode_frame(command, arg)
        async with self._send_lock:
            if self.connected:
                try:
                    await self._ws.send_str(frame)
                    self.stats['frames_sent'] += 1
                    logger.debug(f"-> {command}")
                    return True
                except (aiohttp.ClientError, ConnectionResetError) as e:
                    logger.warning(f"Send of {command} failed, queueing: {e}")

            self._pending.append(frame)
            if len(self._pending) > MAX_PENDING_FRAMES:
                dropped = len(self._pending) - MAX_PENDING_FRAMES // 2
                self._pending = self._pending[-(MAX_PENDING_FRAMES // 2):]
                self.stats['frames_dropped'] += dropped
                logger.warning(f"Outbound queue too large, discarded {dropped} old frames")
            logger.debug(f"Queued {command} until the backend reconnects")
            return False
