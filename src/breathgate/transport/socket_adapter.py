"""
WebSocket Transport

Connects to a sensor that serves one reading per text frame, e.g. an ESP32
running a small WebSocket server on its own hotspot. A dedicated receive
task hands every frame to the listeners. Dropped connections are reported
and left closed; reconnecting is up to the caller.
"""

import asyncio
import logging
from typing import Optional

from websockets.asyncio.client import connect as ws_connect, ClientConnection
from websockets.exceptions import ConnectionClosedOK, ConnectionClosed, InvalidURI, InvalidHandshake

from .base import TransportAdapter, DISCONNECTED_STATUS
from ..production.error_handler import ProductionErrorHandler, ErrorSeverity
from ..production.retry_manager import ProductionRetryManager

log = logging.getLogger(__name__)

DEFAULT_URL = "ws://192.168.43.3:5005"
DEFAULT_OPEN_TIMEOUT = 5.0  # seconds


class SocketAdapter(TransportAdapter):
    """Async WebSocket client transport"""

    name = "socket"

    def __init__(self, url: str = DEFAULT_URL,
                 open_timeout: float = DEFAULT_OPEN_TIMEOUT,
                 error_handler: Optional[ProductionErrorHandler] = None,
                 retry_manager: Optional[ProductionRetryManager] = None):
        super().__init__()
        self.url = url
        self.open_timeout = open_timeout
        self.error_handler = error_handler or ProductionErrorHandler()
        self.retry_manager = retry_manager or ProductionRetryManager()

        self._ws: Optional[ClientConnection] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._connecting = False
        self._closing = False

    @property
    def is_open(self) -> bool:
        return self._ws is not None

    async def connect(self, user_gesture: bool = False) -> bool:
        if self._ws is not None or self._connecting:
            log.debug("WebSocket already connected or connecting")
            return True

        self.metrics['connect_attempts'] += 1
        self._connecting = True
        self._closing = False

        try:
            self._ws = await self.retry_manager.retry_async(self._open_socket, 'socket_connect')()
        except (OSError, asyncio.TimeoutError, InvalidURI, InvalidHandshake) as e:
            self.metrics['connect_failures'] += 1
            ctx = self.error_handler.report(e, 'socket_connect', ErrorSeverity.HIGH,
                                           {'url': self.url})
            self.emit_status(f"WebSocket connect failed: {ctx.user_message} ({self.url}).")
            return False
        finally:
            self._connecting = False

        log.info(f"✓ WebSocket connected to {self.url}")
        self.emit_status(f"WebSocket connected ({self.url}).")
        self._receive_task = asyncio.create_task(self._receive_loop(self._ws),
                                                 name="SocketReceiveLoop")
        return True

    async def disconnect(self):
        self._closing = True
        self.emit_status(DISCONNECTED_STATUS)

        task, self._receive_task = self._receive_task, None
        ws, self._ws = self._ws, None

        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                log.debug("Receive loop cancelled")

        if ws is not None:
            await ws.close()
            log.info("✓ WebSocket closed")

    async def wait_closed(self):
        """Wait until the receive loop has ended"""
        if self._receive_task is not None:
            await self._receive_task

    async def _open_socket(self) -> ClientConnection:
        return await ws_connect(self.url, open_timeout=self.open_timeout)

    async def _receive_loop(self, ws: ClientConnection):
        log.debug("WebSocket receive loop started")

        try:
            async for message in ws:
                if isinstance(message, bytes):
                    try:
                        message = message.decode('utf-8')
                    except UnicodeDecodeError:
                        log.warning(f"Dropping undecodable binary frame ({len(message)} bytes)")
                        continue

                self.emit_raw_text(message)

            if not self._closing:
                code = ws.close_code
                self.emit_status(f"WebSocket closed by remote (code {code}).")

        except ConnectionClosedOK:
            if not self._closing:
                self.emit_status("WebSocket closed by remote.")
        except ConnectionClosed as e:
            if not self._closing:
                self.error_handler.report(e, 'socket_receive', ErrorSeverity.MEDIUM, {'url': self.url})
                self.emit_status(f"WebSocket error: {e}")
        except OSError as e:
            if not self._closing:
                self.error_handler.report(e, 'socket_receive', ErrorSeverity.MEDIUM, {'url': self.url})
                self.emit_status(f"WebSocket error: {e}")
        finally:
            if self._ws is ws:
                self._ws = None
            log.debug("WebSocket receive loop ended")
