"""
Host Bridge Transport

For sandboxed runtimes that cannot open sockets or serial ports
themselves, e.g. a browser build that reaches the sensor through WebSerial.
The host owns the device; this adapter only asks it to connect and then
receives chunk and status callbacks. It has no thread of its own.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from .base import TransportAdapter, DISCONNECTED_STATUS
from ..production.error_handler import ProductionErrorHandler, ErrorSeverity

log = logging.getLogger(__name__)

UNSUPPORTED_STATUS = "WebSerial not supported. Use Chrome/Edge on desktop."
NO_HOST_STATUS = "Host bridge unavailable. USB breath devices connect this way only in browser builds."
GESTURE_REQUIRED_STATUS = "Press Connect to choose the breath device."
REQUESTING_STATUS = "Requesting USB device..."


class HostBridge(ABC):
    """Device access provided by the embedding host"""

    @abstractmethod
    def is_supported(self) -> bool:
        """Whether the host can reach serial devices at all"""

    @abstractmethod
    def request_connect(self, on_data: Callable[[str], None],
                        on_status: Callable[[str], None]) -> None:
        """Ask the host to open a device; results arrive via the callbacks"""

    @abstractmethod
    def request_disconnect(self) -> None:
        """Ask the host to close the device"""


class BridgeAdapter(TransportAdapter):
    """Callback-driven transport delegating device access to the host"""

    name = "bridge"

    def __init__(self, host: Optional[HostBridge] = None,
                 error_handler: Optional[ProductionErrorHandler] = None):
        super().__init__()
        self.host = host
        self.error_handler = error_handler or ProductionErrorHandler()
        self._requested = False

    @property
    def is_open(self) -> bool:
        return self._requested

    async def connect(self, user_gesture: bool = False) -> bool:
        self.metrics['connect_attempts'] += 1

        if self.host is None:
            self.metrics['connect_failures'] += 1
            self.emit_status(NO_HOST_STATUS)
            return False

        # Hosts only grant device pickers in response to a click or key press
        if not user_gesture:
            self.metrics['connect_failures'] += 1
            self.emit_status(GESTURE_REQUIRED_STATUS)
            return False

        if not self.host.is_supported():
            self.metrics['connect_failures'] += 1
            self.emit_status(UNSUPPORTED_STATUS)
            return False

        self.emit_status(REQUESTING_STATUS)

        try:
            self.host.request_connect(self._on_host_data, self._on_host_status)
        except Exception as e:
            # The host is foreign code; whatever it raises becomes a status line
            self.metrics['connect_failures'] += 1
            self.error_handler.report(e, 'bridge_connect', ErrorSeverity.HIGH)
            self.emit_status(f"WebSerial exception: {e}")
            return False

        self._requested = True
        return True

    async def disconnect(self):
        self.emit_status(DISCONNECTED_STATUS)

        requested, self._requested = self._requested, False
        if self.host is None or not requested:
            return

        try:
            self.host.request_disconnect()
        except Exception as e:
            self.error_handler.report(e, 'bridge_disconnect', ErrorSeverity.LOW)

    def _on_host_data(self, chunk: str):
        if not chunk or not chunk.strip():
            return
        self.emit_raw_text(chunk)

    def _on_host_status(self, message: str):
        self.emit_status(message)
