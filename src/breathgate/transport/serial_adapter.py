"""
Serial Port Transport

Reads newline-terminated readings from a USB serial breath sensor. The
port is polled once per game tick; a read that times out simply means no
data this tick.
"""

import logging
from typing import Optional

import serial

from .base import TransportAdapter, DISCONNECTED_STATUS
from ..production.error_handler import ProductionErrorHandler, ErrorSeverity
from ..production.retry_manager import ProductionRetryManager
from ..production.port_manager import SerialPortManager

log = logging.getLogger(__name__)

DEFAULT_BAUD_RATE = 115200
DEFAULT_READ_TIMEOUT = 0.05  # seconds


class SerialPortAdapter(TransportAdapter):
    """Polled serial transport built on pyserial"""

    name = "serial"

    def __init__(self, port: Optional[str] = None,
                 baud_rate: int = DEFAULT_BAUD_RATE,
                 read_timeout: float = DEFAULT_READ_TIMEOUT,
                 error_handler: Optional[ProductionErrorHandler] = None,
                 retry_manager: Optional[ProductionRetryManager] = None,
                 port_manager: Optional[SerialPortManager] = None):
        super().__init__()
        self.port = port
        self.baud_rate = baud_rate
        self.read_timeout = read_timeout
        self.error_handler = error_handler or ProductionErrorHandler()
        self.retry_manager = retry_manager or ProductionRetryManager()
        self.port_manager = port_manager

        self._serial: Optional[serial.Serial] = None
        self._pending = ""
        self.active_port: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    async def connect(self, user_gesture: bool = False) -> bool:
        if self.is_open:
            log.debug(f"Serial port {self.active_port} already open")
            return True

        self.metrics['connect_attempts'] += 1

        port = self.port
        if port is None and self.port_manager is not None:
            port = self.port_manager.detect_sensor_port()
        if port is None:
            self.metrics['connect_failures'] += 1
            self.emit_status("Serial connect failed: no serial port found.")
            return False

        try:
            self._serial = await self.retry_manager.retry_async(
                self._open_port, 'serial_open', port
            )()
        except (serial.SerialException, OSError, ValueError) as e:
            self.metrics['connect_failures'] += 1
            ctx = self.error_handler.report(
                e, 'serial_open', ErrorSeverity.HIGH,
                {'port': port, 'baud_rate': self.baud_rate}
            )
            self.emit_status(f"Serial connect failed: {ctx.user_message} ({port}).")
            return False

        self._pending = ""
        self.active_port = port
        if self.port_manager is not None:
            self.port_manager.set_active_port(port)

        log.info(f"✓ Opened serial port {port} at {self.baud_rate} baud")
        self.emit_status(f"Serial connected ({self.baud_rate}).")
        return True

    async def disconnect(self):
        self.emit_status(DISCONNECTED_STATUS)
        self._close_port()

    def poll(self) -> int:
        """
        Read at most one line from the port

        Partial lines left by a timeout are buffered and completed on a
        later tick.

        Returns:
            1 if a complete line was emitted, else 0
        """
        if not self.is_open:
            return 0

        try:
            if not self._serial.in_waiting:
                return 0
            raw = self._serial.readline()
        except (serial.SerialException, OSError) as e:
            self._fail_read(e)
            return 0

        if not raw:
            return 0

        self._pending += raw.decode('utf-8', errors='replace')
        if not self._pending.endswith("\n"):
            return 0

        line, self._pending = self._pending, ""
        self.emit_raw_text(line)
        return 1

    def handle_port_removed(self, device: str):
        """Close the port if the device it points at has been unplugged"""
        if self.is_open and device == self.active_port:
            log.warning(f"Serial device {device} was removed")
            self.emit_status(f"Serial device disconnected ({device}).")
            self._close_port()

    async def _open_port(self, port: str) -> serial.Serial:
        return serial.Serial(port, self.baud_rate, timeout=self.read_timeout)

    def _fail_read(self, error: Exception):
        self.error_handler.report(error, 'serial_read', ErrorSeverity.MEDIUM,
                                  {'port': self.active_port})
        self.emit_status(f"Serial read error: {error}")
        self._close_port()

    def _close_port(self):
        port, self._serial = self._serial, None
        self._pending = ""

        if self.port_manager is not None:
            self.port_manager.set_active_port(None)

        if port is None:
            return

        try:
            port.close()
            log.info(f"✓ Closed serial port {self.active_port}")
        except (serial.SerialException, OSError) as e:
            log.warning(f"Error closing serial port {self.active_port}: {e}")
