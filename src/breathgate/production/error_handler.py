"""
Production Error Handler

Centralized error handling for sensor transports.
Turns low-level exceptions into short headlines plus actionable solutions,
which transports then surface on the status channel.
"""

import time
import traceback
import logging
from typing import Dict, Optional, Any, List, Tuple
from dataclasses import dataclass
from enum import Enum

from websockets.exceptions import InvalidURI, InvalidHandshake

log = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Context information for error handling"""
    error: Exception
    context: str
    severity: ErrorSeverity
    user_message: str
    solutions: List[str]
    details: Dict[str, Any]
    timestamp: float
    recoverable: bool = True


class ProductionErrorHandler:
    """Records transport errors and explains them to the user"""

    def __init__(self):
        self.error_counts: Dict[str, int] = {}
        self.severity_counts: Dict[ErrorSeverity, int] = {s: 0 for s in ErrorSeverity}
        self.error_history: List[ErrorContext] = []
        self.max_history = 100

    def report(self, error: Exception, context: str,
               severity: ErrorSeverity = ErrorSeverity.MEDIUM,
               details: Optional[Dict[str, Any]] = None) -> ErrorContext:
        """
        Record and log an error

        Args:
            error: The exception that occurred
            context: Context where the error occurred
            severity: Error severity level
            details: Additional context details

        Returns:
            ErrorContext with the user-facing headline and solutions
        """
        self.error_counts[context] = self.error_counts.get(context, 0) + 1
        self.severity_counts[severity] += 1

        error_ctx = self._create_error_context(error, context, severity, details or {})
        self._log_error(error_ctx)
        self._store_error(error_ctx)
        return error_ctx

    def format_error(self, error_ctx: ErrorContext) -> str:
        """Format error for terminal display with solutions"""
        lines = []
        lines.append("╔" + "═" * 74 + "╗")
        lines.append(f"║  Error: {error_ctx.user_message[:64]:<64}  ║")
        lines.append("╠" + "═" * 74 + "╣")

        if error_ctx.solutions:
            lines.append(f"║  {'Solution(s):':<72}║")
            for i, solution in enumerate(error_ctx.solutions[:3], 1):
                lines.append(f"║    {i}. {solution[:67]:<67} ║")

        if error_ctx.details:
            lines.append("╠" + "═" * 74 + "╣")
            lines.append(f"║  {'Details:':<72}║")
            for key, value in list(error_ctx.details.items())[:5]:
                text = f"{key}: {value}"
                lines.append(f"║    {text[:70]:<70}║")

        lines.append("╚" + "═" * 74 + "╝")
        return "\n".join(lines)

    def get_error_statistics(self) -> Dict[str, Any]:
        """Get error statistics for monitoring"""
        return {
            'total_errors': sum(self.error_counts.values()),
            'error_counts': dict(self.error_counts),
            'severity_counts': {s.value: n for s, n in self.severity_counts.items()},
            'recent_errors': len([e for e in self.error_history
                                  if e.timestamp > (time.time() - 3600)]),
        }

    def recent_errors(self, min_severity: ErrorSeverity = ErrorSeverity.HIGH) -> List[ErrorContext]:
        """Stored errors at or above a severity, oldest first"""
        order = list(ErrorSeverity)
        floor = order.index(min_severity)
        return [e for e in self.error_history if order.index(e.severity) >= floor]

    def _create_error_context(self, error: Exception, context: str,
                              severity: ErrorSeverity, details: Dict[str, Any]) -> ErrorContext:
        user_message, solutions, recoverable = self._analyze_error(error, context, details)

        return ErrorContext(
            error=error,
            context=context,
            severity=severity,
            user_message=user_message,
            solutions=solutions,
            details=details,
            timestamp=time.time(),
            recoverable=recoverable
        )

    def _analyze_error(self, error: Exception, context: str,
                       details: Dict[str, Any]) -> Tuple[str, List[str], bool]:
        """Analyze error and generate user-friendly message and solutions"""
        text = str(error)

        if context == 'serial_open':
            if isinstance(error, PermissionError) or "Permission denied" in text:
                return (
                    "Serial port permission denied",
                    [
                        "Add yourself to the 'dialout' group: sudo usermod -aG dialout $USER",
                        "Log out and log back in (or reboot)",
                        "Verify with: groups | grep dialout",
                    ],
                    False
                )
            if "busy" in text.lower() or "could not exclusively lock" in text:
                return (
                    "Serial port busy",
                    [
                        "Close the Arduino serial monitor or any other program using the port",
                        "Unplug and replug the sensor",
                        "Check who holds the port: fuser -v /dev/ttyACM0",
                    ],
                    True
                )
            if isinstance(error, FileNotFoundError) or "No such file" in text or "could not open port" in text:
                return (
                    "Serial port not found",
                    [
                        "Check that the breath sensor is plugged in",
                        "List available ports: breathgate ports",
                        "Pass the port explicitly: --port /dev/ttyACM0",
                    ],
                    True
                )
            return (
                "Serial port could not be opened",
                [
                    "Check the port name and baud rate (default 115200)",
                    "List available ports: breathgate ports",
                ],
                True
            )

        if context == 'serial_read':
            return (
                "Serial device stopped responding",
                [
                    "Check the USB cable",
                    "Reconnect once the sensor is plugged back in",
                ],
                True
            )

        if context == 'socket_connect':
            if isinstance(error, InvalidURI):
                return (
                    "Invalid WebSocket address",
                    [
                        "Use an address of the form ws://host:port",
                        "Default sensor address: ws://192.168.43.3:5005",
                    ],
                    False
                )
            if isinstance(error, InvalidHandshake):
                return (
                    "WebSocket handshake rejected",
                    [
                        "Check that the address points at the pressure sensor server",
                        "Restart the sensor server",
                    ],
                    True
                )
            if isinstance(error, (TimeoutError, ConnectionRefusedError)) or "refused" in text:
                return (
                    "Sensor server unreachable",
                    [
                        "Check that the sensor hotspot is up and you are joined to it",
                        "Verify the sensor address and port",
                        "Try again with: --url ws://<sensor-ip>:5005",
                    ],
                    True
                )
            return (
                "WebSocket connection failed",
                [
                    "Check the network connection to the sensor",
                    "Verify the sensor address and port",
                ],
                True
            )

        if context == 'socket_receive':
            return (
                "WebSocket connection lost",
                [
                    "Check the network connection to the sensor",
                    "Reconnect to resume breath control",
                ],
                True
            )

        if context == 'bridge_connect':
            return (
                "Host serial bridge failed",
                [
                    "Use Chrome or Edge on desktop",
                    "Grant the page access to the USB device when prompted",
                ],
                True
            )

        if context == 'bridge_disconnect':
            return (
                "Host serial bridge did not close cleanly",
                [
                    "Reload the page if the sensor stays busy",
                    "Unplug and replug the sensor",
                ],
                True
            )

        return (
            f"Unexpected error in {context}",
            [
                "Check the log output for more details",
                "Try restarting the application",
            ],
            True
        )

    def _log_error(self, error_ctx: ErrorContext):
        if error_ctx.severity == ErrorSeverity.CRITICAL:
            log.critical(f"[{error_ctx.context}] {error_ctx.user_message}: {error_ctx.error}")
        elif error_ctx.severity == ErrorSeverity.HIGH:
            log.error(f"[{error_ctx.context}] {error_ctx.user_message}: {error_ctx.error}")
        elif error_ctx.severity == ErrorSeverity.MEDIUM:
            log.warning(f"[{error_ctx.context}] {error_ctx.user_message}: {error_ctx.error}")
        else:
            log.info(f"[{error_ctx.context}] {error_ctx.user_message}: {error_ctx.error}")

        if error_ctx.error.__traceback__ is not None:
            log.debug(f"Stack trace:\n{''.join(traceback.format_tb(error_ctx.error.__traceback__))}")

    def _store_error(self, error_ctx: ErrorContext):
        self.error_history.append(error_ctx)
        if len(self.error_history) > self.max_history:
            self.error_history = self.error_history[-self.max_history:]
