"""
Pressure Signal

Process-wide holder of the last known breath pressure plus the sensor
connection state machine. Any transport may write to it; every ability and
every readout reads from it once per tick.
"""

import time
import threading
import logging
from typing import Callable, List, Optional
from dataclasses import dataclass, field
from enum import Enum

log = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Sensor connection states"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class PressureSample:
    """One successfully parsed pressure reading"""
    value_kpa: float
    received_at: float = field(default_factory=time.monotonic)


# Keyword tables for status text. Matched as case-insensitive substrings.
CONNECT_KEYWORDS = ("connected",)
DISCONNECT_KEYWORDS = ("disconnected", "disconnect", "closed", "failed", "error")


def classify_status(message: str) -> Optional[ConnectionState]:
    """
    Map a human-readable status message to a connection state

    Disconnect keywords are checked first, so "Disconnected." and
    "Serial connect failed" never read as connected. Unmatched text returns
    None and must leave the current state alone.

    Args:
        message: Status text as reported by a transport

    Returns:
        CONNECTED, DISCONNECTED or None
    """
    if not message:
        return None

    text = message.lower()
    if any(keyword in text for keyword in DISCONNECT_KEYWORDS):
        return ConnectionState.DISCONNECTED
    if any(keyword in text for keyword in CONNECT_KEYWORDS):
        return ConnectionState.CONNECTED
    return None


StateCallback = Callable[[ConnectionState], None]
StatusCallback = Callable[[str], None]


class PressureSignal:
    """Thread-safe last-value-held pressure signal with coalesced state changes"""

    def __init__(self, clear_on_disconnect: bool = True):
        self.clear_on_disconnect = clear_on_disconnect

        self._lock = threading.Lock()
        self._value = 0.0
        self._last_sample: Optional[PressureSample] = None
        self._state = ConnectionState.DISCONNECTED

        self._state_callbacks: List[StateCallback] = []
        self._status_callbacks: List[StatusCallback] = []

        self.metrics = {
            'samples_applied': 0,
            'state_transitions': 0,
            'status_messages': 0,
        }

    def current_value(self) -> float:
        """Last successfully parsed pressure in kPa"""
        with self._lock:
            return self._value

    def current_state(self) -> ConnectionState:
        with self._lock:
            return self._state

    def last_sample(self) -> Optional[PressureSample]:
        with self._lock:
            return self._last_sample

    def is_connected(self) -> bool:
        return self.current_state() is ConnectionState.CONNECTED

    def set_value(self, sample: PressureSample):
        """Store a new reading; only the latest value is kept"""
        with self._lock:
            self._value = sample.value_kpa
            self._last_sample = sample
            self.metrics['samples_applied'] += 1

    def set_state(self, state: ConnectionState) -> bool:
        """
        Move to a new connection state

        Subscribers are only notified when the state actually changes.

        Returns:
            True if the state changed
        """
        with self._lock:
            if state is self._state:
                return False

            previous = self._state
            self._state = state
            self.metrics['state_transitions'] += 1

            if state is ConnectionState.DISCONNECTED and self.clear_on_disconnect:
                self._value = 0.0

            callbacks = list(self._state_callbacks)

        log.info(f"Connection state: {previous.value} -> {state.value}")

        for callback in callbacks:
            try:
                callback(state)
            except Exception as e:
                log.error(f"State change callback error: {e}")

        return True

    def publish_status(self, message: str) -> Optional[ConnectionState]:
        """
        Classify a transport status message, apply it, then relay it

        The state is updated before status subscribers see the text so a
        readout reacting to the message already observes the new state.

        Returns:
            The state the message classified as, or None if unmatched
        """
        state = classify_status(message)
        if state is not None:
            self.set_state(state)

        self.relay_status(message)
        return state

    def relay_status(self, message: str):
        """Forward status text verbatim to subscribers without classifying it"""
        with self._lock:
            self.metrics['status_messages'] += 1
            callbacks = list(self._status_callbacks)

        log.info(f"Status: {message}")

        for callback in callbacks:
            try:
                callback(message)
            except Exception as e:
                log.error(f"Status callback error: {e}")

    def on_state_changed(self, callback: StateCallback):
        with self._lock:
            self._state_callbacks.append(callback)

    def on_status_message(self, callback: StatusCallback):
        with self._lock:
            self._status_callbacks.append(callback)

    def remove_callback(self, callback: Callable):
        """Drop a callback from both subscriber lists"""
        with self._lock:
            if callback in self._state_callbacks:
                self._state_callbacks.remove(callback)
            if callback in self._status_callbacks:
                self._status_callbacks.remove(callback)
