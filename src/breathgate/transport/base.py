"""
Transport Adapter Contract

Every transport owns one channel to the breath sensor and reports two kinds
of events: raw text chunks and human-readable status messages. Connect
failures are reported as status messages, never raised, so the caller can
show them and keep running.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List
from dataclasses import dataclass
from enum import Enum

log = logging.getLogger(__name__)

DISCONNECTED_STATUS = "Disconnected."


class TransportEventKind(Enum):
    """Events a transport emits"""
    RAW_TEXT = "raw_text_chunk"
    STATUS = "status_message"


@dataclass(frozen=True)
class TransportEvent:
    kind: TransportEventKind
    payload: str


TransportListener = Callable[[TransportEvent], None]


class TransportAdapter(ABC):
    """Base class for serial, socket and host-bridge transports"""

    name = "transport"

    def __init__(self):
        self._listeners: List[TransportListener] = []
        self.metrics = {
            'chunks_emitted': 0,
            'status_emitted': 0,
            'connect_attempts': 0,
            'connect_failures': 0,
        }

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """True while the channel is open"""

    @abstractmethod
    async def connect(self, user_gesture: bool = False) -> bool:
        """
        Open the channel

        Args:
            user_gesture: Whether the call comes straight from a user action

        Returns:
            True if the channel is open (or a host request is in flight)
        """

    @abstractmethod
    async def disconnect(self):
        """Close the channel, reporting the disconnect before teardown"""

    def poll(self) -> int:
        """
        Do one tick of work for polled transports

        Returns:
            Number of raw chunks emitted this tick
        """
        return 0

    def register_listener(self, callback: TransportListener):
        self._listeners.append(callback)

    def remove_listener(self, callback: TransportListener):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def emit_raw_text(self, text: str):
        self.metrics['chunks_emitted'] += 1
        self._notify_listeners(TransportEvent(TransportEventKind.RAW_TEXT, text))

    def emit_status(self, message: str):
        self.metrics['status_emitted'] += 1
        log.debug(f"[{self.name}] {message}")
        self._notify_listeners(TransportEvent(TransportEventKind.STATUS, message))

    def _notify_listeners(self, event: TransportEvent):
        for callback in self._listeners:
            try:
                callback(event)
            except Exception as e:
                log.error(f"Transport listener error ({self.name}): {e}")
