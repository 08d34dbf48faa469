"""
Pressure Receiver

Wires one transport through the chunk parser into the pressure signal and
exposes the small surface the game talks to: connect, disconnect, current
pressure, connection flag and subscriptions.
"""

import logging
from typing import Callable, List, Optional

from .parser import ChunkParser
from .pressure_signal import PressureSignal, PressureSample, ConnectionState
from ..transport.base import TransportAdapter, TransportEvent, TransportEventKind

log = logging.getLogger(__name__)

DATA_FLOWING_STATUS = "Device connected. Receiving pressure..."


class PressureReceiver:
    """Consumer-facing pressure source backed by a single transport"""

    def __init__(self, adapter: TransportAdapter,
                 signal: Optional[PressureSignal] = None,
                 parser: Optional[ChunkParser] = None):
        self.signal = signal or PressureSignal()
        self.parser = parser or ChunkParser()
        self.adapter: Optional[TransportAdapter] = None
        self._sample_callbacks: List[Callable[[PressureSample], None]] = []

        self.attach(adapter)

    def attach(self, adapter: TransportAdapter):
        """Route a transport into this receiver, detaching the previous one"""
        if self.adapter is not None:
            self.adapter.remove_listener(self._on_transport_event)
        self.adapter = adapter
        adapter.register_listener(self._on_transport_event)

    async def connect(self, user_gesture: bool = False) -> bool:
        """
        Open the transport

        Failures surface as status messages. The call itself never raises
        for device problems and leaves the state Disconnected on failure.

        Returns:
            True if the transport opened or a host request is pending
        """
        if self.signal.current_state() is ConnectionState.DISCONNECTED:
            self.signal.set_state(ConnectionState.CONNECTING)

        opened = await self.adapter.connect(user_gesture=user_gesture)

        if not opened and self.signal.current_state() is not ConnectionState.CONNECTED:
            self.signal.set_state(ConnectionState.DISCONNECTED)

        return opened

    async def disconnect(self):
        await self.adapter.disconnect()
        # Adapters report "Disconnected." themselves; this covers custom ones that don't
        self.signal.set_state(ConnectionState.DISCONNECTED)

    def tick(self) -> int:
        """Give polled transports their per-frame read"""
        return self.adapter.poll()

    def current_pressure_kpa(self) -> float:
        return self.signal.current_value()

    def is_connected(self) -> bool:
        return self.signal.is_connected()

    def subscribe_status(self, callback: Callable[[str], None]):
        self.signal.on_status_message(callback)

    def subscribe_connection_changed(self, callback: Callable[[ConnectionState], None]):
        self.signal.on_state_changed(callback)

    def subscribe_samples(self, callback: Callable[[PressureSample], None]):
        self._sample_callbacks.append(callback)

    def _on_transport_event(self, event: TransportEvent):
        if event.kind is TransportEventKind.STATUS:
            self.signal.publish_status(event.payload)
            return

        for sample in self.parser.parse(event.payload):
            self._apply_sample(sample)

    def _apply_sample(self, sample: PressureSample):
        self.signal.set_value(sample)

        # Data flowing means the device is there, whatever the status text said
        if self.signal.set_state(ConnectionState.CONNECTED):
            self.signal.relay_status(DATA_FLOWING_STATUS)

        for callback in self._sample_callbacks:
            try:
                callback(sample)
            except Exception as e:
                log.error(f"Sample subscriber error: {e}")
