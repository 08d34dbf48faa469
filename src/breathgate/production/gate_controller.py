"""
Production Gate Controller

The runtime context for breath-gated play. One controller owns the
transport, the pressure signal, the control mode broadcaster and the
production helpers around them, and is passed explicitly to whatever
needs them.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Iterable, Optional

from .error_handler import ProductionErrorHandler
from .retry_manager import ProductionRetryManager
from .resource_manager import ProductionResourceManager
from .port_manager import SerialPortManager, PortInfo
from .health_monitor import SignalHealthMonitor
from .config_manager import ProductionConfigManager, ConfigChange
from ..config import FullConfig, ThresholdConfig
from ..transport import create_transport, TransportAdapter, HostBridge, SerialPortAdapter
from ..pressure import PressureSignal, ChunkParser, PressureReceiver, ConnectionState, PressureSample
from ..gating import (
    ThresholdEvaluator, ThresholdLevel, LevelSelector, ModeBroadcaster, ControlMode,
    PressureMeter, MeterReading, Deadline,
    NearestPairZoneIndex, AttachedEndZoneIndex, SegmentIndex,
)
from ..input import KeyBindings, KeyEdgeSource, find_keyboard
from ..abilities import (
    GatedAbility, Jump, PushBox, BridgeBuilder, BlowUpBalloons, InflatingBalloon, BlowMover,
)

log = logging.getLogger(__name__)

CONNECT_WATCH_SECONDS = 8.0
TICK_INTERVAL = 1.0 / 60.0


class ProductionGateController:
    """Owns and wires every runtime piece of the breath gate"""

    def __init__(self, config: Optional[FullConfig] = None,
                 config_manager: Optional[ProductionConfigManager] = None,
                 adapter: Optional[TransportAdapter] = None,
                 host: Optional[HostBridge] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.config_manager = config_manager
        if config is None:
            config = config_manager.to_full_config() if config_manager else FullConfig()
        self.config = config
        self.clock = clock

        self.error_handler = ProductionErrorHandler()
        self.retry_manager = ProductionRetryManager()
        attempts = config.transport.connect_attempts
        self.retry_manager.set_max_attempts('serial_open', attempts)
        self.retry_manager.set_max_attempts('socket_connect', attempts)
        self.resource_manager = ProductionResourceManager()
        self.port_manager = SerialPortManager() if config.transport.kind == 'serial' else None

        self.transport = adapter or create_transport(
            config.transport,
            error_handler=self.error_handler,
            retry_manager=self.retry_manager,
            port_manager=self.port_manager,
            host=host,
        )
        self.signal = PressureSignal(clear_on_disconnect=config.transport.clear_on_disconnect)
        self.parser = ChunkParser(clock=clock)
        self.receiver = PressureReceiver(self.transport, signal=self.signal, parser=self.parser)
        self.evaluator = ThresholdEvaluator(self.signal)
        self.broadcaster = ModeBroadcaster(ControlMode(config.control.mode))
        self.keys = KeyEdgeSource(KeyBindings(config.control.keys))
        self.meter = PressureMeter(config.meter.min_kpa, config.meter.max_kpa, config.meter.smoothing)
        self.health_monitor = SignalHealthMonitor(clock=clock)

        self.connect_watch = Deadline(clock)
        self.shutdown_requested = False
        self.initialized = False
        self.last_reading = MeterReading(fill=0.0, visible=False)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._keyboard_task: Optional[asyncio.Task] = None

        self._wire_signal()

    def initialize(self) -> bool:
        """Start background helpers and register their cleanup"""
        if self.initialized:
            return True

        log.info(f"Initializing breath gate ({self.config.transport.kind} transport, "
                 f"{self.broadcaster.current_mode().value} mode)...")

        if self.port_manager is not None:
            self.port_manager.register_port_watcher(self._on_port_event)
            self.port_manager.start_hotplug_monitoring()
            self.resource_manager.register_resource('port_monitor', self.port_manager.cleanup)

        self.health_monitor.start_monitoring()
        self.resource_manager.register_resource('health_monitor', self.health_monitor.stop_monitoring)

        if self.config_manager is not None:
            self.config_manager.add_change_callback(self._on_config_change)
            self.resource_manager.register_resource('config_manager', self.config_manager.shutdown)

        self.initialized = True
        log.info("✓ Breath gate initialized")
        return True

    def start_keyboard(self) -> bool:
        """
        Start reading action keys from an evdev keyboard

        Must be called from inside the running event loop. With
        control.keyboard_device set to null nothing is opened and the host
        feeds self.keys directly.
        """
        if self._keyboard_task is not None:
            return True

        device_path = self.config.control.keyboard_device
        if not device_path:
            return False

        device = find_keyboard(device_path)
        if device is None:
            return False

        self._keyboard_task = asyncio.get_running_loop().create_task(self.keys.read_device(device))
        self.resource_manager.register_resource('keyboard', self._stop_keyboard)
        return True

    def _stop_keyboard(self):
        if self._keyboard_task is not None:
            self._keyboard_task.cancel()
            self._keyboard_task = None
        self.keys.clear()

    async def connect(self, user_gesture: bool = False) -> bool:
        """
        Connect the configured transport

        Never raises for device problems. Failures are reported as status
        messages and the game keeps running with zero pressure.
        """
        self._loop = asyncio.get_running_loop()
        opened = await self.receiver.connect(user_gesture=user_gesture)
        if opened and not self.signal.is_connected():
            self.connect_watch.start(CONNECT_WATCH_SECONDS)
        return opened

    async def disconnect(self):
        self.connect_watch.cancel()
        await self.receiver.disconnect()

    def tick(self, dt: float) -> float:
        """
        Advance one frame

        Reads the transport, snapshots pressure for this frame's ability
        updates and refreshes the meter. Call end_tick() after the abilities
        have run.

        Returns:
            The pressure value all abilities see this frame
        """
        self.receiver.tick()
        value = self.evaluator.tick()
        self.last_reading = self.meter.update(value, dt, self.broadcaster.current_mode())

        if self.connect_watch.expired() and not self.signal.is_connected():
            log.warning(f"No pressure data {CONNECT_WATCH_SECONDS:.0f}s after connecting "
                        f"(state: {self.signal.current_state().value})")

        return value

    def end_tick(self):
        self.keys.end_tick()

    def load_scene(self, abilities: Iterable) -> int:
        """Replace the gated ability set and push the current mode to it"""
        return self.broadcaster.apply_to_scene(abilities)

    def set_mode(self, mode) -> bool:
        changed = self.broadcaster.set_mode(mode)
        if changed:
            self.meter.reset()
        return changed

    def current_mode(self) -> ControlMode:
        return self.broadcaster.current_mode()

    def current_pressure_kpa(self) -> float:
        return self.receiver.current_pressure_kpa()

    def is_connected(self) -> bool:
        return self.receiver.is_connected()

    def subscribe_status(self, callback: Callable[[str], None]):
        self.receiver.subscribe_status(callback)

    def subscribe_connection_changed(self, callback: Callable[[ConnectionState], None]):
        self.receiver.subscribe_connection_changed(callback)

    def subscribe_samples(self, callback: Callable[[PressureSample], None]):
        self.receiver.subscribe_samples(callback)

    # Ability factories using the configured thresholds. Each new ability is
    # registered with the broadcaster; load_scene() replaces the whole set.

    def jump(self, zones: AttachedEndZoneIndex, **kwargs) -> Jump:
        return self._adopt(Jump(self.evaluator, self.keys, zones, levels=self._jump_levels(), **kwargs))

    def push_box(self, zones: NearestPairZoneIndex, **kwargs) -> PushBox:
        return self._adopt(PushBox(self.evaluator, self.keys, zones,
                                   threshold_kpa=self.config.thresholds.push, **kwargs))

    def bridge_builder(self, zones: NearestPairZoneIndex,
                       dark_segments: Optional[SegmentIndex] = None, **kwargs) -> BridgeBuilder:
        return self._adopt(BridgeBuilder(self.evaluator, self.keys, zones, dark_segments=dark_segments,
                                         threshold_kpa=self.config.thresholds.bridge, **kwargs))

    def blow_up_balloons(self, zones: AttachedEndZoneIndex, balloon_positions, **kwargs) -> BlowUpBalloons:
        kwargs.setdefault('clock', self.clock)
        return self._adopt(BlowUpBalloons(self.evaluator, self.keys, zones, balloon_positions,
                                          threshold_kpa=self.config.thresholds.blow, **kwargs))

    def inflating_balloon(self, **kwargs) -> InflatingBalloon:
        return self._adopt(InflatingBalloon(self.evaluator, self.keys,
                                            threshold_kpa=self.config.thresholds.inflate, **kwargs))

    def blow_mover(self, **kwargs) -> BlowMover:
        return self._adopt(BlowMover(self.evaluator, self.keys,
                                     threshold_kpa=self.config.thresholds.move, **kwargs))

    def retune(self, thresholds: ThresholdConfig):
        """Apply new thresholds to the abilities in the current scene"""
        self.config.thresholds = thresholds
        for ability in self.broadcaster.registered():
            if not isinstance(ability, GatedAbility):
                continue
            if isinstance(ability, Jump):
                ability.selector = LevelSelector(self._jump_levels())
                continue
            threshold = getattr(thresholds, ability.action, None)
            if threshold is None:
                continue
            for attr in ('trigger', 'gate'):
                target = getattr(ability, attr, None)
                if target is not None:
                    target.threshold_kpa = threshold
        log.info("✓ Ability thresholds updated")

    async def run(self, duration: Optional[float] = None, user_gesture: bool = True) -> bool:
        """
        Connect and tick until shutdown is requested

        Args:
            duration: Optional run time in seconds
            user_gesture: Whether the start counts as a user gesture

        Returns:
            True if the run ended cleanly
        """
        self.initialize()
        self.start_keyboard()
        started = self.clock()
        last = started

        try:
            await self.connect(user_gesture=user_gesture)

            while not self.shutdown_requested:
                now = self.clock()
                self.tick(now - last)
                self.end_tick()
                last = now

                if duration is not None and now - started >= duration:
                    break
                await asyncio.sleep(TICK_INTERVAL)

            return True
        finally:
            await self.shutdown()

    def request_shutdown(self):
        self.shutdown_requested = True

    async def shutdown(self):
        log.info("Shutting down breath gate...")
        self.connect_watch.cancel()

        if self.transport.is_open:
            await self.receiver.disconnect()

        results = self.resource_manager.cleanup_all()
        failed = sum(1 for ok in results.values() if not ok)
        if failed:
            log.warning(f"{failed} resources failed to clean up")

        self.initialized = False
        self._log_final_metrics()

    def get_status(self) -> Dict[str, Any]:
        return {
            'transport': self.transport.name,
            'state': self.signal.current_state().value,
            'pressure_kpa': self.signal.current_value(),
            'mode': self.broadcaster.current_mode().value,
            'health': self.health_monitor.get_health_status(),
            'errors': self.error_handler.get_error_statistics(),
        }

    def _wire_signal(self):
        self.receiver.subscribe_samples(self.health_monitor.record_sample)
        self.parser.add_diagnostic_callback(self.health_monitor.record_parse_failure)
        self.receiver.subscribe_status(self._on_status)
        self.receiver.subscribe_connection_changed(self._on_connection_changed)

    def _on_status(self, message: str):
        log.info(f"Sensor: {message}")
        self.health_monitor.record_status(message)

    def _on_connection_changed(self, state: ConnectionState):
        self.health_monitor.record_connection(state is ConnectionState.CONNECTED)
        if state is ConnectionState.CONNECTED:
            self.connect_watch.cancel()
        elif state is ConnectionState.DISCONNECTED and self.broadcaster.current_mode() is ControlMode.BREATH:
            log.warning("Breath sensor disconnected while in breath mode; pressure reads 0")

    def _on_port_event(self, event_type: str, info: PortInfo):
        if event_type != 'port_removed' or not isinstance(self.transport, SerialPortAdapter):
            return
        # Port events arrive on the monitor thread
        if self._loop is not None and self._loop.is_running():
            self._loop.call_soon_threadsafe(self.transport.handle_port_removed, info.device)
        else:
            self.transport.handle_port_removed(info.device)

    def _on_config_change(self, change: ConfigChange):
        if change.key == 'control.mode':
            self.set_mode(change.new_value)
        elif change.key.startswith('thresholds.') and self.config_manager is not None:
            self.retune(self.config_manager.to_full_config().thresholds)
        else:
            log.info(f"Config {change.key} changed; takes effect on restart")

    def _adopt(self, ability: GatedAbility):
        # New abilities join the current scene and take the current mode at once
        self.broadcaster.register(ability)
        return ability

    def _jump_levels(self):
        return [ThresholdLevel(lv.name, lv.threshold_kpa, lv.magnitude)
                for lv in self.config.thresholds.jump]

    def _log_final_metrics(self):
        errors = self.error_handler.get_error_statistics()
        health = self.health_monitor.get_health_status()
        log.info(f"Samples: {health['signal']['samples']}  "
                 f"Parse failures: {health['signal']['parse_failures']}  "
                 f"Errors: {errors['total_errors']}")
