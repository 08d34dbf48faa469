"""
Signal Health Monitor

Watches the pressure stream from the outside: sample rate, parse failure
ratio, time since the last sample, plus process CPU and memory. It only
observes and never changes the connection state.
"""

import time
import psutil
import threading
import statistics
import logging
from typing import Dict, List, Deque, Callable, Any, Optional
from dataclasses import dataclass, field
from enum import Enum
from collections import deque

log = logging.getLogger(__name__)


class HealthStatus(Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


@dataclass
class SignalMetrics:
    sample_times: Deque[float] = field(default_factory=lambda: deque(maxlen=500))
    cpu_usage: Deque[float] = field(default_factory=lambda: deque(maxlen=60))
    memory_mb: Deque[float] = field(default_factory=lambda: deque(maxlen=60))
    samples: int = 0
    parse_failures: int = 0
    status_messages: int = 0
    last_status: str = ""
    last_sample_at: Optional[float] = None
    start_time: float = 0.0
    lock: threading.Lock = field(default_factory=threading.Lock)


@dataclass
class HealthThresholds:
    """Thresholds for health assessment"""
    max_sample_age: float = 2.0           # seconds without data while connected
    max_parse_failure_ratio: float = 0.2
    max_cpu_usage: float = 80.0           # percent of one core
    min_uptime: float = 3.0               # seconds before judging


class SignalHealthMonitor:
    """Health view of the pressure stream"""

    def __init__(self, thresholds: Optional[HealthThresholds] = None,
                 clock: Callable[[], float] = time.monotonic,
                 check_interval: float = 5.0):
        self.thresholds = thresholds or HealthThresholds()
        self.clock = clock
        self.check_interval = check_interval
        self.metrics = SignalMetrics(start_time=clock())

        self.connected = False
        self.monitoring_active = False
        self.shutdown_event = threading.Event()
        self.monitor_thread: Optional[threading.Thread] = None
        self.health_callbacks: List[Callable[[Dict[str, Any]], None]] = []
        self._last_status: Optional[HealthStatus] = None

        self.process = psutil.Process()

    def record_sample(self, sample=None):
        now = self.clock()
        with self.metrics.lock:
            self.metrics.samples += 1
            self.metrics.sample_times.append(now)
            self.metrics.last_sample_at = now

    def record_parse_failure(self, diagnostic=None):
        with self.metrics.lock:
            self.metrics.parse_failures += 1

    def record_status(self, message: str):
        with self.metrics.lock:
            self.metrics.status_messages += 1
            self.metrics.last_status = message

    def record_connection(self, connected: bool):
        self.connected = connected

    def sample_rate(self, window: float = 1.0) -> float:
        """Samples per second over the trailing window"""
        now = self.clock()
        with self.metrics.lock:
            recent = sum(1 for t in self.metrics.sample_times if now - t <= window)
        return recent / window if window > 0 else 0.0

    def parse_failure_ratio(self) -> float:
        with self.metrics.lock:
            total = self.metrics.samples + self.metrics.parse_failures
            return self.metrics.parse_failures / total if total else 0.0

    def last_sample_age(self) -> Optional[float]:
        last = self.metrics.last_sample_at
        return None if last is None else self.clock() - last

    def sample_process(self):
        """Take one psutil reading of this process"""
        try:
            self.metrics.cpu_usage.append(self.process.cpu_percent(interval=None))
            self.metrics.memory_mb.append(self.process.memory_info().rss / (1024 * 1024))
        except psutil.Error as e:
            log.debug(f"Process sampling failed: {e}")

    def get_health_status(self) -> Dict[str, Any]:
        uptime = self.clock() - self.metrics.start_time
        age = self.last_sample_age()
        cpu = statistics.mean(self.metrics.cpu_usage) if self.metrics.cpu_usage else 0.0
        memory = self.metrics.memory_mb[-1] if self.metrics.memory_mb else 0.0
        ratio = self.parse_failure_ratio()

        return {
            'status': self._calculate_health_status(uptime, age, ratio, cpu).value,
            'uptime': uptime,
            'connected': self.connected,
            'signal': {
                'samples': self.metrics.samples,
                'sample_rate': self.sample_rate(),
                'parse_failures': self.metrics.parse_failures,
                'parse_failure_ratio': ratio,
                'last_sample_age': age,
                'last_status': self.metrics.last_status,
            },
            'process': {
                'cpu_percent': cpu,
                'memory_mb': memory,
            },
        }

    def get_detailed_report(self) -> str:
        health = self.get_health_status()
        signal = health['signal']
        process = health['process']
        age = signal['last_sample_age']
        age_text = "never" if age is None else f"{age:.1f}s ago"

        lines = [
            "╔" + "═" * 62 + "╗",
            f"║  Breath Gate Health: {health['status'].upper():<10} Uptime: {health['uptime']:>8.0f}s{'':<11}║",
            "╠" + "═" * 62 + "╣",
            f"║  Samples: {signal['samples']:<8d} Rate: {signal['sample_rate']:>6.1f}/s  Last: {age_text:<14}║",
            f"║  Parse failures: {signal['parse_failures']:<6d} Ratio: {signal['parse_failure_ratio']:>6.1%}{'':<17}║",
            f"║  Process: CPU {process['cpu_percent']:>5.1f}%  Memory {process['memory_mb']:>7.1f} MB{'':<17}║",
            "╚" + "═" * 62 + "╝",
        ]
        return "\n".join(lines)

    def register_health_callback(self, callback: Callable[[Dict[str, Any]], None]):
        self.health_callbacks.append(callback)

    def start_monitoring(self) -> bool:
        if self.monitoring_active:
            return True

        self.shutdown_event.clear()
        self.monitor_thread = threading.Thread(
            target=self._monitoring_loop,
            daemon=True,
            name="SignalHealthMonitor"
        )
        self.monitor_thread.start()
        self.monitoring_active = True
        log.info("✓ Signal health monitoring started")
        return True

    def stop_monitoring(self):
        if not self.monitoring_active:
            return

        self.shutdown_event.set()
        if self.monitor_thread and self.monitor_thread.is_alive():
            self.monitor_thread.join(timeout=2.0)
        self.monitoring_active = False
        log.info("✓ Signal health monitoring stopped")

    def check_once(self) -> Dict[str, Any]:
        """One monitoring pass: sample the process, assess, notify"""
        self.sample_process()
        health = self.get_health_status()

        status = HealthStatus(health['status'])
        if status != self._last_status:
            if status in (HealthStatus.WARNING, HealthStatus.CRITICAL):
                log.warning(f"Signal health {status.value}: {self._describe(health)}")
            elif self._last_status in (HealthStatus.WARNING, HealthStatus.CRITICAL):
                log.info("Signal health recovered")
            self._last_status = status

        for callback in self.health_callbacks:
            try:
                callback(health)
            except Exception as e:
                log.error(f"Health callback error: {e}")
        return health

    def _monitoring_loop(self):
        while not self.shutdown_event.is_set():
            self.check_once()
            self.shutdown_event.wait(self.check_interval)

    def _calculate_health_status(self, uptime: float, age: Optional[float],
                                 ratio: float, cpu: float) -> HealthStatus:
        if uptime < self.thresholds.min_uptime:
            return HealthStatus.UNKNOWN

        # A stalled stream while connected is only reported; the state stays Connected
        stalled = self.connected and (age is None or age > self.thresholds.max_sample_age)
        if stalled or ratio > self.thresholds.max_parse_failure_ratio:
            return HealthStatus.CRITICAL

        if (cpu > self.thresholds.max_cpu_usage or
                ratio > self.thresholds.max_parse_failure_ratio * 0.5):
            return HealthStatus.WARNING

        return HealthStatus.HEALTHY

    def _describe(self, health: Dict[str, Any]) -> str:
        signal = health['signal']
        parts = []
        age = signal['last_sample_age']
        if health['connected'] and (age is None or age > self.thresholds.max_sample_age):
            parts.append("no pressure data" if age is None else f"no pressure data for {age:.1f}s")
        if signal['parse_failure_ratio'] > 0:
            parts.append(f"parse failures {signal['parse_failure_ratio']:.0%}")
        if health['process']['cpu_percent'] > self.thresholds.max_cpu_usage:
            parts.append(f"cpu {health['process']['cpu_percent']:.0f}%")
        return ", ".join(parts) or "degraded"
