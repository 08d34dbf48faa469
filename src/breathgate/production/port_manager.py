"""
Production Serial Port Manager

Serial port discovery for the breath sensor with hot-plug watching.
Removal of the active port is reported to watchers so the caller can
disconnect cleanly instead of waiting for a read error.
"""

import time
import threading
import logging
from typing import Dict, List, Optional, Callable, Any
from dataclasses import dataclass, field
from enum import Enum

from serial.tools import list_ports

log = logging.getLogger(__name__)

# Descriptions and USB vendor strings seen on the microcontroller boards the
# sensor firmware runs on
SENSOR_KEYWORDS = ("arduino", "ch340", "cp210", "ftdi", "usb serial", "usb-serial", "esp32", "pico")


class PortStatus(Enum):
    """Port status states"""
    PRESENT = "present"
    ACTIVE = "active"
    REMOVED = "removed"


@dataclass
class PortInfo:
    """Information about a discovered serial port"""
    device: str
    description: str = ""
    hwid: str = ""
    manufacturer: Optional[str] = None
    status: PortStatus = PortStatus.PRESENT
    first_seen: float = field(default_factory=time.time)

    @property
    def looks_like_sensor(self) -> bool:
        text = " ".join(filter(None, [self.description, self.hwid, self.manufacturer])).lower()
        return any(keyword in text for keyword in SENSOR_KEYWORDS)


class SerialPortManager:
    """Enumerates serial ports and watches for plug and unplug events"""

    def __init__(self, scan_interval: float = 1.0):
        self.ports: Dict[str, PortInfo] = {}
        self.port_watchers: List[Callable[[str, PortInfo], None]] = []
        self.scan_interval = scan_interval
        self.active_port: Optional[str] = None

        self.hotplug_thread: Optional[threading.Thread] = None
        self.shutdown_event = threading.Event()
        self._lock = threading.Lock()

        self.metrics = {
            'scans': 0,
            'ports_added': 0,
            'ports_removed': 0,
        }

    def enumerate_ports(self) -> List[PortInfo]:
        """
        Scan for serial ports

        Returns:
            Ports currently present, sensor-looking ports first
        """
        found = {}
        for port in list_ports.comports():
            found[port.device] = PortInfo(
                device=port.device,
                description=port.description or "",
                hwid=port.hwid or "",
                manufacturer=getattr(port, 'manufacturer', None),
            )

        self._apply_scan(found)
        return sorted(self.get_present_ports(), key=lambda p: (not p.looks_like_sensor, p.device))

    def detect_sensor_port(self) -> Optional[str]:
        """
        Pick the most likely sensor port

        Returns:
            Device path of the first sensor-looking port, else the first port, else None
        """
        ports = self.enumerate_ports()
        if not ports:
            log.warning("No serial ports found")
            return None

        choice = ports[0]
        if choice.looks_like_sensor:
            log.info(f"✓ Detected sensor port: {choice.device} ({choice.description})")
        else:
            log.info(f"No sensor-looking port, using first port: {choice.device}")
        return choice.device

    def set_active_port(self, device: Optional[str]):
        with self._lock:
            if self.active_port and self.active_port in self.ports:
                self.ports[self.active_port].status = PortStatus.PRESENT
            self.active_port = device
            if device and device in self.ports:
                self.ports[device].status = PortStatus.ACTIVE

    def get_present_ports(self) -> List[PortInfo]:
        with self._lock:
            return [p for p in self.ports.values() if p.status != PortStatus.REMOVED]

    def start_hotplug_monitoring(self) -> bool:
        """
        Start watching for serial ports appearing and disappearing

        Returns:
            True if monitoring is running
        """
        if self.hotplug_thread and self.hotplug_thread.is_alive():
            log.warning("Port monitoring already running")
            return True

        self.shutdown_event.clear()
        self.hotplug_thread = threading.Thread(
            target=self._monitor_hotplug,
            daemon=True,
            name="SerialPortMonitor"
        )
        self.hotplug_thread.start()
        log.info("✓ Started serial port monitoring")
        return True

    def stop_monitoring(self):
        self.shutdown_event.set()

        if self.hotplug_thread and self.hotplug_thread.is_alive():
            self.hotplug_thread.join(timeout=2.0)
            if self.hotplug_thread.is_alive():
                log.warning("Port monitoring thread did not stop cleanly")

        self.hotplug_thread = None

    def register_port_watcher(self, callback: Callable[[str, PortInfo], None]):
        """Register a callback receiving ('port_added' | 'port_removed', PortInfo)"""
        self.port_watchers.append(callback)

    def get_metrics(self) -> Dict[str, Any]:
        return {
            **self.metrics,
            'present_ports': len(self.get_present_ports()),
            'active_port': self.active_port,
        }

    def cleanup(self):
        self.stop_monitoring()
        with self._lock:
            self.ports.clear()
            self.active_port = None

    def _apply_scan(self, found: Dict[str, PortInfo]):
        events = []

        with self._lock:
            self.metrics['scans'] += 1

            for device, info in found.items():
                known = self.ports.get(device)
                if known is None or known.status == PortStatus.REMOVED:
                    if device == self.active_port:
                        info.status = PortStatus.ACTIVE
                    self.ports[device] = info
                    self.metrics['ports_added'] += 1
                    events.append(('port_added', info))

            for device, info in self.ports.items():
                if device not in found and info.status != PortStatus.REMOVED:
                    info.status = PortStatus.REMOVED
                    self.metrics['ports_removed'] += 1
                    events.append(('port_removed', info))

        for event_type, info in events:
            log.debug(f"{event_type}: {info.device}")
            self._notify_watchers(event_type, info)

    def _monitor_hotplug(self):
        log.debug("Starting port monitoring loop")

        while not self.shutdown_event.is_set():
            try:
                self.enumerate_ports()
            except Exception as e:
                log.error(f"Port monitoring error: {e}")

            self.shutdown_event.wait(self.scan_interval)

        log.debug("Port monitoring loop ended")

    def _notify_watchers(self, event_type: str, port_info: PortInfo):
        for callback in self.port_watchers:
            try:
                callback(event_type, port_info)
            except Exception as e:
                log.error(f"Port watcher callback error: {e}")
