"""
Breath meter readout: maps pressure onto a smoothed 0..1 fill for the
on-screen bar.
"""

import math
from dataclasses import dataclass

from .mode import ControlMode


@dataclass(frozen=True)
class MeterReading:
    fill: float
    visible: bool

    @property
    def percent_text(self) -> str:
        return f"{round(self.fill * 100)}%"


class PressureMeter:
    """Exponentially smoothed pressure bar, hidden while in keyboard mode"""

    def __init__(self, min_kpa: float = 0.3, max_kpa: float = 8.0, smoothing: float = 12.0):
        self.min_kpa = min_kpa
        self.max_kpa = max_kpa
        self.smoothing = smoothing
        self._fill = 0.0

    def target(self, kpa: float) -> float:
        if self.max_kpa == self.min_kpa:
            return 0.0
        t = (kpa - self.min_kpa) / (self.max_kpa - self.min_kpa)
        return max(0.0, min(1.0, t))

    def update(self, kpa: float, dt: float, mode: ControlMode) -> MeterReading:
        if mode is ControlMode.KEYBOARD:
            self._fill = 0.0
            return MeterReading(fill=0.0, visible=False)

        # Frame-rate independent smoothing
        alpha = 1.0 - math.exp(-self.smoothing * dt)
        self._fill += (self.target(kpa) - self._fill) * alpha
        return MeterReading(fill=self._fill, visible=True)

    def reset(self):
        self._fill = 0.0
