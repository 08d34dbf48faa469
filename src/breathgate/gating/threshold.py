"""
Threshold Evaluation

Turns the pressure signal into ability input: rising-edge triggers for
one-shot actions, level gates for held actions, and multi-level selection
for graded actions such as jump strength.
"""

import logging
from typing import Iterable, List, Optional
from dataclasses import dataclass

from ..pressure.pressure_signal import PressureSignal

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThresholdLevel:
    """One strength tier: at or above threshold_kpa, apply magnitude"""
    name: str
    threshold_kpa: float
    magnitude: float


class EdgeTrigger:
    """Fires once when the signal crosses from below to at-or-above a threshold"""

    def __init__(self, threshold_kpa: float = 1.0):
        self.threshold_kpa = threshold_kpa
        self.was_above = False
        self.released = False

    def update(self, value: float) -> bool:
        """
        Feed one tick's value

        Returns:
            True only on the tick the threshold is crossed upward
        """
        above = value >= self.threshold_kpa
        fired = above and not self.was_above
        self.released = self.was_above and not above
        self.was_above = above
        return fired

    def reset(self):
        self.was_above = False
        self.released = False


class LevelGate:
    """Continuous boolean: true on every tick the signal is at or above threshold"""

    def __init__(self, threshold_kpa: float = 1.0):
        self.threshold_kpa = threshold_kpa

    def is_active(self, value: float) -> bool:
        return value >= self.threshold_kpa


class LevelSelector:
    """Picks the strongest tier whose threshold the pressure meets"""

    def __init__(self, levels: Iterable[ThresholdLevel]):
        self.levels: List[ThresholdLevel] = sorted(levels, key=lambda lv: lv.threshold_kpa)

    def select(self, value: float) -> Optional[ThresholdLevel]:
        """
        Scan from the highest threshold down

        Returns:
            The first level met, or None for no effect
        """
        for level in reversed(self.levels):
            if value >= level.threshold_kpa:
                return level
        return None

    def magnitude(self, value: float) -> float:
        level = self.select(value)
        return level.magnitude if level is not None else 0.0

    def level_named(self, name: str) -> Optional[ThresholdLevel]:
        for level in self.levels:
            if level.name == name:
                return level
        return None


class ThresholdEvaluator:
    """
    Per-tick view of the canonical pressure signal

    Every trigger, gate and selector in the game is evaluated against the
    value snapshotted by tick(), so all abilities see the same reading
    within a frame.
    """

    def __init__(self, signal: PressureSignal):
        self.signal = signal
        self._value = signal.current_value()

    def tick(self) -> float:
        self._value = self.signal.current_value()
        return self._value

    @property
    def value(self) -> float:
        return self._value

    def rising(self, trigger: EdgeTrigger) -> bool:
        return trigger.update(self._value)

    def holding(self, gate: LevelGate) -> bool:
        return gate.is_active(self._value)

    def select(self, selector: LevelSelector) -> Optional[ThresholdLevel]:
        return selector.select(self._value)
