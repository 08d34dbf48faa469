"""
Blow Mover: pushes an object along a fixed direction while the player
keeps blowing (or holds the key).
"""

import math
from typing import Tuple
from dataclasses import dataclass

from .base import GatedAbility
from ..gating.threshold import ThresholdEvaluator, LevelGate
from ..input.keyboard_input import KeyEdgeSource


@dataclass(frozen=True)
class MoveStep:
    dx: float
    dy: float
    moving: bool


def normalize(direction: Tuple[float, float]) -> Tuple[float, float]:
    length = math.hypot(*direction)
    if length == 0:
        return 0.0, 0.0
    return direction[0] / length, direction[1] / length


class BlowMover(GatedAbility):
    action = "move"

    def __init__(self, evaluator: ThresholdEvaluator, keys: KeyEdgeSource,
                 direction: Tuple[float, float] = (1.0, 0.0),
                 speed: float = 5.0, threshold_kpa: float = 1.0):
        super().__init__(evaluator, keys)
        self.direction = normalize(direction)
        self.speed = speed
        self.gate = LevelGate(threshold_kpa)
        self.enabled = True

    def start_blow(self):
        self.enabled = True

    def stop_blow(self):
        self.enabled = False

    def update(self, dt: float) -> MoveStep:
        if not self.enabled:
            return MoveStep(0.0, 0.0, False)

        if self.uses_breath:
            moving = self.evaluator.holding(self.gate)
        else:
            moving = self.keys.is_held(self.action)

        if not moving:
            return MoveStep(0.0, 0.0, False)

        step = self.speed * dt
        return MoveStep(self.direction[0] * step, self.direction[1] * step, True)
