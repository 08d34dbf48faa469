"""
Push Box: the crate may only move horizontally while the player pushes
inside a push zone. Outside that, its horizontal position is frozen.
"""

from dataclasses import dataclass

from .base import GatedAbility
from ..gating.threshold import ThresholdEvaluator, LevelGate
from ..gating.zones import NearestPairZoneIndex
from ..input.keyboard_input import KeyEdgeSource


@dataclass(frozen=True)
class Velocity:
    x: float
    y: float


def clamp_velocity_x(velocity: Velocity, max_speed_x: float) -> Velocity:
    return Velocity(max(-max_speed_x, min(max_speed_x, velocity.x)), velocity.y)


def freeze_x(velocity: Velocity) -> Velocity:
    return Velocity(0.0, velocity.y)


@dataclass(frozen=True)
class PushDecision:
    in_zone: bool
    can_push: bool

    def apply(self, box_velocity: Velocity, max_speed_x: float) -> Velocity:
        if self.can_push:
            return clamp_velocity_x(box_velocity, max_speed_x)
        return freeze_x(box_velocity)


class PushBox(GatedAbility):
    action = "push"

    def __init__(self, evaluator: ThresholdEvaluator, keys: KeyEdgeSource,
                 zones: NearestPairZoneIndex, threshold_kpa: float = 1.0,
                 max_box_speed_x: float = 5.0):
        super().__init__(evaluator, keys)
        self.zones = zones
        self.gate = LevelGate(threshold_kpa)
        self.max_box_speed_x = max_box_speed_x

    def update(self, player_x: float, touching_box: bool = True) -> PushDecision:
        in_zone = self.zones.contains(player_x)

        if self.uses_breath:
            pushing = self.evaluator.holding(self.gate)
        else:
            pushing = self.keys.is_held(self.action)

        return PushDecision(in_zone=in_zone, can_push=in_zone and touching_box and pushing)

    def box_velocity(self, decision: PushDecision, box_velocity: Velocity) -> Velocity:
        return decision.apply(box_velocity, self.max_box_speed_x)
