"""
Balloon abilities.

BlowUpBalloons sends every balloon a short way ahead of the player flying
when the player blows inside a blow zone. InflatingBalloon grows a balloon
for as long as the player keeps blowing.
"""

import logging
from typing import Callable, List, Sequence, Tuple
from dataclasses import dataclass
import time

from .base import GatedAbility
from ..gating.threshold import ThresholdEvaluator, EdgeTrigger, LevelGate
from ..gating.zones import AttachedEndZoneIndex
from ..gating.timers import Deadline
from ..input.keyboard_input import KeyEdgeSource

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlowUpdate:
    in_zone: bool
    triggered: bool = False
    launched: Tuple[int, ...] = ()   # indexes of balloons that start flying now
    play_sound: bool = False
    stop_sound: bool = False
    reset: bool = False              # all balloons returned to rest


class BlowUpBalloons(GatedAbility):
    action = "blow"

    def __init__(self, evaluator: ThresholdEvaluator, keys: KeyEdgeSource,
                 zones: AttachedEndZoneIndex, balloon_positions: Sequence[float],
                 threshold_kpa: float = 1.0,
                 max_blow_distance_x: float = 10.0,
                 sound_duration_limit: float = 1.0,
                 clock: Callable[[], float] = time.monotonic):
        super().__init__(evaluator, keys)
        self.zones = zones
        self.balloon_positions = list(balloon_positions)
        self.trigger = EdgeTrigger(threshold_kpa)
        self.max_blow_distance_x = max_blow_distance_x
        self.sound_duration_limit = sound_duration_limit
        self.sound_deadline = Deadline(clock)

        self.flying: List[bool] = [False] * len(self.balloon_positions)
        self.blow_triggered = False

    def update(self, player_x: float) -> BlowUpdate:
        in_zone = self.zones.contains(player_x)
        stop_sound = self.sound_deadline.expired()

        if self.uses_breath:
            blow = self.evaluator.rising(self.trigger)
        else:
            blow = self.keys.pressed(self.action)

        if not in_zone:
            was_triggered = self.blow_triggered
            if was_triggered:
                self._reset_balloons()
            return BlowUpdate(in_zone=False, stop_sound=stop_sound, reset=was_triggered)

        if not blow:
            return BlowUpdate(in_zone=True, stop_sound=stop_sound)

        launched = self._launch(player_x)
        if launched:
            self.blow_triggered = True
            self.sound_deadline.start(self.sound_duration_limit)
        elif self.blow_triggered:
            log.debug("Blow triggered again but no new balloons in range")

        return BlowUpdate(in_zone=True, triggered=True, launched=launched,
                          play_sound=bool(launched), stop_sound=stop_sound and not launched)

    def reset(self):
        self.trigger.reset()
        self._reset_balloons()

    def _launch(self, player_x: float) -> Tuple[int, ...]:
        launched = []
        for i, x in enumerate(self.balloon_positions):
            if self.flying[i]:
                continue
            distance = x - player_x
            if 0 < distance <= self.max_blow_distance_x:
                self.flying[i] = True
                launched.append(i)
        return tuple(launched)

    def _reset_balloons(self):
        self.flying = [False] * len(self.balloon_positions)
        self.blow_triggered = False
        self.sound_deadline.cancel()


@dataclass(frozen=True)
class InflateUpdate:
    scale: float
    inflating: bool


class InflatingBalloon(GatedAbility):
    action = "inflate"

    def __init__(self, evaluator: ThresholdEvaluator, keys: KeyEdgeSource,
                 threshold_kpa: float = 1.0, inflate_speed: float = 0.5,
                 start_scale: float = 1.0, max_scale: float = 3.0):
        super().__init__(evaluator, keys)
        self.gate = LevelGate(threshold_kpa)
        self.inflate_speed = inflate_speed
        self.start_scale = start_scale
        self.max_scale = max_scale
        self.scale = start_scale

    def update(self, dt: float) -> InflateUpdate:
        if self.uses_breath:
            blowing = self.evaluator.holding(self.gate)
        else:
            blowing = self.keys.is_held(self.action)

        inflating = blowing and self.scale < self.max_scale
        if inflating:
            self.scale = min(self.max_scale, self.scale + self.inflate_speed * dt)

        return InflateUpdate(scale=self.scale, inflating=inflating)

    def reset(self):
        self.scale = self.start_scale
