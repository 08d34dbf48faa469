"""
Jump: rise while the jump input is held inside a jump zone. Breath picks
one of three strengths from how hard the player blows.
"""

from typing import Iterable, Optional
from dataclasses import dataclass

from .base import GatedAbility
from ..gating.threshold import ThresholdEvaluator, ThresholdLevel, LevelSelector
from ..gating.zones import AttachedEndZoneIndex
from ..input.keyboard_input import KeyEdgeSource

DEFAULT_JUMP_LEVELS = (
    ThresholdLevel("low", 1.0, 2.0),
    ThresholdLevel("medium", 2.0, 4.0),
    ThresholdLevel("high", 3.5, 7.0),
)


@dataclass(frozen=True)
class JumpDecision:
    in_zone: bool
    vertical_speed: float = 0.0   # 0 means leave the velocity alone
    started: bool = False         # first tick of this jump, for the one-shot sound
    level: Optional[str] = None

    @property
    def jumping(self) -> bool:
        return self.vertical_speed > 0.0


class Jump(GatedAbility):
    action = "jump"

    def __init__(self, evaluator: ThresholdEvaluator, keys: KeyEdgeSource,
                 zones: AttachedEndZoneIndex,
                 levels: Iterable[ThresholdLevel] = DEFAULT_JUMP_LEVELS,
                 keyboard_level: str = "medium"):
        super().__init__(evaluator, keys)
        self.zones = zones
        self.selector = LevelSelector(levels)

        level = self.selector.level_named(keyboard_level)
        self.keyboard_speed = level.magnitude if level is not None else 4.0

        self._held = False
        self._was_jumping = False

    def update(self, player_x: float) -> JumpDecision:
        in_zone = self.zones.contains(player_x)

        if self.uses_breath:
            level = self.evaluator.select(self.selector) if in_zone else None
            speed = level.magnitude if level is not None else 0.0
            name = level.name if level is not None else None
        else:
            # A press only counts if it starts inside the zone
            if self.keys.pressed(self.action):
                self._held = in_zone
            if self.keys.released(self.action):
                self._held = False
            speed = self.keyboard_speed if (self._held and in_zone) else 0.0
            name = "keyboard" if speed > 0.0 else None

        started = speed > 0.0 and not self._was_jumping
        self._was_jumping = speed > 0.0

        return JumpDecision(in_zone=in_zone, vertical_speed=speed, started=started, level=name)

    def reset(self):
        self._held = False
        self._was_jumping = False
