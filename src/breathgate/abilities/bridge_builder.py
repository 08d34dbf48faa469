"""
Bridge Builder: inside a gap zone, pressing (or starting to blow) lays a
bridge forward from the player one piece at a time until the gap's far
edge is reached or the input is released.
"""

import math
import logging
from typing import List, Optional, Tuple
from dataclasses import dataclass

from .base import GatedAbility
from ..gating.threshold import ThresholdEvaluator, EdgeTrigger
from ..gating.zones import NearestPairZoneIndex, SegmentIndex
from ..input.keyboard_input import KeyEdgeSource

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BridgePiece:
    index: int
    x: float
    dark: bool = False


@dataclass(frozen=True)
class BridgeUpdate:
    in_zone: bool
    building: bool
    new_pieces: Tuple[BridgePiece, ...] = ()
    cleared: bool = False


class BridgeBuilder(GatedAbility):
    action = "bridge"

    def __init__(self, evaluator: ThresholdEvaluator, keys: KeyEdgeSource,
                 zones: NearestPairZoneIndex,
                 dark_segments: Optional[SegmentIndex] = None,
                 threshold_kpa: float = 1.0,
                 build_speed: float = 2.0,
                 piece_width: float = 0.5):
        if piece_width <= 0:
            raise ValueError(f"piece_width must be positive, got {piece_width}")

        super().__init__(evaluator, keys)
        self.zones = zones
        self.dark_segments = dark_segments
        self.trigger = EdgeTrigger(threshold_kpa)
        self.build_speed = build_speed
        self.piece_width = piece_width

        self.building = False
        self.origin_x = 0.0
        self.length = 0.0
        self.max_length = 0.0
        self.pieces: List[BridgePiece] = []

    def update(self, player_x: float, dt: float) -> BridgeUpdate:
        in_zone = self.zones.contains(player_x)
        pressed, released = self._read_input()
        cleared = False

        if pressed and in_zone:
            cleared = bool(self.pieces)
            self._start(player_x)
        if released:
            self.building = False

        new_pieces = self._grow(dt) if self.building else ()
        return BridgeUpdate(in_zone=in_zone, building=self.building,
                            new_pieces=new_pieces, cleared=cleared)

    def reset(self):
        # Finished pieces stay; only the build in progress is cancelled
        self.building = False
        self.trigger.reset()

    def _read_input(self) -> Tuple[bool, bool]:
        if self.uses_breath:
            pressed = self.evaluator.rising(self.trigger)
            return pressed, self.trigger.released
        return self.keys.pressed(self.action), self.keys.released(self.action)

    def _start(self, player_x: float):
        self.pieces = []
        self.origin_x = player_x
        self.length = 0.0
        self.max_length = self.zones.distance_to_end(player_x)
        self.building = True

        if math.isinf(self.max_length):
            log.debug(f"Bridge from {player_x:.2f} has no end marker ahead, unbounded")
        else:
            log.debug(f"Bridge from {player_x:.2f}, max length {self.max_length:.2f}")

    def _grow(self, dt: float) -> Tuple[BridgePiece, ...]:
        self.length = min(self.length + self.build_speed * dt, self.max_length)
        if self.length >= self.max_length:
            self.building = False

        target_count = int(math.floor(self.length / self.piece_width))
        added = []
        for i in range(len(self.pieces), target_count):
            x = self.origin_x + i * self.piece_width
            dark = self.dark_segments is not None and self.dark_segments.contains(x)
            piece = BridgePiece(index=i, x=x, dark=dark)
            self.pieces.append(piece)
            added.append(piece)

        return tuple(added)
