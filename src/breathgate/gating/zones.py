"""
Zone Index

Decides whether a position along the level's horizontal axis lies inside a
zone that licenses an ability. Markers come from the scene at level load
and are never modified afterwards.

Two membership rules exist and are kept separate on purpose:

- NearestPairZoneIndex: the zone is opened by the last Start behind the
  player and closed by any End between that Start and the player. Used for
  gap building and box pushing.
- AttachedEndZoneIndex: every Start owns one End (its first End child, or
  failing that its first child) and the zone is the closed interval between
  the two, regardless of any other markers. Used for jumping and balloons.
"""

import math
import bisect
import logging
from typing import Iterable, List, Optional, Tuple
from dataclasses import dataclass
from enum import Enum

log = logging.getLogger(__name__)


class MarkerRole(Enum):
    START = "start"
    END = "end"


@dataclass(frozen=True)
class Marker:
    """A scene position tagged as a zone boundary"""
    position_x: float
    role: MarkerRole
    group: str
    name: str = ""
    parent: Optional[str] = None


@dataclass(frozen=True)
class Zone:
    """Interval derived from markers; end_x may be inf for an open zone"""
    start_x: float
    end_x: float

    @property
    def length(self) -> float:
        return self.end_x - self.start_x

    def contains(self, position_x: float) -> bool:
        return self.start_x <= position_x <= self.end_x


def _positions(markers: Iterable[Marker], role: MarkerRole, group: str) -> List[float]:
    return sorted(m.position_x for m in markers if m.role is role and m.group == group)


class NearestPairZoneIndex:
    """Gap-building zone rule over unordered Start and End markers"""

    def __init__(self, markers: Iterable[Marker], group: str):
        markers = list(markers)
        self.group = group
        self.starts = _positions(markers, MarkerRole.START, group)
        self.ends = _positions(markers, MarkerRole.END, group)

        if not self.starts:
            log.warning(f"No start markers for zone group '{group}'")

    def zone_at(self, position_x: float) -> Optional[Zone]:
        """
        Find the zone containing a position

        Args:
            position_x: Query position

        Returns:
            Zone from the governing Start to the first End after it, or None
        """
        i = bisect.bisect_right(self.starts, position_x)
        if i == 0:
            return None
        start = self.starts[i - 1]

        j = bisect.bisect_right(self.ends, position_x)
        if j > 0 and self.ends[j - 1] >= start:
            # Already walked past this zone's exit
            return None

        return Zone(start, self._first_end_after(start))

    def contains(self, position_x: float) -> bool:
        return self.zone_at(position_x) is not None

    def distance_to_end(self, position_x: float) -> float:
        """Distance from a position to the nearest End strictly ahead, inf if none"""
        return self._first_end_after(position_x) - position_x

    def _first_end_after(self, position_x: float) -> float:
        k = bisect.bisect_right(self.ends, position_x)
        return self.ends[k] if k < len(self.ends) else math.inf


class AttachedEndZoneIndex:
    """Zone rule where each Start marker owns exactly one End marker"""

    def __init__(self, markers: Iterable[Marker], group: str):
        markers = list(markers)
        self.group = group
        self.zones: List[Zone] = []

        starts = [m for m in markers if m.role is MarkerRole.START and m.group == group]
        if not starts:
            log.warning(f"No start markers for zone group '{group}'")

        for start in starts:
            end = self._owned_end(start, markers)
            if end is None:
                log.warning(f"Start marker '{start.name}' in group '{group}' has no end child, skipping")
                continue

            low, high = sorted((start.position_x, end.position_x))
            self.zones.append(Zone(low, high))

    @staticmethod
    def _owned_end(start: Marker, markers: List[Marker]) -> Optional[Marker]:
        if not start.name:
            return None

        children = [m for m in markers if m.parent == start.name and m is not start]
        for child in children:
            if child.role is MarkerRole.END and child.group == start.group:
                return child
        return children[0] if children else None

    def zone_at(self, position_x: float) -> Optional[Zone]:
        for zone in self.zones:
            if zone.contains(position_x):
                return zone
        return None

    def contains(self, position_x: float) -> bool:
        return self.zone_at(position_x) is not None


class SegmentIndex:
    """
    Half-open styled segments along a built span

    Each Start pairs with the nearest End strictly after it. A position x
    belongs to a segment when start <= x < end.
    """

    def __init__(self, markers: Iterable[Marker], group: str):
        markers = list(markers)
        starts = _positions(markers, MarkerRole.START, group)
        ends = _positions(markers, MarkerRole.END, group)

        segments: List[Tuple[float, float]] = []
        for start in starts:
            k = bisect.bisect_right(ends, start)
            if k == len(ends):
                log.warning(f"Segment start at {start} in group '{group}' has no end after it")
                continue
            segments.append((start, ends[k]))

        self.segments = sorted(segments)

    def contains(self, position_x: float) -> bool:
        return any(start <= position_x < end for start, end in self.segments)
