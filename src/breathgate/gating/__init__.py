"""
Gating Module

Threshold evaluation, zone membership and control-mode broadcasting.
"""

from .threshold import (
    ThresholdLevel,
    EdgeTrigger,
    LevelGate,
    LevelSelector,
    ThresholdEvaluator,
)
from .zones import (
    MarkerRole,
    Marker,
    Zone,
    NearestPairZoneIndex,
    AttachedEndZoneIndex,
    SegmentIndex,
)
from .mode import ControlMode, Controllable, ModeBroadcaster
from .meter import PressureMeter, MeterReading
from .timers import Deadline

__all__ = [
    'ThresholdLevel',
    'EdgeTrigger',
    'LevelGate',
    'LevelSelector',
    'ThresholdEvaluator',
    'MarkerRole',
    'Marker',
    'Zone',
    'NearestPairZoneIndex',
    'AttachedEndZoneIndex',
    'SegmentIndex',
    'ControlMode',
    'Controllable',
    'ModeBroadcaster',
    'PressureMeter',
    'MeterReading',
    'Deadline',
]
