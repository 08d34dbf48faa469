"""
Abilities Module

Game abilities gated by keyboard or breath input and by zone membership.
"""

from .base import GatedAbility
from .jump import Jump, JumpDecision, DEFAULT_JUMP_LEVELS
from .push_box import PushBox, PushDecision, Velocity, clamp_velocity_x, freeze_x
from .bridge_builder import BridgeBuilder, BridgePiece, BridgeUpdate
from .balloons import BlowUpBalloons, BlowUpdate, InflatingBalloon, InflateUpdate
from .blow_mover import BlowMover, MoveStep

__all__ = [
    'GatedAbility',
    'Jump',
    'JumpDecision',
    'DEFAULT_JUMP_LEVELS',
    'PushBox',
    'PushDecision',
    'Velocity',
    'clamp_velocity_x',
    'freeze_x',
    'BridgeBuilder',
    'BridgePiece',
    'BridgeUpdate',
    'BlowUpBalloons',
    'BlowUpdate',
    'InflatingBalloon',
    'InflateUpdate',
    'BlowMover',
    'MoveStep',
]
