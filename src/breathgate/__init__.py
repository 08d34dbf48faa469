"""
Breath Gate

Breath-pressure sensor ingestion and action gating: serial, WebSocket and
host-bridge transports feed one pressure signal that game abilities read
through thresholds, zones and a global keyboard/breath control mode.
"""

__version__ = "1.0.0"

from .pressure import PressureSignal, PressureSample, ConnectionState, ChunkParser, PressureReceiver
from .gating import ControlMode, ModeBroadcaster, ThresholdEvaluator
from .production.gate_controller import ProductionGateController

__all__ = [
    '__version__',
    'PressureSignal',
    'PressureSample',
    'ConnectionState',
    'ChunkParser',
    'PressureReceiver',
    'ControlMode',
    'ModeBroadcaster',
    'ThresholdEvaluator',
    'ProductionGateController',
]
