"""
Pressure Module

Parsing, shared signal state and the consumer-facing receiver.
"""

from .pressure_signal import (
    PressureSample,
    PressureSignal,
    ConnectionState,
    classify_status,
    CONNECT_KEYWORDS,
    DISCONNECT_KEYWORDS,
)
from .parser import ChunkParser, ParseDiagnostic, parse_line
from .receiver import PressureReceiver, DATA_FLOWING_STATUS

__all__ = [
    'PressureSample',
    'PressureSignal',
    'ConnectionState',
    'classify_status',
    'CONNECT_KEYWORDS',
    'DISCONNECT_KEYWORDS',
    'ChunkParser',
    'ParseDiagnostic',
    'parse_line',
    'PressureReceiver',
    'DATA_FLOWING_STATUS',
]
