"""
Transport Module

Serial, WebSocket and host-bridge channels to the breath sensor.
"""

from typing import Optional

from .base import (
    TransportAdapter,
    TransportEvent,
    TransportEventKind,
    DISCONNECTED_STATUS,
)
from .serial_adapter import SerialPortAdapter
from .socket_adapter import SocketAdapter
from .bridge_adapter import BridgeAdapter, HostBridge

TRANSPORT_KINDS = ('serial', 'socket', 'bridge')


def create_transport(config, error_handler=None, retry_manager=None,
                     port_manager=None, host: Optional[HostBridge] = None) -> TransportAdapter:
    """
    Build the transport named by a TransportConfig

    Args:
        config: TransportConfig with kind and per-transport settings
        error_handler: Shared ProductionErrorHandler
        retry_manager: Shared ProductionRetryManager
        port_manager: SerialPortManager used for serial auto-detection
        host: HostBridge for the bridge transport

    Returns:
        The configured adapter
    """
    if config.kind == 'serial':
        return SerialPortAdapter(
            port=config.serial.port,
            baud_rate=config.serial.baud_rate,
            read_timeout=config.serial.read_timeout,
            error_handler=error_handler,
            retry_manager=retry_manager,
            port_manager=port_manager,
        )
    if config.kind == 'socket':
        return SocketAdapter(
            url=config.socket.url,
            open_timeout=config.socket.open_timeout,
            error_handler=error_handler,
            retry_manager=retry_manager,
        )
    if config.kind == 'bridge':
        return BridgeAdapter(host=host, error_handler=error_handler)

    raise ValueError(f"Unknown transport kind: {config.kind!r} (expected one of {TRANSPORT_KINDS})")


__all__ = [
    'TransportAdapter',
    'TransportEvent',
    'TransportEventKind',
    'DISCONNECTED_STATUS',
    'SerialPortAdapter',
    'SocketAdapter',
    'BridgeAdapter',
    'HostBridge',
    'TRANSPORT_KINDS',
    'create_transport',
]
