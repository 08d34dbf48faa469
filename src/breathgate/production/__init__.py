"""
Breath Gate Production Module

Production support for the breath gate:
- Centralized error handling with user-facing headlines and solutions
- Retry logic with exponential backoff for connect attempts
- Resource lifecycle management with LIFO cleanup
- Serial port discovery and hot-plug watching
- Signal health monitoring
- Multi-source configuration with hot reload

The gate controller lives in breathgate.production.gate_controller and is
imported from there, since it depends on the transport and pressure
packages that themselves use this module.
"""

from .error_handler import ProductionErrorHandler, ErrorContext, ErrorSeverity
from .retry_manager import ProductionRetryManager, RetryConfig
from .resource_manager import ProductionResourceManager, ResourceStatus
from .port_manager import SerialPortManager, PortInfo, PortStatus
from .health_monitor import SignalHealthMonitor, HealthStatus, HealthThresholds
from .config_manager import (
    ProductionConfigManager,
    ConfigChange,
    ConfigSource,
    ConfigValidationResult,
    ConfigValidationError,
)
from .logging import setup_production_logging

__all__ = [
    'ProductionErrorHandler',
    'ErrorContext',
    'ErrorSeverity',
    'ProductionRetryManager',
    'RetryConfig',
    'ProductionResourceManager',
    'ResourceStatus',
    'SerialPortManager',
    'PortInfo',
    'PortStatus',
    'SignalHealthMonitor',
    'HealthStatus',
    'HealthThresholds',
    'ProductionConfigManager',
    'ConfigChange',
    'ConfigSource',
    'ConfigValidationResult',
    'ConfigValidationError',
    'setup_production_logging',
]
