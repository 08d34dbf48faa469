"""
Production Configuration Manager

Layers defaults, the YAML file and BREATHGATE_* environment variables into
one validated configuration, and optionally reloads it when the file is
edited on disk.
"""

import os
import time
import logging
from pathlib import Path
from typing import Dict, Any, Optional, List, Callable, Tuple
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock

import yaml
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler

from ..config import FullConfig, config_from_dict, config_to_dict, get_config_path

log = logging.getLogger(__name__)


class ConfigSource(Enum):
    ENVIRONMENT = "environment"
    FILE = "file"
    DEFAULT = "default"
    RUNTIME = "runtime"


@dataclass
class ConfigValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class ConfigChange:
    key: str
    old_value: Any
    new_value: Any
    source: ConfigSource
    timestamp: float


class ConfigValidationError(Exception):
    pass


ENV_MAPPINGS: Dict[str, Tuple[str, ...]] = {
    'BREATHGATE_TRANSPORT_KIND': ('transport', 'kind'),
    'BREATHGATE_CONNECT_ATTEMPTS': ('transport', 'connect_attempts'),
    'BREATHGATE_SERIAL_PORT': ('transport', 'serial', 'port'),
    'BREATHGATE_SERIAL_BAUD': ('transport', 'serial', 'baud_rate'),
    'BREATHGATE_SOCKET_URL': ('transport', 'socket', 'url'),
    'BREATHGATE_CONTROL_MODE': ('control', 'mode'),
    'BREATHGATE_KEYBOARD_DEVICE': ('control', 'keyboard_device'),
    'BREATHGATE_LOG_LEVEL': ('logging', 'level'),
}

VALID_TRANSPORTS = ('serial', 'socket', 'bridge')
VALID_MODES = ('keyboard', 'breath')
VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
COMMON_BAUD_RATES = (9600, 19200, 38400, 57600, 115200, 230400, 460800, 921600)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class _ConfigFileHandler(FileSystemEventHandler):
    def __init__(self, manager: 'ProductionConfigManager'):
        self.manager = manager

    def on_modified(self, event):
        if Path(event.src_path) == self.manager.config_file:
            self.manager._handle_file_change()


class ProductionConfigManager:
    """
    Multi-source configuration manager.

    Precedence, lowest to highest: built-in defaults, config file,
    environment, runtime set() calls.
    """

    def __init__(self, config_file: Optional[Path] = None, enable_hot_reload: bool = False,
                 environ: Optional[Dict[str, str]] = None):
        self.config_file = Path(config_file) if config_file else get_config_path()
        self.config_dir = self.config_file.parent
        self.environ = environ if environ is not None else os.environ

        self._defaults = config_to_dict(FullConfig())
        self._config: Dict[str, Any] = dict(self._defaults)
        self._runtime: Dict[str, Any] = {}
        self._source_map: Dict[str, ConfigSource] = {}
        self._callbacks: List[Callable[[ConfigChange], None]] = []
        self._lock = Lock()

        self._hot_reload_enabled = enable_hot_reload
        self._observer: Optional[Observer] = None

    def load_config(self) -> ConfigValidationResult:
        """Load and validate configuration from all sources"""
        start = time.perf_counter()

        file_config = self._load_config_file()
        env_config = self._load_config_environment()
        merged = self._merge_configs(self._defaults, file_config, env_config, self._runtime)

        validation = self.validate(merged)
        if not validation.is_valid:
            log.error(f"Configuration validation failed: {validation.errors}")
            return validation

        for warning in validation.warnings:
            log.warning(f"Config: {warning}")

        with self._lock:
            self._config = merged
            self._update_source_map(file_config, env_config, self._runtime)

        log.info(f"Configuration loaded in {(time.perf_counter() - start) * 1000:.2f}ms")

        if self._hot_reload_enabled and self._observer is None:
            self._start_file_watcher()
        return validation

    def to_full_config(self) -> FullConfig:
        with self._lock:
            return config_from_dict(self._config)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dotted key, e.g. 'transport.serial.port'"""
        with self._lock:
            current = self._config
            for part in key.split('.'):
                if isinstance(current, dict) and part in current:
                    current = current[part]
                else:
                    return default
            return current

    def set(self, key: str, value: Any, source: ConfigSource = ConfigSource.RUNTIME):
        """Set a value by dotted key; invalid results are rejected unchanged"""
        path = tuple(key.split('.'))
        with self._lock:
            candidate = self._set_nested(self._config, path, value)
            validation = self.validate(candidate)
            if not validation.is_valid:
                raise ConfigValidationError(f"Invalid value for {key}: {validation.errors}")
            old_config = self._config
            self._config = candidate
            self._source_map[key] = source
            if source is ConfigSource.RUNTIME:
                self._runtime = self._set_nested(self._runtime, path, value)

        self._notify_changes(old_config, candidate, source)

    def validate(self, config: Dict[str, Any]) -> ConfigValidationResult:
        errors = []
        warnings = []

        transport = config.get('transport') or {}
        if transport.get('kind') not in VALID_TRANSPORTS:
            errors.append(f"transport.kind must be one of {', '.join(VALID_TRANSPORTS)}")

        attempts = transport.get('connect_attempts', 3)
        if not isinstance(attempts, int) or attempts < 1:
            errors.append("transport.connect_attempts must be a positive integer")

        baud = (transport.get('serial') or {}).get('baud_rate', 115200)
        if not isinstance(baud, int) or baud <= 0:
            errors.append("transport.serial.baud_rate must be a positive integer")
        elif baud not in COMMON_BAUD_RATES:
            warnings.append(f"Unusual baud rate {baud}")

        url = (transport.get('socket') or {}).get('url', '')
        if not str(url).startswith(('ws://', 'wss://')):
            errors.append("transport.socket.url must start with ws:// or wss://")

        mode = (config.get('control') or {}).get('mode')
        if mode not in VALID_MODES:
            errors.append(f"control.mode must be one of {', '.join(VALID_MODES)}")

        device = (config.get('control') or {}).get('keyboard_device')
        if device is not None and not isinstance(device, str):
            errors.append("control.keyboard_device must be a device path, auto or null")

        thresholds = config.get('thresholds') or {}
        for name in ('push', 'blow', 'inflate', 'bridge', 'move'):
            value = thresholds.get(name, 1.0)
            if not isinstance(value, (int, float)) or value < 0:
                errors.append(f"thresholds.{name} must be a non-negative number")

        levels = thresholds.get('jump') or []
        if not isinstance(levels, list):
            errors.append("thresholds.jump must be a list of levels")
            levels = []
        for i, lv in enumerate(levels):
            if not isinstance(lv, dict):
                errors.append(f"thresholds.jump[{i}] must be a mapping")
                continue
            for name in ('threshold_kpa', 'magnitude'):
                if not _is_number(lv.get(name)):
                    errors.append(f"thresholds.jump[{i}].{name} must be a number")
        names = [lv.get('name', f"level{i}") for i, lv in enumerate(levels) if isinstance(lv, dict)]
        if len(names) != len(set(names)):
            errors.append("thresholds.jump level names must be unique")

        meter = config.get('meter') or {}
        min_kpa = meter.get('min_kpa', 0.3)
        max_kpa = meter.get('max_kpa', 8.0)
        for name, value in (('min_kpa', min_kpa), ('max_kpa', max_kpa),
                            ('smoothing', meter.get('smoothing', 12.0))):
            if not _is_number(value):
                errors.append(f"meter.{name} must be a number")
        if _is_number(min_kpa) and _is_number(max_kpa) and max_kpa <= min_kpa:
            errors.append("meter.max_kpa must be greater than meter.min_kpa")

        level = str((config.get('logging') or {}).get('level', 'INFO')).upper()
        if level not in VALID_LOG_LEVELS:
            warnings.append(f"Unknown log level {level}, INFO will be used")

        return ConfigValidationResult(is_valid=not errors, errors=errors, warnings=warnings)

    def add_change_callback(self, callback: Callable[[ConfigChange], None]):
        self._callbacks.append(callback)

    def remove_change_callback(self, callback: Callable[[ConfigChange], None]):
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def get_source(self, key: str) -> ConfigSource:
        return self._source_map.get(key, ConfigSource.DEFAULT)

    def get_config_report(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'config_file': str(self.config_file),
                'config': self._config,
                'sources': {k: v.value for k, v in self._source_map.items()},
                'hot_reload': self._observer is not None,
            }

    def shutdown(self):
        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=2.0)
            self._observer = None

    def _load_config_file(self) -> Dict[str, Any]:
        if not self.config_file.exists():
            return {}
        try:
            with open(self.config_file) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            log.error(f"YAML parsing error in {self.config_file}: {e}")
            return {}
        except OSError as e:
            log.error(f"Error reading config file: {e}")
            return {}

        if not isinstance(data, dict):
            log.error(f"Config file {self.config_file} does not contain a mapping")
            return {}
        return data

    def _load_config_environment(self) -> Dict[str, Any]:
        env_config: Dict[str, Any] = {}
        for env_var, path in ENV_MAPPINGS.items():
            value = self.environ.get(env_var)
            if value is not None:
                env_config = self._set_nested(env_config, path, self._parse_env_value(value))
        return env_config

    @staticmethod
    def _parse_env_value(value: str) -> Any:
        if value.lower() in ('true', 'false'):
            return value.lower() == 'true'
        if value.lower() in ('null', 'none'):
            return None
        try:
            return float(value) if '.' in value else int(value)
        except ValueError:
            return value

    def _merge_configs(self, *configs: Dict[str, Any]) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for config in configs:
            result = self._deep_merge(result, config)
        return result

    def _deep_merge(self, base: Dict, update: Dict) -> Dict:
        result = dict(base)
        for key, value in update.items():
            if isinstance(result.get(key), dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    @staticmethod
    def _set_nested(config: Dict, path: Tuple[str, ...], value: Any) -> Dict:
        result = dict(config)
        current = result
        for part in path[:-1]:
            child = current.get(part)
            current[part] = dict(child) if isinstance(child, dict) else {}
            current = current[part]
        current[path[-1]] = value
        return result

    def _update_source_map(self, file_config: Dict, env_config: Dict, runtime_config: Dict):
        self._source_map = {}

        def _walk(data, prefix, source):
            for key, value in data.items():
                full_key = f"{prefix}.{key}" if prefix else key
                if isinstance(value, dict):
                    _walk(value, full_key, source)
                else:
                    self._source_map[full_key] = source

        _walk(file_config, "", ConfigSource.FILE)
        _walk(env_config, "", ConfigSource.ENVIRONMENT)
        _walk(runtime_config, "", ConfigSource.RUNTIME)

    def _diff_configs(self, old: Dict, new: Dict, source: ConfigSource,
                      prefix: str = "") -> List[ConfigChange]:
        changes = []
        for key in sorted(set(old) | set(new)):
            old_val = old.get(key)
            new_val = new.get(key)
            if old_val == new_val:
                continue
            full_key = f"{prefix}.{key}" if prefix else key
            if isinstance(old_val, dict) and isinstance(new_val, dict):
                changes.extend(self._diff_configs(old_val, new_val, source, full_key))
            else:
                changes.append(ConfigChange(full_key, old_val, new_val, source, time.time()))
        return changes

    def _notify_changes(self, old_config: Dict, new_config: Dict, source: ConfigSource):
        for change in self._diff_configs(old_config, new_config, source):
            for callback in list(self._callbacks):
                try:
                    callback(change)
                except Exception as e:
                    log.error(f"Error in config change callback: {e}")

    def _start_file_watcher(self):
        if not self.config_dir.exists():
            log.debug(f"Config dir {self.config_dir} missing, hot reload disabled")
            return
        self._observer = Observer()
        self._observer.schedule(_ConfigFileHandler(self), str(self.config_dir), recursive=False)
        self._observer.daemon = True
        self._observer.start()
        log.info(f"✓ Watching {self.config_file} for changes")

    def _handle_file_change(self):
        # Editors often write in several steps
        time.sleep(0.1)

        file_config = self._load_config_file()
        env_config = self._load_config_environment()
        merged = self._merge_configs(self._defaults, file_config, env_config, self._runtime)

        validation = self.validate(merged)
        if not validation.is_valid:
            log.error(f"Configuration reload rejected: {validation.errors}")
            return

        with self._lock:
            old_config = self._config
            self._config = merged
            self._update_source_map(file_config, env_config, self._runtime)

        log.info("Configuration reloaded from file")
        self._notify_changes(old_config, merged, ConfigSource.FILE)
