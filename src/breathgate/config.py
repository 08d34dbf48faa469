"""
Breath Gate Configuration Module
================================
YAML configuration for the sensor transport, control mode, key bindings
and per-ability pressure thresholds.
"""

import os
import logging
from pathlib import Path
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Any

import yaml

log = logging.getLogger(__name__)


# Default configuration as YAML template
DEFAULT_CONFIG_YAML = """# Breath Gate Configuration
# =========================
# Place in ~/.config/breath-gate/config.yaml

# Sensor transport
transport:
  kind: serial          # serial, socket or bridge
  connect_attempts: 3   # attempts per connect before reporting failure
  clear_on_disconnect: true  # drop the held pressure to 0 when the sensor goes away
  serial:
    port: null          # null = auto-detect, or e.g. /dev/ttyACM0
    baud_rate: 115200
    read_timeout: 0.05  # seconds
  socket:
    url: ws://192.168.43.3:5005
    open_timeout: 5.0   # seconds

# Input selection
control:
  mode: keyboard        # keyboard or breath
  keyboard_device: auto # evdev path, auto, or null when the host feeds keys
  keys:                 # evdev key names per ability
    jump: KEY_SPACE
    push: KEY_E
    bridge: KEY_B
    blow: KEY_F
    inflate: KEY_I
    move: KEY_M

# Pressure thresholds in kPa
thresholds:
  push: 1.0
  blow: 1.0
  inflate: 1.0
  bridge: 1.0
  move: 1.0
  jump:
    - name: low
      threshold_kpa: 1.0
      magnitude: 2.0
    - name: medium
      threshold_kpa: 2.0
      magnitude: 4.0
    - name: high
      threshold_kpa: 3.5
      magnitude: 7.0

# Breath meter readout
meter:
  min_kpa: 0.3
  max_kpa: 8.0
  smoothing: 12.0

# Logging
logging:
  level: INFO
  file: null            # null = console only
"""


@dataclass
class SerialConfig:
    port: Optional[str] = None
    baud_rate: int = 115200
    read_timeout: float = 0.05


@dataclass
class SocketConfig:
    url: str = "ws://192.168.43.3:5005"
    open_timeout: float = 5.0


@dataclass
class TransportConfig:
    kind: str = "serial"
    connect_attempts: int = 3
    clear_on_disconnect: bool = True
    serial: SerialConfig = field(default_factory=SerialConfig)
    socket: SocketConfig = field(default_factory=SocketConfig)


DEFAULT_KEYS = {
    'jump': 'KEY_SPACE',
    'push': 'KEY_E',
    'bridge': 'KEY_B',
    'blow': 'KEY_F',
    'inflate': 'KEY_I',
    'move': 'KEY_M',
}


@dataclass
class ControlConfig:
    mode: str = "keyboard"
    keyboard_device: Optional[str] = "auto"
    keys: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_KEYS))


@dataclass
class LevelConfig:
    name: str
    threshold_kpa: float
    magnitude: float


def _default_jump_levels() -> List[LevelConfig]:
    return [
        LevelConfig("low", 1.0, 2.0),
        LevelConfig("medium", 2.0, 4.0),
        LevelConfig("high", 3.5, 7.0),
    ]


@dataclass
class ThresholdConfig:
    push: float = 1.0
    blow: float = 1.0
    inflate: float = 1.0
    bridge: float = 1.0
    move: float = 1.0
    jump: List[LevelConfig] = field(default_factory=_default_jump_levels)


@dataclass
class MeterConfig:
    min_kpa: float = 0.3
    max_kpa: float = 8.0
    smoothing: float = 12.0


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class FullConfig:
    transport: TransportConfig = field(default_factory=TransportConfig)
    control: ControlConfig = field(default_factory=ControlConfig)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    meter: MeterConfig = field(default_factory=MeterConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_path() -> Path:
    """Get the configuration file path"""
    xdg_config = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
    return Path(xdg_config) / 'breath-gate' / 'config.yaml'


def create_default_config(path: Optional[Path] = None) -> Path:
    """Write the commented default configuration unless a file already exists"""
    config_path = Path(path) if path else get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    if not config_path.exists():
        config_path.write_text(DEFAULT_CONFIG_YAML)
        log.info(f"Created default config: {config_path}")
    else:
        log.info(f"Config already exists: {config_path}")

    return config_path


def config_from_dict(data: Optional[Dict[str, Any]]) -> FullConfig:
    """Build a FullConfig from parsed YAML, falling back to defaults per key"""
    config = FullConfig()
    if not data:
        return config

    if 'transport' in data:
        tr = data['transport'] or {}
        ser = tr.get('serial') or {}
        sock = tr.get('socket') or {}
        config.transport = TransportConfig(
            kind=tr.get('kind', 'serial'),
            connect_attempts=int(tr.get('connect_attempts', 3)),
            clear_on_disconnect=bool(tr.get('clear_on_disconnect', True)),
            serial=SerialConfig(
                port=ser.get('port'),
                baud_rate=int(ser.get('baud_rate', 115200)),
                read_timeout=float(ser.get('read_timeout', 0.05)),
            ),
            socket=SocketConfig(
                url=sock.get('url', SocketConfig.url),
                open_timeout=float(sock.get('open_timeout', 5.0)),
            ),
        )

    if 'control' in data:
        ctl = data['control'] or {}
        keys = dict(DEFAULT_KEYS)
        keys.update(ctl.get('keys') or {})
        config.control = ControlConfig(mode=ctl.get('mode', 'keyboard'),
                                       keyboard_device=ctl.get('keyboard_device', 'auto'),
                                       keys=keys)

    if 'thresholds' in data:
        th = data['thresholds'] or {}
        levels = th.get('jump')
        config.thresholds = ThresholdConfig(
            push=float(th.get('push', 1.0)),
            blow=float(th.get('blow', 1.0)),
            inflate=float(th.get('inflate', 1.0)),
            bridge=float(th.get('bridge', 1.0)),
            move=float(th.get('move', 1.0)),
            jump=[
                LevelConfig(
                    name=lv.get('name', f"level{i}"),
                    threshold_kpa=float(lv['threshold_kpa']),
                    magnitude=float(lv['magnitude']),
                )
                for i, lv in enumerate(levels)
            ] if levels else _default_jump_levels(),
        )

    if 'meter' in data:
        mt = data['meter'] or {}
        config.meter = MeterConfig(
            min_kpa=float(mt.get('min_kpa', 0.3)),
            max_kpa=float(mt.get('max_kpa', 8.0)),
            smoothing=float(mt.get('smoothing', 12.0)),
        )

    if 'logging' in data:
        lg = data['logging'] or {}
        config.logging = LoggingConfig(level=lg.get('level', 'INFO'), file=lg.get('file'))

    return config


def load_config(path: Optional[str] = None) -> FullConfig:
    """Load configuration from YAML file"""
    config_path = Path(path) if path else get_config_path()

    if not config_path.exists():
        return FullConfig()

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
        config = config_from_dict(data)
        log.info(f"Loaded config: {config_path}")
        return config

    except (OSError, yaml.YAMLError, KeyError, TypeError, ValueError) as e:
        log.warning(f"Failed to load config {config_path}: {e}")
        return FullConfig()


def config_to_dict(config: FullConfig) -> Dict[str, Any]:
    return asdict(config)


def save_config(config: FullConfig, path: Optional[str] = None) -> Path:
    """Save configuration to YAML file"""
    config_path = Path(path) if path else get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w') as f:
        yaml.dump(config_to_dict(config), f, default_flow_style=False, sort_keys=False)

    log.info(f"Saved config: {config_path}")
    return config_path
