"""
Breath Gate command line.

  breathgate ports                 list serial ports, sensor candidates first
  breathgate monitor [options]     connect and print live pressure
  breathgate config init|show|path manage the YAML config file
"""

import sys
import signal
import asyncio
import logging
import argparse
from pathlib import Path
from typing import List, Optional

import yaml

from . import __version__
from .config import create_default_config, get_config_path, config_to_dict
from .production.config_manager import ProductionConfigManager, ConfigValidationError
from .production.error_handler import ProductionErrorHandler, ErrorSeverity
from .production.logging import setup_production_logging, Color
from .production.port_manager import SerialPortManager
from .production.gate_controller import ProductionGateController
from .pressure import PressureSample

log = logging.getLogger(__name__)

BAR_WIDTH = 40
PRINT_INTERVAL = 0.1  # seconds between printed readings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="breathgate",
        description="Breath Gate - breath pressure sensor monitor and gating runtime",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
{Color.GREEN}Examples:{Color.RESET}
  %(prog)s ports                                  # Find the sensor's serial port
  %(prog)s monitor                                # Serial sensor, auto-detected port
  %(prog)s monitor --port /dev/ttyACM0 --baud 9600
  %(prog)s monitor --transport socket --url ws://192.168.43.3:5005
  %(prog)s config init                            # Write the default config file
        """
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    parser.add_argument('--config', '-c', metavar='PATH', help='Config file (default: XDG config dir)')

    sub = parser.add_subparsers(dest='command')

    sub.add_parser('ports', help='List serial ports')

    monitor = sub.add_parser('monitor', help='Connect and print live pressure')
    transport = monitor.add_argument_group('Transport')
    transport.add_argument('--transport', '-t', choices=['serial', 'socket'], help='Sensor transport')
    transport.add_argument('--port', '-p', metavar='DEVICE', help='Serial device (default: auto-detect)')
    transport.add_argument('--baud', '-b', type=int, help='Serial baud rate')
    transport.add_argument('--url', '-u', metavar='URL', help='WebSocket sensor URL')
    play = monitor.add_argument_group('Control')
    play.add_argument('--mode', '-m', choices=['keyboard', 'breath'], help='Initial control mode')
    play.add_argument('--duration', type=float, metavar='SECONDS', help='Stop after this long')
    debug = monitor.add_argument_group('Debug')
    debug.add_argument('--verbose', '-v', action='store_true', help='Verbose logging')
    debug.add_argument('--log-file', metavar='PATH', help='Log to file')
    debug.add_argument('--health', action='store_true', help='Print a health report on exit')

    config = sub.add_parser('config', help='Manage the config file')
    config.add_argument('action', choices=['init', 'show', 'path'])

    return parser


def cmd_ports(args) -> int:
    ports = SerialPortManager().enumerate_ports()

    print("\n╔══════════════════════════════════════════════════════════════╗")
    print("║  Breath Gate - Serial Ports                                  ║")
    print("╠══════════════════════════════════════════════════════════════╣")
    if not ports:
        print("║  No serial ports found.                                      ║")
    for port in ports:
        marker = " ← sensor?" if port.looks_like_sensor else ""
        line = f"  {port.device}  {port.description}{marker}"
        print(f"║{line[:62]:<62}║")
    print("╚══════════════════════════════════════════════════════════════╝\n")
    return 0


def cmd_config(args) -> int:
    path = Path(args.config) if args.config else get_config_path()

    if args.action == 'path':
        print(path)
        return 0

    if args.action == 'init':
        create_default_config(path)
        print(path)
        return 0

    manager = ProductionConfigManager(path)
    validation = manager.load_config()
    for error in validation.errors:
        print(f"{Color.RED}error:{Color.RESET} {error}", file=sys.stderr)
    for warning in validation.warnings:
        print(f"{Color.YELLOW}warning:{Color.RESET} {warning}", file=sys.stderr)
    print(yaml.dump(config_to_dict(manager.to_full_config()), default_flow_style=False, sort_keys=False))
    return 0 if validation.is_valid else 1


def apply_overrides(manager: ProductionConfigManager, args):
    overrides = {
        'transport.kind': args.transport,
        'transport.serial.port': args.port,
        'transport.serial.baud_rate': args.baud,
        'transport.socket.url': args.url,
        'control.mode': args.mode,
    }
    for key, value in overrides.items():
        if value is not None:
            manager.set(key, value)


def format_reading(value_kpa: float, fill: float) -> str:
    filled = int(round(fill * BAR_WIDTH))
    bar = "█" * filled + "·" * (BAR_WIDTH - filled)
    return f"{value_kpa:7.3f} kPa  [{bar}] {round(fill * 100):3d}%"


def print_error_reports(handler: ProductionErrorHandler) -> int:
    """Print a boxed report for every serious error, returns how many"""
    errors = handler.recent_errors(ErrorSeverity.HIGH)
    for error_ctx in errors:
        print(handler.format_error(error_ctx), file=sys.stderr)
    return len(errors)


def cmd_monitor(args) -> int:
    manager = ProductionConfigManager(args.config, enable_hot_reload=True)
    validation = manager.load_config()
    if not validation.is_valid:
        for error in validation.errors:
            print(f"{Color.RED}error:{Color.RESET} {error}", file=sys.stderr)
        return 1

    try:
        apply_overrides(manager, args)
    except ConfigValidationError as e:
        print(f"{Color.RED}error:{Color.RESET} {e}", file=sys.stderr)
        return 2

    config = manager.to_full_config()
    log_file = Path(args.log_file) if args.log_file else (
        Path(config.logging.file) if config.logging.file else None)
    setup_production_logging(args.verbose, log_file, config.logging.level)

    controller = ProductionGateController(config, config_manager=manager)
    meter = controller.meter
    last_print = [0.0]

    def print_sample(sample: PressureSample):
        if sample.received_at - last_print[0] < PRINT_INTERVAL:
            return
        last_print[0] = sample.received_at
        print(format_reading(sample.value_kpa, meter.target(sample.value_kpa)), flush=True)

    controller.subscribe_samples(print_sample)

    def signal_handler(sig, frame):
        if controller.shutdown_requested:
            log.warning("Force shutdown requested")
            sys.exit(1)
        log.info(f"Received signal {sig}, shutting down...")
        controller.request_shutdown()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        ok = asyncio.run(controller.run(duration=args.duration))
    except KeyboardInterrupt:
        ok = True

    print_error_reports(controller.error_handler)
    if args.health:
        print(controller.health_monitor.get_detailed_report())
    return 0 if ok else 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == 'ports':
        return cmd_ports(args)
    if args.command == 'config':
        return cmd_config(args)
    if args.command == 'monitor':
        return cmd_monitor(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
