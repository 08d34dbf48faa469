"""
Command Line Tests
"""

from unittest.mock import Mock, patch

import pytest

from breathgate.cli import build_parser, format_reading, main, print_error_reports
from breathgate.production.error_handler import ProductionErrorHandler, ErrorSeverity


def test_monitor_arguments():
    args = build_parser().parse_args(
        ['monitor', '-t', 'socket', '--url', 'ws://10.0.0.2:5005', '--mode', 'breath', '--duration', '2'])

    assert args.command == 'monitor'
    assert args.transport == 'socket'
    assert args.url == 'ws://10.0.0.2:5005'
    assert args.mode == 'breath'
    assert args.duration == 2.0
    assert args.port is None


def test_rejects_unknown_transport():
    with pytest.raises(SystemExit):
        build_parser().parse_args(['monitor', '--transport', 'bluetooth'])


def test_format_reading():
    line = format_reading(2.0, 0.5)
    assert line.startswith("  2.000 kPa  [")
    assert line.count("█") == 20
    assert line.endswith(" 50%")


def test_config_path_and_init(tmp_path, capsys):
    config_file = tmp_path / "breath-gate" / "config.yaml"

    assert main(['--config', str(config_file), 'config', 'path']) == 0
    assert capsys.readouterr().out.strip() == str(config_file)

    assert main(['--config', str(config_file), 'config', 'init']) == 0
    assert config_file.exists()


def test_config_show_invalid(tmp_path, capsys):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("control:\n  mode: humming\n")

    assert main(['--config', str(config_file), 'config', 'show']) == 1
    assert "control.mode" in capsys.readouterr().err


def test_ports_listing(capsys):
    ports = [Mock(device='/dev/ttyACM0', description='Arduino Micro', hwid='USB VID:PID=2341:8037',
                  manufacturer='Arduino LLC')]

    with patch('breathgate.production.port_manager.list_ports.comports', return_value=ports):
        assert main(['ports']) == 0

    out = capsys.readouterr().out
    assert "/dev/ttyACM0" in out
    assert "sensor?" in out


def test_error_reports_for_serious_errors(capsys):
    handler = ProductionErrorHandler()
    handler.report(ConnectionRefusedError("refused"), 'socket_connect', ErrorSeverity.HIGH,
                   {'url': 'ws://192.168.43.3:5005'})
    handler.report(OSError("late close"), 'bridge_disconnect', ErrorSeverity.LOW)

    assert print_error_reports(handler) == 1

    err = capsys.readouterr().err
    assert "Sensor server unreachable" in err
    assert "did not close cleanly" not in err
