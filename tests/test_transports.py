"""
Transport Adapter Tests

Serial and WebSocket adapters run against mocked pyserial / websockets
objects; the host bridge runs against an in-memory host.
"""

import asyncio
import unittest
from unittest.mock import AsyncMock, Mock, patch

import serial

from breathgate.config import TransportConfig
from breathgate.production.retry_manager import ProductionRetryManager, RetryConfig
from breathgate.transport import (
    SerialPortAdapter,
    SocketAdapter,
    BridgeAdapter,
    HostBridge,
    TransportEventKind,
    DISCONNECTED_STATUS,
    create_transport,
)
from breathgate.transport.bridge_adapter import (
    NO_HOST_STATUS,
    GESTURE_REQUIRED_STATUS,
    UNSUPPORTED_STATUS,
    REQUESTING_STATUS,
)


def immediate_retries(name, exceptions, attempts=2):
    return ProductionRetryManager(default_configs={
        name: RetryConfig(max_attempts=attempts, base_delay=0.0, jitter=False,
                          retryable_exceptions=exceptions)
    })


class EventLog:
    """Collects adapter events, noting whether the channel was open at the time"""

    def __init__(self, adapter):
        self.adapter = adapter
        self.raw = []
        self.status = []
        adapter.register_listener(self)

    def __call__(self, event):
        if event.kind is TransportEventKind.RAW_TEXT:
            self.raw.append(event.payload)
        else:
            self.status.append((event.payload, self.adapter.is_open))

    @property
    def messages(self):
        return [message for message, _ in self.status]


class TestSerialPortAdapter(unittest.TestCase):

    def setUp(self):
        self.retry = immediate_retries('serial_open', (serial.SerialException,))
        self.adapter = SerialPortAdapter(port="/dev/ttyACM0", retry_manager=self.retry)
        self.log = EventLog(self.adapter)

    def open_with(self, port):
        with patch('breathgate.transport.serial_adapter.serial.Serial', return_value=port) as ctor:
            opened = asyncio.run(self.adapter.connect())
        return opened, ctor

    def test_connect_opens_port(self):
        port = Mock(is_open=True)
        opened, ctor = self.open_with(port)

        self.assertTrue(opened)
        ctor.assert_called_once_with("/dev/ttyACM0", 115200, timeout=0.05)
        self.assertEqual(self.log.messages, ["Serial connected (115200)."])
        self.assertEqual(self.adapter.active_port, "/dev/ttyACM0")

    def test_no_port_found(self):
        adapter = SerialPortAdapter(port=None)
        log = EventLog(adapter)

        self.assertFalse(asyncio.run(adapter.connect()))
        self.assertEqual(log.messages, ["Serial connect failed: no serial port found."])

    def test_open_failure_is_reported_not_raised(self):
        error = serial.SerialException("could not open port /dev/ttyACM0")
        with patch('breathgate.transport.serial_adapter.serial.Serial', side_effect=error) as ctor:
            opened = asyncio.run(self.adapter.connect())

        self.assertFalse(opened)
        self.assertEqual(ctor.call_count, 2)
        self.assertEqual(self.adapter.metrics['connect_failures'], 1)
        self.assertEqual(len(self.log.messages), 1)
        self.assertTrue(self.log.messages[0].startswith("Serial connect failed: Serial port not found"))

    def test_poll_buffers_partial_lines(self):
        port = Mock(is_open=True, in_waiting=4)
        port.readline.side_effect = [b"1.2", b"5\n"]
        self.open_with(port)

        self.assertEqual(self.adapter.poll(), 0)
        self.assertEqual(self.adapter.poll(), 1)
        self.assertEqual(self.log.raw, ["1.25\n"])

    def test_poll_without_waiting_data(self):
        port = Mock(is_open=True, in_waiting=0)
        self.open_with(port)

        self.assertEqual(self.adapter.poll(), 0)
        port.readline.assert_not_called()

    def test_read_error_closes_port(self):
        port = Mock(is_open=True, in_waiting=1)
        port.readline.side_effect = serial.SerialException("device reports readiness to read but returned no data")
        self.open_with(port)

        self.adapter.poll()

        self.assertFalse(self.adapter.is_open)
        self.assertTrue(self.log.messages[-1].startswith("Serial read error"))
        port.close.assert_called_once()

    def test_disconnect_reports_before_teardown(self):
        port = Mock(is_open=True)
        self.open_with(port)

        asyncio.run(self.adapter.disconnect())

        self.assertEqual(self.log.status[-1], (DISCONNECTED_STATUS, True))
        self.assertFalse(self.adapter.is_open)
        port.close.assert_called_once()

    def test_port_removed(self):
        port = Mock(is_open=True)
        self.open_with(port)

        self.adapter.handle_port_removed("/dev/ttyUSB9")
        self.assertTrue(self.adapter.is_open)

        self.adapter.handle_port_removed("/dev/ttyACM0")
        self.assertFalse(self.adapter.is_open)
        self.assertEqual(self.log.messages[-1], "Serial device disconnected (/dev/ttyACM0).")


class FakeConnection:
    """Stands in for a websockets ClientConnection"""

    def __init__(self, frames, close_code=1000, hang=False):
        self.frames = list(frames)
        self.close_code = close_code
        self.hang = hang
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self.frames:
            yield frame
        if self.hang:
            await asyncio.Event().wait()

    async def close(self):
        self.closed = True


class TestSocketAdapter(unittest.TestCase):

    def setUp(self):
        self.retry = immediate_retries('socket_connect', (OSError,))
        self.adapter = SocketAdapter(url="ws://sensor.local:5005", retry_manager=self.retry)
        self.log = EventLog(self.adapter)

    def test_frames_become_chunks(self):
        conn = FakeConnection(["1.0", b"2.0", b"\xff\xfe"])

        async def scenario():
            opened = await self.adapter.connect()
            await self.adapter.wait_closed()
            return opened

        with patch('breathgate.transport.socket_adapter.ws_connect', AsyncMock(return_value=conn)) as ws:
            opened = asyncio.run(scenario())

        self.assertTrue(opened)
        ws.assert_awaited_once_with("ws://sensor.local:5005", open_timeout=5.0)
        self.assertEqual(self.log.raw, ["1.0", "2.0"])
        self.assertEqual(self.log.messages, [
            "WebSocket connected (ws://sensor.local:5005).",
            "WebSocket closed by remote (code 1000).",
        ])
        self.assertFalse(self.adapter.is_open)

    def test_connect_failure_is_reported(self):
        refused = AsyncMock(side_effect=ConnectionRefusedError("Connect call failed"))

        with patch('breathgate.transport.socket_adapter.ws_connect', refused):
            opened = asyncio.run(self.adapter.connect())

        self.assertFalse(opened)
        self.assertEqual(refused.await_count, 2)
        self.assertEqual(self.log.messages, [
            "WebSocket connect failed: Sensor server unreachable (ws://sensor.local:5005).",
        ])

    def test_local_disconnect_is_not_reported_as_remote_close(self):
        conn = FakeConnection(["0.5"], hang=True)

        async def scenario():
            await self.adapter.connect()
            await asyncio.sleep(0)
            await self.adapter.disconnect()

        with patch('breathgate.transport.socket_adapter.ws_connect', AsyncMock(return_value=conn)):
            asyncio.run(scenario())

        self.assertTrue(conn.closed)
        self.assertFalse(self.adapter.is_open)
        self.assertEqual(self.log.messages[-1], DISCONNECTED_STATUS)
        self.assertFalse(any("remote" in m for m in self.log.messages))


class FakeHost(HostBridge):

    def __init__(self, supported=True, fail=None, disconnect_fail=None):
        self.supported = supported
        self.fail = fail
        self.disconnect_fail = disconnect_fail
        self.on_data = None
        self.on_status = None
        self.disconnects = 0

    def is_supported(self):
        return self.supported

    def request_connect(self, on_data, on_status):
        if self.fail is not None:
            raise self.fail
        self.on_data = on_data
        self.on_status = on_status

    def request_disconnect(self):
        self.disconnects += 1
        if self.disconnect_fail is not None:
            raise self.disconnect_fail


class TestBridgeAdapter(unittest.TestCase):

    def connect(self, host, user_gesture=True):
        adapter = BridgeAdapter(host=host)
        log = EventLog(adapter)
        opened = asyncio.run(adapter.connect(user_gesture=user_gesture))
        return adapter, log, opened

    def test_no_host(self):
        _, log, opened = self.connect(None)
        self.assertFalse(opened)
        self.assertEqual(log.messages, [NO_HOST_STATUS])

    def test_requires_user_gesture(self):
        host = FakeHost()
        _, log, opened = self.connect(host, user_gesture=False)
        self.assertFalse(opened)
        self.assertEqual(log.messages, [GESTURE_REQUIRED_STATUS])
        self.assertIsNone(host.on_data)

    def test_unsupported_host(self):
        _, log, opened = self.connect(FakeHost(supported=False))
        self.assertFalse(opened)
        self.assertEqual(log.messages, [UNSUPPORTED_STATUS])

    def test_host_callbacks_are_relayed(self):
        host = FakeHost()
        adapter, log, opened = self.connect(host)

        self.assertTrue(opened)
        self.assertTrue(adapter.is_open)

        host.on_status("Connected to USB device.")
        host.on_data("1.5\n")
        host.on_data("  \n")

        self.assertEqual(log.messages, [REQUESTING_STATUS, "Connected to USB device."])
        self.assertEqual(log.raw, ["1.5\n"])

    def test_host_exception_becomes_status(self):
        _, log, opened = self.connect(FakeHost(fail=RuntimeError("NotFoundError: No port selected")))
        self.assertFalse(opened)
        self.assertEqual(log.messages[-1], "WebSerial exception: NotFoundError: No port selected")

    def test_disconnect_asks_host(self):
        host = FakeHost()
        adapter, log, _ = self.connect(host)

        asyncio.run(adapter.disconnect())

        self.assertEqual(host.disconnects, 1)
        self.assertEqual(log.status[-1], (DISCONNECTED_STATUS, True))
        self.assertFalse(adapter.is_open)

    def test_disconnect_failure_is_reported_as_disconnect(self):
        host = FakeHost(disconnect_fail=OSError("port already closed"))
        adapter, log, _ = self.connect(host)

        asyncio.run(adapter.disconnect())

        self.assertEqual(log.messages[-1], DISCONNECTED_STATUS)
        self.assertEqual(adapter.error_handler.error_counts, {'bridge_disconnect': 1})
        self.assertEqual(adapter.error_handler.error_history[-1].user_message,
                         "Host serial bridge did not close cleanly")


class TestCreateTransport(unittest.TestCase):

    def test_kinds(self):
        self.assertIsInstance(create_transport(TransportConfig(kind='serial')), SerialPortAdapter)
        self.assertIsInstance(create_transport(TransportConfig(kind='socket')), SocketAdapter)
        self.assertIsInstance(create_transport(TransportConfig(kind='bridge')), BridgeAdapter)

    def test_settings_are_passed_through(self):
        config = TransportConfig(kind='socket')
        config.socket.url = "ws://10.0.0.2:5005"
        adapter = create_transport(config)
        self.assertEqual(adapter.url, "ws://10.0.0.2:5005")

    def test_unknown_kind(self):
        with self.assertRaises(ValueError):
            create_transport(TransportConfig(kind='bluetooth'))


if __name__ == '__main__':
    unittest.main()
