"""
Pressure Signal Tests
"""

import threading
import unittest

import pytest

from breathgate.pressure.pressure_signal import (
    PressureSignal,
    PressureSample,
    ConnectionState,
    classify_status,
)


@pytest.mark.parametrize("message, expected", [
    ("Serial connected (115200).", ConnectionState.CONNECTED),
    ("Device connected. Receiving pressure...", ConnectionState.CONNECTED),
    ("Disconnected.", ConnectionState.DISCONNECTED),
    ("WebSocket closed by remote.", ConnectionState.DISCONNECTED),
    ("Serial connect failed: Serial port busy (/dev/ttyACM0).", ConnectionState.DISCONNECTED),
    ("WebSocket error: boom", ConnectionState.DISCONNECTED),
    ("CONNECTED", ConnectionState.CONNECTED),
    ("Requesting USB device...", None),
    ("WebSerial not supported. Use Chrome/Edge on desktop.", None),
    ("Serial reconnected (115200).", ConnectionState.CONNECTED),
    ("Read errors on port", ConnectionState.DISCONNECTED),
    ("Connecting...", None),
    ("", None),
])
def test_classify_status(message, expected):
    assert classify_status(message) is expected


def test_disconnect_keywords_win():
    assert classify_status("connected, then error") is ConnectionState.DISCONNECTED
    assert classify_status("error: not connected") is ConnectionState.DISCONNECTED


class TestPressureSignal(unittest.TestCase):

    def setUp(self):
        self.signal = PressureSignal()
        self.states = []
        self.messages = []
        self.signal.on_state_changed(self.states.append)
        self.signal.on_status_message(self.messages.append)

    def test_initial_state(self):
        self.assertEqual(self.signal.current_value(), 0.0)
        self.assertIs(self.signal.current_state(), ConnectionState.DISCONNECTED)
        self.assertIsNone(self.signal.last_sample())

    def test_set_value_keeps_latest(self):
        self.signal.set_value(PressureSample(1.5))
        self.signal.set_value(PressureSample(2.5))
        self.assertEqual(self.signal.current_value(), 2.5)
        self.assertEqual(self.signal.last_sample().value_kpa, 2.5)

    def test_identical_states_coalesce(self):
        self.assertTrue(self.signal.set_state(ConnectionState.CONNECTED))
        self.assertFalse(self.signal.set_state(ConnectionState.CONNECTED))
        self.assertEqual(self.states, [ConnectionState.CONNECTED])

    def test_disconnect_clears_value(self):
        self.signal.set_state(ConnectionState.CONNECTED)
        self.signal.set_value(PressureSample(3.0))
        self.signal.set_state(ConnectionState.DISCONNECTED)
        self.assertEqual(self.signal.current_value(), 0.0)

    def test_disconnect_holds_value_when_configured(self):
        signal = PressureSignal(clear_on_disconnect=False)
        signal.set_state(ConnectionState.CONNECTED)
        signal.set_value(PressureSample(3.0))
        signal.set_state(ConnectionState.DISCONNECTED)
        self.assertEqual(signal.current_value(), 3.0)

    def test_publish_status_classifies_then_relays(self):
        observed = []
        self.signal.on_status_message(lambda m: observed.append(self.signal.current_state()))

        state = self.signal.publish_status("Serial connected (115200).")

        self.assertIs(state, ConnectionState.CONNECTED)
        self.assertEqual(self.messages, ["Serial connected (115200)."])
        self.assertEqual(observed, [ConnectionState.CONNECTED])

    def test_unmatched_status_is_relayed_without_state_change(self):
        self.assertIsNone(self.signal.publish_status("Requesting USB device..."))
        self.assertEqual(self.messages, ["Requesting USB device..."])
        self.assertEqual(self.states, [])

    def test_failing_subscriber_is_isolated(self):
        def broken(state):
            raise RuntimeError("boom")

        signal = PressureSignal()
        seen = []
        signal.on_state_changed(broken)
        signal.on_state_changed(seen.append)
        signal.set_state(ConnectionState.CONNECTED)
        self.assertEqual(seen, [ConnectionState.CONNECTED])

    def test_remove_callback(self):
        self.signal.remove_callback(self.states.append)
        self.signal.set_state(ConnectionState.CONNECTED)
        self.assertEqual(self.states, [])

    def test_concurrent_writers(self):
        def writer(value):
            for _ in range(200):
                self.signal.set_value(PressureSample(value))

        threads = [threading.Thread(target=writer, args=(v,)) for v in (1.0, 2.0, 3.0)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertIn(self.signal.current_value(), (1.0, 2.0, 3.0))
        self.assertEqual(self.signal.metrics['samples_applied'], 600)


if __name__ == '__main__':
    unittest.main()
