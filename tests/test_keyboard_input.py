"""
Keyboard Input Tests

Need the evdev key tables, so they only run where evdev is installed.
"""

import asyncio
from unittest.mock import patch

import pytest

evdev = pytest.importorskip("evdev")
from evdev import ecodes, InputEvent

from breathgate.config import DEFAULT_KEYS
from breathgate.input.keyboard_input import (
    KeyBindings,
    KeyEdgeSource,
    find_keyboard,
    KEY_PRESS,
    KEY_RELEASE,
    KEY_REPEAT,
)


def key(code, value):
    return InputEvent(0, 0, ecodes.EV_KEY, code, value)


class FakeDevice:
    def __init__(self, path, keys=(), events=(), error=None):
        self.path = path
        self.name = f"device at {path}"
        self.keys = list(keys)
        self.events = list(events)
        self.error = error
        self.closed = False

    def capabilities(self):
        return {ecodes.EV_KEY: self.keys} if self.keys else {}

    async def async_read_loop(self):
        for event in self.events:
            yield event
        if self.error is not None:
            raise self.error

    def close(self):
        self.closed = True


@pytest.fixture
def keys():
    return KeyEdgeSource(KeyBindings(DEFAULT_KEYS))


def test_key_events_become_edges(keys):
    assert keys.handle_key_event(key(ecodes.KEY_SPACE, KEY_PRESS)) == 'jump'
    assert keys.is_held('jump')
    assert keys.pressed('jump')

    keys.end_tick()
    keys.handle_key_event(key(ecodes.KEY_SPACE, KEY_REPEAT))
    assert not keys.pressed('jump')

    keys.handle_key_event(key(ecodes.KEY_SPACE, KEY_RELEASE))
    assert keys.released('jump')
    assert not keys.is_held('jump')


def test_unbound_and_non_key_events_are_ignored(keys):
    assert keys.handle_key_event(key(ecodes.KEY_Z, KEY_PRESS)) is None
    assert keys.handle_key_event(InputEvent(0, 0, ecodes.EV_SYN, 0, 0)) is None


def test_read_device_feeds_edges_and_closes(keys):
    device = FakeDevice('/dev/input/event3', events=[
        key(ecodes.KEY_SPACE, KEY_PRESS),
        key(ecodes.KEY_E, KEY_PRESS),
        key(ecodes.KEY_E, KEY_RELEASE),
    ])

    asyncio.run(keys.read_device(device))

    assert keys.is_held('jump')
    assert not keys.is_held('push')
    assert device.closed


def test_lost_device_releases_everything(keys):
    device = FakeDevice('/dev/input/event3', events=[key(ecodes.KEY_SPACE, KEY_PRESS)],
                        error=OSError(19, "No such device"))

    asyncio.run(keys.read_device(device))

    assert not keys.is_held('jump')
    assert device.closed


def test_find_keyboard_picks_first_device_with_letter_keys():
    devices = {
        '/dev/input/event0': FakeDevice('/dev/input/event0', keys=[ecodes.BTN_LEFT]),
        '/dev/input/event2': FakeDevice('/dev/input/event2', keys=[ecodes.KEY_Q, ecodes.KEY_SPACE]),
    }

    def open_device(path):
        if path == '/dev/input/event1':
            raise PermissionError(13, "Permission denied")
        return devices[path]

    with patch.object(evdev, 'list_devices', return_value=[
            '/dev/input/event0', '/dev/input/event1', '/dev/input/event2']), \
            patch('breathgate.input.keyboard_input.InputDevice', side_effect=open_device):
        found = find_keyboard()

    assert found is devices['/dev/input/event2']
    assert devices['/dev/input/event0'].closed
    assert not found.closed


def test_find_keyboard_without_devices(caplog):
    with patch.object(evdev, 'list_devices', return_value=[]):
        assert find_keyboard('auto') is None
    assert "No readable keyboard found" in caplog.text


def test_find_keyboard_explicit_path():
    device = FakeDevice('/dev/input/by-id/usb-kbd-event-kbd', keys=[ecodes.KEY_Q])

    with patch('breathgate.input.keyboard_input.InputDevice', return_value=device) as opener:
        assert find_keyboard('/dev/input/by-id/usb-kbd-event-kbd') is device
    opener.assert_called_once_with('/dev/input/by-id/usb-kbd-event-kbd')

    with patch('breathgate.input.keyboard_input.InputDevice', side_effect=FileNotFoundError(2, "gone")):
        assert find_keyboard('/dev/input/event9') is None
