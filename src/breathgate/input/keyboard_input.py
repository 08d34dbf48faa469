"""
Keyboard Input Module

Keyboard edge source for abilities in keyboard mode. Tracks which action
keys are held and which were pressed or released since the last tick.
"""

import logging
from typing import Dict, Optional, Set

try:
    import evdev
    from evdev import ecodes, InputDevice
except ImportError:
    evdev = None
    ecodes = None
    InputDevice = None

log = logging.getLogger(__name__)

KEY_RELEASE = 0
KEY_PRESS = 1
KEY_REPEAT = 2


class KeyBindings:
    """Maps ability actions to evdev key names and codes"""

    def __init__(self, keys: Dict[str, str]):
        self.keys = dict(keys)
        self._codes: Dict[int, str] = {}

        if ecodes is None:
            log.debug("evdev not available - key codes unresolved, programmatic input only")
            return

        for action, key_name in self.keys.items():
            code = ecodes.ecodes.get(key_name)
            if code is None:
                log.warning(f"Unknown key name for '{action}': {key_name}")
                continue
            self._codes[code] = action

    def action_for_code(self, code: int) -> Optional[str]:
        return self._codes.get(code)

    def key_for_action(self, action: str) -> Optional[str]:
        return self.keys.get(action)


class KeyEdgeSource:
    """Held state plus per-tick press and release edges for each action"""

    def __init__(self, bindings: KeyBindings):
        self.bindings = bindings
        self._held: Set[str] = set()
        self._pressed: Set[str] = set()
        self._released: Set[str] = set()

    def handle_key_event(self, event) -> Optional[str]:
        """
        Handle an evdev key event

        Auto-repeat events are ignored; only real presses and releases count.

        Returns:
            The bound action, or None if the key is not bound
        """
        if ecodes is None or event.type != ecodes.EV_KEY:
            return None

        action = self.bindings.action_for_code(event.code)
        if action is None:
            return None

        if event.value == KEY_PRESS:
            self.press(action)
        elif event.value == KEY_RELEASE:
            self.release(action)

        return action

    def press(self, action: str):
        if action not in self._held:
            self._held.add(action)
            self._pressed.add(action)

    def release(self, action: str):
        if action in self._held:
            self._held.discard(action)
            self._released.add(action)

    def is_held(self, action: str) -> bool:
        return action in self._held

    def pressed(self, action: str) -> bool:
        """Pressed since the last end_tick()"""
        return action in self._pressed

    def released(self, action: str) -> bool:
        return action in self._released

    def end_tick(self):
        self._pressed.clear()
        self._released.clear()

    def clear(self):
        self._held.clear()
        self.end_tick()

    async def read_device(self, device: "InputDevice"):
        """Feed events from an evdev device until it goes away or is cancelled"""
        log.info(f"✓ Reading keys from {device.name} ({device.path})")
        try:
            async for event in device.async_read_loop():
                self.handle_key_event(event)
        except OSError as e:
            log.warning(f"Keyboard device {device.path} lost: {e}")
            self.clear()
        finally:
            device.close()


def find_keyboard(path: Optional[str] = "auto") -> Optional["InputDevice"]:
    """
    Open the keyboard to read action keys from

    Args:
        path: An evdev device path, or "auto" for the first device with letter keys

    Returns:
        The opened device, or None when no keyboard can be read
    """
    if evdev is None:
        log.info("evdev not available - keyboard actions must be fed by the host")
        return None

    if path and path != "auto":
        try:
            return InputDevice(path)
        except OSError as e:
            log.error(f"Cannot open keyboard {path}: {e}")
            return None

    for device_path in evdev.list_devices():
        try:
            device = InputDevice(device_path)
        except OSError as e:
            log.debug(f"Skipping {device_path}: {e}")
            continue

        if ecodes.KEY_Q in device.capabilities().get(ecodes.EV_KEY, []):
            log.info(f"Keyboard: {device.name}")
            return device
        device.close()

    log.warning("No readable keyboard found. Check permissions:")
    log.warning("  sudo usermod -aG input $USER, then log out and back in")
    return None
