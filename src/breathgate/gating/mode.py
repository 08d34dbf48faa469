"""
Control Mode

Global Keyboard/Breath selection pushed to every gated ability. Abilities
opt in by implementing Controllable; anything else handed to the
broadcaster is skipped.
"""

import threading
import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterable, List, Union
from enum import Enum

log = logging.getLogger(__name__)


class ControlMode(Enum):
    """Which input source drives gated abilities"""
    KEYBOARD = "keyboard"
    BREATH = "breath"


class Controllable(ABC):
    """An ability that can switch its input source"""

    @abstractmethod
    def set_control_mode(self, mode: ControlMode) -> None:
        """Switch input source; in-progress actions are reset, not carried over"""


ModeListener = Callable[[ControlMode], None]


class ModeBroadcaster:
    """Holds the current control mode and keeps every registered ability in sync"""

    def __init__(self, initial: ControlMode = ControlMode.KEYBOARD):
        self._mode = initial
        self._targets: List[Controllable] = []
        self._listeners: List[ModeListener] = []
        self._lock = threading.Lock()
        self.metrics = {
            'broadcasts': 0,
            'skipped_targets': 0,
        }

    def current_mode(self) -> ControlMode:
        with self._lock:
            return self._mode

    def set_mode(self, mode: Union[ControlMode, str]) -> bool:
        """
        Change the mode and push it to every registered ability

        Setting the mode it already has is a no-op with no broadcast.

        Returns:
            True if the mode changed
        """
        mode = ControlMode(mode)

        with self._lock:
            if mode is self._mode:
                return False
            self._mode = mode
            targets = list(self._targets)
            listeners = list(self._listeners)
            self.metrics['broadcasts'] += 1

        log.info(f"Control mode set to {mode.value}")

        for target in targets:
            self._push(target, mode)

        for listener in listeners:
            try:
                listener(mode)
            except Exception as e:
                log.error(f"Mode listener error: {e}")

        return True

    def set_keyboard(self) -> bool:
        return self.set_mode(ControlMode.KEYBOARD)

    def set_breath(self) -> bool:
        return self.set_mode(ControlMode.BREATH)

    def toggle(self) -> ControlMode:
        with self._lock:
            mode = self._mode
        self.set_mode(ControlMode.BREATH if mode is ControlMode.KEYBOARD else ControlMode.KEYBOARD)
        return self.current_mode()

    def register(self, target) -> bool:
        """
        Add an ability and hand it the current mode straight away

        Returns:
            False if the object is not Controllable
        """
        if not isinstance(target, Controllable):
            self.metrics['skipped_targets'] += 1
            log.debug(f"Skipping {type(target).__name__}: not Controllable")
            return False

        with self._lock:
            if target not in self._targets:
                self._targets.append(target)
            mode = self._mode

        self._push(target, mode)
        return True

    def unregister(self, target: Controllable):
        with self._lock:
            if target in self._targets:
                self._targets.remove(target)

    def apply_to_scene(self, targets: Iterable) -> int:
        """
        Replace the registry with a freshly loaded scene's abilities

        Abilities from the previous scene are dropped; the current mode is
        pushed to each new one.

        Returns:
            Number of Controllable abilities registered
        """
        accepted = []
        for target in targets:
            if isinstance(target, Controllable):
                if target not in accepted:
                    accepted.append(target)
            else:
                self.metrics['skipped_targets'] += 1
                log.debug(f"Skipping {type(target).__name__}: not Controllable")

        with self._lock:
            self._targets = accepted
            mode = self._mode

        for target in accepted:
            self._push(target, mode)

        log.info(f"✓ Applied {mode.value} mode to {len(accepted)} abilities")
        return len(accepted)

    def registered(self) -> List[Controllable]:
        with self._lock:
            return list(self._targets)

    def subscribe(self, listener: ModeListener):
        with self._lock:
            self._listeners.append(listener)

    def _push(self, target: Controllable, mode: ControlMode):
        try:
            target.set_control_mode(mode)
        except Exception as e:
            log.error(f"Failed to set {mode.value} mode on {type(target).__name__}: {e}")
