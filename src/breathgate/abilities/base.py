"""
Gated ability base class.
"""

import logging

from ..gating.mode import Controllable, ControlMode
from ..gating.threshold import ThresholdEvaluator
from ..input.keyboard_input import KeyEdgeSource

log = logging.getLogger(__name__)


class GatedAbility(Controllable):
    """
    An ability driven by either a key or breath pressure

    Subclasses read the keyboard edge source in keyboard mode and the
    threshold evaluator in breath mode. A mode switch discards whatever
    the ability was in the middle of.
    """

    action = ""

    def __init__(self, evaluator: ThresholdEvaluator, keys: KeyEdgeSource):
        self.evaluator = evaluator
        self.keys = keys
        self.mode = ControlMode.KEYBOARD

    @property
    def uses_breath(self) -> bool:
        return self.mode is ControlMode.BREATH

    def set_control_mode(self, mode: ControlMode) -> None:
        mode = ControlMode(mode)
        if mode is self.mode:
            return

        self.mode = mode
        self.reset()
        log.debug(f"{type(self).__name__}: control mode set to {mode.value}")

    def reset(self):
        """Drop in-progress state"""
