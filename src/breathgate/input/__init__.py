"""
Input Module

Keyboard edge source for keyboard-mode abilities.
"""

from .keyboard_input import KeyBindings, KeyEdgeSource, find_keyboard

__all__ = [
    'KeyBindings',
    'KeyEdgeSource',
    'find_keyboard',
]
