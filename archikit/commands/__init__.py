"""Reversible edit commands and undo/redo history."""

from .journal import (
    AddToListCommand,
    Command,
    CommandStack,
    CompoundCommand,
    RemoveFromListCommand,
    SetAttributeCommand,
)

__all__ = [
    "AddToListCommand",
    "Command",
    "CommandStack",
    "CompoundCommand",
    "RemoveFromListCommand",
    "SetAttributeCommand",
]
