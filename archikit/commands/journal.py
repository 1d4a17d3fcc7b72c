"""
Reversible edit commands and the command stack.

Every model mutation made by the importer is expressed as a primitive
command that knows its own inverse. Primitive commands are grouped into a
CompoundCommand which executes in order and undoes in reverse, so one
undo restores the model to exactly the state it had before the batch.
"""

import logging
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

_UNSET = object()


class Command:
    """Base class for a reversible edit."""

    label: str = ""

    def can_execute(self) -> bool:
        return True

    def execute(self) -> None:
        raise NotImplementedError

    def undo(self) -> None:
        raise NotImplementedError

    def redo(self) -> None:
        self.execute()


class SetAttributeCommand(Command):
    """Set ``target.<attribute>`` and remember the previous value."""

    def __init__(self, target: Any, attribute: str, new_value: Any, label: str = ""):
        self.target = target
        self.attribute = attribute
        self.new_value = new_value
        self.old_value = _UNSET
        self.label = label or f"Set {attribute}"

    def execute(self) -> None:
        self.old_value = getattr(self.target, self.attribute)
        setattr(self.target, self.attribute, self.new_value)

    def undo(self) -> None:
        if self.old_value is _UNSET:
            return
        setattr(self.target, self.attribute, self.old_value)


class AddToListCommand(Command):
    """Append (or insert) an item into a list owned by the model."""

    def __init__(self, items: List[Any], item: Any, index: Optional[int] = None, label: str = ""):
        self.items = items
        self.item = item
        self.index = index
        self.label = label or "Add"

    def execute(self) -> None:
        if self.index is None:
            self.items.append(self.item)
        else:
            self.items.insert(self.index, self.item)

    def undo(self) -> None:
        # Identity match, list.remove() would compare by equality
        for i, existing in enumerate(self.items):
            if existing is self.item:
                del self.items[i]
                return


class RemoveFromListCommand(Command):
    """Remove an item from a list, restoring it at its old position on undo."""

    def __init__(self, items: List[Any], item: Any, label: str = ""):
        self.items = items
        self.item = item
        self.index: Optional[int] = None
        self.label = label or "Remove"

    def can_execute(self) -> bool:
        return any(existing is self.item for existing in self.items)

    def execute(self) -> None:
        for i, existing in enumerate(self.items):
            if existing is self.item:
                self.index = i
                del self.items[i]
                return

    def undo(self) -> None:
        if self.index is not None:
            self.items.insert(self.index, self.item)


class CompoundCommand(Command):
    """
    An ordered batch of commands applied as one undoable edit.

    If a child fails while executing, the children already applied are
    undone before the error propagates, so the batch is all-or-nothing.
    """

    def __init__(self, label: str = ""):
        self.label = label
        self.commands: List[Command] = []

    def add(self, command: Optional[Command]) -> None:
        if command is not None:
            self.commands.append(command)

    def is_empty(self) -> bool:
        return not self.commands

    def can_execute(self) -> bool:
        return not self.is_empty() and all(cmd.can_execute() for cmd in self.commands)

    def execute(self) -> None:
        self._apply(lambda cmd: cmd.execute())

    def redo(self) -> None:
        self._apply(lambda cmd: cmd.redo())

    def _apply(self, action) -> None:
        done: List[Command] = []
        try:
            for cmd in self.commands:
                action(cmd)
                done.append(cmd)
        except Exception:
            for cmd in reversed(done):
                cmd.undo()
            raise

    def undo(self) -> None:
        for cmd in reversed(self.commands):
            cmd.undo()

    def __len__(self) -> int:
        return len(self.commands)


class CommandStack:
    """Undo/redo history of executed commands."""

    def __init__(self):
        self._undo: List[Command] = []
        self._redo: List[Command] = []

    def execute(self, command: Command) -> bool:
        """
        Execute a command and push it onto the undo history.

        Returns:
            False if the command could not execute and was ignored
        """
        if command is None or not command.can_execute():
            return False
        command.execute()
        self._undo.append(command)
        self._redo.clear()
        logger.debug(f"Executed command '{command.label}'")
        return True

    def can_undo(self) -> bool:
        return bool(self._undo)

    def can_redo(self) -> bool:
        return bool(self._redo)

    def undo(self) -> None:
        if not self._undo:
            return
        command = self._undo.pop()
        command.undo()
        self._redo.append(command)
        logger.debug(f"Undid command '{command.label}'")

    def redo(self) -> None:
        if not self._redo:
            return
        command = self._redo.pop()
        command.redo()
        self._undo.append(command)
        logger.debug(f"Redid command '{command.label}'")

    def flush(self) -> None:
        self._undo.clear()
        self._redo.clear()

    @property
    def undo_command(self) -> Optional[Command]:
        return self._undo[-1] if self._undo else None
