"""Reversible cell edits and the undo/redo stack.

Commands only write raw text or background color; the spreadsheet reacts
to the text change and recalculates, so undoing an edit replays the old
text through the same commit path.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from sheetcore.cell import DEFAULT_BG_COLOR, Cell


class Command(Protocol):
    """A reversible mutation."""

    @property
    def name(self) -> str:
        ...

    def execute(self) -> None:
        ...

    def undo(self) -> None:
        ...


class ChangeTextCommand:
    """Set a cell's raw text."""

    name = "Change Text"

    def __init__(self, cell: Cell, new_text: str) -> None:
        if cell is None:
            raise ValueError("Cell cannot be None.")
        self.cell = cell
        self.new_text = new_text
        self.old_text = cell.text

    def execute(self) -> None:
        self.cell.text = self.new_text

    def undo(self) -> None:
        self.cell.text = self.old_text


class ChangeBackgroundColorCommand:
    """Set a cell's background color; ``None`` restores the default."""

    name = "Change Background Color"

    def __init__(self, cell: Cell, new_color: int | None) -> None:
        if cell is None:
            raise ValueError("Cell cannot be None.")
        self.cell = cell
        self.new_color = DEFAULT_BG_COLOR if new_color is None else new_color
        self.old_color = cell.bg_color

    def execute(self) -> None:
        self.cell.bg_color = self.new_color

    def undo(self) -> None:
        self.cell.bg_color = self.old_color


class CompositeCommand:
    """Several commands applied and reverted as one step."""

    def __init__(self, commands: Iterable[Command], name: str = "Change Background Color of Multiple Cells") -> None:
        self.commands = list(commands)
        self.name = name

    def execute(self) -> None:
        for command in self.commands:
            command.execute()

    def undo(self) -> None:
        for command in reversed(self.commands):
            command.undo()


class UndoRedoStack:
    """LIFO history of performed commands."""

    def __init__(self) -> None:
        self._undo: list[Command] = []
        self._redo: list[Command] = []

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def perform(self, command: Command) -> None:
        """Execute *command* and record it.  Clears the redo history.

        If ``execute()`` raises after mutating the cell (e.g. the new
        formula fails to evaluate), the command is still recorded so the
        edit can be undone.
        """
        try:
            command.execute()
        finally:
            self._undo.append(command)
            self._redo.clear()

    def undo(self) -> None:
        if not self._undo:
            return
        command = self._undo.pop()
        self._redo.append(command)
        command.undo()

    def redo(self) -> None:
        if not self._redo:
            return
        command = self._redo.pop()
        self._undo.append(command)
        command.execute()

    def peek_undo_name(self) -> str:
        return self._undo[-1].name if self._undo else ""

    def peek_redo_name(self) -> str:
        return self._redo[-1].name if self._redo else ""

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
