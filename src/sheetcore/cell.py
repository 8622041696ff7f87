"""Spreadsheet cell model."""

from __future__ import annotations

from enum import Enum
from typing import Callable

from sheetcore.addressing import make_addr

FORMULA_MARKER = "="
DEFAULT_BG_COLOR = 16777215  # opaque white, packed RGB

SELF_REFERENCE_MARKER = "!Self-Reference Error"
CIRCULAR_REFERENCE_MARKER = "!Circular Reference Error"
ERROR_MARKER = "!ERROR"


class CellState(str, Enum):
    idle = "idle"
    evaluating = "evaluating"
    settled = "settled"
    errored = "errored"


class ErrorKind(str, Enum):
    self_reference = "self_reference"
    circular_reference = "circular_reference"
    error = "error"

    @property
    def marker(self) -> str:
        """Value shown in place of a result."""
        return _MARKERS[self]


_MARKERS = {
    ErrorKind.self_reference: SELF_REFERENCE_MARKER,
    ErrorKind.circular_reference: CIRCULAR_REFERENCE_MARKER,
    ErrorKind.error: ERROR_MARKER,
}

# (cell, property_name) -> None
ChangeListener = Callable[["Cell", str], None]


class Cell:
    """One grid cell: raw text, cached value, and background color.

    Assigning ``text`` commits the edit to the owning spreadsheet, which
    recalculates this cell and its dependents before the assignment
    returns.  ``value`` is written only by the spreadsheet.
    """

    def __init__(self, row: int, column: int, on_change: ChangeListener | None = None) -> None:
        self.row = row
        self.column = column
        self.name = make_addr(row, column)
        self._text = ""
        self._value = ""
        self._bg_color = DEFAULT_BG_COLOR
        self._on_change = on_change
        self.state = CellState.idle
        self.error: ErrorKind | None = None
        # Reentrancy guard, owned by the spreadsheet.
        self.is_evaluating = False
        # Set once listeners have been told about the current value.
        self.value_notified = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def text(self) -> str:
        return self._text

    @text.setter
    def text(self, new_text: str) -> None:
        new_text = new_text or ""
        if new_text == self._text:
            return
        self._text = new_text
        self._notify("text")

    @property
    def value(self) -> str:
        return self._value

    @property
    def bg_color(self) -> int:
        return self._bg_color

    @bg_color.setter
    def bg_color(self, color: int) -> None:
        color = int(color)
        if color < 0:
            raise ValueError(f"Background color must be non-negative, got {color}")
        if color == self._bg_color:
            return
        self._bg_color = color
        self._notify("bg_color")

    @property
    def is_formula(self) -> bool:
        return self._text.startswith(FORMULA_MARKER)

    @property
    def is_modified(self) -> bool:
        """True when the cell differs from a freshly created one."""
        return bool(self._text) or self._bg_color != DEFAULT_BG_COLOR

    # ------------------------------------------------------------------
    # Engine-side mutation
    # ------------------------------------------------------------------

    def _set_value(self, value: str) -> None:
        self._value = value
        self.error = None
        self.state = CellState.settled
        self.value_notified = False

    def _set_error(self, kind: ErrorKind) -> None:
        self._value = kind.marker
        self.error = kind
        self.state = CellState.errored
        self.value_notified = False

    def _reset(self) -> list[str]:
        """Return to the freshly created state without notifying.

        Returns:
            The properties (``text``, ``value``, ``bg_color``) that changed.
        """
        changed = [
            prop
            for prop, differs in (
                ("text", self._text != ""),
                ("value", self._value != ""),
                ("bg_color", self._bg_color != DEFAULT_BG_COLOR),
            )
            if differs
        ]
        self._text = ""
        self._value = ""
        self._bg_color = DEFAULT_BG_COLOR
        self.state = CellState.idle
        self.error = None
        self.is_evaluating = False
        self.value_notified = False
        return changed

    def _notify(self, prop: str) -> None:
        if self._on_change is not None:
            self._on_change(self, prop)

    def __repr__(self) -> str:
        return f"Cell({self.name}, text={self._text!r}, value={self._value!r})"
