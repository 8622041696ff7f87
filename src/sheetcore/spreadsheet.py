"""Grid of cells with reactive formula recalculation.

Committing a cell's text re-parses it, re-registers its references in
the dependency graph, evaluates it, and then re-evaluates every cell
that transitively depends on it.  Self references and reference cycles
are detected before evaluation and reported as error markers.

Cascades run as a worklist in dependency order rather than as nested
recursion.  A guard set records the cells currently mid-evaluation;
membership is scoped by a context manager so it is released on every
exit path.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator
from contextlib import contextmanager

from sheetcore.addressing import make_addr, normalize_addr, parse_addr
from sheetcore.cell import Cell, CellState, ChangeListener, ErrorKind
from sheetcore.commands import UndoRedoStack
from sheetcore.dependency_graph import DependencyGraph
from sheetcore.formulas.errors import (
    CellEvaluationError,
    CircularReferenceError,
    FormulaError,
    InvalidCellReferenceError,
    NonNumericValueError,
    SelfReferenceError,
)
from sheetcore.formulas.expression_tree import ExpressionTree
from sheetcore.formulas.lexer import extract_cell_references
from sheetcore.formulas.operators import DEFAULT_REGISTRY, OperatorRegistry
from sheetcore.logging.events import (
    CIRCULAR_REFERENCE,
    EVALUATION_ERROR,
    SELF_REFERENCE,
    EventLevel,
    EventType,
    emit,
    emit_info,
    make_cell_event,
)

logger = logging.getLogger(__name__)

# Integral results below this magnitude are written without a fraction.
_INTEGRAL_DISPLAY_LIMIT = 1e15

_ERROR_CODES = {
    ErrorKind.self_reference: SELF_REFERENCE,
    ErrorKind.circular_reference: CIRCULAR_REFERENCE,
    ErrorKind.error: EVALUATION_ERROR,
}


def format_number(value: float) -> str:
    """Canonical string form of a numeric result.

    Integral values print without a fractional part (``5.0`` -> ``"5"``);
    others use the shortest round-tripping representation.
    """
    if math.isfinite(value) and value == int(value) and abs(value) < _INTEGRAL_DISPLAY_LIMIT:
        return str(int(value))
    return repr(value)


class Spreadsheet:
    """A fixed-size grid of cells plus the recalculation engine.

    Usage::

        sheet = Spreadsheet(rows=50, columns=26)
        sheet.set_text("A1", "5")
        sheet.set_text("B1", "=A1 + 1")
        sheet.get_cell_by_name("B1").value  # "6"

    Parameters
    ----------
    rows : int
        Number of rows.
    columns : int
        Number of columns.
    registry : OperatorRegistry
        Operators available to formulas.
    """

    def __init__(self, rows: int, columns: int, registry: OperatorRegistry = DEFAULT_REGISTRY) -> None:
        if rows <= 0 or columns <= 0:
            raise ValueError(f"Grid must have at least one row and column, got {rows}x{columns}")
        self._registry = registry
        self._cells: list[list[Cell]] = [
            [Cell(r, c, self._cell_changed) for c in range(columns)] for r in range(rows)
        ]
        self._graph = DependencyGraph()
        self._evaluating: set[str] = set()
        self._listeners: list[ChangeListener] = []
        self.history = UndoRedoStack()

    # ------------------------------------------------------------------
    # Grid access
    # ------------------------------------------------------------------

    @property
    def row_count(self) -> int:
        return len(self._cells)

    @property
    def column_count(self) -> int:
        return len(self._cells[0])

    def get_cell(self, row: int, column: int) -> Cell:
        """Return the cell at zero-based (*row*, *column*).

        Raises:
            InvalidCellReferenceError: If the position is outside the grid.
        """
        if not (0 <= row < self.row_count and 0 <= column < self.column_count):
            raise InvalidCellReferenceError(f"({row}, {column})", "outside the grid")
        return self._cells[row][column]

    def get_cell_by_name(self, name: str) -> Cell:
        """Return the cell for an A1-style name (case-insensitive)."""
        row, column = parse_addr(name)
        if not (0 <= row < self.row_count and 0 <= column < self.column_count):
            raise InvalidCellReferenceError(name, "outside the grid")
        return self._cells[row][column]

    def iter_cells(self) -> Iterator[Cell]:
        """All cells, row-major."""
        for row in self._cells:
            yield from row

    def modified_cells(self) -> list[Cell]:
        """Cells with non-empty text or a non-default background color, row-major."""
        return [cell for cell in self.iter_cells() if cell.is_modified]

    def set_text(self, name: str, text: str) -> Cell:
        """Commit *text* into the named cell and return it.

        Raises:
            CellEvaluationError: If the cell or one of its dependents fails.
        """
        cell = self.get_cell_by_name(name)
        cell.text = text
        return cell

    def set_bg_color(self, name: str, color: int) -> Cell:
        cell = self.get_cell_by_name(name)
        cell.bg_color = color
        return cell

    # ------------------------------------------------------------------
    # Observers and graph inspection
    # ------------------------------------------------------------------

    def subscribe(self, listener: ChangeListener) -> None:
        """Call *listener(cell, prop)* on ``text``, ``value`` and ``bg_color`` changes."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def dependents_of(self, name: str) -> list[str]:
        return self._graph.dependents_of(normalize_addr(name))

    def references_of(self, name: str) -> list[str]:
        return self._graph.references_of(normalize_addr(name))

    def is_evaluating(self, name: str) -> bool:
        return normalize_addr(name) in self._evaluating

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Reset every cell's text, value and color and drop all graph state.

        Listeners are told about each property that actually changed, after
        the whole grid has been reset.  Nothing is recalculated.
        """
        changes = [(cell, cell._reset()) for cell in self.iter_cells()]
        changes = [(cell, props) for cell, props in changes if props]
        self._graph.clear()
        self._evaluating.clear()
        self.history.clear()
        for cell, props in changes:
            for prop in props:
                for listener in list(self._listeners):
                    listener(cell, prop)
        emit_info(
            EventType.sheet_cleared,
            "Spreadsheet cleared",
            {"rows": self.row_count, "columns": self.column_count, "cells": len(changes)},
        )

    def recalculate(self, name: str) -> Cell:
        """Re-run the commit path for a cell without changing its text."""
        cell = self.get_cell_by_name(name)
        self._commit(cell)
        return cell

    # ------------------------------------------------------------------
    # Commit path
    # ------------------------------------------------------------------

    def _cell_changed(self, cell: Cell, prop: str) -> None:
        for listener in list(self._listeners):
            listener(cell, prop)
        if prop == "text":
            self._commit(cell)

    @contextmanager
    def _guard(self, cell: Cell) -> Iterator[None]:
        """Hold *cell* in the evaluation guard set for the duration of the block."""
        self._evaluating.add(cell.name)
        cell.is_evaluating = True
        cell.state = CellState.evaluating
        try:
            yield
        finally:
            self._evaluating.discard(cell.name)
            cell.is_evaluating = False
            if cell.state is CellState.evaluating:
                cell.state = CellState.idle

    def _commit(self, cell: Cell) -> None:
        """Evaluate *cell*, cascade to its dependents, and re-raise the first failure."""
        if cell.name in self._evaluating:
            # Edited again while its own cascade is still running.
            cause = CircularReferenceError([cell.name, cell.name])
            raise self._fail(cell, ErrorKind.circular_reference, cause) from cause

        error: CellEvaluationError | None = None
        with self._guard(cell):
            try:
                self._evaluate(cell)
            except CellEvaluationError as exc:
                error = exc
            cascaded, cascade_error = self._cascade(cell)

        error = error or cascade_error
        emit(
            make_cell_event(
                EventType.cell_committed,
                EventLevel.info if error is None else EventLevel.warning,
                f"Committed {cell.name}",
                cell=cell.name,
                text=cell.text,
                value=cell.value,
                extra={"cascaded": len(cascaded)},
            )
        )
        if error is not None:
            raise error

    def _cascade(self, origin: Cell) -> tuple[list[str], CellEvaluationError | None]:
        """Re-evaluate everything downstream of *origin*.

        Returns:
            The cells evaluated, and the first error raised among them.
        """
        order, cyclic = self._graph.recalculation_plan(origin.name)
        first_error: CellEvaluationError | None = None

        for name in cyclic:
            if name in self._evaluating:
                continue
            cell = self.get_cell_by_name(name)
            cycle = self._graph.find_cycle(name) or [name, name]
            if len(cycle) == 2:
                cause: FormulaError = SelfReferenceError(name)
                kind = ErrorKind.self_reference
            else:
                cause = CircularReferenceError(cycle)
                kind = ErrorKind.circular_reference
            err = self._fail(cell, kind, cause)
            first_error = first_error or err

        evaluated: list[str] = []
        for name in order:
            if name in self._evaluating:
                continue
            cell = self.get_cell_by_name(name)
            try:
                with self._guard(cell):
                    self._evaluate(cell)
            except CellEvaluationError as exc:
                first_error = first_error or exc
            evaluated.append(name)

        if evaluated:
            logger.debug("cascade from %s evaluated %s", origin.name, evaluated)
            emit_info(
                EventType.cascade_completed,
                f"Recalculated {len(evaluated)} dependent cell(s) of {origin.name}",
                {"cell": origin.name, "cells": evaluated},
            )
        return evaluated, first_error

    def _evaluate(self, cell: Cell) -> None:
        """Compute one cell's value from its text.  Does not cascade.

        Raises:
            CellEvaluationError: With the cell's value set to an error marker.
        """
        name = cell.name
        self._graph.remove_cell(name)

        if not cell.is_formula:
            cell._set_value(cell.text)
            self._announce(cell)
            return

        body = cell.text[1:]
        try:
            refs = self._resolve_references(body)
            for _, ref_cell in refs:
                self._graph.add_dependency(ref_cell.name, name)

            if any(ref_cell is cell for _, ref_cell in refs):
                raise SelfReferenceError(name)
            cycle = self._graph.find_cycle(name)
            if cycle is not None:
                raise CircularReferenceError(cycle)

            tree = ExpressionTree(body, self._registry)
            for written, ref_cell in refs:
                if not ref_cell.text:
                    # A blank reference makes the whole formula 0.
                    cell._set_value("0")
                    self._announce(cell)
                    return
                tree.set_variable(written, self._numeric_value(ref_cell))
            result = tree.evaluate()
        except SelfReferenceError as exc:
            raise self._fail(cell, ErrorKind.self_reference, exc) from exc
        except CircularReferenceError as exc:
            for member in exc.cycle:
                if member != name and member not in self._evaluating:
                    self._mark(self.get_cell_by_name(member), ErrorKind.circular_reference)
            raise self._fail(cell, ErrorKind.circular_reference, exc) from exc
        except FormulaError as exc:
            raise self._fail(cell, ErrorKind.error, exc) from exc

        cell._set_value(format_number(result))
        self._announce(cell)

    def _resolve_references(self, body: str) -> list[tuple[str, Cell]]:
        """Map each cell-shaped name in *body* to its cell, keeping the spelling used."""
        resolved: list[tuple[str, Cell]] = []
        for written in extract_cell_references(body):
            resolved.append((written, self.get_cell_by_name(written)))
        return resolved

    @staticmethod
    def _numeric_value(cell: Cell) -> float:
        try:
            return float(cell.value)
        except ValueError:
            raise NonNumericValueError(cell.name, cell.value) from None

    # ------------------------------------------------------------------
    # Error and change reporting
    # ------------------------------------------------------------------

    def _mark(self, cell: Cell, kind: ErrorKind) -> None:
        cell._set_error(kind)
        self._announce(cell)

    def _fail(self, cell: Cell, kind: ErrorKind, cause: Exception) -> CellEvaluationError:
        """Store the marker for *kind* on *cell* and build the wrapped error."""
        self._mark(cell, kind)
        logger.debug("cell %s failed: %s", cell.name, cause)
        emit(
            make_cell_event(
                EventType.cell_error,
                EventLevel.warning,
                str(cause),
                cell=cell.name,
                text=cell.text,
                value=cell.value,
                error_code=_ERROR_CODES[kind],
                extra={"error_type": type(cause).__name__},
            )
        )
        return CellEvaluationError(cell.name, kind.marker, str(cause))

    def _announce(self, cell: Cell) -> None:
        cell.value_notified = True
        for listener in list(self._listeners):
            listener(cell, "value")

    def __repr__(self) -> str:
        return f"Spreadsheet({self.row_count}x{self.column_count}, last={make_addr(self.row_count - 1, self.column_count - 1)})"
