"""Error types for formula parsing, evaluation, and recalculation."""

from __future__ import annotations


class FormulaError(Exception):
    """Base class for all formula-related errors."""


# ---------------------------------------------------------------------------
# Parse-time errors
# ---------------------------------------------------------------------------


class UnrecognizedTokenError(FormulaError):
    """Input contains characters that are not a number, name, or operator.

    Attributes:
        token: The offending substring.
        position: Character offset where it starts.
    """

    def __init__(self, token: str, position: int | None = None) -> None:
        self.token = token
        self.position = position
        msg = f"Unrecognized operator or token: {token!r}"
        if position is not None:
            msg += f" (at position {position})"
        super().__init__(msg)


class MismatchedParenthesesError(FormulaError):
    """A ``)`` without a matching ``(``, or an unclosed ``(``."""


class MalformedExpressionError(FormulaError):
    """Postfix stream does not reduce to exactly one expression."""


class EmptyExpressionError(MalformedExpressionError):
    """Evaluation was requested on a tree built from an empty expression."""

    def __init__(self) -> None:
        super().__init__("The expression tree is empty. No expression has been set.")


class UnsupportedOperatorError(FormulaError):
    """Operator symbol is not registered.

    Attributes:
        symbol: The unknown operator symbol.
    """

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(f"Unsupported operator: {symbol!r}")


class UnknownVariableError(FormulaError):
    """A variable was set that never appeared in the expression.

    Attributes:
        name: The variable name.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Variable {name!r} is not present in the expression.")


class InvalidCellReferenceError(FormulaError, ValueError):
    """A cell name could not be decoded, or lies outside the grid.

    Attributes:
        reference: The reference as written.
    """

    def __init__(self, reference: str, reason: str | None = None) -> None:
        self.reference = reference
        msg = f"Invalid cell reference: {reference!r}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


# ---------------------------------------------------------------------------
# Evaluation-time errors
# ---------------------------------------------------------------------------


class UnboundVariableError(FormulaError):
    """A variable node was evaluated before its value was set.

    Attributes:
        name: The variable name.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Variable {name!r} has not been set.")


class DivideByZeroError(FormulaError, ZeroDivisionError):
    """Right operand of ``/`` evaluated to exactly zero."""

    def __init__(self) -> None:
        super().__init__("Cannot divide by zero.")


class NonNumericValueError(FormulaError):
    """A referenced cell holds a value that cannot be read as a number.

    Attributes:
        cell_name: The referenced cell.
        value: Its current value.
    """

    def __init__(self, cell_name: str, value: str) -> None:
        self.cell_name = cell_name
        self.value = value
        super().__init__(f"Cell {cell_name} does not hold a number: {value!r}")


# ---------------------------------------------------------------------------
# Structural errors
# ---------------------------------------------------------------------------


class SelfReferenceError(FormulaError):
    """A formula names the cell that owns it.

    Attributes:
        cell_name: The cell.
    """

    def __init__(self, cell_name: str) -> None:
        self.cell_name = cell_name
        super().__init__(f"Self-reference detected in cell {cell_name}.")


class CircularReferenceError(FormulaError):
    """A formula transitively depends on itself.

    Attributes:
        cycle: Cell names along the cycle, starting and ending at the same cell.
    """

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        if cycle:
            msg = f"Circular reference detected: {' -> '.join(cycle)}"
        else:
            msg = "Circular reference detected."
        super().__init__(msg)


class CellEvaluationError(FormulaError):
    """Wraps any formula error raised while committing a cell.

    The original error is chained as ``__cause__``.

    Attributes:
        cell_name: The cell whose evaluation failed.
        marker: The error marker stored as the cell's value.
    """

    def __init__(self, cell_name: str, marker: str, message: str) -> None:
        self.cell_name = cell_name
        self.marker = marker
        super().__init__(f"Error in cell {cell_name}: {message}")


# ---------------------------------------------------------------------------
# Persistence errors
# ---------------------------------------------------------------------------


class CircularDependencyError(FormulaError):
    """Deferred formula cells never became resolvable during a load.

    Attributes:
        cells: Names of the cells left unresolved.
    """

    def __init__(self, cells: list[str]) -> None:
        self.cells = cells
        super().__init__(f"Circular dependency detected among: {', '.join(cells)}")


class SheetFormatError(FormulaError):
    """A persisted sheet document is malformed."""
