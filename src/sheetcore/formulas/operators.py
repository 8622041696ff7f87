"""Static registry of binary operators.

Each operator carries its precedence, associativity, and apply function.
Precedence numbering follows the engine's convention: a *smaller* number
binds *tighter*, so ``*`` and ``/`` (1) are applied before ``+`` and ``-`` (2).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from sheetcore.formulas.errors import DivideByZeroError, UnsupportedOperatorError


class Associativity(str, Enum):
    left = "left"
    right = "right"


@dataclass(frozen=True)
class OperatorSpec:
    """Identity and behavior of one binary operator."""

    symbol: str
    precedence: int
    associativity: Associativity
    apply: Callable[[float, float], float]

    def binds_tighter_than(self, other: OperatorSpec) -> bool:
        return self.precedence < other.precedence

    def should_yield_to(self, top: OperatorSpec) -> bool:
        """True when *top* (on the operator stack) must be emitted before self is pushed."""
        if top.binds_tighter_than(self):
            return True
        return top.precedence == self.precedence and self.associativity is Associativity.left


def _divide(left: float, right: float) -> float:
    if right == 0:
        raise DivideByZeroError()
    return left / right


class OperatorRegistry:
    """Maps operator symbols to their ``OperatorSpec``."""

    def __init__(self) -> None:
        self._operators: dict[str, OperatorSpec] = {}

    def register(
        self,
        symbol: str,
        precedence: int,
        associativity: Associativity,
        apply: Callable[[float, float], float],
    ) -> OperatorSpec:
        """Register (or replace) an operator.

        Args:
            symbol: The operator symbol as it appears in formulas.
            precedence: Binding rank; smaller binds tighter.
            associativity: Tie-break rule for equal precedence.
            apply: Function of (left, right) operands.

        Returns:
            The registered spec.
        """
        spec = OperatorSpec(symbol, precedence, Associativity(associativity), apply)
        self._operators[symbol] = spec
        return spec

    def lookup(self, symbol: str) -> OperatorSpec:
        """Look up a registered operator.

        Raises:
            UnsupportedOperatorError: If no operator is registered under *symbol*.
        """
        if symbol not in self._operators:
            raise UnsupportedOperatorError(symbol)
        return self._operators[symbol]

    def symbols(self) -> list[str]:
        return list(self._operators)


def build_default_registry() -> OperatorRegistry:
    """Return a registry holding the four arithmetic operators."""
    registry = OperatorRegistry()
    registry.register("+", 2, Associativity.left, lambda a, b: a + b)
    registry.register("-", 2, Associativity.left, lambda a, b: a - b)
    registry.register("*", 1, Associativity.left, lambda a, b: a * b)
    registry.register("/", 1, Associativity.left, _divide)
    return registry


DEFAULT_REGISTRY = build_default_registry()
