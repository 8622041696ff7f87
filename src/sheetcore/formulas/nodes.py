"""Expression tree node types."""

from __future__ import annotations

from abc import ABC, abstractmethod

from sheetcore.formulas.errors import UnboundVariableError
from sheetcore.formulas.operators import OperatorSpec

# Binding table: variable name -> value, ``None`` until set.
Bindings = dict[str, "float | None"]


class Node(ABC):
    """A node in a strict binary expression tree."""

    __slots__ = ()

    @abstractmethod
    def evaluate(self) -> float:
        ...


class ConstantNode(Node):
    __slots__ = ("value",)

    def __init__(self, value: float) -> None:
        self.value = value

    def evaluate(self) -> float:
        return self.value

    def __repr__(self) -> str:
        return f"ConstantNode({self.value!r})"


class VariableNode(Node):
    """Looks its value up in a shared binding table it does not own."""

    __slots__ = ("name", "_bindings")

    def __init__(self, name: str, bindings: Bindings) -> None:
        self.name = name
        self._bindings = bindings

    def evaluate(self) -> float:
        value = self._bindings.get(self.name)
        if value is None:
            raise UnboundVariableError(self.name)
        return value

    def __repr__(self) -> str:
        return f"VariableNode({self.name!r})"


class BinaryOperatorNode(Node):
    __slots__ = ("spec", "left", "right")

    def __init__(self, spec: OperatorSpec, left: Node, right: Node) -> None:
        self.spec = spec
        self.left = left
        self.right = right

    @property
    def symbol(self) -> str:
        return self.spec.symbol

    def evaluate(self) -> float:
        left = self.left.evaluate()
        right = self.right.evaluate()
        return self.spec.apply(left, right)

    def __repr__(self) -> str:
        return f"BinaryOperatorNode({self.symbol!r}, {self.left!r}, {self.right!r})"
