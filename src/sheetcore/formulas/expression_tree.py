"""Build and evaluate an expression tree from a formula body."""

from __future__ import annotations

from lark import Token

from sheetcore.formulas.errors import (
    EmptyExpressionError,
    MalformedExpressionError,
    UnknownVariableError,
    UnrecognizedTokenError,
)
from sheetcore.formulas.lexer import NAME, NUMBER, OPERATOR, tokenize
from sheetcore.formulas.nodes import (
    BinaryOperatorNode,
    Bindings,
    ConstantNode,
    Node,
    VariableNode,
)
from sheetcore.formulas.operators import DEFAULT_REGISTRY, OperatorRegistry
from sheetcore.formulas.shunting_yard import to_postfix


def build_tree(
    postfix: list[Token],
    bindings: Bindings,
    registry: OperatorRegistry = DEFAULT_REGISTRY,
) -> Node | None:
    """Build a tree bottom-up from postfix tokens.

    Operators pop their right operand first, then their left.

    Returns:
        The root node, or ``None`` for an empty postfix sequence.

    Raises:
        MalformedExpressionError: If an operator lacks operands, or more
            than one node remains at the end.
    """
    if not postfix:
        return None

    stack: list[Node] = []
    for token in postfix:
        if token.type == NUMBER:
            stack.append(ConstantNode(float(token)))
        elif token.type == NAME:
            stack.append(VariableNode(str(token), bindings))
        elif token.type == OPERATOR:
            if len(stack) < 2:
                raise MalformedExpressionError(
                    f"Operator {str(token)!r} is missing an operand"
                )
            right = stack.pop()
            left = stack.pop()
            stack.append(BinaryOperatorNode(registry.lookup(str(token)), left, right))
        else:
            raise UnrecognizedTokenError(str(token), position=token.start_pos)

    if len(stack) != 1:
        raise MalformedExpressionError(
            f"Expression reduces to {len(stack)} values instead of one"
        )
    return stack[0]


class ExpressionTree:
    """A parsed arithmetic expression with named variables.

    Usage::

        tree = ExpressionTree("A1 + 3 * 2")
        tree.set_variable("A1", 4)
        tree.evaluate()  # 10.0

    Parameters
    ----------
    expression : str
        Formula body without the leading ``=``.
    registry : OperatorRegistry
        Operators available to the expression.
    """

    def __init__(self, expression: str, registry: OperatorRegistry = DEFAULT_REGISTRY) -> None:
        self.expression = expression
        self._registry = registry
        self._variables: Bindings = {}

        tokens = list(tokenize(expression))
        for token in tokens:
            if token.type == NAME:
                self._variables.setdefault(str(token), None)

        self.postfix = to_postfix(tokens, self._variables, registry)
        self._root = build_tree(self.postfix, self._variables, registry)

    @property
    def root(self) -> Node | None:
        return self._root

    @property
    def variable_names(self) -> list[str]:
        """Variable names in order of first appearance."""
        return list(self._variables)

    def set_variable(self, name: str, value: float) -> None:
        """Bind *name* to *value*.

        Raises:
            UnknownVariableError: If *name* does not occur in the expression.
        """
        if name not in self._variables:
            raise UnknownVariableError(name)
        self._variables[name] = float(value)

    def evaluate(self) -> float:
        """Evaluate the tree.

        Raises:
            EmptyExpressionError: If the expression was empty.
            UnboundVariableError: If a variable has not been set.
            DivideByZeroError: On division by exactly zero.
        """
        if self._root is None:
            raise EmptyExpressionError()
        return self._root.evaluate()
