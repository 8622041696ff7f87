"""Infix to postfix conversion (Dijkstra's shunting-yard algorithm)."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from lark import Token

from sheetcore.formulas.errors import (
    MismatchedParenthesesError,
    UnknownVariableError,
    UnrecognizedTokenError,
)
from sheetcore.formulas.lexer import LPAR, NAME, NUMBER, OPERATOR, RPAR
from sheetcore.formulas.operators import DEFAULT_REGISTRY, OperatorRegistry


def to_postfix(
    tokens: Iterable[Token],
    variables: Mapping[str, Any] | None = None,
    registry: OperatorRegistry = DEFAULT_REGISTRY,
) -> list[Token]:
    """Reorder infix tokens into postfix (reverse Polish) order.

    Numbers and names go straight to the output.  An operator first pops
    every stacked operator it must yield to (tighter binding, or equal
    binding when it is left-associative).  ``(`` is stacked as a marker and
    ``)`` pops back to it.

    Args:
        tokens: Infix tokens from ``tokenize()``.
        variables: Binding table used to validate names (read only).
            ``None`` accepts any name.
        registry: Operator registry supplying precedence and associativity.

    Returns:
        Tokens in postfix order.  Empty input gives an empty list.

    Raises:
        MismatchedParenthesesError: On a stray ``)`` or an unclosed ``(``.
        UnknownVariableError: If a name is missing from *variables*.
        UnsupportedOperatorError: If an operator is not registered.
    """
    output: list[Token] = []
    stack: list[Token] = []

    for token in tokens:
        kind = token.type
        if kind == NUMBER:
            output.append(token)
        elif kind == NAME:
            if variables is not None and str(token) not in variables:
                raise UnknownVariableError(str(token))
            output.append(token)
        elif kind == OPERATOR:
            spec = registry.lookup(str(token))
            while stack and stack[-1].type == OPERATOR:
                if not spec.should_yield_to(registry.lookup(str(stack[-1]))):
                    break
                output.append(stack.pop())
            stack.append(token)
        elif kind == LPAR:
            stack.append(token)
        elif kind == RPAR:
            while stack and stack[-1].type != LPAR:
                output.append(stack.pop())
            if not stack:
                raise MismatchedParenthesesError(
                    f"Unmatched ')' at position {token.start_pos}"
                )
            stack.pop()
        else:
            raise UnrecognizedTokenError(str(token), position=token.start_pos)

    while stack:
        top = stack.pop()
        if top.type == LPAR:
            raise MismatchedParenthesesError(
                f"Unclosed '(' at position {top.start_pos}"
            )
        output.append(top)

    return output
