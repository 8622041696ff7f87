"""Arithmetic formula tokenizing, parsing, and evaluation.

Public API::

    from sheetcore.formulas import ExpressionTree, tokenize, to_postfix
"""

from sheetcore.formulas.errors import (
    CellEvaluationError,
    CircularDependencyError,
    CircularReferenceError,
    DivideByZeroError,
    EmptyExpressionError,
    FormulaError,
    InvalidCellReferenceError,
    MalformedExpressionError,
    MismatchedParenthesesError,
    NonNumericValueError,
    SelfReferenceError,
    SheetFormatError,
    UnboundVariableError,
    UnknownVariableError,
    UnrecognizedTokenError,
    UnsupportedOperatorError,
)
from sheetcore.formulas.expression_tree import ExpressionTree, build_tree
from sheetcore.formulas.lexer import extract_cell_references, is_cell_reference, tokenize
from sheetcore.formulas.operators import (
    DEFAULT_REGISTRY,
    Associativity,
    OperatorRegistry,
    OperatorSpec,
    build_default_registry,
)
from sheetcore.formulas.shunting_yard import to_postfix

__all__ = [
    "Associativity",
    "CellEvaluationError",
    "CircularDependencyError",
    "CircularReferenceError",
    "DEFAULT_REGISTRY",
    "DivideByZeroError",
    "EmptyExpressionError",
    "ExpressionTree",
    "FormulaError",
    "InvalidCellReferenceError",
    "MalformedExpressionError",
    "MismatchedParenthesesError",
    "NonNumericValueError",
    "OperatorRegistry",
    "OperatorSpec",
    "SelfReferenceError",
    "SheetFormatError",
    "UnboundVariableError",
    "UnknownVariableError",
    "UnrecognizedTokenError",
    "UnsupportedOperatorError",
    "build_default_registry",
    "build_tree",
    "extract_cell_references",
    "is_cell_reference",
    "to_postfix",
    "tokenize",
]
