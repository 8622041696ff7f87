"""Tests for formula tokenizing, shunting-yard conversion, and tree evaluation."""

from __future__ import annotations

import pytest

from sheetcore.formulas import (
    Associativity,
    DivideByZeroError,
    EmptyExpressionError,
    ExpressionTree,
    FormulaError,
    MalformedExpressionError,
    MismatchedParenthesesError,
    OperatorRegistry,
    UnboundVariableError,
    UnknownVariableError,
    UnrecognizedTokenError,
    UnsupportedOperatorError,
    build_default_registry,
    build_tree,
    extract_cell_references,
    is_cell_reference,
    to_postfix,
    tokenize,
)
from sheetcore.formulas.nodes import BinaryOperatorNode, ConstantNode, VariableNode


def _values(tokens) -> list[str]:
    return [str(t) for t in tokens]


def _types(tokens) -> list[str]:
    return [t.type for t in tokens]


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


class TestTokenize:
    def test_basic_expression(self) -> None:
        tokens = list(tokenize("A1 + 3 * (B2 - 1)"))
        assert _values(tokens) == ["A1", "+", "3", "*", "(", "B2", "-", "1", ")"]
        assert _types(tokens) == ["NAME", "OPERATOR", "NUMBER", "OPERATOR", "LPAR", "NAME", "OPERATOR", "NUMBER", "RPAR"]

    def test_decimal_number(self) -> None:
        assert _values(tokenize("2.5*10")) == ["2.5", "*", "10"]

    def test_whitespace_ignored(self) -> None:
        assert _values(tokenize("  1   +\t2 ")) == ["1", "+", "2"]

    def test_empty_input(self) -> None:
        assert list(tokenize("")) == []

    def test_stream_is_restartable(self) -> None:
        stream = tokenize("1+2")
        assert _values(stream) == _values(stream)

    def test_unrecognized_character(self) -> None:
        with pytest.raises(UnrecognizedTokenError) as exc_info:
            list(tokenize("1 + $"))
        assert exc_info.value.token == "$"
        assert exc_info.value.position == 4

    def test_unrecognized_run(self) -> None:
        with pytest.raises(UnrecognizedTokenError) as exc_info:
            list(tokenize("1 ^% 2"))
        assert exc_info.value.token == "^%"


class TestCellReferences:
    def test_is_cell_reference(self) -> None:
        assert is_cell_reference("A1")
        assert is_cell_reference("aa10")
        assert not is_cell_reference("rate")
        assert not is_cell_reference("A1B")

    def test_extract_in_order_without_duplicates(self) -> None:
        assert extract_cell_references("B2 + A1 * B2 + rate") == ["B2", "A1"]

    def test_extract_keeps_spelling(self) -> None:
        assert extract_cell_references("a1+A1") == ["a1", "A1"]

    def test_longer_name_is_not_prefix_match(self) -> None:
        assert extract_cell_references("A10+1") == ["A10"]


# ---------------------------------------------------------------------------
# Operator registry
# ---------------------------------------------------------------------------


class TestOperatorRegistry:
    def test_default_symbols(self) -> None:
        assert sorted(build_default_registry().symbols()) == ["*", "+", "-", "/"]

    def test_multiplication_binds_tighter(self) -> None:
        reg = build_default_registry()
        assert reg.lookup("*").binds_tighter_than(reg.lookup("+"))
        assert not reg.lookup("+").binds_tighter_than(reg.lookup("/"))

    def test_lookup_unknown(self) -> None:
        with pytest.raises(UnsupportedOperatorError):
            build_default_registry().lookup("^")

    def test_divide_by_zero(self) -> None:
        with pytest.raises(DivideByZeroError):
            build_default_registry().lookup("/").apply(5.0, 0.0)

    def test_divide_by_zero_is_zero_division(self) -> None:
        with pytest.raises(ZeroDivisionError):
            build_default_registry().lookup("/").apply(5.0, 0.0)

    def test_register_custom_right_associative(self) -> None:
        reg = OperatorRegistry()
        reg.register("-", 2, Associativity.right, lambda a, b: a - b)
        tree = ExpressionTree("10-4-3", reg)
        # Right associative: 10 - (4 - 3)
        assert tree.evaluate() == 9.0


# ---------------------------------------------------------------------------
# Shunting-yard
# ---------------------------------------------------------------------------


class TestToPostfix:
    def test_precedence(self) -> None:
        assert _values(to_postfix(tokenize("3+4*2"))) == ["3", "4", "2", "*", "+"]

    def test_left_associative(self) -> None:
        assert _values(to_postfix(tokenize("8-3-2"))) == ["8", "3", "-", "2", "-"]

    def test_parentheses(self) -> None:
        assert _values(to_postfix(tokenize("(3+4)*2"))) == ["3", "4", "+", "2", "*"]

    def test_empty(self) -> None:
        assert to_postfix(tokenize("")) == []

    @pytest.mark.parametrize("text", ["(3+4", "3+4)", ")(", "((1)"])
    def test_mismatched_parentheses(self, text: str) -> None:
        with pytest.raises(MismatchedParenthesesError):
            to_postfix(tokenize(text))

    def test_unknown_variable(self) -> None:
        with pytest.raises(UnknownVariableError):
            to_postfix(tokenize("A1+B1"), {"A1": None})

    def test_variables_none_accepts_any_name(self) -> None:
        assert _values(to_postfix(tokenize("x*y"))) == ["x", "y", "*"]


# ---------------------------------------------------------------------------
# Tree building and evaluation
# ---------------------------------------------------------------------------


class TestBuildTree:
    def test_shape(self) -> None:
        bindings: dict = {"A1": None}
        root = build_tree(to_postfix(tokenize("A1-2")), bindings)
        assert isinstance(root, BinaryOperatorNode)
        assert root.symbol == "-"
        assert isinstance(root.left, VariableNode)
        assert isinstance(root.right, ConstantNode)

    def test_empty_postfix(self) -> None:
        assert build_tree([], {}) is None

    def test_missing_operand(self) -> None:
        with pytest.raises(MalformedExpressionError):
            build_tree(to_postfix(tokenize("3+")), {})

    def test_leftover_operands(self) -> None:
        with pytest.raises(MalformedExpressionError):
            build_tree(to_postfix(tokenize("3 4")), {})


class TestExpressionTree:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("3+4*2", 11.0),
            ("3*4+2", 14.0),
            ("(3+4)*2", 14.0),
            ("10/4", 2.5),
            ("8-3-2", 3.0),
            ("24/4/2", 3.0),
            ("2.5*2", 5.0),
        ],
    )
    def test_arithmetic(self, text: str, expected: float) -> None:
        assert ExpressionTree(text).evaluate() == expected

    def test_divide_by_zero(self) -> None:
        with pytest.raises(DivideByZeroError):
            ExpressionTree("10/0").evaluate()

    def test_divide_by_zero_from_subexpression(self) -> None:
        with pytest.raises(DivideByZeroError):
            ExpressionTree("1/(2-2)").evaluate()

    def test_unbound_variable(self) -> None:
        with pytest.raises(UnboundVariableError):
            ExpressionTree("A1+5").evaluate()

    def test_set_variable(self) -> None:
        tree = ExpressionTree("A1+B1*2")
        assert tree.variable_names == ["A1", "B1"]
        tree.set_variable("A1", 1)
        tree.set_variable("B1", 3)
        assert tree.evaluate() == 7.0
        tree.set_variable("B1", 4)
        assert tree.evaluate() == 9.0

    def test_shared_binding_for_repeated_variable(self) -> None:
        tree = ExpressionTree("x*x")
        tree.set_variable("x", 3)
        assert tree.evaluate() == 9.0

    def test_set_unknown_variable(self) -> None:
        with pytest.raises(UnknownVariableError):
            ExpressionTree("A1+5").set_variable("C3", 1)

    def test_empty_expression(self) -> None:
        tree = ExpressionTree("")
        assert tree.root is None
        assert tree.postfix == []
        with pytest.raises(EmptyExpressionError):
            tree.evaluate()

    def test_empty_expression_is_malformed(self) -> None:
        with pytest.raises(MalformedExpressionError):
            ExpressionTree("   ").evaluate()

    def test_unsupported_operator(self) -> None:
        reg = OperatorRegistry()
        reg.register("+", 2, Associativity.left, lambda a, b: a + b)
        with pytest.raises(UnsupportedOperatorError):
            ExpressionTree("2*3", reg)

    def test_all_errors_share_base(self) -> None:
        for exc_type in (
            DivideByZeroError,
            MismatchedParenthesesError,
            UnboundVariableError,
            UnrecognizedTokenError,
        ):
            assert issubclass(exc_type, FormulaError)
