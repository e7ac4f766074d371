"""Tests for operator expression resolution."""

import pytest


# =============================================================================
# Unary Expressions
# =============================================================================

class TestUnaryExpressions:
    """Tests for flat operator lists."""

    def test_single_operator(self):
        """A bare id resolves to a one-element unary list."""
        from quatbuild.assembly.expression import UnaryOperators, resolve_operator_expression

        resolved = resolve_operator_expression("1")

        assert isinstance(resolved, UnaryOperators)
        assert resolved.ids == ("1",)

    def test_comma_list_preserves_order(self):
        """Ids keep their left-to-right order."""
        from quatbuild.assembly.expression import resolve_operator_expression

        resolved = resolve_operator_expression("3,1,2")

        assert resolved.ids == ("3", "1", "2")

    def test_parenthesized_range(self):
        """A single parenthesized range expands inclusively."""
        from quatbuild.assembly.expression import UnaryOperators, resolve_operator_expression

        resolved = resolve_operator_expression("(1-5)")

        assert isinstance(resolved, UnaryOperators)
        assert resolved.ids == ("1", "2", "3", "4", "5")

    def test_mixed_ranges_and_ids(self):
        """Ranges and literal ids can be mixed in one group."""
        from quatbuild.assembly.expression import resolve_operator_expression

        resolved = resolve_operator_expression("(1,3-5,P)")

        assert resolved.ids == ("1", "3", "4", "5", "P")

    def test_single_element_range(self):
        """A range with equal bounds yields one id."""
        from quatbuild.assembly.expression import resolve_operator_expression

        assert resolve_operator_expression("7-7").ids == ("7",)

    def test_whitespace_is_ignored(self):
        """Whitespace inside the expression does not matter."""
        from quatbuild.assembly.expression import resolve_operator_expression

        resolved = resolve_operator_expression(" ( 1 , 2 ) ")

        assert resolved.ids == ("1", "2")

    def test_length(self):
        """len() counts the operators."""
        from quatbuild.assembly.expression import resolve_operator_expression

        assert len(resolve_operator_expression("1-60")) == 60


# =============================================================================
# Binary Expressions
# =============================================================================

class TestBinaryExpressions:
    """Tests for composed "(A)(B)" expressions."""

    def test_cartesian_product(self):
        """Two groups give every pair, first group outermost."""
        from quatbuild.assembly.expression import BinaryOperators, resolve_operator_expression

        resolved = resolve_operator_expression("(1,2)(3,4,5)")

        assert isinstance(resolved, BinaryOperators)
        assert resolved.pairs == (
            ("1", "3"), ("1", "4"), ("1", "5"),
            ("2", "3"), ("2", "4"), ("2", "5"),
        )

    def test_pair_count_matches_group_sizes(self):
        """|A| x |B| pairs for large ranged groups."""
        from quatbuild.assembly.expression import resolve_operator_expression

        resolved = resolve_operator_expression("(1-60)(61-88)")

        assert len(resolved) == 60 * 28
        assert resolved.pairs[0] == ("1", "61")
        assert resolved.pairs[-1] == ("60", "88")

    def test_pairs_are_unique(self):
        """No pair is produced twice for distinct group members."""
        from quatbuild.assembly.expression import resolve_operator_expression

        resolved = resolve_operator_expression("(1-3)(X0,X1)")

        assert len(set(resolved.pairs)) == len(resolved.pairs) == 6


# =============================================================================
# Malformed Expressions
# =============================================================================

class TestMalformedExpressions:
    """Tests for expressions that violate the grammar."""

    @pytest.mark.parametrize("expression", [
        "(1,2",
        "1,2)",
        "(1)(2",
        "((1))",
        "1(2)",
        "(1)2",
    ])
    def test_unbalanced_parentheses(self, expression):
        """Unbalanced or misplaced parentheses are rejected."""
        from quatbuild.assembly.expression import OperatorExpressionError, resolve_operator_expression

        with pytest.raises(OperatorExpressionError):
            resolve_operator_expression(expression)

    def test_more_than_two_groups(self):
        """Three groups are not supported."""
        from quatbuild.assembly.expression import OperatorExpressionError, resolve_operator_expression

        with pytest.raises(OperatorExpressionError, match="3 groups"):
            resolve_operator_expression("(1)(2)(3)")

    @pytest.mark.parametrize("expression", ["a-5", "1-b", "1-", "-3", "1-2-3"])
    def test_non_numeric_range_bounds(self, expression):
        """Range bounds must be integers."""
        from quatbuild.assembly.expression import OperatorExpressionError, resolve_operator_expression

        with pytest.raises(OperatorExpressionError):
            resolve_operator_expression(expression)

    def test_descending_range(self):
        """A range whose end precedes its start is rejected."""
        from quatbuild.assembly.expression import OperatorExpressionError, resolve_operator_expression

        with pytest.raises(OperatorExpressionError, match="Descending"):
            resolve_operator_expression("5-1")

    @pytest.mark.parametrize("expression", ["", "   ", "()", "1,,2", "(1,)"])
    def test_empty_tokens(self, expression):
        """Empty expressions, groups and ids are rejected."""
        from quatbuild.assembly.expression import OperatorExpressionError, resolve_operator_expression

        with pytest.raises(OperatorExpressionError):
            resolve_operator_expression(expression)

    def test_error_is_value_error(self):
        """Callers catching ValueError also catch expression errors."""
        from quatbuild.assembly.expression import OperatorExpressionError

        assert issubclass(OperatorExpressionError, ValueError)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
