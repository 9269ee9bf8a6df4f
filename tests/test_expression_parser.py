"""
Tests for the bracket expression tokenizer and parser.
"""

from decimal import Decimal

import pytest

from backend.ruleflow.config import RuleFlowSettings
from backend.ruleflow.errors import ExpressionSyntaxError
from backend.ruleflow.logic import ExpressionParser, compile_expression
from backend.ruleflow.logic.expression import LimitRule, LookupRule, MembershipRule, RangeRule
from backend.ruleflow.logic.tokenizer import TokenKind, tokenize
from backend.ruleflow.models import ExpressionModifier, JoinType, Operand


class TestTokenizer:
    """Tests for the expression tokenizer."""

    def test_bracket_tokens(self):
        """Test a simple bracket produces positioned tokens."""
        tokens = tokenize('[>="5"|mx(10)]')
        kinds = [t.kind for t in tokens]
        assert kinds == [
            TokenKind.LBRACKET,
            TokenKind.OPERAND,
            TokenKind.STRING,
            TokenKind.PIPE,
            TokenKind.WORD,
            TokenKind.LPAREN,
            TokenKind.PARAM,
            TokenKind.RPAREN,
            TokenKind.RBRACKET,
            TokenKind.EOF,
        ]
        assert tokens[1].text == ">="
        assert tokens[2].text == "5"
        assert tokens[4].position == 7

    def test_join_tokens(self):
        """Test joins are recognised between brackets."""
        tokens = tokenize("[|r]&&[|e]||[|u]")
        joins = [t.text for t in tokens if t.kind == TokenKind.JOIN]
        assert joins == ["&&", "||"]

    def test_not_equal_spellings(self):
        """Test both not-equal operators tokenize."""
        assert tokenize('[!="a"]')[1].text == "!="
        assert tokenize('[<>"a"]')[1].text == "<>"

    def test_unterminated_string(self):
        """Test an unterminated quote is reported at its start."""
        with pytest.raises(ExpressionSyntaxError) as exc:
            tokenize('[="abc]')
        assert exc.value.error.position == 2


class TestExpressionParser:
    """Tests for ExpressionParser."""

    def test_simple_equals(self):
        """Test operand and quoted target."""
        expression = compile_expression('[="5"]')
        assert expression.operand == Operand.EQUALS
        assert expression.target == "5"
        assert not expression.has_groups

    def test_defaults_to_equals_this(self):
        """Test a bracket without operand or target."""
        expression = compile_expression("[|r]")
        assert expression.operand == Operand.EQUALS
        assert expression.is_this
        assert expression.has_modifier(ExpressionModifier.REQUIRED)

    def test_this_keyword_is_case_insensitive(self):
        """Test the this keyword in any case."""
        assert compile_expression("[>THIS]").is_this

    def test_parameterised_modifiers(self):
        """Test typed modifier records."""
        expression = compile_expression("[|mx(10)|b(1,5)|in(a, b)]")
        assert expression.rule_for(ExpressionModifier.MAX) == LimitRule(ExpressionModifier.MAX, Decimal("10"))
        assert expression.rule_for(ExpressionModifier.BETWEEN) == RangeRule(ExpressionModifier.BETWEEN, "1", "5")
        assert expression.rule_for(ExpressionModifier.IN) == MembershipRule(ExpressionModifier.IN, ("a", "b"))

    def test_rules_are_in_evaluation_order(self):
        """Test rules are sorted by modifier order regardless of source order."""
        expression = compile_expression("[|mx(10)|r|u]")
        assert [r.modifier for r in expression.rules] == [
            ExpressionModifier.UPPERCASE,
            ExpressionModifier.MAX,
            ExpressionModifier.REQUIRED,
        ]
        assert expression.to_dict()["modifiers"] == ["UPPERCASE", "MAX", "REQUIRED"]

    def test_in_db_rule(self):
        """Test the InDB table, column and filters."""
        expression = compile_expression("[|indb(customers.code, active=1)]")
        rule = expression.rule_for(ExpressionModifier.IN_DB)
        assert isinstance(rule, LookupRule)
        assert rule.table == "customers"
        assert rule.column == "code"
        assert rule.filter_map() == {"active": "1"}

    def test_force_flag(self):
        """Test the trailing force flag."""
        assert compile_expression("[|u -f]").force
        assert not compile_expression("[|u]").force

    def test_joined_brackets(self):
        """Test brackets joined into one group."""
        expression = compile_expression("[|r]&&[|e]")
        assert expression.has_groups
        group = expression.groups[0]
        assert group.join == JoinType.AND
        assert len(group.expressions) == 2

    def test_parenthesised_groups(self):
        """Test nested groups keep their own join."""
        expression = compile_expression("([|u]||[|l])&&([|r])")
        outer = expression.groups[0]
        assert outer.join == JoinType.AND
        inner = outer.expressions[0].groups[0]
        assert inner.join == JoinType.OR
        assert len(list(expression.leaves())) == 3

    def test_mixed_joins_warn(self):
        """Test mixed joins use the first join and record a warning."""
        result = ExpressionParser().parse("[|r]&&[|e]||[|u]")
        assert result.valid
        assert result.expression.groups[0].join == JoinType.AND
        assert len(result.warnings) == 1
        assert "Mixed join" in result.warnings[0]

    def test_determinism(self):
        """Test compiling the same text twice gives equal trees."""
        text = '([>"5"|mx(10)]||[|in(a,b)])&&[|r -f]'
        assert compile_expression(text) == compile_expression(text)


class TestExpressionParserErrors:
    """Tests for parse errors reported as data."""

    def test_empty_expression(self):
        """Test empty text."""
        result = ExpressionParser().parse("   ")
        assert not result.valid
        assert result.errors[0].message == "Empty expression"

    def test_non_string(self):
        """Test a non-string input."""
        result = ExpressionParser().parse(123)
        assert not result.valid

    def test_unknown_modifier_position(self):
        """Test the error position points at the modifier code."""
        result = ExpressionParser().parse('[>"5"|zz]')
        assert result.errors[0].message == "Unknown modifier 'zz'"
        assert result.errors[0].position == 6

    def test_unclosed_bracket(self):
        """Test an unclosed bracket."""
        result = ExpressionParser().parse('[="5"')
        assert result.errors[0].message == "Unclosed expression bracket"
        assert result.errors[0].position == 0

    def test_missing_argument(self):
        """Test a parameterised modifier without parameters."""
        for text in ("[|mx]", "[|mx()]", "[|b(1)]", "[|in()]", "[|indb]"):
            result = ExpressionParser().parse(text)
            assert not result.valid, text
            assert "requires an argument" in result.errors[0].message, text

    def test_max_needs_a_number(self):
        """Test a non-numeric Max limit."""
        result = ExpressionParser().parse("[|mx(ten)]")
        assert result.errors[0].message == "The Max modifier requires a numeric value to validate against."

    def test_between_arity(self):
        """Test Between with too many parameters."""
        result = ExpressionParser().parse("[|b(1,2,3)]")
        assert "exactly two" in result.errors[0].message

    def test_parameter_on_plain_modifier(self):
        """Test a plain modifier given parameters."""
        result = ExpressionParser().parse("[|r(1)]")
        assert result.errors[0].message == "The Required modifier does not take parameters."

    def test_duplicate_modifier(self):
        """Test the same modifier twice."""
        result = ExpressionParser().parse("[|r|r]")
        assert result.errors[0].message == "Duplicate modifier 'r'"

    def test_unknown_flag(self):
        """Test an unknown flag."""
        result = ExpressionParser().parse("[|u -x]")
        assert result.errors[0].message == "Unknown flag '-x'"

    def test_in_db_needs_table_and_column(self):
        """Test InDB without a dotted first parameter."""
        result = ExpressionParser().parse("[|indb(customers)]")
        assert "table.column" in result.errors[0].message

    def test_trailing_text(self):
        """Test text after the last bracket."""
        result = ExpressionParser().parse('[="5"] junk')
        assert not result.valid
        assert result.errors[0].position == 7

    def test_nesting_depth(self):
        """Test the configured nesting depth is enforced."""
        parser = ExpressionParser(RuleFlowSettings(max_depth=1))
        assert parser.parse("([|r])").valid
        result = parser.parse("(([|r]))")
        assert result.errors[0].message == "Maximum nesting depth of 1 exceeded"
        assert result.errors[0].position == 1

    def test_compile_raises(self):
        """Test compile_expression raises with the parse error attached."""
        with pytest.raises(ExpressionSyntaxError) as exc:
            compile_expression("[|zz]")
        assert exc.value.error.position == 2

    def test_validate_tuple(self):
        """Test validate returns (is_valid, error_message)."""
        parser = ExpressionParser()
        assert parser.validate("[|r]") == (True, None)
        is_valid, message = parser.validate("[|zz]")
        assert is_valid is False
        assert "Unknown modifier" in message

    def test_to_dict_reports_errors(self):
        """Test ParseResult.to_dict."""
        data = ExpressionParser().parse("[|zz]").to_dict()
        assert data["valid"] is False
        assert data["expression"] is None
        assert data["errors"][0]["position"] == 2
