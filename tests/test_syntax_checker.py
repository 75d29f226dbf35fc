#!/usr/bin/env python3
"""Unit tests for utils.syntax_checker module."""

import pytest
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from utils.syntax_checker import (
    SyntaxIssue,
    mask_strings_and_comments,
    check_bracket_balance,
    check_line_patterns,
    check_tag_balance,
    validate_syntax,
    has_errors,
    get_error_context,
)


class TestMaskStringsAndComments:
    """Test the mask_strings_and_comments function."""

    def test_offsets_preserved(self):
        code = "const s = 'a{b';\n// comment }\n/* block\n ) */ const t = `x${y}`;"
        masked = mask_strings_and_comments(code)
        assert len(masked) == len(code)
        assert [i for i, c in enumerate(masked) if c == "\n"] == [i for i, c in enumerate(code) if c == "\n"]

    def test_contents_blanked(self):
        masked = mask_strings_and_comments('f("{", 1) // }')
        assert "{" not in masked
        assert "}" not in masked
        assert masked.startswith('f("')

    def test_word_apostrophes(self):
        masked = mask_strings_and_comments("<p>Don't</p> x = '<a>'", word_apostrophes=True)
        assert masked.startswith("<p>Don't</p>")
        assert "<a>" not in masked

    def test_escaped_quote(self):
        masked = mask_strings_and_comments('"a\\"{" + x')
        assert "{" not in masked
        assert masked.endswith("+ x")


class TestCheckBracketBalance:
    """Test the check_bracket_balance function."""

    def test_balanced(self):
        assert check_bracket_balance("function f(a) { return [a, (a + 1)]; }") == []

    def test_missing_closing_brace(self):
        code = "function f() {\n  if (x) {\n    return 1;\n}"
        issues = check_bracket_balance(code)
        assert len(issues) == 1
        assert issues[0].message == "Unbalanced braces: missing 1 closing }"
        assert issues[0].line == 1
        assert issues[0].column == 14

    def test_unexpected_closer(self):
        issues = check_bracket_balance("const a = 1;\n}")
        assert len(issues) == 1
        assert issues[0].message == "Unexpected closing '}'"
        assert (issues[0].line, issues[0].column) == (2, 1)

    def test_brackets_in_strings_and_comments_ignored(self):
        code = "const s = '{[(';\n// }\n/* ) */\nconst t = `${'{'}`;\nconst u = \"]\";"
        assert check_bracket_balance(code) == []

    def test_missing_parentheses_counted(self):
        issues = check_bracket_balance("call(a, (b, (c")
        assert issues[0].message == "Unbalanced parentheses: missing 3 closing )"


class TestCheckLinePatterns:
    """Test the per-line pattern checks."""

    def test_malformed_ternary(self):
        issues = check_line_patterns("const x = a ? (1) : b && (2) : (3);")
        assert any(i.message == "Malformed ternary: using && instead of ? after :" for i in issues)
        assert issues[0].fix == "Replace && with ? for chained ternary"

    def test_spaced_arrow(self):
        issues = check_line_patterns("const f = () = > 1;")
        assert len(issues) == 1
        assert issues[0].message == "Invalid arrow function syntax: '= >'"
        assert issues[0].column == 14

    def test_comparison_not_an_arrow(self):
        assert check_line_patterns("if (a >= b && c <= d) { go(); }") == []

    def test_missing_equals(self):
        issues = check_line_patterns('<div className"container">hi</div>')
        assert len(issues) == 1
        assert issues[0].message == "Missing = in JSX attribute 'className'"

    def test_well_formed_attributes(self):
        assert check_line_patterns('<a title="foo" id="bar" href={url}>x</a>') == []

    def test_patterns_in_strings_ignored(self):
        assert check_line_patterns("const s = '= >';\n// x = > y") == []


class TestCheckTagBalance:
    """Test the stack-based markup tag check."""

    def test_balanced(self):
        code = "return (\n  <div className=\"a\">\n    <p>{items.map(i => <span key={i}>{i}</span>)}</p>\n  </div>\n);"
        assert check_tag_balance(code) == []

    def test_void_and_self_closing(self):
        assert check_tag_balance('<div><img src="a.png"><br><input type="text"><Header /></div>') == []

    def test_component_named_like_void_element(self):
        """Test void matching is case-sensitive, so <Input> must be closed."""
        issues = check_tag_balance("<Input>")
        assert [i.message for i in issues] == ["Unclosed tag <Input> at end of input"]

    def test_inner_tag_left_open(self):
        issues = check_tag_balance("<div>\n  <span>text\n</div>")
        assert len(issues) == 1
        assert issues[0].message == "Unclosed tag <span> before </div>"
        assert issues[0].line == 2

    def test_unexpected_closing_tag(self):
        issues = check_tag_balance("<div></div></p>")
        assert [i.message for i in issues] == ["Unexpected closing tag </p>"]

    def test_unclosed_at_end(self):
        issues = check_tag_balance("<section>\n<p>hi</p>")
        assert [i.message for i in issues] == ["Unclosed tag <section> at end of input"]

    def test_generics_are_not_tags(self):
        code = "const list: Array<string> = [];\nfunction first<T>(x: T[]): T { return x[0]; }"
        assert check_tag_balance(code) == []

    def test_return_markup_is_a_tag(self):
        assert check_tag_balance("function A() { return <div>; }")[0].message == "Unclosed tag <div> at end of input"

    def test_arrow_in_attribute(self):
        assert check_tag_balance("<button onClick={() => go(a > b)}>Go</button>") == []

    def test_apostrophe_in_text(self):
        assert check_tag_balance("<p>Don't stop</p>") == []

    def test_single_quoted_markup_string(self):
        code = "export const s = '</div>';\nexport const App = () => <div>hi</div>;\n"
        assert check_tag_balance(code) == []
        assert validate_syntax(code, "src/App.tsx") == []

    def test_apostrophe_then_string(self):
        code = "const App = () => <p>It's {label('<b>')}</p>;"
        assert check_tag_balance(code) == []


class TestValidateSyntax:
    """Test the validate_syntax entry point."""

    def test_clean_code(self):
        assert validate_syntax("export const a = (x) => x * 2;", "src/a.ts") == []

    def test_empty(self):
        assert validate_syntax("") == []

    def test_tags_only_checked_for_markup_files(self):
        assert validate_syntax("const a = '<div>';\nconst b = 1 < 2;", "src/a.ts") == []
        assert validate_syntax("<div>", "src/a.ts") == []
        assert validate_syntax("<div>", "src/a.tsx")

    def test_sorted_by_line(self):
        code = "<div>\nconst f = () = > 1;\n}"
        issues = validate_syntax(code, "src/a.tsx")
        lines = [i.line for i in issues]
        assert lines == sorted(lines)

    def test_never_mutates(self):
        code = "const f = () = > 1;"
        validate_syntax(code, "src/a.ts")
        assert code == "const f = () = > 1;"

    def test_has_errors(self):
        assert has_errors(validate_syntax("const a = {", "src/a.ts"))
        assert not has_errors([SyntaxIssue(type="warning", message="style")])
        assert not has_errors([])


class TestGetErrorContext:
    """Test the get_error_context function."""

    def test_marks_line(self):
        code = "a\nb\nc\nd\ne"
        assert get_error_context(code, 3, context=1) == "  2 | b\n> 3 | c\n  4 | d"

    def test_clamped_at_start(self):
        assert get_error_context("a\nb", 1, context=5) == "> 1 | a\n  2 | b"

    def test_out_of_range(self):
        assert get_error_context("a", 4) == ""
