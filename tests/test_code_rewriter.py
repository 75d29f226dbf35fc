#!/usr/bin/env python3
"""Unit tests for utils.code_rewriter module."""

import pytest
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from utils.code_rewriter import (
    RULE_ARROW_SPACING,
    RULE_MISSING_ARROW,
    RULE_TERNARY,
    fix_arrow_spacing,
    fix_malformed_ternary,
    fix_missing_arrow,
    rewrite_code,
)
from utils.syntax_checker import validate_syntax


# (before, after) pairs; after == before means the rewriter must leave it alone
CORPUS = [
    (
        "const f = (a) = > a + 1;",
        "const f = (a) => a + 1;",
    ),
    (
        "const obj = { onSave: (v) { save(v); } };",
        "const obj = { onSave: (v) => { save(v); } };",
    ),
    (
        "<button onClick={() { go(); }}>Go</button>",
        "<button onClick={() => { go(); }}>Go</button>",
    ),
    (
        "const label = a ? (x) : b && (y) : (z);",
        "const label = a ? (x) : b ? (y) : (z);",
    ),
    (
        "const f = (a) = > a;\nconst o = { run: (x) { return x; } };",
        "const f = (a) => a;\nconst o = { run: (x) => { return x; } };",
    ),
    # already correct
    ("const ok = a >= b ? 1 : 2;", "const ok = a >= b ? 1 : 2;"),
    ("const v = a ? (x) : b && (y);", "const v = a ? (x) : b && (y);"),
    ("const obj = { render(v) { return v; } };", "const obj = { render(v) { return v; } };"),
    # inside strings and comments
    ("const s = '= >';", "const s = '= >';"),
    ("const s = 'render: (v) {';", "const s = 'render: (v) {';"),
    ("// onSave: (v) { }\nconst a = 1;", "// onSave: (v) { }\nconst a = 1;"),
]


class TestRewriteCorpus:
    """Run the fixed before/after corpus through rewrite_code."""

    @pytest.mark.parametrize("before,after", CORPUS)
    def test_corpus(self, before, after):
        result = rewrite_code(before, "src/a.tsx")
        assert result.content == after
        assert result.was_repaired == (before != after)

    @pytest.mark.parametrize("before,after", [(b, a) for b, a in CORPUS if b != a])
    def test_rewritten_code_passes_line_checks(self, before, after):
        messages = [i.message for i in validate_syntax(after, "src/a.tsx")]
        assert not any("= >" in m or "Malformed ternary" in m for m in messages)


class TestFixArrowSpacing:
    def test_repair_description(self):
        result = fix_arrow_spacing("const f = () = > 1;\nconst g = () = >\t2;")
        assert result.content == "const f = () => 1;\nconst g = () =>\t2;"
        assert result.repairs_made == [
            "Joined '= >' into '=>' at line 1",
            "Joined '= >' into '=>' at line 2",
        ]
        assert result.confidence == 0.95

    def test_comparison_line_skipped(self):
        code = "if (a = > b || c <= d) {}"
        assert not fix_arrow_spacing(code).was_repaired


class TestFixMissingArrow:
    def test_confidence(self):
        result = fix_missing_arrow("const o = { run: (x) { return x; } };")
        assert result.was_repaired
        assert result.confidence == 0.9
        assert result.repairs_made == ["Inserted 1 missing '=>'"]


class TestFixMalformedTernary:
    def test_multiline_chain(self):
        code = (
            "{isA ? (\n  <A />\n) : isB && (\n  <B />\n) : (\n  <C />\n)}"
        )
        result = fix_malformed_ternary(code)
        assert result.was_repaired
        assert "isB ? (" in result.content

    def test_valid_logical_and_untouched(self):
        code = "{open ? (<A />) : ready && (<B />)}"
        assert not fix_malformed_ternary(code).was_repaired


class TestRewriteCode:
    def test_rule_selection(self):
        code = "const f = (a) = > a;"
        assert not rewrite_code(code, rules=[RULE_TERNARY]).was_repaired
        assert rewrite_code(code, rules=[RULE_ARROW_SPACING]).content == "const f = (a) => a;"

    def test_min_confidence(self):
        code = "const f = (a) = > a;\nconst o = { run: (x) { return x; } };"
        result = rewrite_code(code, rules=[RULE_ARROW_SPACING, RULE_MISSING_ARROW])
        assert result.confidence == 0.9
        assert len(result.repairs_made) == 2

    def test_unchanged(self):
        result = rewrite_code("const a = 1;")
        assert not result.was_repaired
        assert result.confidence == 1.0
        assert str(result) == "No repairs needed"
