"""Opt-in rewrites for common LLM-generated JS/JSX mistakes.

This module is the fixing counterpart of ``utils.syntax_checker``. The
parser never calls it: blind rewriting can corrupt code that was already
correct, so callers apply it explicitly, usually after the validator has
reported the matching issue.

Rewrites:
- Arrow spacing: ``= >`` becomes ``=>``
- Missing arrow: ``name: (a) {`` becomes ``name: (a) => {``
- Malformed ternary chain: ``) : cond && (`` becomes ``) : cond ? (``

Rewrites only touch code outside strings and comments. When a rule is not
confident it leaves the content unchanged.
"""

from typing import Callable, Dict, Iterable, List, Optional
from dataclasses import dataclass
import re

from utils.logging import get_logger
from utils.sanitizer import insert_missing_arrows
from utils.syntax_checker import mask_strings_and_comments, validate_syntax

logger = get_logger("code_rewriter")

RULE_ARROW_SPACING = "arrow_spacing"
RULE_MISSING_ARROW = "missing_arrow"
RULE_TERNARY = "ternary"

_SPACED_ARROW_RE = re.compile(r"=[ \t]+>")
_COMPARISON_RE = re.compile(r"[<>][ \t]*=")
_TERNARY_RE = re.compile(r"(\)\s*:\s*[\w!.]+\s*)&&(\s*\()")


@dataclass
class RepairResult:
    """Result of a rewrite attempt."""
    content: str
    was_repaired: bool
    repairs_made: List[str]  # Description of each repair
    confidence: float  # How confident we are the rewrite is correct (0.0-1.0)

    def __str__(self) -> str:
        if self.was_repaired:
            return f"Repaired ({len(self.repairs_made)} fixes, confidence={self.confidence:.0%})"
        return "No repairs needed"


def _unchanged(content: str) -> RepairResult:
    return RepairResult(content=content, was_repaired=False, repairs_made=[], confidence=1.0)


def _line_of(content: str, index: int) -> int:
    return content.count("\n", 0, index) + 1


def fix_arrow_spacing(content: str, path: str = "") -> RepairResult:
    """Join ``= >`` into ``=>``.

    Lines that hold a comparison (``<=``, ``>=``) are left alone since the
    ``=`` there may belong to the comparison.
    """
    masked = mask_strings_and_comments(content)
    lines = masked.split("\n")
    pieces = []
    repairs = []
    last = 0

    for match in _SPACED_ARROW_RE.finditer(masked):
        line_no = _line_of(masked, match.start())
        if _COMPARISON_RE.search(lines[line_no - 1].replace(match.group(0), "")):
            continue
        pieces.append(content[last:match.start()])
        pieces.append("=>")
        last = match.end()
        repairs.append(f"Joined '= >' into '=>' at line {line_no}")

    if not repairs:
        return _unchanged(content)

    pieces.append(content[last:])
    return RepairResult(content="".join(pieces), was_repaired=True, repairs_made=repairs, confidence=0.95)


def fix_missing_arrow(content: str, path: str = "") -> RepairResult:
    """Insert ``=>`` in property and attribute callbacks written without one."""
    rewritten = insert_missing_arrows(content)
    if rewritten == content:
        return _unchanged(content)

    # Reject the rewrite if it landed inside a string or comment
    masked_before = mask_strings_and_comments(content)
    masked_after = mask_strings_and_comments(rewritten)
    added = masked_after.count("=>") - masked_before.count("=>")
    inserted = rewritten.count("=>") - content.count("=>")
    if added != inserted:
        logger.debug(f"{path or 'content'}: arrow insertion touched a string or comment, skipping")
        return _unchanged(content)

    return RepairResult(
        content=rewritten,
        was_repaired=True,
        repairs_made=[f"Inserted {inserted} missing '=>'"],
        confidence=0.9,
    )


def _closes_into_else(masked: str, open_index: int) -> bool:
    """True when the group opened at ``open_index`` is followed by ``:``."""
    depth = 0
    for index in range(open_index, len(masked)):
        char = masked[index]
        if char in "([{":
            depth += 1
        elif char in ")]}":
            depth -= 1
            if depth == 0:
                rest = masked[index + 1:].lstrip()
                return rest.startswith(":")
    return False


def fix_malformed_ternary(content: str, path: str = "") -> RepairResult:
    """Rewrite ``) : cond && (`` to ``) : cond ? (`` in a ternary chain.

    ``a ? (x) : b && (y)`` is valid on its own, so the rewrite is only made
    when the group after ``&&`` is itself followed by ``:``, which is what
    a broken chain looks like.
    """
    masked = mask_strings_and_comments(content)
    positions = []
    for match in _TERNARY_RE.finditer(masked):
        open_index = match.end() - 1
        if _closes_into_else(masked, open_index):
            positions.append(match.start() + len(match.group(1)))

    if not positions:
        return _unchanged(content)

    rewritten = content
    for amp in reversed(positions):
        rewritten = rewritten[:amp] + "?" + rewritten[amp + 2:]
    repairs = [f"Replaced '&&' with '?' in ternary at line {_line_of(content, amp)}" for amp in positions]
    return RepairResult(content=rewritten, was_repaired=True, repairs_made=repairs, confidence=0.8)


RULES: Dict[str, Callable[[str, str], RepairResult]] = {
    RULE_ARROW_SPACING: fix_arrow_spacing,
    RULE_MISSING_ARROW: fix_missing_arrow,
    RULE_TERNARY: fix_malformed_ternary,
}


def rewrite_code(content: str, path: str = "", rules: Optional[Iterable[str]] = None) -> RepairResult:
    """Apply the selected rewrites to content.

    Runs in order of reliability: arrow spacing, missing arrow, ternary.

    Args:
        content: The code content to rewrite
        path: File path for context
        rules: Rule names to apply (default: all)

    Returns:
        RepairResult with all rewrites applied
    """
    selected = list(RULES) if rules is None else [r for r in RULES if r in set(rules)]
    all_repairs: List[str] = []
    min_confidence = 1.0
    current = content

    for name in selected:
        result = RULES[name](current, path)
        if result.was_repaired:
            current = result.content
            all_repairs.extend(result.repairs_made)
            min_confidence = min(min_confidence, result.confidence)

    if all_repairs:
        remaining = validate_syntax(current, path)
        logger.info(f"Rewrite for {path or 'content'}: {len(all_repairs)} repairs, "
                    f"confidence={min_confidence:.0%}, remaining_issues={len(remaining)}")
        for repair in all_repairs:
            logger.debug(f"  - {repair}")

    return RepairResult(
        content=current,
        was_repaired=bool(all_repairs),
        repairs_made=all_repairs,
        confidence=min_confidence if all_repairs else 1.0,
    )
