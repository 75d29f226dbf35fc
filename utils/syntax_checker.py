"""Advisory syntax checks for generated file bodies.

The checks look for the mistakes models make most often in JS/TS/JSX
output. They never modify the code; every finding comes back as a
``SyntaxIssue`` and the caller decides whether to re-prompt, warn, or
ignore it.
"""

from typing import List, Optional, Tuple
from dataclasses import dataclass
from enum import Enum
import re

from utils.logging import get_logger

logger = get_logger("syntax_checker")


class IssueSeverity(str, Enum):
    """Severity of a syntax finding."""
    ERROR = "error"
    WARNING = "warning"


@dataclass
class SyntaxIssue:
    """A syntax issue found in code."""
    type: str  # error, warning
    message: str
    line: Optional[int] = None
    column: Optional[int] = None
    fix: Optional[str] = None  # Suggested fix, never applied

    @property
    def is_error(self) -> bool:
        return self.type == IssueSeverity.ERROR.value


VOID_ELEMENTS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
})

BRACKET_PAIRS = {"(": ")", "[": "]", "{": "}"}
BRACKET_NAMES = {"{": "braces", "(": "parentheses", "[": "brackets"}

_MALFORMED_TERNARY_RE = re.compile(r"\)\s*:\s*[\w!.]+\s*&&\s*\(")
_SPACED_ARROW_RE = re.compile(r"=\s+>")
_COMPARISON_RE = re.compile(r"[<>]=")
_MISSING_EQUALS_RE = re.compile(r"(?<![\w.$\"])([a-zA-Z][\w-]*)\"[^\"\n]*\"")
# Tags are only looked for in files that can carry markup
_MARKUP_PATH_RE = re.compile(r"\.(?:jsx|tsx|html?|vue|svelte)$")
_TAG_OPEN_RE = re.compile(r"<(/?)([A-Za-z][\w.:-]*)")


def mask_strings_and_comments(code: str, word_apostrophes: bool = False) -> str:
    """Blank out string and comment contents, keeping offsets and newlines.

    Handles single, double and backtick strings plus line and block
    comments. Template ``${...}`` expressions are blanked with the string.

    Args:
        code: Source text
        word_apostrophes: Treat a single quote right after a letter or digit
            as an apostrophe in text (``Don't``) rather than a string opener
    """
    out = []
    i = 0
    n = len(code)
    quote = None
    in_line_comment = False
    in_block_comment = False

    while i < n:
        char = code[i]
        next_char = code[i + 1] if i + 1 < n else ""

        if in_line_comment:
            if char == "\n":
                in_line_comment = False
                out.append(char)
            else:
                out.append(" ")
            i += 1
            continue

        if in_block_comment:
            if char == "*" and next_char == "/":
                in_block_comment = False
                out.append("  ")
                i += 2
                continue
            out.append("\n" if char == "\n" else " ")
            i += 1
            continue

        if quote:
            if char == "\\" and i + 1 < n:
                out.append("  " if next_char != "\n" else " \n")
                i += 2
                continue
            if char == quote:
                quote = None
                out.append(char)
            elif char == "\n" and quote != "`":
                # unterminated single-line string
                quote = None
                out.append(char)
            else:
                out.append("\n" if char == "\n" else " ")
            i += 1
            continue

        if char == "/" and next_char == "/":
            in_line_comment = True
            out.append("  ")
            i += 2
            continue
        if char == "/" and next_char == "*":
            in_block_comment = True
            out.append("  ")
            i += 2
            continue
        apostrophe = char == "'" and word_apostrophes and i > 0 and code[i - 1].isalnum()
        if char in "\"'`" and not apostrophe:
            quote = char
        out.append(char)
        i += 1

    return "".join(out)


def _line_col(code: str, index: int) -> Tuple[int, int]:
    line = code.count("\n", 0, index) + 1
    column = index - (code.rfind("\n", 0, index) + 1) + 1
    return line, column


def check_bracket_balance(code: str) -> List[SyntaxIssue]:
    """Check that (), [] and {} balance, ignoring strings and comments.

    Args:
        code: The code content to check

    Returns:
        List of SyntaxIssue for any imbalances found
    """
    issues = []
    stripped = mask_strings_and_comments(code)
    stack: List[Tuple[str, int]] = []
    closers = {v: k for k, v in BRACKET_PAIRS.items()}

    for index, char in enumerate(stripped):
        if char in BRACKET_PAIRS:
            stack.append((char, index))
        elif char in closers:
            if stack and stack[-1][0] == closers[char]:
                stack.pop()
                continue
            line, column = _line_col(code, index)
            issues.append(SyntaxIssue(
                type=IssueSeverity.ERROR.value,
                message=f"Unexpected closing '{char}'",
                line=line,
                column=column,
                fix=f"Remove the extra '{char}' or add the matching '{closers[char]}'",
            ))

    missing = {}
    for opener, _ in stack:
        missing[opener] = missing.get(opener, 0) + 1
    for opener, count in missing.items():
        first = next(index for o, index in stack if o == opener)
        line, column = _line_col(code, first)
        issues.append(SyntaxIssue(
            type=IssueSeverity.ERROR.value,
            message=f"Unbalanced {BRACKET_NAMES[opener]}: missing {count} closing {BRACKET_PAIRS[opener]}",
            line=line,
            column=column,
            fix=f"Add {count} closing '{BRACKET_PAIRS[opener]}'",
        ))

    return issues


def check_line_patterns(code: str) -> List[SyntaxIssue]:
    """Look for known per-line mistakes: bad ternaries, "= >" and attributes missing "="."""
    issues = []
    stripped = mask_strings_and_comments(code)

    for number, line in enumerate(stripped.split("\n"), start=1):
        if _MALFORMED_TERNARY_RE.search(line):
            issues.append(SyntaxIssue(
                type=IssueSeverity.ERROR.value,
                message="Malformed ternary: using && instead of ? after :",
                line=number,
                fix="Replace && with ? for chained ternary",
            ))

        arrow = _SPACED_ARROW_RE.search(line)
        if arrow and not _COMPARISON_RE.search(line):
            issues.append(SyntaxIssue(
                type=IssueSeverity.ERROR.value,
                message="Invalid arrow function syntax: '= >'",
                line=number,
                column=arrow.start() + 1,
                fix="Remove space: = > should be =>",
            ))

        attribute = _MISSING_EQUALS_RE.search(line)
        if attribute:
            issues.append(SyntaxIssue(
                type=IssueSeverity.ERROR.value,
                message=f"Missing = in JSX attribute '{attribute.group(1)}'",
                line=number,
                column=attribute.start() + 1,
                fix=f'Use {attribute.group(1)}="..."',
            ))

    return issues


def _find_tag_end(text: str, index: int) -> int:
    """Return the index of the ">" closing a tag whose attributes start at ``index``.

    Braced expressions and quoted values may contain ">". Returns -1 when
    the tag never ends.
    """
    depth = 0
    quote = None
    for i in range(index, len(text)):
        char = text[i]
        if quote:
            if char == quote:
                quote = None
        elif char in "\"'" and depth == 0:
            quote = char
        elif char == "{":
            depth += 1
        elif char == "}":
            depth = max(0, depth - 1)
        elif char == "<" and depth == 0:
            return -1
        elif char == ">" and depth == 0:
            return i
    return -1


def _iter_tags(stripped: str):
    """Yield (start, closing, name, self_closing) for each markup tag."""
    position = 0
    while True:
        match = _TAG_OPEN_RE.search(stripped, position)
        if not match:
            return
        end = _find_tag_end(stripped, match.end())
        if end == -1:
            position = match.end()
            continue
        self_closing = stripped[end - 1] == "/" and end - 1 >= match.end()
        yield match.start(), bool(match.group(1)), match.group(2), self_closing
        position = end + 1


_TYPE_ARGUMENT_RE = re.compile(r"[\w$)\]]\s*\Z")
_MARKUP_KEYWORD_RE = re.compile(r"(?<![\w$])(?:return|yield|default|case|else|await)\s*\Z")


def _is_type_argument(stripped: str, start: int) -> bool:
    """True when the "<" at ``start`` follows an identifier, as in ``Array<string>``."""
    preceding = stripped[max(0, start - 40):start]
    if _MARKUP_KEYWORD_RE.search(preceding):
        return False
    return bool(_TYPE_ARGUMENT_RE.search(preceding))


def check_tag_balance(code: str) -> List[SyntaxIssue]:
    """Stack-based open/close tag check for embedded markup.

    Void elements and self-closing tags never go on the stack. Fragments
    (``<>`` / ``</>``) are not tracked.
    """
    issues = []
    stripped = mask_strings_and_comments(code, word_apostrophes=True)
    stack: List[Tuple[str, int]] = []

    for start, closing, name, self_closing in _iter_tags(stripped):
        if not closing and _is_type_argument(stripped, start):
            continue

        if self_closing or name in VOID_ELEMENTS:
            continue

        if not closing:
            stack.append((name, start))
            continue

        if stack and stack[-1][0] == name:
            stack.pop()
            continue

        line, column = _line_col(code, start)
        if any(open_name == name for open_name, _ in stack):
            # inner tags were left open
            while stack and stack[-1][0] != name:
                inner, index = stack.pop()
                inner_line, inner_col = _line_col(code, index)
                issues.append(SyntaxIssue(
                    type=IssueSeverity.ERROR.value,
                    message=f"Unclosed tag <{inner}> before </{name}>",
                    line=inner_line,
                    column=inner_col,
                    fix=f"Add </{inner}>",
                ))
            stack.pop()
        else:
            issues.append(SyntaxIssue(
                type=IssueSeverity.ERROR.value,
                message=f"Unexpected closing tag </{name}>",
                line=line,
                column=column,
                fix=f"Remove </{name}> or add a matching <{name}>",
            ))

    for name, index in stack:
        line, column = _line_col(code, index)
        issues.append(SyntaxIssue(
            type=IssueSeverity.ERROR.value,
            message=f"Unclosed tag <{name}> at end of input",
            line=line,
            column=column,
            fix=f"Add </{name}>",
        ))

    return issues


def validate_syntax(code: str, path: str = "") -> List[SyntaxIssue]:
    """Run every advisory check over ``code``.

    Args:
        code: File body to check
        path: File path; markup tag checks only run for markup-capable files
            (or any file when no path is given)

    Returns:
        List of SyntaxIssue, ordered by line where known
    """
    if not code:
        return []

    issues = check_bracket_balance(code)
    issues.extend(check_line_patterns(code))
    if not path or _MARKUP_PATH_RE.search(path):
        issues.extend(check_tag_balance(code))

    issues.sort(key=lambda issue: (issue.line or 0, issue.column or 0))
    if issues:
        logger.debug(f"{path or 'content'}: {len(issues)} syntax issue(s)")
    return issues


def has_errors(issues: List[SyntaxIssue]) -> bool:
    return any(issue.is_error for issue in issues)


def get_error_context(code: str, line: int, context: int = 2) -> str:
    """Render the lines around ``line`` with the offending line marked.

    Args:
        code: File body
        line: 1-based line number
        context: Lines to show on each side

    Returns:
        Numbered lines, the target line prefixed with ">"
    """
    lines = code.split("\n")
    if line < 1 or line > len(lines):
        return ""

    start = max(1, line - context)
    end = min(len(lines), line + context)
    width = len(str(end))
    rendered = []
    for number in range(start, end + 1):
        marker = ">" if number == line else " "
        rendered.append(f"{marker} {number:>{width}} | {lines[number - 1]}")
    return "\n".join(rendered)
