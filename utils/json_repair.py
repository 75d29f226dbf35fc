"""Tiered recovery of structurally broken JSON object literals.

Model responses are frequently cut off by the output token limit, which
leaves a JSON object with an unterminated string and unclosed containers.
This module walks a fixed ladder of strategies, each operating on the
token stream from ``utils.json_lexer``:

1. direct parse
2. ``balance_braces``: close the open string and containers, drop a
   dangling partial key
3. ``recover_files_object``: repair and parse only the ``"files": {...}``
   sub-object
4. ``salvage_file_entries``: regex salvage of ``"path": "content"`` pairs

Repair is conservative: when a tier is not confident it yields nothing and
the next tier runs. When every tier fails the caller gets an
``UnrecoverableTruncationError``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import json
import re

from utils.errors import UnrecoverableTruncationError
from utils.json_lexer import (
    CLOSE,
    OPEN,
    OTHER,
    STRING,
    find_matching_close,
    scan_balance,
    tokenize,
)
from utils.logging import get_logger

logger = get_logger("json_repair")

TIER_DIRECT = "direct"
TIER_BALANCED = "balanced"
TIER_FILES_OBJECT = "files_object"
TIER_SALVAGE = "salvage"

# Key with a file extension, then a quoted or backtick-delimited value
_SALVAGE_QUOTED_RE = re.compile(
    r'"([^"\n]+\.[A-Za-z0-9]+)"\s*:\s*"((?:[^"\\]|\\.)*)"', re.DOTALL
)
_SALVAGE_BACKTICK_RE = re.compile(
    r'"([^"\n]+\.[A-Za-z0-9]+)"\s*:\s*`([^`]*)`', re.DOTALL
)


@dataclass
class RepairResult:
    """Result of a text-level repair attempt."""
    content: str
    was_repaired: bool
    repairs_made: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        if self.was_repaired:
            return f"Repaired ({len(self.repairs_made)} fixes)"
        return "No repairs needed"


@dataclass
class LadderResult:
    """Object recovered by the repair ladder and how it was obtained."""
    data: Dict[str, Any]
    tier: str
    repairs_made: List[str] = field(default_factory=list)
    missing_closer_only: bool = False  # whole text arrived, one final "}" or "]" was absent

    @property
    def truncated(self) -> bool:
        return self.tier != TIER_DIRECT and not self.missing_closer_only


def loads_lenient(text: str) -> Any:
    """``json.loads`` that tolerates raw control characters inside strings."""
    return json.loads(text, strict=False)


def decode_json_string(body: str) -> str:
    """Decode the inside of a JSON string literal (without its quotes).

    Falls back to a manual unescape when the body holds an invalid escape.
    """
    try:
        return loads_lenient('"' + body + '"')
    except json.JSONDecodeError:
        pass

    result = []
    i = 0
    escapes = {"n": "\n", "t": "\t", "r": "\r", '"': '"', "\\": "\\", "/": "/"}
    while i < len(body):
        char = body[i]
        if char == "\\" and i + 1 < len(body):
            result.append(escapes.get(body[i + 1], body[i + 1]))
            i += 2
            continue
        result.append(char)
        i += 1
    return "".join(result)


def _significant(tokens) -> list:
    """Tokens with whitespace-only ``other`` runs removed."""
    return [t for t in tokens if not (t.kind == OTHER and not t.value.strip())]


def _drop_dangling_tail(text: str, repairs: List[str]) -> str:
    """Remove a trailing comma or a key that never received its value."""
    while True:
        tokens = _significant(tokenize(text))
        if not tokens:
            return text
        last = tokens[-1]

        if last.kind == OTHER:
            stripped = last.value.rstrip()
            if stripped.endswith(","):
                text = text[: last.start] + stripped[:-1]
                repairs.append("Removed trailing comma")
                continue
            if stripped.endswith(":") and len(tokens) >= 2 and tokens[-2].kind == STRING:
                text = text[: tokens[-2].start].rstrip()
                repairs.append("Removed incomplete key-value")
                continue
            return text

        if last.kind == STRING and len(tokens) >= 2:
            before = tokens[-2]
            state = scan_balance(tokenize(text[: last.start]))
            in_object = state.open_stack and state.open_stack[-1] == "{"
            after_separator = (before.kind == OPEN and before.value == "{") or (
                before.kind == OTHER and before.value.rstrip().endswith(",")
            )
            if in_object and after_separator:
                # a key with no colon yet
                text = text[: last.start].rstrip()
                repairs.append("Removed dangling key")
                continue
        return text


def balance_braces(text: str) -> RepairResult:
    """Close an unterminated string and every unclosed container.

    Brace and bracket counting respects string and escape context via the
    lexer, so braces inside file content are never counted.
    """
    json_text = text.strip()
    repairs: List[str] = []

    state = scan_balance(tokenize(json_text))
    if state.balanced:
        return RepairResult(content=json_text, was_repaired=False)

    logger.debug(
        f"Unbalanced JSON: open={''.join(state.open_stack)!r}, in_string={state.in_string}"
    )

    if state.in_string:
        # a lone trailing backslash would escape the quote we add
        trailing = len(json_text) - len(json_text.rstrip("\\"))
        if trailing % 2 == 1:
            json_text = json_text[:-1]
        json_text += '"'
        repairs.append("Closed unclosed string")

    json_text = _drop_dangling_tail(json_text, repairs)

    state = scan_balance(tokenize(json_text))
    closers = state.closers()
    if closers:
        json_text += closers
        repairs.append(f"Closed {len(closers)} unclosed bracket(s)")

    return RepairResult(content=json_text, was_repaired=bool(repairs), repairs_made=repairs)


def recover_files_object(text: str) -> Optional[Dict[str, Any]]:
    """Repair and parse only the ``"files": {...}`` sub-object.

    Returns ``{"files": {...}}`` or None if no such key exists or it
    cannot be repaired.
    """
    tokens = list(tokenize(text))
    for index, token in enumerate(tokens):
        if token.kind != STRING or token.value != '"files"':
            continue
        rest = _significant(tokens[index + 1:index + 4])
        if len(rest) < 2 or rest[0].kind != OTHER or rest[0].value.strip() != ":":
            continue
        if rest[1].kind != OPEN or rest[1].value != "{":
            continue

        start = rest[1].start
        end = find_matching_close(text, start)
        fragment = text[start:end] if end != -1 else balance_braces(text[start:]).content
        try:
            files = loads_lenient(fragment)
        except json.JSONDecodeError as e:
            logger.debug(f"files object still unparseable after repair: {e}")
            return None
        if isinstance(files, dict):
            logger.info("Extracted partial files object")
            return {"files": files}
    return None


def salvage_file_entries(text: str) -> Dict[str, str]:
    """Rebuild a file map from ``"path": "..."`` pairs, ignoring structure."""
    files: Dict[str, str] = {}

    for match in _SALVAGE_BACKTICK_RE.finditer(text):
        files[match.group(1)] = match.group(2)

    for match in _SALVAGE_QUOTED_RE.finditer(text):
        path = match.group(1)
        if path not in files:
            files[path] = decode_json_string(match.group(2))

    if files:
        logger.info(f"Recovered {len(files)} file(s) with pattern matching")
    return files


def parse_with_repair(text: str) -> LadderResult:
    """Run the repair ladder over ``text`` and return the first object recovered.

    Raises:
        UnrecoverableTruncationError: if no tier yields any object or entry.
    """
    try:
        data = loads_lenient(text)
        if isinstance(data, dict):
            return LadderResult(data=data, tier=TIER_DIRECT)
    except json.JSONDecodeError as e:
        logger.debug(f"Direct parse failed, attempting repair: {e}")

    balanced = balance_braces(text)
    if balanced.was_repaired:
        try:
            data = loads_lenient(balanced.content)
            if isinstance(data, dict):
                state = scan_balance(tokenize(text.strip()))
                closer_only = (
                    not state.in_string
                    and len(state.open_stack) == 1
                    and len(balanced.repairs_made) == 1
                )
                if closer_only:
                    logger.debug("Added the one missing closing bracket")
                else:
                    logger.info(f"Repair successful: {', '.join(balanced.repairs_made)}")
                return LadderResult(
                    data=data,
                    tier=TIER_BALANCED,
                    repairs_made=balanced.repairs_made,
                    missing_closer_only=closer_only,
                )
        except json.JSONDecodeError as e:
            logger.debug(f"Balanced text still invalid: {e}")

    files_only = recover_files_object(text)
    if files_only is not None:
        return LadderResult(
            data=files_only,
            tier=TIER_FILES_OBJECT,
            repairs_made=["Recovered files object only"],
        )

    salvaged = salvage_file_entries(text)
    if salvaged:
        return LadderResult(
            data={"files": salvaged},
            tier=TIER_SALVAGE,
            repairs_made=[f"Salvaged {len(salvaged)} file entries"],
        )

    logger.error("Response was truncated and could not be repaired")
    raise UnrecoverableTruncationError(
        "Response was truncated and could not be repaired",
        suggestion="Try a shorter prompt or request fewer files per batch",
    )
