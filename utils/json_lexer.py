"""Minimal lexer for brace-balancing broken JSON.

The lexer does not validate JSON. It only splits text into four token
kinds so that repair strategies can reason about structure without each
re-implementing quote and escape tracking:

- ``string``: a double-quoted string, including its quotes
- ``open``: ``{`` or ``[`` outside a string
- ``close``: ``}`` or ``]`` outside a string
- ``other``: any run of characters between the above
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Tuple

STRING = "string"
OPEN = "open"
CLOSE = "close"
OTHER = "other"

_OPENERS = "{["
_CLOSERS = "}]"
_PAIRS = {"{": "}", "[": "]"}


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    start: int
    end: int
    terminated: bool = True  # False only for a string cut off by end of input


@dataclass
class BalanceState:
    """Result of scanning a token stream for unclosed structure."""
    open_stack: List[str] = field(default_factory=list)
    in_string: bool = False
    stray_closers: int = 0

    @property
    def balanced(self) -> bool:
        return not self.open_stack and not self.in_string

    def closers(self) -> str:
        """Closing characters needed, innermost first."""
        return "".join(_PAIRS[c] for c in reversed(self.open_stack))


def tokenize(text: str) -> Iterator[Token]:
    """Yield tokens for ``text`` in order. Concatenated values equal ``text``."""
    i = 0
    n = len(text)
    other_start = 0

    while i < n:
        char = text[i]
        if char == '"' or char in _OPENERS or char in _CLOSERS:
            if other_start < i:
                yield Token(OTHER, text[other_start:i], other_start, i)

            if char == '"':
                start = i
                i += 1
                terminated = False
                while i < n:
                    c = text[i]
                    if c == "\\":
                        i += 2
                        continue
                    if c == '"':
                        i += 1
                        terminated = True
                        break
                    i += 1
                i = min(i, n)
                yield Token(STRING, text[start:i], start, i, terminated)
            else:
                kind = OPEN if char in _OPENERS else CLOSE
                yield Token(kind, char, i, i + 1)
                i += 1
            other_start = i
            continue
        i += 1

    if other_start < n:
        yield Token(OTHER, text[other_start:n], other_start, n)


def scan_balance(tokens) -> BalanceState:
    """Track which containers are still open at the end of a token stream.

    Mismatched closers are counted as stray instead of popping the stack.
    """
    state = BalanceState()
    for token in tokens:
        if token.kind == OPEN:
            state.open_stack.append(token.value)
        elif token.kind == CLOSE:
            if state.open_stack and _PAIRS[state.open_stack[-1]] == token.value:
                state.open_stack.pop()
            else:
                state.stray_closers += 1
        elif token.kind == STRING and not token.terminated:
            state.in_string = True
    return state


def find_matching_close(text: str, open_index: int) -> int:
    """Return the index just past the container opened at ``open_index``.

    Returns -1 if the container never closes.
    """
    depth = 0
    for token in tokenize(text[open_index:]):
        if token.kind == OPEN:
            depth += 1
        elif token.kind == CLOSE:
            depth -= 1
            if depth == 0:
                return open_index + token.end
    return -1


def strip_trailing_commas(text: str) -> Tuple[str, int]:
    """Drop commas that directly precede a closer, outside of strings.

    Returns the new text and the number of commas removed.
    """
    pieces: List[str] = []
    removed = 0
    tokens = list(tokenize(text))
    for index, token in enumerate(tokens):
        if token.kind == OTHER and index + 1 < len(tokens) and tokens[index + 1].kind == CLOSE:
            stripped = token.value.rstrip()
            if stripped.endswith(","):
                pieces.append(stripped[:-1] + token.value[len(stripped):])
                removed += 1
                continue
        pieces.append(token.value)
    return "".join(pieces), removed
