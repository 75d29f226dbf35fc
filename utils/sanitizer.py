"""Strip protocol and markdown artifacts from extracted file bodies.

Every file body goes through the Sanitizer regardless of which wire format
it came from. Processing is deliberately minimal: it removes code fences
and leaked protocol markers, inserts a missing arrow token in one narrow
and unambiguous pattern, and optionally prefixes bare-specifier imports.
It never tries to repair general syntax; see ``utils.code_rewriter`` for
the opt-in rewrites.

``sanitize(sanitize(x)) == sanitize(x)`` holds for all inputs.
"""

from typing import Iterable, Optional
import re

from config import DEFAULT_BARE_SPECIFIER_DIRS
from utils.logging import get_logger

logger = get_logger("sanitizer")

LANGUAGE_TAGS = (
    "javascript", "typescript", "tsx", "jsx", "ts", "js", "react", "html",
    "css", "json", "sql", "markdown", "md", "plaintext", "text", "sh",
    "bash", "shell", "python", "py",
)


_FENCE_LINE_RE = re.compile(r"^[ \t]*```[\w+.#-]*[ \t]*(?:\n|$)", re.MULTILINE)
_LEADING_LANG_RE = re.compile(
    r"\A(?:(?:javascript|typescript|tsx|jsx|ts|js|react)[ \t]*\n[ \t\n]*)+", re.IGNORECASE
)

_MARKER_BLOCK_RE = re.compile(
    r"<!--\s*(GENERATION_META|PLAN|EXPLANATION|META|MANIFEST|BATCH)\s*-->[\s\S]*?<!--\s*/\1\s*-->"
)
_MARKER_TOKEN_RE = re.compile(
    r"<!--\s*/?(?:FILE(?::[^\s>]*)?|GENERATION_META|PLAN|EXPLANATION|META|MANIFEST|BATCH)\s*-->"
)

# "render: (value) {" -> "render: (value) => {"
_PROPERTY_NO_ARROW_RE = re.compile(
    r"(?<![\w$?])([A-Za-z_$][\w$]*)(\s*:\s*)(async\s+)?\(([^()]*)\)(\s*)\{"
)
# "onClick={() {" -> "onClick={() => {"
_ATTRIBUTE_NO_ARROW_RE = re.compile(r"(=\{\s*)(async\s+)?\(([^()]*)\)(\s*)\{")

_JS_PATH_RE = re.compile(r"\.(?:tsx?|jsx?|mjs|cjs)$")
_JS_CONTENT_RE = re.compile(r"import\s+.*from\s+['\"]|export\s+")


class Sanitizer:
    """Cleans extracted file bodies.

    Args:
        bare_specifier_dirs: Directories whose bare imports get a leading "/".
        fix_bare_specifiers: Whether to apply the bare-specifier fix at all.
        insert_missing_arrows: Whether to insert "=>" in property/attribute callbacks.
    """

    def __init__(
        self,
        bare_specifier_dirs: Optional[Iterable[str]] = None,
        fix_bare_specifiers: bool = True,
        insert_missing_arrows: bool = True,
    ):
        dirs = DEFAULT_BARE_SPECIFIER_DIRS if bare_specifier_dirs is None else bare_specifier_dirs
        self.bare_specifier_dirs = tuple(dirs)
        self.fix_bare_specifiers = fix_bare_specifiers and bool(self.bare_specifier_dirs)
        self.insert_missing_arrows = insert_missing_arrows
        self._bare_import_re = None
        if self.fix_bare_specifiers:
            alternatives = "|".join(re.escape(d) for d in self.bare_specifier_dirs)
            self._bare_import_re = re.compile(
                r"(import\s+[^;]+?from\s*|export\s+[^;]*?from\s*|import\s*\()(['\"`])(" + alternatives + r")/"
            )

    def sanitize(self, code: str, path: Optional[str] = None) -> str:
        """Return ``code`` with artifacts removed.

        Args:
            code: Extracted file body.
            path: File path, used to decide whether JS-specific fixes apply.
        """
        if not code:
            return ""

        # Removing one artifact can expose another, so run to a fixed point.
        # Each pass either shrinks the text or inserts a token that no rule matches again.
        cleaned = code.strip()
        while True:
            next_pass = self._clean_once(cleaned, path)
            if next_pass == cleaned:
                break
            cleaned = next_pass

        if cleaned != code.strip():
            logger.debug(f"Sanitized {path or 'content'}: {len(code)} -> {len(cleaned)} chars")
        return cleaned

    def _clean_once(self, code: str, path: Optional[str]) -> str:
        cleaned = strip_code_fences(code)
        cleaned = strip_marker_artifacts(cleaned)

        is_js = bool(_JS_PATH_RE.search(path)) if path else bool(_JS_CONTENT_RE.search(cleaned))
        if is_js:
            if self.insert_missing_arrows:
                cleaned = insert_missing_arrows(cleaned)
            if self._bare_import_re is not None:
                cleaned = self._bare_import_re.sub(lambda m: f"{m.group(1)}{m.group(2)}/{m.group(3)}/", cleaned)

        return cleaned.strip()


def strip_code_fences(code: str) -> str:
    """Remove fence lines (with or without a language tag) wherever they occur."""
    cleaned = _FENCE_LINE_RE.sub("", code)
    cleaned = cleaned.replace("```", "")
    cleaned = cleaned.strip()
    # lone language tag lines left at the top
    cleaned = _LEADING_LANG_RE.sub("", cleaned)
    return cleaned


def strip_marker_artifacts(code: str) -> str:
    """Remove marker blocks and stray marker tokens that leaked into a body."""
    cleaned = _MARKER_BLOCK_RE.sub("", code)
    cleaned = _MARKER_TOKEN_RE.sub("", cleaned)
    return cleaned


def insert_missing_arrows(code: str) -> str:
    """Insert "=>" where a callback value has a parameter list followed by a brace.

    Only two positions are touched: an object property value
    (``name: (a) {``) and a markup attribute value (``attr={(a) {``).
    Method shorthand (``name(a) {``) and ``function`` expressions are left
    alone because neither matches these shapes.
    """
    def _property(match: re.Match) -> str:
        name, colon, async_kw, params, space = match.groups()
        if name in ("case", "default"):
            return match.group(0)
        return f"{name}{colon}{async_kw or ''}({params}) =>{space or ' '}{{"

    def _attribute(match: re.Match) -> str:
        prefix, async_kw, params, space = match.groups()
        return f"{prefix}{async_kw or ''}({params}) =>{space or ' '}{{"

    fixed = _PROPERTY_NO_ARROW_RE.sub(_property, code)
    return _ATTRIBUTE_NO_ARROW_RE.sub(_attribute, fixed)


_DEFAULT_SANITIZER = Sanitizer()


def sanitize_code(code: str, path: Optional[str] = None) -> str:
    """Sanitize with the default tables."""
    return _DEFAULT_SANITIZER.sanitize(code, path)
