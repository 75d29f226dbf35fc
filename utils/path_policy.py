"""Path normalization and the ignored-path table.

Paths coming out of a model response are normalized to forward slashes and
checked against an ignored-directory table. Matching is by whole path
segment, so ``src/builder.ts`` is kept while ``build/index.js`` is dropped.
"""

import re
from typing import Iterable, Optional

from config import DEFAULT_IGNORED_PATHS

_EXTENSION_RE = re.compile(r"\.[A-Za-z0-9]+$")

# A file named only ".<one of these>" lost its base name
SOURCE_EXTENSIONS = frozenset((
    "ts", "tsx", "js", "jsx", "mjs", "cjs", "css", "scss", "sass", "less",
    "html", "json", "md", "vue", "svelte",
))


class PathPolicy:
    """Immutable path rules built from an ignored-path table."""

    def __init__(self, ignored_paths: Optional[Iterable[str]] = None):
        table = DEFAULT_IGNORED_PATHS if ignored_paths is None else ignored_paths
        self.ignored_paths = frozenset(table)

    def normalize(self, path: str) -> str:
        """Convert backslashes, collapse duplicate slashes, drop "./" and a trailing slash."""
        normalized = path.strip().replace("\\", "/")
        normalized = re.sub(r"/+", "/", normalized)
        while normalized.startswith("./"):
            normalized = normalized[2:]
        return normalized.rstrip("/") if normalized != "/" else normalized

    def is_ignored(self, path: str) -> bool:
        segments = path.replace("\\", "/").split("/")
        return any(segment in self.ignored_paths for segment in segments)

    def is_malformed(self, path: str) -> bool:
        """Detect paths that cannot be a generated source file.

        Rejects empty paths, directory paths (trailing slash), paths with no
        extension, a final ``.`` or ``..`` segment, and a name that is only a
        source extension such as ``src/components/.tsx``. Dotfiles like
        ``.env`` or ``src/.gitignore`` are allowed at any depth.
        """
        raw = path.strip().replace("\\", "/")
        if not raw or raw.endswith("/"):
            return True

        file_name = raw.rsplit("/", 1)[-1]
        if file_name in (".", ".."):
            return True
        if file_name.startswith(".") and "." not in file_name[1:]:
            return file_name[1:].lower() in SOURCE_EXTENSIONS
        return not _EXTENSION_RE.search(file_name)

    def accepts(self, path: str) -> bool:
        return not self.is_ignored(path) and not self.is_malformed(path)


DEFAULT_PATH_POLICY = PathPolicy()


def normalize_path(path: str) -> str:
    return DEFAULT_PATH_POLICY.normalize(path)


def is_ignored_path(path: str) -> bool:
    return DEFAULT_PATH_POLICY.is_ignored(path)


def is_malformed_path(path: str) -> bool:
    return DEFAULT_PATH_POLICY.is_malformed(path)
