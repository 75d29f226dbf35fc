"""Extraction of per-file bodies from marker-format responses.

```
<!-- FILE:src/App.tsx -->
content here
<!-- /FILE:src/App.tsx -->
```

Two passes run over the text:

1. Properly closed pairs, where the closing marker names the same path.
2. Openers whose path was not resolved by pass 1. An opener followed by
   another FILE marker (open or close, any path) was implicitly closed
   when the model moved on: its body runs up to that marker, it counts as
   complete and is listed as recovered. An opener with no FILE marker
   after it runs to the end of the text and is the file the model is
   still writing, so it is reported as streaming.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from models.schemas import StreamingParseResult
from utils.logging import get_logger
from utils.path_policy import DEFAULT_PATH_POLICY, PathPolicy
from utils.sanitizer import Sanitizer, sanitize_code

logger = get_logger("marker_files")

FILE_PATH_PATTERN = r"[\w./-]+\.[a-zA-Z]+"

FILE_BLOCK_RE = re.compile(
    r"<!--\s*FILE:(" + FILE_PATH_PATTERN + r")\s*-->([\s\S]*?)<!--\s*/FILE:\1\s*-->"
)
FILE_OPEN_RE = re.compile(r"<!--\s*FILE:(" + FILE_PATH_PATTERN + r")\s*-->")
_ANY_FILE_MARKER_RE = re.compile(r"<!--\s*/?FILE:")
# Where a still-streaming body stops when something follows it
_STREAMING_STOP_RE = re.compile(
    r"<!--\s*(?:/FILE:|GENERATION_META|PLAN|EXPLANATION|BATCH|MANIFEST|META)\b"
)


@dataclass
class _Opener:
    path: str
    start: int
    end: int


@dataclass
class MarkerFileScan:
    """Files found in one pass over a marker response."""
    complete: Dict[str, str] = field(default_factory=dict)
    streaming: Dict[str, str] = field(default_factory=dict)
    current_file: Optional[str] = None
    recovered: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def _trim_newlines(content: str) -> str:
    return content.strip("\r\n")


class MarkerFileParser:
    """Extracts FILE blocks with a path policy and sanitizer injected."""

    def __init__(self, policy: Optional[PathPolicy] = None, sanitizer: Optional[Sanitizer] = None):
        self.policy = policy or DEFAULT_PATH_POLICY
        self.sanitizer = sanitizer

    def _sanitize(self, content: str, path: str) -> str:
        if self.sanitizer is not None:
            return self.sanitizer.sanitize(content, path)
        return sanitize_code(content, path)

    def _accept(self, raw_path: str, scan: MarkerFileScan) -> Optional[str]:
        path = self.policy.normalize(raw_path)
        if self.policy.is_ignored(path) or self.policy.is_malformed(path):
            if path not in scan.skipped:
                logger.debug(f"Skipping ignored or malformed path: {path}")
                scan.skipped.append(path)
            return None
        return path

    def scan(self, response: str) -> MarkerFileScan:
        """Run both passes over ``response``."""
        scan = MarkerFileScan()
        resolved = set()

        for match in FILE_BLOCK_RE.finditer(response):
            raw_path = match.group(1).strip()
            resolved.add(raw_path)
            path = self._accept(raw_path, scan)
            if path is None:
                continue
            cleaned = self._sanitize(_trim_newlines(match.group(2)), path)
            if cleaned:
                scan.complete[path] = cleaned
            else:
                logger.debug(f"Empty body for {path}, skipping")

        openers = [
            _Opener(m.group(1).strip(), m.start(), m.end())
            for m in FILE_OPEN_RE.finditer(response)
            if m.group(1).strip() not in resolved
        ]

        for opener in openers:
            rest = response[opener.end:]
            marker = _ANY_FILE_MARKER_RE.search(rest)

            if marker is None:
                # Runs to the end of the text: still being written
                content = rest.lstrip("\r\n")
                stop = _STREAMING_STOP_RE.search(content)
                if stop:
                    content = content[:stop.start()].rstrip("\r\n")
                path = self._accept(opener.path, scan)
                if path is None:
                    continue
                scan.streaming[path] = content
                scan.current_file = path
                continue

            path = self._accept(opener.path, scan)
            if path is None or path in scan.complete:
                continue
            cleaned = self._sanitize(_trim_newlines(rest[:marker.start()]), path)
            if cleaned:
                scan.complete[path] = cleaned
                scan.recovered.append(path)
                logger.warning(f"File {path} had missing closing marker - recovered content")

        if scan.current_file and scan.current_file in scan.complete:
            # A later unclosed copy of a file that already closed
            del scan.streaming[scan.current_file]
            scan.current_file = None

        return scan

    def parse_files(self, response: str) -> Tuple[Dict[str, str], List[str]]:
        """Return complete files and the paths recovered by implicit close."""
        scan = self.scan(response)
        return scan.complete, scan.recovered

    def parse_streaming(self, response: str) -> StreamingParseResult:
        """Split files by whether their closing marker has arrived."""
        scan = self.scan(response)
        return StreamingParseResult(
            complete=scan.complete,
            streaming=scan.streaming,
            current_file=scan.current_file,
        )


_DEFAULT_PARSER = MarkerFileParser()


def parse_marker_files(response: str) -> Tuple[Dict[str, str], List[str]]:
    """Extract complete FILE blocks.

    Returns:
        Tuple of (files, recovered paths)
    """
    return _DEFAULT_PARSER.parse_files(response)


def parse_streaming_marker_files(response: str) -> StreamingParseResult:
    """Extract FILE blocks split into complete and still-streaming."""
    return _DEFAULT_PARSER.parse_streaming(response)


def extract_marker_paths(response: str) -> List[str]:
    """Every path named by a FILE opener, in order of appearance."""
    seen = []
    for match in FILE_OPEN_RE.finditer(response):
        path = match.group(1).strip()
        if path not in seen:
            seen.append(path)
    return seen
