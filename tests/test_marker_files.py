#!/usr/bin/env python3
"""Unit tests for utils.marker_files module."""

import pytest
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config import DEFAULT_IGNORED_PATHS
from utils.marker_files import (
    MarkerFileParser,
    parse_marker_files,
    parse_streaming_marker_files,
    extract_marker_paths,
)
from utils.path_policy import PathPolicy
from utils.sanitizer import Sanitizer


A_BODY = "export const a = 1;"
B_BODY = "export const b = 2;"
C_BODY = "export const c = 3;"


class TestParseMarkerFiles:
    """Test extraction of complete FILE blocks."""

    def test_single_file(self):
        text = f"<!-- FILE:src/a.ts -->\n{A_BODY}\n<!-- /FILE:src/a.ts -->"
        files, recovered = parse_marker_files(text)
        assert files == {"src/a.ts": A_BODY}
        assert recovered == []

    def test_multiple_files(self):
        text = (
            f"<!-- FILE:src/a.ts -->\n{A_BODY}\n<!-- /FILE:src/a.ts -->\n"
            f"<!-- FILE:src/b.ts -->\n{B_BODY}\n<!-- /FILE:src/b.ts -->"
        )
        files, _ = parse_marker_files(text)
        assert files == {"src/a.ts": A_BODY, "src/b.ts": B_BODY}

    def test_marker_whitespace_variants(self):
        text = f"<!--FILE:src/a.ts-->\n{A_BODY}\n<!--   /FILE:src/a.ts   -->"
        assert parse_marker_files(text)[0] == {"src/a.ts": A_BODY}

    def test_fenced_body_sanitized(self):
        text = f"<!-- FILE:src/a.ts -->\n```ts\n{A_BODY}\n```\n<!-- /FILE:src/a.ts -->"
        assert parse_marker_files(text)[0] == {"src/a.ts": A_BODY}

    def test_ignored_path_dropped(self):
        text = (
            f"<!-- FILE:node_modules/x/index.js -->\n{A_BODY}\n<!-- /FILE:node_modules/x/index.js -->\n"
            f"<!-- FILE:src/b.ts -->\n{B_BODY}\n<!-- /FILE:src/b.ts -->"
        )
        assert list(parse_marker_files(text)[0]) == ["src/b.ts"]

    def test_empty_body_dropped(self):
        text = "<!-- FILE:src/a.ts -->\n\n<!-- /FILE:src/a.ts -->"
        assert parse_marker_files(text)[0] == {}

    def test_no_markers(self):
        assert parse_marker_files("just some text") == ({}, [])


class TestImplicitClose:
    """Test recovery of files whose closing marker is missing."""

    def test_opener_followed_by_next_opener(self):
        """Test A closed, B unclosed before C, C closed: all three complete."""
        text = (
            f"<!-- FILE:src/a.ts -->\n{A_BODY}\n<!-- /FILE:src/a.ts -->\n"
            f"<!-- FILE:src/b.ts -->\n{B_BODY}\n"
            f"<!-- FILE:src/c.ts -->\n{C_BODY}\n<!-- /FILE:src/c.ts -->"
        )
        streaming = parse_streaming_marker_files(text)
        assert streaming.complete == {"src/a.ts": A_BODY, "src/b.ts": B_BODY, "src/c.ts": C_BODY}
        assert streaming.streaming == {}
        assert streaming.current_file is None

        files, recovered = parse_marker_files(text)
        assert recovered == ["src/b.ts"]
        assert files["src/b.ts"] == B_BODY

    def test_last_opener_is_streaming(self):
        """Test B as the last marker is streaming, not complete."""
        text = (
            f"<!-- FILE:src/a.ts -->\n{A_BODY}\n<!-- /FILE:src/a.ts -->\n"
            f"<!-- FILE:src/b.ts -->\n{B_BODY}"
        )
        streaming = parse_streaming_marker_files(text)
        assert streaming.complete == {"src/a.ts": A_BODY}
        assert streaming.streaming == {"src/b.ts": B_BODY}
        assert streaming.current_file == "src/b.ts"
        assert "src/b.ts" not in parse_marker_files(text)[0]

    def test_opener_followed_by_mismatched_close(self):
        text = f"<!-- FILE:src/a.ts -->\n{A_BODY}\n<!-- /FILE:src/other.ts -->"
        files, recovered = parse_marker_files(text)
        assert files == {"src/a.ts": A_BODY}
        assert recovered == ["src/a.ts"]

    def test_streaming_body_stops_at_metadata(self):
        text = (
            f"<!-- FILE:src/a.ts -->\n{A_BODY}\n"
            "<!-- BATCH -->\ncurrent: 1\n<!-- /BATCH -->"
        )
        streaming = parse_streaming_marker_files(text)
        assert streaming.streaming == {"src/a.ts": A_BODY}

    def test_duplicate_unclosed_copy_dropped(self):
        text = (
            f"<!-- FILE:src/a.ts -->\n{A_BODY}\n<!-- /FILE:src/a.ts -->\n"
            "<!-- FILE:src/a.ts -->\nexport const a ="
        )
        streaming = parse_streaming_marker_files(text)
        assert streaming.complete == {"src/a.ts": A_BODY}
        assert streaming.current_file is None


class TestMarkerFileParser:
    """Test the injected policy and sanitizer."""

    def test_custom_policy(self):
        parser = MarkerFileParser(policy=PathPolicy(DEFAULT_IGNORED_PATHS + ("generated",)))
        text = (
            f"<!-- FILE:generated/a.ts -->\n{A_BODY}\n<!-- /FILE:generated/a.ts -->\n"
            f"<!-- FILE:src/b.ts -->\n{B_BODY}\n<!-- /FILE:src/b.ts -->"
        )
        scan = parser.scan(text)
        assert list(scan.complete) == ["src/b.ts"]
        assert scan.skipped == ["generated/a.ts"]

    def test_custom_sanitizer(self):
        parser = MarkerFileParser(sanitizer=Sanitizer(fix_bare_specifiers=False))
        body = "import Header from 'src/components/Header';"
        text = f"<!-- FILE:src/App.tsx -->\n{body}\n<!-- /FILE:src/App.tsx -->"
        assert parser.parse_files(text)[0] == {"src/App.tsx": body}

    def test_default_sanitizer_fixes_imports(self):
        body = "import Header from 'src/components/Header';"
        text = f"<!-- FILE:src/App.tsx -->\n{body}\n<!-- /FILE:src/App.tsx -->"
        assert parse_marker_files(text)[0]["src/App.tsx"] == "import Header from '/src/components/Header';"


class TestExtractMarkerPaths:
    def test_order_and_dedup(self):
        text = (
            "<!-- FILE:src/b.ts -->x<!-- /FILE:src/b.ts -->"
            "<!-- FILE:src/a.ts -->y<!-- FILE:src/b.ts -->"
        )
        assert extract_marker_paths(text) == ["src/b.ts", "src/a.ts"]
