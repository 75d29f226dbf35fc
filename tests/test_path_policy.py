#!/usr/bin/env python3
"""Unit tests for utils.path_policy module."""

import pytest
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from utils.path_policy import (
    PathPolicy,
    normalize_path,
    is_ignored_path,
    is_malformed_path,
)


class TestNormalizePath:
    """Test the normalize_path function."""

    def test_backslashes(self):
        """Test Windows separators become forward slashes."""
        assert normalize_path("src\\components\\Header.tsx") == "src/components/Header.tsx"

    def test_leading_dot_slash(self):
        """Test a leading ./ is dropped."""
        assert normalize_path("./src/App.tsx") == "src/App.tsx"

    def test_duplicate_and_trailing_slashes(self):
        """Test repeated and trailing slashes are collapsed."""
        assert normalize_path("src//utils/helpers.ts/") == "src/utils/helpers.ts"

    def test_surrounding_whitespace(self):
        assert normalize_path("  src/App.tsx \n") == "src/App.tsx"


class TestIsIgnoredPath:
    """Test whole-segment matching against the ignored-path table."""

    @pytest.mark.parametrize("path", [
        ".git/config",
        "node_modules/react/index.js",
        "dist/bundle.js",
        "build/index.js",
        "src/.next/cache.json",
        ".DS_Store",
        ".vscode/settings.json",
    ])
    def test_ignored(self, path):
        assert is_ignored_path(path)

    @pytest.mark.parametrize("path", [
        "src/builder.ts",
        "src/distance.ts",
        "src/components/BuildInfo.tsx",
        "package.json",
    ])
    def test_not_ignored(self, path):
        """Test names that merely contain an ignored word are kept."""
        assert not is_ignored_path(path)

    def test_custom_table(self):
        """Test a policy built from an injected table."""
        policy = PathPolicy(ignored_paths=("vendor",))
        assert policy.is_ignored("vendor/lib.js")
        assert not policy.is_ignored("node_modules/lib.js")


class TestIsMalformedPath:
    """Test detection of paths that cannot be source files."""

    @pytest.mark.parametrize("path", [
        "",
        "src/components/",
        "src/components/.tsx",
        "src/.",
        "src/.js",
        "README",
        "src/..",
    ])
    def test_malformed(self, path):
        assert is_malformed_path(path)

    @pytest.mark.parametrize("path", [
        "src/App.tsx",
        ".env",
        "src/.env",
        ".gitignore",
        "config/.gitignore",
        "src/.eslintrc.json",
        "index.html",
        "src/styles/main.module.css",
    ])
    def test_well_formed(self, path):
        assert not is_malformed_path(path)

    def test_accepts(self):
        policy = PathPolicy()
        assert policy.accepts("src/App.tsx")
        assert not policy.accepts("node_modules/a.js")
        assert not policy.accepts("src/components/")
