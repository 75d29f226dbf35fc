"""Utils package - Modules for parsing LLM code-generation responses.

This package turns raw model output into a canonical file map:
- unified_parser: Format detection and the single parse entry point
- json_response_parser: Parse the JSON object format
- json_repair: Repair ladder for malformed or truncated JSON
- json_lexer: String-aware tokenizer shared by the repair strategies
- marker_blocks: Parse PLAN/MANIFEST/BATCH/META blocks of the marker format
- marker_files: Extract FILE blocks, including implicit closes and streaming
- manifest_validator: Compare declared files with delivered files
- progress: Normalize batch/generationMeta/continuation progress
- sanitizer: Remove fences and marker artifacts from file bodies
- path_policy: Path normalization and ignore rules
- syntax_checker: Lightweight structural checks for JS/TS/JSX code
- code_rewriter: Rule-based fixes for common generation mistakes
- errors: Typed parse failures
- logging: Centralized logging configuration
"""

# Unified entry point
from utils.unified_parser import (
    ResponseParser,
    detect_response_format,
    is_marker_format_v2,
    parse,
    extract_file_list_unified,
    get_streaming_status_unified,
    has_files,
    get_batch_continuation_prompt,
)

# Format-specific parsers
from utils.json_response_parser import JsonResponseParser, parse_json_response
from utils.marker_files import (
    MarkerFileParser,
    parse_marker_files,
    parse_streaming_marker_files,
)
from utils.marker_blocks import (
    parse_marker_plan,
    parse_marker_explanation,
    parse_marker_generation_meta,
    parse_marker_meta,
    parse_marker_batch,
    parse_marker_manifest,
    strip_marker_metadata,
)

# JSON repair
from utils.json_repair import parse_with_repair

# Manifest and progress
from utils.manifest_validator import ManifestValidator, validate_manifest
from utils.progress import resolve_progress

# Content cleanup
from utils.sanitizer import Sanitizer, sanitize_code
from utils.path_policy import PathPolicy, normalize_path, is_ignored_path, is_malformed_path

# Syntax checking and repair
from utils.syntax_checker import SyntaxIssue, validate_syntax, has_errors, get_error_context
from utils.code_rewriter import RepairResult, rewrite_code

# Errors
from utils.errors import (
    ParseErrorCategory,
    ResponseParseError,
    EmptyResponseError,
    ProseWrappedError,
    NoStructureFoundError,
    MetadataOnlyError,
    NoFilesExtractedError,
    UnrecoverableTruncationError,
    ResponseTooLargeError,
)

# Logging configuration
from utils.logging import get_logger

__all__ = [
    # Unified entry point
    "ResponseParser",
    "detect_response_format",
    "is_marker_format_v2",
    "parse",
    "extract_file_list_unified",
    "get_streaming_status_unified",
    "has_files",
    "get_batch_continuation_prompt",
    # Format-specific parsers
    "JsonResponseParser",
    "parse_json_response",
    "MarkerFileParser",
    "parse_marker_files",
    "parse_streaming_marker_files",
    "parse_marker_plan",
    "parse_marker_explanation",
    "parse_marker_generation_meta",
    "parse_marker_meta",
    "parse_marker_batch",
    "parse_marker_manifest",
    "strip_marker_metadata",
    # JSON repair
    "parse_with_repair",
    # Manifest and progress
    "ManifestValidator",
    "validate_manifest",
    "resolve_progress",
    # Content cleanup
    "Sanitizer",
    "sanitize_code",
    "PathPolicy",
    "normalize_path",
    "is_ignored_path",
    "is_malformed_path",
    # Syntax checking and repair
    "SyntaxIssue",
    "validate_syntax",
    "has_errors",
    "get_error_context",
    "RepairResult",
    "rewrite_code",
    # Errors
    "ParseErrorCategory",
    "ResponseParseError",
    "EmptyResponseError",
    "ProseWrappedError",
    "NoStructureFoundError",
    "MetadataOnlyError",
    "NoFilesExtractedError",
    "UnrecoverableTruncationError",
    "ResponseTooLargeError",
    # Logging
    "get_logger",
]
