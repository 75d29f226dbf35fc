"""Single entry point for parsing model responses in either wire format.

Detects whether a response uses the JSON object format or the marker
format, dispatches to the matching parser, validates the manifest and
normalizes progress. Also offers cheap helpers that work on a partial
stream without a full parse.

Usage:
    from utils.unified_parser import parse

    result = parse(response_text)
    for path, content in result.files.items():
        ...
"""

from typing import AbstractSet, Iterable, List, Optional
import json
import re

from config import ParserConfig
from models.schemas import ParsedResponse, ProgressSource, StreamingStatus
from utils.errors import EmptyResponseError, NoStructureFoundError, ResponseTooLargeError
from utils.json_lexer import CLOSE, OPEN, OTHER, STRING, find_matching_close, tokenize
from utils.json_repair import decode_json_string, loads_lenient
from utils.json_response_parser import JsonResponseParser, build_plan, strip_plan_comment
from utils.logging import get_logger
from utils.manifest_validator import ManifestValidator
from utils.marker_blocks import (
    parse_marker_batch,
    parse_marker_explanation,
    parse_marker_generation_meta,
    parse_marker_manifest,
    parse_marker_meta,
    parse_marker_plan,
)
from utils.marker_files import MarkerFileParser, extract_marker_paths
from utils.path_policy import PathPolicy
from utils.progress import resolve_progress
from utils.sanitizer import Sanitizer

logger = get_logger("unified_parser")

FORMAT_JSON = "json"
FORMAT_MARKER = "marker"

_FILE_MARKER_RE = re.compile(r"<!--\s*FILE:")
_PLAN_MARKER_RE = re.compile(r"<!--\s*PLAN\s*-->")
_EXPLANATION_MARKER_RE = re.compile(r"<!--\s*EXPLANATION\s*-->")
_META_MARKER_RE = re.compile(r"<!--\s*META\s*-->")
_JSON_FILES_RE = re.compile(r'"(?:files|fileChanges)"\s*:\s*\{')
_JSON_PATH_KEY_RE = re.compile(r'"[\w./@-]+\.[A-Za-z0-9]+"\s*:\s*["{]')
_PATH_LIKE_RE = re.compile(r"^[\w./@-]+\.[A-Za-z0-9]+$")


def detect_response_format(response: str) -> str:
    """Return "marker" for marker-format text, otherwise "json".

    Marker format is recognized by a FILE opener, or by a PLAN block
    together with an EXPLANATION block.
    """
    if not response:
        return FORMAT_JSON
    if _FILE_MARKER_RE.search(response):
        return FORMAT_MARKER
    if _PLAN_MARKER_RE.search(response) and _EXPLANATION_MARKER_RE.search(response):
        return FORMAT_MARKER
    return FORMAT_JSON


def is_marker_format_v2(response: str) -> bool:
    """True when a marker response carries a v2 META block."""
    return detect_response_format(response) == FORMAT_MARKER and bool(_META_MARKER_RE.search(response))


def _json_key_tokens(response: str):
    """Yield (path, value_token_index, tokens) for every string used as an object key."""
    tokens = [t for t in tokenize(response) if not (t.kind == OTHER and not t.value.strip())]
    for index, token in enumerate(tokens[:-1]):
        if token.kind != STRING or not token.terminated:
            continue
        after = tokens[index + 1]
        if after.kind != OTHER or not after.value.lstrip().startswith(":"):
            continue
        yield decode_json_string(token.value[1:-1]), index + 2, tokens


def _json_plan_paths(response: str) -> List[str]:
    """Create/update paths from a ``"plan": {...}`` object, if it is complete."""
    for key, value_index, tokens in _json_key_tokens(response):
        if key != "plan" or value_index >= len(tokens):
            continue
        value = tokens[value_index]
        if value.kind != OPEN or value.value != "{":
            continue
        end = find_matching_close(response, value.start)
        if end == -1:
            return []
        try:
            plan = build_plan(loads_lenient(response[value.start:end]))
        except json.JSONDecodeError:
            return []
        return plan.planned_files() if plan else []
    return []


def _json_value_complete(tokens, value_index: int, response: str) -> bool:
    if value_index >= len(tokens):
        return False
    value = tokens[value_index]
    if value.kind == STRING:
        if not value.terminated or value_index + 1 >= len(tokens):
            return False
        following = tokens[value_index + 1]
        return following.kind == CLOSE or (following.kind == OTHER and following.value.lstrip().startswith(","))
    if value.kind == OPEN:
        return find_matching_close(response, value.start) != -1
    return False


class ResponseParser:
    """Parses model responses with one set of injected tables.

    Args:
        config: Parser configuration; defaults are used when omitted
    """

    def __init__(self, config: Optional[ParserConfig] = None):
        self.config = config or ParserConfig()
        self.policy = PathPolicy(self.config.ignored_paths)
        self.sanitizer = Sanitizer(
            bare_specifier_dirs=self.config.bare_specifier_dirs,
            fix_bare_specifiers=self.config.fix_bare_specifiers,
            insert_missing_arrows=self.config.insert_missing_arrows,
        )
        self.json_parser = JsonResponseParser(self.config, self.policy, self.sanitizer)
        self.marker_parser = MarkerFileParser(self.policy, self.sanitizer)
        self.manifest_validator = ManifestValidator(self.policy)

    # ------------------------------------------------------------------
    # Full parse
    # ------------------------------------------------------------------

    def parse(self, response: str) -> ParsedResponse:
        """Parse a complete (or truncated) response.

        Raises:
            ResponseParseError: a subtype naming why no files could be produced
        """
        if not response or not response.strip():
            logger.error("Empty response")
            raise EmptyResponseError("Response is empty", suggestion="Retry the request")

        if len(response) > self.config.max_response_size:
            logger.error(f"Response too large: {len(response)} chars")
            raise ResponseTooLargeError(
                f"Response is {len(response)} characters, limit is {self.config.max_response_size}",
                suggestion="Request fewer files per batch",
            )

        response_format = detect_response_format(response)
        logger.debug(f"Detected {response_format} format ({len(response)} chars)")

        if response_format == FORMAT_MARKER:
            result = self._parse_marker(response)
        else:
            result = self.json_parser.parse(response)

        if result.manifest:
            result.validation = self.manifest_validator.validate(result.manifest, result.files)
        self._check_declared_files(result)

        if result.incomplete_files:
            logger.warning(f"Response has incomplete files that are not included: {result.incomplete_files}")
        if result.recovered_files:
            logger.info(f"Files recovered from malformed response: {result.recovered_files}")

        logger.info(f"Parsed {response_format} response: {len(result.files)} file(s), truncated={result.truncated}")
        return result

    def _parse_marker(self, response: str) -> ParsedResponse:
        scan = self.marker_parser.scan(response)
        if not scan.complete and not scan.streaming:
            logger.error("Marker response contains no file blocks")
            raise NoStructureFoundError(
                "Marker response contains no FILE blocks",
                suggestion="Ask the model to emit each file inside <!-- FILE:path --> markers",
            )

        result = ParsedResponse(format=FORMAT_MARKER, files=dict(scan.complete))
        result.recovered_files = list(scan.recovered)
        for path in scan.recovered:
            result.warnings.append(f"File {path} had missing closing marker - recovered")

        incomplete = [path for path in scan.streaming if path not in scan.complete]
        if incomplete:
            result.incomplete_files = incomplete
            result.truncated = True

        result.meta = parse_marker_meta(response)
        result.plan = parse_marker_plan(response)
        result.manifest = parse_marker_manifest(response)
        result.explanation = parse_marker_explanation(response)
        if result.plan and result.plan.delete:
            result.deleted_files = [
                path for path in (self.policy.normalize(p) for p in result.plan.delete)
                if not self.policy.is_ignored(path)
            ]

        sources = {}
        batch = parse_marker_batch(response)
        if batch is not None:
            sources[ProgressSource.BATCH] = batch
        generation_meta = parse_marker_generation_meta(response)
        if generation_meta is not None:
            sources[ProgressSource.GENERATION_META] = generation_meta

        report = resolve_progress(sources, result.files.keys(), result.plan)
        result.generation_meta = report.generation_meta
        result.batch = report.batch
        result.warnings.extend(report.conflicts)
        return result

    def _check_declared_files(self, result: ParsedResponse):
        """Warn about plan or manifest files that never arrived."""
        declared: List[str] = []
        if result.plan:
            declared.extend(result.plan.planned_files())
        if result.manifest:
            declared.extend(self.manifest_validator.expected_files(result.manifest))

        later = set(result.batch.remaining) if result.batch else set()
        incomplete = set(result.incomplete_files)
        missing = []
        for raw in declared:
            path = self.policy.normalize(raw)
            if path in result.files or path in later or path in incomplete or path in missing:
                continue
            if self.policy.is_ignored(path):
                continue
            missing.append(path)

        if missing:
            message = f"Declared files not delivered: {', '.join(missing)}"
            logger.warning(message)
            result.warnings.append(message)

    # ------------------------------------------------------------------
    # Streaming helpers
    # ------------------------------------------------------------------

    def _filter_paths(self, paths: Iterable[str]) -> List[str]:
        kept = set()
        for raw in paths:
            path = self.policy.normalize(raw)
            if path and not self.policy.is_ignored(path):
                kept.add(path)
        return sorted(kept)

    def extract_file_list(self, response: str) -> List[str]:
        """Every path the response mentions so far, sorted and deduplicated.

        Marker responses contribute PLAN entries and FILE openers. JSON
        responses contribute the ``// PLAN:`` comment, a complete ``plan``
        object and every path-like object key.
        """
        if not response:
            return []

        if detect_response_format(response) == FORMAT_MARKER:
            paths = []
            plan = parse_marker_plan(response)
            if plan:
                paths.extend(plan.planned_files())
            paths.extend(extract_marker_paths(response))
            return self._filter_paths(paths)

        paths = []
        _, comment_plan = strip_plan_comment(response)
        if comment_plan:
            paths.extend(comment_plan.planned_files())
        paths.extend(_json_plan_paths(response))
        for key, _, _ in _json_key_tokens(response):
            if _PATH_LIKE_RE.match(key):
                paths.append(key)
        return self._filter_paths(paths)

    def get_streaming_status(self, response: str, detected_so_far: AbstractSet[str] = frozenset()) -> StreamingStatus:
        """Split known files into pending, streaming and complete.

        Args:
            response: Text received so far
            detected_so_far: Paths the caller has already seen start streaming
                (owned by the caller; JSON format only)
        """
        if detect_response_format(response or "") == FORMAT_MARKER:
            plan = parse_marker_plan(response)
            streaming = self.marker_parser.parse_streaming(response)
            complete = list(streaming.complete)
            planned = self._filter_paths(plan.planned_files()) if plan else []
            pending = [p for p in planned if p not in streaming.complete and p != streaming.current_file]
            return StreamingStatus(
                pending=pending,
                streaming=[streaming.current_file] if streaming.current_file else [],
                complete=complete,
            )

        all_files = self.extract_file_list(response or "")
        complete_set = set()
        for key, value_index, tokens in _json_key_tokens(response or ""):
            path = self.policy.normalize(key)
            if path in all_files and _json_value_complete(tokens, value_index, response):
                complete_set.add(path)

        complete = [f for f in all_files if f in complete_set]
        streaming = [f for f in all_files if f not in complete_set and f in detected_so_far]
        pending = [f for f in all_files if f not in complete_set and f not in detected_so_far]
        return StreamingStatus(pending=pending, streaming=streaming, complete=complete)

    def has_files(self, response: str) -> bool:
        """Cheap check for file payloads, without parsing."""
        if not response:
            return False
        if detect_response_format(response) == FORMAT_MARKER:
            return bool(_FILE_MARKER_RE.search(response))
        return bool(_JSON_FILES_RE.search(response) or _JSON_PATH_KEY_RE.search(response))


def get_batch_continuation_prompt(result: ParsedResponse) -> Optional[str]:
    """Build the follow-up prompt asking for the files still to come.

    Returns None when the batch is complete or nothing remains.
    """
    batch = result.batch
    if batch is None or batch.is_complete or not batch.remaining:
        return None

    completed = batch.completed
    lines = [
        f"Continue generating the remaining {len(batch.remaining)} files.",
        "",
        f"ALREADY COMPLETED ({len(completed)} files):",
        *[f"- {path}" for path in completed],
        "",
        "REMAINING FILES TO GENERATE:",
        *[f"- {path}" for path in batch.remaining],
        "",
        f"Use the same format and structure. This is batch {batch.current + 1} of {batch.total}.",
    ]
    return "\n".join(lines)


_DEFAULT_PARSER: Optional[ResponseParser] = None


def get_default_parser() -> ResponseParser:
    global _DEFAULT_PARSER
    if _DEFAULT_PARSER is None:
        _DEFAULT_PARSER = ResponseParser()
    return _DEFAULT_PARSER


def parse(response: str) -> ParsedResponse:
    """Parse with the default configuration."""
    return get_default_parser().parse(response)


def extract_file_list_unified(response: str) -> List[str]:
    return get_default_parser().extract_file_list(response)


def get_streaming_status_unified(response: str, detected_so_far: AbstractSet[str] = frozenset()) -> StreamingStatus:
    return get_default_parser().get_streaming_status(response, detected_so_far)


def has_files(response: str) -> bool:
    return get_default_parser().has_files(response)
