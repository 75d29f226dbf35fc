"""Parser for the single-object JSON wire format.

Pipeline:
1. Pre-validation: reject empty input, prose-wrapped output and text with
   no object at all. A closed code fence is unwrapped and trailing commas
   are dropped.
2. A leading ``// PLAN: {...}`` comment is removed; its plan is kept.
3. Structural parse through the repair ladder in ``utils.json_repair``.
4. File extraction from ``files``, ``fileChanges``/``changes`` or
   path-like root keys, with every body sanitized.
5. Metadata: explanation, plan, manifest, deleted files and progress.

Failures raise a ``ResponseParseError`` subtype; a successful result
always carries at least one file.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple
import json
import re

from config import ParserConfig
from models.schemas import (
    FILE_ACTIONS,
    FilePlan,
    MANIFEST_STATUSES,
    ManifestEntry,
    MarkerMeta,
    ParsedResponse,
    SkippedFile,
)
from utils.errors import (
    EmptyResponseError,
    MetadataOnlyError,
    NoFilesExtractedError,
    NoStructureFoundError,
    ProseWrappedError,
)
from utils.json_lexer import find_matching_close, strip_trailing_commas
from utils.json_repair import TIER_SALVAGE, loads_lenient, parse_with_repair
from utils.logging import get_logger
from utils.path_policy import PathPolicy
from utils.progress import collect_sources, resolve_progress
from utils.sanitizer import LANGUAGE_TAGS, Sanitizer

logger = get_logger("json_response_parser")

FILE_CONTAINER_KEYS = ("files", "fileChanges", "Changes", "changes")
CONTENT_KEYS = ("content", "code", "diff")
METADATA_KEYS = (
    "explanation", "description", "plan", "manifest", "batch", "generationMeta",
    "continuation", "deletedFiles", "meta",
)

_BOM_RE = re.compile(r"^[\ufeff\u200b-\u200d\u00a0]+")
_FENCE_LINE_RE = re.compile(r"^[ \t]*```[\w+.#-]*[ \t]*$", re.MULTILINE)
_FENCED_BLOCK_RE = re.compile(r"^[ \t]*```[\w+.#-]*[ \t]*\n([\s\S]*?)\n[ \t]*```[ \t]*$", re.MULTILINE)
_PLAN_COMMENT_RE = re.compile(r"\A\s*//\s*PLAN:\s*")
_LANGUAGE_TAG_RE = re.compile(r"(?:" + "|".join(LANGUAGE_TAGS) + r");?", re.IGNORECASE)


def _coerce_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(re.sub(r"[~,\s]", "", value))
        except ValueError:
            return default
    return default


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item.strip()]


def build_plan(raw: Any) -> Optional[FilePlan]:
    """Build a FilePlan from a decoded ``plan`` object, or None if it is not one."""
    if not isinstance(raw, Mapping):
        return None
    sizes = None
    if isinstance(raw.get("sizes"), Mapping):
        sizes = {str(k): _coerce_int(v) for k, v in raw["sizes"].items()}
    return FilePlan(
        create=_string_list(raw.get("create")),
        update=_string_list(raw.get("update")),
        delete=_string_list(raw.get("delete")),
        sizes=sizes,
    )


def build_manifest(raw: Any) -> Optional[List[ManifestEntry]]:
    """Build manifest entries from a decoded ``manifest`` array.

    Entries name their file with ``path`` or ``file``; entries naming
    neither are dropped.
    """
    if not isinstance(raw, list):
        return None
    entries = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        file = item.get("path") or item.get("file")
        if not isinstance(file, str) or not file.strip():
            continue
        action = str(item.get("action", "")).lower()
        status = str(item.get("status", "")).lower()
        entries.append(ManifestEntry(
            file=file.strip(),
            action=action if action in FILE_ACTIONS else "create",
            lines=_coerce_int(item.get("lines")),
            tokens=_coerce_int(item.get("tokens")),
            status=status if status in MANIFEST_STATUSES else "included",
        ))
    return entries or None


def strip_plan_comment(text: str) -> Tuple[str, Optional[FilePlan]]:
    """Remove a leading ``// PLAN: {...}`` comment.

    The plan object may nest, so its end is found by matching braces over
    lexer tokens rather than with a regex.

    Returns:
        Tuple of (remaining text, plan parsed from the comment or None)
    """
    match = _PLAN_COMMENT_RE.match(text)
    if not match:
        return text, None

    brace = text.find("{", match.end())
    line_end = text.find("\n", match.end())
    if brace == -1 or (line_end != -1 and brace > line_end):
        # no object on the comment line, drop just the line
        return (text[line_end + 1:] if line_end != -1 else ""), None

    end = find_matching_close(text, brace)
    if end == -1:
        logger.debug("PLAN comment never closes, dropping the comment line")
        return (text[line_end + 1:] if line_end != -1 else ""), None

    plan = None
    try:
        plan = build_plan(loads_lenient(text[brace:end]))
    except json.JSONDecodeError as e:
        logger.debug(f"PLAN comment is not valid JSON: {e}")

    logger.debug("Stripped leading PLAN comment")
    return text[end:].lstrip(), plan


class JsonResponseParser:
    """Parses JSON-format responses with injected tables.

    Args:
        config: Parser configuration (tables and thresholds)
        policy: Path policy; built from ``config.ignored_paths`` when omitted
        sanitizer: Sanitizer; built from ``config`` when omitted
    """

    def __init__(
        self,
        config: Optional[ParserConfig] = None,
        policy: Optional[PathPolicy] = None,
        sanitizer: Optional[Sanitizer] = None,
    ):
        self.config = config or ParserConfig()
        self.policy = policy or PathPolicy(self.config.ignored_paths)
        self.sanitizer = sanitizer or Sanitizer(
            bare_specifier_dirs=self.config.bare_specifier_dirs,
            fix_bare_specifiers=self.config.fix_bare_specifiers,
            insert_missing_arrows=self.config.insert_missing_arrows,
        )

    def pre_validate(self, response: str) -> str:
        """Reject obviously unusable input and return the normalized text.

        Raises:
            EmptyResponseError: input is empty or whitespace
            ProseWrappedError: unclosed code fence or a prose preamble
            NoStructureFoundError: no "{" anywhere
        """
        text = _BOM_RE.sub("", (response or "").strip()).strip()
        if not text:
            logger.error("Empty response")
            raise EmptyResponseError(
                "Response is empty",
                suggestion="Retry the request",
            )

        if len(_FENCE_LINE_RE.findall(text)) % 2 == 1:
            logger.error("Response has an unclosed code fence")
            raise ProseWrappedError(
                "Response has an unclosed code fence",
                suggestion="Ask for the raw JSON object without markdown fences",
            )

        # Checked before unwrapping: a preamble ahead of a fence is still prose
        for prefix in self.config.prose_prefixes:
            if text.startswith(prefix):
                logger.error(f"Response starts with prose: {prefix!r}")
                raise ProseWrappedError(
                    f"Response starts with prose ({prefix!r}) instead of JSON",
                    suggestion="Ask for a single JSON object with no surrounding text",
                )

        for block in _FENCED_BLOCK_RE.finditer(text):
            if "{" in block.group(1):
                text = block.group(1).strip()
                logger.debug("Unwrapped fenced JSON block")
                break

        if "{" not in text:
            logger.error("No JSON object found in response")
            raise NoStructureFoundError(
                "No JSON object found in response",
                suggestion="Ask for the files as a JSON object",
            )

        return text

    def _object_text(self, text: str) -> str:
        """Slice from the first "{" to its matching close, or to the end if truncated."""
        start = text.find("{")
        end = find_matching_close(text, start)
        candidate = text[start:end] if end != -1 else text[start:]
        candidate, removed = strip_trailing_commas(candidate)
        if removed:
            logger.debug(f"Removed {removed} trailing comma(s)")
        return candidate

    def _file_container(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        for key in FILE_CONTAINER_KEYS:
            container = data.get(key)
            if isinstance(container, Mapping) and container:
                return dict(container)
            if isinstance(container, list) and container:
                # [{"path": ..., "content": ...}, ...]
                entries = {}
                for item in container:
                    if isinstance(item, Mapping):
                        path = item.get("path") or item.get("file")
                        if isinstance(path, str):
                            entries[path] = item
                if entries:
                    return entries
        return {k: v for k, v in data.items() if "." in k or "/" in k}

    def _content_of(self, value: Any) -> Optional[str]:
        if isinstance(value, str):
            return value
        if isinstance(value, Mapping):
            for key in CONTENT_KEYS:
                if isinstance(value.get(key), str):
                    return value[key]
        return None

    def extract_files(self, data: Mapping[str, Any]) -> Tuple[Dict[str, str], List[SkippedFile], int]:
        """Collect sanitized file bodies from a decoded object.

        Returns:
            Tuple of (files, skipped entries, number of path-like keys seen)
        """
        files: Dict[str, str] = {}
        skipped: List[SkippedFile] = []
        candidates = 0

        for key, value in self._file_container(data).items():
            if not isinstance(key, str) or ("." not in key and "/" not in key):
                continue
            candidates += 1
            path = self.policy.normalize(key)

            reason = None
            content = None
            if self.policy.is_ignored(path):
                reason = "ignored path"
            elif self.policy.is_malformed(path):
                reason = "malformed path"
            else:
                raw = self._content_of(value)
                if raw is None:
                    reason = "no content, code or diff string"
                else:
                    content = self.sanitizer.sanitize(raw, path)
                    if _LANGUAGE_TAG_RE.fullmatch(content.strip()):
                        reason = "content is a bare language tag"
                    elif len(content) < self.config.min_content_length:
                        reason = f"content shorter than {self.config.min_content_length} characters"

            if reason:
                logger.debug(f"Skipping {path}: {reason}")
                skipped.append(SkippedFile(path=path, reason=reason))
                continue
            files[path] = content

        return files, skipped, candidates

    def parse(self, response: str) -> ParsedResponse:
        """Parse a JSON-format response.

        Raises:
            ResponseParseError: a subtype naming why no files could be produced
        """
        text = self.pre_validate(response)
        text, comment_plan = strip_plan_comment(text)
        if "{" not in text:
            logger.error("Only a PLAN comment was found")
            raise MetadataOnlyError(
                "Response holds a PLAN comment but no JSON object",
                suggestion="Ask the model to continue with the files object",
            )

        ladder = parse_with_repair(self._object_text(text))
        data = ladder.data
        if ladder.truncated:
            logger.warning(f"Response was truncated, recovered via {ladder.tier}")

        files, skipped, candidates = self.extract_files(data)
        if not files:
            if skipped:
                logger.error(f"All {len(skipped)} file entries were skipped")
                raise NoFilesExtractedError(
                    f"All {len(skipped)} file entries were skipped",
                    skipped=skipped,
                    suggestion="Ask the model to resend the files with full content",
                )
            if candidates == 0 and any(key in data for key in METADATA_KEYS):
                logger.error("Response carries only explanation/metadata")
                raise MetadataOnlyError(
                    "Response carries an explanation or metadata but no files",
                    suggestion="Ask the model to include the file contents",
                )
            logger.error("No file entries found in response")
            raise NoStructureFoundError(
                "No file entries found in response",
                suggestion="Ask for a \"files\" object mapping paths to contents",
            )

        result = ParsedResponse(format="json", files=files, truncated=ladder.truncated)
        result.skipped_files = skipped
        if ladder.truncated:
            result.warnings.append(f"JSON was repaired from a truncated response ({ladder.tier})")
        if ladder.tier == TIER_SALVAGE:
            result.recovered_files = sorted(files)

        self._read_metadata(data, result, comment_plan)
        return result

    def _read_metadata(self, data: Mapping[str, Any], result: ParsedResponse, comment_plan: Optional[FilePlan]):
        for key in ("explanation", "description"):
            if isinstance(data.get(key), str):
                result.explanation = data[key]
                break

        result.plan = build_plan(data.get("plan")) or comment_plan
        result.manifest = build_manifest(data.get("manifest"))

        if isinstance(data.get("meta"), Mapping):
            meta = data["meta"]
            result.meta = MarkerMeta(
                format=str(meta.get("format") or "json"),
                version=str(meta.get("version") or "2.0"),
                timestamp=str(meta["timestamp"]) if meta.get("timestamp") else None,
            )

        deleted = result.plan.delete if result.plan and result.plan.delete else _string_list(data.get("deletedFiles"))
        result.deleted_files = [
            path for path in (self.policy.normalize(p) for p in deleted)
            if not self.policy.is_ignored(path)
        ]

        report = resolve_progress(collect_sources(data), result.files.keys(), result.plan)
        result.generation_meta = report.generation_meta
        result.batch = report.batch
        result.warnings.extend(report.conflicts)


def parse_json_response(response: str, config: Optional[ParserConfig] = None) -> ParsedResponse:
    """Parse a JSON-format response with the given (or default) configuration."""
    return JsonResponseParser(config).parse(response)
