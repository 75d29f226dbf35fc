"""Parsers for the labeled regions of the marker wire format.

The marker format delimits each region with an HTML-comment pair:

```
<!-- META -->
format: marker
version: 2.0
<!-- /META -->

<!-- PLAN -->
create: src/App.tsx, src/components/Header.tsx
update: src/pages/Home.tsx
delete: src/old/Legacy.tsx
sizes: src/App.tsx:25, src/components/Header.tsx:40
<!-- /PLAN -->

<!-- MANIFEST -->
| File | Action | Lines | Tokens | Status |
|------|--------|-------|--------|--------|
| src/App.tsx | create | 45 | ~320 | included |
<!-- /MANIFEST -->

<!-- EXPLANATION -->
Free text.
<!-- /EXPLANATION -->

<!-- BATCH -->
current: 1
total: 3
isComplete: false
remaining: src/utils/helpers.ts
<!-- /BATCH -->
```

Every parser is independent and returns None when its block is absent.
A missing block is never an error.
"""

import re
from typing import Dict, List, Optional

from models.schemas import (
    Batch,
    FILE_ACTIONS,
    FilePlan,
    GenerationMeta,
    MANIFEST_STATUSES,
    ManifestEntry,
    MarkerMeta,
)
from utils.logging import get_logger
from utils.progress import from_generation_meta

logger = get_logger("marker_blocks")

BLOCK_PLAN = "PLAN"
BLOCK_EXPLANATION = "EXPLANATION"
BLOCK_GENERATION_META = "GENERATION_META"
BLOCK_META = "META"
BLOCK_MANIFEST = "MANIFEST"
BLOCK_BATCH = "BATCH"

METADATA_BLOCKS = (
    BLOCK_PLAN, BLOCK_EXPLANATION, BLOCK_GENERATION_META,
    BLOCK_META, BLOCK_MANIFEST, BLOCK_BATCH,
)

_BLOCK_PATTERNS = {
    name: re.compile(r"<!--\s*" + name + r"\s*-->([\s\S]*?)<!--\s*/" + name + r"\s*-->")
    for name in METADATA_BLOCKS
}
_ANY_METADATA_BLOCK_RE = re.compile(
    r"<!--\s*(" + "|".join(METADATA_BLOCKS) + r")\s*-->[\s\S]*?<!--\s*/\1\s*-->"
)

GENERATION_META_KEYS = (
    "totalFilesPlanned", "filesInThisBatch", "completedFiles", "remainingFiles",
    "currentBatch", "totalBatches", "isComplete",
)
BATCH_KEYS = ("current", "total", "isComplete", "completed", "remaining", "nextBatchHint")
META_KEYS = ("format", "version", "timestamp")


def extract_block(response: str, name: str) -> Optional[str]:
    """Return the stripped interior of the first ``name`` block, or None."""
    pattern = _BLOCK_PATTERNS.get(name)
    if pattern is None:
        pattern = re.compile(r"<!--\s*" + re.escape(name) + r"\s*-->([\s\S]*?)<!--\s*/" + re.escape(name) + r"\s*-->")
    match = pattern.search(response)
    return match.group(1).strip() if match else None


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_int(value: str, default: int) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return default


def read_block_fields(content: str, keys, case_sensitive: bool = True) -> Dict[str, str]:
    """Read ``key: value`` lines, keeping only recognized keys.

    Values are split on the first colon. With ``case_sensitive=False`` the
    returned keys are the canonical spellings from ``keys``.
    """
    lookup = {k if case_sensitive else k.lower(): k for k in keys}
    fields: Dict[str, str] = {}
    for line in content.split("\n"):
        line = line.strip()
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip()
        canonical = lookup.get(key if case_sensitive else key.lower())
        if canonical is None:
            continue
        fields[canonical] = value.strip()
    return fields


def parse_marker_plan(response: str) -> Optional[FilePlan]:
    """Parse the PLAN block.

    ``create:``, ``update:`` and ``delete:`` hold comma lists of paths.
    ``sizes:`` holds ``path:lines`` pairs split on the last colon.
    """
    content = extract_block(response, BLOCK_PLAN)
    if content is None:
        return None

    lists: Dict[str, List[str]] = {"create": [], "update": [], "delete": []}
    sizes: Dict[str, int] = {}

    for line in content.split("\n"):
        line = line.strip()
        for key in lists:
            if line.startswith(f"{key}:"):
                lists[key] = _split_list(line[len(key) + 1:])
                break
        else:
            if line.startswith("sizes:"):
                for pair in _split_list(line[len("sizes:"):]):
                    path, sep, size = pair.rpartition(":")
                    path = path.strip()
                    if not sep or not path:
                        continue
                    try:
                        sizes[path] = int(size.strip())
                    except ValueError:
                        logger.debug(f"Ignoring non-numeric size for {path}: {size!r}")

    return FilePlan(create=lists["create"], update=lists["update"], delete=lists["delete"], sizes=sizes)


def parse_marker_explanation(response: str) -> Optional[str]:
    """Parse the EXPLANATION block."""
    return extract_block(response, BLOCK_EXPLANATION)


def parse_marker_generation_meta(response: str) -> Optional[GenerationMeta]:
    """Parse the v1 GENERATION_META block (keys are case-sensitive)."""
    content = extract_block(response, BLOCK_GENERATION_META)
    if content is None:
        return None
    fields = read_block_fields(content, GENERATION_META_KEYS)
    return from_generation_meta(fields)


def parse_marker_meta(response: str) -> Optional[MarkerMeta]:
    """Parse the v2 META block (keys are case-insensitive)."""
    content = extract_block(response, BLOCK_META)
    if content is None:
        return None
    fields = read_block_fields(content, META_KEYS, case_sensitive=False)
    return MarkerMeta(**fields)


def parse_marker_batch(response: str) -> Optional[Batch]:
    """Parse the v2 BATCH block (keys are case-sensitive)."""
    content = extract_block(response, BLOCK_BATCH)
    if content is None:
        return None

    fields = read_block_fields(content, BATCH_KEYS)
    batch = Batch(
        current=_parse_int(fields.get("current", ""), 1) or 1,
        total=_parse_int(fields.get("total", ""), 1) or 1,
        is_complete=fields["isComplete"].lower() == "true" if "isComplete" in fields else True,
        completed=_split_list(fields.get("completed", "")),
        remaining=_split_list(fields.get("remaining", "")),
        next_batch_hint=fields.get("nextBatchHint") or None,
    )
    return batch


def _parse_table_int(token: str) -> int:
    return _parse_int(re.sub(r"[~,]", "", token), 0)


def parse_marker_manifest(response: str) -> Optional[List[ManifestEntry]]:
    """Parse the MANIFEST table.

    Header and separator rows are skipped. Rows with fewer than five cells
    are ignored. Unknown actions become ``create`` and unknown statuses
    become ``included``. Returns None when no row parses.
    """
    content = extract_block(response, BLOCK_MANIFEST)
    if content is None:
        return None

    entries = []
    for line in content.split("\n"):
        line = line.strip()
        if not line.startswith("|"):
            continue

        cells = [c.strip() for c in line.split("|")]
        cells = [c for c in cells if c]
        if not cells or cells[0] == "File" or set(cells[0]) <= set("-: "):
            continue
        if len(cells) < 5:
            logger.debug(f"Skipping short manifest row: {line}")
            continue

        file, action, lines, tokens, status = cells[:5]
        action = action.lower()
        status = status.lower()
        entries.append(ManifestEntry(
            file=file,
            action=action if action in FILE_ACTIONS else "create",
            lines=_parse_table_int(lines),
            tokens=_parse_table_int(tokens),
            status=status if status in MANIFEST_STATUSES else "included",
        ))

    return entries or None


def strip_marker_metadata(response: str) -> str:
    """Remove every metadata block for display, leaving FILE blocks intact."""
    return _ANY_METADATA_BLOCK_RE.sub("", response).strip()
