"""Normalization of the three historical "how much work is left" shapes.

A response can describe multi-batch progress as:

- ``batch`` (current protocol): ``{current, total, isComplete, completed, remaining, nextBatchHint}``
- ``generationMeta`` (legacy): ``{totalFilesPlanned, filesInThisBatch, completedFiles, ...}``
- ``continuation`` (oldest): ``{prompt, remainingFiles, currentBatch, totalBatches}``

Each shape has one adapter into the canonical ``GenerationMeta``. When more
than one is present the precedence is explicit, batch > generationMeta >
continuation, and disagreements about remaining files are reported as
conflicts rather than silently dropped.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from models.schemas import Batch, FilePlan, GenerationMeta, ProgressSource
from utils.logging import get_logger

logger = get_logger("progress")

PRECEDENCE: Tuple[ProgressSource, ...] = (
    ProgressSource.BATCH,
    ProgressSource.GENERATION_META,
    ProgressSource.CONTINUATION,
)


@dataclass
class ProgressReport:
    """Canonical progress plus any conflicts found between sources."""
    generation_meta: Optional[GenerationMeta] = None
    batch: Optional[Batch] = None
    conflicts: List[str] = field(default_factory=list)


def _int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed or default


def _str_list(value: Any) -> Optional[List[str]]:
    if isinstance(value, list):
        return [str(v) for v in value if isinstance(v, (str, int, float))]
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return None


def _bool(value: Any, default: bool = True) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return default


def _batch_fields(batch: Batch) -> Dict[str, Any]:
    return {
        "current": batch.current,
        "total": batch.total,
        "isComplete": batch.is_complete,
        "completed": batch.completed or None,
        "remaining": batch.remaining,
        "nextBatchHint": batch.next_batch_hint,
    }


def from_batch(raw: Union[Mapping[str, Any], Batch], files: Iterable[str], plan: Optional[FilePlan] = None) -> GenerationMeta:
    """Adapt a ``batch`` object or a parsed BATCH block.

    Completed defaults to the delivered files.
    """
    if isinstance(raw, Batch):
        raw = _batch_fields(raw)
    delivered = list(files)
    completed = _str_list(raw.get("completed"))
    return GenerationMeta(
        total_files_planned=plan.total if plan else 0,
        files_in_this_batch=delivered,
        completed_files=completed if completed is not None else delivered,
        remaining_files=_str_list(raw.get("remaining")) or [],
        current_batch=_int(raw.get("current"), 1),
        total_batches=_int(raw.get("total"), 1),
        is_complete=_bool(raw.get("isComplete")),
        next_batch_hint=str(raw["nextBatchHint"]) if raw.get("nextBatchHint") else None,
        source=ProgressSource.BATCH,
    )


def from_generation_meta(raw: Mapping[str, Any], files: Iterable[str] = (), plan: Optional[FilePlan] = None) -> GenerationMeta:
    """Adapt a legacy ``generationMeta`` object, which carries its own lists."""
    return GenerationMeta(
        total_files_planned=_int(raw.get("totalFilesPlanned"), 0),
        files_in_this_batch=_str_list(raw.get("filesInThisBatch")) or [],
        completed_files=_str_list(raw.get("completedFiles")) or [],
        remaining_files=_str_list(raw.get("remainingFiles")) or [],
        current_batch=_int(raw.get("currentBatch"), 1),
        total_batches=_int(raw.get("totalBatches"), 1),
        is_complete=_bool(raw.get("isComplete")),
        source=ProgressSource.GENERATION_META,
    )


def from_continuation(raw: Mapping[str, Any], files: Iterable[str], plan: Optional[FilePlan] = None) -> GenerationMeta:
    """Adapt the oldest ``continuation`` object.

    It has no completion flag, so completion is inferred from whether any
    files remain.
    """
    delivered = list(files)
    remaining = _str_list(raw.get("remainingFiles")) or []
    return GenerationMeta(
        total_files_planned=len(remaining) + len(delivered),
        files_in_this_batch=delivered,
        completed_files=delivered,
        remaining_files=remaining,
        current_batch=_int(raw.get("currentBatch"), 1),
        total_batches=_int(raw.get("totalBatches"), 1),
        is_complete=not remaining,
        next_batch_hint=str(raw["prompt"]) if raw.get("prompt") else None,
        source=ProgressSource.CONTINUATION,
    )


ADAPTERS = {
    ProgressSource.BATCH: from_batch,
    ProgressSource.GENERATION_META: from_generation_meta,
    ProgressSource.CONTINUATION: from_continuation,
}


def collect_sources(parsed: Mapping[str, Any]) -> Dict[ProgressSource, Mapping[str, Any]]:
    """Return the progress objects present in a parsed response, by source."""
    found = {}
    for source in PRECEDENCE:
        raw = parsed.get(source.value)
        if isinstance(raw, Mapping):
            found[source] = raw
    return found


def resolve_progress(
    sources: Mapping[ProgressSource, Any],
    files: Iterable[str],
    plan: Optional[FilePlan] = None,
) -> ProgressReport:
    """Normalize every present source and pick the highest-priority one.

    ``sources`` values are either raw mappings (run through the matching
    adapter) or already-built ``GenerationMeta`` objects.
    """
    delivered = list(files)
    normalized: List[GenerationMeta] = []
    for source in PRECEDENCE:
        if source not in sources:
            continue
        value = sources[source]
        if isinstance(value, GenerationMeta):
            normalized.append(value)
        else:
            normalized.append(ADAPTERS[source](value, delivered, plan))

    report = ProgressReport()
    if not normalized:
        return report

    winner = normalized[0]
    for other in normalized[1:]:
        if set(other.remaining_files) != set(winner.remaining_files):
            message = (
                f"Progress conflict: {winner.source.value} lists "
                f"{len(winner.remaining_files)} remaining file(s), "
                f"{other.source.value} lists {len(other.remaining_files)}; "
                f"using {winner.source.value}"
            )
            logger.warning(message)
            report.conflicts.append(message)

    report.generation_meta = winner
    report.batch = winner.to_batch()
    logger.debug(
        f"Progress from {winner.source.value}: batch {winner.current_batch}/{winner.total_batches}, "
        f"remaining={len(winner.remaining_files)}"
    )
    return report
