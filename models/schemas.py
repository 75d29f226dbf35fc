"""Pydantic schemas for the response parser's data contracts.

Every parse call builds these fresh and hands them to the caller. The
parser keeps no reference to them afterwards.
"""

from enum import Enum
from pydantic import BaseModel, Field, model_validator
from typing import List, Dict, Optional, Literal


ResponseFormat = Literal["json", "marker"]
FileAction = Literal["create", "update", "delete"]
ManifestStatus = Literal["included", "marked", "pending", "skipped"]

FILE_ACTIONS = ("create", "update", "delete")
MANIFEST_STATUSES = ("included", "marked", "pending", "skipped")


class ProgressSource(str, Enum):
    """Where progress information came from, highest priority first."""
    BATCH = "batch"
    GENERATION_META = "generationMeta"
    CONTINUATION = "continuation"


# =============================================================================
# Plan / Manifest
# =============================================================================


class FilePlan(BaseModel):
    """Files the model declared it would create, update, or delete."""
    create: List[str] = Field(default_factory=list)
    update: List[str] = Field(default_factory=list)
    delete: List[str] = Field(default_factory=list)
    total: int = 0
    sizes: Optional[Dict[str, int]] = None  # Declared expected line counts

    @model_validator(mode="after")
    def compute_total(self):
        """Keep total in step with the create/update lists."""
        self.total = len(self.create) + len(self.update)
        return self

    def planned_files(self) -> List[str]:
        return [*self.create, *self.update]


class ManifestEntry(BaseModel):
    """One row of the declared file manifest."""
    file: str
    action: FileAction = "create"
    lines: int = 0
    tokens: int = 0
    status: ManifestStatus = "included"


class ManifestValidation(BaseModel):
    """Declared manifest reconciled against the files actually delivered."""
    expected: List[str] = Field(default_factory=list)
    received: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)
    extra: List[str] = Field(default_factory=list)
    is_valid: bool = True


# =============================================================================
# Progress
# =============================================================================


class Batch(BaseModel):
    """One page of a multi-turn generation."""
    current: int = 1
    total: int = 1
    is_complete: bool = True
    completed: List[str] = Field(default_factory=list)
    remaining: List[str] = Field(default_factory=list)
    next_batch_hint: Optional[str] = None

    @model_validator(mode="after")
    def complete_when_nothing_remains(self):
        if not self.remaining:
            self.is_complete = True
        return self


class GenerationMeta(BaseModel):
    """Canonical progress shape normalized from batch/generationMeta/continuation."""
    total_files_planned: int = 0
    files_in_this_batch: List[str] = Field(default_factory=list)
    completed_files: List[str] = Field(default_factory=list)
    remaining_files: List[str] = Field(default_factory=list)
    current_batch: int = 1
    total_batches: int = 1
    is_complete: bool = True
    next_batch_hint: Optional[str] = None
    source: Optional[ProgressSource] = None

    @model_validator(mode="after")
    def complete_when_nothing_remains(self):
        if not self.remaining_files:
            self.is_complete = True
        return self

    def to_batch(self) -> Batch:
        return Batch(
            current=self.current_batch,
            total=self.total_batches,
            is_complete=self.is_complete,
            completed=list(self.completed_files),
            remaining=list(self.remaining_files),
            next_batch_hint=self.next_batch_hint,
        )


class MarkerMeta(BaseModel):
    """META block of the v2 marker format."""
    format: str = "marker"
    version: str = "1.0"
    timestamp: Optional[str] = None


# =============================================================================
# Results
# =============================================================================


class SkippedFile(BaseModel):
    path: str
    reason: str


class ParsedResponse(BaseModel):
    """Canonical result of parsing one model response."""
    format: ResponseFormat = "json"
    files: Dict[str, str] = Field(default_factory=dict)
    explanation: Optional[str] = None
    plan: Optional[FilePlan] = None
    manifest: Optional[List[ManifestEntry]] = None
    batch: Optional[Batch] = None
    generation_meta: Optional[GenerationMeta] = None
    meta: Optional[MarkerMeta] = None
    truncated: bool = False
    incomplete_files: List[str] = Field(default_factory=list)
    recovered_files: List[str] = Field(default_factory=list)
    deleted_files: List[str] = Field(default_factory=list)
    skipped_files: List[SkippedFile] = Field(default_factory=list)
    validation: Optional[ManifestValidation] = None
    warnings: List[str] = Field(default_factory=list)

    def get_file_paths(self) -> List[str]:
        """Return the delivered file paths, sorted."""
        return sorted(self.files)

    def needs_continuation(self) -> bool:
        """True when the model said more batches are coming."""
        if self.batch is not None:
            return not self.batch.is_complete
        if self.generation_meta is not None:
            return not self.generation_meta.is_complete
        return False


class StreamingParseResult(BaseModel):
    """Files split by whether their closing marker has arrived."""
    complete: Dict[str, str] = Field(default_factory=dict)
    streaming: Dict[str, str] = Field(default_factory=dict)
    current_file: Optional[str] = None


class StreamingStatus(BaseModel):
    """Per-file progress for live display during streaming."""
    pending: List[str] = Field(default_factory=list)
    streaming: List[str] = Field(default_factory=list)
    complete: List[str] = Field(default_factory=list)
