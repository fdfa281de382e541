"""
Pure domain layer.

Data transfer objects, vocabulary enums, identifier formatting and shape
validation with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- System time (a Clock is always injected)
- I/O
"""

from cropchain_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from cropchain_kernel.domain.dtos import (
    BatchDraft,
    BatchInfo,
    BatchStats,
    CallerIdentity,
    UpdateInfo,
    UpdateSpec,
)
from cropchain_kernel.domain.identifiers import format_batch_id, parse_batch_id
from cropchain_kernel.domain.stages import (
    STAGE_ORDER,
    CallerRole,
    CropType,
    Stage,
    SyncStatus,
    normalize_stage,
)
from cropchain_kernel.domain.validation import validate_batch_draft, validate_update

__all__ = [
    "BatchDraft",
    "BatchInfo",
    "BatchStats",
    "CallerIdentity",
    "CallerRole",
    "Clock",
    "CropType",
    "DeterministicClock",
    "STAGE_ORDER",
    "Stage",
    "SyncStatus",
    "SystemClock",
    "UpdateInfo",
    "UpdateSpec",
    "format_batch_id",
    "normalize_stage",
    "parse_batch_id",
    "validate_batch_draft",
    "validate_update",
]
