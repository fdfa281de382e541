"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that flow through the batch
    pipeline: CallerIdentity (who is asking), BatchDraft and UpdateSpec
    (proposed input), UpdateInfo and BatchInfo (persisted state handed back
    to callers), and BatchStats (read-side aggregate).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the service and selector layers.

Invariants enforced:
    - Callers never receive ORM entities; every public service and selector
      method returns these frozen DTOs.
    - BatchInfo.updates is a tuple: the timeline handed out cannot be
      mutated by the caller.

Data flow:
    BatchDraft -> Batch (ORM) -> BatchInfo
    UpdateSpec -> update entry (JSON) -> UpdateInfo
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from cropchain_kernel.domain.stages import CallerRole, CropType, Stage, SyncStatus

if TYPE_CHECKING:
    from cropchain_kernel.models.batch import Batch as BatchModel


@dataclass(frozen=True)
class CallerIdentity:
    """
    Identity resolved by the upstream authentication step.

    Contract:
        Trusted verbatim by the kernel.  ``farmer_id`` is the optional
        farmer-scoped identity; ownership matches either it or ``caller_id``.
    """

    caller_id: str
    role: CallerRole = CallerRole.FARMER
    farmer_id: str | None = None
    display_name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == CallerRole.ADMIN

    @property
    def owner_id(self) -> str:
        """Identity recorded as farmer_id on batches this caller creates."""
        return self.farmer_id or self.caller_id

    def identities(self) -> frozenset[str]:
        """Every identity string that counts as this caller for ownership."""
        ids = {self.caller_id}
        if self.farmer_id:
            ids.add(self.farmer_id)
        return frozenset(ids)


@dataclass(frozen=True)
class BatchDraft:
    """
    Proposed batch, as received from the upstream validator.

    ``qr_code`` and ``integrity_token`` are opaque artifacts produced by
    external collaborators; the kernel stores them without interpretation.
    """

    crop_type: str
    quantity: Decimal | int | float
    harvest_date: date
    origin: str
    farmer_name: str | None = None
    farmer_address: str | None = None
    certifications: str = ""
    description: str = ""
    qr_code: str = ""
    integrity_token: str | None = None


@dataclass(frozen=True)
class UpdateSpec:
    """Proposed timeline entry.  ``timestamp`` defaults to now when None."""

    stage: str
    actor: str
    location: str
    timestamp: datetime | None = None
    notes: str | None = None


@dataclass(frozen=True)
class UpdateInfo:
    """One immutable entry of a batch timeline."""

    stage: Stage
    actor: str
    location: str
    timestamp: datetime
    notes: str | None = None

    @classmethod
    def from_entry(cls, entry: dict[str, Any]) -> UpdateInfo:
        return cls(
            stage=Stage(entry["stage"]),
            actor=entry["actor"],
            location=entry["location"],
            timestamp=datetime.fromisoformat(entry["timestamp"]),
            notes=entry.get("notes"),
        )


@dataclass(frozen=True)
class BatchInfo:
    """Read-only snapshot of a persisted batch."""

    batch_id: str
    farmer_id: str
    farmer_name: str | None
    farmer_address: str | None
    crop_type: CropType
    quantity: Decimal
    harvest_date: date
    origin: str
    certifications: str
    description: str
    current_stage: Stage
    is_recalled: bool
    qr_code: str
    integrity_hash: str
    sync_status: SyncStatus
    created_at: datetime
    updated_at: datetime
    recalled_at: datetime | None = None
    recalled_by: str | None = None
    updates: tuple[UpdateInfo, ...] = field(default_factory=tuple)

    @property
    def can_be_updated(self) -> bool:
        return not self.is_recalled

    @classmethod
    def from_model(cls, batch: BatchModel) -> BatchInfo:
        return cls(
            batch_id=batch.batch_id,
            farmer_id=batch.farmer_id,
            farmer_name=batch.farmer_name,
            farmer_address=batch.farmer_address,
            crop_type=CropType(batch.crop_type),
            quantity=Decimal(batch.quantity),
            harvest_date=batch.harvest_date,
            origin=batch.origin,
            certifications=batch.certifications,
            description=batch.description,
            current_stage=Stage(batch.current_stage),
            is_recalled=batch.is_recalled,
            qr_code=batch.qr_code,
            integrity_hash=batch.integrity_hash,
            sync_status=SyncStatus(batch.sync_status),
            created_at=batch.created_at,
            updated_at=batch.updated_at,
            recalled_at=batch.recalled_at,
            recalled_by=batch.recalled_by,
            updates=tuple(UpdateInfo.from_entry(e) for e in batch.updates),
        )


@dataclass(frozen=True)
class BatchStats:
    """Dashboard aggregate over all batches."""

    total_batches: int
    total_quantity: Decimal
    unique_farmers: int
    recalled_batches: int
    recent_batches: int
