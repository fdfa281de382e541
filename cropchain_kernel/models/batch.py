"""
Module: cropchain_kernel.models.batch
Responsibility: ORM persistence for produce batches and their embedded,
    append-only supply-chain timeline.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/stages.py only.  MUST NOT import from services/ or selectors/.

Invariants enforced:
    - batch_id is globally unique (uq_batch_batch_id) and never changes.
      A duplicate INSERT raises IntegrityError, which the creation service
      turns into an identifier-collision retry.
    - updates is non-empty after creation and only ever grows; entries are
      never edited or removed.
    - current_stage equals updates[-1]["stage"].
    - is_recalled goes false -> true once, never back.
    - version is the optimistic-lock column: every UPDATE is issued as
      ``... WHERE id = :id AND version = :expected`` and bumps it.  A
      missing row (concurrent delete) or a stale version fails the write.

Ownership is plain string equality on farmer_id, not a foreign key, so the
ownership check needs only the batch row.

The timeline is embedded as an ordered JSON list so a batch and its history
are always read together in one fetch.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Boolean, Date, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from cropchain_kernel.db.base import TrackedBase
from cropchain_kernel.domain.stages import Stage, SyncStatus


BATCH_ID_CONSTRAINT = "uq_batch_batch_id"


class Batch(TrackedBase):
    """
    One tracked unit of harvested produce.

    Contract:
        Rows are created only by BatchCreationService, timeline entries are
        appended only by UpdateAppender, and is_recalled is set only by
        RecallService.

    Non-goals:
        - The model does NOT validate field ranges; that is
          domain/validation.py, run by the services before any write.
        - The model does NOT check stage ordering; any recognised stage may
          follow any other.
    """

    __tablename__ = "batches"

    __table_args__ = (
        UniqueConstraint("batch_id", name=BATCH_ID_CONSTRAINT),
        Index("idx_batch_farmer_id", "farmer_id"),
        Index("idx_batch_created_at", "created_at"),
        Index("idx_batch_current_stage", "current_stage"),
        Index("idx_batch_sync_status", "sync_status"),
        Index("idx_batch_is_recalled", "is_recalled"),
    )

    # External identifier, e.g. CROP-2024-007
    batch_id: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
    )

    # Owner reference
    farmer_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    farmer_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    farmer_address: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    crop_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    quantity: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    harvest_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    origin: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    certifications: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        default="",
    )

    description: Mapped[str] = mapped_column(
        String(1000),
        nullable=False,
        default="",
    )

    current_stage: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=Stage.FARMER.value,
    )

    # One-way recall flag
    is_recalled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    recalled_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    recalled_by: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    # Opaque pre-rendered visual code (data URL)
    qr_code: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default="",
    )

    integrity_hash: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )

    sync_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SyncStatus.PENDING.value,
    )

    # Ordered timeline: [{stage, actor, location, timestamp, notes}, ...]
    updates: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def can_be_updated(self) -> bool:
        return not self.is_recalled

    def integrity_payload(self) -> dict[str, Any]:
        """Fields covered by integrity_hash."""
        return {
            "batch_id": self.batch_id,
            "farmer_id": self.farmer_id,
            "crop_type": self.crop_type,
            "quantity": self.quantity,
            "harvest_date": self.harvest_date,
            "origin": self.origin,
            "current_stage": self.current_stage,
            "is_recalled": bool(self.is_recalled),
            "updates": list(self.updates or []),
        }

    def __repr__(self) -> str:
        return (
            f"<Batch {self.batch_id} stage={self.current_stage} "
            f"recalled={self.is_recalled} updates={len(self.updates or [])}>"
        )
