"""
Module: cropchain_kernel.models.counter
Responsibility: ORM persistence for named monotonic counters.  One row per
    allocator name (e.g. "batchId").
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - name is unique (uq_sequence_counter_name).  The allocator's upsert
      relies on this constraint as its conflict target.
    - current_value never decreases.  It is mutated only by
      SequenceService.allocate() (atomic increment-and-read) and
      SequenceService.retire() (conditional raise).
    - Rows are created lazily on first allocation and never deleted.
"""

from sqlalchemy import BigInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from cropchain_kernel.db.base import Base


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its last issued value.
    """

    __tablename__ = "sequence_counters"

    __table_args__ = (
        UniqueConstraint("name", name="uq_sequence_counter_name"),
    )

    # Sequence name (e.g., "batchId")
    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # Last issued value
    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )
