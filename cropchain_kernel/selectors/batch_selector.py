"""
Module: cropchain_kernel.selectors.batch_selector
Responsibility: Read-only query access to batches and their timelines.
    Converts ORM models to frozen BatchInfo / UpdateInfo DTOs.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only: No mutations performed on any queried data.
    - Timelines are returned in append order.
    - Multi-batch results are ordered newest first (created_at, then
      batch_id, both descending).

Failure modes:
    - get_by_identifier() and timeline() raise BatchNotFoundError on a
      missing batch; find_by_identifier() returns None instead.
"""

from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, select

from cropchain_kernel.domain.dtos import BatchInfo, BatchStats, UpdateInfo
from cropchain_kernel.exceptions import BatchNotFoundError
from cropchain_kernel.logging_config import get_logger
from cropchain_kernel.models.batch import Batch
from cropchain_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.batch")

RECENT_WINDOW = timedelta(days=30)


class BatchSelector(BaseSelector[Batch]):
    """
    Selector for batch queries.

    Guarantees:
        - Every public method returns DTOs, never ORM instances.
        - Viewing a recalled batch through get_by_identifier() is logged at
          WARNING so consumers of recalled produce leave a trace.
    """

    def _load(self, batch_id: str) -> Batch | None:
        return self.session.execute(
            select(Batch).where(Batch.batch_id == batch_id)
        ).scalar_one_or_none()

    def find_by_identifier(self, batch_id: str) -> BatchInfo | None:
        """Get a batch by identifier, or None."""
        batch = self._load(batch_id)
        return BatchInfo.from_model(batch) if batch is not None else None

    def get_by_identifier(self, batch_id: str) -> BatchInfo:
        """
        Get a batch by identifier.

        Raises:
            BatchNotFoundError: if no such batch exists.
        """
        batch = self._load(batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        if batch.is_recalled:
            logger.warning(
                "recalled_batch_viewed",
                extra={"batch_id": batch_id, "recalled_by": batch.recalled_by},
            )
        return BatchInfo.from_model(batch)

    def list_all(self, limit: int | None = None) -> list[BatchInfo]:
        """All batches, newest first."""
        stmt = select(Batch).order_by(
            Batch.created_at.desc(), Batch.batch_id.desc()
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [BatchInfo.from_model(b) for b in self.session.scalars(stmt)]

    def list_by_farmer(self, farmer_id: str) -> list[BatchInfo]:
        """Batches owned by ``farmer_id``, newest first."""
        stmt = (
            select(Batch)
            .where(Batch.farmer_id == farmer_id)
            .order_by(Batch.created_at.desc(), Batch.batch_id.desc())
        )
        return [BatchInfo.from_model(b) for b in self.session.scalars(stmt)]

    def timeline(self, batch_id: str) -> tuple[UpdateInfo, ...]:
        """The batch's updates in append order."""
        batch = self._load(batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return tuple(UpdateInfo.from_entry(e) for e in batch.updates)

    def stats(self, now: datetime) -> BatchStats:
        """
        Dashboard aggregate.

        Args:
            now: Current time from the injected clock; batches created in
                the 30 days before it count as recent.

        unique_farmers counts distinct owners (farmer_id). farmer_name is
        optional free text, so it neither identifies nor always names a farmer.
        """
        total, quantity, farmers = self.session.execute(
            select(
                func.count(Batch.id),
                func.sum(Batch.quantity),
                func.count(func.distinct(Batch.farmer_id)),
            )
        ).one()
        recalled = self.session.scalar(
            select(func.count(Batch.id)).where(Batch.is_recalled.is_(True))
        )
        recent = self.session.scalar(
            select(func.count(Batch.id)).where(
                Batch.created_at >= now - RECENT_WINDOW
            )
        )
        return BatchStats(
            total_batches=total,
            total_quantity=Decimal(str(quantity or 0)),
            unique_farmers=farmers,
            recalled_batches=recalled or 0,
            recent_batches=recent or 0,
        )
