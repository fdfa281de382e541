"""
UpdateAppender -- appends one timeline entry to an authorized batch.

Responsibility:
    Validates the proposed entry, then performs one conditional write on the
    batch row: append to ``updates``, set ``current_stage``, recompute
    ``integrity_hash``, reset ``sync_status`` and bump ``version``.

Architecture position:
    Kernel > Services.  Receives the Batch returned by
    OwnershipGuard.authorize() in the same transaction.

Invariants enforced:
    - len(updates) grows by exactly one per call; prior entries are copied
      unchanged.
    - current_stage equals the stage of the appended entry.
    - The UPDATE is keyed by row id AND the version that was loaded.  If the
      row is gone or has moved on, nothing is written.

Failure modes:
    - ValidationError: malformed entry (nothing written).
    - UpdateFailedError: the conditional write matched no row or the
      database refused it.  Never retried.
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from cropchain_kernel.domain.clock import Clock
from cropchain_kernel.domain.dtos import BatchInfo, UpdateSpec
from cropchain_kernel.domain.stages import SyncStatus
from cropchain_kernel.domain.validation import validate_update
from cropchain_kernel.exceptions import UpdateFailedError
from cropchain_kernel.logging_config import get_logger
from cropchain_kernel.models.batch import Batch
from cropchain_kernel.services.base import BaseService
from cropchain_kernel.utils.hashing import IntegrityHasher, compute_integrity_hash

logger = get_logger("services.update_appender")


class UpdateAppender(BaseService[Batch]):
    """Writes timeline entries.  Stage order is not enforced."""

    def __init__(
        self,
        session: Session,
        clock: Clock,
        hasher: IntegrityHasher = compute_integrity_hash,
    ):
        super().__init__(session)
        self._clock = clock
        self._hasher = hasher

    def append_update(self, batch: Batch, update: UpdateSpec) -> BatchInfo:
        """
        Append ``update`` to ``batch`` and flush.

        Preconditions:
            - ``batch`` was loaded (and authorized) in this session.

        Returns:
            The post-update batch.

        Raises:
            ValidationError: entry shape is invalid.
            UpdateFailedError: the write failed.
        """
        now = self._clock.now_utc()
        entry = validate_update(update, now)
        previous_stage = batch.current_stage

        # Reassign so the JSON column is flagged dirty.
        batch.updates = [*batch.updates, entry]
        batch.current_stage = entry["stage"]
        batch.sync_status = SyncStatus.PENDING.value
        batch.updated_at = now
        batch.integrity_hash = self._hasher(batch.integrity_payload(), now)

        # A failed flush expires the instance; read nothing from it afterwards.
        batch_id = batch.batch_id
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.error(
                "batch_update_failed",
                extra={"batch_id": batch_id, "reason": "stale_or_deleted"},
            )
            raise UpdateFailedError(
                batch_id, "batch was modified or deleted concurrently"
            ) from exc
        except SQLAlchemyError as exc:
            logger.error(
                "batch_update_failed",
                extra={"batch_id": batch_id, "reason": type(exc).__name__},
            )
            raise UpdateFailedError(batch_id, type(exc).__name__) from exc

        logger.info(
            "batch_update_appended",
            extra={
                "batch_id": batch_id,
                "from_stage": previous_stage,
                "to_stage": entry["stage"],
                "update_count": len(batch.updates),
                "version": batch.version,
            },
        )
        return BatchInfo.from_model(batch)
