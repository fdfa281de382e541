"""
RecallService -- one-way administrative recall flag.

Once recalled, a batch stays recalled; there is no un-recall.  A repeated
recall is reported with AlreadyRecalledError rather than accepted silently.
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from cropchain_kernel.domain.clock import Clock
from cropchain_kernel.domain.dtos import BatchInfo, CallerIdentity
from cropchain_kernel.domain.stages import SyncStatus
from cropchain_kernel.exceptions import (
    AlreadyRecalledError,
    ForbiddenError,
    UpdateFailedError,
)
from cropchain_kernel.logging_config import get_logger
from cropchain_kernel.models.batch import Batch
from cropchain_kernel.services.base import BaseService
from cropchain_kernel.services.ownership_guard import OwnershipGuard
from cropchain_kernel.utils.hashing import IntegrityHasher, compute_integrity_hash

logger = get_logger("services.recall")


class RecallService(BaseService[Batch]):
    def __init__(
        self,
        session: Session,
        clock: Clock,
        hasher: IntegrityHasher = compute_integrity_hash,
    ):
        super().__init__(session)
        self._clock = clock
        self._hasher = hasher

    def recall(self, batch_id: str, admin: CallerIdentity) -> BatchInfo:
        """
        Set is_recalled on a batch, exactly once.

        Raises:
            BatchNotFoundError: no such batch.
            ForbiddenError: ``admin`` does not hold the admin role.
            AlreadyRecalledError: the batch is already recalled.
            UpdateFailedError: the write failed.
        """
        batch = OwnershipGuard(self.session).load_for_update(batch_id)

        if not admin.is_admin:
            logger.warning(
                "recall_denied",
                extra={"caller_id": admin.caller_id, "batch_id": batch_id},
            )
            raise ForbiddenError(
                admin.caller_id, batch_id, "Only administrators can recall batches"
            )

        if batch.is_recalled:
            raise AlreadyRecalledError(batch_id, batch.recalled_by)

        now = self._clock.now_utc()
        batch.is_recalled = True
        batch.recalled_at = now
        batch.recalled_by = admin.caller_id
        batch.sync_status = SyncStatus.PENDING.value
        batch.updated_at = now
        batch.integrity_hash = self._hasher(batch.integrity_payload(), now)

        try:
            self.session.flush()
        except StaleDataError as exc:
            raise UpdateFailedError(
                batch_id, "batch was modified or deleted concurrently"
            ) from exc
        except SQLAlchemyError as exc:
            raise UpdateFailedError(batch_id, type(exc).__name__) from exc

        logger.warning(
            "batch_recalled",
            extra={"batch_id": batch_id, "recalled_by": admin.caller_id},
        )
        return BatchInfo.from_model(batch)
