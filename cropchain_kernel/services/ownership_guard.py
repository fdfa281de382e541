"""
OwnershipGuard -- decides whether a caller may append to a batch.

Responsibility:
    Loads the batch with a row lock and checks the caller against its
    farmer_id.  Returns the LOADED batch so the appender writes exactly the
    row that was authorized, with no second lookup by identifier.

Architecture position:
    Kernel > Services.  Runs inside the caller's transaction; the lock is
    held until that transaction ends.

Invariants enforced:
    - Admins always pass.
    - Everyone else passes only if batch.farmer_id equals their caller_id
      or their farmer-scoped id.  Plain string equality.

Failure modes:
    - BatchNotFoundError: no batch with that identifier.
    - ForbiddenError: caller is neither admin nor owner.
"""

from sqlalchemy import select

from cropchain_kernel.domain.dtos import CallerIdentity
from cropchain_kernel.exceptions import BatchNotFoundError, ForbiddenError
from cropchain_kernel.logging_config import get_logger
from cropchain_kernel.models.batch import Batch
from cropchain_kernel.services.base import BaseService

logger = get_logger("services.ownership_guard")


class OwnershipGuard(BaseService[Batch]):
    """Authorization gate for batch updates."""

    def load_for_update(self, batch_id: str) -> Batch:
        """
        Load a batch by identifier under ``SELECT ... FOR UPDATE``.

        Raises:
            BatchNotFoundError: if absent.
        """
        batch = self.session.execute(
            select(Batch)
            .where(Batch.batch_id == batch_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return batch

    def authorize(self, caller: CallerIdentity, batch_id: str) -> Batch:
        """
        Return the locked batch if ``caller`` may update it.

        Raises:
            BatchNotFoundError: no such batch.
            ForbiddenError: caller is not the owner and not an admin.
        """
        batch = self.load_for_update(batch_id)

        if caller.is_admin:
            return batch

        if batch.farmer_id in caller.identities():
            return batch

        logger.warning(
            "ownership_denied",
            extra={
                "caller_id": caller.caller_id,
                "caller_role": caller.role.value,
                "batch_id": batch_id,
                "owner_id": batch.farmer_id,
            },
        )
        raise ForbiddenError(
            caller.caller_id,
            batch_id,
            "You can only update your own batches",
        )
