"""
BatchService -- transport-independent facade over the batch pipeline.

Responsibility:
    Owns the transaction for each caller operation and wires the kernel
    services together:

        create_batch  -> BatchCreationService (one transaction per attempt)
        update_batch  -> OwnershipGuard.authorize + UpdateAppender.append_update
                         in ONE transaction (row lock held across both)
        recall        -> RecallService
        reads         -> BatchSelector

Invariants enforced:
    - The batch authorized by the guard is the instance the appender
      writes; it is never looked up twice.
    - Updates to recalled batches are refused with BatchRecalledError.
    - LogContext carries actor_id and batch_id for every log line emitted
      during an operation.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from sqlalchemy.orm import Session

from cropchain_config import CropChainSettings, get_settings
from cropchain_kernel.db.engine import (
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from cropchain_kernel.domain.clock import Clock, SystemClock
from cropchain_kernel.domain.dtos import (
    BatchDraft,
    BatchInfo,
    BatchStats,
    CallerIdentity,
    UpdateInfo,
    UpdateSpec,
)
from cropchain_kernel.exceptions import BatchRecalledError
from cropchain_kernel.logging_config import LogContext, configure_logging, get_logger
from cropchain_kernel.selectors.batch_selector import BatchSelector
from cropchain_kernel.services.batch_creation_service import BatchCreationService
from cropchain_kernel.services.ownership_guard import OwnershipGuard
from cropchain_kernel.services.recall_service import RecallService
from cropchain_kernel.services.update_appender import UpdateAppender
from cropchain_kernel.utils.hashing import IntegrityHasher, compute_integrity_hash

logger = get_logger("services.batch")


class BatchService:
    """
    Facade for batch creation, updates, recall and reads.

    Contract:
        Every method returns frozen DTOs and raises CropChainError
        subclasses.  Nothing is retried here; identifier collisions are
        retried inside BatchCreationService and never reach this layer.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        settings: CropChainSettings,
        clock: Clock | None = None,
        hasher: IntegrityHasher = compute_integrity_hash,
    ):
        self._session_factory = session_factory
        self._settings = settings
        self._clock = clock or SystemClock()
        self._hasher = hasher
        self._creator = BatchCreationService(
            session_factory,
            self._clock,
            sequence_name=settings.batch_sequence_name,
            prefix=settings.identifier_prefix,
            identifier_year=settings.identifier_year,
            max_attempts=settings.max_creation_attempts,
            deadline_seconds=settings.creation_deadline_seconds,
            hasher=hasher,
        )

    @property
    def clock(self) -> Clock:
        return self._clock

    # -- writes -------------------------------------------------------------

    def create_batch(self, draft: BatchDraft, owner: CallerIdentity) -> BatchInfo:
        with LogContext.bind(actor_id=owner.caller_id):
            return self._creator.create_batch(draft, owner)

    def update_batch(
        self,
        caller: CallerIdentity,
        batch_id: str,
        update: UpdateSpec,
    ) -> BatchInfo:
        """
        Authorize ``caller`` and append ``update`` atomically.

        Raises:
            BatchNotFoundError, ForbiddenError, BatchRecalledError,
            ValidationError, UpdateFailedError.
        """
        with LogContext.bind(actor_id=caller.caller_id, batch_id=batch_id):
            with session_scope(self._session_factory) as session:
                batch = OwnershipGuard(session).authorize(caller, batch_id)
                if not batch.can_be_updated:
                    raise BatchRecalledError(batch_id)
                return UpdateAppender(session, self._clock, self._hasher).append_update(
                    batch, update
                )

    def recall(self, batch_id: str, admin: CallerIdentity) -> BatchInfo:
        with LogContext.bind(actor_id=admin.caller_id, batch_id=batch_id):
            with session_scope(self._session_factory) as session:
                return RecallService(session, self._clock, self._hasher).recall(
                    batch_id, admin
                )

    # -- reads --------------------------------------------------------------

    def get_by_identifier(self, batch_id: str) -> BatchInfo:
        with LogContext.bind(batch_id=batch_id):
            with session_scope(self._session_factory) as session:
                return BatchSelector(session).get_by_identifier(batch_id)

    def find_by_identifier(self, batch_id: str) -> BatchInfo | None:
        with session_scope(self._session_factory) as session:
            return BatchSelector(session).find_by_identifier(batch_id)

    def list_all(self, limit: int | None = None) -> list[BatchInfo]:
        with session_scope(self._session_factory) as session:
            return BatchSelector(session).list_all(limit)

    def list_by_farmer(self, farmer_id: str) -> list[BatchInfo]:
        with session_scope(self._session_factory) as session:
            return BatchSelector(session).list_by_farmer(farmer_id)

    def timeline(self, batch_id: str) -> tuple[UpdateInfo, ...]:
        with session_scope(self._session_factory) as session:
            return BatchSelector(session).timeline(batch_id)

    def stats(self, now: datetime | None = None) -> BatchStats:
        with session_scope(self._session_factory) as session:
            return BatchSelector(session).stats(now or self._clock.now_utc())


def build_batch_service(
    settings: CropChainSettings | None = None,
    clock: Clock | None = None,
) -> BatchService:
    """
    Initialize logging and the engine from settings and return a facade.

    Args:
        settings: Defaults to ``cropchain_config.get_settings()``.
        clock: Defaults to SystemClock.
    """
    settings = settings or get_settings()
    configure_logging(level=settings.log_level)
    init_engine_from_url(
        settings.database_url,
        echo=settings.echo_sql,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        sqlite_busy_timeout=settings.sqlite_busy_timeout,
    )
    return BatchService(get_session_factory(), settings, clock)
