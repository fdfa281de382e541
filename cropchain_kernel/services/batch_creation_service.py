"""
BatchCreationService -- atomic allocate + format + insert with bounded retry.

Responsibility:
    Turns a validated BatchDraft into a persisted Batch.  Allocating the
    sequence value, formatting the identifier and inserting the batch
    document (with its initial "farmer" timeline entry) happen in ONE
    transaction: either the identifier and the record both become durable,
    or neither does.

Architecture position:
    Kernel > Services -- imperative shell.  Unlike the session-bound
    services, this one owns its transactions: every attempt runs in a fresh
    session from the injected session factory.

Invariants enforced:
    - Only a uniqueness violation on batch_id is retried, and it is first
      converted into IdentifierCollisionError.  Any other failure aborts the
      loop and surfaces as CreationFailedError with the cause chained.
    - Retries are bounded by attempt count AND elapsed time.
    - A value allocated by an aborted attempt is retired in a short
      separate transaction, so it is never handed out again and the next
      attempt moves past a colliding identifier.

Failure modes:
    - ValidationError: the draft violates the data model (never retried).
    - CreationFailedError: retries exhausted, deadline passed, or a
      non-collision database error.

Audit relevance:
    Logs batch_created, batch_id_collision_retry and
    batch_creation_failed with batch_id, sequence and attempt.
"""

import time
from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cropchain_kernel.domain.clock import Clock
from cropchain_kernel.domain.dtos import BatchDraft, BatchInfo, CallerIdentity
from cropchain_kernel.domain.identifiers import DEFAULT_PREFIX, format_batch_id
from cropchain_kernel.domain.stages import Stage, SyncStatus
from cropchain_kernel.domain.validation import validate_batch_draft
from cropchain_kernel.exceptions import CreationFailedError, IdentifierCollisionError
from cropchain_kernel.logging_config import get_logger
from cropchain_kernel.models.batch import BATCH_ID_CONSTRAINT, Batch
from cropchain_kernel.services.sequence_service import SequenceService
from cropchain_kernel.utils.hashing import IntegrityHasher, compute_integrity_hash

logger = get_logger("services.batch_creation")

INITIAL_NOTES = "Initial harvest recorded"


def _is_batch_id_violation(exc: IntegrityError) -> bool:
    """True only for the unique key on batches.batch_id, never for other constraints."""
    diag = getattr(exc.orig, "diag", None)
    if diag is not None:
        # psycopg2 reports the violated constraint by name.
        return diag.constraint_name == BATCH_ID_CONSTRAINT
    # sqlite3 names the columns instead: "UNIQUE constraint failed: batches.batch_id"
    prefix, _, columns = str(exc.orig).partition(": ")
    if prefix != "UNIQUE constraint failed":
        return False
    return f"{Batch.__tablename__}.batch_id" in columns.split(", ")


def _midnight_utc(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


class BatchCreationService:
    """
    Creation orchestrator for new batches.

    Contract:
        create_batch(draft, owner) returns the persisted batch as a
        BatchInfo, or raises.  The caller never sees an identifier
        collision.

    Non-goals:
        - Does NOT render QR codes or sign anything; ``qr_code`` and
          ``integrity_token`` on the draft are stored as given.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock,
        *,
        sequence_name: str = SequenceService.BATCH_ID,
        prefix: str = DEFAULT_PREFIX,
        identifier_year: int | None = None,
        max_attempts: int = 3,
        deadline_seconds: float = 10.0,
        hasher: IntegrityHasher = compute_integrity_hash,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._session_factory = session_factory
        self._clock = clock
        self._sequence_name = sequence_name
        self._prefix = prefix
        self._identifier_year = identifier_year
        self._max_attempts = max_attempts
        self._deadline_seconds = deadline_seconds
        self._hasher = hasher

    def create_batch(self, draft: BatchDraft, owner: CallerIdentity) -> BatchInfo:
        """
        Validate, allocate an identifier and persist a new batch.

        Raises:
            ValidationError: draft is malformed.
            CreationFailedError: no attempt succeeded.
        """
        now = self._clock.now_utc()
        values = validate_batch_draft(draft, now.date())
        year = self._identifier_year or now.year

        started = time.monotonic()
        attempts = 0
        last_collision: IdentifierCollisionError | None = None

        while attempts < self._max_attempts:
            if attempts and time.monotonic() - started >= self._deadline_seconds:
                logger.warning(
                    "batch_creation_deadline_exceeded",
                    extra={
                        "attempts": attempts,
                        "deadline_seconds": self._deadline_seconds,
                    },
                )
                break
            attempts += 1
            try:
                return self._attempt(values, draft, owner, year, now, attempts)
            except IdentifierCollisionError as exc:
                last_collision = exc
                logger.warning(
                    "batch_id_collision_retry",
                    extra={
                        "batch_id": exc.batch_id,
                        "sequence": exc.sequence,
                        "attempt": attempts,
                        "max_attempts": self._max_attempts,
                    },
                )

        logger.error(
            "batch_creation_failed",
            extra={"attempts": attempts, "reason": "identifier collisions"},
        )
        raise CreationFailedError(
            attempts, "identifier collision retries exhausted"
        ) from last_collision

    def _attempt(
        self,
        values: dict[str, Any],
        draft: BatchDraft,
        owner: CallerIdentity,
        year: int,
        now: datetime,
        attempt: int,
    ) -> BatchInfo:
        session = self._session_factory()
        allocated: int | None = None
        try:
            allocated = SequenceService(session).allocate(self._sequence_name)
            batch_id = format_batch_id(year, allocated, self._prefix)
            batch = self._build_batch(batch_id, values, draft, owner, now)
            session.add(batch)
            try:
                session.flush()
            except IntegrityError as exc:
                if _is_batch_id_violation(exc):
                    raise IdentifierCollisionError(batch_id, allocated) from exc
                raise
            info = BatchInfo.from_model(batch)
            session.commit()
        except IdentifierCollisionError:
            session.rollback()
            self._retire(allocated)
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            self._retire(allocated)
            logger.error(
                "batch_creation_failed",
                extra={
                    "attempts": attempt,
                    "sequence": allocated,
                    "reason": type(exc).__name__,
                },
            )
            raise CreationFailedError(attempt, type(exc).__name__) from exc
        except BaseException:
            # Cancellation or a programming error; the value stays consumed.
            session.rollback()
            self._retire(allocated)
            raise
        finally:
            session.close()

        logger.info(
            "batch_created",
            extra={
                "batch_id": info.batch_id,
                "sequence": allocated,
                "attempt": attempt,
                "farmer_id": info.farmer_id,
            },
        )
        return info

    def _build_batch(
        self,
        batch_id: str,
        values: dict[str, Any],
        draft: BatchDraft,
        owner: CallerIdentity,
        now: datetime,
    ) -> Batch:
        initial_update = {
            "stage": Stage.FARMER.value,
            "actor": values["farmer_name"] or owner.display_name or owner.caller_id,
            "location": values["origin"],
            "timestamp": _midnight_utc(values["harvest_date"]).isoformat(),
            "notes": values["description"] or INITIAL_NOTES,
        }
        batch = Batch(
            batch_id=batch_id,
            farmer_id=owner.owner_id,
            current_stage=Stage.FARMER.value,
            is_recalled=False,
            qr_code=draft.qr_code or "",
            sync_status=SyncStatus.PENDING.value,
            updates=[initial_update],
            created_at=now,
            updated_at=now,
            created_by=owner.caller_id,
            **values,
        )
        batch.integrity_hash = draft.integrity_token or self._hasher(
            batch.integrity_payload(), now
        )
        return batch

    def _retire(self, allocated: int | None) -> None:
        """Consume an allocated value in its own short transaction."""
        if allocated is None:
            return
        session = self._session_factory()
        try:
            SequenceService(session).retire(self._sequence_name, allocated)
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            # The original failure is what the caller needs to see.
            logger.exception(
                "sequence_retire_failed",
                extra={"sequence_name": self._sequence_name, "value": allocated},
            )
        finally:
            session.close()
