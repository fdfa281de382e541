"""
SequenceService -- monotonic sequence allocation via an atomic counter upsert.

Responsibility:
    Provides strictly increasing sequence numbers per logical name (the
    batch allocator uses "batchId").  The counter table is the sole source
    of truth for the next value.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called only by BatchCreationService.

Invariants enforced:
    - Allocation is ONE statement:
          INSERT ... ON CONFLICT (name) DO UPDATE
              SET current_value = current_value + 1
          RETURNING current_value
      The first allocation for a name creates the row with value 1 in the
      same statement, so there is no insert-then-increment window.
    - The aggregate-max-plus-one pattern over issued identifiers is
      FORBIDDEN.  Nothing in this module reads the batches table.
    - retire() never lowers a counter.  It raises it to at least the
      retired value with a conditional upsert.

Failure modes:
    - OperationalError ("database is locked") on SQLite when a writer waits
      past the busy timeout.
    - NotImplementedError for a dialect without ON CONFLICT support.

Audit relevance:
    Allocations and retirements are logged with sequence_name and value.
"""

from uuid import uuid4

from sqlalchemy import case, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from cropchain_kernel.logging_config import get_logger
from cropchain_kernel.models.counter import SequenceCounter
from cropchain_kernel.services.base import BaseService

logger = get_logger("services.sequence")

_counters = SequenceCounter.__table__

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class SequenceService(BaseService[SequenceCounter]):
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value.  The increment is visible to other transactions once
        the caller's transaction commits; the counter row stays locked by
        the upsert until then, so concurrent allocators queue behind it.

    Guarantees:
        - N concurrent allocations for one name yield N distinct
          consecutive integers.
        - A value handed out and then rolled back is NOT reissued once the
          caller retires it (see retire()).

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        with session_scope() as session:
            seq = SequenceService(session).allocate("batchId")
    """

    # Well-known sequence names
    BATCH_ID = "batchId"

    def __init__(self, session: Session):
        super().__init__(session)
        dialect = session.get_bind().dialect.name
        try:
            self._insert = _UPSERT_DIALECTS[dialect]
        except KeyError:
            raise NotImplementedError(
                f"Sequence allocation requires ON CONFLICT support; "
                f"dialect {dialect!r} is not supported"
            ) from None

    def allocate(self, sequence_name: str) -> int:
        """
        Increment the named counter and return the new value.

        Preconditions:
            - ``sequence_name`` is a non-empty string.
            - The caller is within an active database transaction.

        Postconditions:
            - Returns an integer >= 1 strictly greater than any value
              previously committed for this name.

        Args:
            sequence_name: Name of the sequence.

        Returns:
            The next sequence value.
        """
        if not sequence_name:
            raise ValueError("sequence_name must be a non-empty string")

        stmt = self._insert(_counters).values(
            id=uuid4(),
            name=sequence_name,
            current_value=1,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[_counters.c.name],
            set_={"current_value": _counters.c.current_value + 1},
        ).returning(_counters.c.current_value)

        value = self.session.execute(stmt).scalar_one()

        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": value},
        )
        return value

    def current_value(self, sequence_name: str) -> int | None:
        """
        Get the current value of a sequence without incrementing.

        Returns:
            Current value, or None if the sequence has never been allocated.
        """
        return self.session.execute(
            select(_counters.c.current_value).where(
                _counters.c.name == sequence_name
            )
        ).scalar_one_or_none()

    def retire(self, sequence_name: str, value: int) -> int:
        """
        Mark ``value`` as consumed so it is never handed out again.

        Called after a transaction that allocated ``value`` was rolled back.
        The counter becomes the greater of its current value and ``value``,
        computed row-locally by a CASE in the conflict clause; a counter
        that has already moved past ``value`` is left untouched.

        Returns:
            The counter value after the statement.
        """
        if value < 1:
            raise ValueError(f"cannot retire non-positive sequence value {value}")

        stmt = self._insert(_counters).values(
            id=uuid4(),
            name=sequence_name,
            current_value=value,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[_counters.c.name],
            set_={
                "current_value": case(
                    (
                        _counters.c.current_value < stmt.excluded.current_value,
                        stmt.excluded.current_value,
                    ),
                    else_=_counters.c.current_value,
                )
            },
        ).returning(_counters.c.current_value)

        current = self.session.execute(stmt).scalar_one()
        logger.info(
            "sequence_value_retired",
            extra={
                "sequence_name": sequence_name,
                "value": value,
                "counter": current,
            },
        )
        return current
