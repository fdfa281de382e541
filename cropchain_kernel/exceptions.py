"""
Typed Exception Hierarchy for the CropChain Kernel.

===============================================================================
TYPED EXCEPTIONS
===============================================================================

Callers map kernel failures to caller-facing statuses (HTTP 400/403/404/409/
500 in the web layer).  Every failure the kernel can raise:

  1. Has its own exception CLASS (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (batch_id, caller_id, attempts, ...)

Example - WRONG way to handle errors:
    try:
        service.update_batch(caller, batch_id, update)
    except Exception as e:
        if "not authorized" in str(e):  # FRAGILE
            return 403

Example - RIGHT way:
    try:
        service.update_batch(caller, batch_id, update)
    except ForbiddenError as e:
        return api_error(403, code=e.code, batch_id=e.batch_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CropChainError (base)
    |
    +-- ValidationError
    |   +-- InvalidSequenceError
    |
    +-- BatchError
    |   +-- BatchNotFoundError
    |   +-- AlreadyRecalledError
    |   +-- BatchRecalledError
    |
    +-- AuthorizationError
    |   +-- ForbiddenError
    |
    +-- PersistenceError
        +-- IdentifierCollisionError
        +-- CreationFailedError
        +-- UpdateFailedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                  | When Raised
----------------|-----------------------|-------------------------------------------
Validation      | VALIDATION_ERROR      | Payload violates the batch/update model
                | INVALID_SEQUENCE      | Formatter received a bad sequence or year
----------------|-----------------------|-------------------------------------------
Batch           | BATCH_NOT_FOUND       | No batch with the given identifier
                | ALREADY_RECALLED      | Recall attempted on a recalled batch
                | BATCH_RECALLED        | Update attempted on a recalled batch
----------------|-----------------------|-------------------------------------------
Authorization   | FORBIDDEN             | Caller is neither owner nor admin
----------------|-----------------------|-------------------------------------------
Persistence     | IDENTIFIER_COLLISION  | Formatted batch_id already exists (retried)
                | CREATION_FAILED       | Retries exhausted or non-collision failure
                | UPDATE_FAILED         | Write on an existing batch failed

===============================================================================
PROPAGATION
===============================================================================

IdentifierCollisionError never leaves BatchCreationService: it is the retry
signal of the creation loop.  Every other exception surfaces immediately.
Store failures are chained (``raise ... from exc``) so the driver error stays
in the traceback.
"""


class CropChainError(Exception):
    """
    Base exception for all CropChain kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CROPCHAIN_ERROR"


# Validation exceptions


class ValidationError(CropChainError):
    """
    Input violates the data model constraints.

    Recoverable by the caller correcting the input; never retried internally.
    ``field_errors`` is a list of ``{"field": ..., "message": ...}`` dicts.
    """

    code: str = "VALIDATION_ERROR"

    def __init__(self, field_errors: list[dict[str, str]]):
        self.field_errors = field_errors
        summary = "; ".join(
            f"{err['field']}: {err['message']}" for err in field_errors
        )
        super().__init__(f"Validation failed: {summary}")


class InvalidSequenceError(ValidationError):
    """Identifier formatter received a negative or non-integer input."""

    code: str = "INVALID_SEQUENCE"

    def __init__(self, field: str, value: object):
        self.value = repr(value)
        super().__init__(
            [{"field": field, "message": f"must be a positive integer, got {value!r}"}]
        )


# Batch-related exceptions


class BatchError(CropChainError):
    """Base exception for batch lifecycle errors."""

    code: str = "BATCH_ERROR"


class BatchNotFoundError(BatchError):
    """Batch with given identifier was not found."""

    code: str = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Batch not found: {batch_id}")


class AlreadyRecalledError(BatchError):
    """
    Recall attempted on a batch that is already recalled.

    Recall is not idempotent: every repeated attempt raises this error.
    """

    code: str = "ALREADY_RECALLED"

    def __init__(self, batch_id: str, recalled_by: str | None = None):
        self.batch_id = batch_id
        self.recalled_by = recalled_by
        super().__init__(f"Batch {batch_id} is already recalled")


class BatchRecalledError(BatchError):
    """Update attempted on a recalled batch."""

    code: str = "BATCH_RECALLED"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Batch {batch_id} is recalled and cannot be updated")


# Authorization exceptions


class AuthorizationError(CropChainError):
    """Base exception for authorization errors."""

    code: str = "AUTHORIZATION_ERROR"


class ForbiddenError(AuthorizationError):
    """Caller is authenticated but not allowed to act on the batch."""

    code: str = "FORBIDDEN"

    def __init__(self, caller_id: str, batch_id: str, reason: str):
        self.caller_id = caller_id
        self.batch_id = batch_id
        self.reason = reason
        super().__init__(
            f"Caller {caller_id} is not authorized for batch {batch_id}: {reason}"
        )


# Persistence exceptions


class PersistenceError(CropChainError):
    """Base exception for store write failures."""

    code: str = "PERSISTENCE_ERROR"


class IdentifierCollisionError(PersistenceError):
    """
    Formatted batch identifier already exists in the store.

    Internal retry signal for the creation loop; never surfaced to callers.
    """

    code: str = "IDENTIFIER_COLLISION"

    def __init__(self, batch_id: str, sequence: int):
        self.batch_id = batch_id
        self.sequence = sequence
        super().__init__(f"Batch identifier {batch_id} already exists")


class CreationFailedError(PersistenceError):
    """Batch creation exhausted its retries or hit a non-collision failure."""

    code: str = "CREATION_FAILED"

    def __init__(self, attempts: int, reason: str):
        self.attempts = attempts
        self.reason = reason
        super().__init__(
            f"Batch creation failed after {attempts} attempt(s): {reason}"
        )


class UpdateFailedError(PersistenceError):
    """Write on an existing batch failed (typically a concurrent deletion)."""

    code: str = "UPDATE_FAILED"

    def __init__(self, batch_id: str, reason: str):
        self.batch_id = batch_id
        self.reason = reason
        super().__init__(f"Update of batch {batch_id} failed: {reason}")
