"""
Deterministic hashing utilities.

All hashing in the kernel is deterministic and reproducible: the same
payload and timestamp always yield the same digest.  This module provides
the canonical JSON form and the default integrity hasher used for
``Batch.integrity_hash``.
"""

import hashlib
import json
from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

IntegrityHasher = Callable[[dict[str, Any], datetime], str]


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, Decimal):
        # Normalize so 100, 100.0 and 100.000 hash identically
        return str(obj.normalize())
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if hasattr(obj, "value") and isinstance(obj.value, str):
        return obj.value
    if isinstance(obj, bytes):
        return obj.hex()

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    - Keys are sorted alphabetically
    - No whitespace
    - Consistent handling of Decimal, datetime, date, UUID and str enums
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """
    Compute SHA-256 hash of a payload.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).
    """
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def compute_integrity_hash(payload: dict[str, Any], at: datetime) -> str:
    """
    Default IntegrityHasher: ``0x`` + SHA-256 over the payload and mutation time.

    Same 66-character shape as a ledger transaction hash.
    """
    return "0x" + hash_payload({"payload": payload, "at": at})
