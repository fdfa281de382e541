"""
Batch identifier formatting.

Responsibility:
    Turns an allocated sequence number into the external, human-readable
    batch identifier and back.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Format:
    ``<prefix>-<year>-<sequence>`` where the sequence is zero-padded to a
    MINIMUM width of 3 digits and never truncated:

        format_batch_id(2024, 7)    -> "CROP-2024-007"
        format_batch_id(2024, 1000) -> "CROP-2024-1000"

Failure modes:
    - InvalidSequenceError for a non-integer (including bool), zero or
      negative sequence, or a year outside 1..9999.
"""

from __future__ import annotations

import re

from cropchain_kernel.exceptions import InvalidSequenceError

DEFAULT_PREFIX = "CROP"
SEQUENCE_MIN_WIDTH = 3

_BATCH_ID_RE = re.compile(r"^(?P<prefix>[A-Z][A-Z0-9]*)-(?P<year>\d{4})-(?P<seq>\d{3,})$")


def _require_int(field: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidSequenceError(field, value)
    return value


def format_batch_id(year: int, sequence: int, prefix: str = DEFAULT_PREFIX) -> str:
    """
    Format an allocated sequence as a batch identifier.

    Preconditions:
        - ``sequence`` is an int >= 1 (allocator values start at 1).
        - ``year`` is an int in 1..9999.

    Raises:
        InvalidSequenceError: on any violated precondition.
    """
    year = _require_int("year", year)
    sequence = _require_int("sequence", sequence)
    if not 1 <= year <= 9999:
        raise InvalidSequenceError("year", year)
    if sequence < 1:
        raise InvalidSequenceError("sequence", sequence)
    return f"{prefix}-{year:04d}-{sequence:0{SEQUENCE_MIN_WIDTH}d}"


def parse_batch_id(batch_id: str) -> tuple[str, int, int]:
    """
    Split a batch identifier into ``(prefix, year, sequence)``.

    Raises:
        InvalidSequenceError: if ``batch_id`` is not in the identifier format.
    """
    match = _BATCH_ID_RE.match(batch_id or "")
    if match is None:
        raise InvalidSequenceError("batch_id", batch_id)
    return match["prefix"], int(match["year"]), int(match["seq"])
