"""
Supply-chain vocabulary: stages, crop types, roles, sync status.

Single source of truth for every enumerated value the kernel stores.  Stage
input is case-insensitive; stored values are always lower case.

Stage transitions are permissive: any recognised stage may follow any other
(``retailer`` directly after ``farmer`` is accepted).  STAGE_ORDER documents
the nominal flow for display and reporting only.
"""

from __future__ import annotations

from enum import Enum


class Stage(str, Enum):
    """Supply-chain position of a batch."""

    FARMER = "farmer"
    MANDI = "mandi"
    TRANSPORT = "transport"
    RETAILER = "retailer"


class CropType(str, Enum):
    """Crops the tracker accepts."""

    RICE = "rice"
    WHEAT = "wheat"
    CORN = "corn"
    TOMATO = "tomato"


class CallerRole(str, Enum):
    """Roles supplied by the upstream authentication step."""

    FARMER = "farmer"
    MANDI = "mandi"
    TRANSPORTER = "transporter"
    RETAILER = "retailer"
    ADMIN = "admin"


class SyncStatus(str, Enum):
    """Mirror state of a batch in the external ledger."""

    PENDING = "pending"
    SYNCED = "synced"
    ERROR = "error"


STAGE_ORDER: tuple[Stage, ...] = (
    Stage.FARMER,
    Stage.MANDI,
    Stage.TRANSPORT,
    Stage.RETAILER,
)


def stages_string() -> str:
    """Comma-separated stage list for error messages."""
    return ", ".join(s.value for s in STAGE_ORDER)


def normalize_stage(value: str | Stage | None) -> Stage | None:
    """Return the canonical Stage for ``value`` or None if unrecognised."""
    if isinstance(value, Stage):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Stage(value.strip().lower())
    except ValueError:
        return None


def is_valid_stage(value: str | Stage | None) -> bool:
    return normalize_stage(value) is not None
