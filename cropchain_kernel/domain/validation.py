"""
Batch and update shape validation.

Pure checks with no I/O.  The upstream request validator already checks
presence, format and length; the kernel re-checks the data model
constraints here before anything is written.

Every validator collects ALL field errors and raises a single
ValidationError carrying them, instead of failing on the first.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from cropchain_kernel.domain.dtos import BatchDraft, UpdateSpec
from cropchain_kernel.domain.stages import CropType, normalize_stage, stages_string
from cropchain_kernel.exceptions import ValidationError

MAX_QUANTITY = Decimal("1000000")

ORIGIN_LENGTH = (5, 200)
FARMER_NAME_LENGTH = (2, 100)
FARMER_ADDRESS_LENGTH = (10, 500)
CERTIFICATIONS_MAX = 500
DESCRIPTION_MAX = 1000

ACTOR_LENGTH = (2, 100)
LOCATION_LENGTH = (2, 200)
NOTES_MAX = 500


class _Errors:
    def __init__(self) -> None:
        self.items: list[dict[str, str]] = []

    def add(self, field: str, message: str) -> None:
        self.items.append({"field": field, "message": message})

    def raise_if_any(self) -> None:
        if self.items:
            raise ValidationError(self.items)


def _check_text(
    errors: _Errors,
    field: str,
    value: Any,
    bounds: tuple[int, int],
    required: bool = True,
) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            errors.add(field, "is required")
        return None
    if not isinstance(value, str):
        errors.add(field, "must be a string")
        return None
    text = value.strip()
    low, high = bounds
    if not low <= len(text) <= high:
        errors.add(field, f"length must be between {low} and {high}")
        return None
    return text


def _check_max(errors: _Errors, field: str, value: Any, limit: int) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        errors.add(field, "must be a string")
        return ""
    text = value.strip()
    if len(text) > limit:
        errors.add(field, f"must be at most {limit} characters")
    return text


def _check_quantity(errors: _Errors, value: Any) -> Decimal | None:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        errors.add("quantity", "must be a number")
        return None
    try:
        quantity = Decimal(str(value))
    except InvalidOperation:
        errors.add("quantity", "must be a number")
        return None
    if not quantity.is_finite():
        errors.add("quantity", "must be finite")
        return None
    if quantity <= 0:
        errors.add("quantity", "must be greater than 0")
        return None
    if quantity > MAX_QUANTITY:
        errors.add("quantity", "cannot exceed 1,000,000")
        return None
    return quantity


def validate_batch_draft(draft: BatchDraft, today: date) -> dict[str, Any]:
    """
    Validate a BatchDraft and return its normalized column values.

    Args:
        draft: Proposed batch.
        today: Current date from the injected clock (harvest date upper bound).

    Returns:
        Dict of normalized values keyed by Batch column name.

    Raises:
        ValidationError: with every violated constraint.
    """
    errors = _Errors()

    crop_type = None
    if isinstance(draft.crop_type, str) and draft.crop_type.strip().lower() in {
        c.value for c in CropType
    }:
        crop_type = CropType(draft.crop_type.strip().lower()).value
    else:
        errors.add(
            "crop_type",
            "Invalid crop type. Must be one of: "
            + ", ".join(c.value for c in CropType),
        )

    quantity = _check_quantity(errors, draft.quantity)

    harvest_date = draft.harvest_date
    if isinstance(harvest_date, datetime):
        harvest_date = harvest_date.date()
    if not isinstance(harvest_date, date):
        errors.add("harvest_date", "must be a date")
        harvest_date = None
    elif harvest_date > today:
        errors.add("harvest_date", "cannot be in the future")

    origin = _check_text(errors, "origin", draft.origin, ORIGIN_LENGTH)
    farmer_name = _check_text(
        errors, "farmer_name", draft.farmer_name, FARMER_NAME_LENGTH, required=False
    )
    farmer_address = _check_text(
        errors,
        "farmer_address",
        draft.farmer_address,
        FARMER_ADDRESS_LENGTH,
        required=False,
    )
    certifications = _check_max(
        errors, "certifications", draft.certifications, CERTIFICATIONS_MAX
    )
    description = _check_max(errors, "description", draft.description, DESCRIPTION_MAX)

    errors.raise_if_any()

    return {
        "crop_type": crop_type,
        "quantity": quantity,
        "harvest_date": harvest_date,
        "origin": origin,
        "farmer_name": farmer_name,
        "farmer_address": farmer_address,
        "certifications": certifications,
        "description": description,
    }


def validate_update(spec: UpdateSpec, now: datetime) -> dict[str, Any]:
    """
    Validate an UpdateSpec and return the timeline entry to store.

    The stage is normalized to lower case.  A missing timestamp becomes
    ``now``; naive timestamps are rejected.

    Returns:
        JSON-ready entry: stage, actor, location, timestamp (ISO 8601), notes.

    Raises:
        ValidationError: with every violated constraint.
    """
    errors = _Errors()

    stage = normalize_stage(spec.stage)
    if stage is None:
        errors.add("stage", f"Stage must be one of: {stages_string()}")

    actor = _check_text(errors, "actor", spec.actor, ACTOR_LENGTH)
    location = _check_text(errors, "location", spec.location, LOCATION_LENGTH)

    timestamp = spec.timestamp if spec.timestamp is not None else now
    if not isinstance(timestamp, datetime) or timestamp.tzinfo is None:
        errors.add("timestamp", "must be a timezone-aware datetime")
    elif timestamp > now:
        errors.add("timestamp", "cannot be in the future")

    notes = None
    if spec.notes is not None:
        notes = _check_max(errors, "notes", spec.notes, NOTES_MAX) or None

    errors.raise_if_any()

    return {
        "stage": stage.value,
        "actor": actor,
        "location": location,
        "timestamp": timestamp.isoformat(),
        "notes": notes,
    }
