"""
Structured log output of the batch pipeline.

Each kernel warning is checked as it reaches a handler: one JSON line with
the event name, its ``extra`` fields and whatever LogContext had bound.
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from cropchain_kernel.db.engine import session_scope
from cropchain_kernel.exceptions import ForbiddenError
from cropchain_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from cropchain_kernel.selectors.batch_selector import BatchSelector
from cropchain_kernel.services.batch_creation_service import BatchCreationService
from cropchain_kernel.services.ownership_guard import OwnershipGuard

RECALLED_AT = datetime(2024, 6, 14, 9, 30, tzinfo=timezone.utc)


def _events(records: list[dict], name: str) -> list[dict]:
    return [r for r in records if r["message"] == name]


class TestPipelineEvents:
    def test_collision_retry(
        self, session_factory, batch_builder, deterministic_clock, make_draft, farmer_one,
        captured_logs,
    ):
        with session_scope(session_factory) as s:
            s.add(batch_builder(batch_id="CROP-2024-001", farmer_id="legacy"))

        with LogContext.bind(actor_id=farmer_one.caller_id):
            BatchCreationService(session_factory, deterministic_clock).create_batch(
                make_draft(), farmer_one
            )

        (retry,) = _events(captured_logs(), "batch_id_collision_retry")
        assert retry["level"] == "WARNING"
        assert retry["logger"] == "cropchain_kernel.services.batch_creation"
        assert retry["batch_id"] == "CROP-2024-001"
        assert retry["sequence"] == 1
        assert retry["attempt"] == 1
        assert retry["actor_id"] == "user-f1"

    def test_ownership_denied(self, session, seed_batch, farmer_two, captured_logs):
        seed_batch(farmer_id="F1")

        with LogContext.bind(actor_id=farmer_two.caller_id, batch_id="CROP-2024-001"):
            with pytest.raises(ForbiddenError):
                OwnershipGuard(session).authorize(farmer_two, "CROP-2024-001")

        (denied,) = _events(captured_logs(), "ownership_denied")
        assert denied["level"] == "WARNING"
        assert denied["caller_id"] == "user-f2"
        assert denied["owner_id"] == "F1"
        assert denied["actor_id"] == "user-f2"
        assert denied["batch_id"] == "CROP-2024-001"

    def test_recalled_batch_viewed(self, session, seed_batch, captured_logs):
        seed_batch(is_recalled=True, recalled_by="admin-1", recalled_at=RECALLED_AT)

        info = BatchSelector(session).get_by_identifier("CROP-2024-001")

        assert info.is_recalled
        (viewed,) = _events(captured_logs(), "recalled_batch_viewed")
        assert viewed["logger"] == "cropchain_kernel.selectors.batch"
        assert viewed["recalled_by"] == "admin-1"
        assert "actor_id" not in viewed

    def test_unrecalled_view_is_silent(self, session, seed_batch, captured_logs):
        seed_batch()
        BatchSelector(session).get_by_identifier("CROP-2024-001")
        assert _events(captured_logs(), "recalled_batch_viewed") == []


class TestFormatter:
    def _format(self, message: str, *, exc: BaseException | None = None, **extra) -> dict:
        record = logging.LogRecord(
            "cropchain_kernel.test", logging.INFO, __file__, 1, message, (), None
        )
        if exc is not None:
            record.exc_info = (type(exc), exc, exc.__traceback__)
        record.__dict__.update(extra)
        return json.loads(StructuredFormatter().format(record))

    def test_dates_rendered_as_iso(self):
        line = self._format(
            "batch_created",
            harvest_date=date(2024, 6, 10),
            created_at=datetime(2024, 6, 15, 12, tzinfo=timezone.utc),
            quantity=Decimal("100.50"),
        )
        assert line["harvest_date"] == "2024-06-10"
        assert line["created_at"] == "2024-06-15T12:00:00+00:00"
        assert line["quantity"] == "100.50"

    def test_kernel_exception_fields(self):
        try:
            raise ForbiddenError("user-f2", "CROP-2024-001", "not owner")
        except ForbiddenError as exc:
            line = self._format("ownership_denied", exc=exc)

        assert line["exc_type"] == "ForbiddenError"
        assert line["exc_code"] == "FORBIDDEN"
        assert line["exc_caller_id"] == "user-f2"
        assert line["exc_batch_id"] == "CROP-2024-001"
        assert "Traceback" in line["traceback"]

    def test_bound_context_wins_over_extra(self):
        LogContext.set(batch_id="CROP-2024-007")
        line = self._format("recalled_batch_viewed", batch_id="CROP-2024-999")
        assert line["batch_id"] == "CROP-2024-007"


class TestLogContext:
    def test_bind_restores_previous_values(self):
        LogContext.set(actor_id="admin-1")
        with LogContext.bind(actor_id="user-f1", batch_id="CROP-2024-003"):
            assert LogContext.get_all() == {"actor_id": "user-f1", "batch_id": "CROP-2024-003"}
        assert LogContext.get_all() == {"actor_id": "admin-1"}

    def test_none_values_skipped(self):
        with LogContext.bind(actor_id="user-f1", batch_id=None):
            assert LogContext.get_all() == {"actor_id": "user-f1"}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            with LogContext.bind(request_id="r-1"):
                pass


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _fresh_configuration(self):
        reset_logging()
        yield
        reset_logging()
        configure_logging(level=logging.DEBUG)

    def test_first_call_wins(self):
        first, second = StringIO(), StringIO()
        configure_logging(stream=first)
        configure_logging(stream=second)

        get_logger("services.sequence").warning("sequence_retired", extra={"value": 5})

        assert json.loads(first.getvalue())["value"] == 5
        assert second.getvalue() == ""

    def test_records_stay_in_kernel_namespace(self):
        configure_logging(stream=StringIO())
        assert logging.getLogger("cropchain_kernel").propagate is False
