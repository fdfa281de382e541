"""
End-to-end batch lifecycle through the BatchService facade.

Farmer F1 creates a batch, farmer F2 is refused an update, F1 moves it to
transport, an administrator recalls it, and further updates are refused.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from cropchain_kernel.domain.dtos import UpdateSpec
from cropchain_kernel.domain.stages import Stage, SyncStatus
from cropchain_kernel.exceptions import (
    AlreadyRecalledError,
    BatchNotFoundError,
    BatchRecalledError,
    ForbiddenError,
)


def _transport(location: str = "Warehouse A") -> UpdateSpec:
    return UpdateSpec(
        stage="transport",
        actor="Sri Logistics",
        location=location,
        timestamp=datetime(2024, 6, 14, 8, 30, tzinfo=timezone.utc),
        notes="Loaded for Chennai",
    )


class TestBatchLifecycle:
    def test_full_lifecycle(self, batch_service, make_draft, farmer_one, farmer_two, admin):
        created = batch_service.create_batch(make_draft(), farmer_one)
        assert created.batch_id == "CROP-2024-001"
        assert [u.stage for u in created.updates] == [Stage.FARMER]

        with pytest.raises(ForbiddenError):
            batch_service.update_batch(farmer_two, created.batch_id, _transport())

        updated = batch_service.update_batch(farmer_one, created.batch_id, _transport())
        assert updated.current_stage is Stage.TRANSPORT
        assert len(updated.updates) == 2
        assert updated.updates[-1].location == "Warehouse A"
        assert updated.integrity_hash != created.integrity_hash

        recalled = batch_service.recall(created.batch_id, admin)
        assert recalled.is_recalled is True
        assert recalled.recalled_by == "admin-1"
        assert recalled.sync_status is SyncStatus.PENDING

        with pytest.raises(AlreadyRecalledError):
            batch_service.recall(created.batch_id, admin)

        with pytest.raises(BatchRecalledError):
            batch_service.update_batch(farmer_one, created.batch_id, _transport("Depot B"))

        # Refused operations leave the timeline untouched.
        timeline = batch_service.timeline(created.batch_id)
        assert [u.stage for u in timeline] == [Stage.FARMER, Stage.TRANSPORT]

    def test_admin_may_update_any_batch(self, batch_service, make_draft, farmer_one, admin):
        created = batch_service.create_batch(make_draft(), farmer_one)
        updated = batch_service.update_batch(admin, created.batch_id, _transport())
        assert updated.current_stage is Stage.TRANSPORT

    def test_farmer_cannot_recall(self, batch_service, make_draft, farmer_one):
        created = batch_service.create_batch(make_draft(), farmer_one)
        with pytest.raises(ForbiddenError):
            batch_service.recall(created.batch_id, farmer_one)
        assert batch_service.get_by_identifier(created.batch_id).is_recalled is False

    def test_update_missing_batch(self, batch_service, farmer_one):
        with pytest.raises(BatchNotFoundError):
            batch_service.update_batch(farmer_one, "CROP-2024-999", _transport())


class TestReads:
    def test_list_and_stats(self, batch_service, make_draft, farmer_one, farmer_two, admin):
        first = batch_service.create_batch(make_draft(quantity=Decimal("100")), farmer_one)
        batch_service.create_batch(make_draft(quantity=Decimal("50.5")), farmer_two)
        batch_service.create_batch(make_draft(quantity=Decimal("25")), farmer_one)
        batch_service.recall(first.batch_id, admin)

        assert [b.batch_id for b in batch_service.list_by_farmer("F2")] == ["CROP-2024-002"]
        assert len(batch_service.list_all()) == 3
        assert len(batch_service.list_all(limit=2)) == 2

        stats = batch_service.stats()
        assert stats.total_batches == 3
        assert stats.total_quantity == Decimal("175.5")
        assert stats.unique_farmers == 2
        assert stats.recalled_batches == 1

    def test_find_missing_returns_none(self, batch_service):
        assert batch_service.find_by_identifier("CROP-2024-404") is None


class TestLogContext:
    def test_actor_and_batch_bound_on_update(
        self, batch_service, make_draft, farmer_one, captured_logs
    ):
        created = batch_service.create_batch(make_draft(), farmer_one)
        batch_service.update_batch(farmer_one, created.batch_id, _transport())

        logs = captured_logs()
        created_log = next(r for r in logs if r["message"] == "batch_created")
        assert created_log["actor_id"] == "user-f1"

        appended = next(r for r in logs if r["message"] == "batch_update_appended")
        assert appended["actor_id"] == "user-f1"
        assert appended["batch_id"] == created.batch_id

    def test_denial_logged(self, batch_service, make_draft, farmer_one, farmer_two, captured_logs):
        created = batch_service.create_batch(make_draft(), farmer_one)
        with pytest.raises(ForbiddenError):
            batch_service.update_batch(farmer_two, created.batch_id, _transport())

        denied = [r for r in captured_logs() if r["message"] == "ownership_denied"]
        assert len(denied) == 1
        assert denied[0]["actor_id"] == "user-f2"
        assert denied[0]["owner_id"] == "F1"
