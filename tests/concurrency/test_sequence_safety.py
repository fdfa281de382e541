"""
Sequence allocation safety.

The batch identifier counter must be allocated by a single atomic upsert on
``sequence_counters``.  Deriving the next identifier from an aggregate over
existing batches races under concurrency and is forbidden; the source scans
below guard against it creeping back in.
"""

import inspect
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest
from sqlalchemy import inspect as sa_inspect

from cropchain_kernel.db.engine import session_scope
from cropchain_kernel.services import sequence_service
from cropchain_kernel.services.sequence_service import SequenceService

KERNEL_ROOT = Path(__file__).resolve().parents[2] / "cropchain_kernel"

# Aggregate-max patterns over identifiers, sequences or counters.
FORBIDDEN_PATTERNS = [
    re.compile(r"func\.max\s*\(", re.IGNORECASE),
    re.compile(r"\bMAX\s*\(\s*\w*\.?(batch_id|sequence|seq|current_value)", re.IGNORECASE),
    re.compile(r"\bmax\s*\(\s*.*parse_batch_id"),
]


class TestSequenceSchema:
    def test_counter_table_exists(self, db_engine, db_tables):
        inspector = sa_inspect(db_engine)
        assert "sequence_counters" in inspector.get_table_names()

    def test_counter_table_columns(self, db_engine, db_tables):
        columns = {c["name"] for c in sa_inspect(db_engine).get_columns("sequence_counters")}
        assert {"id", "name", "current_value"} <= columns


class TestNoAggregateAllocation:
    def test_sequence_service_has_no_max_pattern(self):
        source = inspect.getsource(sequence_service)
        for pattern in FORBIDDEN_PATTERNS:
            assert not pattern.search(source), pattern.pattern

    def test_kernel_has_no_max_pattern(self):
        offenders = []
        for path in KERNEL_ROOT.rglob("*.py"):
            source = path.read_text(encoding="utf-8")
            for pattern in FORBIDDEN_PATTERNS:
                if pattern.search(source):
                    offenders.append(f"{path.relative_to(KERNEL_ROOT)}: {pattern.pattern}")
        assert offenders == []

    def test_allocate_uses_upsert(self):
        source = inspect.getsource(SequenceService.allocate)
        assert "on_conflict_do_update" in source
        assert "returning" in source


class TestMonotonicAllocation:
    def test_values_strictly_increase(self, session):
        svc = SequenceService(session)
        values = [svc.allocate("batchId") for _ in range(25)]
        assert values == list(range(1, 26))

    def test_names_are_independent(self, session):
        svc = SequenceService(session)
        svc.allocate("batchId")
        svc.allocate("batchId")
        assert svc.allocate("other") == 1
        assert svc.allocate("batchId") == 3

    def test_retire_keeps_following_values_unique(self, session):
        svc = SequenceService(session)
        svc.allocate("batchId")
        svc.retire("batchId", 5)
        assert svc.allocate("batchId") == 6


@pytest.mark.slow_locks
class TestConcurrentAllocation:
    """Each worker allocates through its own session and commits."""

    WORKERS = 8
    PER_WORKER = 5

    def _allocate_many(self, session_factory, barrier) -> list[int]:
        barrier.wait(timeout=30)
        values = []
        for _ in range(self.PER_WORKER):
            with session_scope(session_factory) as s:
                values.append(SequenceService(s).allocate("batchId"))
        return values

    def test_concurrent_allocations_are_distinct_and_dense(self, session_factory):
        barrier = threading.Barrier(self.WORKERS)
        with ThreadPoolExecutor(max_workers=self.WORKERS) as pool:
            futures = [
                pool.submit(self._allocate_many, session_factory, barrier)
                for _ in range(self.WORKERS)
            ]
            results = [f.result(timeout=120) for f in futures]

        allocated = [v for values in results for v in values]
        total = self.WORKERS * self.PER_WORKER
        assert len(allocated) == total
        assert len(set(allocated)) == total
        assert sorted(allocated) == list(range(1, total + 1))

        # Each worker sees its own allocations in increasing order.
        for values in results:
            assert values == sorted(values)

    def test_retire_after_rollback_skips_value(self, session_factory):
        with pytest.raises(RuntimeError):
            with session_scope(session_factory) as s:
                SequenceService(s).allocate("batchId")
                raise RuntimeError("abort")

        with session_scope(session_factory) as s:
            assert SequenceService(s).current_value("batchId") is None
            SequenceService(s).retire("batchId", 1)

        with session_scope(session_factory) as s:
            assert SequenceService(s).allocate("batchId") == 2
