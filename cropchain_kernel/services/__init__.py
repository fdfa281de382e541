"""
Kernel services (write side).

Session-bound services flush inside the caller's transaction; the creation
orchestrator owns one transaction per attempt.
"""

from cropchain_kernel.services.batch_creation_service import BatchCreationService
from cropchain_kernel.services.ownership_guard import OwnershipGuard
from cropchain_kernel.services.recall_service import RecallService
from cropchain_kernel.services.sequence_service import SequenceService
from cropchain_kernel.services.update_appender import UpdateAppender

__all__ = [
    "BatchCreationService",
    "OwnershipGuard",
    "RecallService",
    "SequenceService",
    "UpdateAppender",
]
