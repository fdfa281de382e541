"""
SQLAlchemy ORM models for the CropChain kernel.

Importing this package registers every table on ``Base.metadata``.
"""

from cropchain_kernel.models.batch import Batch
from cropchain_kernel.models.counter import SequenceCounter

__all__ = [
    "Batch",
    "SequenceCounter",
]
