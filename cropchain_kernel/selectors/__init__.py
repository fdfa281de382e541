"""Read-only query selectors."""

from cropchain_kernel.selectors.base import BaseSelector
from cropchain_kernel.selectors.batch_selector import BatchSelector

__all__ = [
    "BaseSelector",
    "BatchSelector",
]
