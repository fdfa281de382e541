"""Utility modules for the CropChain kernel."""

from cropchain_kernel.utils.hashing import (
    IntegrityHasher,
    canonicalize_json,
    compute_integrity_hash,
    hash_payload,
)

__all__ = [
    "IntegrityHasher",
    "canonicalize_json",
    "compute_integrity_hash",
    "hash_payload",
]
