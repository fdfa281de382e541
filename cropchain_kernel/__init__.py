"""
CropChain Kernel

Transactional core of the produce-batch supply chain tracker:
- Monotonic batch identifiers from a durable counter
- Atomic batch creation with bounded collision retry
- Owner-or-admin authorization for timeline updates
- Append-only supply-chain timeline per batch
- One-way administrative recall
"""

__version__ = "0.1.0"
