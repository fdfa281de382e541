"""
cropchain_services -- caller-facing entry points.

Responsibility:
    Composes the kernel services into one transaction per caller
    operation.  Transport layers (HTTP handlers, CLIs, workers) call
    ``BatchService`` and map its typed exceptions to their own status
    codes.

Architecture position:
    Services -- above ``cropchain_kernel`` and ``cropchain_config``.

    Dependency direction:
        cropchain_services/ -> cropchain_kernel/  (allowed)
        cropchain_services/ -> cropchain_config/  (allowed)
        cropchain_kernel/   -> cropchain_services/ (FORBIDDEN)
"""

from cropchain_services.batch_service import BatchService, build_batch_service

__all__ = [
    "BatchService",
    "build_batch_service",
]
