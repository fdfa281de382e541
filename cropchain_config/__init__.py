"""
cropchain_config -- single public entrypoint for runtime settings.

Responsibility:
    ``get_settings()`` is the ONLY way to obtain configuration at runtime.
    No other component reads configuration files or environment variables
    directly.

Architecture position:
    Configuration sits above ``cropchain_kernel`` and below
    ``cropchain_services``.  The kernel MUST NEVER import from
    ``cropchain_config``; the service facade translates settings into
    kernel constructor arguments.

Failure modes:
    - ``FileNotFoundError`` -- settings file missing.
    - ``ValueError`` -- unknown key or invalid value.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from cropchain_config.loader import load_settings
from cropchain_config.schema import CropChainSettings

_logger = logging.getLogger("cropchain_kernel.config")

_settings: CropChainSettings | None = None
_lock = threading.Lock()


def get_settings(path: Path | None = None) -> CropChainSettings:
    """
    Return the process-wide settings, loading them on first call.

    Args:
        path: Settings file for the first load.  Ignored once loaded.
    """
    global _settings
    with _lock:
        if _settings is None:
            _settings = load_settings(path)
            _logger.info(
                "settings_loaded",
                extra={
                    "dialect": _settings.database_url.split(":", 1)[0],
                    "sequence_name": _settings.batch_sequence_name,
                    "max_creation_attempts": _settings.max_creation_attempts,
                },
            )
        return _settings


def reset_settings() -> None:
    """Forget cached settings. FOR TESTING ONLY."""
    global _settings
    with _lock:
        _settings = None


__all__ = [
    "CropChainSettings",
    "get_settings",
    "load_settings",
    "reset_settings",
]
