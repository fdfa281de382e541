"""
Configuration schema (``cropchain_config.schema``).

Typed, frozen settings produced by the loader.  The dataclass validates its
own ranges in ``__post_init__`` so an invalid YAML file or environment
override fails at load time, not at first use.
"""

from __future__ import annotations

from dataclasses import dataclass

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Two retries after the first attempt.
MIN_CREATION_ATTEMPTS = 3


@dataclass(frozen=True)
class CropChainSettings:
    """Runtime settings for the CropChain kernel and service facade."""

    database_url: str
    echo_sql: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    sqlite_busy_timeout: float = 30.0
    batch_sequence_name: str = "batchId"
    identifier_prefix: str = "CROP"
    identifier_year: int | None = None
    max_creation_attempts: int = MIN_CREATION_ATTEMPTS
    creation_deadline_seconds: float = 10.0
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        errors: list[str] = []
        if not self.database_url:
            errors.append("database_url is required")
        if self.pool_size < 1:
            errors.append("pool_size must be >= 1")
        if self.max_overflow < 0:
            errors.append("max_overflow must be >= 0")
        if self.sqlite_busy_timeout <= 0:
            errors.append("sqlite_busy_timeout must be > 0")
        if not self.batch_sequence_name:
            errors.append("batch_sequence_name is required")
        if not self.identifier_prefix.isalnum() or not self.identifier_prefix.isupper():
            errors.append("identifier_prefix must be upper-case alphanumeric")
        if self.identifier_year is not None and not 1 <= self.identifier_year <= 9999:
            errors.append("identifier_year must be between 1 and 9999")
        if self.max_creation_attempts < MIN_CREATION_ATTEMPTS:
            errors.append(
                f"max_creation_attempts must be >= {MIN_CREATION_ATTEMPTS}"
            )
        if self.creation_deadline_seconds <= 0:
            errors.append("creation_deadline_seconds must be > 0")
        if self.log_level not in LOG_LEVELS:
            errors.append(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        if errors:
            raise ValueError(
                "Invalid CropChain settings:\n"
                + "\n".join(f"  - {e}" for e in errors)
            )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")
