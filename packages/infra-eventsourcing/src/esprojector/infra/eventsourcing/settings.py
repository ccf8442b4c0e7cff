"""Projection worker configuration using Pydantic settings.

Settings are loaded from ``PROJECTOR_*`` environment variables (or a
``.env`` file) and validated by Pydantic. Zero values mean "use the
worker's built-in default", matching how ``ProjectionWorker`` treats
non-positive values.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BATCH_SIZE = 512
DEFAULT_IDLE_SLEEP = 0.2


class ProjectorSettings(BaseSettings):
    """Configuration for a projection worker.

    Environment Variables:
        PROJECTOR_BATCH_SIZE: Max envelopes per fetch (default: 512)
        PROJECTOR_IDLE_SLEEP: Seconds to wait after an empty fetch
            (default: 0.2)
        PROJECTOR_MAX_BATCHES: Stop gracefully after this many non-empty
            batches; 0 means unlimited (default: 0)

    Example:
        >>> settings = ProjectorSettings(batch_size=100, idle_sleep=1.0)
        >>> settings.batch_size
        100
    """

    model_config = SettingsConfigDict(
        env_prefix="PROJECTOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE,
        ge=0,
        description="Max envelopes per fetch (0 = default of 512)",
    )
    idle_sleep: float = Field(
        default=DEFAULT_IDLE_SLEEP,
        ge=0.0,
        description="Seconds to wait after an empty fetch (0 = default of 0.2)",
    )
    max_batches: int = Field(
        default=0,
        ge=0,
        description="Non-empty batches to process before stopping (0 = unlimited)",
    )
