"""
Loader settings - validated configuration for a tasklink session.

Values come from an optional JSON file and are overridden by CLI flags.
"""

from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field

from .serial_transport import (
    BAUD_RATE,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_WRITE_TIMEOUT,
    WARMUP_DELAY,
    RetryPolicy,
    SerialConfig,
)
from .dump_store import DEFAULT_DUMP_PATH


class RetrySettings(BaseModel):
    max_attempts: int = Field(3, ge=1)
    initial_backoff: float = Field(0.01, ge=0)
    max_backoff: float = Field(0.5, ge=0)


class LoaderSettings(BaseModel):
    device: Optional[str] = None
    baud_rate: int = Field(BAUD_RATE, gt=0)
    warmup_delay: float = Field(WARMUP_DELAY, ge=0)
    poll_interval: float = Field(DEFAULT_POLL_INTERVAL, gt=0)
    write_timeout: Optional[float] = Field(DEFAULT_WRITE_TIMEOUT, gt=0)
    dump_path: str = str(DEFAULT_DUMP_PATH)
    error_capacity: int = Field(64, ge=1)
    retry: RetrySettings = Field(default_factory=RetrySettings)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "LoaderSettings":
        """Load settings from a JSON file"""
        return cls.model_validate_json(Path(path).read_text())

    def with_overrides(self, **overrides) -> "LoaderSettings":
        """Copy with every non-None override applied and re-validated."""
        values = self.model_dump()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return LoaderSettings.model_validate(values)

    def serial_config(self) -> SerialConfig:
        return SerialConfig(
            baud_rate=self.baud_rate,
            poll_interval=self.poll_interval,
            write_timeout=self.write_timeout,
            connect_delay=self.warmup_delay,
            retry=RetryPolicy(**self.retry.model_dump()),
            error_capacity=self.error_capacity,
        )
