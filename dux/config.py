"""Configuration — environment defaults plus the fully-resolved watch target."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_IGNORE = [".git", "__pycache__"]


class DuxSettings(BaseSettings):
    watch_dir: Path = Path(".")
    poll_interval: float = DEFAULT_POLL_INTERVAL  # seconds
    patterns: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    model_config = {"env_prefix": "DUX_"}


class WatchTarget(BaseModel):
    """A file tree to poll and how often to poll it.

    Built once before the supervision loop starts; nothing downstream
    fills in defaults.
    """

    root: Path = Field(default_factory=Path.cwd)
    poll_interval: float = DEFAULT_POLL_INTERVAL
    patterns: list[str] = Field(default_factory=lambda: ["*"])
    ignore: list[str] = Field(default_factory=lambda: list(DEFAULT_IGNORE))

    model_config = {"frozen": True}

    @field_validator("root", mode="before")
    @classmethod
    def _default_root(cls, value):
        return Path.cwd() if value is None else value

    @field_validator("poll_interval", mode="before")
    @classmethod
    def _default_interval(cls, value):
        return DEFAULT_POLL_INTERVAL if value is None else value

    @field_validator("poll_interval")
    @classmethod
    def _positive_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("poll interval must be positive")
        return value

    @classmethod
    def from_settings(cls, source: DuxSettings | None = None, **overrides) -> WatchTarget:
        """Merge explicit overrides (None means unset) over env settings."""
        source = source or settings
        values = {
            "root": source.watch_dir,
            "poll_interval": source.poll_interval,
            "patterns": source.patterns,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


settings = DuxSettings()
