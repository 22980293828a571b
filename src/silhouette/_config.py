from __future__ import annotations

from typing import Any, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_FALLBACK_ENV = "SILHOUETTE_DEFAULT_FALLBACK"


class ContainerSettings(BaseSettings):
    """Container options read from ``SILHOUETTE_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="SILHOUETTE_", env_ignore_empty=True)

    default_fallback: Literal["enabled", "disabled"] = "disabled"

    @field_validator("default_fallback", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


def default_fallback_enabled() -> bool:
    """Whether containers without an explicit flag fall back to type defaults.

    Raises pydantic's ValidationError (a ValueError) for unrecognized values.
    """
    return ContainerSettings().default_fallback == "enabled"
