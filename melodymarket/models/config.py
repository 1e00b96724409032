"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_NAMESPACE = "melodymarket"
PREVIEW_SECONDS = 60.0

_NAMESPACE_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


class MarketConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Storage
    data_dir: str = ""
    namespace: str = DEFAULT_NAMESPACE

    # Playback
    preview_seconds: float = PREVIEW_SECONDS
    volume: float = 0.7
    load_timeout: float = 20.0
    max_download_mb: int = 50

    # Logging
    json_logs: bool = False

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        """The namespace prefixes every storage key, so it must be filename-safe."""
        if not _NAMESPACE_RE.match(v):
            raise ValueError(
                "Namespace must start with a letter or digit and contain only "
                "letters, digits, '_' or '-'."
            )
        return v

    @field_validator("preview_seconds")
    @classmethod
    def validate_preview(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Preview length must be a positive number of seconds.")
        return v

    @field_validator("volume")
    @classmethod
    def validate_volume(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("Volume must be between 0.0 and 1.0.")
        return v

    @field_validator("load_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0 or v > 300:
            raise ValueError("Load timeout must be between 0 and 300 seconds.")
        return v

    @field_validator("max_download_mb")
    @classmethod
    def validate_max_download(cls, v: int) -> int:
        """Ensures a reasonable cap on in-memory sound downloads."""
        if v < 1 or v > 1024:
            raise ValueError("Max download size must be between 1 and 1024 MB.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
