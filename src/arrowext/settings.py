"""Environment variable management for arrowext."""

from pydantic import Field
from pydantic import ValidationError
from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict

from arrowext.exceptions import EnvironmentFormatError


class ArrowExtSettings(BaseSettings):
    """arrowext environment configuration settings."""

    register_defaults: bool = Field(
        default=True,
        description="Whether the global registry is populated with the built-in extensions",
        alias="ARROWEXT__REGISTER_DEFAULTS",
    )
    warn_invalid_metadata: bool = Field(
        default=True,
        description="Whether to log a warning when decoded tensor metadata fails validation",
        alias="ARROWEXT__WARN_INVALID_METADATA",
    )

    model_config = SettingsConfigDict(case_sensitive=True)

    @field_validator("register_defaults", "warn_invalid_metadata", mode="before")
    @classmethod
    def parse_bool_fields(cls, v: object) -> bool:
        """Parse boolean fields leniently."""
        if v is None:
            return False
        if isinstance(v, str):
            value = v.strip().lower()
            if value in ("1", "true", "yes", "on"):
                return True
            if value in ("0", "false", "no", "off", ""):
                return False
            msg = f"Can't interpret {v!r} as a boolean"
            raise ValueError(msg)
        return bool(v)


_ENV_VAR_NAMES = {
    "register_defaults": "ARROWEXT__REGISTER_DEFAULTS",
    "warn_invalid_metadata": "ARROWEXT__WARN_INVALID_METADATA",
}


def get_settings() -> ArrowExtSettings:
    """Get current arrowext settings from environment variables."""
    try:
        return ArrowExtSettings()
    except ValidationError as e:
        error_details = e.errors()[0]
        field_name = error_details.get("loc", [None])[0]
        env_var = _ENV_VAR_NAMES.get(field_name, field_name)
        raise EnvironmentFormatError(env_var, "bool", error_details.get("msg", "")) from e


def register_defaults() -> bool:
    """Whether the global registry is populated with the built-in extensions."""
    return get_settings().register_defaults


def warn_invalid_metadata() -> bool:
    """Whether to warn about invalid tensor metadata on decode."""
    return get_settings().warn_invalid_metadata
