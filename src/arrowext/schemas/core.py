"""This module implements the core components of the arrowext schemas."""

from __future__ import annotations

from pydantic import BaseModel
from pydantic import ConfigDict


class FrozenMetadataModel(BaseModel):
    """An immutable model that ignores unknown keys.

    Extension metadata written by other Arrow implementations may carry members we don't know about,
    they are dropped instead of rejected.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        validate_default=True,
    )
