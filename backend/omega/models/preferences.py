"""User preference models."""

from datetime import datetime
from typing import Any

from pydantic import Field

from omega.models.base import ApiModel


class PreferencesUpdate(ApiModel):
    """Body of ``PUT /preferences/{user_id}``; replaces the stored payload."""

    preferences: dict[str, Any] = Field(default_factory=dict)


class PreferencesOut(ApiModel):
    """Stored preferences for one user."""

    user_id: str
    preferences: dict[str, Any]
    created_at: datetime
    updated_at: datetime
