"""Tool definition models for the administration endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator

from omega.models.base import ApiModel


class ToolCreate(ApiModel):
    name: str = Field(min_length=1, max_length=100, pattern=r"^[A-Za-z][A-Za-z0-9_]*$")
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True
    category: str = "general"


class ToolUpdate(ApiModel):
    name: Optional[str] = Field(
        default=None, min_length=1, max_length=100, pattern=r"^[A-Za-z][A-Za-z0-9_]*$"
    )
    description: Optional[str] = None
    parameters: Optional[dict[str, Any]] = None
    enabled: Optional[bool] = None
    category: Optional[str] = None

    @field_validator("name", "description", "parameters", "enabled", "category")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class ToolOut(ApiModel):
    id: str
    name: str
    description: str
    parameters: dict[str, Any]
    enabled: bool
    category: str
    implementation: Optional[dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime
