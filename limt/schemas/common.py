"""Common Pydantic models used across the application."""

from __future__ import annotations

from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str = Field(..., description="Error message")
    code: Optional[str] = Field(None, description="Error code for programmatic handling")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error details")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "You are not a member of this organization",
                "code": "FORBIDDEN",
            }
        }
    )


class ActionSuccess(BaseModel, Generic[T]):
    """Successful action outcome."""

    success: Literal[True] = True
    data: T = Field(..., description="Action payload")


class ActionFailure(ErrorResponse):
    """Failed action outcome. Never carries raw exception text."""

    success: Literal[False] = False

