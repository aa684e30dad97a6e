"""
Error envelope shared by every router's `responses=` declarations.
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class FieldError(BaseModel):
    """One entry of `details.errors` on a 422 VALIDATION_ERROR."""
    field: str = Field(examples=["sub_category"])
    message: str
    type: str = Field(examples=["missing"])


class ErrorResponse(BaseModel):
    """`{code, message, details}` body of every 4xx/5xx response."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "code": "ACTIVITY_NOT_FOUND",
                "message": "Activity 42 not found.",
                "details": {"activity_id": 42},
            }
        }
    )

    code: str
    message: str
    details: Optional[dict[str, Any]] = Field(
        default=None,
        description="Error-specific context; `errors` holds a list of FieldError on 422s.",
    )
