"""
live_rekap.schemas.api_response
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Uniform response envelope shared by every control route.
"""
from __future__ import annotations
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

class ApiResponse(BaseModel, Generic[T]):
    """Uniform JSON envelope.

    .. code-block:: json

        {"success": true, "message": "Started live connection for session 42", "data": {...}}

    Attributes:
        success: whether the request did what it asked for.
        message: human-readable status message.
        data: the payload, ``None`` on failure.
    """

    success: bool = Field(default=True, description="Whether the request succeeded")
    message: str = Field(default="success", description="Status message")
    data: Optional[T] = Field(default=None, description="Payload")

    @classmethod
    def ok(cls, data: T, message: str = "success") -> ApiResponse[T]:
        """Build a success response."""
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str = "error", data: Any = None) -> ApiResponse[Any]:
        """Build a failure response."""
        return cls(success=False, message=message, data=data)
