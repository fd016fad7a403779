"""
AssetHub Backend — Shared Schema Types
=======================================

What:  Enumerations, the authenticated identity, and the error/health
       response envelopes shared by every route.
"""

import uuid
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field


class AccessLevel(str, Enum):
    """Grant level. WRITE implies READ."""

    READ = "read"
    WRITE = "write"

    @classmethod
    def parse(cls, value: str) -> Optional["AccessLevel"]:
        try:
            return cls(value)
        except ValueError:
            return None

    def satisfies(self, required: "AccessLevel") -> bool:
        return self is AccessLevel.WRITE or required is AccessLevel.READ


class AssetType(str, Enum):
    FOLDER = "folder"
    NOTE = "note"


class UserRole(str, Enum):
    MANAGER = "manager"
    MEMBER = "member"


class Identity(BaseModel):
    """
    The authenticated caller.

    Produced by the external auth layer (see routes.deps) and passed to every
    core operation. The core never verifies credentials itself.
    """

    user_id: uuid.UUID
    role: UserRole = UserRole.MEMBER

    model_config = {"frozen": True}

    @property
    def is_manager(self) -> bool:
        return self.role is UserRole.MANAGER


class MessageResponse(BaseModel):
    message: str


# ══════════════════════════════════════════════════════════════════════════
# Error Response Models — Consistent error format across all endpoints
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Fields:
        error: Machine-readable error code (e.g., "validation_error", "access_denied")
        message: Human-readable description
        details: Optional extra context (e.g., which field failed validation)
        request_id: Correlation ID for tracing this error in server logs
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """
    What:  Health check response showing service and dependency status.
    Who:   Returned by GET /health for monitoring and load balancer probes.
    """
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    cache: Dict[str, object] = Field(description="Cache backend health summary")
    event_bus: Dict[str, object] = Field(description="Event bus health summary")
    uptime_seconds: float = Field(description="Seconds since service started")
