# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from leavedesk.models.enums import IdentityStatus
from leavedesk.schemas.employee import EmployeeResponse


class LoginPayload(BaseModel):
    """Credentials for password sign-in."""

    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=1024)


class AuthSession(BaseModel):
    """An authenticated session issued by the identity provider."""

    token: str
    user_id: uuid.UUID
    email: str
    expires_at: datetime


class TokenResponse(BaseModel):
    """Session token handed back to the client."""

    access_token: str
    token_type: str = "bearer"
    expires_at: datetime


class IdentityState(BaseModel):
    """What a client currently knows about who is signed in."""

    status: IdentityStatus
    employee: EmployeeResponse | None = None
    detail: str | None = None
