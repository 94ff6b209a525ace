"""Pydantic schemas for the account endpoints.

Learn: Pydantic v2 models validate request/response data. Separate
request schemas (input) from read schemas (output). AccountRead lists
only public fields, so the password hash and token columns can never
leak through a response even if a route returns the ORM object.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


# ─── Requests ───────────────────────────────────────────

class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=100, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr
    name: Optional[str] = Field(None, max_length=100)
    password: str = Field(..., min_length=6, max_length=128)


class AuthenticateRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1, max_length=128)


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    reset_token: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=6, max_length=128)


# ─── Responses ──────────────────────────────────────────

class AccountRead(BaseModel):
    id: uuid.UUID
    username: str
    email: str
    name: Optional[str] = None
    verified: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class AckResponse(BaseModel):
    success: bool = True
    message: str


class AuthResponse(BaseModel):
    success: bool = True
    user: AccountRead
    token: str
    token_type: str = "bearer"


class ErrorResponse(BaseModel):
    success: bool = False
    kind: str
    message: str
