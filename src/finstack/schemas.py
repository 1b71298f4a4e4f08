# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Pydantic schemas for requests and responses.

Response models never carry ``password_hash``.
"""

from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- users / auth ---


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    confirm_password: Optional[str] = None
    first_name: str = Field("", max_length=100)
    last_name: str = Field("", max_length=100)


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)

    @field_validator("email", "first_name", "last_name")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("field cannot be null")
        return value


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class UserRead(ORMModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    created_at: dt.datetime
    updated_at: dt.datetime


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    token: str
    token_type: str = "Bearer"
    expires_in: int
    expires_at: dt.datetime
    user: UserRead


class MessageRead(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    message: str
    error: Optional[str] = None
    status: int


# --- incomes ---


class IncomeCreate(BaseModel):
    source: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    date: Optional[dt.date] = None
    description: Optional[str] = None


class IncomeUpdate(BaseModel):
    source: Optional[str] = Field(None, min_length=1, max_length=255)
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    date: Optional[dt.date] = None
    description: Optional[str] = None

    @field_validator("source", "amount", "date")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("field cannot be null")
        return value


class IncomeRead(ORMModel):
    id: uuid.UUID
    user_id: uuid.UUID
    source: str
    amount: Decimal
    date: dt.date
    description: Optional[str]
    created_at: dt.datetime
    updated_at: dt.datetime


# --- expenses ---


class ExpenseCreate(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    date: Optional[dt.date] = None
    description: Optional[str] = None


class ExpenseUpdate(BaseModel):
    item_name: Optional[str] = Field(None, min_length=1, max_length=255)
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    date: Optional[dt.date] = None
    description: Optional[str] = None

    @field_validator("item_name", "amount", "date")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("field cannot be null")
        return value


class ExpenseRead(ORMModel):
    id: uuid.UUID
    user_id: uuid.UUID
    item_name: str
    amount: Decimal
    date: dt.date
    description: Optional[str]
    created_at: dt.datetime
    updated_at: dt.datetime
