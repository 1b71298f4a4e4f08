# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""SQLAlchemy models: users own incomes and expenses."""

from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from finstack.infra.database import Base


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    id: uuid.UUID = Column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name: str = Column(String(100), nullable=False, default="")
    last_name: str = Column(String(100), nullable=False, default="")
    email: str = Column(String(255), unique=True, nullable=False, index=True)
    password_hash: str = Column(String(255), nullable=False)
    hash_scheme: str = Column(String(32), nullable=False)
    created_at: dt.datetime = Column(DateTime, nullable=False, default=utcnow)
    updated_at: dt.datetime = Column(DateTime, nullable=False, default=utcnow)

    incomes = relationship("Income", back_populates="user", cascade="all, delete-orphan")
    expenses = relationship("Expense", back_populates="user", cascade="all, delete-orphan")


class Income(Base):
    __tablename__ = "incomes"

    id: uuid.UUID = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: uuid.UUID = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    source: str = Column(String(255), nullable=False)
    amount: Decimal = Column(Numeric(12, 2), nullable=False)
    date: dt.date = Column(Date, nullable=False)
    description: Optional[str] = Column(Text, nullable=True)
    created_at: dt.datetime = Column(DateTime, nullable=False, default=utcnow)
    updated_at: dt.datetime = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="incomes")


class Expense(Base):
    __tablename__ = "expenses"

    id: uuid.UUID = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: uuid.UUID = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    item_name: str = Column(String(255), nullable=False)
    amount: Decimal = Column(Numeric(12, 2), nullable=False)
    date: dt.date = Column(Date, nullable=False)
    description: Optional[str] = Column(Text, nullable=True)
    created_at: dt.datetime = Column(DateTime, nullable=False, default=utcnow)
    updated_at: dt.datetime = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="expenses")
