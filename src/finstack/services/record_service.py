# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""CRUD for records owned by a user (incomes, expenses).

Every lookup is scoped by owner: a record that exists but belongs to someone
else is reported exactly like a missing one.
"""

from __future__ import annotations

import uuid
from typing import List, Type, TypeVar, Union

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from finstack.errors import NotFound
from finstack.infra import models
from finstack.infra.database import retry_read
from finstack.infra.models import utcnow
from finstack.services import user_service

Record = TypeVar("Record", models.Income, models.Expense)
RecordModel = Type[Union[models.Income, models.Expense]]

LABELS = {models.Income: "Income", models.Expense: "Expense"}


@retry_read
def list_records(session: Session, model: RecordModel, owner_id: uuid.UUID) -> List[Record]:
    user_service.require_user(session, owner_id)
    stmt = (
        select(model)
        .where(model.user_id == owner_id)
        .order_by(model.date.desc(), model.created_at.desc())
    )
    return list(session.scalars(stmt))


@retry_read
def get_record(session: Session, model: RecordModel, owner_id: uuid.UUID, record_id: uuid.UUID) -> Record:
    stmt = select(model).where(model.id == record_id, model.user_id == owner_id)
    record = session.scalar(stmt)
    if record is None:
        raise NotFound(f"{LABELS[model]} {record_id} not found")
    return record


def create_record(session: Session, model: RecordModel, owner_id: uuid.UUID, record_in: BaseModel) -> Record:
    user_service.require_user(session, owner_id)
    data = record_in.model_dump(exclude_unset=True)
    now = utcnow()
    if data.get("date") is None:
        data["date"] = now.date()
    record = model(user_id=owner_id, created_at=now, updated_at=now, **data)
    session.add(record)
    session.flush()
    session.refresh(record)
    return record


def update_record(
    session: Session,
    model: RecordModel,
    owner_id: uuid.UUID,
    record_id: uuid.UUID,
    update_in: BaseModel,
) -> Record:
    record = get_record(session, model, owner_id, record_id)
    for field, value in update_in.model_dump(exclude_unset=True).items():
        setattr(record, field, value)
    record.updated_at = utcnow()
    session.flush()
    session.refresh(record)
    return record


def delete_record(session: Session, model: RecordModel, owner_id: uuid.UUID, record_id: uuid.UUID) -> None:
    record = get_record(session, model, owner_id, record_id)
    session.delete(record)
    session.flush()
