# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from finstack import schemas
from finstack.auth.credentials import delete_credential, insert_credential
from finstack.auth.passwords import MalformedHash, PasswordHasher
from finstack.errors import Conflict, InvalidInput, NotFound
from finstack.infra import models
from finstack.infra.database import retry_read
from finstack.infra.models import utcnow

log = logging.getLogger(__name__)


def register_user(session: Session, hasher: PasswordHasher, user_in: schemas.UserCreate) -> models.User:
    if user_in.confirm_password is not None and user_in.confirm_password != user_in.password:
        raise InvalidInput("Passwords do not match")
    user = insert_credential(
        session,
        email=user_in.email,
        password_hash=hasher.hash(user_in.password),
        hash_scheme=hasher.scheme,
        first_name=user_in.first_name,
        last_name=user_in.last_name,
    )
    log.info("Registered user %s", user.id)
    return user


def require_user(session: Session, user_id: uuid.UUID) -> models.User:
    """Load a user or raise ``NotFound``; callers decide whether to retry."""
    user = session.get(models.User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")
    return user


@retry_read
def get_user(session: Session, user_id: uuid.UUID) -> models.User:
    return require_user(session, user_id)


def update_user(session: Session, user_id: uuid.UUID, update_in: schemas.UserUpdate) -> models.User:
    """Apply only the supplied fields; the id never changes."""
    user = require_user(session, user_id)
    changes = update_in.model_dump(exclude_unset=True)
    new_email = changes.get("email")
    if new_email is not None and new_email != user.email:
        taken = session.scalar(select(models.User.id).where(models.User.email == new_email))
        if taken is not None:
            raise Conflict("Email already exists")
    for field, value in changes.items():
        setattr(user, field, value)
    user.updated_at = utcnow()
    try:
        session.flush()
    except IntegrityError as exc:
        raise Conflict("Email already exists") from exc
    session.refresh(user)
    return user


def delete_user(session: Session, user_id: uuid.UUID) -> None:
    """Hard delete; owned incomes and expenses go with the user."""
    if not delete_credential(session, user_id):
        raise NotFound(f"User {user_id} not found")
    log.info("Deleted user %s", user_id)


def change_password(
    session: Session,
    hasher: PasswordHasher,
    user_id: uuid.UUID,
    change_in: schemas.PasswordChange,
) -> models.User:
    user = require_user(session, user_id)
    try:
        ok = hasher.verify(change_in.current_password, user.password_hash)
    except MalformedHash:
        log.error("Password change rejected: stored hash for user %s is malformed", user.id)
        ok = False
    if not ok:
        raise InvalidInput("Current password is incorrect")
    user.password_hash = hasher.hash(change_in.new_password)
    user.hash_scheme = hasher.scheme
    user.updated_at = utcnow()
    session.flush()
    log.info("Password changed for user %s", user.id)
    return user
