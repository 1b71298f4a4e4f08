# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Credential store on top of the ``users`` table.

The hash and its scheme tag live on the user row, so a credential is created
with the user and destroyed with it.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from finstack.auth.passwords import MalformedHash, PasswordHasher
from finstack.errors import Conflict
from finstack.infra import models
from finstack.infra.database import retry_read

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CredentialRecord:
    user_id: uuid.UUID
    email: str
    password_hash: str
    hash_scheme: str


def _record(user: models.User) -> CredentialRecord:
    return CredentialRecord(
        user_id=user.id,
        email=user.email,
        password_hash=user.password_hash,
        hash_scheme=user.hash_scheme,
    )


def insert_credential(
    session: Session,
    *,
    email: str,
    password_hash: str,
    hash_scheme: str,
    first_name: str = "",
    last_name: str = "",
) -> models.User:
    if session.scalar(select(models.User.id).where(models.User.email == email)) is not None:
        raise Conflict("Email already exists")
    user = models.User(
        email=email,
        password_hash=password_hash,
        hash_scheme=hash_scheme,
        first_name=first_name,
        last_name=last_name,
    )
    session.add(user)
    try:
        session.flush()
    except IntegrityError as exc:
        # Concurrent registration with the same email won the race.
        raise Conflict("Email already exists") from exc
    session.refresh(user)
    return user


@retry_read
def fetch_credential_by_email(session: Session, email: str) -> Optional[CredentialRecord]:
    if not email:
        return None
    user = session.scalar(select(models.User).where(models.User.email == email))
    return _record(user) if user is not None else None


def delete_credential(session: Session, user_id: uuid.UUID) -> bool:
    user = session.get(models.User, user_id)
    if user is None:
        return False
    session.delete(user)
    session.flush()
    return True


def authenticate(session: Session, hasher: PasswordHasher, email: str, password: str) -> Optional[models.User]:
    """Return the user for a correct email/password pair, else None.

    Callers get the same answer for an unknown email and a wrong password;
    only the log tells them apart.
    """
    record = fetch_credential_by_email(session, email)
    if record is None:
        hasher.verify_dummy(password)
        log.info("Login rejected: unknown_email")
        return None

    try:
        ok = hasher.verify(password, record.password_hash)
    except MalformedHash:
        log.error("Login rejected: stored hash for user %s is malformed", record.user_id)
        return None
    if not ok:
        log.info("Login rejected: password_mismatch for user %s", record.user_id)
        return None

    user = session.get(models.User, record.user_id)
    if user is not None and hasher.needs_rehash(record.password_hash):
        user.password_hash = hasher.hash(password)
        user.hash_scheme = hasher.scheme
        session.flush()
        log.info("Re-hashed password for user %s with current parameters", user.id)
    return user
