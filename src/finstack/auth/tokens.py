# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Signed bearer tokens.

A token is an itsdangerous URL-safe signed payload ``{"sub", "iat", "exp"}``.
Nothing is persisted: a token stops verifying once ``exp`` has passed or the
signing key changes.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Protocol

from itsdangerous import URLSafeSerializer

from finstack.errors import Fatal

TOKEN_SALT = "finstack.token.v1"

Clock = Callable[[], float]


class SigningUnavailable(Fatal):
    """Signing key missing or unusable at startup."""


class TokenError(Exception):
    reason = "invalid"


class Malformed(TokenError):
    reason = "malformed"


class SignatureInvalid(TokenError):
    reason = "signature_invalid"


class Expired(TokenError):
    reason = "expired"


class Revoked(TokenError):
    reason = "revoked"


@dataclass(frozen=True)
class IssuedToken:
    token: str
    subject: uuid.UUID
    issued_at: int
    expires_at: int

    @property
    def expires_at_dt(self) -> datetime:
        return datetime.fromtimestamp(self.expires_at, tz=timezone.utc)


@dataclass(frozen=True)
class TokenClaims:
    subject: uuid.UUID
    issued_at: int
    expires_at: int


class RevocationList(Protocol):
    def revoke_before(self, user_id: uuid.UUID, cutoff: int) -> None: ...

    def is_revoked(self, user_id: uuid.UUID, issued_at: int) -> bool: ...


class NullRevocationList:
    """Tokens stay valid until they expire."""

    def revoke_before(self, user_id: uuid.UUID, cutoff: int) -> None:
        return None

    def is_revoked(self, user_id: uuid.UUID, issued_at: int) -> bool:
        return False


class InMemoryRevocationList:
    """Per-process record of "tokens for user U issued before T are void"."""

    def __init__(self) -> None:
        self._cutoffs: Dict[uuid.UUID, int] = {}
        self._lock = threading.Lock()

    def revoke_before(self, user_id: uuid.UUID, cutoff: int) -> None:
        with self._lock:
            self._cutoffs[user_id] = max(cutoff, self._cutoffs.get(user_id, cutoff))

    def is_revoked(self, user_id: uuid.UUID, issued_at: int) -> bool:
        with self._lock:
            cutoff = self._cutoffs.get(user_id)
        return cutoff is not None and issued_at < cutoff


def _serializer(secret_key: str) -> URLSafeSerializer:
    if not secret_key:
        raise SigningUnavailable("Signing key is empty")
    return URLSafeSerializer(secret_key=secret_key, salt=TOKEN_SALT)


class TokenIssuer:
    def __init__(self, secret_key: str, *, ttl_seconds: int, clock: Clock = time.time) -> None:
        if ttl_seconds <= 0:
            raise ValueError("Token lifetime must be positive")
        self._s = _serializer(secret_key)
        self._ttl = int(ttl_seconds)
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def issue(self, user_id: uuid.UUID) -> IssuedToken:
        iat = int(self._clock())
        exp = iat + self._ttl
        token = self._s.dumps({"sub": str(user_id), "iat": iat, "exp": exp})
        return IssuedToken(token=token, subject=user_id, issued_at=iat, expires_at=exp)


class TokenVerifier:
    def __init__(
        self,
        secret_key: str,
        *,
        clock: Clock = time.time,
        revocations: Optional[RevocationList] = None,
    ) -> None:
        self._s = _serializer(secret_key)
        self._clock = clock
        self._revocations = revocations or NullRevocationList()

    def claims(self, token: str) -> TokenClaims:
        """Check signature, claim shape, expiry and revocation, in that order."""
        if not token:
            raise Malformed("Empty token")
        valid, payload = self._s.loads_unsafe(token)
        if payload is None:
            raise Malformed("Token cannot be decoded")
        if not valid:
            raise SignatureInvalid("Token signature does not match")

        claims = _parse_claims(payload)
        if self._clock() >= claims.expires_at:
            raise Expired("Token has expired")
        if self._revocations.is_revoked(claims.subject, claims.issued_at):
            raise Revoked("Token has been revoked")
        return claims

    def verify(self, token: str) -> uuid.UUID:
        return self.claims(token).subject


def _parse_claims(payload: object) -> TokenClaims:
    if not isinstance(payload, dict):
        raise Malformed("Token payload is not an object")
    sub, iat, exp = payload.get("sub"), payload.get("iat"), payload.get("exp")
    if not isinstance(sub, str) or not isinstance(iat, int) or not isinstance(exp, int):
        raise Malformed("Token claims are missing or mistyped")
    if isinstance(iat, bool) or isinstance(exp, bool) or exp <= iat:
        raise Malformed("Token claims are inconsistent")
    try:
        subject = uuid.UUID(sub)
    except ValueError as exc:
        raise Malformed("Token subject is not a user id") from exc
    return TokenClaims(subject=subject, issued_at=iat, expires_at=exp)
