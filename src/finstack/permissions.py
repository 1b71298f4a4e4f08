# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Per-request identity resolution and ownership checks.

Each request moves ``unauthenticated -> token_present -> verified | rejected``.
The HTTP middleware stores the outcome on ``request.state.auth``; route
dependencies turn a rejection into 401 and an owner mismatch into 403, so the
handler itself never runs for either.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from finstack.auth.tokens import TokenError, TokenVerifier
from finstack.errors import Forbidden

log = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "

# Only declares the scheme for the interactive docs; resolution happens below.
bearer_scheme = HTTPBearer(auto_error=False)


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    TOKEN_PRESENT = "token_present"
    VERIFIED = "verified"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Identity:
    user_id: uuid.UUID
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class AuthOutcome:
    state: AuthState
    identity: Optional[Identity] = None
    reason: str = ""


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    """Return the token of an ``Authorization: Bearer <token>`` header, or None."""
    if not authorization:
        return None
    value = authorization.strip()
    if value[: len(BEARER_PREFIX)].lower() != BEARER_PREFIX:
        return None
    return value[len(BEARER_PREFIX):].strip() or None


class Authenticator:
    def __init__(self, verifier: TokenVerifier) -> None:
        self._verifier = verifier

    def authenticate(self, authorization: Optional[str]) -> AuthOutcome:
        state = AuthState.UNAUTHENTICATED
        if not authorization:
            return _transition(state, AuthOutcome(AuthState.REJECTED, reason="missing_credential"))
        token = extract_bearer(authorization)
        if token is None:
            return _transition(state, AuthOutcome(AuthState.REJECTED, reason="malformed"))
        return self.verify_token(token)

    def verify_token(self, token: str) -> AuthOutcome:
        state = AuthState.TOKEN_PRESENT
        try:
            claims = self._verifier.claims(token)
        except TokenError as exc:
            return _transition(state, AuthOutcome(AuthState.REJECTED, reason=exc.reason))
        identity = Identity(user_id=claims.subject, issued_at=claims.issued_at, expires_at=claims.expires_at)
        return _transition(state, AuthOutcome(AuthState.VERIFIED, identity=identity))


def _transition(source: AuthState, outcome: AuthOutcome) -> AuthOutcome:
    log.debug("auth %s -> %s%s", source.value, outcome.state.value, f" ({outcome.reason})" if outcome.reason else "")
    return outcome


def authorize(identity: Identity, resource_owner: uuid.UUID) -> bool:
    """No privileged roles exist: only the owner may touch a resource."""
    return identity.user_id == resource_owner


def current_outcome(request: Request) -> AuthOutcome:
    outcome = getattr(request.state, "auth", None)
    if outcome is not None:
        return outcome
    return request.app.state.authenticator.authenticate(request.headers.get("authorization"))


def require_identity(
    request: Request,
    _credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Identity:
    outcome = current_outcome(request)
    if outcome.state is AuthState.VERIFIED and outcome.identity is not None:
        return outcome.identity
    log.info("Rejected %s %s: %s", request.method, request.url.path, outcome.reason or "unauthenticated")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing or invalid credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_owner(user_id: uuid.UUID, identity: Identity = Depends(require_identity)) -> Identity:
    """Resource-scoped routes: the path's ``user_id`` must be the caller."""
    if not authorize(identity, user_id):
        log.warning("Forbidden: user %s tried to access resources of %s", identity.user_id, user_id)
        raise Forbidden("Forbidden")
    return identity
