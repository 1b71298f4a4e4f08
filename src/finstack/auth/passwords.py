# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Optional

from argon2 import PasswordHasher as _Argon2Hasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from finstack.errors import InvalidInput

HASH_SCHEME = "argon2id"
MAX_PASSWORD_BYTES = 256


class InvalidPassword(InvalidInput):
    message = "Password must be between 1 and 256 bytes"


class MalformedHash(ValueError):
    """Stored hash does not parse as an argon2 encoded hash."""


def _check_bounds(plain: str) -> None:
    if not plain or len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise InvalidPassword()


class PasswordHasher:
    """Slow, salted hashing with the work factor fixed at construction."""

    scheme = HASH_SCHEME

    def __init__(self, *, time_cost: int, memory_cost: int, parallelism: int) -> None:
        self._ph = _Argon2Hasher(time_cost=time_cost, memory_cost=memory_cost, parallelism=parallelism)
        self._dummy_hash: Optional[str] = None

    def hash(self, plain: str) -> str:
        _check_bounds(plain)
        return self._ph.hash(plain)

    def _parse(self, hash_value: str) -> bool:
        """Parse ``hash_value``; return whether it was made with other parameters."""
        try:
            return self._ph.check_needs_rehash(hash_value)
        except (ValueError, KeyError) as exc:
            raise MalformedHash("Stored password hash cannot be parsed") from exc

    def verify(self, plain: str, hash_value: str) -> bool:
        # The stored hash is checked first, so a corrupt row is reported even
        # when the submitted password would be rejected on length alone.
        self._parse(hash_value)
        if not plain or len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
            return False
        try:
            return self._ph.verify(hash_value, plain)
        except VerifyMismatchError:
            return False
        except InvalidHashError as exc:
            raise MalformedHash("Stored password hash cannot be parsed") from exc
        except VerificationError:
            return False

    def needs_rehash(self, hash_value: str) -> bool:
        return self._parse(hash_value)

    def verify_dummy(self, plain: str) -> bool:
        """Spend the same work as a real check when there is no stored hash."""
        if self._dummy_hash is None:
            self._dummy_hash = self._ph.hash("finstack-no-such-user")
        self.verify(plain, self._dummy_hash)
        return False
