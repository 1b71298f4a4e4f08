# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from argon2.profiles import RFC_9106_LOW_MEMORY

from finstack.auth.tokens import SigningUnavailable
from finstack.errors import Fatal

ENVIRONMENTS = ("development", "staging", "production")
MIN_SECRET_LENGTH = 32
MIN_PRODUCTION_SECRET_LENGTH = 64


def _flag(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class Settings:
    secret_key: str
    database_url: str = "sqlite:///finstack.db"
    token_ttl_hours: int = 24
    hash_time_cost: int = RFC_9106_LOW_MEMORY.time_cost
    hash_memory_cost: int = RFC_9106_LOW_MEMORY.memory_cost
    hash_parallelism: int = RFC_9106_LOW_MEMORY.parallelism
    db_pool_size: int = 5
    db_pool_timeout: int = 30
    environment: str = "development"
    log_level: str = "INFO"
    json_logs: bool = False
    token_revocation: str = "none"

    def __repr__(self) -> str:
        # The signing key never shows up in logs or tracebacks.
        return (
            f"Settings(database_url={self.database_url!r}, environment={self.environment!r}, "
            f"token_ttl_hours={self.token_ttl_hours}, token_revocation={self.token_revocation!r})"
        )


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise Fatal(f"{name} must be an integer") from exc
    if value <= 0:
        raise Fatal(f"{name} must be positive")
    return value


def validate_secret(secret: Optional[str], environment: str) -> str:
    if not secret:
        raise SigningUnavailable("FINSTACK_SECRET_KEY (or SECRET_KEY) is not set")
    if len(secret) < MIN_SECRET_LENGTH:
        raise SigningUnavailable(f"Signing key must be at least {MIN_SECRET_LENGTH} characters long")
    if environment == "production":
        lowered = secret.lower()
        if "dev" in lowered or "test" in lowered or len(secret) < MIN_PRODUCTION_SECRET_LENGTH:
            raise SigningUnavailable(
                f"Production signing key looks insecure; use a random string of {MIN_PRODUCTION_SECRET_LENGTH}+ chars"
            )
    return secret


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from the environment once, at process startup."""
    env = os.environ if env is None else env

    environment = (env.get("FINSTACK_ENVIRONMENT") or "development").strip().lower()
    if environment not in ENVIRONMENTS:
        raise Fatal(f"FINSTACK_ENVIRONMENT must be one of: {', '.join(ENVIRONMENTS)}")

    secret = validate_secret(env.get("FINSTACK_SECRET_KEY") or env.get("SECRET_KEY"), environment)

    revocation = (env.get("FINSTACK_TOKEN_REVOCATION") or "none").strip().lower()
    if revocation not in {"none", "memory"}:
        raise Fatal("FINSTACK_TOKEN_REVOCATION must be 'none' or 'memory'")

    return Settings(
        secret_key=secret,
        database_url=env.get("FINSTACK_DATABASE_URL") or env.get("DATABASE_URL") or Settings.database_url,
        token_ttl_hours=_int(env, "FINSTACK_TOKEN_TTL_HOURS", Settings.token_ttl_hours),
        hash_time_cost=_int(env, "FINSTACK_HASH_TIME_COST", Settings.hash_time_cost),
        hash_memory_cost=_int(env, "FINSTACK_HASH_MEMORY_COST", Settings.hash_memory_cost),
        hash_parallelism=_int(env, "FINSTACK_HASH_PARALLELISM", Settings.hash_parallelism),
        db_pool_size=_int(env, "FINSTACK_DB_POOL_SIZE", Settings.db_pool_size),
        db_pool_timeout=_int(env, "FINSTACK_DB_POOL_TIMEOUT", Settings.db_pool_timeout),
        environment=environment,
        log_level=(env.get("FINSTACK_LOG_LEVEL") or "INFO").strip().upper(),
        json_logs=_flag(env.get("FINSTACK_JSON_LOGS", "")),
        token_revocation=revocation,
    )
