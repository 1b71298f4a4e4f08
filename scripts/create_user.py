#!/usr/bin/env python3
from __future__ import annotations

from getpass import getpass

from pydantic import ValidationError

from finstack import schemas
from finstack.auth.passwords import PasswordHasher
from finstack.config import Settings, load_settings
from finstack.errors import FinstackError
from finstack.infra.database import init_db, make_engine, make_session_factory, session_scope
from finstack.services.user_service import register_user


def main(settings: Settings | None = None) -> None:
    settings = settings or load_settings()
    hasher = PasswordHasher(
        time_cost=settings.hash_time_cost,
        memory_cost=settings.hash_memory_cost,
        parallelism=settings.hash_parallelism,
    )

    email = input("Email: ").strip()
    first_name = input("First name: ").strip()
    last_name = input("Last name: ").strip()

    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")
    if pw1 != pw2:
        raise SystemExit("Passwords do not match")

    engine = make_engine(settings.database_url)
    init_db(engine)
    try:
        user_in = schemas.UserCreate(email=email, password=pw1, first_name=first_name, last_name=last_name)
        with session_scope(make_session_factory(engine)) as session:
            user = register_user(session, hasher, user_in)
            user_id = user.id
    except ValidationError as exc:
        raise SystemExit(f"Invalid input: {exc.error_count()} error(s)") from exc
    except FinstackError as exc:
        raise SystemExit(f"Could not create user: {exc.detail}") from exc
    finally:
        engine.dispose()

    print(f"OK -> {user_id}")


if __name__ == "__main__":
    main()
