# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from finstack import __version__, schemas
from finstack.auth.credentials import authenticate
from finstack.auth.passwords import PasswordHasher
from finstack.auth.tokens import Clock, InMemoryRevocationList, NullRevocationList, TokenIssuer, TokenVerifier
from finstack.config import Settings
from finstack.errors import Fatal, FinstackError, ServiceUnavailable, Unauthorized
from finstack.infra import models
from finstack.infra.database import get_db, init_db, make_engine, make_session_factory, ping
from finstack.log import setup_logging
from finstack.permissions import Authenticator, Identity, require_identity, require_owner
from finstack.services import record_service, user_service

log = logging.getLogger(__name__)

MESSAGES = {
    400: "Validation failed",
    401: "Unauthorized access",
    403: "Forbidden",
    404: "Resource not found",
    409: "Conflict",
    503: "Database operation failed",
}

router = APIRouter()


def _error_response(status_code: int, detail: str, headers: Optional[dict] = None) -> JSONResponse:
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer", **(headers or {})}
    body = schemas.ErrorResponse(
        message=MESSAGES.get(status_code, "Internal server error"),
        error=detail,
        status=status_code,
    )
    return JSONResponse(body.model_dump(), status_code=status_code, headers=headers)


def _validation_detail(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg', 'invalid')}" if loc else str(err.get("msg", "invalid")))
    return "; ".join(parts) or "Invalid request"


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(FinstackError)
    async def _finstack_error(request: Request, exc: FinstackError):
        if exc.status_code >= 500:
            log.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        return _error_response(exc.status_code, exc.detail)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return _error_response(status.HTTP_400_BAD_REQUEST, _validation_detail(exc))

    @app.exception_handler(OperationalError)
    async def _db_unavailable(request: Request, exc: OperationalError):
        log.error("Database error on %s %s: %s", request.method, request.url.path, exc)
        return _error_response(ServiceUnavailable.status_code, "Database unavailable, retry later")

    @app.exception_handler(PoolTimeoutError)
    async def _pool_exhausted(request: Request, exc: PoolTimeoutError):
        log.error("Connection pool exhausted on %s %s", request.method, request.url.path)
        return _error_response(ServiceUnavailable.status_code, "Database busy, retry later")


def create_app(settings: Settings, *, clock: Clock = time.time) -> FastAPI:
    """Wire the app from explicit settings; nothing here reads the environment."""
    setup_logging(settings.log_level, settings.json_logs)

    engine = make_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        pool_timeout=settings.db_pool_timeout,
    )
    revocations = InMemoryRevocationList() if settings.token_revocation == "memory" else NullRevocationList()
    verifier = TokenVerifier(settings.secret_key, clock=clock, revocations=revocations)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        try:
            init_db(engine)
        except OperationalError as exc:
            raise Fatal(f"Database unreachable at startup: {exc}") from exc
        log.info("finstack started (environment=%s, database=%s)", settings.environment, engine.url.get_backend_name())
        yield
        engine.dispose()

    app = FastAPI(title="Finstack API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.clock = clock
    app.state.hasher = PasswordHasher(
        time_cost=settings.hash_time_cost,
        memory_cost=settings.hash_memory_cost,
        parallelism=settings.hash_parallelism,
    )
    app.state.issuer = TokenIssuer(settings.secret_key, ttl_seconds=settings.token_ttl_hours * 3600, clock=clock)
    app.state.revocations = revocations
    app.state.authenticator = Authenticator(verifier)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def _auth_middleware(request: Request, call_next):
        request.state.auth = request.app.state.authenticator.authenticate(request.headers.get("authorization"))
        return await call_next(request)

    install_error_handlers(app)
    app.include_router(router)
    return app


def _hasher(request: Request) -> PasswordHasher:
    return request.app.state.hasher


def _revoke_existing_tokens(request: Request, user_id: uuid.UUID) -> None:
    request.app.state.revocations.revoke_before(user_id, int(request.app.state.clock()))


# ------------------ Routes ------------------


@router.get("/health", tags=["system"])
def healthcheck() -> dict[str, str]:
    return {"status": "healthy", "service": "finstack-api", "version": __version__}


@router.get("/health/detailed", tags=["system"])
def healthcheck_detailed(request: Request):
    db_ok = ping(request.app.state.engine)
    payload = {
        "status": "healthy" if db_ok else "unhealthy",
        "service": "finstack-api",
        "version": __version__,
        "checks": {"database": "healthy" if db_ok else "unhealthy"},
    }
    return JSONResponse(payload, status_code=status.HTTP_200_OK if db_ok else status.HTTP_503_SERVICE_UNAVAILABLE)


@router.post("/users", response_model=schemas.UserRead, status_code=status.HTTP_201_CREATED, tags=["auth"])
def register(
    user_in: schemas.UserCreate,
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(_hasher),
) -> schemas.UserRead:
    return user_service.register_user(db, hasher, user_in)


@router.post("/login", response_model=schemas.TokenResponse, tags=["auth"])
def login(
    login_in: schemas.LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(_hasher),
) -> schemas.TokenResponse:
    user = authenticate(db, hasher, login_in.email, login_in.password)
    if user is None:
        raise Unauthorized("Invalid credentials")
    issuer: TokenIssuer = request.app.state.issuer
    issued = issuer.issue(user.id)
    log.info("Login succeeded for user %s", user.id)
    return schemas.TokenResponse(
        token=issued.token,
        expires_in=issuer.ttl_seconds,
        expires_at=issued.expires_at_dt,
        user=schemas.UserRead.model_validate(user),
    )


@router.post("/logout", response_model=schemas.MessageRead, tags=["auth"])
def logout(identity: Identity = Depends(require_identity)) -> schemas.MessageRead:
    # Tokens are stateless; the client discards its copy.
    return schemas.MessageRead(message="Logout successful. Please delete the token from client storage.")


@router.get("/me", response_model=schemas.UserRead, tags=["auth"])
def me(identity: Identity = Depends(require_identity), db: Session = Depends(get_db)) -> schemas.UserRead:
    return user_service.get_user(db, identity.user_id)


@router.get("/users/{user_id}", response_model=schemas.UserRead, tags=["users"])
def get_user(
    user_id: uuid.UUID,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
) -> schemas.UserRead:
    return user_service.get_user(db, user_id)


@router.patch("/users/{user_id}", response_model=schemas.UserRead, tags=["users"])
def update_user(
    user_id: uuid.UUID,
    update_in: schemas.UserUpdate,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
) -> schemas.UserRead:
    return user_service.update_user(db, user_id, update_in)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["users"])
def delete_user(
    user_id: uuid.UUID,
    request: Request,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
) -> Response:
    user_service.delete_user(db, user_id)
    _revoke_existing_tokens(request, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/users/{user_id}/password", status_code=status.HTTP_204_NO_CONTENT, tags=["users"])
def change_password(
    user_id: uuid.UUID,
    change_in: schemas.PasswordChange,
    request: Request,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(_hasher),
) -> Response:
    user_service.change_password(db, hasher, user_id, change_in)
    _revoke_existing_tokens(request, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/users/{user_id}/incomes", response_model=List[schemas.IncomeRead], tags=["incomes"])
def list_incomes(
    user_id: uuid.UUID,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
) -> List[schemas.IncomeRead]:
    return record_service.list_records(db, models.Income, user_id)


@router.post(
    "/users/{user_id}/incomes",
    response_model=schemas.IncomeRead,
    status_code=status.HTTP_201_CREATED,
    tags=["incomes"],
)
def create_income(
    user_id: uuid.UUID,
    income_in: schemas.IncomeCreate,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
) -> schemas.IncomeRead:
    return record_service.create_record(db, models.Income, user_id, income_in)


@router.get("/users/{user_id}/incomes/{income_id}", response_model=schemas.IncomeRead, tags=["incomes"])
def get_income(
    user_id: uuid.UUID,
    income_id: uuid.UUID,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
) -> schemas.IncomeRead:
    return record_service.get_record(db, models.Income, user_id, income_id)


@router.patch("/users/{user_id}/incomes/{income_id}", response_model=schemas.IncomeRead, tags=["incomes"])
def update_income(
    user_id: uuid.UUID,
    income_id: uuid.UUID,
    update_in: schemas.IncomeUpdate,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
) -> schemas.IncomeRead:
    return record_service.update_record(db, models.Income, user_id, income_id, update_in)


@router.delete("/users/{user_id}/incomes/{income_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["incomes"])
def delete_income(
    user_id: uuid.UUID,
    income_id: uuid.UUID,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
) -> Response:
    record_service.delete_record(db, models.Income, user_id, income_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/users/{user_id}/expenses", response_model=List[schemas.ExpenseRead], tags=["expenses"])
def list_expenses(
    user_id: uuid.UUID,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
) -> List[schemas.ExpenseRead]:
    return record_service.list_records(db, models.Expense, user_id)


@router.post(
    "/users/{user_id}/expenses",
    response_model=schemas.ExpenseRead,
    status_code=status.HTTP_201_CREATED,
    tags=["expenses"],
)
def create_expense(
    user_id: uuid.UUID,
    expense_in: schemas.ExpenseCreate,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
) -> schemas.ExpenseRead:
    return record_service.create_record(db, models.Expense, user_id, expense_in)


@router.get("/users/{user_id}/expenses/{expense_id}", response_model=schemas.ExpenseRead, tags=["expenses"])
def get_expense(
    user_id: uuid.UUID,
    expense_id: uuid.UUID,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
) -> schemas.ExpenseRead:
    return record_service.get_record(db, models.Expense, user_id, expense_id)


@router.patch("/users/{user_id}/expenses/{expense_id}", response_model=schemas.ExpenseRead, tags=["expenses"])
def update_expense(
    user_id: uuid.UUID,
    expense_id: uuid.UUID,
    update_in: schemas.ExpenseUpdate,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
) -> schemas.ExpenseRead:
    return record_service.update_record(db, models.Expense, user_id, expense_id, update_in)


@router.delete("/users/{user_id}/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["expenses"])
def delete_expense(
    user_id: uuid.UUID,
    expense_id: uuid.UUID,
    _: Identity = Depends(require_owner),
    db: Session = Depends(get_db),
) -> Response:
    record_service.delete_record(db, models.Expense, user_id, expense_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
