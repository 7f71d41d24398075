"""HTTP route definitions for the user management service."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from prometheus_client import Counter
from pydantic import BaseModel, ConfigDict, Field

from ..domain.account import Account, AccountSummary
from ..domain.service import AccountService
from ..errors import (
    AccountBlocked,
    AccountError,
    EmailTaken,
    InvalidCredentials,
    NotFound,
    Unauthenticated,
    ValidationError,
)
from ..security.guard import AccessGuard

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

LOGIN_ATTEMPTS = Counter(
    "user_management_login_attempts_total",
    "Login attempts by outcome.",
    ["outcome"],
)


class AccountResponse(BaseModel):
    """Serialised representation of an account summary."""

    id: int
    name: str
    email: str
    status: str
    registration_time: datetime
    last_login: datetime | None = None

    @classmethod
    def from_domain(cls, account: AccountSummary | Account) -> "AccountResponse":
        """Build a response model from the domain aggregate."""
        return cls(
            id=account.account_id,
            name=account.display_name,
            email=account.email,
            status=account.status.value,
            registration_time=account.registered_at,
            last_login=account.last_login_at,
        )


class RegisterRequest(BaseModel):
    """Payload accepted when registering a new account."""

    name: str | None = None
    email: str | None = None
    password: str | None = None


class RegisterResponse(BaseModel):
    id: int
    token: str
    token_type: str = "bearer"
    expires_in: int


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class LoginResponse(BaseModel):
    """Token issuance response containing the bearer token and the account."""

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: AccountResponse


class StatusUpdateRequest(BaseModel):
    status: str | None = None


class StatusUpdateResponse(BaseModel):
    email: str
    status: str


class BulkActionRequest(BaseModel):
    """Administrative action applied to a set of account ids."""

    model_config = ConfigDict(populate_by_name=True)

    user_ids: list[int] = Field(..., alias="userIds")
    action: str


class BulkActionResponse(BaseModel):
    action: str
    requested: int
    affected: int


_ERROR_STATUS: dict[type[AccountError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    EmailTaken: status.HTTP_409_CONFLICT,
    InvalidCredentials: status.HTTP_401_UNAUTHORIZED,
    AccountBlocked: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    Unauthenticated: status.HTTP_401_UNAUTHORIZED,
}


def get_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def require_account(
    request: Request,
    authorization: str | None = Header(default=None),
) -> Account:
    """Authenticate the caller through the access guard on the application state."""
    guard: AccessGuard = request.app.state.access_guard
    try:
        return guard.authenticate(authorization)
    except Unauthenticated as exc:
        raise _http_error(exc) from exc


@router.post("/auth/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    service: AccountService = Depends(get_service),
) -> RegisterResponse:
    """Register an account and return its first bearer token."""
    try:
        registration = service.register(payload.name, payload.email, payload.password)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return RegisterResponse(
        id=registration.account_id,
        token=registration.token,
        expires_in=registration.expires_in,
    )


@router.post("/auth/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    service: AccountService = Depends(get_service),
) -> LoginResponse:
    try:
        result = service.login(payload.email, payload.password)
    except AccountError as exc:
        LOGIN_ATTEMPTS.labels(outcome=type(exc).__name__).inc()
        raise _http_error(exc) from exc
    LOGIN_ATTEMPTS.labels(outcome="success").inc()
    return LoginResponse(
        token=result.token,
        expires_in=result.expires_in,
        user=AccountResponse.from_domain(result.account),
    )


@router.get("/auth/me", response_model=AccountResponse)
def current_account(account: Account = Depends(require_account)) -> AccountResponse:
    """Return the account the bearer token resolves to."""
    return AccountResponse.from_domain(account)


@router.get("/users", response_model=list[AccountResponse])
def list_users(
    _: Account = Depends(require_account),
    service: AccountService = Depends(get_service),
) -> list[AccountResponse]:
    return [AccountResponse.from_domain(summary) for summary in service.list_accounts()]


@router.patch("/users/{email}/status", response_model=StatusUpdateResponse)
def update_status(
    email: str,
    payload: StatusUpdateRequest,
    _: Account = Depends(require_account),
    service: AccountService = Depends(get_service),
) -> StatusUpdateResponse:
    try:
        new_status = service.set_status(email, payload.status)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return StatusUpdateResponse(email=email, status=new_status.value)


@router.post("/users/bulk-action", response_model=BulkActionResponse)
def bulk_action(
    payload: BulkActionRequest,
    _: Account = Depends(require_account),
    service: AccountService = Depends(get_service),
) -> BulkActionResponse:
    """Block, unblock or delete many accounts; unknown ids are ignored."""
    try:
        result = service.bulk_action(payload.user_ids, payload.action)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return BulkActionResponse(
        action=result.action.value,
        requested=result.requested,
        affected=result.affected,
    )


@router.delete("/users/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    account_id: int,
    _: Account = Depends(require_account),
    service: AccountService = Depends(get_service),
) -> None:
    try:
        service.delete_account(account_id)
    except AccountError as exc:
        raise _http_error(exc) from exc


def _http_error(exc: AccountError) -> HTTPException:
    status_code = _ERROR_STATUS.get(type(exc))
    if status_code is None:
        # Internal failures (corrupt hashes, configuration) are not the caller's to correct.
        logger.error("unexpected account error: %r", exc)
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal error")
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status_code, detail={"field": exc.field, "message": exc.message})
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return HTTPException(status_code=status_code, detail=str(exc), headers=headers)
