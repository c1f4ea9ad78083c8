"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from redpen.core.security import decode_subject
from redpen.db.session import get_db
from redpen.errors import ErrorKind, RedpenError, ValidationFailed
from redpen.models import User
from redpen.services.payments import PaymentProcessor, get_payment_processor

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()
optional_bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.SELF_SELECTION: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_TARGET: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_CRITIQUE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NO_ACTIVE_REWARD: status.HTTP_409_CONFLICT,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.CAPTURE_FAILED: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorKind.SETTLEMENT_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.PAYMENT_UNAVAILABLE: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.RECONCILIATION_REQUIRED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def to_http_exception(err: RedpenError) -> HTTPException:
    """Map a domain error kind onto an HTTP status and JSON detail."""
    detail: dict[str, object] = {"kind": err.kind.value, "message": err.message}
    if isinstance(err, ValidationFailed):
        detail["fields"] = err.fields
    return HTTPException(
        status_code=_STATUS_BY_KIND.get(err.kind, status.HTTP_400_BAD_REQUEST),
        detail=detail,
    )


def _load_user(db: Session, token: str) -> User | None:
    user_id = decode_subject(token)
    if user_id is None:
        return None
    return db.get(User, user_id)


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token.

    Raises:
        HTTPException: If token is invalid or user not found
    """
    user = _load_user(db, credentials.credentials)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return user


def get_optional_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(optional_bearer_scheme)
    ],
    db: SessionDep,
) -> User | None:
    """Return the caller if a valid bearer token was sent, else None."""
    if credentials is None:
        return None
    return _load_user(db, credentials.credentials)


def get_payment_processor_dep() -> PaymentProcessor:
    """Return the shared payment processor client."""
    return get_payment_processor()


# Type aliases for common dependencies
CurrentUserDep = Annotated[User, Depends(get_current_user)]
OptionalUserDep = Annotated[User | None, Depends(get_optional_user)]
PaymentProcessorDep = Annotated[PaymentProcessor, Depends(get_payment_processor_dep)]
