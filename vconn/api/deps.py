from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from vconn.config import settings
from vconn.core.security import token_subject
from vconn.database import get_db
from vconn.models import User, UserRole
from vconn.services.errors import (
    AlreadyAccepted,
    EngineError,
    NotEligible,
    NotFound,
    ValidationError,
)


def _token_url() -> str:
    if settings.api_prefix:
        prefix = settings.api_prefix.rstrip("/")
        return f"{prefix}/auth/token"
    return "/auth/token"


oauth2_scheme = OAuth2PasswordBearer(tokenUrl=_token_url(), auto_error=False)

_DB_DEP = Depends(get_db)
_TOKEN_DEP = Depends(oauth2_scheme)


def get_current_user(
    request: Request,
    db: Session = _DB_DEP,
    token: Optional[str] = _TOKEN_DEP,
) -> User:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    subject = token_subject(token)
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    user = db.query(User).filter(User.email == subject, User.active.is_(True)).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    request.state.user_id = user.id
    return user


def require_roles(*roles: UserRole) -> Callable:
    """Gate a route on the caller's role. The engine itself never re-checks roles."""

    _CURRENT_USER_DEP = Depends(get_current_user)
    allowed = {r.value if isinstance(r, UserRole) else str(r) for r in roles}

    def dependency(user: User = _CURRENT_USER_DEP) -> User:
        if roles:
            role = getattr(user, "role", None)
            role_value = role.value if isinstance(role, UserRole) else str(role or "")
            if role_value not in allowed:
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        return user

    return dependency


_ERROR_STATUS: list[tuple[type[EngineError], int]] = [
    (NotFound, status.HTTP_404_NOT_FOUND),
    (AlreadyAccepted, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    # QuotaExceeded is a NotEligible and shares its status code.
    (NotEligible, status.HTTP_400_BAD_REQUEST),
]


def http_error_for(error: EngineError) -> HTTPException:
    """Translate an engine outcome error into the HTTP error the client sees."""

    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, code in _ERROR_STATUS:
        if isinstance(error, error_type):
            status_code = code
            break
    return HTTPException(
        status_code=status_code,
        detail={"message": error.reason, "code": error.code},
    )


def request_id_of(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id")
