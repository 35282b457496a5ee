from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.config import settings
from app.core.security import decode_access_token_subject
from app.database import get_db
from app.models import RoleName, User


def _token_url() -> str:
    # Tokens are minted out of band; the URL only feeds the OpenAPI security scheme.
    if settings.api_prefix:
        prefix = settings.api_prefix.rstrip("/")
        return f"{prefix}/auth/token"
    return "/auth/token"


oauth2_optional = OAuth2PasswordBearer(tokenUrl=_token_url(), auto_error=False)

_DB_DEP = Depends(get_db)
_TOKEN_OPT_DEP = Depends(oauth2_optional)


def _extract_bearer_from_headers(request: Request) -> Optional[str]:
    # Some proxies strip/override the standard Authorization header.
    raw = request.headers.get("authorization") or request.headers.get("x-authorization")
    if not raw:
        return None
    s = str(raw).strip()
    if not s:
        return None
    if s.lower().startswith("bearer "):
        return s.split(" ", 1)[1].strip()
    return s


def get_current_user(
    request: Request,
    db: Session = _DB_DEP,
    token: Optional[str] = _TOKEN_OPT_DEP,
) -> User:
    if not token:
        token = _extract_bearer_from_headers(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    subject = decode_access_token_subject(token)
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    user = db.query(User).filter(User.email == subject, User.active.is_(True)).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return user


_CURRENT_USER_DEP = Depends(get_current_user)


def get_current_organization_id(user: User = _CURRENT_USER_DEP) -> int:
    """Organization the caller acts for; every inquiry operation is scoped to it."""

    if user.organization_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is not associated with an organization",
        )
    return int(user.organization_id)


def require_roles(*roles: RoleName) -> Callable:
    def dependency(user: User = _CURRENT_USER_DEP) -> User:
        if roles:
            user_role = getattr(getattr(user, "role", None), "name", None)
            # user.role.name is an Enum in our models; normalize to string.
            if isinstance(user_role, RoleName):
                user_role_value = user_role.value
            else:
                user_role_value = str(user_role) if user_role is not None else ""

            # Admin has access to everything
            if user_role_value == RoleName.admin.value:
                return user

            allowed = {r.value if isinstance(r, RoleName) else str(r) for r in roles}
            if user_role_value not in allowed:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role"
                )
        return user

    return dependency
