from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from schoolfees.auth.roles import permissions_for_role
from schoolfees.auth.schemas import CurrentUser
from schoolfees.core.config import settings


# Sessions are issued by the external auth provider; this service only verifies bearer tokens.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/v1/token")


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """Resolve the authenticated user and their permissions from the access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except JWTError:
        raise credentials_exception

    user_id = payload.get("sub")
    # App roles live in app_metadata; the top-level "role" claim is the database role.
    app_metadata = payload.get("app_metadata") or {}
    role_name = app_metadata.get("role") or payload.get("user_role")
    if not user_id or not role_name:
        raise credentials_exception

    return CurrentUser(
        id=str(user_id),
        role=str(role_name).lower(),
        email=payload.get("email"),
        permissions=permissions_for_role(str(role_name).lower()),
    )
