"""
Password hashing, bearer tokens and the auth dependencies
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from estatedesk.core.config import settings
from estatedesk.core.database import get_db

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# auto_error is off so a missing header gets the same 401 body as a bad token
bearer_scheme = HTTPBearer(auto_error=False)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    issued = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {**data, "iat": issued, "exp": issued + lifetime}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Claims of a valid token, or None when the signature or expiry check fails"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def _credentials_error(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
):
    from estatedesk.services.user_service import UserService

    if credentials is None:
        raise _credentials_error("Not authenticated")

    claims = decode_access_token(credentials.credentials)
    if not claims or not claims.get("sub"):
        raise _credentials_error("Invalid or expired token")

    # Trashed accounts drop out here because the lookup skips deleted rows
    user = UserService(db).get_active_by_email(claims["sub"])
    if user is None:
        raise _credentials_error("User not found")
    if not user.status:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is disabled")
    return user


async def require_super_admin(current_user=Depends(get_current_user)):
    if not current_user.is_super_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the Super Admin can perform this action"
        )
    return current_user
