from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import config, crud, models
from .database import get_db
from .exceptions import AuthenticationError, AuthorizationError

# Set auto_error=False to handle missing token manually and return 401
http_bearer_auth = HTTPBearer(auto_error=False)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(user_id: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(http_bearer_auth),
    db: Session = Depends(get_db),
) -> models.User:
    """
    Resolve the bearer token to a user.
    """
    if creds is None:
        raise AuthenticationError()

    try:
        payload = jwt.decode(creds.credentials, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Not authorized, token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError()

    user = crud.get_user(db, payload.get("sub", ""))
    if user is None:
        raise AuthenticationError("Not authorized, user not found")
    return user


def require_admin(current_user: models.User = Depends(get_current_user)) -> models.User:
    if current_user.role != "admin":
        raise AuthorizationError(f"User role '{current_user.role}' is not authorized to access this route")
    return current_user
