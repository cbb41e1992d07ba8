# utils/tokenJWT.py
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlalchemy.orm import Session

from config import Settings, get_settings_dep
from database import get_db
from errors import Unauthorized, Forbidden
from models.users import User

# Authorization scheme; missing headers are reported as 401 by the dependencies below
bearer_scheme = HTTPBearer(auto_error=False)


# Generate a new JWT access token
def create_access_token(settings: Settings, data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _decode(settings: Settings, credentials: Optional[HTTPAuthorizationCredentials]) -> dict:
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Missing token")
    try:
        return jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise Unauthorized("Invalid token")


# Retrieve the currently authenticated user based on the JWT token
def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings_dep),
    db: Session = Depends(get_db),
) -> User:
    payload = _decode(settings, credentials)
    user_id = payload.get("sub")
    # Admin tokens carry no user identity
    if not user_id:
        raise Unauthorized("Invalid token")

    user = db.query(User).filter(User.id == str(user_id)).first()
    if user is None:
        raise Unauthorized("User not found")
    return user


# Admin panel access: the token must carry role=admin
def admin_required(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings_dep),
) -> dict:
    payload = _decode(settings, credentials)
    if payload.get("role") != "admin":
        raise Forbidden("Forbidden")
    return payload
