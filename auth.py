import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, Request
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

import config
from errors import Inactive, Unauthenticated

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)


class Identity(BaseModel):
    id: str
    email: str


# Utilities

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: str, email: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.JWT_EXPIRE_MINUTES))
    to_encode = {"sub": user_id, "email": email, "exp": expire}
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise Unauthenticated("Token has expired")
    except JWTError:
        raise Unauthenticated("Invalid token")


def extract_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise Unauthenticated("Missing Authorization header")
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise Unauthenticated("Malformed Authorization header")
    return parts[1]


def authenticate(authorization: Optional[str], users) -> Identity:
    """Resolve a bearer header to the active user it belongs to."""
    payload = decode_token(extract_token(authorization))
    user_id = payload.get("sub")
    if not user_id:
        raise Unauthenticated("Invalid token")
    user = users.find_by_id(user_id)
    if user is None:
        raise Unauthenticated("User not found")
    if not user.is_active:
        raise Inactive()
    return Identity(id=user.id, email=user.email)


# Dependencies

def get_users(request: Request):
    return request.app.state.users


def get_optional_user(
    authorization: Optional[str] = Header(default=None),
    users=Depends(get_users),
) -> Optional[Identity]:
    if not authorization:
        return None
    try:
        return authenticate(authorization, users)
    except Unauthenticated as exc:
        logger.warning("Ignoring rejected token on optional auth: %s", exc.message)
        return None


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    users=Depends(get_users),
) -> Identity:
    return authenticate(authorization, users)
