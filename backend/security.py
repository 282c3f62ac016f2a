import hmac
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import HTTPException, Request, status
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from settings import settings
from utils import load_setting, save_setting

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ADMIN_PASSWORD_HASH_KEY = "admin_password_hash"
ADMIN_SUBJECT = "admin"
_ALGORITHM = "HS256"


class AdminPasswordNotConfigured(RuntimeError):
    """Neither a stored hash nor ``ADMIN_PASSWORD`` is available."""


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_minutes: int | None = None) -> str:
    to_encode = data.copy()
    minutes = expires_minutes if expires_minutes is not None else settings.ADMIN_TOKEN_EXPIRE_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=_ALGORITHM)


def create_admin_token() -> str:
    return create_access_token({"sub": ADMIN_SUBJECT})


def check_admin_password(db: Session, password: str) -> bool:
    """Check ``password`` against the stored hash, falling back to ``ADMIN_PASSWORD``."""

    stored_hash = load_setting(db, ADMIN_PASSWORD_HASH_KEY)
    if stored_hash:
        return bool(password) and verify_password(password, stored_hash)

    fallback = settings.ADMIN_PASSWORD
    if not fallback:
        raise AdminPasswordNotConfigured("Admin password not configured")
    return hmac.compare_digest(password.encode("utf-8"), fallback.encode("utf-8"))


def store_admin_password(db: Session, new_password: str) -> None:
    save_setting(db, ADMIN_PASSWORD_HASH_KEY, hash_password(new_password))


def _extract_token_from_request(request: Request) -> Optional[str]:
    # 1) admin cookie
    tok = request.cookies.get(settings.ADMIN_COOKIE_NAME)
    if tok:
        return tok
    # 2) Authorization: Bearer <token>
    auth = request.headers.get("authorization")
    if auth and auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1].strip()
    return None


def admin_required(request: Request) -> str:
    """Dependency guarding the admin API; returns the token subject."""

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )
    token = _extract_token_from_request(request)
    if not token:
        raise credentials_exception
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[_ALGORITHM])
    except jwt.PyJWTError:
        raise credentials_exception
    if payload.get("sub") != ADMIN_SUBJECT:
        raise credentials_exception
    return ADMIN_SUBJECT
