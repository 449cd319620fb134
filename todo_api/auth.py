from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, Request
from sqlmodel import select
from passlib.context import CryptContext
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel
from .config import Settings, get_settings
from .db import async_session
from .errors import InvalidCredential, Unauthenticated
from .models import User
from .utils import parse_int_id
import logging

logger = logging.getLogger(__name__)

# Claim names that may carry the user id. Tokens issued here use the first;
# the second is accepted from older clients.
USER_ID_CLAIM = "userId"
LEGACY_USER_ID_CLAIM = "_id"

TOKEN_COOKIE = "token"

# prefer a pure-Python, widely-available scheme; bcrypt hashes still verify.
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")


class Identity(BaseModel):
    """The verified caller. Downstream code only ever reads ``user_id``."""
    user_id: int

    def claims(self) -> dict:
        return {LEGACY_USER_ID_CLAIM: self.user_id, USER_ID_CLAIM: self.user_id}


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


async def get_user_by_email(email: str) -> Optional[User]:
    async with async_session() as sess:
        q = await sess.exec(select(User).where(User.email == email))
        return q.first()


async def authenticate_user(email: str, password: str) -> Optional[User]:
    user = await get_user_by_email(email)
    if not user:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta is not None:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    # RFC 7519 NumericDate: seconds since epoch.
    to_encode.update({"exp": int(expire.timestamp())})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_token_for_user(user: User, settings: Settings) -> str:
    return create_access_token({USER_ID_CLAIM: user.id}, settings)


def extract_token(request: Request) -> Optional[str]:
    """Find the raw credential: Authorization header first, then the token cookie.

    An optional ``Bearer `` prefix is stripped.
    """
    raw = request.headers.get("Authorization") or request.cookies.get(TOKEN_COOKIE)
    if not raw:
        return None
    raw = raw.strip()
    if raw[:7].lower() == "bearer ":
        raw = raw[7:].strip()
    return raw or None


def verify_token(token: Optional[str], settings: Settings) -> Identity:
    """Verify a bearer token and return the normalized identity.

    Raises Unauthenticated when there is no token or when its claims carry
    no usable user id; InvalidCredential when the token has expired or its
    signature or structure does not verify.
    """
    if not token:
        raise Unauthenticated("Access Denied")
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except ExpiredSignatureError:
        logger.info("rejected expired token")
        raise InvalidCredential("Token expired")
    except JWTError as e:
        logger.info("rejected invalid token: %s", e)
        raise InvalidCredential("Invalid Token")
    raw_id = payload.get(USER_ID_CLAIM)
    if raw_id is None:
        raw_id = payload.get(LEGACY_USER_ID_CLAIM)
    try:
        user_id = parse_int_id(raw_id)
    except ValueError:
        raise Unauthenticated("Invalid Token - Missing User ID")
    return Identity(user_id=user_id)


async def get_current_identity(request: Request, settings: Settings = Depends(get_settings)) -> Identity:
    """Dependency guarding every checklist and task route."""
    identity = verify_token(extract_token(request), settings)
    if settings.debug_auth_log:
        logger.debug("authenticated user id=%s", identity.user_id)
    return identity
