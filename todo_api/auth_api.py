import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.exc import IntegrityError

from .auth import authenticate_user, create_token_for_user, get_user_by_email, hash_password
from .config import Settings, get_settings
from .db import async_session
from .errors import Conflict, Unauthenticated
from .models import User
from .utils import isoformat_utc, normalize_email

router = APIRouter(prefix='/api/auth', tags=['auth'])
logger = logging.getLogger(__name__)

PASSWORD_MIN_LENGTH = 8


class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN_LENGTH)

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        # name may be omitted, but a supplied one must not be blank
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError('Name cannot be blank')
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


def _serialize_user(u: User) -> dict:
    # never include password_hash
    return {
        'id': u.id,
        'name': u.name,
        'email': u.email,
        'createdAt': isoformat_utc(u.created_at),
    }


@router.post('/register', status_code=201)
async def register(req: RegisterRequest, settings: Settings = Depends(get_settings)):
    email = normalize_email(req.email)
    if await get_user_by_email(email):
        raise Conflict('Email already registered')
    user = User(name=req.name or '', email=email, password_hash=hash_password(req.password))
    async with async_session() as sess:
        sess.add(user)
        try:
            await sess.commit()
        except IntegrityError:
            # lost a race with a concurrent registration of the same email
            await sess.rollback()
            raise Conflict('Email already registered')
        await sess.refresh(user)
    logger.info('registered user id=%s', user.id)
    return {
        'message': 'User registered successfully',
        'token': create_token_for_user(user, settings),
        'user': _serialize_user(user),
    }


@router.post('/login')
async def login(req: LoginRequest, settings: Settings = Depends(get_settings)):
    user = await authenticate_user(normalize_email(req.email), req.password)
    if not user:
        logger.info('failed login attempt')
        raise Unauthenticated('Invalid credentials')
    return {
        'message': 'Login successful',
        'token': create_token_for_user(user, settings),
        'user': _serialize_user(user),
    }
