"""Runtime configuration for the checklist API.

Settings are read from environment variables once and cached; handlers get
them through the ``get_settings`` dependency.
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


def _trueish(v: str | None) -> bool:
    if not v:
        return False
    return v.lower() in ('1', 'true', 'yes', 'on')


def _split_origins(v: str | None) -> tuple[str, ...]:
    if not v:
        return ('*',)
    return tuple(o.strip() for o in v.split(',') if o.strip())


@dataclass(frozen=True)
class Settings:
    # Token signing secret. The app refuses to start without it (see main.lifespan).
    secret_key: Optional[str]
    algorithm: str = 'HS256'
    access_token_expire_minutes: int = 60
    database_url: str = 'sqlite+aiosqlite:///./todo_api.db'
    cors_origins: tuple[str, ...] = ('*',)
    # When true, 500 responses carry the underlying error message.
    dev_mode: bool = False
    # When true, every authenticated request logs the resolved user id.
    debug_auth_log: bool = False


def load_settings() -> Settings:
    try:
        expire = int(os.getenv('ACCESS_TOKEN_EXPIRE_MINUTES', '60'))
    except ValueError:
        expire = 60
    return Settings(
        secret_key=os.getenv('SECRET_KEY') or None,
        algorithm=os.getenv('JWT_ALGORITHM', 'HS256'),
        access_token_expire_minutes=expire,
        database_url=os.getenv('DATABASE_URL', 'sqlite+aiosqlite:///./todo_api.db'),
        cors_origins=_split_origins(os.getenv('CORS_ORIGINS')),
        dev_mode=_trueish(os.getenv('DEV_MODE', '0')),
        debug_auth_log=_trueish(os.getenv('DEBUG_AUTH_LOG', '0')),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
