from datetime import datetime, timezone
import re
from typing import Any, Optional

from .errors import ValidationError

HEX_COLOR_RE = re.compile(r'^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$')

TASK_TITLE_MAX = 200


def now_utc() -> datetime:
    """Return timezone-aware current UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from SQLite."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def isoformat_utc(dt: Optional[datetime]) -> Optional[str]:
    aware = as_utc(dt)
    return aware.isoformat() if aware is not None else None


def clean_title(value: Any, field: str = 'title', max_length: Optional[int] = None) -> str:
    """Trim a title and reject empty or non-string values."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{field} is required and must be a non-empty string')
    title = value.strip()
    if max_length is not None and len(title) > max_length:
        raise ValidationError(f'{field} cannot exceed {max_length} characters')
    return title


def validate_color(value: Any) -> str:
    if not isinstance(value, str) or not HEX_COLOR_RE.match(value):
        raise ValidationError(f'{value!r} is not a valid color code')
    return value


def require_bool(value: Any, field: str) -> bool:
    # JSON true/false only; 1, "true" and null are rejected.
    if not isinstance(value, bool):
        raise ValidationError(f'{field} status is required and must be boolean')
    return value


def parse_int_id(value: Any) -> int:
    """Coerce an id from JSON or token claims; raises ValueError on anything else.

    Accepts ints, integral floats and digit strings. Booleans are rejected
    even though ``int(True)`` would succeed.
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f'not an id: {value!r}')
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f'not an id: {value!r}')
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip('-').isdigit():
        return int(value.strip())
    raise ValueError(f'not an id: {value!r}')


def parse_due_date(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 due date; ``None`` clears it.

    Naive values are taken as UTC. The date must lie strictly in the future.
    """
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ValidationError('dueDate must be an ISO 8601 string')
    raw = value.strip()
    if raw.endswith('Z') or raw.endswith('z'):
        raw = raw[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f'invalid dueDate: {value!r}')
    parsed = as_utc(parsed)
    if parsed <= now_utc():
        raise ValidationError('Due date must be in the future')
    return parsed


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def read_json_object(request) -> dict:
    """Return the request body as a JSON object; anything else is a 400."""
    try:
        payload = await request.json()
    except Exception:
        raise ValidationError('invalid JSON')
    if not isinstance(payload, dict):
        raise ValidationError('request body must be a JSON object')
    return payload
