"""Sibling ordering for checklists (per user) and tasks (per checklist).

Order values are a display hint: they are assigned by a read-then-write on
create and rewritten wholesale on reorder, without any isolation between
concurrent requests.
"""
from typing import Any, Iterable
import logging

from sqlalchemy import func
from sqlalchemy import update as sqlalchemy_update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from .errors import ValidationError
from .utils import parse_int_id

logger = logging.getLogger(__name__)


async def next_order(sess: AsyncSession, model, *criteria) -> int:
    """Order value that places a new row after every sibling matching ``criteria``."""
    res = await sess.exec(select(func.max(model.order)).where(*criteria))
    highest = res.first()
    return 0 if highest is None else int(highest) + 1


def parse_ordered_ids(items: Any, field: str) -> list[int]:
    """Turn a reorder payload (``[{"id": ..}, ..]``) into a list of ids.

    Items may carry the id as ``id`` or the legacy ``_id``.
    """
    if not isinstance(items, list):
        raise ValidationError(f'{field} must be an array')
    ids: list[int] = []
    for pos, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f'{field}[{pos}] must be an object with an id')
        raw = item.get('id', item.get('_id'))
        if raw is None:
            raise ValidationError(f'{field}[{pos}] is missing an id')
        try:
            ids.append(parse_int_id(raw))
        except ValueError:
            raise ValidationError(f'{field}[{pos}] has an invalid id')
    return ids


async def apply_order(sess: AsyncSession, model, ids: Iterable[int], *criteria) -> int:
    """Set ``order`` to each id's position; rows not matching ``criteria`` are skipped.

    Returns the number of rows updated. The caller commits.
    """
    updated = 0
    for position, entity_id in enumerate(ids):
        res = await sess.exec(
            sqlalchemy_update(model)
            .where(model.id == entity_id, *criteria)
            .values(order=position)
        )
        if res.rowcount:
            updated += res.rowcount
        else:
            logger.info('reorder skipped %s id=%s (not in scope)', model.__name__, entity_id)
    return updated
