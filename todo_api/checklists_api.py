import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import delete as sqlalchemy_delete
from sqlalchemy import func
from sqlmodel import select

from .auth import Identity, get_current_identity
from .db import async_session
from .errors import NotFound
from .models import Checklist, Task
from .ordering import apply_order, next_order, parse_ordered_ids
from .utils import clean_title, isoformat_utc, now_utc, read_json_object, validate_color

router = APIRouter(prefix='/api/checklists', tags=['checklists'])
logger = logging.getLogger(__name__)

DEFAULT_CHECKLIST_COLOR = '#80D8FF'


def _serialize_checklist(c: Checklist, task_count: int) -> dict:
    return {
        'id': c.id,
        'userId': c.user_id,
        'title': c.title,
        'color': c.color,
        'order': c.order,
        'createdAt': isoformat_utc(c.created_at),
        'updatedAt': isoformat_utc(c.updated_at),
        'taskCount': task_count,
    }


async def _task_counts(sess, user_id: int, checklist_ids: list[int]) -> dict[int, int]:
    if not checklist_ids:
        return {}
    res = await sess.exec(
        select(Task.checklist_id, func.count(Task.id))
        .where(Task.user_id == user_id)
        .where(Task.checklist_id.in_(checklist_ids))
        .group_by(Task.checklist_id)
    )
    return {cid: count for cid, count in res.all()}


async def get_owned_checklist(sess, checklist_id: int, user_id: int) -> Checklist:
    """Load a checklist the caller owns; anything else is NotFound."""
    q = await sess.exec(select(Checklist).where(Checklist.id == checklist_id, Checklist.user_id == user_id))
    checklist = q.first()
    if not checklist:
        raise NotFound('Checklist not found')
    return checklist


@router.post('', status_code=201)
async def create_checklist(request: Request, identity: Identity = Depends(get_current_identity)):
    payload = await read_json_object(request)
    title = clean_title(payload.get('title'), 'Checklist title')
    color = payload.get('color')
    color = validate_color(color) if color else DEFAULT_CHECKLIST_COLOR
    async with async_session() as sess:
        # append after the user's current last checklist
        order = await next_order(sess, Checklist, Checklist.user_id == identity.user_id)
        checklist = Checklist(user_id=identity.user_id, title=title, color=color, order=order)
        sess.add(checklist)
        await sess.commit()
        await sess.refresh(checklist)
    logger.info('created checklist id=%s order=%s', checklist.id, checklist.order)
    return _serialize_checklist(checklist, 0)


@router.get('')
async def list_checklists(identity: Identity = Depends(get_current_identity)):
    async with async_session() as sess:
        res = await sess.exec(
            select(Checklist)
            .where(Checklist.user_id == identity.user_id)
            .order_by(Checklist.order.asc(), Checklist.created_at.asc(), Checklist.id.asc())
        )
        rows = res.all()
        counts = await _task_counts(sess, identity.user_id, [c.id for c in rows])
    return [_serialize_checklist(c, counts.get(c.id, 0)) for c in rows]


# Registered before '/{checklist_id}' so 'reorder' is not parsed as an id.
@router.patch('/reorder')
async def reorder_checklists(request: Request, identity: Identity = Depends(get_current_identity)):
    payload = await read_json_object(request)
    ids = parse_ordered_ids(payload.get('orderedChecklists'), 'orderedChecklists')
    async with async_session() as sess:
        updated = await apply_order(sess, Checklist, ids, Checklist.user_id == identity.user_id)
        await sess.commit()
    logger.info('reordered checklists: %s of %s updated', updated, len(ids))
    return {'message': 'Checklists reordered successfully', 'updated': updated}


@router.get('/{checklist_id}')
async def get_checklist(checklist_id: int, identity: Identity = Depends(get_current_identity)):
    async with async_session() as sess:
        checklist = await get_owned_checklist(sess, checklist_id, identity.user_id)
        counts = await _task_counts(sess, identity.user_id, [checklist.id])
    return _serialize_checklist(checklist, counts.get(checklist.id, 0))


@router.patch('/{checklist_id}')
async def update_checklist(checklist_id: int, request: Request, identity: Identity = Depends(get_current_identity)):
    """Patch title and/or color. Keys that are absent or null are left alone."""
    payload = await read_json_object(request)
    updates = {}
    if payload.get('title') is not None:
        updates['title'] = clean_title(payload.get('title'), 'Checklist title')
    if payload.get('color') is not None:
        updates['color'] = validate_color(payload.get('color'))
    async with async_session() as sess:
        checklist = await get_owned_checklist(sess, checklist_id, identity.user_id)
        if updates:
            for key, value in updates.items():
                setattr(checklist, key, value)
            checklist.updated_at = now_utc()
            sess.add(checklist)
            await sess.commit()
            await sess.refresh(checklist)
        counts = await _task_counts(sess, identity.user_id, [checklist.id])
    return _serialize_checklist(checklist, counts.get(checklist.id, 0))


@router.delete('/{checklist_id}')
async def delete_checklist(checklist_id: int, identity: Identity = Depends(get_current_identity)):
    async with async_session() as sess:
        await get_owned_checklist(sess, checklist_id, identity.user_id)
        # tasks and checklist go in the same transaction
        res = await sess.exec(
            sqlalchemy_delete(Task)
            .where(Task.checklist_id == checklist_id)
            .where(Task.user_id == identity.user_id)
        )
        deleted_tasks = res.rowcount or 0
        await sess.exec(
            sqlalchemy_delete(Checklist)
            .where(Checklist.id == checklist_id)
            .where(Checklist.user_id == identity.user_id)
        )
        await sess.commit()
    logger.info('deleted checklist id=%s with %s tasks', checklist_id, deleted_tasks)
    return {
        'message': 'Checklist and its tasks deleted successfully',
        'deletedTasksCount': deleted_tasks,
    }
