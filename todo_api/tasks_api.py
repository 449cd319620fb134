import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy import delete as sqlalchemy_delete
from sqlmodel import select

from .auth import Identity, get_current_identity
from .checklists_api import get_owned_checklist
from .db import async_session
from .errors import NotFound, ValidationError
from .models import Checklist, Task
from .ordering import apply_order, next_order, parse_ordered_ids
from .utils import (
    TASK_TITLE_MAX,
    clean_title,
    isoformat_utc,
    now_utc,
    parse_due_date,
    parse_int_id,
    read_json_object,
    require_bool,
    validate_color,
)

router = APIRouter(prefix='/api/tasks', tags=['tasks'])
logger = logging.getLogger(__name__)

DEFAULT_TASK_COLOR = '#FFFFFF'

# Fields a generic PATCH may touch; anything else in the body is ignored.
UPDATABLE_FIELDS = ('title', 'color', 'dueDate', 'pinned', 'completed')


def _serialize_task(t: Task, checklist: Optional[Checklist] = None) -> dict:
    out = {
        'id': t.id,
        'userId': t.user_id,
        'checklistId': t.checklist_id,
        'title': t.title,
        'color': t.color,
        'pinned': t.pinned,
        'completed': t.completed,
        'order': t.order,
        'dueDate': isoformat_utc(t.due_date),
        'createdAt': isoformat_utc(t.created_at),
        'updatedAt': isoformat_utc(t.updated_at),
    }
    if checklist is not None:
        out['checklist'] = {'id': checklist.id, 'title': checklist.title}
    return out


async def _get_owned_task(sess, task_id: int, user_id: int) -> Task:
    q = await sess.exec(select(Task).where(Task.id == task_id, Task.user_id == user_id))
    task = q.first()
    if not task:
        raise NotFound('Task not found')
    return task


async def _apply_updates(task_id: int, updates: dict, user_id: int) -> dict:
    async with async_session() as sess:
        task = await _get_owned_task(sess, task_id, user_id)
        for key, value in updates.items():
            setattr(task, key, value)
        task.updated_at = now_utc()
        sess.add(task)
        await sess.commit()
        await sess.refresh(task)
    return _serialize_task(task)


@router.post('', status_code=201)
async def create_task(request: Request, identity: Identity = Depends(get_current_identity)):
    """
    Create a task inside one of the caller's checklists. JSON payload:
    - title: str (required, at most 200 characters)
    - checklistId: int (required)
    - color: str (optional hex color)
    - pinned: bool (optional)
    - dueDate: str (optional ISO 8601, must be in the future)
    """
    payload = await read_json_object(request)
    if not payload.get('title') or payload.get('checklistId') is None:
        raise ValidationError('Task title and checklist ID are required')
    title = clean_title(payload.get('title'), 'Task title', max_length=TASK_TITLE_MAX)
    try:
        checklist_id = parse_int_id(payload.get('checklistId'))
    except ValueError:
        raise ValidationError('checklistId must be an integer')
    color = payload.get('color')
    color = validate_color(color) if color else DEFAULT_TASK_COLOR
    pinned = payload.get('pinned')
    pinned = require_bool(pinned, 'Pinned') if pinned is not None else False
    due_date = parse_due_date(payload.get('dueDate'))

    async with async_session() as sess:
        await get_owned_checklist(sess, checklist_id, identity.user_id)
        order = await next_order(sess, Task, Task.checklist_id == checklist_id, Task.user_id == identity.user_id)
        task = Task(
            user_id=identity.user_id,
            checklist_id=checklist_id,
            title=title,
            color=color,
            pinned=pinned,
            completed=False,
            order=order,
            due_date=due_date,
        )
        sess.add(task)
        await sess.commit()
        await sess.refresh(task)
    logger.info('created task id=%s in checklist %s order=%s', task.id, checklist_id, task.order)
    return _serialize_task(task)


@router.get('/checklist/{checklist_id}')
async def list_checklist_tasks(checklist_id: int, identity: Identity = Depends(get_current_identity)):
    """Tasks of one checklist: pinned first, then by order, newest first on ties."""
    async with async_session() as sess:
        await get_owned_checklist(sess, checklist_id, identity.user_id)
        res = await sess.exec(
            select(Task)
            .where(Task.user_id == identity.user_id)
            .where(Task.checklist_id == checklist_id)
            .order_by(Task.pinned.desc(), Task.order.asc(), Task.created_at.desc(), Task.id.desc())
        )
        tasks = res.all()
    return [_serialize_task(t) for t in tasks]


@router.patch('/checklist/{checklist_id}/reorder')
async def reorder_checklist_tasks(checklist_id: int, request: Request, identity: Identity = Depends(get_current_identity)):
    payload = await read_json_object(request)
    ids = parse_ordered_ids(payload.get('orderedTasks'), 'orderedTasks')
    async with async_session() as sess:
        await get_owned_checklist(sess, checklist_id, identity.user_id)
        updated = await apply_order(
            sess, Task, ids,
            Task.user_id == identity.user_id,
            Task.checklist_id == checklist_id,
        )
        await sess.commit()
    logger.info('reordered tasks of checklist %s: %s of %s updated', checklist_id, updated, len(ids))
    return {'message': 'Tasks reordered successfully', 'updated': updated}


@router.get('/pinned')
async def list_pinned_tasks(identity: Identity = Depends(get_current_identity)):
    async with async_session() as sess:
        res = await sess.exec(
            select(Task, Checklist)
            .join(Checklist, Checklist.id == Task.checklist_id)
            .where(Task.user_id == identity.user_id)
            .where(Task.pinned == True)  # noqa: E712
            .order_by(Task.created_at.desc(), Task.id.desc())
        )
        rows = res.all()
    return [_serialize_task(t, c) for t, c in rows]


@router.get('/{task_id}')
async def get_task(task_id: int, identity: Identity = Depends(get_current_identity)):
    async with async_session() as sess:
        task = await _get_owned_task(sess, task_id, identity.user_id)
    return _serialize_task(task)


@router.patch('/{task_id}/complete')
async def set_task_completed(task_id: int, request: Request, identity: Identity = Depends(get_current_identity)):
    payload = await read_json_object(request)
    completed = require_bool(payload.get('completed'), 'Completed')
    return await _apply_updates(task_id, {'completed': completed}, identity.user_id)


@router.patch('/{task_id}/pin')
async def set_task_pinned(task_id: int, request: Request, identity: Identity = Depends(get_current_identity)):
    payload = await read_json_object(request)
    pinned = require_bool(payload.get('pinned'), 'Pinned')
    return await _apply_updates(task_id, {'pinned': pinned}, identity.user_id)


@router.patch('/{task_id}')
async def update_task(task_id: int, request: Request, identity: Identity = Depends(get_current_identity)):
    """
    Update a task. Only title, color, dueDate, pinned and completed are
    accepted; each present key is validated before anything is written.
    """
    payload = await read_json_object(request)
    present = [f for f in UPDATABLE_FIELDS if f in payload]
    if not present:
        raise ValidationError('No valid fields provided for update')
    updates = {}
    if 'title' in payload:
        updates['title'] = clean_title(payload['title'], 'Task title', max_length=TASK_TITLE_MAX)
    if 'color' in payload:
        updates['color'] = validate_color(payload['color'])
    if 'dueDate' in payload:
        updates['due_date'] = parse_due_date(payload['dueDate'])
    if 'pinned' in payload:
        updates['pinned'] = require_bool(payload['pinned'], 'Pinned')
    if 'completed' in payload:
        updates['completed'] = require_bool(payload['completed'], 'Completed')
    return await _apply_updates(task_id, updates, identity.user_id)


@router.delete('/{task_id}')
async def delete_task(task_id: int, identity: Identity = Depends(get_current_identity)):
    async with async_session() as sess:
        await _get_owned_task(sess, task_id, identity.user_id)
        await sess.exec(sqlalchemy_delete(Task).where(Task.id == task_id).where(Task.user_id == identity.user_id))
        await sess.commit()
    logger.info('deleted task id=%s', task_id)
    return {'message': 'Task deleted successfully', 'deletedTaskId': task_id}
