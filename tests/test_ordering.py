import pytest
import pytest_asyncio

from todo_api.auth import hash_password
from todo_api.db import async_session
from todo_api.errors import ValidationError
from todo_api.models import Checklist, User
from todo_api.ordering import apply_order, next_order, parse_ordered_ids
from todo_api.utils import parse_int_id


def test_parse_ordered_ids_accepts_id_and_legacy_key():
    assert parse_ordered_ids([{'id': 3}, {'_id': '1'}, {'id': 2, '_id': 9}], 'items') == [3, 1, 2]
    assert parse_ordered_ids([], 'items') == []


@pytest.mark.parametrize('items', [None, 'x', {'id': 1}, [1], [{'id': None}], [{'id': True}], [{'id': 'abc'}], [{'id': 2.5}]])
def test_parse_ordered_ids_rejects_bad_shapes(items):
    with pytest.raises(ValidationError):
        parse_ordered_ids(items, 'items')


@pytest_asyncio.fixture
async def two_users(ensure_db):
    async with async_session() as sess:
        users = [User(name=n, email=f'{n}@x.com', password_hash=hash_password('password123')) for n in ('u1', 'u2')]
        sess.add_all(users)
        await sess.commit()
        for u in users:
            await sess.refresh(u)
        return [u.id for u in users]


@pytest.mark.asyncio
async def test_next_order_is_max_plus_one(two_users):
    u1, u2 = two_users
    async with async_session() as sess:
        assert await next_order(sess, Checklist, Checklist.user_id == u1) == 0
        sess.add(Checklist(user_id=u1, title='a', order=4))
        sess.add(Checklist(user_id=u1, title='b', order=1))
        sess.add(Checklist(user_id=u2, title='c', order=10))
        await sess.commit()
        assert await next_order(sess, Checklist, Checklist.user_id == u1) == 5
        assert await next_order(sess, Checklist, Checklist.user_id == u2) == 11


@pytest.mark.asyncio
async def test_apply_order_assigns_positions_within_scope(two_users):
    u1, u2 = two_users
    async with async_session() as sess:
        rows = [Checklist(user_id=u1, title=t, order=7) for t in ('a', 'b')] + [Checklist(user_id=u2, title='x', order=7)]
        sess.add_all(rows)
        await sess.commit()
        for r in rows:
            await sess.refresh(r)
        a, b, x = (r.id for r in rows)
        updated = await apply_order(sess, Checklist, [b, x, a, 9999], Checklist.user_id == u1)
        await sess.commit()
    assert updated == 2
    async with async_session() as sess:
        assert (await sess.get(Checklist, b)).order == 0
        assert (await sess.get(Checklist, a)).order == 2
        assert (await sess.get(Checklist, x)).order == 7


def test_parse_int_id_is_strict():
    assert parse_int_id(7) == 7
    assert parse_int_id(3.0) == 3
    assert parse_int_id(' 12 ') == 12
    for bad in (True, False, None, 1.9, 'abc', '', [1]):
        with pytest.raises(ValueError):
            parse_int_id(bad)
