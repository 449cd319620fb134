import pytest
from jose import jwt

from todo_api.config import get_settings
from conftest import make_client, register_user


@pytest.mark.asyncio
async def test_register_then_login_scenario(anon_client):
    r = await anon_client.post('/api/auth/register', json={'email': 'a@x.com', 'password': '12345678'})
    assert r.status_code == 201
    body = r.json()
    assert body['token']
    assert body['user']['email'] == 'a@x.com'
    assert body['user']['name'] == ''

    r2 = await anon_client.post('/api/auth/login', json={'email': 'a@x.com', 'password': '12345678'})
    assert r2.status_code == 200
    token = r2.json()['token']
    assert token

    # the login token is usable on protected routes
    async with make_client(token) as ac:
        rl = await ac.get('/api/checklists')
        assert rl.status_code == 200
        assert rl.json() == []

    r3 = await anon_client.post('/api/auth/login', json={'email': 'a@x.com', 'password': 'wrong-password'})
    assert r3.status_code == 401


@pytest.mark.asyncio
async def test_register_response_never_contains_password(anon_client):
    r = await register_user(anon_client, 'secret@x.com')
    assert r.status_code == 201
    user = r.json()['user']
    assert 'password' not in user
    assert 'password_hash' not in user
    assert set(user) == {'id', 'name', 'email', 'createdAt'}


@pytest.mark.asyncio
async def test_issued_token_carries_user_id_and_exp(anon_client):
    r = await register_user(anon_client, 'claims@x.com')
    settings = get_settings()
    payload = jwt.decode(r.json()['token'], settings.secret_key, algorithms=[settings.algorithm])
    assert payload['userId'] == r.json()['user']['id']
    assert payload.get('exp') is not None


@pytest.mark.asyncio
async def test_duplicate_email_conflicts(anon_client):
    r = await register_user(anon_client, 'dup@x.com')
    assert r.status_code == 201
    r2 = await register_user(anon_client, 'dup@x.com')
    assert r2.status_code == 409
    # email comparison ignores case
    r3 = await register_user(anon_client, 'DUP@X.com')
    assert r3.status_code == 409


@pytest.mark.asyncio
@pytest.mark.parametrize('payload', [
    {'name': 'A', 'email': 'not-an-email', 'password': '12345678'},
    {'name': 'A', 'email': 'short@x.com', 'password': '1234567'},
    {'name': '   ', 'email': 'blank@x.com', 'password': '12345678'},
])
async def test_register_validation_errors(anon_client, payload):
    r = await anon_client.post('/api/auth/register', json=payload)
    assert r.status_code == 400
    body = r.json()
    assert body['errorType'] == 'ValidationError'
    assert body['errors']


@pytest.mark.asyncio
async def test_login_unknown_email_is_401(anon_client):
    r = await anon_client.post('/api/auth/login', json={'email': 'nobody@x.com', 'password': '12345678'})
    assert r.status_code == 401
    assert r.json()['message'] == 'Invalid credentials'


@pytest.mark.asyncio
async def test_login_requires_valid_email(anon_client):
    r = await anon_client.post('/api/auth/login', json={'email': 'nope', 'password': 'x'})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_register_name_is_optional_and_trimmed(anon_client):
    r = await anon_client.post('/api/auth/register', json={'name': '  Ada ', 'email': 'ada@x.com', 'password': '12345678'})
    assert r.status_code == 201
    assert r.json()['user']['name'] == 'Ada'
    r2 = await anon_client.post('/api/auth/register', json={'name': None, 'email': 'anon@x.com', 'password': '12345678'})
    assert r2.status_code == 201
    assert r2.json()['user']['name'] == ''
