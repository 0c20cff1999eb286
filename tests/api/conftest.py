"""Shared fixtures for API tests."""
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import pytest
from httpx import ASGITransport, AsyncClient

from api.main import app
from tests.conftest import SAMPLE_EXPORT, RecordingCodeSender

PASSWORD = 'correct horse'


async def register_user(
    client: AsyncClient, code_sender: RecordingCodeSender, email: str,
) -> str:
    """Sign up and verify an account through the API. Returns its bearer token."""
    response = await client.post('/auth/signup', json={'email': email, 'password': PASSWORD})
    assert response.status_code == 201
    code = code_sender.last_code(email, 'verification')
    response = await client.post('/auth/verify', json={'email': email, 'code': code})
    assert response.status_code == 200
    return response.json()['token']


@asynccontextmanager
async def create_user_client(
    client: AsyncClient, code_sender: RecordingCodeSender, email: str,
) -> AsyncGenerator[AsyncClient]:
    """
    Create an AsyncClient authenticated as a newly registered user.

    Shares the app state (and so the stores) with `client`.
    """
    token = await register_user(client, code_sender, email)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url='http://test',
        headers={'Authorization': f'Bearer {token}'},
    ) as user_client:
        yield user_client


@pytest.fixture
async def user_client(
    client: AsyncClient, code_sender: RecordingCodeSender,
) -> AsyncGenerator[AsyncClient]:
    """Client authenticated as ada@example.com."""
    async with create_user_client(client, code_sender, 'ada@example.com') as authed:
        yield authed


async def import_sample(client: AsyncClient, **params: str) -> dict:
    """Import SAMPLE_EXPORT and return the response body."""
    response = await client.post(
        '/bookmarks/import',
        params={'source': 'chrome', **params},
        content=SAMPLE_EXPORT.encode(),
        headers={'Content-Type': 'text/html'},
    )
    assert response.status_code == 200, response.text
    return response.json()
