# tests/conftest.py
import random

import httpx
import pytest
import pytest_asyncio
from faker import Faker

from errorly.gateway import SyncGateway
from errorly.services.session import BoardSession
from fake_backend import BoardBackend, create_backend_app


@pytest.fixture
def fake():
    """Seeded Faker so random data is reproducible."""
    random.seed(1337)
    instance = Faker()
    instance.seed_instance(1337)
    return instance


@pytest.fixture
def backend():
    return BoardBackend()


@pytest_asyncio.fixture
async def gateway(backend):
    client = httpx.AsyncClient(transport=httpx.ASGITransport(app=create_backend_app(backend)))
    yield SyncGateway(base_url="http://testserver", token_provider=lambda: backend.token, client=client)
    await client.aclose()


@pytest.fixture
def session(gateway):
    return BoardSession(gateway)
