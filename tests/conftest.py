"""Pytest configuration and fixtures"""

import itertools

import httpx
import pytest

from multipart_uploader.config import UploaderSettings
from tests.fake_storage_api import FakeStorage, create_app

API_BASE = "http://api.test"


class RecordingSleep:
    """Replaces asyncio.sleep in retry loops, remembering each delay"""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float):
        self.delays.append(seconds)


@pytest.fixture
def settings():
    return UploaderSettings(api_base_url=API_BASE, bucket="test-bucket")


@pytest.fixture
def no_sleep():
    return RecordingSleep()


@pytest.fixture
def clock():
    """Monotonic fake clock advancing one second per reading"""
    counter = itertools.count()
    return lambda: float(next(counter))


@pytest.fixture
def storage():
    return FakeStorage(part_size=1_000_000, batch_size=2)


@pytest.fixture
def client_factory(storage):
    """Builds an httpx client that talks to the fake storage API in-process"""

    def make_client() -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=create_app(storage)),
            base_url=API_BASE,
        )

    return make_client
