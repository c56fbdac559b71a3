"""
Shared fixtures: an in-memory Redis (fakeredis) behind the real client
wrapper, the services built on it, and a TestClient for the app.
"""
import os

os.environ.setdefault("REDIS_HOST", "localhost")

from decimal import Decimal

import fakeredis
import pytest
from fastapi.testclient import TestClient

from storefront.cart_service import CartService
from storefront.catalog_service import CatalogLookup
from storefront.models import CatalogItem, SourceKind
from storefront.redis_client import RedisClient, set_redis_client


@pytest.fixture
def redis_client():
    """Fresh fake Redis server per test, installed as the shared client"""
    fake = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    client = RedisClient(client=fake)
    set_redis_client(client)
    yield client
    set_redis_client(None)


@pytest.fixture
def catalog(redis_client) -> CatalogLookup:
    return CatalogLookup(redis_client)


@pytest.fixture
def cart_service(redis_client) -> CartService:
    return CartService(redis_client)


@pytest.fixture
def seed_item(catalog):
    """Store a catalog item with a fixed id"""
    async def _seed(kind: SourceKind, item_id: str, name: str, price="0", image: str = "") -> CatalogItem:
        item = CatalogItem(id=item_id, name=name, price=Decimal(str(price)), image=image)
        await catalog.repository(kind).save(item)
        return item
    return _seed


@pytest.fixture
def test_client(redis_client):
    from storefront.main import app
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_headers():
    return {"X-User-ID": "user-1"}
