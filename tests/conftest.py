import fakeredis
import pytest
from fakeredis import aioredis

from caporslap.services.identity import AddressIdentityResolver, IdentityService
from caporslap.services.token_pool import StaticTokenPool
from caporslap.store import KeyValueStore
from helpers import FakeClock, make_tokens


@pytest.fixture()
def server():
    return fakeredis.FakeServer()


@pytest.fixture()
def redis(server):
    return aioredis.FakeRedis(server=server, decode_responses=True)


@pytest.fixture()
def sync_redis(server):
    return fakeredis.FakeRedis(server=server, decode_responses=True)


@pytest.fixture()
def store(redis):
    return KeyValueStore(redis)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def tokens():
    return make_tokens()


@pytest.fixture()
def token_pool(tokens):
    return StaticTokenPool(tokens)


@pytest.fixture()
def identity(store):
    return IdentityService(store, AddressIdentityResolver())
