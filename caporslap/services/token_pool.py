from typing import List, Sequence

from caporslap.models.schema_models import TokenSchema
from caporslap.store import KeyValueStore


class TokenPoolReader:
    """Read-only view of the token pool. The pool is refreshed out of band."""

    async def get_pool(self) -> List[TokenSchema]:
        raise NotImplementedError


class RedisTokenPool(TokenPoolReader):
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def get_pool(self) -> List[TokenSchema]:
        return await self.store.get_token_pool()


class StaticTokenPool(TokenPoolReader):
    def __init__(self, tokens: Sequence[TokenSchema]):
        self.tokens = list(tokens)

    async def get_pool(self) -> List[TokenSchema]:
        return list(self.tokens)
