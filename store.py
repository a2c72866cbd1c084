"""Document store collaborator: get/set by key and append-only ordered collections.

Two backends:
- InMemoryDocumentStore: process-local, used by default and in tests.
- RedisDocumentStore: JSON documents in Redis (`redis.asyncio`), selected when
  REDIS_URL is configured.
"""

import asyncio
import copy
import json
from typing import Any, Dict, List, Optional

from loguru import logger
from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError as BaseRedisError


class StoreError(Exception):
    """A store operation failed. Callers treat store writes as best-effort."""


class DocumentStore:
    """Interface shared by the store backends."""

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def append(self, collection: str, value: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def list(self, collection: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def close(self) -> None:
        return None


# ---------------------------------------------
# In-memory backend
# ---------------------------------------------
class InMemoryDocumentStore(DocumentStore):
    def __init__(self) -> None:
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._collections: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        doc = self._docs.get(key)
        return copy.deepcopy(doc) if doc is not None else None

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        self._docs[key] = copy.deepcopy(value)

    async def append(self, collection: str, value: Dict[str, Any]) -> None:
        async with self._lock:
            self._collections.setdefault(collection, []).append(copy.deepcopy(value))

    async def list(self, collection: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(v) for v in self._collections.get(collection, [])]


# ---------------------------------------------
# Redis backend
# ---------------------------------------------
class RedisDocumentStore(DocumentStore):
    """Documents are JSON strings under `doc:{key}`; collections are Redis lists
    under `col:{collection}` (RPUSH keeps insertion order)."""

    DOC_PREFIX = "doc"
    COLLECTION_PREFIX = "col"

    def __init__(self, url: str, max_connections: int = 10) -> None:
        self._pool = ConnectionPool.from_url(url, max_connections=max_connections, decode_responses=True)
        self._redis = Redis(connection_pool=self._pool)

    def _doc_key(self, key: str) -> str:
        return f"{self.DOC_PREFIX}:{key}"

    def _collection_key(self, collection: str) -> str:
        return f"{self.COLLECTION_PREFIX}:{collection}"

    @staticmethod
    def _serialize(value: Dict[str, Any]) -> str:
        return json.dumps(value, ensure_ascii=False, default=str)

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            raw = await self._redis.get(self._doc_key(key))
        except BaseRedisError as e:
            raise StoreError(f"Failed to get key: {key}") from e
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        try:
            await self._redis.set(self._doc_key(key), self._serialize(value))
        except BaseRedisError as e:
            raise StoreError(f"Failed to set key: {key}") from e

    async def append(self, collection: str, value: Dict[str, Any]) -> None:
        try:
            await self._redis.rpush(self._collection_key(collection), self._serialize(value))
        except BaseRedisError as e:
            raise StoreError(f"Failed to append to collection: {collection}") from e

    async def list(self, collection: str) -> List[Dict[str, Any]]:
        try:
            raw_items = await self._redis.lrange(self._collection_key(collection), 0, -1)
        except BaseRedisError as e:
            raise StoreError(f"Failed to read collection: {collection}") from e
        return [json.loads(item) for item in raw_items]

    async def close(self) -> None:
        await self._redis.aclose()
        await self._pool.disconnect()


def create_store(redis_url: Optional[str]) -> DocumentStore:
    if redis_url:
        logger.info("[Store] Using Redis document store")
        return RedisDocumentStore(redis_url)
    logger.info("[Store] Using in-memory document store")
    return InMemoryDocumentStore()
