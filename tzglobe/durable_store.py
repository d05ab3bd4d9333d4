# tzglobe/durable_store.py
"""Durable key-value stores for the parsed timezone dataset.

Both stores keep JSON documents under a string key:
- SQLiteKeyValueStore: local file via aiosqlite (default)
- RedisKeyValueStore: shared Redis instance

Store errors never propagate: reads return None, writes return False.
"""

import json
import logging
from typing import Dict, Optional

import aiosqlite
from redis.asyncio import Redis
from redis.exceptions import RedisError

import config


class SQLiteKeyValueStore:
    """JSON documents in a single SQLite table."""

    def __init__(self, db_name: str = None):
        self.db_name = db_name or config.TZ_CACHE_DB
        self._initialized = False

    async def init_db(self):
        async with aiosqlite.connect(self.db_name) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS kv_cache (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)
            await db.commit()
        self._initialized = True

    async def get(self, key: str) -> Optional[Dict]:
        """Get a stored document.

        Args:
            key: Cache key

        Returns:
            Parsed JSON value or None on miss/error
        """
        try:
            if not self._initialized:
                await self.init_db()

            async with aiosqlite.connect(self.db_name) as db:
                cursor = await db.execute("SELECT value FROM kv_cache WHERE key = ?", (key,))
                row = await cursor.fetchone()

            if row is None:
                logging.info(f"❌ Durable cache miss: {key}")
                return None

            logging.info(f"✅ Durable cache hit: {key}")
            return json.loads(row[0])

        except (aiosqlite.Error, json.JSONDecodeError, OSError) as e:
            logging.error(f"Error reading durable cache ({self.db_name}): {e}")
            return None

    async def put(self, key: str, value: Dict) -> bool:
        """Store a document, replacing any previous value.

        Returns:
            True if stored successfully
        """
        try:
            if not self._initialized:
                await self.init_db()

            payload = json.dumps(value)
            async with aiosqlite.connect(self.db_name) as db:
                await db.execute("""
                    INSERT INTO kv_cache (key, value) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = CURRENT_TIMESTAMP
                """, (key, payload))
                await db.commit()

            logging.info(f"📦 Stored {len(payload)} bytes under {key}")
            return True

        except (aiosqlite.Error, TypeError, ValueError, OSError) as e:
            logging.error(f"Error writing durable cache ({self.db_name}): {e}")
            return False


class RedisKeyValueStore:
    """JSON documents as plain Redis strings (no TTL).

    The connection is opened on the first read or write. A failed command
    drops it and the next call reconnects. While Redis is unreachable the
    store behaves like an empty one.
    """

    def __init__(self, url: str = None, prefix: str = "tz:", client: Optional[Redis] = None):
        self.url = url or config.get_redis_url()
        self.prefix = prefix
        self._client = client
        self.last_error: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def _connect(self) -> Optional[Redis]:
        if self._client is not None:
            return self._client

        client = Redis.from_url(
            self.url,
            max_connections=config.REDIS_MAX_CONNECTIONS,
            decode_responses=True,
            socket_connect_timeout=5
        )
        try:
            await client.ping()
        except RedisError as e:
            self.last_error = str(e)
            logging.warning(f"⚠️ Redis unavailable for timezone cache: {e}")
            await client.aclose()
            return None

        logging.info(f"✅ Redis connected for timezone cache ({config.REDIS_HOST}:{config.REDIS_PORT})")
        self._client = client
        return client

    async def _drop(self, error: Exception):
        self.last_error = str(error)
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.aclose()
        except RedisError as e:
            logging.debug(f"Ignoring error while closing Redis connection: {e}")

    async def get(self, key: str) -> Optional[Dict]:
        client = await self._connect()
        if client is None:
            return None

        try:
            raw = await client.get(self.prefix + key)
        except RedisError as e:
            logging.error(f"Redis read error for {key}: {e}")
            await self._drop(e)
            return None

        if raw is None:
            logging.info(f"❌ Redis cache miss: {key}")
            return None

        try:
            value = json.loads(raw)
        except json.JSONDecodeError as e:
            logging.error(f"Corrupt timezone data in Redis under {key}: {e}")
            return None

        logging.info(f"✅ Redis cache hit: {key}")
        return value

    async def put(self, key: str, value: Dict) -> bool:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            logging.error(f"Cannot serialize timezone data for {key}: {e}")
            return False

        client = await self._connect()
        if client is None:
            logging.warning("Redis not available, skipping durable cache write")
            return False

        try:
            await client.set(self.prefix + key, payload)
        except RedisError as e:
            logging.error(f"Redis write error for {key}: {e}")
            await self._drop(e)
            return False

        logging.info(f"📦 Stored {len(payload)} bytes in Redis under {key}")
        return True

    async def health(self, key: str) -> Dict:
        """Connection state and whether the dataset key is present."""
        client = await self._connect()
        present = False
        if client is not None:
            try:
                present = bool(await client.exists(self.prefix + key))
            except RedisError as e:
                await self._drop(e)

        return {
            "connected": self.connected,
            "key": self.prefix + key,
            "present": present,
            "last_error": self.last_error
        }

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logging.info("🔌 Redis disconnected")


def build_durable_store(backend: str = None):
    """Pick the durable store configured by TZ_CACHE_BACKEND."""
    backend = (backend or config.TZ_CACHE_BACKEND).lower()
    if backend == "redis":
        return RedisKeyValueStore()
    return SQLiteKeyValueStore()
