"""Content-addressed generation cache with single-flight and TTL"""

import asyncio
import hashlib
import json
import logging
import sqlite3
import threading
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from autodocops.config import config
from autodocops.exceptions import CacheCorruptionError
from autodocops.models.cache_entry import CacheEntry

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "\x1f"

Clock = Callable[[], datetime]


def cache_key(*parts: str) -> str:
    """
    Build a cache key from its parts

    Parts are joined with the ASCII unit separator so that ("ab", "c") and
    ("a", "bc") never collide, then hashed with SHA-256.
    """
    return hashlib.sha256(KEY_SEPARATOR.join(parts).encode("utf-8")).hexdigest()


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _to_iso(dt: datetime) -> str:
    return dt.astimezone(UTC).isoformat()


class SqliteCacheStore:
    """SQLite backing tier shared by processes on one host"""

    def __init__(self, db_path: str | Path | None = None):
        self.db_path = str(db_path or config.cache_db_path or ":memory:")
        # For :memory: databases, we need to keep a persistent connection
        # because each connection gets a separate in-memory database
        self._memory_conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        with self._connection() as conn:
            if self.db_path != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS cache_entries (
                    namespace TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    expires_at TEXT NOT NULL,
                    PRIMARY KEY (namespace, key)
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_cache_expires
                ON cache_entries(expires_at)
            """)

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """
        Yield a connection inside a transaction

        For :memory: databases, uses the persistent connection.
        For file databases, opens a new connection and closes it afterwards.
        """
        with self._lock:
            if self.db_path == ":memory:":
                if self._memory_conn is None:
                    self._memory_conn = sqlite3.connect(":memory:", check_same_thread=False)
                conn, should_close = self._memory_conn, False
            else:
                conn, should_close = sqlite3.connect(self.db_path, timeout=30), True

            try:
                with conn:
                    yield conn
            finally:
                if should_close:
                    conn.close()

    def get(self, namespace: str, key: str) -> tuple[str, str, str] | None:
        with self._connection() as conn:
            return conn.execute(
                "SELECT value, created_at, expires_at FROM cache_entries "
                "WHERE namespace = ? AND key = ?",
                (namespace, key),
            ).fetchone()

    def put(self, namespace: str, entry: CacheEntry) -> None:
        with self._connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO cache_entries "
                "(namespace, key, value, created_at, expires_at) VALUES (?, ?, ?, ?, ?)",
                (
                    namespace,
                    entry.key,
                    json.dumps(entry.value),
                    _to_iso(entry.created_at),
                    _to_iso(entry.expires_at),
                ),
            )

    def put_raw(
        self, namespace: str, key: str, value: str, created_at: str, expires_at: str
    ) -> None:
        """Write an undecoded row as-is"""
        with self._connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO cache_entries "
                "(namespace, key, value, created_at, expires_at) VALUES (?, ?, ?, ?, ?)",
                (namespace, key, value, created_at, expires_at),
            )

    def delete(self, namespace: str, key: str) -> None:
        with self._connection() as conn:
            conn.execute(
                "DELETE FROM cache_entries WHERE namespace = ? AND key = ?", (namespace, key)
            )

    def purge_expired(self, now: datetime) -> int:
        with self._connection() as conn:
            cursor = conn.execute(
                "DELETE FROM cache_entries WHERE expires_at <= ?", (_to_iso(now),)
            )
            return cursor.rowcount

    def count(self, namespace: str | None = None) -> int:
        with self._connection() as conn:
            if namespace is None:
                row = conn.execute("SELECT COUNT(*) FROM cache_entries").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM cache_entries WHERE namespace = ?", (namespace,)
                ).fetchone()
        return row[0]

    def close(self) -> None:
        if self._memory_conn is not None:
            self._memory_conn.close()
            self._memory_conn = None


class GenerationCache:
    """
    Two-tier cache for expensive generation results

    Lookups check an in-process dictionary, then the optional SQLite store.
    Misses are single-flight per key within this process: the first caller
    runs the factory and every concurrent caller for the same key awaits
    that one result. Failures are never stored.
    """

    def __init__(
        self,
        ttl: timedelta | None = None,
        clock: Clock | None = None,
        store: SqliteCacheStore | None = None,
        namespace: str = "artifact",
        validator: Callable[[Any], Any] | None = None,
    ):
        self.ttl = ttl if ttl is not None else timedelta(hours=config.cache_ttl_hours)
        if self.ttl <= timedelta(0):
            raise ValueError("Cache TTL must be positive")
        self.clock = clock or _utc_now
        self.store = store
        self.namespace = namespace
        self.validator = validator

        # Purges run on the scheduler thread
        self._entries: dict[str, CacheEntry] = {}
        self._entries_lock = threading.Lock()
        self._in_flight: dict[str, asyncio.Future] = {}
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def _check(self, value: Any) -> Any:
        if self.validator is None:
            return value
        try:
            result = self.validator(value)
        except (TypeError, ValueError) as e:
            raise CacheCorruptionError(f"Cached value failed validation: {e}") from e
        return value if result is None else result

    def _decode(self, key: str, row: tuple[str, str, str]) -> CacheEntry:
        raw_value, created_at, expires_at = row
        try:
            value = json.loads(raw_value)
            entry = CacheEntry(
                key=key,
                value=value,
                created_at=datetime.fromisoformat(created_at),
                expires_at=datetime.fromisoformat(expires_at),
            )
        except (TypeError, ValueError) as e:
            raise CacheCorruptionError(f"Undecodable cache entry {key[:12]}: {e}") from e
        return entry.model_copy(update={"value": self._check(entry.value)})

    def _evict(self, key: str) -> None:
        with self._entries_lock:
            self._entries.pop(key, None)
        if self.store is not None:
            self.store.delete(self.namespace, key)

    def _lookup(self, key: str) -> CacheEntry | None:
        now = self.clock()

        with self._entries_lock:
            entry = self._entries.get(key)
            if entry is not None:
                if not entry.is_expired(now):
                    return entry
                del self._entries[key]

        if self.store is None:
            return None

        row = self.store.get(self.namespace, key)
        if row is None:
            return None

        try:
            entry = self._decode(key, row)
        except CacheCorruptionError as e:
            logger.warning(f"Evicting corrupt cache entry in '{self.namespace}': {e}")
            self.evictions += 1
            self._evict(key)
            return None

        if entry.is_expired(now):
            self.store.delete(self.namespace, key)
            return None

        with self._entries_lock:
            self._entries[key] = entry
        return entry

    def _save(self, key: str, value: Any) -> None:
        now = self.clock()
        entry = CacheEntry(key=key, value=value, created_at=now, expires_at=now + self.ttl)
        with self._entries_lock:
            self._entries[key] = entry
        if self.store is not None:
            try:
                self.store.put(self.namespace, entry)
            except (sqlite3.Error, TypeError, ValueError) as e:
                logger.warning(f"Failed to persist cache entry {key[:12]}: {e}")

    def put(self, key: str, value: Any) -> None:
        """Store a value produced outside get_or_create"""
        self._save(key, value)

    def get(self, key: str) -> Any | None:
        """Return the cached value for key, or None on a miss"""
        entry = self._lookup(key)
        return None if entry is None else entry.value

    def contains(self, key: str) -> bool:
        return self._lookup(key) is not None

    def invalidate(self, key: str) -> None:
        self._evict(key)

    async def get_or_create(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return the cached value for key, creating it with factory on a miss

        Args:
            key: Cache key from cache_key()
            factory: Zero-argument coroutine function producing the value

        Returns:
            The cached or freshly produced value
        """
        value, _ = await self.get_or_create_with_status(key, factory)
        return value

    async def get_or_create_with_status(
        self, key: str, factory: Callable[[], Awaitable[Any]]
    ) -> tuple[Any, bool]:
        """Like get_or_create, also reporting whether this caller skipped the factory"""
        while True:
            entry = self._lookup(key)
            if entry is not None:
                self.hits += 1
                return entry.value, True

            pending = self._in_flight.get(key)
            if pending is None:
                break

            try:
                value = await asyncio.shield(pending)
            except asyncio.CancelledError:
                task = asyncio.current_task()
                if pending.cancelled() and (task is None or task.cancelling() == 0):
                    # The leading caller went away; retry and possibly take over
                    continue
                raise
            self.hits += 1
            return value, True

        self.misses += 1
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        try:
            value = await factory()
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unobserved failure is not reported by the loop
            future.exception()
            raise
        else:
            self._save(key, value)
            future.set_result(value)
            return value, False
        finally:
            if self._in_flight.get(key) is future:
                del self._in_flight[key]
            if not future.done():
                future.cancel()

    async def get_or_create_many(
        self,
        keys: list[str],
        batch_factory: Callable[[list[str]], Awaitable[list[Any]]],
    ) -> dict[str, Any]:
        """
        Resolve many keys, producing the missing ones with one batch call

        Keys already being produced by another caller are awaited instead of
        produced again. The remaining misses are claimed before batch_factory
        runs, so concurrent callers for those keys wait on this batch.

        Args:
            keys: Cache keys; duplicates are resolved once
            batch_factory: Coroutine function taking the claimed keys and
                returning their values in the same order

        Returns:
            Mapping of every key to its value
        """
        values: dict[str, Any] = {}
        awaited: list[str] = []
        claimed: list[str] = []
        for key in dict.fromkeys(keys):
            entry = self._lookup(key)
            if entry is not None:
                self.hits += 1
                values[key] = entry.value
            elif key in self._in_flight:
                awaited.append(key)
            else:
                claimed.append(key)

        if claimed:
            values.update(await self._produce_batch(claimed, batch_factory))

        for key in awaited:

            async def produce_one(key: str = key) -> Any:
                (value,) = await batch_factory([key])
                return value

            values[key], _ = await self.get_or_create_with_status(key, produce_one)

        return values

    async def _produce_batch(
        self,
        keys: list[str],
        batch_factory: Callable[[list[str]], Awaitable[list[Any]]],
    ) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        futures = {key: loop.create_future() for key in keys}
        self._in_flight.update(futures)
        self.misses += len(keys)
        try:
            produced = list(await batch_factory(keys))
            if len(produced) != len(keys):
                raise ValueError(f"Batch produced {len(produced)} values for {len(keys)} keys")
        except Exception as e:
            for future in futures.values():
                future.set_exception(e)
                future.exception()
            raise
        else:
            for key, value in zip(keys, produced, strict=True):
                self._save(key, value)
                futures[key].set_result(value)
            return dict(zip(keys, produced, strict=True))
        finally:
            for key, future in futures.items():
                if self._in_flight.get(key) is future:
                    del self._in_flight[key]
                if not future.done():
                    future.cancel()

    def purge_expired(self) -> int:
        """Drop expired entries from both tiers, returning how many were removed"""
        now = self.clock()
        with self._entries_lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        removed = len(expired)
        if self.store is not None:
            removed = max(removed, self.store.purge_expired(now))
        if removed:
            logger.info(f"Purged {removed} expired '{self.namespace}' cache entries")
        return removed

    def stats(self) -> dict[str, Any]:
        return {
            "namespace": self.namespace,
            "entries": len(self),
            "hits": self.hits,
            "misses": self.misses,
            "in_flight": len(self._in_flight),
            "evictions": self.evictions,
        }

    def __len__(self) -> int:
        now = self.clock()
        with self._entries_lock:
            return sum(1 for entry in self._entries.values() if not entry.is_expired(now))
