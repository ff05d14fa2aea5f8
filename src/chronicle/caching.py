import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import zstandard as zstd

from . import config
from .utils import ensure_parent_dir

logger = logging.getLogger(__name__)


def _utc_now_iso():
    return datetime.now(timezone.utc).isoformat()


class QueryCacheStore:
    """In-memory query -> result store; subclasses add persistence on flush()."""

    def __init__(self):
        self._entries = {}
        self._dirty = False

    def load(self):
        return self

    def get(self, key):
        return self._entries.get(key)

    def put(self, key, value):
        self._entries[key] = value
        self._dirty = True

    def flush(self):
        self._dirty = False

    def close(self):
        pass

    def __len__(self):
        return len(self._entries)


class JsonQueryCacheStore(QueryCacheStore):
    """Whole-file JSON cache; read permissively, rewritten wholesale on flush."""

    def __init__(self, cache_path=config.DEFAULT_CACHE_FILE):
        super().__init__()
        self.cache_path = Path(cache_path)

    def load(self):
        if not self.cache_path.exists():
            return self
        try:
            with open(self.cache_path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("[!] Could not load query cache %s: %s. Starting empty.", self.cache_path, exc)
            return self
        if isinstance(data, dict):
            self._entries.update(data)
        else:
            logger.warning("[!] Query cache %s is not a JSON object. Starting empty.", self.cache_path)
        return self

    def flush(self):
        if not self._dirty:
            return
        ensure_parent_dir(self.cache_path)
        with open(self.cache_path, "w", encoding="utf-8") as fh:
            json.dump(self._entries, fh, ensure_ascii=True)
        self._dirty = False


def _is_not_a_database(exc):
    code = getattr(exc, "sqlite_errorcode", None)
    return code == sqlite3.SQLITE_NOTADB or "not a database" in str(exc)


class SQLiteQueryCacheStore(QueryCacheStore):
    """SQLite-backed cache with zstd-compressed JSON payloads; writes are batched until flush()."""

    def __init__(self, db_path):
        super().__init__()
        self.db_path = Path(db_path)
        self._pending = {}
        self._conn = None
        self._readable = True
        self._writable = True

    def _get_conn(self):
        if self._conn is None:
            ensure_parent_dir(self.db_path)
            conn = sqlite3.connect(self.db_path)
            try:
                conn.execute("PRAGMA busy_timeout=5000")
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("PRAGMA synchronous=NORMAL")
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS query_cache (
                        key TEXT PRIMARY KEY,
                        payload BLOB,
                        ts TEXT
                    )
                    """
                )
                conn.commit()
            except sqlite3.DatabaseError:
                conn.close()
                raise
            self._conn = conn
        return self._conn

    @staticmethod
    def _encode(value):
        raw = json.dumps(value, ensure_ascii=True).encode("utf-8")
        return zstd.ZstdCompressor().compress(raw)

    @staticmethod
    def _decode(payload):
        raw = zstd.ZstdDecompressor().decompress(payload)
        return json.loads(raw.decode("utf-8"))

    def load(self):
        try:
            self._get_conn()
        except sqlite3.DatabaseError as exc:
            if not _is_not_a_database(exc):
                logger.warning("[!] Query cache %s is unavailable (%s). Running without it.", self.db_path, exc)
                self._readable = False
                self._writable = False
                return self
            corrupt_path = self.db_path.with_name(self.db_path.name + ".corrupt")
            logger.warning(
                "[!] Could not open query cache %s: %s. Moving it to %s and starting empty.",
                self.db_path,
                exc,
                corrupt_path,
            )
            for suffix in ("", "-wal", "-shm"):
                source = self.db_path.with_name(self.db_path.name + suffix)
                if source.exists():
                    source.replace(corrupt_path.with_name(corrupt_path.name + suffix))
        return self

    def get(self, key):
        if key in self._entries:
            return self._entries[key]
        if not self._readable:
            return None
        try:
            row = self._get_conn().execute("SELECT payload FROM query_cache WHERE key = ?", (key,)).fetchone()
        except sqlite3.DatabaseError as exc:
            logger.warning("[!] Query cache read failed (%s). Ignoring cached entries.", exc)
            self._readable = False
            return None
        if not row or not row[0]:
            return None
        try:
            value = self._decode(row[0])
        except (zstd.ZstdError, ValueError):
            logger.warning("[!] Dropping undecodable cache entry.")
            return None
        self._entries[key] = value
        return value

    def put(self, key, value):
        super().put(key, value)
        self._pending[key] = value

    def flush(self):
        if not self._pending:
            return
        if not self._writable:
            logger.warning("[!] Query cache %s is unavailable; %s new entries not saved.", self.db_path, len(self._pending))
            return
        conn = self._get_conn()
        now = _utc_now_iso()
        payload = [(key, self._encode(value), now) for key, value in self._pending.items()]
        conn.execute("BEGIN")
        conn.executemany(
            """
            INSERT INTO query_cache (key, payload, ts)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                payload=excluded.payload,
                ts=excluded.ts
            """,
            payload,
        )
        conn.commit()
        self._pending.clear()
        self._dirty = False

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None


def open_cache_store(cache_path):
    """Pick the store implementation from the cache file suffix and load it."""
    if cache_path is None:
        return QueryCacheStore()
    path = Path(cache_path)
    if path.suffix.lower() in config.SQLITE_CACHE_SUFFIXES:
        return SQLiteQueryCacheStore(path).load()
    return JsonQueryCacheStore(path).load()


class TemporalValueCache:
    """
    Query-text -> structured-result cache with at-most-once execution per run.

    ``skip_cache`` ignores persisted entries but still records fresh results,
    so a skipping run refreshes the store. Results computed earlier in the
    same run are always reused.
    """

    def __init__(self, store=None, skip_cache=False):
        self.store = store if store is not None else QueryCacheStore()
        self.skip_cache = skip_cache
        self._memo = {}
        self._flushed = False
        self.stats = {"hits": 0, "memo_hits": 0, "misses": 0, "writes": 0}

    def lookup(self, key, skip_cache=False):
        if key in self._memo:
            self.stats["memo_hits"] += 1
            return self._memo[key]
        if self.skip_cache or skip_cache:
            return None
        cached = self.store.get(key)
        if cached is not None:
            self.stats["hits"] += 1
            self._memo[key] = cached
        return cached

    def put(self, key, value):
        self._memo[key] = value
        self.store.put(key, value)
        self.stats["writes"] += 1

    def fetch(self, key, compute, skip_cache=False):
        """Return the cached result for ``key`` or compute, record and return it."""
        cached = self.lookup(key, skip_cache=skip_cache)
        if cached is not None:
            return cached
        self.stats["misses"] += 1
        value = compute()
        self.put(key, value)
        return value

    def flush(self):
        """Persist the store; only the first call writes."""
        if self._flushed:
            return
        self._flushed = True
        self.store.flush()
        logger.info("[+] Query cache saved (%s entries written this run).", self.stats["writes"])
