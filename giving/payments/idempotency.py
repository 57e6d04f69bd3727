"""
Stockage d'idempotence des charges: une clé => au plus un appel au processeur.

- lock(key): sérialise les requêtes portant la même clé (un renvoi attend la première).
- get/put: résultat mis en cache (succès et refus du processeur), avec TTL.
- Deux implémentations: mémoire (un seul process) et Redis (plusieurs workers).
"""
import asyncio
import hashlib
import json
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from typing import Any, AsyncIterator, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

KEY_PREFIX = "giving:idem:"


def fingerprint(token: str, amount: int) -> str:
    """Empreinte de la tentative: même clé + empreinte différente => réutilisation abusive (409)."""
    return hashlib.sha256(f"{token}:{amount}".encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class StoredCharge:
    fingerprint: str
    status_code: int
    body: Dict[str, Any]

    def dumps(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def loads(cls, raw: str) -> "StoredCharge":
        data = json.loads(raw)
        return cls(fingerprint=data["fingerprint"], status_code=int(data["status_code"]), body=data.get("body") or {})


class MemoryIdempotencyStore:
    backend = "memory"

    def __init__(self, ttl_seconds: int = 86400):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, Tuple[float, StoredCharge]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    def _purge(self) -> None:
        now = time.monotonic()
        for key in [k for k, (exp, _) in self._entries.items() if exp <= now]:
            self._entries.pop(key, None)

    async def get(self, key: str) -> Optional[StoredCharge]:
        self._purge()
        entry = self._entries.get(key)
        return entry[1] if entry else None

    async def put(self, key: str, stored: StoredCharge) -> None:
        self._entries[key] = (time.monotonic() + self.ttl_seconds, stored)

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            # Nettoyage quand plus personne n'attend sur cette clé
            self._waiters[key] -= 1
            if not self._waiters[key]:
                self._waiters.pop(key, None)
                self._locks.pop(key, None)

    async def close(self) -> None:
        self._entries.clear()
        self._locks.clear()


class RedisIdempotencyStore:
    """
    Stockage partagé via redis.asyncio.
    - Verrou distribué redis (SET NX + expiration) pour sérialiser une même clé entre workers.
    """
    backend = "redis"

    def __init__(self, client: Any, ttl_seconds: int = 86400, lock_timeout: float = 60.0, blocking_timeout: float = 30.0):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.lock_timeout = lock_timeout
        self.blocking_timeout = blocking_timeout

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = 86400) -> "RedisIdempotencyStore":
        import redis.asyncio as aioredis

        return cls(aioredis.from_url(url, encoding="utf-8", decode_responses=True), ttl_seconds=ttl_seconds)

    async def get(self, key: str) -> Optional[StoredCharge]:
        raw = await self.client.get(KEY_PREFIX + key)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return StoredCharge.loads(raw)

    async def put(self, key: str, stored: StoredCharge) -> None:
        await self.client.set(KEY_PREFIX + key, stored.dumps(), ex=self.ttl_seconds)

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        async with self.client.lock(
            KEY_PREFIX + "lock:" + key,
            timeout=self.lock_timeout,
            blocking_timeout=self.blocking_timeout,
        ):
            yield

    async def close(self) -> None:
        await self.client.aclose()
