"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Refuse de démarrer sans identifiants du processeur (IntegrationMisconfigured).
- Initialise FastAPILimiter (Redis) avec options de test (fakeredis).
- Crée le stockage d'idempotence (Redis si IDEMPOTENCY_REDIS_URL, sinon mémoire).
- Variables d'environnement supportées:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive complètement le rate limiting (tests)
  - USE_FAKE_REDIS_FOR_TESTS=1: utilise fakeredis (tests)
  - LOCAL_RATE_LIMIT_FALLBACK=1: active un fallback local si l'init échoue
"""
import os
import logging
import redis.asyncio as aioredis
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

from giving import config
from giving.checkout.errors import IntegrationMisconfigured
from giving.payments.idempotency import MemoryIdempotencyStore, RedisIdempotencyStore

try:
    from fakeredis.aioredis import FakeRedis  # tests only
except ImportError:
    FakeRedis = None


async def _init_rate_limiter(app: FastAPI, logger: logging.Logger) -> None:
    """
    Configure le rate limiting et gère les fallbacks.
    - En cas d'échec de Redis et sans fallback, le rate limiting est désactivé proprement.
    """
    try:
        if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
            app.state.rate_limit_enabled = False
            logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
            return

        if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
            if not FakeRedis:
                raise RuntimeError("USE_FAKE_REDIS_FOR_TESTS=1 mais fakeredis n'est pas installé.")
            r = FakeRedis(decode_responses=True)
        else:
            redis_url = os.getenv("RATE_LIMIT_REDIS_URL", "redis://127.0.0.1:6379/0")
            r = aioredis.from_url(redis_url, encoding="utf-8", decode_responses=True)

        await FastAPILimiter.init(r)
        app.state.rate_limit_enabled = True
        logger.info("Rate limiting enabled")
    except Exception as e:
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            app.state.rate_limit_enabled = True
            logger.warning(f"Rate limiting falling back to local in-memory due to init error: {e}")
        else:
            app.state.rate_limit_enabled = False
            logger.warning(f"Rate limiting disabled due to init error: {e}")


def _make_idempotency_store(logger: logging.Logger):
    if config.IDEMPOTENCY_REDIS_URL:
        logger.info("Idempotency store: redis")
        return RedisIdempotencyStore.from_url(config.IDEMPOTENCY_REDIS_URL, ttl_seconds=config.IDEMPOTENCY_TTL_SECONDS)
    if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1" and FakeRedis:
        logger.info("Idempotency store: fakeredis")
        return RedisIdempotencyStore(FakeRedis(decode_responses=True), ttl_seconds=config.IDEMPOTENCY_TTL_SECONDS)
    logger.info("Idempotency store: memory (single process only)")
    return MemoryIdempotencyStore(ttl_seconds=config.IDEMPOTENCY_TTL_SECONDS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("uvicorn.error")
    missing = config.missing_credentials()
    if missing:
        logger.error("Missing payment credentials: %s", ", ".join(missing))
        raise IntegrationMisconfigured(f"Missing required environment variables: {', '.join(missing)}", missing=missing)

    await _init_rate_limiter(app, logger)
    app.state.idempotency_store = _make_idempotency_store(logger)

    yield

    # Phase shutdown
    store = app.state.idempotency_store
    app.state.idempotency_store = None
    await store.close()
