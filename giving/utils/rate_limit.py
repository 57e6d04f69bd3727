"""
Limitation de débit des endpoints de paiement.
- fastapi-limiter (Redis) quand le lifespan l'a initialisé.
- LOCAL_RATE_LIMIT_FALLBACK=1: fenêtre glissante en mémoire (dev, un seul process).
- Clé: IP du client (X-Forwarded-For derrière proxy) + chemin; l'API n'a pas de session.
"""
import os
import time
from typing import Any, Dict, List
from urllib.parse import urlparse

from fastapi import HTTPException, Request, Response
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter

TOO_MANY_REQUESTS = "Too many requests. Please wait and try again."


def _client_key(req: Request) -> str:
    forwarded = (req.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    ip = forwarded or (req.client.host if req.client else "local")
    return f"ip:{ip}:{req.url.path}"


def _local_fallback() -> bool:
    return os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1"


def _limiter_ready() -> bool:
    return getattr(FastAPILimiter, "redis", None) is not None


def _hit_local_window(request: Request, times: int, seconds: int) -> None:
    # Fenêtre par clé conservée sur app.state (remise à zéro au redémarrage)
    now = time.time()
    key = _client_key(request)
    windows: Dict[str, List[float]] = getattr(request.app.state, "_rl_store", None) or {}
    hits = [t for t in windows.get(key, []) if now - t < seconds]
    if len(hits) >= times:
        raise HTTPException(status_code=429, detail=TOO_MANY_REQUESTS)
    hits.append(now)
    windows[key] = hits
    request.app.state._rl_store = windows


async def _identifier(request: Request) -> str:
    return _client_key(request)


def optional_rate_limit(times: int, seconds: int):
    """Dépendance FastAPI: au plus `times` requêtes par `seconds` secondes, par IP et par chemin."""
    async def _dep(request: Request, response: Response):
        if _local_fallback():
            _hit_local_window(request, times, seconds)
            return
        if getattr(request.app.state, "rate_limit_enabled", None) is False:
            return
        if not _limiter_ready():
            return
        try:
            await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, response)
        except HTTPException:
            raise
        except Exception:
            # Redis indisponible: pas de 429 en prod (activer LOCAL_RATE_LIMIT_FALLBACK=1 en dev)
            return
    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    ready = _limiter_ready()
    if ready:
        backend = "redis"
    elif _local_fallback():
        backend = "memory"
    else:
        backend = None

    info: Dict[str, Any] = {
        "enabled": bool(enabled) if enabled is not None else None,
        "ready": ready,
        "backend": backend,
    }
    redis_url = os.getenv("RATE_LIMIT_REDIS_URL")
    if backend == "redis" and redis_url:
        p = urlparse(redis_url)
        info["redis"] = {"scheme": p.scheme, "host": p.hostname, "port": p.port}
    return info
