"""
ASGI entrypoint: expose `app` for process managers / deployments.
- En production, un process manager (ex: gunicorn/uvicorn-workers) importe `giving.asgi:app`.
- Toute la configuration FastAPI est centralisée dans giving.app, ce fichier ne fait qu'exposer l'instance.
- Sans identifiants du processeur, le lifespan refuse de démarrer (IntegrationMisconfigured).
"""
from giving.app import app

__all__ = ["app"]
