# module giving.app
from fastapi import FastAPI

from giving import __version__
from giving.app_setup.lifespan import lifespan
from giving.app_setup.middlewares import (
    register_basic_middlewares,
    register_security_middleware,
    register_no_cache_middleware,
    register_force_https_middleware,
)
from giving.app_setup.exceptions import register_exception_handlers
from giving.app_setup.routers import register_routers


def create_app() -> FastAPI:
    """
    Crée et configure l'instance FastAPI du backend de dons.
    Étapes et ordre (important pour la sécurité et le comportement):
      1) register_basic_middlewares: CORS, TrustedHost, ProxyHeaders.
      2) register_security_middleware: en-têtes de sécurité + CSP.
      3) register_no_cache_middleware: aucune mise en cache sous /api.
      4) register_exception_handlers: format {"error": ...} pour l'API, 503 si non configuré.
      5) register_routers: payments + health.
      6) register_force_https_middleware: ajouté en dernier pour s'exécuter en premier (redirection HTTPS).
    Retourne:
      - FastAPI: l'application prête à être servie (ASGI).
    """
    app = FastAPI(title="Giving Checkout API", version=__version__, lifespan=lifespan)
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_no_cache_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    # Ajouter le middleware HTTPS en dernier pour qu'il s'exécute en premier
    register_force_https_middleware(app)
    return app


# App globale
app = create_app()
