"""
Gestionnaires d'exceptions.
- Sous /api/*: toute erreur est rendue au format {"error": "..."} attendu par le client de checkout.
- Ailleurs: réponse JSON FastAPI standard {"detail": ...}.
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from giving.checkout.errors import IntegrationMisconfigured

logger = logging.getLogger(__name__)


def _is_api(request: Request) -> bool:
    return request.url.path.startswith("/api/")


def register_exception_handlers(app: FastAPI) -> None:
    """
    Enregistre les handlers:
    - HTTPException: {"error": detail} pour l'API (ex: 429 du rate limiting), {"detail": ...} sinon.
    - RequestValidationError: 400 {"error": ...} pour l'API.
    - IntegrationMisconfigured: 503, le paiement est indisponible tant que la configuration manque.
    - Exception: 500 {"error": "Payment error"} pour l'API, journalisée avec la trace.
    """
    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        if _is_api(request):
            return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        if _is_api(request):
            errors = exc.errors()
            msg = errors[0].get("msg") if errors else "Invalid request"
            return JSONResponse(status_code=400, content={"error": str(msg)})
        return JSONResponse(status_code=422, content={"detail": exc.errors()})

    @app.exception_handler(IntegrationMisconfigured)
    async def misconfigured(request: Request, exc: IntegrationMisconfigured):
        logger.error("payments.misconfigured missing=%s", exc.missing)
        return JSONResponse(status_code=503, content={"error": exc.message})

    @app.exception_handler(Exception)
    async def unexpected(request: Request, exc: Exception):
        logger.exception("Erreur non gérée path=%s", request.url.path)
        content = {"error": "Payment error"} if _is_api(request) else {"detail": "Internal Server Error"}
        return JSONResponse(status_code=500, content=content)
