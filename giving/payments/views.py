import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from giving import config
from giving.utils.rate_limit import optional_rate_limit
from giving.payments import service as payments_service
from giving.payments.idempotency import MemoryIdempotencyStore
from giving.payments.schemas import CreateIntentRequest, PayRequest, first_error

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Payments API"])


def get_idempotency_store(request: Request):
    """
    Stockage d'idempotence de l'application.
    - Créé par le lifespan (Redis ou mémoire); à défaut, un stockage mémoire est créé à la demande.
    """
    store = getattr(request.app.state, "idempotency_store", None)
    if store is None:
        store = MemoryIdempotencyStore(ttl_seconds=config.IDEMPOTENCY_TTL_SECONDS)
        request.app.state.idempotency_store = store
    return store


async def _read_json(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        body = None
    return body if isinstance(body, dict) else {}


# module giving.payments.views
@router.post("/pay", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def pay(request: Request, store=Depends(get_idempotency_store)):
    """
    Transforme un jeton tokenisé + montant (centimes) en une charge, une seule fois par clé d'idempotence.
    - Entrée JSON: { token, amount, fund, name?, email?, idempotencyKey, note? }
    - Succès: 200 {"ok": true, "charge": {...}}
    - Erreurs: {"error": "..."} avec 400 (validation), 402 (carte refusée), 409 (clé réutilisée), 502 (processeur)
    """
    try:
        body = PayRequest.model_validate(await _read_json(request))
    except ValidationError as e:
        return JSONResponse({"error": first_error(e)}, status_code=400)
    try:
        return JSONResponse(await payments_service.charge(body, store))
    except payments_service.ChargeFailure as e:
        return JSONResponse({"error": e.error}, status_code=e.status_code)


@router.post("/create-payment-intent", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_payment_intent(request: Request):
    """
    Flux alternatif: contexte de paiement pré-créé pour un montant donné.
    - Entrée JSON: { amount, fund, name?, email?, dedication?: {name, note} }
    - Sortie: {"clientSecret": "..."}; à redemander à chaque changement de montant.
    """
    try:
        body = CreateIntentRequest.model_validate(await _read_json(request))
    except ValidationError as e:
        return JSONResponse({"error": first_error(e)}, status_code=400)
    try:
        return JSONResponse(await payments_service.create_intent(body))
    except payments_service.ChargeFailure as e:
        return JSONResponse({"error": e.error}, status_code=e.status_code)


@router.get("/config")
def public_config() -> Dict[str, Any]:
    """Configuration publique pour le client (clé publiable, environnement, devise)."""
    return {
        "publishableKey": config.STRIPE_PUBLIC_KEY,
        "environment": config.STRIPE_ENVIRONMENT,
        "currency": config.PAYMENT_CURRENCY,
    }
