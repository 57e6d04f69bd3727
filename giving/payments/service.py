"""
Cas d'usage 'payments': transforme un jeton + montant en une charge, exactement une fois par clé.
"""
import logging
import secrets
from typing import Any, Dict

from starlette.concurrency import run_in_threadpool

from giving import config
from giving.checkout.errors import IntegrationMisconfigured
from . import metadata as meta
from . import stripe_client
from .idempotency import StoredCharge, fingerprint
from .schemas import CreateIntentRequest, PayRequest

logger = logging.getLogger(__name__)


class ChargeFailure(Exception):
    """Échec restitué au client sous la forme {"error": ...} avec le code HTTP associé."""

    def __init__(self, status_code: int, error: str):
        super().__init__(error)
        self.status_code = status_code
        self.error = error


def _charge_body(intent: Dict[str, Any], note: str) -> Dict[str, Any]:
    return {
        "ok": True,
        "charge": {
            "id": intent.get("id"),
            "status": intent.get("status"),
            "amount": intent.get("amount"),
            "currency": intent.get("currency"),
            "note": note,
            "created": intent.get("created"),
        },
    }


async def charge(req: PayRequest, store) -> Dict[str, Any]:
    """
    Exécute POST /api/pay.
    - Sérialise par clé d'idempotence; un renvoi de la même tentative rejoue le résultat mis en cache.
    - Même clé avec un autre jeton ou un autre montant => ChargeFailure(409).
    - Refus du processeur mis en cache; pannes non mises en cache (un renvoi peut réussir).
    Retour: corps JSON de succès; lève ChargeFailure sinon.
    """
    key = req.idempotency_key
    if not key:
        key = secrets.token_hex(16)
        logger.warning("payments.pay missing idempotency key, generated=%s (not deduplicated)", key)
    fp = fingerprint(req.token, req.amount)
    note = meta.build_note(req, req.note)

    async with store.lock(key):
        stored = await store.get(key)
        if stored is not None:
            if stored.fingerprint != fp:
                logger.warning("payments.pay key reused with different payload key=%s", key)
                raise ChargeFailure(409, "idempotency_key_reused")
            logger.info("payments.pay replay key=%s status=%s", key, stored.status_code)
            if stored.status_code != 200:
                raise ChargeFailure(stored.status_code, str(stored.body.get("error") or "Payment error"))
            return stored.body

        try:
            intent = await run_in_threadpool(
                stripe_client.create_payment,
                token=req.token,
                amount=req.amount,
                currency=config.PAYMENT_CURRENCY,
                idempotency_key=key,
                note=note,
                metadata=meta.build_metadata(req),
                receipt_email=req.email,
            )
        except IntegrationMisconfigured:
            raise
        except Exception as e:
            status, error, cacheable = stripe_client.describe_error(e)
            if status >= 500:
                logger.exception("Erreur payments.pay key=%s", key)
            else:
                logger.info("payments.pay rejected key=%s status=%s error=%s", key, status, error)
            if cacheable:
                await store.put(key, StoredCharge(fingerprint=fp, status_code=status, body={"error": error}))
            raise ChargeFailure(status, error) from e

        body = _charge_body(intent, note)
        await store.put(key, StoredCharge(fingerprint=fp, status_code=200, body=body))
        logger.info("payments.pay charged key=%s id=%s amount=%s fund=%s", key, body["charge"]["id"], req.amount, req.fund)
        return body


async def create_intent(req: CreateIntentRequest) -> Dict[str, str]:
    """Crée un contexte de paiement (client secret) pour exactement ce montant."""
    try:
        secret = await run_in_threadpool(
            stripe_client.create_payment_intent,
            amount=req.amount,
            currency=config.PAYMENT_CURRENCY,
            note=meta.build_note(req),
            metadata=meta.build_metadata(req),
        )
    except IntegrationMisconfigured:
        raise
    except Exception as e:
        status, error, _ = stripe_client.describe_error(e)
        if status >= 500:
            logger.exception("Erreur payments.create_intent amount=%s", req.amount)
        raise ChargeFailure(status, error) from e
    if not secret:
        raise ChargeFailure(502, "Payment could not be initialized.")
    logger.info("payments.create_intent amount=%s fund=%s", req.amount, req.fund)
    return {"clientSecret": secret}
