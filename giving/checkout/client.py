"""
Client HTTP de soumission vers le backend de dons (POST /api/pay, /api/create-payment-intent).

- Une clé d'idempotence (128 bits) par tentative logique, générée par l'appelant.
- Une réponse perdue (erreur transport) est renvoyée avec la même clé: le backend déduplique.
"""
import logging
import secrets
from typing import Any, Dict, Optional

import httpx

from giving import __version__
from .errors import ChargeError
from .models import ChargeRecord, DonationIntent, SubmissionAttempt

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000"


class SubmissionClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float = 30.0,
        max_retries: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._max_retries = max_retries
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": f"giving-checkout/{__version__}", "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def new_idempotency_key() -> str:
        return secrets.token_hex(16)

    async def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        resent = 0
        while True:
            try:
                resp = await self._client.request(method, path, json=body)
                break
            except httpx.TransportError as e:
                # Même corps, même clé: un renvoi ne peut pas provoquer de double charge
                if resent >= self._max_retries:
                    logger.warning("checkout.client giving up path=%s error=%s", path, e)
                    raise ChargeError("Network error. Please try again.", retryable=True) from e
                resent += 1
                logger.warning("checkout.client resend path=%s resend=%s error=%s", path, resent, e)
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not resp.is_success:
            message = (data or {}).get("error") if isinstance(data, dict) else None
            raise ChargeError(
                str(message or "Payment failed. Please try again."),
                status_code=resp.status_code,
                retryable=resp.status_code != 409,
            )
        return data if isinstance(data, dict) else {}

    async def submit(self, attempt: SubmissionAttempt, intent: DonationIntent) -> ChargeRecord:
        """Soumet un jeton tokenisé; soulève ChargeError avec la chaîne d'erreur du backend."""
        meta = intent.metadata()
        body: Dict[str, Any] = {
            "token": attempt.token,
            "amount": attempt.total_cents,
            "fund": meta["fund"],
            "name": meta["name"],
            "email": meta["email"],
            "idempotencyKey": attempt.idempotency_key,
        }
        if intent.dedication:
            body["note"] = f"Dedication: {intent.dedication.text()}"
        data = await self._request("POST", "/api/pay", body)
        return ChargeRecord.from_response(data.get("charge") or {})

    async def create_payment_intent(self, total_cents: int, intent: DonationIntent) -> str:
        """Demande un contexte de paiement (secret client) valable pour ce seul montant."""
        body = {"amount": total_cents, **intent.metadata()}
        data = await self._request("POST", "/api/create-payment-intent", body)
        secret = data.get("clientSecret")
        if not secret:
            raise ChargeError("Payment could not be initialized.", retryable=True)
        return str(secret)

    async def fetch_config(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/config")

    async def close(self) -> None:
        await self._client.aclose()
