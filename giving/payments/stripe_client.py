"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
"""
from typing import Any, Dict, Optional, Tuple

import stripe

from giving import config
from giving.checkout.errors import IntegrationMisconfigured


def _as_dict(obj: Any) -> Dict[str, Any]:
    to_dict = getattr(obj, "to_dict", None)
    return to_dict() if callable(to_dict) else dict(obj)


# module giving.payments.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY.
    - Sans clé, lève IntegrationMisconfigured (aucun paiement possible).
    """
    if not config.STRIPE_SECRET_KEY:
        raise IntegrationMisconfigured("Payment processor is not configured.", missing=["STRIPE_SECRET_KEY"])
    stripe.api_key = config.STRIPE_SECRET_KEY
    return stripe


def create_payment(
    *,
    token: str,
    amount: int,
    currency: str,
    idempotency_key: str,
    note: str,
    metadata: Dict[str, str],
    receipt_email: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Crée et confirme un PaymentIntent à partir d'un jeton (payment method) tokenisé côté client.
    - amount: centimes
    - idempotency_key: transmise telle quelle à Stripe (déduplication côté processeur aussi)
    Retour: dict PaymentIntent (id, status, amount, currency, created, ...)
    """
    require_stripe()
    params: Dict[str, Any] = {
        "amount": amount,
        "currency": currency,
        "payment_method": token,
        "confirm": True,
        "description": note,
        "metadata": metadata,
        # Pas de redirection: le client attend une réponse synchrone
        "automatic_payment_methods": {"enabled": True, "allow_redirects": "never"},
    }
    if receipt_email:
        params["receipt_email"] = receipt_email
    intent = stripe.PaymentIntent.create(idempotency_key=idempotency_key, **params)
    return _as_dict(intent)


def create_payment_intent(*, amount: int, currency: str, note: str, metadata: Dict[str, str]) -> str:
    """Crée un PaymentIntent non confirmé et retourne son client_secret (valable pour ce seul montant)."""
    require_stripe()
    intent = stripe.PaymentIntent.create(
        amount=amount,
        currency=currency,
        description=note,
        metadata=metadata,
        automatic_payment_methods={"enabled": True},
    )
    return str(_as_dict(intent).get("client_secret") or "")


def describe_error(exc: Exception) -> Tuple[int, str, bool]:
    """
    Traduit une erreur Stripe en (status HTTP, message, cacheable).
    - CardError: 402 + code processeur (ex: card_declined), refus définitif => mis en cache
    - InvalidRequestError: 400, mis en cache
    - Connexion / rate limit / panne: 502, non mis en cache (un renvoi peut aboutir)
    """
    if isinstance(exc, stripe.CardError):
        return 402, str(getattr(exc, "code", None) or getattr(exc, "user_message", None) or "card_declined"), True
    if isinstance(exc, stripe.InvalidRequestError):
        return 400, str(getattr(exc, "user_message", None) or getattr(exc, "code", None) or "invalid_request"), True
    if isinstance(exc, stripe.IdempotencyError):
        return 409, "idempotency_key_reused", True
    if isinstance(exc, (stripe.APIConnectionError, stripe.RateLimitError)):
        return 502, "Payment processor unavailable. Please try again.", False
    if isinstance(exc, stripe.StripeError):
        return 502, str(getattr(exc, "user_message", None) or "Payment error"), False
    return 500, "Payment error", False
