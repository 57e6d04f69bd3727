"""
Types d'erreurs du parcours de checkout.

- Erreurs récupérables: locales à un canal, ne stoppent jamais les canaux voisins ni la session.
- Erreurs fatales: IntegrationMisconfigured (aucun canal ne peut fonctionner).
"""

from typing import Any, Dict, Optional


class CheckoutError(Exception):
    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


class InvalidAmount(CheckoutError):
    """Montant saisi invalide (corrigeable par l'utilisateur, jamais envoyé au backend)."""

    def __init__(self, message: str = "Please enter an amount of at least $1.00.", raw: Any = None):
        super().__init__("invalid_amount", message, {"raw": raw} if raw is not None else None)


class ChannelIneligible(CheckoutError):
    def __init__(self, channel: str, reason: str = "not eligible"):
        super().__init__("channel_ineligible", f"{channel}: {reason}", {"channel": channel})
        self.channel = channel


class TokenizationCanceled(CheckoutError):
    def __init__(self, channel: str, message: str = "Payment canceled."):
        super().__init__("tokenization_canceled", message, {"channel": channel})
        self.channel = channel


class TokenizationFailed(CheckoutError):
    def __init__(self, channel: str, message: str = "Card details error. Please check and try again.", details: Optional[Dict[str, Any]] = None):
        super().__init__("tokenization_failed", message, {"channel": channel, **(details or {})})
        self.channel = channel


class ChargeError(CheckoutError):
    """Refus du backend/processeur; le message est la chaîne d'erreur du backend, telle quelle."""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = True):
        super().__init__("charge_error", message, {"status_code": status_code})
        self.status_code = status_code
        self.retryable = retryable


class IntegrationMisconfigured(CheckoutError):
    def __init__(self, message: str, missing: Optional[list] = None):
        super().__init__("integration_misconfigured", message, {"missing": missing} if missing else None)
        self.missing = missing or []


class SubmissionInProgress(CheckoutError):
    def __init__(self, message: str = "A payment is already being processed."):
        super().__init__("submission_in_progress", message)


class SessionClosed(CheckoutError):
    def __init__(self, message: str = "Checkout session is closed."):
        super().__init__("session_closed", message)


class InvalidTransition(CheckoutError):
    """Transition illégale de la machine à états d'un canal (erreur de programmation)."""

    def __init__(self, channel: str, current: str, action: str):
        super().__init__(
            "invalid_transition",
            f"{channel}: cannot {action} from state {current}",
            {"channel": channel, "state": current, "action": action},
        )
