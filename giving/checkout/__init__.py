"""
Moteur de checkout côté client (asyncio).

- amount: politique de montant (validation, frais estimés, total)
- channels: contrat des canaux, variantes et registre
- session: coordination d'une feuille de paiement ouverte
- client: soumission HTTP vers le backend de dons
"""

from .amount import compute_fee, compute_total, format_usd, is_valid, parse_amount, to_cents, validate
from .client import SubmissionClient
from .errors import (
    ChannelIneligible,
    ChargeError,
    CheckoutError,
    IntegrationMisconfigured,
    InvalidAmount,
    InvalidTransition,
    SessionClosed,
    SubmissionInProgress,
    TokenizationCanceled,
    TokenizationFailed,
)
from .form import DonationForm
from .models import (
    ChannelProbeResult,
    ChannelState,
    ChargeRecord,
    Dedication,
    DonationIntent,
    Fund,
    MonetaryTotal,
    SessionStatus,
    SubmissionAttempt,
    TokenizeResult,
)
from .session import CheckoutSession

__all__ = [
    "compute_fee",
    "compute_total",
    "format_usd",
    "is_valid",
    "parse_amount",
    "to_cents",
    "validate",
    "SubmissionClient",
    "CheckoutSession",
    "DonationForm",
    # erreurs
    "CheckoutError",
    "InvalidAmount",
    "ChannelIneligible",
    "TokenizationCanceled",
    "TokenizationFailed",
    "ChargeError",
    "IntegrationMisconfigured",
    "SubmissionInProgress",
    "SessionClosed",
    "InvalidTransition",
    # modèles
    "ChannelProbeResult",
    "ChannelState",
    "ChargeRecord",
    "Dedication",
    "DonationIntent",
    "Fund",
    "MonetaryTotal",
    "SessionStatus",
    "SubmissionAttempt",
    "TokenizeResult",
]
