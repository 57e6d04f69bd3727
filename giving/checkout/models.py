"""
Modèles de données du checkout: intention de don, total monétaire, tentative de soumission, états.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional


class Fund(str, Enum):
    TITHE = "tithe"
    OFFERING = "offering"
    MISSIONS = "missions"
    BUILDING_FUND = "building-fund"

    @property
    def label(self) -> str:
        return self.value.replace("-", " ").title()


class ChannelState(str, Enum):
    UNPROBED = "unprobed"
    INELIGIBLE = "ineligible"
    ELIGIBLE_UNATTACHED = "eligible_unattached"
    ATTACHED = "attached"
    AWAITING_USER_ACTION = "awaiting_user_action"
    TOKENIZING = "tokenizing"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# Un canal dans l'un de ces états porte une tentative en cours
IN_FLIGHT_STATES = frozenset({ChannelState.AWAITING_USER_ACTION, ChannelState.TOKENIZING, ChannelState.SUBMITTING})


class SessionStatus(str, Enum):
    INITIALIZING = "initializing"
    READY = "ready"
    SUBMITTING = "submitting"
    CLOSED = "closed"


@dataclass(frozen=True)
class Dedication:
    name: str
    note: str = ""

    def text(self) -> str:
        return f"{self.name}: {self.note}" if self.note else self.name


@dataclass(frozen=True)
class DonationIntent:
    """
    Instantané immuable du formulaire de don.
    - base_amount: montant validé (>= 1.00), en unités monétaires
    - les modifications passent par dataclasses.replace (nouvel instantané)
    """
    base_amount: Decimal
    fund: Fund = Fund.TITHE
    cover_fees: bool = False
    donor_name: Optional[str] = None
    donor_email: Optional[str] = None
    dedication: Optional[Dedication] = None

    def metadata(self) -> Dict[str, Any]:
        """Métadonnées indicatives envoyées avec la charge (n'affectent ni le montant ni la déduplication)."""
        return {
            "fund": self.fund.value,
            "name": self.donor_name or None,
            "email": self.donor_email or None,
            "dedication": {"name": self.dedication.name, "note": self.dedication.note} if self.dedication else None,
        }


@dataclass(frozen=True)
class MonetaryTotal:
    base_cents: int
    fee_cents: int = 0

    @property
    def total_cents(self) -> int:
        return self.base_cents + self.fee_cents


@dataclass(frozen=True)
class TokenizeResult:
    """Réponse du SDK fournisseur: status OK | CANCELED | autre (échec)."""
    status: str
    token: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "OK" and bool(self.token)

    @property
    def canceled(self) -> bool:
        return self.status == "CANCELED"


@dataclass(frozen=True)
class ChannelProbeResult:
    channel: str
    state: ChannelState
    error: Optional[str] = None

    @property
    def attached(self) -> bool:
        return self.state == ChannelState.ATTACHED


@dataclass(frozen=True)
class SubmissionAttempt:
    idempotency_key: str
    channel: str
    total_cents: int
    token: str


@dataclass(frozen=True)
class ChargeRecord:
    id: str
    status: str
    amount_cents: int
    currency: str = "usd"
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_response(cls, charge: Dict[str, Any]) -> "ChargeRecord":
        return cls(
            id=str(charge.get("id") or ""),
            status=str(charge.get("status") or ""),
            amount_cents=int(charge.get("amount") or 0),
            currency=str(charge.get("currency") or "usd"),
            raw=dict(charge),
        )
