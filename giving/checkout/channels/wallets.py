"""
Canaux wallet / banque / paiement différé.

Chaque variante ne change que ce qui diffère réellement entre fournisseurs:
portage du montant, règle d'éligibilité et messages affichés.
"""
import logging
from typing import Optional

from ..errors import ChannelIneligible
from ..models import ChannelProbeResult, ChannelState
from .base import ChannelController, PaymentProvider, PaymentRequest, _with_timeout

logger = logging.getLogger(__name__)


class WalletChannel(ChannelController):
    """Apple Pay / Google Pay: la feuille native affiche le total, qui doit rester à jour."""
    kind = "wallet"
    label = "Wallet"
    amount_bearing = True
    failure_message = "Wallet payment failed. Please try again or use a card."


class ApplePayChannel(WalletChannel):
    kind = "apple-pay"
    label = "Apple Pay"


class GooglePayChannel(WalletChannel):
    kind = "google-pay"
    label = "Google Pay"


class CashAppPayChannel(ChannelController):
    """Cash App Pay: la sonde correspond à « is authorized »; le jeton arrive souvent par callback."""
    kind = "cash-app-pay"
    label = "Cash App Pay"
    amount_bearing = True
    failure_message = "Cash App Pay could not complete the payment. Please try again."


class DeferredPayChannel(ChannelController):
    """
    Paiement différé (Afterpay/Clearpay): éligible uniquement dans une plage de montants.
    - Hors plage, le canal est masqué; il réapparaît (ré-attaché) quand un nouveau total revient dans la plage.
    """
    kind = "afterpay"
    label = "Afterpay"
    amount_bearing = True
    min_total_cents = 100
    max_total_cents = 200000
    failure_message = "Afterpay could not approve this payment."

    def __init__(self, *args, min_total_cents: Optional[int] = None, max_total_cents: Optional[int] = None, **kwargs):
        super().__init__(*args, **kwargs)
        if min_total_cents is not None:
            self.min_total_cents = min_total_cents
        if max_total_cents is not None:
            self.max_total_cents = max_total_cents
        self._hidden_by_range = False
        self._reattach = False

    def _in_range(self, request: PaymentRequest) -> bool:
        return self.min_total_cents <= request.total.total_cents <= self.max_total_cents

    async def _is_eligible(self, provider: PaymentProvider, request: PaymentRequest) -> bool:
        if not self._in_range(request):
            return False
        return await super()._is_eligible(provider, request)

    def follows_total(self, request: PaymentRequest) -> bool:
        # Masqué pour cause de montant: un nouveau total peut le rendre de nouveau éligible
        return self._hidden_by_range or super().follows_total(request)

    async def probe(self, request: PaymentRequest) -> ChannelProbeResult:
        result = await super().probe(request)
        if self.state == ChannelState.INELIGIBLE and not self._in_range(request):
            # Le registre attache tout canal éligible après la sonde
            self._hidden_by_range, self._reattach = True, True
        return result

    async def update_total(self, request: PaymentRequest) -> bool:
        if self._hidden_by_range:
            self.request = request
            if not self._in_range(request):
                return False
            return await self._restore(request)
        was_attached = self.state == ChannelState.ATTACHED
        updated = await super().update_total(request)
        if not updated and self.state == ChannelState.INELIGIBLE and not self._in_range(request):
            self._hidden_by_range, self._reattach = True, was_attached
        return updated

    async def _restore(self, request: PaymentRequest) -> bool:
        """Retour dans la plage: nouveau fournisseur, sondé puis ré-attaché s'il l'était."""
        self._hidden_by_range = False
        provider: Optional[PaymentProvider] = None
        try:
            provider = await self._create_provider(request)
            if not await self._is_eligible(provider, request):
                raise ChannelIneligible(self.name, "provider not ready")
            if self._reattach:
                await _with_timeout(provider.attach(self.target), self.probe_timeout)
        except Exception as e:
            await self._discard(provider)
            self._mark_ineligible(e)
            return False
        self.provider = provider
        self.error = None
        self._set_state(ChannelState.ATTACHED if self._reattach else ChannelState.ELIGIBLE_UNATTACHED)
        logger.info("checkout.channel back in range channel=%s total=%s", self.name, request.total.total_cents)
        return True


class BankDebitChannel(ChannelController):
    """Prélèvement bancaire (ACH): autorisation par redirection, tokenisation plus longue."""
    kind = "ach"
    label = "Bank account"
    failure_message = "Bank authorization failed. Please try again."
