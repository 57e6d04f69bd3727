"""
Contrat uniforme des canaux de paiement.

- PaymentProvider: frontière du SDK fournisseur (probe / attach / tokenize), opaque pour l'orchestration.
- ChannelController: machine à états d'un canal, identique pour toutes les variantes.

    Unprobed --probe--> Eligible-Unattached | Ineligible
    Eligible-Unattached --attach--> Attached | Ineligible
    Attached --trigger--> AwaitingUserAction --tokenize--> Tokenizing
    Tokenizing --succès--> Submitting | --annulation/échec--> Attached
    Submitting --succès--> Succeeded | --échec--> Attached
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from ..errors import ChannelIneligible, InvalidTransition, TokenizationCanceled, TokenizationFailed
from ..models import ChannelProbeResult, ChannelState, ChargeRecord, MonetaryTotal, TokenizeResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentRequest:
    """Ce qu'un fournisseur reçoit à la création: total courant et, si exigé, le secret de contexte."""
    total: MonetaryTotal
    client_secret: Optional[str] = None
    label: str = "Total"
    country_code: str = "US"
    currency_code: str = "USD"

    def to_sdk(self) -> Dict[str, Any]:
        cents = self.total.total_cents
        return {
            "countryCode": self.country_code,
            "currencyCode": self.currency_code,
            "total": {"amount": f"{cents // 100}.{cents % 100:02d}", "label": self.label},
        }


class PaymentProvider(ABC):
    """Adaptateur d'un SDK de tokenisation. Seules ces méthodes sont utilisées par l'orchestration."""

    # Mise à jour en place: voir UpdatableProvider
    supports_total_update: bool = False

    @abstractmethod
    async def probe(self) -> bool:
        ...

    @abstractmethod
    async def attach(self, target: str) -> None:
        ...

    @abstractmethod
    async def tokenize(self) -> TokenizeResult:
        ...

    async def destroy(self) -> None:
        return None


class UpdatableProvider(PaymentProvider):
    """
    Fournisseur qui applique un nouveau total sans être recréé (feuille wallet déjà affichée).
    - Sans ce contrat, le contrôleur recrée le fournisseur à chaque changement de total.
    - supports_total_update peut être remis à False par instance (SDK trop ancien).
    """

    supports_total_update = True

    @abstractmethod
    async def update_total(self, request: PaymentRequest) -> None:
        ...


# Une factory retourne None quand le SDK ne propose pas ce moyen de paiement
ProviderFactory = Callable[[PaymentRequest], Awaitable[Optional[PaymentProvider]]]


async def _with_timeout(aw: Awaitable[Any], timeout: Optional[float]) -> Any:
    if timeout is None:
        return await aw
    return await asyncio.wait_for(aw, timeout)


class ChannelController:
    kind = "generic"
    label = "Payment"
    # Le canal par défaut (carte) doit s'initialiser, sinon tout le checkout est bloqué
    mandatory = False
    # Le fournisseur affiche/porte le montant: il doit être mis à jour quand le total change
    amount_bearing = False
    cancel_message = "Payment canceled."
    failure_message = "Payment failed. Please try again."

    def __init__(
        self,
        name: str,
        factory: ProviderFactory,
        target: Optional[str] = None,
        *,
        probe_timeout: Optional[float] = None,
        tokenize_timeout: Optional[float] = None,
    ):
        self.name = name
        self.target = target or f"#{name}"
        self.probe_timeout = probe_timeout
        self.tokenize_timeout = tokenize_timeout
        self.state = ChannelState.UNPROBED
        self.status_message = ""
        self.error: Optional[str] = None
        self.provider: Optional[PaymentProvider] = None
        self.request: Optional[PaymentRequest] = None
        self.record: Optional[ChargeRecord] = None
        self._factory = factory

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, state={self.state.value!r})"

    @property
    def visible(self) -> bool:
        return self.state in (
            ChannelState.ATTACHED,
            ChannelState.AWAITING_USER_ACTION,
            ChannelState.TOKENIZING,
            ChannelState.SUBMITTING,
            ChannelState.SUCCEEDED,
        )

    def result(self) -> ChannelProbeResult:
        return ChannelProbeResult(channel=self.name, state=self.state, error=self.error)

    def needs_refresh(self, request: PaymentRequest) -> bool:
        """Vrai si ce canal porte un contexte dépendant du montant (total affiché ou secret serveur)."""
        return self.amount_bearing or request.client_secret is not None

    def follows_total(self, request: PaymentRequest) -> bool:
        """Vrai si un changement de total doit être appliqué à ce canal (affordance active et contexte lié au montant)."""
        return self.needs_refresh(request) and self.state in (ChannelState.ATTACHED, ChannelState.ELIGIBLE_UNATTACHED)

    # --- transitions internes ---

    def _require(self, action: str, *states: ChannelState) -> None:
        if self.state not in states:
            raise InvalidTransition(self.name, self.state.value, action)

    def _set_state(self, state: ChannelState) -> None:
        logger.debug("checkout.channel %s %s -> %s", self.name, self.state.value, state.value)
        self.state = state

    def _mark_ineligible(self, exc: Exception) -> ChannelProbeResult:
        self.error = str(exc) or type(exc).__name__
        logger.info("checkout.channel ineligible channel=%s reason=%s", self.name, self.error)
        self._set_state(ChannelState.INELIGIBLE)
        return self.result()

    async def _discard(self, provider: Optional[PaymentProvider]) -> None:
        if provider is None:
            return
        try:
            await provider.destroy()
        except Exception:
            logger.exception("checkout.channel destroy failed channel=%s", self.name)

    async def _create_provider(self, request: PaymentRequest) -> PaymentProvider:
        provider = await _with_timeout(self._factory(request), self.probe_timeout)
        if provider is None:
            raise ChannelIneligible(self.name, "payment method not offered by provider")
        return provider

    async def _is_eligible(self, provider: PaymentProvider, request: PaymentRequest) -> bool:
        return bool(await _with_timeout(provider.probe(), self.probe_timeout))

    # --- cycle de vie ---

    async def probe(self, request: PaymentRequest) -> ChannelProbeResult:
        """
        Sonde d'éligibilité, best-effort.
        - Toute exception (SDK absent, appareil non supporté, timeout) devient Ineligible.
        """
        self._require("probe", ChannelState.UNPROBED)
        self.request = request
        provider: Optional[PaymentProvider] = None
        try:
            provider = await self._create_provider(request)
            if not await self._is_eligible(provider, request):
                raise ChannelIneligible(self.name, "provider not ready")
        except Exception as e:
            await self._discard(provider)
            return self._mark_ineligible(e)
        self.provider = provider
        self._set_state(ChannelState.ELIGIBLE_UNATTACHED)
        return self.result()

    async def attach(self) -> ChannelProbeResult:
        """Affiche l'affordance native du fournisseur; un échec masque le canal (Ineligible)."""
        self._require("attach", ChannelState.ELIGIBLE_UNATTACHED)
        try:
            await _with_timeout(self.provider.attach(self.target), self.probe_timeout)
        except Exception as e:
            await self._discard(self.provider)
            self.provider = None
            return self._mark_ineligible(e)
        self._set_state(ChannelState.ATTACHED)
        return self.result()

    def trigger(self) -> None:
        self._require("trigger", ChannelState.ATTACHED)
        self.status_message = ""
        self.error = None
        self._set_state(ChannelState.AWAITING_USER_ACTION)

    async def tokenize(self) -> str:
        """
        Demande un jeton au fournisseur (feuille native, redirection ou résolution immédiate).
        - Annulation utilisateur -> Attached + TokenizationCanceled
        - Échec fournisseur ou timeout -> Attached + TokenizationFailed
        - Toute autre exception est une erreur d'intégration: Failed, puis propagée.
        """
        self._require("tokenize", ChannelState.AWAITING_USER_ACTION)
        self._set_state(ChannelState.TOKENIZING)
        self.status_message = "Tokenizing..."
        try:
            result = await _with_timeout(self.provider.tokenize(), self.tokenize_timeout)
        except asyncio.TimeoutError:
            self._set_state(ChannelState.ATTACHED)
            self.error = "timeout"
            self.status_message = self.failure_message
            raise TokenizationFailed(self.name, self.failure_message, {"error": "timeout"})
        except Exception as e:
            self._set_state(ChannelState.FAILED)
            self.error = str(e) or type(e).__name__
            self.status_message = self.failure_message
            raise
        return self._accept(result)

    def accept_token(self, token: str) -> str:
        """Jeton livré par le fournisseur hors de tokenize() (ex: callback d'un wallet)."""
        self._require("accept_token", ChannelState.AWAITING_USER_ACTION)
        self._set_state(ChannelState.TOKENIZING)
        return self._accept(TokenizeResult(status="OK" if token else "ERROR", token=token or None, error=None if token else "empty token"))

    def _accept(self, result: TokenizeResult) -> str:
        if result.ok:
            self._set_state(ChannelState.SUBMITTING)
            self.status_message = "Processing..."
            return result.token
        self._set_state(ChannelState.ATTACHED)
        if result.canceled:
            self.status_message = self.cancel_message
            raise TokenizationCanceled(self.name, self.cancel_message)
        self.error = result.error or result.status
        self.status_message = self.failure_message
        raise TokenizationFailed(self.name, self.failure_message, {"error": self.error})

    def succeed(self, record: ChargeRecord) -> None:
        self._require("succeed", ChannelState.SUBMITTING)
        self.record = record
        self.status_message = "Thank you! Payment approved."
        self._set_state(ChannelState.SUCCEEDED)

    def reset(self, message: str) -> None:
        """Échec de soumission: retour à Attached, l'utilisateur peut réessayer."""
        self._require("reset", ChannelState.SUBMITTING)
        self.error = message
        self.status_message = message
        self._set_state(ChannelState.ATTACHED)

    async def update_total(self, request: PaymentRequest) -> bool:
        """
        Applique un nouveau total au fournisseur.
        - Mise à jour en place si le SDK le permet, sinon recréation du fournisseur
          (l'affordance est ré-attachée au même emplacement).
        - Exemptés: canaux en cours de tentative, réussis ou masqués (retourne False).
        - Un échec rend le canal Ineligible (masqué), sans affecter les autres canaux.
        """
        if self.state not in (ChannelState.ATTACHED, ChannelState.ELIGIBLE_UNATTACHED):
            return False
        self.request = request
        old = self.provider
        if isinstance(old, UpdatableProvider) and old.supports_total_update:
            try:
                await _with_timeout(old.update_total(request), self.probe_timeout)
                if await self._is_eligible(old, request):
                    return True
                raise ChannelIneligible(self.name, "not eligible for the new total")
            except ChannelIneligible as e:
                await self._discard(old)
                self.provider = None
                self._mark_ineligible(e)
                return False
            except Exception:
                logger.warning("checkout.channel in-place update failed, recreating channel=%s", self.name)

        was_attached = self.state == ChannelState.ATTACHED
        await self._discard(old)
        self.provider = None
        provider: Optional[PaymentProvider] = None
        try:
            provider = await self._create_provider(request)
            if not await self._is_eligible(provider, request):
                raise ChannelIneligible(self.name, "not eligible for the new total")
            if was_attached:
                await _with_timeout(provider.attach(self.target), self.probe_timeout)
        except Exception as e:
            await self._discard(provider)
            self._mark_ineligible(e)
            return False
        self.provider = provider
        return True

    async def release(self) -> None:
        """Libère les ressources natives du fournisseur (fermeture de la session)."""
        provider, self.provider = self.provider, None
        await self._discard(provider)
