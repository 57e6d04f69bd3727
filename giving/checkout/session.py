"""
Session de checkout: coordonne total courant, canaux et soumission pour une feuille de paiement ouverte.

Modèle de concurrence (boucle d'événements unique, coopératif):
- Un verrou de session sérialise mises à jour de total et tentatives de paiement;
  une demande arrivée pendant l'autre est mise en file, jamais exécutée en parallèle.
- Une seule tentative à la fois: un second paiement pendant une tentative est refusé.
- La fermeture est coopérative: un drapeau « closed » est consulté par toute continuation
  avant de modifier l'état; les appels réseau en cours ne sont pas interrompus.
"""
import asyncio
import logging
import uuid
from typing import Callable, Dict, List, Optional

from .amount import compute_total
from .channels.base import ChannelController, PaymentRequest
from .channels.registry import ChannelRegistry
from .client import SubmissionClient
from .errors import (
    ChannelIneligible,
    ChargeError,
    CheckoutError,
    IntegrationMisconfigured,
    SessionClosed,
    SubmissionInProgress,
    TokenizationCanceled,
    TokenizationFailed,
)
from .models import (
    ChannelProbeResult,
    ChannelState,
    ChargeRecord,
    DonationIntent,
    MonetaryTotal,
    SessionStatus,
    SubmissionAttempt,
)

logger = logging.getLogger(__name__)

CONFIRMATION_DELAY_S = 1.0


class CheckoutSession:
    def __init__(
        self,
        registry: ChannelRegistry,
        client: SubmissionClient,
        *,
        requires_payment_context: bool = False,
        confirmation_delay: float = CONFIRMATION_DELAY_S,
        on_channel: Optional[Callable[[ChannelProbeResult], None]] = None,
    ):
        self.session_id = uuid.uuid4().hex
        self.registry = registry
        self.client = client
        self.requires_payment_context = requires_payment_context
        self.confirmation_delay = confirmation_delay
        self.status: Optional[SessionStatus] = None
        self.intent: Optional[DonationIntent] = None
        self.total: Optional[MonetaryTotal] = None
        self.channels: Dict[str, ChannelController] = {}
        self.status_message = ""
        self.blocking_error: Optional[str] = None
        self.client_secret: Optional[str] = None
        self.attempt: Optional[SubmissionAttempt] = None
        self._on_channel = on_channel
        self._context_total: Optional[MonetaryTotal] = None
        self._lock = asyncio.Lock()
        self._busy = False
        self._closed = False
        self._completed = False
        self._closing_task: Optional[asyncio.Task] = None

    # --- état exposé à l'interface ---

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def ready(self) -> bool:
        return self.status == SessionStatus.READY and not self.blocking_error

    @property
    def visible_channels(self) -> List[ChannelController]:
        return [ch for ch in self.channels.values() if ch.visible]

    @property
    def wallet_divider_visible(self) -> bool:
        return ChannelRegistry.wallet_divider_visible(self.channels.values())

    def channel(self, name: str) -> ChannelController:
        try:
            return self.channels[name]
        except KeyError:
            raise ChannelIneligible(name, "unknown channel") from None

    def _request(self, total: MonetaryTotal) -> PaymentRequest:
        return PaymentRequest(total=total, client_secret=self.client_secret)

    def _check_mandatory(self) -> None:
        mandatory = [ch for ch in self.channels.values() if ch.mandatory]
        if mandatory and not any(ch.state == ChannelState.ATTACHED for ch in mandatory):
            self._block("Failed to initialize payment.")

    def _block(self, message: str) -> None:
        """Erreur bloquante: la feuille reste ouverte, tous les canaux sont désactivés."""
        self.blocking_error = message
        self.status_message = message
        logger.error("checkout.blocked session=%s error=%s", self.session_id, message)
        raise IntegrationMisconfigured(message)

    # --- opérations ---

    async def open(self, intent: DonationIntent) -> MonetaryTotal:
        """
        Ouvre la feuille: instantané de l'intention, total initial, contexte serveur éventuel,
        puis sondage de tous les canaux. Échoue seulement si le canal par défaut ne s'initialise pas.
        """
        if self.status is not None:
            raise CheckoutError("already_opened", "Checkout session already opened.")
        self.intent = intent
        self.total = compute_total(intent.base_amount, intent.cover_fees)
        self.status = SessionStatus.INITIALIZING
        self.status_message = "Loading secure fields..."
        self.channels = {ch.name: ch for ch in self.registry.build()}
        logger.info("checkout.open session=%s total=%s channels=%s", self.session_id, self.total.total_cents, list(self.channels))

        async with self._lock:
            # Total figé pour ce contexte: une édition pendant l'ouverture sera synchronisée ensuite
            opened_total = self.total
            if self.requires_payment_context:
                try:
                    self.client_secret = await self.client.create_payment_intent(opened_total.total_cents, intent)
                except ChargeError as e:
                    self._block(e.message)
            request = self._request(opened_total)
            async for result in self.registry.probe_all(list(self.channels.values()), request):
                if not self._closed and self._on_channel:
                    self._on_channel(result)
            self._context_total = request.total
            if self._closed:
                # Fermée pendant l'initialisation: les attaches tardives sont libérées
                await self._release_channels()
                return self.total
            self._check_mandatory()
            self.status = SessionStatus.READY
            self.status_message = ""
            logger.info(
                "checkout.ready session=%s attached=%s",
                self.session_id,
                [ch.name for ch in self.channels.values() if ch.state == ChannelState.ATTACHED],
            )
        return self.total

    async def update_intent(self, intent: DonationIntent) -> MonetaryTotal:
        """Nouvel instantané du formulaire (montant, frais, fonds, donateur) pendant que la feuille est ouverte."""
        self.intent = intent
        return await self.update_total(compute_total(intent.base_amount, intent.cover_fees))

    async def update_total(self, new_total: MonetaryTotal) -> MonetaryTotal:
        """
        Met à jour le total affiché immédiatement (optimiste), puis, sous le verrou,
        les contextes dépendants du montant. Pendant une tentative, l'application est différée
        jusqu'à sa résolution; la tentative garde le montant capturé à la tokenisation.
        """
        if self.status is None:
            raise CheckoutError("not_opened", "Checkout session is not open.")
        if self._closed or self._completed:
            return self.total
        if self.total is not None and new_total.total_cents == self.total.total_cents:
            self.total = new_total
            return self.total
        self.total = new_total
        logger.info("checkout.total session=%s total=%s", self.session_id, new_total.total_cents)
        async with self._lock:
            try:
                await self._sync_context()
            except ChargeError as e:
                # Contexte non renouvelé: la prochaine tentative refera la synchronisation
                logger.warning("checkout.total context refresh failed session=%s error=%s", self.session_id, e.message)
                self.status_message = e.message
        return self.total

    async def _sync_context(self) -> None:
        # Appelée sous verrou: applique le dernier total connu (les éditions en file sont fusionnées)
        if self._closed or self._completed or self.total is None:
            return
        target = self.total
        if self._context_total is not None and target.total_cents == self._context_total.total_cents:
            return
        if self.requires_payment_context:
            # Le secret précédent est lié à l'ancien montant: invalidé avant d'en demander un nouveau
            self.client_secret = None
            self.client_secret = await self.client.create_payment_intent(target.total_cents, self.intent)
        if self._closed:
            return
        request = self._request(target)
        refreshed = [ch for ch in self.channels.values() if ch.follows_total(request)]
        await asyncio.gather(*(ch.update_total(request) for ch in refreshed))
        self._context_total = target
        self._check_mandatory()

    def _enter_attempt(self, channel_name: str) -> ChannelController:
        if self._closed:
            raise SessionClosed()
        if self.blocking_error:
            raise IntegrationMisconfigured(self.blocking_error)
        if self._busy or self._completed:
            raise SubmissionInProgress()
        channel = self.channel(channel_name)
        self._busy = True
        return channel

    def _start(self, channel: ChannelController) -> None:
        if channel.state != ChannelState.ATTACHED:
            raise ChannelIneligible(channel.name, f"not available ({channel.state.value})")
        channel.trigger()
        self.status = SessionStatus.SUBMITTING

    async def pay(self, channel_name: str) -> Optional[ChargeRecord]:
        """
        Déclenché par l'utilisateur: tokenisation puis soumission, sous le verrou de session.
        - Retourne le ChargeRecord en cas de succès, None pour un échec récupérable (message affiché).
        """
        channel = self._enter_attempt(channel_name)
        try:
            async with self._lock:
                if self._closed:
                    return None
                try:
                    await self._sync_context()
                except ChargeError as e:
                    self.status_message = e.message
                    return None
                self._start(channel)
                # Instantané au moment de la tokenisation: c'est ce montant qui sera soumis
                total, intent = self.total, self.intent
                self.status_message = "Tokenizing..."
                try:
                    token = await channel.tokenize()
                except (TokenizationCanceled, TokenizationFailed) as e:
                    self._settle(e.message)
                    return None
                except Exception:
                    self._settle(channel.failure_message)
                    raise
                if self._closed:
                    logger.info("checkout.pay session closed before submission session=%s channel=%s", self.session_id, channel.name)
                    return None
                return await self._submit_attempt(channel, token, total, intent)
        finally:
            self._busy = False

    async def submit(self, channel_name: str, token: str) -> Optional[ChargeRecord]:
        """Soumet un jeton livré par le fournisseur lui-même (callback wallet), avec la même exclusion."""
        channel = self._enter_attempt(channel_name)
        try:
            async with self._lock:
                if self._closed:
                    return None
                try:
                    await self._sync_context()
                except ChargeError as e:
                    self.status_message = e.message
                    return None
                self._start(channel)
                total, intent = self.total, self.intent
                try:
                    token = channel.accept_token(token)
                except TokenizationFailed as e:
                    self._settle(e.message)
                    return None
                return await self._submit_attempt(channel, token, total, intent)
        finally:
            self._busy = False

    def _settle(self, message: str) -> None:
        if not self._closed:
            self.status = SessionStatus.READY
            self.status_message = message

    async def _submit_attempt(
        self,
        channel: ChannelController,
        token: str,
        total: MonetaryTotal,
        intent: DonationIntent,
    ) -> Optional[ChargeRecord]:
        attempt = SubmissionAttempt(
            idempotency_key=self.client.new_idempotency_key(),
            channel=channel.name,
            total_cents=total.total_cents,
            token=token,
        )
        self.attempt = attempt
        self.status_message = "Processing..."
        logger.info("checkout.submit session=%s channel=%s amount=%s", self.session_id, channel.name, attempt.total_cents)
        try:
            record = await self.client.submit(attempt, intent)
        except ChargeError as e:
            if self._closed:
                logger.info("checkout.submit late failure ignored session=%s error=%s", self.session_id, e.message)
                return None
            channel.reset(e.message)
            self._settle(e.message)
            return None
        except Exception:
            if not self._closed:
                channel.reset(channel.failure_message)
                self._settle(channel.failure_message)
            raise
        finally:
            self.attempt = None

        if self._closed:
            logger.info("checkout.submit late response ignored session=%s charge=%s", self.session_id, record.id)
            return record
        channel.succeed(record)
        self._completed = True
        self.status_message = "Thank you! Payment approved."
        logger.info("checkout.succeeded session=%s channel=%s charge=%s", self.session_id, channel.name, record.id)
        self._closing_task = asyncio.ensure_future(self._close_after_delay())
        return record

    async def _close_after_delay(self) -> None:
        await asyncio.sleep(self.confirmation_delay)
        await self.close()
        self.status_message = ""

    async def wait_closed(self) -> None:
        """Attend la fermeture programmée après un paiement réussi."""
        if self._closing_task is not None:
            await self._closing_task

    async def _release_channels(self) -> None:
        await asyncio.gather(*(ch.release() for ch in self.channels.values()))

    async def close(self) -> None:
        """
        Ferme la feuille (dismiss, Échap, ou après succès). Idempotent.
        - Libère les ressources natives de tous les canaux.
        - Oublie secret de contexte et tentative; une réponse tardive sera ignorée.
        """
        if self._closed:
            return
        self._closed = True
        self.status = SessionStatus.CLOSED
        self.client_secret = None
        self.attempt = None
        await self._release_channels()
        logger.info("checkout.close session=%s", self.session_id)
