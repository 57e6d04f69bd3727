"""
Registre des canaux: déclaration, construction et sondage concurrent.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Iterable, List, Mapping, Optional, Type

from ..models import ChannelProbeResult, ChannelState
from .base import ChannelController, PaymentRequest, ProviderFactory
from .card import CardChannel
from .wallets import ApplePayChannel, BankDebitChannel, CashAppPayChannel, DeferredPayChannel, GooglePayChannel

logger = logging.getLogger(__name__)

# Table des variantes: un type de canal par clé, sélectionné par déclaration
CHANNEL_TYPES: Dict[str, Type[ChannelController]] = {
    CardChannel.kind: CardChannel,
    ApplePayChannel.kind: ApplePayChannel,
    GooglePayChannel.kind: GooglePayChannel,
    CashAppPayChannel.kind: CashAppPayChannel,
    DeferredPayChannel.kind: DeferredPayChannel,
    BankDebitChannel.kind: BankDebitChannel,
}

DEFAULT_PROBE_TIMEOUT_S = 10.0


@dataclass(frozen=True)
class ChannelDeclaration:
    name: str
    kind: str
    factory: ProviderFactory
    target: Optional[str] = None
    probe_timeout: Optional[float] = DEFAULT_PROBE_TIMEOUT_S
    tokenize_timeout: Optional[float] = None
    options: Mapping[str, Any] = field(default_factory=dict)


class ChannelRegistry:
    """
    Déclare l'ensemble des canaux possibles.
    - build(): contrôleurs neufs à chaque (ré)initialisation de session
    - probe_all(): sondes + attache en parallèle, résultats dans l'ordre d'arrivée
    """

    def __init__(self, declarations: Iterable[ChannelDeclaration], types: Optional[Mapping[str, Type[ChannelController]]] = None):
        self._types = dict(types or CHANNEL_TYPES)
        self._declarations: List[ChannelDeclaration] = []
        seen = set()
        for decl in declarations:
            if decl.kind not in self._types:
                raise ValueError(f"Unknown channel kind: {decl.kind}")
            if decl.name in seen:
                raise ValueError(f"Duplicate channel name: {decl.name}")
            seen.add(decl.name)
            self._declarations.append(decl)

    @property
    def declarations(self) -> List[ChannelDeclaration]:
        return list(self._declarations)

    def build(self) -> List[ChannelController]:
        channels = []
        for decl in self._declarations:
            cls = self._types[decl.kind]
            channels.append(cls(
                decl.name,
                decl.factory,
                decl.target,
                probe_timeout=decl.probe_timeout,
                tokenize_timeout=decl.tokenize_timeout,
                **dict(decl.options),
            ))
        return channels

    @staticmethod
    async def _probe_and_attach(channel: ChannelController, request: PaymentRequest) -> ChannelProbeResult:
        result = await channel.probe(request)
        if channel.state == ChannelState.ELIGIBLE_UNATTACHED:
            result = await channel.attach()
        return result

    async def probe_all(self, channels: List[ChannelController], request: PaymentRequest) -> AsyncIterator[ChannelProbeResult]:
        """
        Sonde chaque canal de façon concurrente et indépendante, sans ordre garanti.
        - Les échecs sont convertis en Ineligible par chaque contrôleur (jamais propagés aux voisins).
        - Les tâches restantes sont annulées si le consommateur abandonne le flux.
        """
        tasks = [asyncio.ensure_future(self._probe_and_attach(ch, request)) for ch in channels]
        try:
            for next_done in asyncio.as_completed(tasks):
                result = await next_done
                logger.debug("checkout.registry probed channel=%s state=%s", result.channel, result.state.value)
                yield result
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

    @staticmethod
    def wallet_divider_visible(channels: Iterable[ChannelController]) -> bool:
        """Le séparateur wallets/carte n'est affiché que si au moins un canal non obligatoire est visible."""
        return any(ch.visible and not ch.mandatory for ch in channels)
