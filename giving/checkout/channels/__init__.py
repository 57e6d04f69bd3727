"""
Canaux de paiement: contrat commun, variantes et registre.
"""

from .base import ChannelController, PaymentProvider, PaymentRequest, ProviderFactory, UpdatableProvider
from .card import CardChannel
from .wallets import (
    ApplePayChannel,
    BankDebitChannel,
    CashAppPayChannel,
    DeferredPayChannel,
    GooglePayChannel,
    WalletChannel,
)
from .registry import CHANNEL_TYPES, ChannelDeclaration, ChannelRegistry

__all__ = [
    # contrat
    "ChannelController",
    "PaymentProvider",
    "UpdatableProvider",
    "PaymentRequest",
    "ProviderFactory",
    # variantes
    "CardChannel",
    "WalletChannel",
    "ApplePayChannel",
    "GooglePayChannel",
    "CashAppPayChannel",
    "DeferredPayChannel",
    "BankDebitChannel",
    # registre
    "CHANNEL_TYPES",
    "ChannelDeclaration",
    "ChannelRegistry",
]
