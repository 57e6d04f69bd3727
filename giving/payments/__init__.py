"""
Module 'payments' (feature-first): ChargeService du backend de dons.
Réunit schémas de requête, note/métadonnées, stockage d'idempotence, client Stripe et services.
"""

from .idempotency import MemoryIdempotencyStore, RedisIdempotencyStore, StoredCharge, fingerprint
from .metadata import build_metadata, build_note
from .schemas import CreateIntentRequest, PayRequest
from .service import ChargeFailure, charge, create_intent

__all__ = [
    # idempotence
    "MemoryIdempotencyStore",
    "RedisIdempotencyStore",
    "StoredCharge",
    "fingerprint",
    # metadata
    "build_note",
    "build_metadata",
    # schémas
    "PayRequest",
    "CreateIntentRequest",
    # services
    "ChargeFailure",
    "charge",
    "create_intent",
]
