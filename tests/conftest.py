import asyncio
import os
import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, List, Optional

# Identifiants factices avant tout import de l'application (le lifespan refuse de démarrer sans)
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_PUBLIC_KEY"] = "pk_test_dummy"
os.environ["STRIPE_ENVIRONMENT"] = "sandbox"
os.environ["DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS"] = "1"
os.environ.pop("IDEMPOTENCY_REDIS_URL", None)
os.environ.pop("LOCAL_RATE_LIMIT_FALLBACK", None)

import pytest
from fastapi.testclient import TestClient

from giving.app import app as fastapi_app
from giving.checkout.channels import ChannelDeclaration, ChannelRegistry, UpdatableProvider
from giving.checkout.errors import ChargeError
from giving.checkout.models import ChargeRecord, TokenizeResult
from giving.payments import stripe_client


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)
        elif "tests/functional/" in nodeid:
            item.add_marker(pytest.mark.functional)


@pytest.fixture(scope="session")
def app():
    return fastapi_app


@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


# --- Stripe factice ---

class FakeStripe:
    """Remplace giving.payments.stripe_client.create_payment / create_payment_intent."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.intents: List[Dict[str, Any]] = []
        self.errors: List[Exception] = []

    def create_payment(self, *, token, amount, currency, idempotency_key, note, metadata, receipt_email=None):
        self.calls.append({
            "token": token,
            "amount": amount,
            "currency": currency,
            "idempotency_key": idempotency_key,
            "note": note,
            "metadata": metadata,
            "receipt_email": receipt_email,
        })
        if self.errors:
            raise self.errors.pop(0)
        return {
            "id": f"pi_{len(self.calls)}",
            "status": "succeeded",
            "amount": amount,
            "currency": currency,
            "created": 1700000000,
        }

    def create_payment_intent(self, *, amount, currency, note, metadata):
        self.intents.append({"amount": amount, "note": note, "metadata": metadata})
        if self.errors:
            raise self.errors.pop(0)
        return f"pi_secret_{amount}_{len(self.intents)}"


@pytest.fixture(autouse=True)
def fake_stripe(monkeypatch) -> FakeStripe:
    # Aucun appel réseau vers Stripe pendant les tests
    fake = FakeStripe()
    monkeypatch.setattr(stripe_client, "create_payment", fake.create_payment, raising=True)
    monkeypatch.setattr(stripe_client, "create_payment_intent", fake.create_payment_intent, raising=True)
    return fake


# --- Fournisseurs de tokenisation factices ---

class FakeProvider(UpdatableProvider):
    def __init__(self, request, spec: "ProviderSpec"):
        self.request = request
        self.spec = spec
        self.supports_total_update = spec.supports_update
        self.attached_to: Optional[str] = None
        self.destroyed = False
        self.totals = [request.total.total_cents]

    async def probe(self) -> bool:
        if self.spec.probe_delay:
            await asyncio.sleep(self.spec.probe_delay)
        if self.spec.probe_error is not None:
            raise self.spec.probe_error
        return self.spec.eligible

    async def attach(self, target: str) -> None:
        if self.spec.attach_error is not None:
            raise self.spec.attach_error
        self.attached_to = target

    async def tokenize(self) -> TokenizeResult:
        if self.spec.gate is not None:
            await self.spec.gate.wait()
        if self.spec.tokenize_error is not None:
            raise self.spec.tokenize_error
        if self.spec.results:
            return self.spec.results.pop(0)
        return TokenizeResult(status="OK", token=self.spec.token)

    async def update_total(self, request) -> None:
        if self.spec.update_error is not None:
            raise self.spec.update_error
        self.request = request
        self.totals.append(request.total.total_cents)

    async def destroy(self) -> None:
        self.destroyed = True


@dataclass
class ProviderSpec:
    eligible: bool = True
    offered: bool = True
    probe_error: Optional[Exception] = None
    probe_delay: float = 0
    attach_error: Optional[Exception] = None
    tokenize_error: Optional[Exception] = None
    update_error: Optional[Exception] = None
    results: List[TokenizeResult] = field(default_factory=list)
    token: str = "tok_ok"
    supports_update: bool = False
    gate: Optional[asyncio.Event] = None
    created: List[FakeProvider] = field(default_factory=list)

    @property
    def last(self) -> FakeProvider:
        return self.created[-1]

    async def factory(self, request):
        if not self.offered:
            return None
        provider = FakeProvider(request, self)
        self.created.append(provider)
        return provider


@pytest.fixture
def provider_spec():
    return ProviderSpec


@pytest.fixture
def make_registry():
    """make_registry(card=ProviderSpec(), apple=ProviderSpec(), ...) -> ChannelRegistry"""
    kinds = {
        "card": "card",
        "apple": "apple-pay",
        "google": "google-pay",
        "cashapp": "cash-app-pay",
        "afterpay": "afterpay",
        "ach": "ach",
    }

    def _make(**specs: ProviderSpec) -> ChannelRegistry:
        return ChannelRegistry([
            ChannelDeclaration(name=name, kind=kinds[name], factory=spec.factory, probe_timeout=1.0)
            for name, spec in specs.items()
        ])

    return _make


# --- Client de soumission factice (tests de session) ---

class FakeSubmissionClient:
    def __init__(self):
        self.submitted = []
        self.sent_intents = []
        self.errors: List[Exception] = []
        self.gate: Optional[asyncio.Event] = None
        self.intent_totals: List[int] = []
        self.intent_error: Optional[Exception] = None

    @staticmethod
    def new_idempotency_key() -> str:
        return secrets.token_hex(16)

    async def submit(self, attempt, intent) -> ChargeRecord:
        self.submitted.append(attempt)
        self.sent_intents.append(intent)
        if self.gate is not None:
            await self.gate.wait()
        if self.errors:
            raise self.errors.pop(0)
        return ChargeRecord(id=f"pi_{len(self.submitted)}", status="succeeded", amount_cents=attempt.total_cents)

    async def create_payment_intent(self, total_cents, intent) -> str:
        if self.intent_error is not None:
            raise self.intent_error
        self.intent_totals.append(total_cents)
        return f"secret_{total_cents}_{len(self.intent_totals)}"


@pytest.fixture
def submission_client() -> FakeSubmissionClient:
    return FakeSubmissionClient()


@pytest.fixture
def declined():
    return lambda message="card_declined", status=402: ChargeError(message, status_code=status)
