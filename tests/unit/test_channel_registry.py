import asyncio

import pytest

from giving.checkout.channels import (
    CHANNEL_TYPES,
    ChannelDeclaration,
    ChannelRegistry,
    DeferredPayChannel,
    PaymentRequest,
)
from giving.checkout.models import ChannelState, MonetaryTotal


def _request(cents=2500):
    return PaymentRequest(total=MonetaryTotal(base_cents=cents))


async def _probe(registry):
    channels = registry.build()
    results = [r async for r in registry.probe_all(channels, _request())]
    return {ch.name: ch for ch in channels}, results


def test_variant_table_covers_all_channel_kinds():
    assert set(CHANNEL_TYPES) == {"card", "apple-pay", "google-pay", "cash-app-pay", "afterpay", "ach"}


def test_declarations_are_validated(provider_spec):
    spec = provider_spec()
    with pytest.raises(ValueError):
        ChannelRegistry([ChannelDeclaration(name="x", kind="paypal", factory=spec.factory)])
    with pytest.raises(ValueError):
        ChannelRegistry([
            ChannelDeclaration(name="card", kind="card", factory=spec.factory),
            ChannelDeclaration(name="card", kind="card", factory=spec.factory),
        ])


def test_build_returns_fresh_controllers_with_options(provider_spec):
    spec = provider_spec()
    registry = ChannelRegistry([
        ChannelDeclaration(name="afterpay", kind="afterpay", factory=spec.factory, options={"max_total_cents": 5000}),
    ])
    first, second = registry.build(), registry.build()
    assert first[0] is not second[0]
    assert isinstance(first[0], DeferredPayChannel)
    assert first[0].max_total_cents == 5000
    assert first[0].state == ChannelState.UNPROBED


@pytest.mark.asyncio
async def test_probe_all_attaches_eligible_channels(make_registry, provider_spec):
    registry = make_registry(card=provider_spec(), apple=provider_spec(), google=provider_spec(eligible=False))

    channels, results = await _probe(registry)

    assert {r.channel for r in results} == {"card", "apple", "google"}
    assert channels["card"].state == ChannelState.ATTACHED
    assert channels["apple"].state == ChannelState.ATTACHED
    assert channels["google"].state == ChannelState.INELIGIBLE
    assert ChannelRegistry.wallet_divider_visible(channels.values()) is True


@pytest.mark.asyncio
async def test_failing_probe_does_not_affect_siblings(make_registry, provider_spec):
    baseline = make_registry(card=provider_spec(), apple=provider_spec(), cashapp=provider_spec())
    broken = make_registry(
        card=provider_spec(),
        apple=provider_spec(probe_error=RuntimeError("boom")),
        cashapp=provider_spec(),
    )

    base_channels, _ = await _probe(baseline)
    channels, _ = await _probe(broken)

    assert channels["apple"].state == ChannelState.INELIGIBLE
    for name in ("card", "cashapp"):
        assert channels[name].state == base_channels[name].state == ChannelState.ATTACHED


@pytest.mark.asyncio
async def test_failing_attach_does_not_affect_siblings(make_registry, provider_spec):
    registry = make_registry(
        card=provider_spec(),
        apple=provider_spec(attach_error=RuntimeError("no node")),
        google=provider_spec(),
    )
    channels, _ = await _probe(registry)
    assert channels["apple"].state == ChannelState.INELIGIBLE
    assert channels["google"].state == ChannelState.ATTACHED
    assert channels["card"].state == ChannelState.ATTACHED


@pytest.mark.asyncio
async def test_results_stream_in_completion_order(make_registry, provider_spec):
    registry = make_registry(card=provider_spec(probe_delay=0.05), apple=provider_spec())
    _, results = await _probe(registry)
    assert [r.channel for r in results] == ["apple", "card"]


@pytest.mark.asyncio
async def test_probes_run_concurrently(make_registry, provider_spec):
    registry = make_registry(
        card=provider_spec(probe_delay=0.2),
        apple=provider_spec(probe_delay=0.2),
        google=provider_spec(probe_delay=0.2),
    )
    loop = asyncio.get_running_loop()
    started = loop.time()
    await _probe(registry)
    assert loop.time() - started < 0.5


@pytest.mark.asyncio
async def test_divider_hidden_when_only_card(make_registry, provider_spec):
    registry = make_registry(card=provider_spec(), apple=provider_spec(offered=False))
    channels, _ = await _probe(registry)
    assert ChannelRegistry.wallet_divider_visible(channels.values()) is False
