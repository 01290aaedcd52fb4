import asyncio

import pytest

from mindgraph.ai_engine import RateGate, ReasoningClient
from tests.helpers import FakeClock


def test_first_call_passes_immediately():
    clock = FakeClock(100.0)
    gate = RateGate(1.2, clock=clock, sleep=clock.sleep)
    assert asyncio.run(gate.acquire()) == 0.0
    assert clock.sleeps == []


def test_waits_only_the_remaining_delay():
    clock = FakeClock(100.0)
    gate = RateGate(1.2, clock=clock, sleep=clock.sleep)

    asyncio.run(gate.acquire())
    clock.advance(0.5)
    waited = asyncio.run(gate.acquire())

    assert waited == pytest.approx(0.7)
    assert clock.now == pytest.approx(101.2)


def test_back_to_back_calls_are_spaced_by_min_delay():
    clock = FakeClock(0.0)
    gate = RateGate(1.2, clock=clock, sleep=clock.sleep)

    async def three_calls():
        return [await gate.acquire() for _ in range(3)]

    assert asyncio.run(three_calls()) == pytest.approx([0.0, 1.2, 1.2])


def test_concurrent_callers_are_serialized():
    clock = FakeClock(0.0)
    waits = []

    async def no_advance_sleep(seconds):
        waits.append(seconds)

    gate = RateGate(1.0, clock=clock, sleep=no_advance_sleep)

    async def run():
        await asyncio.gather(gate.acquire(), gate.acquire(), gate.acquire())

    asyncio.run(run())
    # The clock never moves, so each caller queues one slot behind the previous
    assert sorted(waits) == pytest.approx([1.0, 2.0])


def test_no_wait_after_delay_elapsed():
    clock = FakeClock(10.0)
    gate = RateGate(1.2, clock=clock, sleep=clock.sleep)
    asyncio.run(gate.acquire())
    clock.advance(5)
    assert asyncio.run(gate.acquire()) == 0.0


def test_reasoning_client_must_implement_complete():
    with pytest.raises(TypeError):
        ReasoningClient()

    class EchoClient(ReasoningClient):
        async def complete(self, prompt, **kwargs):
            return prompt

    client = EchoClient()
    assert client.is_configured
    assert asyncio.run(client.complete("ping")) == "ping"
