import asyncio

from consumer.app.core.backoff import exponential_backoff


def test_exponential_backoff_yields_capped_delays_and_stops():
    async def _run():
        return [d async for d in exponential_backoff(0.001, 0.004, 2.0, 4)]

    assert asyncio.run(_run()) == [0.001, 0.002, 0.004, 0.004]
