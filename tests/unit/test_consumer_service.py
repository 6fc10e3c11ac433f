"""Unit tests for ConsumerService.process and the administrative operations."""
from __future__ import annotations

import asyncio

import pytest

from consumer.app.constants import ORIGINAL_DELIVERY_FAILED, ProcessOutcome
from consumer.app.domain.errors import MessageQuarantinedError, MessageValidationError
from consumer.app.domain.models import AttemptKey
from tests.conftest import (
    CONSUMER,
    AlwaysFailing,
    CountingSuccess,
    FailingThenSucceeding,
    FailingWithHeldCall,
    Raising,
    Sleeping,
    Stack,
    held_lookup_persistence,
    order_message,
)


def test_blank_message_id_raises_validation_error_without_side_effects():
    fn = CountingSuccess()
    stack = Stack(fn)

    with pytest.raises(MessageValidationError):
        asyncio.run(stack.service.process(order_message("   ")))

    assert fn.calls == []
    assert asyncio.run(stack.records.list_records()) == []


def test_scenario_m1_success_then_two_resubmissions_replay_artifact():
    fn = CountingSuccess()
    stack = Stack(fn)

    async def _run():
        first = await stack.service.process(order_message("m1"))
        second = await stack.service.process(order_message("m1"))
        third = await stack.service.process(order_message("m1"))
        return first, second, third, await stack.service.get_statistics()

    first, second, third, stats = asyncio.run(_run())

    assert first.outcome == ProcessOutcome.PROCESSED
    assert first.artifact_id == "order-1"
    for dup in (second, third):
        assert dup.success is True
        assert dup.outcome == ProcessOutcome.DUPLICATE_REPLAY
        assert dup.artifact_id == "order-1"
        assert dup.message == "Message already processed: order-1"
    assert fn.calls == ["m1"]
    assert stats.duplicate_messages_detected == 2
    assert stats.total_processed_messages == 1


def test_concurrent_deliveries_execute_once_and_share_artifact():
    fn = CountingSuccess(delay=0.05)
    stack = Stack(fn)

    async def _run():
        return await asyncio.gather(*[stack.service.process(order_message("m-c")) for _ in range(10)])

    results = asyncio.run(_run())

    assert fn.calls == ["m-c"]
    assert all(r.success for r in results)
    assert {r.artifact_id for r in results} == {"order-1"}
    assert sum(1 for r in results if r.outcome == ProcessOutcome.PROCESSED) == 1
    assert not any(r.in_flight for r in results)


def test_duplicate_reports_in_flight_when_owner_does_not_finish_in_time():
    fn = CountingSuccess(delay=2.0)
    stack = Stack(fn, poll_attempts=2)

    async def _run():
        owner = asyncio.create_task(stack.service.process(order_message("slow")))
        await asyncio.sleep(0.01)
        duplicate = await stack.service.process(order_message("slow"))
        owner.cancel()
        return duplicate

    duplicate = asyncio.run(_run())

    assert duplicate.success is True
    assert duplicate.in_flight is True
    assert duplicate.artifact_id is None


def test_scenario_m2_always_failing_is_quarantined_after_max_attempts():
    fn = AlwaysFailing("card declined")
    stack = Stack(fn, max_attempts=3)

    async def _run():
        results = [await stack.service.process(order_message("m2")) for _ in range(3)]
        return results, await stack.service.list_quarantined()

    results, pending = asyncio.run(_run())

    assert [r.outcome for r in results] == [
        ProcessOutcome.TRANSIENT_FAILURE,
        ProcessOutcome.TRANSIENT_FAILURE,
        ProcessOutcome.ATTEMPTS_EXHAUSTED,
    ]
    assert [r.attempt_number for r in results] == [1, 2, 3]
    assert results[2].error == "Message processing failed after 3 attempts: card declined"
    assert len(fn.calls) == 3
    assert len(pending) == 1
    assert pending[0].attempt_number == 3
    assert pending[0].original_message_id == "m2"


def test_quarantined_message_raises_and_never_invokes_function():
    fn = AlwaysFailing()
    stack = Stack(fn, max_attempts=2)

    async def _run():
        for _ in range(2):
            await stack.service.process(order_message("q"))
        with pytest.raises(MessageQuarantinedError) as info:
            await stack.service.process(order_message("q"))
        return info.value

    err = asyncio.run(_run())

    assert len(fn.calls) == 2
    assert err.message_id == "q"
    assert err.entry.attempt_number == 2
    assert "requires manual intervention" in str(err)
    assert "payment gateway unavailable" in str(err)


def test_retry_quarantined_then_redelivery_is_admitted_new():
    fn = FailingThenSucceeding(failures=3)
    stack = Stack(fn, max_attempts=3)

    async def _run():
        for _ in range(3):
            await stack.service.process(order_message("m3"))
        entry = (await stack.service.list_quarantined())[0]
        retried = await stack.service.retry_quarantined(entry.entry_id)
        retried_again = await stack.service.retry_quarantined(entry.entry_id)
        result = await stack.service.process(order_message("m3"))
        return retried, retried_again, result, await stack.service.get_statistics()

    retried, retried_again, result, stats = asyncio.run(_run())

    assert retried is True
    assert retried_again is False
    assert result.outcome == ProcessOutcome.PROCESSED
    assert result.artifact_id == "order-4"
    assert len(fn.calls) == 4
    assert stats.dead_letter.resolved_messages == 1
    assert stats.dead_letter.pending_messages == 0


def test_retry_quarantined_unknown_id_returns_false():
    stack = Stack()

    async def _run():
        ok = await stack.service.retry_quarantined("nope")
        return ok, await stack.service.get_statistics()

    ok, stats = asyncio.run(_run())

    assert ok is False
    assert stats.dead_letter.total_messages == 0


def test_fail_quarantined_keeps_message_blocked():
    stack = Stack(AlwaysFailing(), max_attempts=1)

    async def _run():
        await stack.service.process(order_message("f"))
        entry = (await stack.service.list_quarantined())[0]
        marked = await stack.service.fail_quarantined(entry.entry_id, "bad payload")
        missing = await stack.service.fail_quarantined("nope", "x")
        with pytest.raises(MessageQuarantinedError) as info:
            await stack.service.process(order_message("f"))
        return marked, missing, info.value

    marked, missing, err = asyncio.run(_run())

    assert marked is True
    assert missing is False
    assert err.entry.status == "FAILED"


def test_timeout_counts_as_failed_attempt():
    fn = Sleeping(1.0)
    stack = Stack(fn, timeout=0.05)

    result = asyncio.run(stack.service.process(order_message("t1")))

    assert result.success is False
    assert result.outcome == ProcessOutcome.TRANSIENT_FAILURE
    assert result.attempt_number == 1
    assert "timed out" in result.error


def test_raised_fault_propagates_until_attempts_are_exhausted():
    fn = Raising(RuntimeError("db exploded"))
    stack = Stack(fn, max_attempts=3)

    async def _run():
        for _ in range(2):
            with pytest.raises(RuntimeError, match="db exploded"):
                await stack.service.process(order_message("r1"))
        return await stack.service.process(order_message("r1"))

    final = asyncio.run(_run())

    assert final.outcome == ProcessOutcome.ATTEMPTS_EXHAUSTED
    assert "db exploded" in final.error
    assert len(fn.calls) == 3


def test_statistics_after_successes_duplicates_and_quarantines():
    stack = Stack(max_attempts=1)
    failing = AlwaysFailing()

    async def _run():
        await stack.service.process(order_message("s1"))
        await stack.service.process(order_message("s2"))
        await stack.service.process(order_message("s1"))
        await stack.service.process(order_message("s2"))
        await stack.service.process(order_message("q1"), business_fn=failing)
        return await stack.service.get_statistics()

    stats = asyncio.run(_run())

    assert stats.total_processed_messages == 2
    assert stats.successful_completions == 2
    assert stats.duplicate_messages_detected == 2
    assert stats.dead_letter_messages == 1
    assert stats.in_flight_claims == 0
    assert stats.oldest_claim_age is None


def test_default_order_processor_persists_order():
    stack = Stack()

    async def _run():
        result = await stack.service.process(order_message("o1", customer_name="Bob", amount="12.50"))
        return result, await stack.persistence.orders.get(result.artifact_id)

    result, order = asyncio.run(_run())

    assert result.outcome == ProcessOutcome.PROCESSED
    assert order is not None
    assert order.customer_name == "Bob"
    assert str(order.amount) == "12.50"


def test_explicit_consumer_name_scopes_idempotency():
    fn = CountingSuccess()
    stack = Stack(fn)

    async def _run():
        a = await stack.service.process(order_message("m1"), "order-processor", fn)
        b = await stack.service.process(order_message("m1"), "billing", fn)
        return a, b

    a, b = asyncio.run(_run())

    assert a.outcome == ProcessOutcome.PROCESSED
    assert b.outcome == ProcessOutcome.PROCESSED
    assert fn.calls == ["m1", "m1"]


def test_delivery_racing_the_quarantining_attempt_never_runs_again():
    fn = FailingWithHeldCall(hold_on=3)
    stack = Stack(fn, max_attempts=3, persistence=held_lookup_persistence())
    store = stack.persistence.dead_letters

    async def _run():
        for _ in range(2):
            await stack.service.process(order_message("race"))
        owner = asyncio.create_task(stack.service.process(order_message("race")))
        await fn.entered.wait()
        store.hold_next_lookup()
        late = asyncio.create_task(stack.service.process(order_message("race")))
        await store.held.wait()
        fn.proceed.set()
        owner_result = await owner
        store.gate.set()
        with pytest.raises(MessageQuarantinedError) as info:
            await late
        return owner_result, info.value, await stack.records.list_records(), await stack.service.list_quarantined()

    owner_result, err, records, pending = asyncio.run(_run())

    assert owner_result.outcome == ProcessOutcome.ATTEMPTS_EXHAUSTED
    assert owner_result.attempt_number == 3
    assert len(fn.calls) == 3
    assert err.entry.attempt_number == 3
    assert records == []
    assert len(pending) == 1


def test_duplicate_waiting_on_quarantining_attempt_reports_quarantine():
    fn = FailingWithHeldCall(hold_on=3)
    stack = Stack(fn, max_attempts=3)

    async def _run():
        for _ in range(2):
            await stack.service.process(order_message("dq"))
        owner = asyncio.create_task(stack.service.process(order_message("dq")))
        await fn.entered.wait()
        duplicate = asyncio.create_task(stack.service.process(order_message("dq")))
        await asyncio.sleep(0.03)
        fn.proceed.set()
        owner_result = await owner
        with pytest.raises(MessageQuarantinedError) as info:
            await duplicate
        return owner_result, info.value

    owner_result, err = asyncio.run(_run())

    assert owner_result.outcome == ProcessOutcome.ATTEMPTS_EXHAUSTED
    assert err.message_id == "dq"
    assert err.entry.attempt_number == 3
    assert len(fn.calls) == 3


def test_duplicate_waiting_on_failed_attempt_reports_transient_failure():
    fn = FailingWithHeldCall(hold_on=1)
    stack = Stack(fn, max_attempts=3)

    async def _run():
        owner = asyncio.create_task(stack.service.process(order_message("dt")))
        await fn.entered.wait()
        duplicate = asyncio.create_task(stack.service.process(order_message("dt")))
        await asyncio.sleep(0.03)
        fn.proceed.set()
        owner_result = await owner
        duplicate_result = await duplicate
        redelivery = await stack.service.process(order_message("dt"))
        return owner_result, duplicate_result, redelivery

    owner_result, duplicate_result, redelivery = asyncio.run(_run())

    assert owner_result.outcome == ProcessOutcome.TRANSIENT_FAILURE
    assert duplicate_result.outcome == ProcessOutcome.TRANSIENT_FAILURE
    assert duplicate_result.success is False
    assert duplicate_result.in_flight is False
    assert duplicate_result.attempt_number == 1
    assert duplicate_result.error == ORIGINAL_DELIVERY_FAILED
    assert redelivery.attempt_number == 2
    assert len(fn.calls) == 2


def test_timeout_error_raised_by_business_function_propagates():
    fn = Raising(TimeoutError("upstream read timed out"))
    stack = Stack(fn, max_attempts=3, timeout=5.0)

    with pytest.raises(TimeoutError, match="upstream read timed out"):
        asyncio.run(stack.service.process(order_message("t2")))

    assert stack.tracker.current(AttemptKey("t2", CONSUMER)) == 1
