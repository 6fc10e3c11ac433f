from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from consumer.app.constants import (
    DEFAULT_CONSUMER_NAME,
    ORIGINAL_DELIVERY_FAILED,
    ORIGINAL_DELIVERY_RELEASED,
    AdmissionKind,
)
from consumer.app.core import SERVICE_NAME
from consumer.app.core.backoff import exponential_backoff
from consumer.app.application.statistics import StatisticsService
from consumer.app.domain.dead_letter_manager import DeadLetterManager
from consumer.app.domain.errors import MessageQuarantinedError, MessageValidationError
from consumer.app.domain.idempotency_guard import IdempotencyGuard
from consumer.app.domain.models import (
    AttemptKey,
    BusinessResult,
    ConsumerStatistics,
    DeadLetterEntry,
    OrderMessage,
    ProcessingRecord,
    ProcessResult,
)
from consumer.app.ports.business_function import BusinessFunction

DEFAULT_PROCESSING_TIMEOUT_SECONDS = 30.0


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


class ConsumerService:
    """
    Processes order messages exactly once per (message_id, consumer_name).

    NEW admissions run the business function, bounded by processing_timeout_seconds.
    Duplicates replay the stored artifact id; a duplicate that arrives while another
    delivery still holds the claim polls the record with bounded backoff and replays the
    result once it lands, or reports in_flight if it does not land in time. If the original
    delivery fails instead, the duplicate reports that failure: a transient failure while
    attempts remain, MessageQuarantinedError once the message is quarantined.

    Only expiry of the processing timeout is converted into a "timed out" failure; a
    TimeoutError raised by the business function itself is treated like any other fault.

    A business function that raises counts as a failed attempt. The exception propagates
    while attempts remain; on the final attempt it is converted into an ATTEMPTS_EXHAUSTED
    result and the message is quarantined.
    """

    def __init__(
        self,
        guard: IdempotencyGuard,
        dead_letters: DeadLetterManager,
        statistics: StatisticsService,
        business_fn: BusinessFunction | None = None,
        *,
        consumer_name: str = DEFAULT_CONSUMER_NAME,
        processing_timeout_seconds: float = DEFAULT_PROCESSING_TIMEOUT_SECONDS,
        in_flight_poll_initial_seconds: float = 0.1,
        in_flight_poll_max_seconds: float = 2.0,
        in_flight_poll_attempts: int = 8,
    ) -> None:
        self._guard = guard
        self._dead_letters = dead_letters
        self._statistics = statistics
        self._business_fn = business_fn
        self._consumer_name = consumer_name
        self._timeout = float(processing_timeout_seconds)
        self._poll_initial = float(in_flight_poll_initial_seconds)
        self._poll_max = float(in_flight_poll_max_seconds)
        self._poll_attempts = int(in_flight_poll_attempts)

    @property
    def consumer_name(self) -> str:
        return self._consumer_name

    async def process(
        self,
        message: OrderMessage,
        consumer_name: str | None = None,
        business_fn: BusinessFunction | None = None,
    ) -> ProcessResult:
        message_id = (message.message_id or "").strip()
        if not message_id:
            raise MessageValidationError("message_id is required")
        consumer_name = (consumer_name or self._consumer_name).strip()
        if not consumer_name:
            raise MessageValidationError("consumer_name is required")
        business_fn = business_fn or self._business_fn
        if business_fn is None:
            raise RuntimeError("no business function configured")

        admission = await self._guard.admit(message_id, consumer_name)
        if admission.kind == AdmissionKind.QUARANTINED:
            raise MessageQuarantinedError(message_id, admission.dead_letter)
        if admission.kind == AdmissionKind.DUPLICATE:
            return await self._replay(message_id, consumer_name, admission.record)

        _log("business_call_started", message_id=message_id, consumer_name=consumer_name)
        call = asyncio.ensure_future(business_fn(message))
        try:
            done, _ = await asyncio.wait({call}, timeout=self._timeout)
        except asyncio.CancelledError:
            call.cancel()
            raise

        if call not in done:
            call.cancel()
            await asyncio.gather(call, return_exceptions=True)
            outcome = BusinessResult.fail(f"processing timed out after {self._timeout:g}s")
        else:
            try:
                outcome = call.result()
            except Exception as exc:
                logger.exception("business function failed for {}: {}", message_id, exc)
                completion = await self._guard.complete(message, consumer_name, BusinessResult.fail(str(exc)))
                if completion.quarantined:
                    return ProcessResult.exhausted(str(exc), completion.attempt_number)
                raise

        completion = await self._guard.complete(message, consumer_name, outcome)
        if completion.success:
            return ProcessResult.processed(outcome.artifact_id)

        error_text = outcome.error or "unknown error"
        if completion.quarantined:
            return ProcessResult.exhausted(error_text, completion.attempt_number)
        return ProcessResult.transient_failure(error_text, completion.attempt_number)

    async def _replay(
        self,
        message_id: str,
        consumer_name: str,
        record: ProcessingRecord | None,
    ) -> ProcessResult:
        if record is not None and record.is_processed:
            return ProcessResult.duplicate(record)

        async for _delay in exponential_backoff(
            self._poll_initial,
            self._poll_max,
            2.0,
            self._poll_attempts,
        ):
            current = await self._guard.lookup(message_id, consumer_name)
            if current is None:
                return await self._owner_released(message_id, consumer_name)
            if current.is_processed:
                return ProcessResult.duplicate(current)
            if current.awaiting_retry:
                attempt = self._guard.tracker.current(AttemptKey(message_id, consumer_name))
                _log("duplicate_owner_failed", message_id=message_id, consumer_name=consumer_name, attempt_number=attempt)
                return ProcessResult.transient_failure(ORIGINAL_DELIVERY_FAILED, attempt)

        _log("duplicate_in_flight", message_id=message_id, consumer_name=consumer_name)
        return ProcessResult.still_in_flight()

    async def _owner_released(self, message_id: str, consumer_name: str) -> ProcessResult:
        """The claim vanished while we waited: the owner quarantined it, or an operator reset it."""
        blocking = await self._dead_letters.find_blocking(message_id)
        if blocking is not None:
            raise MessageQuarantinedError(message_id, blocking)
        _log("duplicate_owner_released", message_id=message_id, consumer_name=consumer_name)
        return ProcessResult.transient_failure(ORIGINAL_DELIVERY_RELEASED, 0)

    async def retry_quarantined(self, entry_id: str) -> bool:
        return await self._dead_letters.retry(entry_id) is not None

    async def fail_quarantined(self, entry_id: str, notes: str) -> bool:
        return await self._dead_letters.mark_failed(entry_id, notes) is not None

    async def list_quarantined(self) -> list[DeadLetterEntry]:
        return await self._dead_letters.list()

    async def get_quarantined(self, entry_id: str) -> DeadLetterEntry | None:
        return await self._dead_letters.get(entry_id)

    async def get_statistics(self) -> ConsumerStatistics:
        return await self._statistics.collect()
