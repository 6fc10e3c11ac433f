"""Port: the side-effecting work performed for an admitted message."""
from __future__ import annotations

from typing import Protocol

from consumer.app.domain.models import BusinessResult, OrderMessage


class BusinessFunction(Protocol):
    """Single-shot async callable. Invoked at most once per NEW admission.

    Report failures with BusinessResult.fail(...); a raised exception is treated as a
    failed attempt as well.
    """

    async def __call__(self, message: OrderMessage) -> BusinessResult: ...
