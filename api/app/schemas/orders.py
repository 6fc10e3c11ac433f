from datetime import datetime
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class OrderPostRequest(BaseModel):
    """Order message submitted over HTTP. message_id is the idempotency key."""

    model_config = ConfigDict(populate_by_name=True)

    message_id: str = Field("", validation_alias=AliasChoices("message_id", "messageId"))
    customer_name: str = Field("", validation_alias=AliasChoices("customer_name", "customerName"))
    amount: Decimal = Decimal("0")
    timestamp: datetime | None = None


class OrderPostResponse(BaseModel):
    success: bool = True
    message: str
    order_id: str | None = None
    outcome: str
    in_flight: bool = False


class OrderFailureResponse(BaseModel):
    success: bool = False
    error: str
    outcome: str | None = None
    attempt_number: int | None = None
    dead_letter_entry_id: str | None = None


class ProcessingRecordResponse(BaseModel):
    message_id: str
    consumer_name: str
    status: str
    result: str | None = None
    claimed_at: datetime
    processed_at: datetime | None = None
    awaiting_retry: bool = False
