"""Domain events published by the CRUD API after a successful write.

Each event carries a literal ``event`` tag so it survives a round trip
through the arq queue as plain JSON.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class TransactionCreated(BaseModel):
    event: Literal["transaction_created"] = "transaction_created"
    user_id: int
    transaction_id: int
    amount: Decimal
    category: str
    type: Literal["INCOME", "EXPENSE"]


class BudgetCreated(BaseModel):
    event: Literal["budget_created"] = "budget_created"
    user_id: int
    budget_id: int


class ReceiptScanned(BaseModel):
    event: Literal["receipt_scanned"] = "receipt_scanned"
    user_id: int


DomainEvent = Annotated[
    Union[TransactionCreated, BudgetCreated, ReceiptScanned],
    Field(discriminator="event"),
]

_event_adapter: TypeAdapter[DomainEvent] = TypeAdapter(DomainEvent)


def parse_event(payload: dict) -> TransactionCreated | BudgetCreated | ReceiptScanned:
    """Rebuild an event from its JSON form. Raises pydantic.ValidationError."""
    return _event_adapter.validate_python(payload)
