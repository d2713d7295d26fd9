"""Pydantic models for splitledger trips.

All money is held as integer minor units (cents). Records reference each other
by id only; a Trip owns id-indexed tables of its participants, expenses and
settlements.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, field_serializer, field_validator


def new_id() -> str:
    """Generate an opaque record id."""
    return str(uuid4())


class SplitStrategy(str, Enum):
    """How an expense total is allocated across participants."""

    EQUAL = "equal"
    EQUAL_SELECTED = "equal_selected"  # Equal among participants with a positive param
    PERCENTAGE = "percentage"
    SHARES = "shares"
    EXACT = "exact"  # Params are the amounts, verbatim


class SyncedRecord(BaseModel):
    """Sync metadata carried by every persisted record."""

    updated_at: datetime = Field(default_factory=datetime.now)
    needs_sync: bool = True


class Participant(SyncedRecord):
    """A person taking part in a trip."""

    id: str = Field(default_factory=new_id)
    name: str
    is_current_user: bool = False
    color: str | None = None
    removed_at: datetime | None = None

    @property
    def is_removed(self) -> bool:
        return self.removed_at is not None


class Expense(SyncedRecord):
    """A shared expense paid by one participant."""

    id: str = Field(default_factory=new_id)
    trip_id: str
    ts: datetime = Field(default_factory=datetime.now)
    description: str = ""
    amount: int = Field(gt=0)
    paid_by: str
    strategy: SplitStrategy = SplitStrategy.EQUAL
    split_params: dict[str, Decimal] = Field(default_factory=dict)
    computed_splits: dict[str, int] = Field(default_factory=dict)
    deleted_at: datetime | None = None

    @field_validator("split_params", mode="before")
    @classmethod
    def coerce_split_params(cls, v: Any) -> dict[str, Decimal]:
        if v is None:
            return {}
        return {
            k: Decimal(str(val)) if isinstance(val, float) else Decimal(val)
            for k, val in v.items()
        }

    @field_serializer("split_params")
    def serialize_split_params(self, v: dict[str, Decimal]) -> dict[str, str]:
        return {k: str(val) for k, val in v.items()}

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class Settlement(SyncedRecord):
    """A realized payment that reduces what from_participant owes to_participant."""

    id: str = Field(default_factory=new_id)
    trip_id: str
    ts: datetime = Field(default_factory=datetime.now)
    from_participant: str
    to_participant: str
    amount: int = Field(gt=0)
    note: str = ""
    idempotency_key: str | None = None
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class SuggestedTransfer(BaseModel):
    """A payment that, together with its siblings, zeroes every balance."""

    from_participant: str
    to_participant: str
    amount: int = Field(gt=0)


class ParticipantBalance(BaseModel):
    """Paid / owed breakdown for one participant."""

    participant_id: str
    name: str
    is_current_user: bool = False
    total_paid: int = 0
    total_owed: int = 0

    @property
    def net(self) -> int:
        return self.total_paid - self.total_owed


class Trip(SyncedRecord):
    """A trip with id-indexed participants, expenses and settlements."""

    id: str = Field(default_factory=new_id)
    name: str
    created_at: datetime = Field(default_factory=datetime.now)
    participants: dict[str, Participant] = Field(default_factory=dict)
    expenses: dict[str, Expense] = Field(default_factory=dict)
    settlements: dict[str, Settlement] = Field(default_factory=dict)

    def participant_ids(self, include_removed: bool = True) -> list[str]:
        """Participant ids in insertion order."""
        return [
            p.id for p in self.participants.values() if include_removed or not p.is_removed
        ]

    def live_expenses(self) -> list[Expense]:
        return [e for e in self.expenses.values() if not e.is_deleted]

    def live_settlements(self) -> list[Settlement]:
        return [s for s in self.settlements.values() if not s.is_deleted]

    def find_participant(self, name_or_id: str) -> Participant | None:
        """Look up a participant by id, falling back to a case-insensitive name match."""
        if name_or_id in self.participants:
            return self.participants[name_or_id]
        wanted = name_or_id.strip().lower()
        for participant in self.participants.values():
            if participant.name.strip().lower() == wanted:
                return participant
        return None
