"""
sitequota/models/account.py

Read-only view of an account and its current subscription.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Subscription(BaseModel):
    """Opaque reference to a billing subscription.

    plan_id is the catalog identifier (billing product id); it is only
    interpreted by the plan resolver.
    """
    model_config = ConfigDict(frozen=True)

    subscription_id: str
    plan_id: str
    status: str = "active"


class Account(BaseModel):
    model_config = ConfigDict(frozen=True)

    account_id: str
    email: str
    inserted_at: datetime
    subscription: Optional[Subscription] = Field(default=None)

    @field_validator("inserted_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
