from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from enum import Enum


class ProviderName(str, Enum):
    STRIPE = "stripe"
    PAYPAL = "paypal"


class SubscriptionStatus(str, Enum):
    """Provider-independent subscription status"""
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    PAST_DUE = "past_due"
    UNKNOWN = "unknown"


class ManageAction(str, Enum):
    PORTAL = ""
    CANCEL = "cancel"
    SUSPEND = "suspend"
    ACTIVATE = "activate"


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class Subscription(BaseModel):
    """One billing record per tenant, keyed by tenant_id"""
    tenant_id: str
    provider: ProviderName
    provider_subscription_id: str
    plan_name: str
    status: SubscriptionStatus
    raw_status: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    cancelled_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_row(self) -> Dict[str, Any]:
        """Column mapping for the `subscriptions` table"""
        row = self.model_dump(mode="json")
        row["user_id"] = row.pop("tenant_id")
        return row

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Subscription":
        data = dict(row)
        data["tenant_id"] = data.pop("user_id")
        data.pop("id", None)
        data["metadata"] = data.get("metadata") or {}
        return cls(**data)


class SubscriptionStatusUpdate(BaseModel):
    """Narrow field set written by cancel/suspend/activate"""
    status: SubscriptionStatus
    raw_status: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=utcnow)
