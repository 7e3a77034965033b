"""
Account record and its persisted shape.
"""

import enum
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional


class SubscriptionPlan(str, enum.Enum):
    NONE = "none"
    MONTHLY = "monthly"
    ANNUAL = "annual"


def normalize_email(email: str) -> str:
    """Return the case-insensitive lookup key for *email*."""
    return email.strip().lower()


def as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class AccountRecord:
    email: str
    name: str
    credential_digest: str
    subscription_plan: SubscriptionPlan = SubscriptionPlan.NONE
    subscription_started_at: Optional[datetime] = None
    subscription_reference: str = ""
    free_uses_consumed: int = 0

    def __post_init__(self) -> None:
        self.subscription_plan = SubscriptionPlan(self.subscription_plan)
        if not self.name.strip():
            raise ValueError("Account name cannot be empty.")
        if self.free_uses_consumed < 0:
            raise ValueError("free_uses_consumed cannot be negative.")
        has_plan = self.subscription_plan is not SubscriptionPlan.NONE
        if has_plan != (self.subscription_started_at is not None):
            raise ValueError(
                "subscription_started_at must be set exactly when a plan is active "
                f"(plan={self.subscription_plan.value})."
            )
        if self.subscription_started_at is not None:
            self.subscription_started_at = as_utc(self.subscription_started_at)

    @property
    def key(self) -> str:
        return normalize_email(self.email)

    def subscribe(self, plan: SubscriptionPlan, started_at: datetime,
                  reference: str) -> "AccountRecord":
        """Return a copy with *plan* active from *started_at*."""
        if SubscriptionPlan(plan) is SubscriptionPlan.NONE:
            raise ValueError("Cannot subscribe to the 'none' plan.")
        return replace(self, subscription_plan=SubscriptionPlan(plan),
                       subscription_started_at=as_utc(started_at),
                       subscription_reference=reference)

    def to_dict(self) -> dict:
        started = self.subscription_started_at
        return {
            "email": self.email,
            "name": self.name,
            "credentialDigest": self.credential_digest,
            "subscriptionPlan": self.subscription_plan.value,
            "subscriptionStartedAt": started.isoformat() if started else "",
            "subscriptionReference": self.subscription_reference,
            "freeUsesConsumed": self.free_uses_consumed,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AccountRecord":
        started = data.get("subscriptionStartedAt") or None
        return cls(
            email=data["email"],
            name=data["name"],
            credential_digest=data["credentialDigest"],
            subscription_plan=SubscriptionPlan(data.get("subscriptionPlan") or "none"),
            subscription_started_at=datetime.fromisoformat(started) if started else None,
            subscription_reference=data.get("subscriptionReference", ""),
            free_uses_consumed=int(data.get("freeUsesConsumed", 0)),
        )
