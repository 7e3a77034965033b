"""
Entitlement evaluation — whether an account may run the solver right now.

Everything here is a pure function of the account record and an injected
``now``; nothing is stored.  A subscription runs from its start instant up
to (but not including) ``start + plan duration`` in calendar months, with
the day clamped to the end of shorter months.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import config
from accounts.models import AccountRecord, SubscriptionPlan, as_utc
from accounts.plans import PLANS, add_calendar_months


@dataclass(frozen=True)
class Entitlement:
    subscribed: bool
    expires_at: Optional[datetime]
    free_uses_remaining: int
    can_solve: bool


def subscription_expiry(record: AccountRecord) -> Optional[datetime]:
    """Return the instant the current subscription lapses, or None."""
    if record.subscription_plan is SubscriptionPlan.NONE or record.subscription_started_at is None:
        return None
    spec = PLANS[record.subscription_plan]
    return add_calendar_months(as_utc(record.subscription_started_at), spec.duration_months)


def is_subscribed(record: AccountRecord, now: datetime) -> bool:
    expiry = subscription_expiry(record)
    if expiry is None:
        return False
    return as_utc(now) < expiry


def free_uses_remaining(record: AccountRecord, limit: int = config.FREE_TRIAL_LIMIT) -> int:
    return max(0, limit - record.free_uses_consumed)


def can_solve(record: AccountRecord, now: datetime,
              limit: int = config.FREE_TRIAL_LIMIT) -> bool:
    return is_subscribed(record, now) or free_uses_remaining(record, limit) > 0


def summarize(record: AccountRecord, now: datetime,
              limit: int = config.FREE_TRIAL_LIMIT) -> Entitlement:
    subscribed = is_subscribed(record, now)
    remaining = free_uses_remaining(record, limit)
    return Entitlement(
        subscribed=subscribed,
        expires_at=subscription_expiry(record),
        free_uses_remaining=remaining,
        can_solve=subscribed or remaining > 0,
    )
