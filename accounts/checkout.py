"""
Checkout collaborator events and how a completed payment lands on an account.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

from accounts.models import AccountRecord, SubscriptionPlan
from accounts.storage import AccountStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutCompleted:
    reference: str


@dataclass(frozen=True)
class CheckoutCancelled:
    pass


CheckoutEvent = Union[CheckoutCompleted, CheckoutCancelled]


def apply_checkout(store: AccountStore, email: str, plan: SubscriptionPlan,
                   event: CheckoutEvent,
                   now: Optional[datetime] = None) -> AccountRecord:
    """Persist the subscription carried by *event*; cancellation is a no-op."""
    if isinstance(event, CheckoutCancelled):
        logger.info("Checkout for %s (%s) closed without payment", email, plan.value)
        record = store.find_by_email(email)
        if record is None:
            raise KeyError(email)
        return record

    started = now or datetime.now(timezone.utc)
    record = store.update(email, lambda r: r.subscribe(plan, started, event.reference))
    logger.info("Account %s subscribed to %s plan (ref %s)",
                record.key, plan.value, event.reference)
    return record
