from accounts.models import AccountRecord, SubscriptionPlan, normalize_email
from accounts.storage import AccountError, AccountStore

__all__ = [
    "AccountError",
    "AccountRecord",
    "AccountStore",
    "SubscriptionPlan",
    "normalize_email",
]
