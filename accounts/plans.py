from dataclasses import dataclass
from datetime import datetime, timedelta

from accounts.models import SubscriptionPlan

CURRENCY = "GHS"


@dataclass(frozen=True)
class PlanSpec:
    label: str
    duration_months: int
    price: int          # minor units (pesewas)
    currency: str = CURRENCY


PLANS: dict[SubscriptionPlan, PlanSpec] = {
    SubscriptionPlan.MONTHLY: PlanSpec(label="Monthly", duration_months=1, price=10000),
    SubscriptionPlan.ANNUAL: PlanSpec(label="Annual", duration_months=12, price=100000),
}


def format_price(plan: SubscriptionPlan) -> str:
    spec = PLANS[plan]
    return f"{spec.currency} {spec.price / 100:.2f}"


def add_calendar_months(dt: datetime, months: int) -> datetime:
    # Day is clamped to the last day of the target month (Jan 31 + 1 -> Feb 28/29)
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1

    if month == 12:
        next_month_year, next_month = year + 1, 1
    else:
        next_month_year, next_month = year, month + 1

    last_day = (datetime(next_month_year, next_month, 1) - timedelta(days=1)).day
    return dt.replace(year=year, month=month, day=min(dt.day, last_day))
