"""Recurring schedule calculator.

Dates are plain calendar dates in UTC. Month-based steps use ``relativedelta``, which
clamps to the last valid day of the target month (Jan 31 + 1 month -> Feb 28/29,
Feb 29 + 1 year -> Feb 28).
"""

from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from backend.app.core.errors import ValidationError

FREQUENCIES = ("weekly", "biweekly", "monthly", "quarterly", "biannually", "annually")

_STEPS = {
    "weekly": timedelta(days=7),
    "biweekly": timedelta(days=14),
    "monthly": relativedelta(months=1),
    "quarterly": relativedelta(months=3),
    "biannually": relativedelta(months=6),
    "annually": relativedelta(years=1),
}


def next_occurrence(current_date: date, frequency: str) -> date:
    """Return the occurrence that follows ``current_date`` for ``frequency``."""
    step = _STEPS.get(frequency)
    if step is None:
        raise ValidationError(f"Unsupported frequency: {frequency}")
    return current_date + step
