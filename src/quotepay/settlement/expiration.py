"""
Remaining validity and urgency for anything with a deadline.

Quotes and payments share the same three-tier shape and differ only in their
thresholds, so both go through time_until().
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from quotepay.contracts.interfaces import Payment, Quote, Urgency, as_aware, utcnow


@dataclass(frozen=True)
class UrgencyThresholds:
    high: timedelta      # remaining <= high   -> Urgency.HIGH
    medium: timedelta    # remaining <= medium -> Urgency.MEDIUM

    def __post_init__(self) -> None:
        if self.high > self.medium:
            raise ValueError("high threshold must not exceed medium threshold")


QUOTE_THRESHOLDS = UrgencyThresholds(high=timedelta(days=1), medium=timedelta(days=3))
PAYMENT_THRESHOLDS = UrgencyThresholds(high=timedelta(hours=1), medium=timedelta(hours=3))


@dataclass(frozen=True)
class ExpirationStatus:
    expired: bool
    time_left: Optional[timedelta]      # None when there is no deadline
    urgency: Urgency


def time_until(
    now: datetime,
    expires_at: Optional[datetime],
    thresholds: UrgencyThresholds = QUOTE_THRESHOLDS,
) -> ExpirationStatus:
    if expires_at is None:
        return ExpirationStatus(expired=False, time_left=None, urgency=Urgency.LOW)

    remaining = as_aware(expires_at) - as_aware(now)
    if remaining <= timedelta(0):
        return ExpirationStatus(expired=True, time_left=timedelta(0), urgency=Urgency.HIGH)

    if remaining <= thresholds.high:
        urgency = Urgency.HIGH
    elif remaining <= thresholds.medium:
        urgency = Urgency.MEDIUM
    else:
        urgency = Urgency.LOW
    return ExpirationStatus(expired=False, time_left=remaining, urgency=urgency)


def quote_time_left(
    quote: Quote,
    now: Optional[datetime] = None,
    thresholds: UrgencyThresholds = QUOTE_THRESHOLDS,
) -> ExpirationStatus:
    return time_until(now or utcnow(), quote.expires_at, thresholds)


def payment_time_left(
    payment: Payment,
    now: Optional[datetime] = None,
    thresholds: UrgencyThresholds = PAYMENT_THRESHOLDS,
) -> ExpirationStatus:
    return time_until(now or utcnow(), payment.expires_at, thresholds)


def format_time_left(status: ExpirationStatus) -> str:
    if status.expired:
        return "Expired"
    if status.time_left is None:
        return "No limit"

    total_minutes = int(status.time_left.total_seconds() // 60)
    days, rest = divmod(total_minutes, 60 * 24)
    hours, minutes = divmod(rest, 60)

    if days:
        return _plural(days, "day")
    if hours:
        return f"{hours}h {minutes}m" if minutes else _plural(hours, "hour")
    return _plural(minutes, "minute")


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"
