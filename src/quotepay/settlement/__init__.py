"""
Settlement core.

- calculator: quote totals in integer minor units
- expiration: remaining validity and urgency
- orchestrator: the payment state machine, sole owner of payment state
- poller: periodic reconciliation of pending payments

Nothing in here talks to the network directly; gateways are injected.
"""

from .calculator import compute_totals, round_half_up, to_minor_units
from .expiration import (
    PAYMENT_THRESHOLDS,
    QUOTE_THRESHOLDS,
    ExpirationStatus,
    UrgencyThresholds,
    format_time_left,
    payment_time_left,
    quote_time_left,
    time_until,
)
from .orchestrator import PaymentOrchestrator
from .poller import DEFAULT_POLL_INTERVAL_MS, PollerHandle, ReconciliationPoller

__all__ = [
    "compute_totals", "round_half_up", "to_minor_units",
    "PAYMENT_THRESHOLDS", "QUOTE_THRESHOLDS", "ExpirationStatus", "UrgencyThresholds",
    "format_time_left", "payment_time_left", "quote_time_left", "time_until",
    "PaymentOrchestrator",
    "DEFAULT_POLL_INTERVAL_MS", "PollerHandle", "ReconciliationPoller",
]
