#!/usr/bin/env python3
"""
Run a full quote -> payment -> reconciliation flow and print each stage to the terminal.
Uses the mock gateway unless QUOTEPAY_INTEGRATIONS_MODE=real.

Usage (from repo root):
  python scripts/run_settlement_demo.py
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from quotepay.contracts import Customer, PaymentStatus, ProductSnapshot, QuoteItem
from quotepay.database import InMemoryQuoteStore
from quotepay.error_handler import ErrorHandler
from quotepay.errors import SettlementError
from quotepay.integrations import MockPaymentGateway, build_gateway
from quotepay.settlement import (
    PaymentOrchestrator,
    ReconciliationPoller,
    format_time_left,
    quote_time_left,
)
from quotepay.utils.config_loader import load_settlement_config


def setup_logging():
    """Log to terminal at INFO so every stage is visible."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
    )


def print_stage(title: str, data: dict | list | str):
    """Print a stage header and data to the terminal."""
    print("\n" + "=" * 60)
    print(f"  {title}")
    print("=" * 60)
    if isinstance(data, (dict, list)):
        print(json.dumps(data, indent=2, default=str))
    else:
        print(data)
    print()


async def main():
    setup_logging()
    config = load_settlement_config()

    quotes = InMemoryQuoteStore(validity=config.quotes.validity)
    gateway = build_gateway(config, quotes)
    orchestrator = PaymentOrchestrator(
        gateway, quotes, thresholds=config.expiration.payment_thresholds()
    )
    errors = ErrorHandler()

    # --- Quote ---
    quote = quotes.create_quote(
        Customer(name="Demo Customer", email="demo@example.com"),
        [
            QuoteItem(ProductSnapshot(name="Widget", unit_price=1000, product_id="W-1"), 2),
            QuoteItem(ProductSnapshot(name="Gadget", unit_price=500, product_id="G-1"), 1),
        ],
        discount_pct=10,
        tax_pct=21,
    )
    validity = quote_time_left(quote, thresholds=config.expiration.quote_thresholds())
    print_stage(
        "QUOTE CREATED",
        {
            "quote_number": quote.quote_number,
            "totals": asdict(quote.totals),
            "valid_for": format_time_left(validity),
            "urgency": validity.urgency.value,
        },
    )

    # --- Payment ---
    try:
        payment = await orchestrator.create(quote.id)
    except SettlementError as exc:
        print_stage("PAYMENT FAILED", errors.handle_exception(exc, {"quote_id": quote.id}))
        return
    print_stage(
        "PAYMENT CREATED",
        {
            "payment_id": payment.id,
            "amount": payment.amount,
            "expires_in": format_time_left(orchestrator.expiration(payment.id)),
            "checkout": payment.gateway.init_point,
        },
    )

    if isinstance(gateway, MockPaymentGateway):
        # Two pending answers, one timeout, then approval.
        gateway.script_statuses(
            payment.id, [PaymentStatus.PENDING, PaymentStatus.PENDING, PaymentStatus.APPROVED]
        )
        gateway.fail_next(1)
        interval_ms = 200
    else:
        interval_ms = config.polling.interval_ms

    # --- Reconciliation ---
    poller = ReconciliationPoller(orchestrator, interval_ms=interval_ms)
    handle = poller.start(
        payment.id,
        on_update=lambda p: print_stage("STATUS UPDATE", {"status": p.status.label}),
        on_terminal=lambda p: print_stage("PAYMENT SETTLED", {"status": p.status.label, "settled_at": p.settled_at}),
        on_warning=lambda exc: print_stage("WARNING", errors.handle_exception(exc, {"payment_id": payment.id})),
        on_expired=lambda p: print_stage("PAYMENT EXPIRED", {"payment_id": p.id}),
    )
    await handle.wait()

    final_quote = quotes.get_quote(quote.id)
    print_stage(
        "FINAL QUOTE",
        {"quote_number": final_quote.quote_number, "status": final_quote.status.label, "ticks": handle.tick_count},
    )


if __name__ == "__main__":
    asyncio.run(main())
