import pytest

from quotepay.contracts import TERMINAL_STATUSES, PaymentStatus, is_terminal_status
from quotepay.errors import IntegrationResponseError, TransientError


@pytest.mark.asyncio
async def test_created_payment_mirrors_quote_total(gateway, make_quote, clock):
    quote = make_quote(discount_pct=10, tax_pct=21)

    created = await gateway.create_payment(quote.id)

    assert created.payment_id.startswith("PAY-")
    assert created.amount == 2723
    assert created.gateway.qr_code_data.endswith(created.payment_id)


@pytest.mark.asyncio
async def test_scripted_statuses_repeat_the_last_one(gateway, make_quote):
    created = await gateway.create_payment(make_quote().id)
    gateway.script_statuses(created.payment_id, [PaymentStatus.PENDING, PaymentStatus.REJECTED])

    seen = [(await gateway.get_payment_status(created.payment_id)).status for _ in range(3)]

    assert seen == [PaymentStatus.PENDING, PaymentStatus.REJECTED, PaymentStatus.REJECTED]
    assert gateway.status_calls[created.payment_id] == 3


@pytest.mark.asyncio
async def test_injected_failures_are_consumed(gateway, make_quote):
    gateway.fail_next(1, operation="create")
    with pytest.raises(TransientError):
        await gateway.create_payment(make_quote().id)
    created = await gateway.create_payment(make_quote().id)
    assert gateway.create_calls == 2
    assert created.amount == 2500


@pytest.mark.asyncio
async def test_cancel_does_not_override_terminal_status(gateway, make_quote):
    created = await gateway.create_payment(make_quote().id)
    gateway.set_status(created.payment_id, PaymentStatus.APPROVED)

    await gateway.cancel_payment(created.payment_id)

    report = await gateway.get_payment_status(created.payment_id)
    assert report.status is PaymentStatus.APPROVED


@pytest.mark.asyncio
async def test_unknown_payment_is_a_404(gateway):
    with pytest.raises(IntegrationResponseError) as exc:
        await gateway.get_payment_status("PAY-NOPE")
    assert exc.value.status_code == 404


def test_unknown_failure_operation(gateway):
    with pytest.raises(ValueError):
        gateway.fail_next(1, operation="refund")


@pytest.mark.parametrize(
    "status, terminal",
    [
        (PaymentStatus.PENDING, False),
        (PaymentStatus.APPROVED, True),
        ("rejected", True),
        ("cancelled", True),
        ("pending", False),
    ],
)
def test_is_terminal_status(status, terminal):
    assert is_terminal_status(status) is terminal


def test_terminal_statuses_exclude_pending():
    assert PaymentStatus.PENDING not in TERMINAL_STATUSES
    assert all(status.is_terminal for status in TERMINAL_STATUSES)


@pytest.mark.asyncio
async def test_cancel_moves_pending_payment_to_cancelled(gateway, make_quote):
    created = await gateway.create_payment(make_quote().id)

    await gateway.cancel_payment(created.payment_id)

    report = await gateway.get_payment_status(created.payment_id)
    assert report.status is PaymentStatus.CANCELLED
    assert gateway.cancel_calls[created.payment_id] == 1
