"""Tests for bills, split bills and the payment ledger."""

import asyncio

import pytest
from pydantic import ValidationError as PydanticValidationError

from restaurant_pos.core.errors import (
    DuplicateSplitItemError,
    NotFoundError,
    OrderMismatchError,
    OrderStateError,
    ValidationError,
)
from restaurant_pos.models import Bill, BillPayment, BillStatus, PaymentMethod
from restaurant_pos.schemas import PaymentCreate, SplitBillRequest


def pay(bill_id, amount, method=PaymentMethod.CASH, **extra) -> PaymentCreate:
    return PaymentCreate(bill_id=bill_id, payment_method=method, amount=amount, **extra)


@pytest.fixture
async def order(services, seeded, order_payload):
    """Pasta x2 at 10.0: subtotal 20."""
    return await services.orders.place_order(
        order_payload({"menu_item_id": seeded.pasta.id, "qty": 2, "unit_price": 10.0})
    )


@pytest.fixture
async def three_line_order(services, seeded, order_payload):
    return await services.orders.place_order(
        order_payload(
            {"menu_item_id": seeded.pasta.id, "qty": 1, "unit_price": 10.0},
            {"menu_item_id": seeded.pasta.id, "qty": 1, "unit_price": 12.0},
            {"menu_item_id": seeded.pizza.id, "qty": 2, "unit_price": 8.0},
        )
    )


class TestCreateBill:

    async def test_worked_example(self, services, order):
        bill = await services.billing.create_bill(order.id, discount_amount=2.0)

        assert bill.status == BillStatus.OPEN
        assert bill.subtotal == 20.0
        assert bill.service_charge == 1.0
        assert bill.tax_amount == 2.1
        assert bill.discount_amount == 2.0
        assert bill.total_amount == 21.1
        assert bill.paid_amount == 0.0
        assert bill.balance_due == 21.1
        assert bill.original_bill_id is None

    async def test_subtotal_uses_quantity(self, services, three_line_order):
        bill = await services.billing.create_bill(three_line_order.id)
        assert bill.subtotal == 38.0

    async def test_discount_floors_total_at_zero(self, services, order):
        bill = await services.billing.create_bill(order.id, discount_amount=500.0)
        assert bill.total_amount == 0.0

    async def test_bill_numbers_unique(self, services, order):
        first = await services.billing.create_bill(order.id)
        second = await services.billing.create_bill(order.id)
        assert first.bill_number != second.bill_number

    async def test_missing_order(self, services, seeded):
        with pytest.raises(NotFoundError):
            await services.billing.create_bill(9999)

    async def test_void_order_cannot_be_billed(self, services, order):
        await services.orders.void_order(order.id)

        with pytest.raises(OrderStateError):
            await services.billing.create_bill(order.id)


class TestSplitBill:

    async def test_split_by_items(self, services, three_line_order):
        original = await services.billing.create_bill(three_line_order.id)
        first, second, third = [item.id for item in three_line_order.items]

        bills = await services.billing.create_split_bills(
            SplitBillRequest(
                original_bill_id=original.id,
                original_order_id=three_line_order.id,
                splits=[
                    {"item_ids": [first, second], "discount_amount": 1.0},
                    {"item_ids": [third]},
                ],
            )
        )

        assert len(bills) == 2
        assert all(b.original_bill_id == original.id for b in bills)
        assert all(b.order_id == three_line_order.id for b in bills)
        assert bills[0].subtotal == 22.0
        assert bills[0].service_charge == 1.1
        assert bills[0].tax_amount == 2.31
        assert bills[0].total_amount == 24.41
        # Each named item counts once at its unit price, quantity is not reapplied
        assert bills[1].subtotal == 8.0

    async def test_duplicate_item_rejected(self, services, three_line_order, count_rows):
        original = await services.billing.create_bill(three_line_order.id)
        first, second, _ = [item.id for item in three_line_order.items]

        with pytest.raises(DuplicateSplitItemError) as exc_info:
            await services.billing.create_split_bills(
                SplitBillRequest(
                    original_bill_id=original.id,
                    original_order_id=three_line_order.id,
                    splits=[{"item_ids": [first, second]}, {"item_ids": [second]}],
                )
            )

        assert exc_info.value.order_item_id == second
        assert await count_rows(Bill) == 1

    async def test_order_mismatch_rejected(self, services, order, three_line_order, count_rows):
        original = await services.billing.create_bill(order.id)

        with pytest.raises(OrderMismatchError):
            await services.billing.create_split_bills(
                SplitBillRequest(
                    original_bill_id=original.id,
                    original_order_id=three_line_order.id,
                    splits=[{"item_ids": [three_line_order.items[0].id]}],
                )
            )

        assert await count_rows(Bill) == 1

    async def test_missing_original_bill(self, services, order):
        with pytest.raises(NotFoundError):
            await services.billing.create_split_bills(
                SplitBillRequest(
                    original_bill_id=9999,
                    original_order_id=order.id,
                    splits=[{"item_ids": [order.items[0].id]}],
                )
            )

    async def test_foreign_item_fails_every_split(self, services, order, three_line_order, count_rows):
        original = await services.billing.create_bill(three_line_order.id)

        with pytest.raises(NotFoundError):
            await services.billing.create_split_bills(
                SplitBillRequest(
                    original_bill_id=original.id,
                    original_order_id=three_line_order.id,
                    splits=[
                        {"item_ids": [three_line_order.items[0].id]},
                        {"item_ids": [order.items[0].id]},
                    ],
                )
            )

        assert await count_rows(Bill) == 1


class TestRecordPayment:

    async def test_partial_then_paid(self, services, order):
        bill = await services.billing.create_bill(order.id, discount_amount=2.0)

        outcome = await services.billing.record_payment(pay(bill.id, 10.0))
        assert outcome.bill.status == BillStatus.PARTIAL
        assert outcome.bill.paid_amount == 10.0
        assert outcome.bill.balance_due == 11.1
        assert outcome.settled is False

        outcome = await services.billing.record_payment(pay(bill.id, 11.1, PaymentMethod.CARD, reference_number="TX-1"))
        assert outcome.bill.status == BillStatus.PAID
        assert outcome.bill.paid_amount == pytest.approx(21.1)
        assert outcome.settled is True
        assert [p.amount for p in outcome.bill.payments] == [10.0, 11.1]

    async def test_paid_bill_stays_paid(self, services, order):
        bill = await services.billing.create_bill(order.id)
        await services.billing.record_payment(pay(bill.id, bill.total_amount))

        outcome = await services.billing.record_payment(pay(bill.id, 5.0))

        assert outcome.bill.status == BillStatus.PAID
        assert outcome.settled is False
        assert outcome.bill.paid_amount == pytest.approx(bill.total_amount + 5.0)

    async def test_payment_order_does_not_matter(self, services, order):
        amounts = [5.0, 10.0, 6.1]
        forward = await services.billing.create_bill(order.id, discount_amount=2.0)
        backward = await services.billing.create_bill(order.id, discount_amount=2.0)

        for amount in amounts:
            await services.billing.record_payment(pay(forward.id, amount))
        for amount in reversed(amounts):
            await services.billing.record_payment(pay(backward.id, amount))

        forward = await services.billing.get_bill(forward.id)
        backward = await services.billing.get_bill(backward.id)
        assert forward.paid_amount == pytest.approx(backward.paid_amount)
        assert forward.paid_amount == pytest.approx(21.1)
        assert forward.status == backward.status == BillStatus.PAID

    async def test_concurrent_payments_lose_nothing(self, services, order):
        bill = await services.billing.create_bill(order.id, discount_amount=2.0)

        await asyncio.gather(*[services.billing.record_payment(pay(bill.id, 2.0)) for _ in range(5)])

        bill = await services.billing.get_bill(bill.id)
        assert bill.paid_amount == pytest.approx(10.0)
        assert len(bill.payments) == 5
        assert bill.status == BillStatus.PARTIAL

    async def test_room_charge_needs_approver(self, services, seeded, order):
        bill = await services.billing.create_bill(order.id)

        with pytest.raises(ValidationError):
            await services.billing.record_payment(pay(bill.id, 5.0, PaymentMethod.ROOM_CHARGE))

        outcome = await services.billing.record_payment(
            pay(bill.id, 5.0, PaymentMethod.ROOM_CHARGE, room_charge_approved_by=seeded.manager.id)
        )
        assert outcome.payment.room_charge_approved_by == seeded.manager.id

    async def test_non_positive_amount_rejected(self, services, order, count_rows):
        bill = await services.billing.create_bill(order.id)
        payment = PaymentCreate.model_construct(
            bill_id=bill.id,
            payment_method=PaymentMethod.CASH,
            amount=0.0,
            reference_number=None,
            room_charge_approved_by=None,
        )

        with pytest.raises(ValidationError):
            await services.billing.record_payment(payment)

        assert await count_rows(BillPayment) == 0

    async def test_one_cent_short_stays_partial(self, services, order):
        bill = await services.billing.create_bill(order.id)

        outcome = await services.billing.record_payment(pay(bill.id, round(bill.total_amount - 0.01, 2)))

        assert outcome.bill.status == BillStatus.PARTIAL
        assert outcome.settled is False
        assert outcome.bill.balance_due == 0.01

    def test_sub_cent_amount_rejected_by_schema(self):
        with pytest.raises(PydanticValidationError):
            pay(1, 23.096)

    async def test_sub_cent_amount_cannot_settle(self, services, order, count_rows):
        bill = await services.billing.create_bill(order.id)
        payment = PaymentCreate.model_construct(
            bill_id=bill.id,
            payment_method=PaymentMethod.CASH,
            amount=bill.total_amount - 0.004,
            reference_number=None,
            room_charge_approved_by=None,
        )

        with pytest.raises(ValidationError):
            await services.billing.record_payment(payment)

        bill = await services.billing.get_bill(bill.id)
        assert bill.status == BillStatus.OPEN
        assert await count_rows(BillPayment) == 0

    async def test_missing_bill(self, services, seeded, count_rows):
        with pytest.raises(NotFoundError):
            await services.billing.record_payment(pay(9999, 5.0))

        assert await count_rows(BillPayment) == 0

    async def test_deleted_bill_rejects_payment(self, services, order, count_rows):
        bill = await services.billing.create_bill(order.id)
        await services.billing.delete_bill(bill.id)

        with pytest.raises(NotFoundError):
            await services.billing.record_payment(pay(bill.id, 5.0))

        assert await count_rows(BillPayment) == 0


class TestBillReads:

    async def test_list_filters(self, services, order):
        paid = await services.billing.create_bill(order.id)
        open_bill = await services.billing.create_bill(order.id)
        await services.billing.record_payment(pay(paid.id, paid.total_amount))

        bills = await services.billing.list_bills(status=BillStatus.PAID)
        assert [b.id for b in bills] == [paid.id]

        bills = await services.billing.list_order_bills(order.id)
        assert {b.id for b in bills} == {paid.id, open_bill.id}

    async def test_deleted_bill_hidden(self, services, order):
        bill = await services.billing.create_bill(order.id)
        await services.billing.delete_bill(bill.id)

        assert await services.billing.list_bills(order_id=order.id) == []
        with pytest.raises(NotFoundError):
            await services.billing.get_bill(bill.id)
        with pytest.raises(NotFoundError):
            await services.billing.delete_bill(bill.id)

    async def test_bills_for_missing_order(self, services, seeded):
        with pytest.raises(NotFoundError):
            await services.billing.list_order_bills(9999)
