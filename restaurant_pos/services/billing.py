"""
Billing Engine

Bills for whole orders and for splits of their items, and the payment
ledger that settles them.

Money formula (same for whole and split bills):
    service_charge = subtotal * service% / 100
    tax            = (subtotal + service_charge) * tax% / 100
    total          = max(0, subtotal + service_charge + tax - discount)

Each component is rounded to cents.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from restaurant_pos.core.errors import (
    DuplicateSplitItemError,
    NotFoundError,
    OrderMismatchError,
    OrderStateError,
    ValidationError,
)
from restaurant_pos.database import Database
from restaurant_pos.models import (
    Bill,
    BillPayment,
    BillStatus,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    Staff,
)
from restaurant_pos.schemas import PaymentCreate, SplitBillRequest, is_whole_cents
from restaurant_pos.services.base import live, require_live
from restaurant_pos.services.outlets import OutletConfigProvider, OutletRates

logger = logging.getLogger(__name__)

# Payments are whole cents; this only absorbs float drift in their sum
HALF_CENT = 0.005


# =============================================================================
# PRICING
# =============================================================================

@dataclass(frozen=True)
class BillAmounts:
    subtotal: float
    service_charge: float
    tax_amount: float
    discount_amount: float
    total_amount: float


def calculate_bill_amounts(
    subtotal: float,
    tax_percentage: float,
    service_charge_percentage: float,
    discount: float = 0.0,
) -> BillAmounts:
    """
    Apply outlet rates and a discount to a subtotal.

    Args:
        subtotal: Sum of priced lines
        tax_percentage: Outlet tax rate, e.g. 10 for 10%
        service_charge_percentage: Outlet service rate
        discount: Flat amount taken off the grand total

    Returns:
        BillAmounts with total never below zero
    """
    subtotal = round(subtotal, 2)
    service_charge = round(subtotal * service_charge_percentage / 100, 2)
    tax_amount = round((subtotal + service_charge) * tax_percentage / 100, 2)
    total = round(max(0.0, subtotal + service_charge + tax_amount - discount), 2)

    return BillAmounts(
        subtotal=subtotal,
        service_charge=service_charge,
        tax_amount=tax_amount,
        discount_amount=round(discount, 2),
        total_amount=total,
    )


def generate_bill_number() -> str:
    return str(uuid.uuid4())


@dataclass
class PaymentOutcome:
    payment: BillPayment
    bill: Bill
    settled: bool  # this payment moved the bill to PAID


class BillingEngine:
    """Bill creation, split billing and payment recording."""

    def __init__(self, db: Database, outlets: OutletConfigProvider):
        self.db = db
        self.outlets = outlets

    async def _billable_order(self, session: AsyncSession, order_id: int) -> Order:
        order = await session.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        if order.status == OrderStatus.VOID:
            raise OrderStateError(f"Order {order_id} is void and cannot be billed")
        return order

    def _new_bill(
        self,
        order_id: int,
        amounts: BillAmounts,
        original_bill_id: Optional[int] = None,
    ) -> Bill:
        return Bill(
            bill_number=generate_bill_number(),
            order_id=order_id,
            original_bill_id=original_bill_id,
            status=BillStatus.OPEN,
            subtotal=amounts.subtotal,
            service_charge=amounts.service_charge,
            tax_amount=amounts.tax_amount,
            discount_amount=amounts.discount_amount,
            total_amount=amounts.total_amount,
            paid_amount=0.0,
        )

    @staticmethod
    def _apply(rates: OutletRates, subtotal: float, discount: float) -> BillAmounts:
        return calculate_bill_amounts(
            subtotal,
            rates.tax_percentage,
            rates.service_charge_percentage,
            discount,
        )

    # =========================================================================
    # BILL CREATION
    # =========================================================================

    async def create_bill(self, order_id: int, discount_amount: float = 0.0) -> Bill:
        """Bill a whole order: subtotal is the sum of quantity x captured unit price."""
        if discount_amount < 0:
            raise ValidationError("discount_amount cannot be negative")

        async with self.db.transaction() as session:
            order = await self._billable_order(session, order_id)
            result = await session.execute(
                select(OrderItem.quantity, OrderItem.unit_price).where(OrderItem.order_id == order_id)
            )
            subtotal = sum(row.quantity * row.unit_price for row in result.all())

            rates = await self.outlets.get_rates(session, order.outlet_id)
            amounts = self._apply(rates, subtotal, discount_amount)

            bill = self._new_bill(order_id, amounts)
            session.add(bill)
            await session.flush()

        logger.info(
            f"Bill #{bill.id} for order #{order_id}: subtotal {amounts.subtotal:.2f}, "
            f"service {amounts.service_charge:.2f}, tax {amounts.tax_amount:.2f}, "
            f"discount {amounts.discount_amount:.2f}, total {amounts.total_amount:.2f}"
        )
        return bill

    async def create_split_bills(self, request: SplitBillRequest) -> list[Bill]:
        """
        Create one bill per split of an already-billed order, all or nothing.

        Each named order item contributes its captured unit price once.

        Raises:
            DuplicateSplitItemError: an item id appears in two splits
            NotFoundError: original bill missing, or an item not on the order
            OrderMismatchError: original bill belongs to another order
        """
        seen: set[int] = set()
        for split in request.splits:
            for item_id in split.item_ids:
                if item_id in seen:
                    logger.warning(
                        f"Split of bill #{request.original_bill_id} rejected: "
                        f"item {item_id} assigned twice"
                    )
                    raise DuplicateSplitItemError(item_id)
                seen.add(item_id)

        async with self.db.transaction() as session:
            original = await require_live(session, Bill, request.original_bill_id, "Bill")
            if original.order_id != request.original_order_id:
                raise OrderMismatchError(
                    original.id, request.original_order_id, original.order_id
                )

            order = await self._billable_order(session, request.original_order_id)
            rates = await self.outlets.get_rates(session, order.outlet_id)

            bills: list[Bill] = []
            for split in request.splits:
                result = await session.execute(
                    select(OrderItem.id, OrderItem.unit_price).where(
                        OrderItem.id.in_(split.item_ids),
                        OrderItem.order_id == order.id,
                    )
                )
                prices = {row.id: row.unit_price for row in result.all()}
                missing = [item_id for item_id in split.item_ids if item_id not in prices]
                if missing:
                    raise NotFoundError("Order item", missing[0])

                amounts = self._apply(rates, sum(prices.values()), split.discount_amount)
                bill = self._new_bill(order.id, amounts, original_bill_id=original.id)
                session.add(bill)
                bills.append(bill)

            await session.flush()

        logger.info(
            f"Bill #{request.original_bill_id} split into "
            f"{[bill.id for bill in bills]} for order #{request.original_order_id}"
        )
        return bills

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    async def record_payment(self, payment: PaymentCreate) -> PaymentOutcome:
        """
        Append a payment and settle it against its bill.

        The paid amount and status are recomputed by one UPDATE evaluated in
        the store, so concurrent payments on a bill never lose an increment.
        Status only moves forward: open -> partial -> paid.

        Raises:
            ValidationError: non-positive or sub-cent amount, or room charge without approver
            NotFoundError: bill missing or deleted, approver unknown
        """
        if payment.amount <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        if not is_whole_cents(payment.amount):
            raise ValidationError("Payment amount must be a whole number of cents")
        if payment.payment_method == PaymentMethod.ROOM_CHARGE and payment.room_charge_approved_by is None:
            raise ValidationError("Room charge payments require room_charge_approved_by")

        async with self.db.transaction() as session:
            await require_live(session, Bill, payment.bill_id, "Bill")
            if payment.room_charge_approved_by is not None:
                await require_live(session, Staff, payment.room_charge_approved_by, "Staff")

            entry = BillPayment(
                bill_id=payment.bill_id,
                payment_method=payment.payment_method,
                amount=payment.amount,
                reference_number=payment.reference_number,
                room_charge_approved_by=payment.room_charge_approved_by,
            )
            session.add(entry)
            await session.flush()

            new_paid = Bill.paid_amount + payment.amount
            result = await session.execute(
                update(Bill)
                .where(Bill.id == payment.bill_id, Bill.is_deleted.is_(False))
                .values(
                    paid_amount=new_paid,
                    status=case(
                        (new_paid >= Bill.total_amount - HALF_CENT, BillStatus.PAID.value),
                        (new_paid > 0, BillStatus.PARTIAL.value),
                        else_=Bill.status,
                    ),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise NotFoundError("Bill", payment.bill_id)

            bill = await self._load(session, payment.bill_id)
            paid_before = bill.paid_amount - payment.amount
            settled = bill.status == BillStatus.PAID and paid_before < bill.total_amount - HALF_CENT

        logger.info(
            f"Payment #{entry.id} of {payment.amount:.2f} ({payment.payment_method.value}) "
            f"on bill #{bill.id}: paid {bill.paid_amount:.2f}/{bill.total_amount:.2f}, "
            f"status {bill.status.value}"
        )
        return PaymentOutcome(payment=entry, bill=bill, settled=settled)

    # =========================================================================
    # READS & TOMBSTONE
    # =========================================================================

    async def _load(self, session: AsyncSession, bill_id: int) -> Bill:
        result = await session.execute(
            live(Bill)
            .where(Bill.id == bill_id)
            .options(selectinload(Bill.payments))
            .execution_options(populate_existing=True)
        )
        bill = result.scalar_one_or_none()
        if bill is None:
            raise NotFoundError("Bill", bill_id)
        return bill

    async def get_bill(self, bill_id: int) -> Bill:
        async with self.db.transaction() as session:
            return await self._load(session, bill_id)

    async def list_bills(
        self,
        order_id: Optional[int] = None,
        status: Optional[BillStatus] = None,
    ) -> list[Bill]:
        stmt = live(Bill)
        if order_id is not None:
            stmt = stmt.where(Bill.order_id == order_id)
        if status is not None:
            stmt = stmt.where(Bill.status == status)

        async with self.db.transaction() as session:
            result = await session.execute(stmt.order_by(Bill.id))
            return list(result.scalars().all())

    async def list_order_bills(self, order_id: int) -> list[Bill]:
        async with self.db.transaction() as session:
            if await session.get(Order, order_id) is None:
                raise NotFoundError("Order", order_id)
        return await self.list_bills(order_id=order_id)

    async def delete_bill(self, bill_id: int) -> None:
        async with self.db.transaction() as session:
            bill = await require_live(session, Bill, bill_id, "Bill")
            bill.is_deleted = True
        logger.info(f"Bill #{bill_id} deleted")


def summarize_payments(payments: Sequence[BillPayment]) -> dict[str, float]:
    """Total paid per payment method."""
    totals: dict[str, float] = {}
    for p in payments:
        method = p.payment_method.value
        totals[method] = round(totals.get(method, 0.0) + p.amount, 2)
    return totals
