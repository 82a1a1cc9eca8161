"""
Bill and payment API endpoints.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from restaurant_pos.models import BillStatus
from restaurant_pos.routers.deps import get_services
from restaurant_pos.schemas import (
    BillCreate,
    BillCreateResponse,
    BillDetailResponse,
    BillResponse,
    ErrorResponse,
    MessageResponse,
    PaymentCreate,
    PaymentResponse,
    SplitBillRequest,
    SplitBillResponse,
)
from restaurant_pos.services import ServiceRegistry
from restaurant_pos.services.billing import PaymentOutcome
from restaurant_pos.services.ledger_export import bill_snapshot
from restaurant_pos.tasks import export_bill_to_excel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bills", tags=["Bills"])


def queue_ledger_export(services: ServiceRegistry, outcome: PaymentOutcome) -> None:
    """Hand a freshly settled bill to the Celery ledger export."""
    if not outcome.settled or not services.settings.ledger_export_enabled:
        return
    try:
        export_bill_to_excel.delay(bill_snapshot(outcome.bill))
        logger.info(f"Bill #{outcome.bill.id} queued for ledger export")
    except Exception as e:
        # Payment is already committed
        logger.warning(f"Could not queue ledger export for bill #{outcome.bill.id}: {e}")


@router.post(
    "",
    response_model=BillCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Create Bill",
)
async def create_bill(
    bill_data: BillCreate,
    services: ServiceRegistry = Depends(get_services),
) -> BillCreateResponse:
    """Bill a whole order using its outlet's tax and service-charge rates."""
    bill = await services.billing.create_bill(bill_data.order_id, bill_data.discount_amount)
    return BillCreateResponse(message="Bill created", bill_id=bill.id)


@router.post(
    "/split",
    response_model=SplitBillResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Split Bill",
)
async def split_bill(
    split_request: SplitBillRequest,
    services: ServiceRegistry = Depends(get_services),
) -> SplitBillResponse:
    """
    Split an order's bill into several bills by line item.

    Every item id may appear in at most one split; a reused id or an
    original bill from another order returns 409 and creates nothing.
    """
    bills = await services.billing.create_split_bills(split_request)
    return SplitBillResponse(
        message=f"Created {len(bills)} split bill(s)",
        bill_ids=[bill.id for bill in bills],
    )


@router.post(
    "/pay",
    response_model=PaymentResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Record Payment",
)
async def pay_bill(
    payment: PaymentCreate,
    services: ServiceRegistry = Depends(get_services),
) -> PaymentResponse:
    """Record a payment and move the bill to ``partial`` or ``paid``."""
    outcome = await services.billing.record_payment(payment)
    queue_ledger_export(services, outcome)

    bill = outcome.bill
    return PaymentResponse(
        message="Payment recorded",
        payment_id=outcome.payment.id,
        bill_id=bill.id,
        status=bill.status,
        paid_amount=bill.paid_amount,
        balance_due=bill.balance_due,
    )


@router.get("", response_model=List[BillResponse])
async def list_bills(
    order_id: Optional[int] = Query(None, gt=0),
    status_filter: Optional[BillStatus] = Query(None, alias="status"),
    services: ServiceRegistry = Depends(get_services),
) -> List[BillResponse]:
    bills = await services.billing.list_bills(order_id=order_id, status=status_filter)
    return [BillResponse.model_validate(bill) for bill in bills]


@router.get("/{bill_id}", response_model=BillDetailResponse)
async def get_bill(
    bill_id: int,
    services: ServiceRegistry = Depends(get_services),
) -> BillDetailResponse:
    """Get one bill with its payment ledger and balance due."""
    bill = await services.billing.get_bill(bill_id)
    return BillDetailResponse.model_validate(bill)


@router.delete("/{bill_id}", response_model=MessageResponse)
async def delete_bill(
    bill_id: int,
    services: ServiceRegistry = Depends(get_services),
) -> MessageResponse:
    await services.billing.delete_bill(bill_id)
    return MessageResponse(message=f"Bill {bill_id} deleted")
