"""
Table transfer API endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from restaurant_pos.routers.deps import get_services
from restaurant_pos.schemas import (
    CreatedResponse,
    ErrorResponse,
    MessageResponse,
    TableTransferCreate,
    TableTransferResponse,
    TableTransferUpdate,
)
from restaurant_pos.services import ServiceRegistry

router = APIRouter(prefix="/table-transfer", tags=["Table Transfers"])


@router.post(
    "",
    response_model=CreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Transfer Order To Another Table",
)
async def create_transfer(
    transfer: TableTransferCreate,
    services: ServiceRegistry = Depends(get_services),
) -> CreatedResponse:
    """Record the move and re-point the order in one transaction."""
    record = await services.transfers.transfer(transfer)
    return CreatedResponse(message="Order transferred", id=record.id)


@router.get("", response_model=List[TableTransferResponse])
async def list_transfers(
    order_id: Optional[int] = Query(None, gt=0),
    services: ServiceRegistry = Depends(get_services),
) -> List[TableTransferResponse]:
    records = await services.transfers.list_transfers(order_id=order_id)
    return [TableTransferResponse.model_validate(r) for r in records]


@router.get("/{transfer_id}", response_model=TableTransferResponse)
async def get_transfer(
    transfer_id: int,
    services: ServiceRegistry = Depends(get_services),
) -> TableTransferResponse:
    record = await services.transfers.get_transfer(transfer_id)
    return TableTransferResponse.model_validate(record)


@router.put("/{transfer_id}", response_model=TableTransferResponse)
async def update_transfer(
    transfer_id: int,
    transfer: TableTransferUpdate,
    services: ServiceRegistry = Depends(get_services),
) -> TableTransferResponse:
    """Correct a transfer; the order follows the corrected destination."""
    record = await services.transfers.update_transfer(transfer_id, transfer)
    return TableTransferResponse.model_validate(record)


@router.delete("/{transfer_id}", response_model=MessageResponse)
async def delete_transfer(
    transfer_id: int,
    services: ServiceRegistry = Depends(get_services),
) -> MessageResponse:
    """Delete the record only; the order stays at its current table."""
    await services.transfers.delete_transfer(transfer_id)
    return MessageResponse(message=f"Table transfer {transfer_id} deleted")
