"""
Reservation API endpoints.
"""

from typing import List, Literal

from fastapi import APIRouter, Depends, Query, status

from restaurant_pos.routers.deps import get_services
from restaurant_pos.schemas import (
    ErrorResponse,
    MessageResponse,
    ReservationCreate,
    ReservationDetail,
    ReservationResponse,
    ReservationUpdate,
)
from restaurant_pos.services import ServiceRegistry

router = APIRouter(prefix="/reservations", tags=["Reservations"])


@router.post(
    "",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_reservation(
    reservation: ReservationCreate,
    services: ServiceRegistry = Depends(get_services),
) -> ReservationResponse:
    """Book a table. The same table at the same time returns 409 ``double_booking``."""
    record = await services.reservations.create(reservation)
    return ReservationResponse.model_validate(record)


@router.get("", response_model=List[ReservationDetail])
async def list_reservations(
    sort_by: Literal["reservation_time", "status", "table", "customer_name"] = Query("reservation_time"),
    descending: bool = Query(False),
    services: ServiceRegistry = Depends(get_services),
) -> List[ReservationDetail]:
    rows = await services.reservations.list(sort_by=sort_by, descending=descending)
    return [ReservationDetail(**row) for row in rows]


@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: int,
    services: ServiceRegistry = Depends(get_services),
) -> ReservationResponse:
    return ReservationResponse.model_validate(await services.reservations.get(reservation_id))


@router.put("/{reservation_id}", response_model=ReservationResponse)
async def update_reservation(
    reservation_id: int,
    reservation: ReservationUpdate,
    services: ServiceRegistry = Depends(get_services),
) -> ReservationResponse:
    record = await services.reservations.update(reservation_id, reservation)
    return ReservationResponse.model_validate(record)


@router.delete("/{reservation_id}", response_model=MessageResponse)
async def delete_reservation(
    reservation_id: int,
    services: ServiceRegistry = Depends(get_services),
) -> MessageResponse:
    await services.reservations.delete(reservation_id)
    return MessageResponse(message=f"Reservation {reservation_id} deleted")
