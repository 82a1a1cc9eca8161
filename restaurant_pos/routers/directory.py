"""
Outlet, table, staff, customer and visit endpoints.

All five are the same create/list/get/update/delete surface over a
``CrudService``, so the routers come from one factory.
"""

from typing import Callable, List

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from restaurant_pos.routers.deps import get_services
from restaurant_pos.schemas import (
    CustomerCreate,
    CustomerResponse,
    CustomerUpdate,
    MessageResponse,
    OutletCreate,
    OutletResponse,
    OutletUpdate,
    StaffCreate,
    StaffResponse,
    StaffUpdate,
    TableCreate,
    TableResponse,
    TableUpdate,
    VisitCreate,
    VisitResponse,
    VisitUpdate,
)
from restaurant_pos.services import ServiceRegistry
from restaurant_pos.services.base import CrudService


def crud_router(
    prefix: str,
    label: str,
    pick: Callable[[ServiceRegistry], CrudService],
    create_schema: type[BaseModel],
    update_schema: type[BaseModel],
    response_schema: type[BaseModel],
) -> APIRouter:
    """
    Build the five CRUD routes for one directory resource.

    Args:
        prefix: URL prefix, e.g. "/outlets"
        label: Human name used in messages and OpenAPI tags
        pick: Selects the resource's CrudService from the registry
        create_schema: Request body for POST
        update_schema: Request body for PUT (only sent fields change)
        response_schema: Response model for reads and writes
    """
    router = APIRouter(prefix=prefix, tags=[f"{label}s"])

    def get_service(services: ServiceRegistry = Depends(get_services)) -> CrudService:
        return pick(services)

    @router.post("", response_model=response_schema, status_code=status.HTTP_201_CREATED)
    async def create(payload: create_schema, service: CrudService = Depends(get_service)):
        record = await service.create(payload.model_dump())
        return response_schema.model_validate(record)

    @router.get("", response_model=List[response_schema])
    async def list_all(service: CrudService = Depends(get_service)):
        return [response_schema.model_validate(r) for r in await service.list()]

    @router.get("/{record_id}", response_model=response_schema)
    async def get_one(record_id: int, service: CrudService = Depends(get_service)):
        return response_schema.model_validate(await service.get(record_id))

    @router.put("/{record_id}", response_model=response_schema)
    async def update(record_id: int, payload: update_schema, service: CrudService = Depends(get_service)):
        record = await service.update(record_id, payload.model_dump(exclude_unset=True))
        return response_schema.model_validate(record)

    @router.delete("/{record_id}", response_model=MessageResponse)
    async def delete(record_id: int, service: CrudService = Depends(get_service)):
        await service.delete(record_id)
        return MessageResponse(message=f"{label} {record_id} deleted")

    return router


outlet_router = crud_router(
    "/outlets", "Outlet", lambda s: s.directory.outlets,
    OutletCreate, OutletUpdate, OutletResponse,
)
table_router = crud_router(
    "/tables", "Table", lambda s: s.directory.tables,
    TableCreate, TableUpdate, TableResponse,
)
staff_router = crud_router(
    "/staff", "Staff", lambda s: s.directory.staff,
    StaffCreate, StaffUpdate, StaffResponse,
)
customer_router = crud_router(
    "/customers", "Customer", lambda s: s.directory.customers,
    CustomerCreate, CustomerUpdate, CustomerResponse,
)
visit_router = crud_router(
    "/visits", "Visit", lambda s: s.directory.visits,
    VisitCreate, VisitUpdate, VisitResponse,
)
