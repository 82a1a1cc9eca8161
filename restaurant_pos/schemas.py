"""
Pydantic Schemas for Request/Response Validation

Shape-level validation (required fields, numeric ids, positive quantities,
non-negative money) happens here, before any transaction is opened.
Business rules that need the store live in the services.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)

from restaurant_pos.models import (
    BillStatus,
    MovementReason,
    OrderStatus,
    OrderType,
    PaymentMethod,
)


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# GENERIC RESPONSES
# =============================================================================

class MessageResponse(BaseModel):
    success: bool = True
    message: str


class CreatedResponse(MessageResponse):
    id: int


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    timestamp: datetime


# =============================================================================
# ORDERS
# =============================================================================

class OrderItemCreate(BaseModel):
    """Single line in an order. unit_price is captured as supplied."""
    menu_item_id: int = Field(..., gt=0, examples=[7])
    qty: float = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("qty", "quantity"),
        examples=[2],
    )
    notes: Optional[str] = Field(None, max_length=500)
    unit_price: float = Field(..., ge=0, examples=[10.0])
    excluded_ingredient_ids: List[int] = Field(
        default_factory=list,
        validation_alias=AliasChoices("excluded_ingredient_ids", "excluded_ingredients"),
    )

    @field_validator("excluded_ingredient_ids")
    @classmethod
    def dedupe_exclusions(cls, v: List[int]) -> List[int]:
        return list(dict.fromkeys(v))


class OrderCreate(BaseModel):
    """Request schema for placing a new order."""
    table_id: Optional[int] = Field(None, gt=0)
    customer_id: Optional[int] = Field(None, gt=0)
    waiter_id: Optional[int] = Field(None, gt=0)
    outlet_id: int = Field(..., gt=0)
    hotel_room: Optional[str] = Field(None, max_length=20)
    order_type: OrderType = Field(default=OrderType.DINE_IN)
    status: OrderStatus = Field(default=OrderStatus.OPEN)
    items: List[OrderItemCreate] = Field(..., min_length=1)

    @field_validator("status")
    @classmethod
    def reject_void(cls, v: OrderStatus) -> OrderStatus:
        if v == OrderStatus.VOID:
            raise ValueError("An order cannot be created void")
        return v


class OrderUpdate(BaseModel):
    """Plain field update. Only the fields present in the body change."""
    table_id: Optional[int] = Field(None, gt=0)
    customer_id: Optional[int] = Field(None, gt=0)
    hotel_room: Optional[str] = Field(None, max_length=20)
    waiter_id: Optional[int] = Field(None, gt=0)
    outlet_id: Optional[int] = Field(None, gt=0)
    status: Optional[OrderStatus] = None
    order_type: Optional[OrderType] = None


class OrderItemResponse(ORMModel):
    id: int
    menu_item_id: int
    qty: float = Field(validation_alias=AliasChoices("qty", "quantity"))
    notes: Optional[str]
    unit_price: float
    excluded_ingredient_ids: List[int]
    line_total: float


class OrderResponse(ORMModel):
    id: int
    order_number: str
    table_id: Optional[int]
    customer_id: Optional[int]
    hotel_room: Optional[str]
    waiter_id: Optional[int]
    outlet_id: int
    status: OrderStatus
    order_type: OrderType
    items: List[OrderItemResponse]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @computed_field
    @property
    def subtotal(self) -> float:
        return round(sum(item.qty * item.unit_price for item in self.items), 2)


class OrderCreateResponse(BaseModel):
    success: bool = True
    message: str
    id: int
    order_number: str


class OrderItemAddResponse(BaseModel):
    success: bool = True
    message: str
    order_id: int
    order_item_id: int


class OrderListResponse(BaseModel):
    total: int
    orders: List[OrderResponse]


class VoidOrderResponse(BaseModel):
    success: bool = True
    message: str
    order_id: int
    restocked: bool


# =============================================================================
# BILLS
# =============================================================================

def is_whole_cents(value: float) -> bool:
    """True when a money amount has no fraction of a cent."""
    return abs(value * 100 - round(value * 100)) < 1e-6


class BillCreate(BaseModel):
    order_id: int = Field(..., gt=0)
    discount_amount: float = Field(default=0.0, ge=0)


class SplitItem(BaseModel):
    item_ids: List[int] = Field(..., min_length=1)
    discount_amount: float = Field(default=0.0, ge=0)


class SplitBillRequest(BaseModel):
    original_bill_id: int = Field(..., gt=0)
    original_order_id: int = Field(..., gt=0)
    splits: List[SplitItem] = Field(..., min_length=1)


class PaymentCreate(BaseModel):
    bill_id: int = Field(..., gt=0)
    payment_method: PaymentMethod
    amount: float = Field(..., gt=0)
    reference_number: Optional[str] = Field(None, max_length=100)
    room_charge_approved_by: Optional[int] = Field(None, gt=0)

    @field_validator("amount")
    @classmethod
    def whole_cents(cls, v: float) -> float:
        if not is_whole_cents(v):
            raise ValueError("amount must be a whole number of cents")
        return round(v, 2)


class BillPaymentResponse(ORMModel):
    id: int
    bill_id: int
    payment_method: PaymentMethod
    amount: float
    reference_number: Optional[str]
    room_charge_approved_by: Optional[int]
    paid_at: Optional[datetime]


class BillResponse(ORMModel):
    id: int
    bill_number: str
    order_id: int
    original_bill_id: Optional[int]
    status: BillStatus
    subtotal: float
    tax_amount: float
    service_charge: float
    discount_amount: float
    total_amount: float
    paid_amount: float
    balance_due: float
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class BillDetailResponse(BillResponse):
    payments: List[BillPaymentResponse]


class BillCreateResponse(BaseModel):
    success: bool = True
    message: str
    bill_id: int


class SplitBillResponse(BaseModel):
    success: bool = True
    message: str
    bill_ids: List[int]


class PaymentResponse(BaseModel):
    success: bool = True
    message: str
    payment_id: int
    bill_id: int
    status: BillStatus
    paid_amount: float
    balance_due: float


# =============================================================================
# TABLE TRANSFERS
# =============================================================================

class TableTransferCreate(BaseModel):
    order_id: int = Field(..., gt=0)
    from_table_id: int = Field(..., gt=0)
    to_table_id: int = Field(..., gt=0)
    transferred_by: int = Field(..., gt=0)
    reason: Optional[str] = Field(None, max_length=500)


class TableTransferUpdate(TableTransferCreate):
    pass


class TableTransferResponse(ORMModel):
    id: int
    order_id: int
    from_table_id: int
    to_table_id: int
    transferred_by: int
    reason: Optional[str]
    transferred_at: Optional[datetime]


# =============================================================================
# CATALOG
# =============================================================================

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class CategoryResponse(ORMModel):
    id: int
    name: str
    created_at: Optional[datetime]


class MenuItemCreate(BaseModel):
    category_id: Optional[int] = Field(None, gt=0)
    sku: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    cost: float = Field(default=0.0, ge=0)
    is_active: bool = True
    preparation_time: Optional[int] = Field(None, ge=0)
    tags: List[str] = Field(default_factory=list)


class MenuItemUpdate(BaseModel):
    category_id: Optional[int] = Field(None, gt=0)
    sku: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    cost: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None
    preparation_time: Optional[int] = Field(None, ge=0)
    tags: Optional[List[str]] = None


class MenuItemResponse(ORMModel):
    id: int
    category_id: Optional[int]
    sku: str
    name: str
    description: Optional[str]
    price: float
    cost: float
    is_active: bool
    preparation_time: Optional[int]
    tags: List[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class RecipeLineDetail(BaseModel):
    menu_ingredient_id: int
    ingredient_id: int
    name: str
    unit: str
    quantity: float
    is_allergen: bool
    is_removable: bool
    is_default: bool


class MenuItemDetailResponse(MenuItemResponse):
    recipe: List[RecipeLineDetail]


class IngredientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    quantity: float = Field(default=0.0, ge=0)
    unit: str = Field(default="pcs", max_length=20)
    is_allergen: bool = False
    is_active: bool = True
    description: Optional[str] = None


class IngredientUpdate(BaseModel):
    """Stock level is changed only through orders or an explicit adjustment."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    unit: Optional[str] = Field(None, max_length=20)
    is_allergen: Optional[bool] = None
    is_active: Optional[bool] = None
    description: Optional[str] = None


class IngredientResponse(ORMModel):
    id: int
    name: str
    quantity: float
    unit: str
    is_allergen: bool
    is_active: bool
    description: Optional[str]


class StockAdjustment(BaseModel):
    delta: float
    note: Optional[str] = Field(None, max_length=255)

    @field_validator("delta")
    @classmethod
    def non_zero(cls, v: float) -> float:
        if v == 0:
            raise ValueError("delta must be non-zero")
        return v


class StockMovementResponse(ORMModel):
    id: int
    ingredient_id: int
    order_item_id: Optional[int]
    delta: float
    reason: MovementReason
    note: Optional[str]
    created_at: Optional[datetime]


class MenuIngredientCreate(BaseModel):
    menu_item_id: int = Field(..., gt=0)
    ingredient_id: int = Field(..., gt=0)
    quantity: float = Field(..., gt=0, validation_alias=AliasChoices("quantity", "qty"))
    is_removable: bool = True
    is_default: bool = True


class MenuIngredientUpdate(BaseModel):
    quantity: Optional[float] = Field(None, gt=0, validation_alias=AliasChoices("quantity", "qty"))
    is_removable: Optional[bool] = None
    is_default: Optional[bool] = None


class MenuIngredientResponse(ORMModel):
    id: int
    menu_item_id: int
    ingredient_id: int
    quantity: float
    is_removable: bool
    is_default: bool


# =============================================================================
# OUTLETS, TABLES, STAFF
# =============================================================================

class OutletCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    location: Optional[str] = Field(None, max_length=255)
    tax_percentage: float = Field(default=0.0, ge=0, le=100)
    service_charge_percentage: float = Field(default=0.0, ge=0, le=100)
    is_active: bool = True


class OutletUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    location: Optional[str] = Field(None, max_length=255)
    tax_percentage: Optional[float] = Field(None, ge=0, le=100)
    service_charge_percentage: Optional[float] = Field(None, ge=0, le=100)
    is_active: Optional[bool] = None


class OutletResponse(ORMModel):
    id: int
    name: str
    location: Optional[str]
    tax_percentage: float
    service_charge_percentage: float
    is_active: bool


class TableCreate(BaseModel):
    outlet_id: int = Field(..., gt=0)
    table_number: str = Field(..., min_length=1, max_length=20)
    capacity: int = Field(default=2, gt=0)
    location_type: Optional[str] = Field(None, max_length=20)
    status: str = Field(default="available", max_length=20)


class TableUpdate(BaseModel):
    outlet_id: Optional[int] = Field(None, gt=0)
    table_number: Optional[str] = Field(None, min_length=1, max_length=20)
    capacity: Optional[int] = Field(None, gt=0)
    location_type: Optional[str] = Field(None, max_length=20)
    status: Optional[str] = Field(None, max_length=20)


class TableResponse(ORMModel):
    id: int
    outlet_id: int
    table_number: str
    capacity: int
    location_type: Optional[str]
    status: str


class StaffCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    role: str = Field(..., min_length=1, max_length=50)
    pin_code: Optional[str] = Field(None, pattern=r"^\d{4,10}$")
    is_active: bool = True


class StaffUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[str] = Field(None, min_length=1, max_length=50)
    pin_code: Optional[str] = Field(None, pattern=r"^\d{4,10}$")
    is_active: Optional[bool] = None


class StaffResponse(ORMModel):
    id: int
    name: str
    role: str
    is_active: bool


# =============================================================================
# CUSTOMERS, VISITS, RESERVATIONS
# =============================================================================

class CustomerCreate(BaseModel):
    hotel_guest_id: Optional[str] = Field(None, max_length=50)
    customer_type: str = Field(default="walk_in", max_length=20)
    name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)


class CustomerUpdate(BaseModel):
    hotel_guest_id: Optional[str] = Field(None, max_length=50)
    customer_type: Optional[str] = Field(None, max_length=20)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)


class CustomerResponse(ORMModel):
    id: int
    hotel_guest_id: Optional[str]
    customer_type: str
    name: str
    phone: Optional[str]
    visit_count: int
    last_visit: Optional[datetime]


class VisitCreate(BaseModel):
    customer_id: int = Field(..., gt=0)
    visit_type: str = Field(..., max_length=20)
    visit_date: Optional[datetime] = None
    room_number: Optional[str] = Field(None, max_length=20)
    reservation_id: Optional[int] = Field(None, gt=0)
    outlet_id: int = Field(..., gt=0)
    total_spent: Optional[float] = Field(None, ge=0)
    pax: int = Field(default=1, gt=0)


class VisitUpdate(BaseModel):
    visit_type: Optional[str] = Field(None, max_length=20)
    visit_date: Optional[datetime] = None
    room_number: Optional[str] = Field(None, max_length=20)
    reservation_id: Optional[int] = Field(None, gt=0)
    outlet_id: Optional[int] = Field(None, gt=0)
    total_spent: Optional[float] = Field(None, ge=0)
    pax: Optional[int] = Field(None, gt=0)


class VisitResponse(ORMModel):
    id: int
    customer_id: int
    visit_type: str
    visit_date: datetime
    room_number: Optional[str]
    reservation_id: Optional[int]
    outlet_id: int
    total_spent: Optional[float]
    pax: int


class ReservationCreate(BaseModel):
    customer_id: int = Field(..., gt=0)
    reservation_time: datetime
    pax: int = Field(..., gt=0)
    table_id: int = Field(..., gt=0)
    status: str = Field(default="booked", max_length=20)
    special_request: Optional[str] = None


class ReservationUpdate(ReservationCreate):
    pass


class ReservationResponse(ORMModel):
    id: int
    customer_id: int
    reservation_time: datetime
    pax: int
    table_id: int
    status: str
    special_request: Optional[str]


class ReservationDetail(BaseModel):
    id: int
    customer_id: int
    customer_name: Optional[str]
    reservation_time: datetime
    pax: int
    table_id: int
    table_number: Optional[str]
    status: str
    special_request: Optional[str]
