"""Food order Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class FoodOrderItemCreate(BaseModel):
    """One requested menu item."""

    food_item_id: UUID
    quantity: int = Field(..., ge=1, le=50)
    special_instructions: str | None = Field(None, max_length=500)


class FoodOrderCreate(BaseModel):
    """Schema for placing a food order."""

    items: list[FoodOrderItemCreate] = Field(..., min_length=1)
    room_number: str | None = Field(None, max_length=10)
    special_instructions: str | None = Field(None, max_length=1000)
    guest_id: UUID | None = None


class FoodOrderStatusUpdate(BaseModel):
    """Schema for moving an order to a new status."""

    status: str


class FoodOrderItemResponse(BaseModel):
    """Schema for an order line."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    food_item_id: UUID
    quantity: int
    unit_price: Decimal
    special_instructions: str | None


class FoodOrderResponse(BaseModel):
    """Schema for food order response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    guest_id: UUID
    total_amount: Decimal
    status: str
    room_number: str | None
    special_instructions: str | None
    items: list[FoodOrderItemResponse]
    created_at: datetime
    updated_at: datetime


class FoodOrderListResponse(BaseModel):
    """Schema for food order list."""

    orders: list[FoodOrderResponse]
    total: int
