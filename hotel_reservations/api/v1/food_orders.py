"""Room-service food order endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_reservations.api.deps import get_db, get_food_order_service
from hotel_reservations.core.exceptions import AppException, AuthorizationError
from hotel_reservations.core.metrics import get_metrics
from hotel_reservations.core.permissions import Permission, can_act_for, has_permission, require_permission
from hotel_reservations.models.food import FoodOrder
from hotel_reservations.models.user import User
from hotel_reservations.schemas.food_order import (
    FoodOrderCreate,
    FoodOrderListResponse,
    FoodOrderResponse,
    FoodOrderStatusUpdate,
)
from hotel_reservations.services.food_order_service import FoodOrderService, OrderLine

router = APIRouter()


@router.post("/", response_model=FoodOrderResponse, status_code=status.HTTP_201_CREATED)
async def place_order(
    order_data: FoodOrderCreate,
    current_user: Annotated[User, Depends(require_permission(Permission.PLACE_FOOD_ORDER))],
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[FoodOrderService, Depends(get_food_order_service)],
) -> FoodOrder:
    """Place a room-service order."""
    guest_id = order_data.guest_id or current_user.id
    if not can_act_for(current_user, guest_id, Permission.VIEW_ALL_FOOD_ORDERS):
        raise AuthorizationError("Only staff can order on behalf of another guest")

    counter = get_metrics().food_order_operations_total
    try:
        order = await service.create_order(
            db,
            guest_id=guest_id,
            items=[
                OrderLine(
                    food_item_id=item.food_item_id,
                    quantity=item.quantity,
                    special_instructions=item.special_instructions,
                )
                for item in order_data.items
            ],
            room_number=order_data.room_number,
            special_instructions=order_data.special_instructions,
        )
    except AppException as exc:
        counter.labels("create", exc.code).inc()
        raise
    counter.labels("create", "success").inc()
    return order


@router.get("/", response_model=FoodOrderListResponse)
async def list_orders(
    current_user: Annotated[User, Depends(require_permission(Permission.VIEW_FOOD_ORDER))],
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[FoodOrderService, Depends(get_food_order_service)],
    guest_id: UUID | None = None,
    statuses: list[str] | None = Query(default=None, alias="status"),
) -> FoodOrderListResponse:
    """Own orders for guests; the kitchen queue for staff."""
    if not has_permission(current_user.role, Permission.VIEW_ALL_FOOD_ORDERS):
        guest_id = current_user.id

    orders = await service.list_orders(db, guest_id=guest_id, statuses=statuses)
    return FoodOrderListResponse(
        orders=[FoodOrderResponse.model_validate(o) for o in orders],
        total=len(orders),
    )


@router.get("/{order_id}", response_model=FoodOrderResponse)
async def get_order(
    order_id: UUID,
    current_user: Annotated[User, Depends(require_permission(Permission.VIEW_FOOD_ORDER))],
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[FoodOrderService, Depends(get_food_order_service)],
) -> FoodOrder:
    """Get an order by ID."""
    order = await service.get_order(db, order_id)
    if not can_act_for(current_user, order.guest_id, Permission.VIEW_ALL_FOOD_ORDERS):
        raise AuthorizationError("You don't have permission to access this order")
    return order


@router.patch("/{order_id}/status", response_model=FoodOrderResponse)
async def update_order_status(
    order_id: UUID,
    request: FoodOrderStatusUpdate,
    current_user: Annotated[User, Depends(require_permission(Permission.UPDATE_FOOD_ORDER_STATUS))],
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[FoodOrderService, Depends(get_food_order_service)],
) -> FoodOrder:
    """Move an order to a new status (staff only)."""
    counter = get_metrics().food_order_operations_total
    try:
        order = await service.update_order_status(
            db, order_id, request.status, actor_id=current_user.id
        )
    except AppException as exc:
        counter.labels("update_status", exc.code).inc()
        raise
    counter.labels("update_status", "success").inc()
    return order
