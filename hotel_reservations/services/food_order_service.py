"""Room-service food orders.

Each order line snapshots the menu price when the order is placed, so later
menu price changes never alter an existing order. Orders have no room or date
conflicts; their status only moves through the order state machine.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_reservations.core.exceptions import NotFoundError, ValidationError
from hotel_reservations.database import classify_db_error
from hotel_reservations.domain.order_state import assert_order_transition, order_transitions
from hotel_reservations.domain.pricing import from_minor_units, to_minor_units
from hotel_reservations.models.food import FoodItem, FoodOrder, FoodOrderItem
from hotel_reservations.services.audit_service import AuditService, audit_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderLine:
    """Requested quantity of one menu item."""

    food_item_id: UUID
    quantity: int
    special_instructions: str | None = None


class FoodOrderService:
    """Service for placing and progressing food orders."""

    def __init__(self, audit: AuditService | None = None) -> None:
        self.audit = audit or audit_service

    async def create_order(
        self,
        db: AsyncSession,
        guest_id: UUID,
        items: Sequence[OrderLine],
        room_number: str | None = None,
        special_instructions: str | None = None,
    ) -> FoodOrder:
        """Place an order with price snapshots.

        Args:
            db: Database session; committed here before the audit event is queued
            guest_id: Ordering guest
            items: Requested lines
            room_number: Delivery room
            special_instructions: Free-text instructions

        Returns:
            FoodOrder: The new order in ``placed`` status

        Raises:
            ValidationError: Empty order, bad quantity or unavailable item
            NotFoundError: Unknown menu item
        """
        if not items:
            raise ValidationError("An order needs at least one item")
        for line in items:
            if line.quantity < 1:
                raise ValidationError(f"Quantity must be at least 1, got {line.quantity}")

        item_ids = {line.food_item_id for line in items}
        result = await db.execute(select(FoodItem).where(FoodItem.id.in_(item_ids)))
        menu = {item.id: item for item in result.scalars().all()}

        total_minor = 0
        order_items = []
        for line in items:
            food_item = menu.get(line.food_item_id)
            if not food_item:
                raise NotFoundError("Food item", str(line.food_item_id))
            if not food_item.is_available:
                raise ValidationError(f"{food_item.name} is not available")

            total_minor += to_minor_units(food_item.price) * line.quantity
            order_items.append(
                FoodOrderItem(
                    food_item_id=food_item.id,
                    quantity=line.quantity,
                    unit_price=food_item.price,
                    special_instructions=line.special_instructions,
                )
            )

        order = FoodOrder(
            guest_id=guest_id,
            total_amount=from_minor_units(total_minor),
            status="placed",
            room_number=room_number,
            special_instructions=special_instructions,
            items=order_items,
        )
        db.add(order)
        await self._commit(db, "create_order")

        logger.info(f"Food order {order.id} placed by guest {guest_id}, total {order.total_amount}")
        self.audit.record(
            action="food_order.create",
            resource_type="food_order",
            resource_id=order.id,
            user_id=guest_id,
            new_values={"status": order.status, "total_amount": str(order.total_amount)},
        )
        return order

    async def get_order(self, db: AsyncSession, order_id: UUID) -> FoodOrder:
        """Get an order with its lines.

        Raises:
            NotFoundError: Unknown order
        """
        order = await db.get(FoodOrder, order_id)
        if not order:
            raise NotFoundError("Food order", str(order_id))
        return order

    async def list_orders(
        self,
        db: AsyncSession,
        guest_id: UUID | None = None,
        statuses: Iterable[str] | None = None,
    ) -> list[FoodOrder]:
        """Orders newest first, optionally for one guest and/or statuses."""
        query = select(FoodOrder)
        if guest_id:
            query = query.where(FoodOrder.guest_id == guest_id)
        if statuses:
            statuses = list(statuses)
            for status in statuses:
                order_transitions.assert_known(status)
            query = query.where(FoodOrder.status.in_(statuses))
        query = query.order_by(FoodOrder.created_at.desc())
        result = await db.execute(query)
        return list(result.scalars().all())

    async def update_order_status(
        self,
        db: AsyncSession,
        order_id: UUID,
        new_status: str,
        actor_id: UUID | None = None,
    ) -> FoodOrder:
        """Move an order through the state machine.

        The change is committed before the audit event is queued.

        Raises:
            ValidationError: Unknown status name
            NotFoundError: Unknown order
            TransitionError: Move not allowed from the current status
        """
        order_transitions.assert_known(new_status)
        result = await db.execute(
            select(FoodOrder).where(FoodOrder.id == order_id).with_for_update(of=FoodOrder)
        )
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError("Food order", str(order_id))

        old_status = order.status
        assert_order_transition(old_status, new_status)
        order.status = new_status
        await self._commit(db, "update_order_status")

        logger.info(f"Food order {order_id} moved {old_status} → {new_status}")
        self.audit.record(
            action="food_order.status_change",
            resource_type="food_order",
            resource_id=order_id,
            user_id=actor_id,
            old_values={"status": old_status},
            new_values={"status": new_status},
        )
        return order

    @staticmethod
    async def _commit(db: AsyncSession, operation: str) -> None:
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise classify_db_error(e, operation) from e


food_order_service = FoodOrderService()
