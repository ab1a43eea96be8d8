"""Availability search endpoints (public)."""

from datetime import date
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_reservations.api.deps import get_availability_service, get_db
from hotel_reservations.config import settings
from hotel_reservations.domain.pricing import quote
from hotel_reservations.schemas.room import (
    AvailabilityResponse,
    PriceQuoteResponse,
    RoomCategoryResponse,
)
from hotel_reservations.services.availability_service import AvailabilityService

router = APIRouter()


@router.get("/", response_model=AvailabilityResponse)
async def search_available_rooms(
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[AvailabilityService, Depends(get_availability_service)],
    check_in: date,
    check_out: date,
    guest_count: int = Query(default=1),
    category_id: UUID | None = None,
) -> AvailabilityResponse:
    """Rooms free for the whole stay, cheapest first."""
    rooms = await service.search_available_rooms(
        db, check_in, check_out, guest_count, category_id=category_id
    )
    return AvailabilityResponse(
        check_in=check_in,
        check_out=check_out,
        guest_count=guest_count,
        rooms=rooms,
        total=len(rooms),
    )


@router.get("/categories", response_model=list[RoomCategoryResponse])
async def list_room_categories(
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[AvailabilityService, Depends(get_availability_service)],
) -> list[RoomCategoryResponse]:
    """All room categories, cheapest first."""
    categories = await service.list_room_categories(db)
    return [RoomCategoryResponse.model_validate(c) for c in categories]


@router.get("/price", response_model=PriceQuoteResponse)
async def calculate_total_price(
    base_rate: Decimal,
    check_in: date,
    check_out: date,
) -> PriceQuoteResponse:
    """Price a stay at a given nightly rate."""
    price = quote(base_rate, check_in, check_out)
    return PriceQuoteResponse(
        base_rate=base_rate,
        check_in=check_in,
        check_out=check_out,
        nights=price.nights,
        total_price=price.total_price,
        currency=settings.currency,
    )
