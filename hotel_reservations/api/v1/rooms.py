"""Room endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_reservations.api.deps import get_availability_service, get_db
from hotel_reservations.schemas.room import RoomResponse
from hotel_reservations.services.availability_service import AvailabilityService

router = APIRouter()


@router.get("/{room_id}", response_model=RoomResponse)
async def get_room_details(
    room_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[AvailabilityService, Depends(get_availability_service)],
) -> RoomResponse:
    """Get a room with its category."""
    room = await service.get_room_details(db, room_id)
    return RoomResponse.model_validate(room)
