"""Audit log endpoints."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_reservations.api.deps import get_db
from hotel_reservations.core.permissions import Permission, require_permission
from hotel_reservations.models.user import User
from hotel_reservations.services.audit_service import audit_service

router = APIRouter()


class AuditLogResponse(BaseModel):
    """Schema for an audit log entry."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID | None
    action: str
    resource_type: str
    resource_id: UUID | None
    old_values: dict | None
    new_values: dict | None
    created_at: datetime


@router.get("/", response_model=list[AuditLogResponse])
async def list_audit_logs(
    current_user: Annotated[User, Depends(require_permission(Permission.VIEW_AUDIT_LOGS))],
    db: Annotated[AsyncSession, Depends(get_db)],
    resource_type: str | None = None,
    resource_id: UUID | None = None,
    limit: int = Query(default=100, ge=1, le=500),
) -> list[AuditLogResponse]:
    """Most recent audit entries."""
    logs = await audit_service.list_logs(
        db, resource_type=resource_type, resource_id=resource_id, limit=limit
    )
    return [AuditLogResponse.model_validate(log) for log in logs]
