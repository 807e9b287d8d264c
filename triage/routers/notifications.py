"""Notifications API — in-app notifications with deep links to reports."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_user
from ..errors import NotFound
from ..models import User
from ..schemas.notifications import NotificationOut
from ..services import notification_service

router = APIRouter(tags=["notifications"])


@router.get("/api/notifications", response_model=list[NotificationOut])
def list_notifications(
    unread: bool = Query(False),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    return notification_service.list_notifications(db, user.id, unread_only=unread)


@router.post("/api/notifications/{notification_id}/read", response_model=NotificationOut)
def mark_notification_read(
    notification_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    note = notification_service.mark_read(db, user.id, notification_id)
    if not note:
        raise NotFound("Notification not found")
    return note
