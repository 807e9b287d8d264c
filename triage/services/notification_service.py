"""
notification_service.py — Notification dispatch for report-state transitions

Creates in-app notification rows with a deep link back to the report.
Push delivery is a separate collaborator and is not handled here.

Business Rules:
- Reporter links open the reporter's thread: /app/my-bug-reports?bugId=<id>
- Staff links open the admin console: /app/admin?tab=bugs&bugId=<id>
- new_bug_report and bug_response are high priority, everything else normal
- Notifications are written in the caller's transaction (caller commits)

Called by: services/report_service.py, routers/notifications.py
Depends on: models
"""

from loguru import logger
from sqlalchemy.orm import Session

from ..models import Notification, User

PRIORITIES = {
    "new_bug_report": "high",
    "bug_response": "high",
    "bug_submitted": "normal",
    "bug_status_changed": "normal",
}


def link_for(report_id: int | None = None, *, staff: bool = False) -> str:
    """Deep link a notification opens. Both surfaces accept a bugId parameter."""
    if staff:
        base = "/app/admin?tab=bugs"
        return f"{base}&bugId={report_id}" if report_id else base
    base = "/app/my-bug-reports"
    return f"{base}?bugId={report_id}" if report_id else base


def send_notification(
    db: Session,
    user_id: int,
    notification_type: str,
    title: str,
    message: str,
    *,
    report_id: int | None = None,
    staff: bool = False,
    priority: str | None = None,
) -> Notification:
    """Queue one in-app notification for a user."""
    note = Notification(
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message,
        link=link_for(report_id, staff=staff),
        priority=priority or PRIORITIES.get(notification_type, "normal"),
        data={"bugId": report_id} if report_id else None,
    )
    db.add(note)
    logger.debug("Notification {} queued for user {}", notification_type, user_id)
    return note


def notify_admins(
    db: Session,
    notification_type: str,
    title: str,
    message: str,
    *,
    report_id: int | None = None,
    exclude_user_id: int | None = None,
) -> list[Notification]:
    """Notify every active admin (optionally skipping the actor)."""
    admins = db.query(User).filter(User.role == "admin", User.is_active.is_(True)).all()
    return [
        send_notification(
            db, a.id, notification_type, title, message,
            report_id=report_id, staff=True,
        )
        for a in admins
        if a.id != exclude_user_id
    ]


def list_notifications(db: Session, user_id: int, *, unread_only: bool = False, limit: int = 50) -> list[Notification]:
    q = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        q = q.filter(Notification.is_read.is_(False))
    return q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def mark_read(db: Session, user_id: int, notification_id: int) -> Notification | None:
    note = db.query(Notification).filter_by(id=notification_id, user_id=user_id).first()
    if note and not note.is_read:
        note.is_read = True
        db.commit()
    return note
