"""
report_service.py — Report lifecycle: submission, status workflow, thread, feedback

Owns the persisted state machine of a report and its append-only message
thread. Every lifecycle transition appends exactly one system message.

Business Rules:
- Status only moves forward: open → in_progress → resolved → closed
  (steps may be skipped; re-setting the current status is a no-op)
- System message per transition: submitted (creation), status_change
  (in_progress/closed), resolved (resolved), assigned (owner set)
- Messages are accepted only while status != closed (ReportClosed otherwise,
  for every actor, human or system)
- Messages are never edited or deleted; id order is the thread order
- One satisfaction rating per report, only once resolved/closed; a rating on
  a resolved report acknowledges the fix and closes the report
- Reports are never deleted, only archived

Called by: routers/reports.py, routers/admin_reports.py
Depends on: models, services/notification_service.py
"""

from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import (
    Forbidden,
    InvalidTransition,
    NotFound,
    ReportClosed,
    SatisfactionExists,
    SatisfactionNotAllowed,
)
from ..models import BugReport, ReportMessage, SatisfactionRating, User
from ..schemas.reports import ReportCreate
from .notification_service import notify_admins, send_notification

SYSTEM_AUTHOR = "System"

STATUS_RANK = {"open": 0, "in_progress": 1, "resolved": 2, "closed": 3}
STATUS_LABELS = {
    "open": "Open",
    "in_progress": "In Progress",
    "resolved": "Resolved",
    "closed": "Closed",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ── Lookup ───────────────────────────────────────────────────────────


def get_report(db: Session, report_id: int) -> BugReport:
    report = db.get(BugReport, report_id)
    if not report:
        raise NotFound("Report not found")
    return report


def get_report_for_user(db: Session, user: User, report_id: int) -> BugReport:
    """Reporter sees own reports; staff see all (archived included)."""
    report = get_report(db, report_id)
    if user.is_admin:
        return report
    if report.user_id != user.id or report.archived_at is not None:
        raise NotFound("Report not found")
    return report


def list_reports_for_user(db: Session, user: User) -> list[BugReport]:
    return (
        db.query(BugReport)
        .filter(BugReport.user_id == user.id, BugReport.archived_at.is_(None))
        .order_by(desc(BugReport.created_at), desc(BugReport.id))
        .all()
    )


def list_reports(
    db: Session,
    status: str | None = None,
    *,
    include_archived: bool = False,
    limit: int = 500,
) -> list[BugReport]:
    q = db.query(BugReport)
    if not include_archived:
        q = q.filter(BugReport.archived_at.is_(None))
    if status:
        q = q.filter(BugReport.status == status)
    return q.order_by(desc(BugReport.created_at), desc(BugReport.id)).limit(limit).all()


def list_messages(db: Session, report_id: int) -> list[ReportMessage]:
    return (
        db.query(ReportMessage)
        .filter(ReportMessage.report_id == report_id)
        .order_by(ReportMessage.id)
        .all()
    )


def get_thread(db: Session, report: BugReport) -> dict:
    """Report plus its full thread and feedback, as getReportWithMessages."""
    satisfaction = (
        db.query(SatisfactionRating).filter_by(report_id=report.id).first()
    )
    return {
        "report": report,
        "messages": list_messages(db, report.id),
        "satisfaction": satisfaction,
    }


# ── Thread ───────────────────────────────────────────────────────────


def _append_system_message(db: Session, report: BugReport, system_type: str, body: str) -> ReportMessage:
    if report.is_closed:
        raise ReportClosed()
    msg = ReportMessage(
        report_id=report.id,
        user_id=None,
        author_name=SYSTEM_AUTHOR,
        is_admin=False,
        is_system=True,
        system_type=system_type,
        body=body,
        created_at=_now(),
    )
    db.add(msg)
    return msg


def add_message(db: Session, report: BugReport, author: User, text: str) -> ReportMessage:
    """Append a human message to the thread. Fails with ReportClosed once closed."""
    if report.is_closed:
        logger.info("Message rejected on closed report #{} from {}", report.id, author.email)
        raise ReportClosed()
    if not author.is_admin and report.user_id != author.id:
        raise Forbidden("Only the reporter or staff can post to this thread")

    msg = ReportMessage(
        report_id=report.id,
        user_id=author.id,
        author_name=author.display_name,
        is_admin=author.is_admin,
        is_system=False,
        body=text,
        created_at=_now(),
    )
    db.add(msg)
    db.flush()

    title = f"New reply on \"{report.title[:80]}\""
    if author.is_admin:
        if report.user_id != author.id:
            send_notification(
                db, report.user_id, "bug_response", title, text[:200], report_id=report.id,
            )
    else:
        notify_admins(
            db, "bug_response", title, text[:200],
            report_id=report.id, exclude_user_id=author.id,
        )

    db.commit()
    logger.info("Message #{} added to report #{} by {}", msg.id, report.id, author.email)
    return msg


# ── Lifecycle ────────────────────────────────────────────────────────


def create_report(db: Session, user: User, body: ReportCreate) -> BugReport:
    """Persist a submitted report and its `submitted` system message."""
    now = _now()
    report = BugReport(
        user_id=user.id,
        report_type=body.report_type,
        title=body.title,
        description=body.description,
        severity=body.severity,
        category=body.category,
        page_url=body.page_url,
        user_agent=body.user_agent,
        screenshot_url=body.screenshot_url,
        video_url=body.video_url,
        reporter_name=user.display_name,
        reporter_email=user.email,
        status="open",
        created_at=now,
        updated_at=now,
    )
    db.add(report)
    db.flush()

    noun = "Support request" if report.report_type == "support" else "Bug report"
    _append_system_message(
        db, report, "submitted",
        f"{noun} submitted. Our team will review it shortly.",
    )
    send_notification(
        db, user.id, "bug_submitted", f"{noun} received",
        f"We received \"{report.title[:80]}\".", report_id=report.id,
    )
    notify_admins(
        db, "new_bug_report", f"New {report.severity} {report.report_type} report",
        f"{user.display_name}: {report.title[:120]}",
        report_id=report.id, exclude_user_id=user.id,
    )

    db.commit()
    db.refresh(report)
    logger.info("Report #{} ({}) created by {}", report.id, report.report_type, user.email)
    return report


def check_transition(report: BugReport, status: str) -> bool:
    """True if `status` is a forward move, False for a no-op; raises otherwise."""
    if status not in STATUS_RANK:
        raise InvalidTransition(f"Unknown status: {status}")
    if status == report.status:
        return False
    if STATUS_RANK[status] < STATUS_RANK[report.status]:
        raise InvalidTransition(
            f"Cannot move report from {report.status} back to {status}"
        )
    return True


def _apply_status(db: Session, report: BugReport, status: str, actor: User) -> None:
    previous = report.status
    if status == "resolved":
        _append_system_message(
            db, report, "resolved",
            f"Marked as resolved by {actor.display_name}.",
        )
    else:
        _append_system_message(
            db, report, "status_change",
            f"Status changed from {STATUS_LABELS[previous]} to {STATUS_LABELS[status]}.",
        )

    report.status = status
    if status in ("resolved", "closed") and report.resolved_at is None:
        report.resolved_at = _now()
        report.resolved_by_id = actor.id

    if report.user_id != actor.id:
        send_notification(
            db, report.user_id, "bug_status_changed",
            f"Report {STATUS_LABELS[status].lower()}",
            f"\"{report.title[:80]}\" is now {STATUS_LABELS[status]}.",
            report_id=report.id,
        )
    logger.info("Report #{} {} → {} by {}", report.id, previous, status, actor.email)


def update_report(
    db: Session,
    report: BugReport,
    actor: User,
    *,
    status: str | None = None,
    admin_notes: str | None = None,
) -> BugReport:
    """Staff edit of status and/or notes. All or nothing: a rejected
    transition leaves the notes untouched too."""
    moves = status is not None and check_transition(report, status)
    if admin_notes is None and not moves:
        return report

    if admin_notes is not None:
        report.admin_notes = admin_notes
    if moves:
        _apply_status(db, report, status, actor)
    report.updated_at = _now()
    db.commit()
    return report


def update_status(db: Session, report: BugReport, status: str, actor: User) -> BugReport:
    """Move a report forward in its workflow and record the transition."""
    return update_report(db, report, actor, status=status)


def assign_report(db: Session, report: BugReport, assignee: User, actor: User) -> BugReport:
    """Set the staff owner of a report and record an `assigned` system message."""
    if not assignee.is_admin:
        raise InvalidTransition("Reports can only be assigned to staff")
    if report.assigned_to_id == assignee.id:
        return report
    _append_system_message(
        db, report, "assigned", f"Assigned to {assignee.display_name}.",
    )
    report.assigned_to_id = assignee.id
    report.updated_at = _now()
    db.commit()
    logger.info("Report #{} assigned to {} by {}", report.id, assignee.email, actor.email)
    return report


def archive_report(db: Session, report: BugReport, actor: User) -> BugReport:
    """Soft-archive: hide from listings, keep every row."""
    if report.archived_at is None:
        report.archived_at = _now()
        db.commit()
        logger.info("Report #{} archived by {}", report.id, actor.email)
    return report


# ── Satisfaction ─────────────────────────────────────────────────────


def submit_satisfaction(
    db: Session,
    report: BugReport,
    user: User,
    rating: str,
    feedback: str | None = None,
) -> SatisfactionRating:
    """Record the one-time post-resolution rating for a report."""
    if report.user_id != user.id:
        raise Forbidden("Only the reporter can rate the resolution")
    if report.status not in ("resolved", "closed"):
        raise SatisfactionNotAllowed()
    if db.query(SatisfactionRating).filter_by(report_id=report.id).first():
        raise SatisfactionExists()

    entry = SatisfactionRating(
        report_id=report.id,
        user_id=user.id,
        rating=rating,
        feedback=feedback or None,
        submitted_at=_now(),
    )
    db.add(entry)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise SatisfactionExists()

    if report.status == "resolved":
        _append_system_message(
            db, report, "status_change",
            "Closed after the reporter confirmed the resolution.",
        )
        report.status = "closed"
        report.updated_at = _now()

    db.commit()
    logger.info("Satisfaction {} recorded for report #{}", rating, report.id)
    return entry
