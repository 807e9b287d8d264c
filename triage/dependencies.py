"""
dependencies.py — Auth gates and report loaders for the triage API

Routers declare what they need (a logged-in user, staff, a report the
caller may see) and get it injected; the visibility rules live here once.

Business Rules:
- The session cookie carries user_id; an unknown id counts as logged out
- require_user: 401 without a session, 403 for a deactivated account
  (the stale session is dropped so the browser re-authenticates)
- require_admin: 403 unless the user has the admin role
- reporter_report: reporters reach only their own unarchived reports and
  get 404 for anything else; staff reach every report
- staff_report: any report by id, archived included

Called by: routers/*
Depends on: models, database, services/report_service.py
"""

import logging

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from .database import get_db
from .models import BugReport, User
from .services import report_service

log = logging.getLogger(__name__)


def get_user(request: Request, db: Session) -> User | None:
    """Current user from the session cookie, or None."""
    uid = request.session.get("user_id")
    return db.get(User, uid) if uid else None


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    user = get_user(request, db)
    if user is None:
        raise HTTPException(401, "Not authenticated")
    if not user.is_active:
        log.warning("Deactivated account %s tried %s", user.email, request.url.path)
        request.session.clear()
        raise HTTPException(403, "Account deactivated")
    return user


def require_admin(user: User = Depends(require_user)) -> User:
    if not user.is_admin:
        raise HTTPException(403, "Admin access required")
    return user


def reporter_report(
    report_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> BugReport:
    return report_service.get_report_for_user(db, user, report_id)


def staff_report(
    report_id: int,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> BugReport:
    return report_service.get_report(db, report_id)
