"""Reports API — submission, threads and feedback for the reporting user."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import reporter_report, require_user
from ..models import BugReport, User
from ..schemas.analysis import AnalysisJobOut
from ..schemas.reports import (
    MessageCreate,
    MessageOut,
    ReportCreate,
    ReportOut,
    ReportSummary,
    ReportThread,
    SatisfactionCreate,
    SatisfactionOut,
)
from ..services import analysis_service, report_service
from .admin_reports import summarize

router = APIRouter(tags=["reports"])


@router.post("/api/reports", response_model=ReportOut, status_code=201)
def create_report(
    body: ReportCreate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Submit a bug report or support request (any authenticated user)."""
    return report_service.create_report(db, user, body)


@router.get("/api/reports/mine", response_model=list[ReportSummary])
def list_my_reports(
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    return [summarize(r) for r in report_service.list_reports_for_user(db, user)]


@router.get("/api/reports/{report_id}", response_model=ReportThread)
def get_report(
    report: BugReport = Depends(reporter_report),
    db: Session = Depends(get_db),
):
    """Report with its full thread and satisfaction rating, if any."""
    return report_service.get_thread(db, report)


@router.get("/api/reports/{report_id}/messages", response_model=list[MessageOut])
def list_messages(
    report: BugReport = Depends(reporter_report),
    db: Session = Depends(get_db),
):
    return report_service.list_messages(db, report.id)


@router.post("/api/reports/{report_id}/messages", response_model=MessageOut, status_code=201)
def add_message(
    body: MessageCreate,
    report: BugReport = Depends(reporter_report),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Post to the thread (reporter or staff). 409 once the report is closed."""
    return report_service.add_message(db, report, user, body.message)


@router.post(
    "/api/reports/{report_id}/satisfaction",
    response_model=SatisfactionOut,
    status_code=201,
)
def submit_satisfaction(
    body: SatisfactionCreate,
    report: BugReport = Depends(reporter_report),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    return report_service.submit_satisfaction(db, report, user, body.rating, body.feedback)


@router.get("/api/reports/{report_id}/analysis", response_model=AnalysisJobOut | None)
def get_latest_analysis(
    report: BugReport = Depends(reporter_report),
    db: Session = Depends(get_db),
):
    """Latest analysis job for the report (read-only for reporters)."""
    return analysis_service.get_latest_job(db, report.id)
