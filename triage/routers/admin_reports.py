"""Admin Reports API — staff console for triage, status workflow and AI analysis."""

import io
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import StreamingResponse
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_admin, staff_report
from ..errors import NotFound
from ..models import BugReport, User
from ..schemas.analysis import AnalysisJobOut, AnalyzeRequest
from ..schemas.reports import AssigneeUpdate, ReportOut, ReportSummary, ReportThread, StatusUpdate
from ..services import analysis_service, report_service
from ..services.analysis_service import run_analysis_job

router = APIRouter(tags=["admin-reports"])


def summarize(r: BugReport) -> ReportSummary:
    """Listing row. Omits description and user agent for size."""
    return ReportSummary(
        id=r.id,
        report_type=r.report_type,
        title=r.title,
        severity=r.severity,
        category=r.category,
        status=r.status,
        reporter_name=r.reporter_name,
        reporter_email=r.reporter_email,
        assigned_to_id=r.assigned_to_id,
        has_screenshot=bool(r.screenshot_url),
        has_video=bool(r.video_url),
        created_at=r.created_at,
        resolved_at=r.resolved_at,
    )


@router.get("/api/admin/reports", response_model=list[ReportSummary])
def list_reports(
    status: Optional[str] = Query(None),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """List reports, newest first, archived ones hidden."""
    return [summarize(r) for r in report_service.list_reports(db, status)]


@router.get("/api/admin/reports/export/xlsx")
def export_reports_xlsx(
    status: Optional[str] = Query(None),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Export the report listing to Excel."""
    from openpyxl import Workbook

    reports = report_service.list_reports(db, status, limit=2000)

    wb = Workbook()
    ws = wb.active
    ws.title = "Bug Reports"
    ws.append([
        "ID", "Type", "Title", "Description", "Severity", "Category", "Status",
        "Reporter", "Page URL", "User Agent", "Screenshot", "Video",
        "Admin Notes", "Created", "Resolved",
    ])
    for r in reports:
        ws.append([
            r.id,
            r.report_type,
            r.title,
            r.description or "",
            r.severity,
            r.category,
            r.status,
            r.reporter_email or "",
            r.page_url or "",
            r.user_agent or "",
            r.screenshot_url or "",
            r.video_url or "",
            r.admin_notes or "",
            r.created_at.isoformat() if r.created_at else "",
            r.resolved_at.isoformat() if r.resolved_at else "",
        ])

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": "attachment; filename=bug_reports.xlsx"},
    )


@router.get("/api/admin/reports/{report_id}", response_model=ReportThread)
def get_report(
    report: BugReport = Depends(staff_report),
    db: Session = Depends(get_db),
):
    return report_service.get_thread(db, report)


@router.patch("/api/admin/reports/{report_id}", response_model=ReportOut)
def update_report(
    body: StatusUpdate,
    report: BugReport = Depends(staff_report),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Update status and/or admin notes in one step (409 changes neither)."""
    return report_service.update_report(
        db, report, user, status=body.status, admin_notes=body.admin_notes,
    )


@router.put("/api/admin/reports/{report_id}/assignee", response_model=ReportOut)
def assign_report(
    body: AssigneeUpdate,
    report: BugReport = Depends(staff_report),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    assignee = db.get(User, body.assignee_id)
    if not assignee:
        raise NotFound("Assignee not found")
    return report_service.assign_report(db, report, assignee, user)


@router.delete("/api/admin/reports/{report_id}", response_model=ReportOut)
def archive_report(
    report: BugReport = Depends(staff_report),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Soft-archive. Reports are never physically deleted."""
    return report_service.archive_report(db, report, user)


@router.post(
    "/api/admin/reports/{report_id}/analyze",
    response_model=AnalysisJobOut,
    status_code=202,
)
def analyze_report(
    body: AnalyzeRequest,
    background_tasks: BackgroundTasks,
    report: BugReport = Depends(staff_report),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Queue a new analysis job; poll GET .../analysis for the result."""
    job = analysis_service.start_analysis_job(
        db,
        report,
        user,
        include_screenshot=body.include_screenshot,
        include_video=body.include_video,
    )
    background_tasks.add_task(run_analysis_job, job.id)
    logger.info("Analysis for report #{} requested by {}", report.id, user.email)
    return job


@router.get("/api/admin/reports/{report_id}/analysis", response_model=AnalysisJobOut | None)
def get_latest_analysis(
    report: BugReport = Depends(staff_report),
    db: Session = Depends(get_db),
):
    return analysis_service.get_latest_job(db, report.id)


@router.get("/api/admin/reports/{report_id}/analyses", response_model=list[AnalysisJobOut])
def list_analyses(
    report: BugReport = Depends(staff_report),
    db: Session = Depends(get_db),
):
    """All analysis jobs for a report, newest first."""
    return analysis_service.list_jobs(db, report.id)
