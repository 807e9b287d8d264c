"""
analysis_service.py — Analysis job runner (one job per trigger, newest wins)

Job lifecycle: pending → processing → completed | failed.

Business Rules:
- Triggering always creates a new job; completed/failed jobs are never touched again
- The latest job for a report is the one with the newest created_at (id breaks ties)
- Failures are stored on the job (status=failed, error), never raised to callers
- Jobs run after the HTTP response (fire-and-forget); callers poll for status
- Blocking session calls inside a job go through the default executor

Called by: routers/admin_reports.py, routers/reports.py
Depends on: services/ai_bug_analysis.py, database.py, models
"""

import asyncio
import time
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..errors import AnalysisFailed
from ..models import AnalysisJob, BugReport, User
from .ai_bug_analysis import analyze_report

GENERIC_FAILURE = "Analysis failed"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def start_analysis_job(
    db: Session,
    report: BugReport,
    actor: User,
    *,
    include_screenshot: bool = False,
    include_video: bool = False,
) -> AnalysisJob:
    """Create a fresh pending job. Earlier jobs stay as history."""
    job = AnalysisJob(
        report_id=report.id,
        requested_by_id=actor.id,
        status="pending",
        include_screenshot=include_screenshot,
        include_video=include_video,
        created_at=_now(),
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info(
        "Analysis job #{} queued for report #{} by {} (screenshot={}, video={})",
        job.id, report.id, actor.email, include_screenshot, include_video,
    )
    return job


def get_latest_job(db: Session, report_id: int) -> AnalysisJob | None:
    return (
        db.query(AnalysisJob)
        .filter(AnalysisJob.report_id == report_id)
        .order_by(desc(AnalysisJob.created_at), desc(AnalysisJob.id))
        .first()
    )


def list_jobs(db: Session, report_id: int) -> list[AnalysisJob]:
    return (
        db.query(AnalysisJob)
        .filter(AnalysisJob.report_id == report_id)
        .order_by(desc(AnalysisJob.created_at), desc(AnalysisJob.id))
        .all()
    )


async def execute_job(db: Session, job_id: int) -> AnalysisJob | None:
    """Drive one pending job to a terminal state.

    Session work runs in the default executor; only the model call is
    awaited on the event loop.
    """
    loop = asyncio.get_running_loop()
    job = await loop.run_in_executor(None, db.get, AnalysisJob, job_id)
    if not job:
        logger.warning("Analysis job #{} vanished before it started", job_id)
        return None
    if job.status != "pending":
        return job

    report = await loop.run_in_executor(None, _mark_processing, db, job)

    start = time.monotonic()
    try:
        result = await analyze_report(
            report,
            include_screenshot=job.include_screenshot,
            include_video=job.include_video,
        )
    except AnalysisFailed as e:
        await loop.run_in_executor(None, _fail, db, job, e.message, start)
        return job
    except Exception as e:
        logger.exception("Analysis job #{} crashed", job.id)
        await loop.run_in_executor(None, _fail, db, job, str(e) or GENERIC_FAILURE, start)
        return job

    await loop.run_in_executor(None, _complete, db, job, result, start)
    return job


def _mark_processing(db: Session, job: AnalysisJob) -> BugReport:
    job.status = "processing"
    job.started_at = _now()
    db.commit()
    return job.report


def _complete(db: Session, job: AnalysisJob, result: dict, start: float) -> None:
    job.summary = result["summary"]
    job.suggested_cause = result["suggested_cause"]
    job.confidence = result["confidence"]
    job.model_used = result["model_used"]
    job.screenshot_analysis = result["screenshot_analysis"]
    job.video_analysis = result["video_analysis"]
    job.suggested_solutions = result["suggested_solutions"]
    job.related_docs = result["related_docs"]
    job.processing_time_ms = int((time.monotonic() - start) * 1000)
    job.status = "completed"
    job.completed_at = _now()
    db.commit()
    logger.info(
        "Analysis job #{} completed for report #{} in {}ms ({} confidence)",
        job.id, job.report_id, job.processing_time_ms, job.confidence,
    )


def _fail(db: Session, job: AnalysisJob, error: str, start: float) -> None:
    job.status = "failed"
    job.error = error or GENERIC_FAILURE
    job.processing_time_ms = int((time.monotonic() - start) * 1000)
    job.completed_at = _now()
    db.commit()
    logger.warning("Analysis job #{} failed for report #{}: {}", job.id, job.report_id, job.error)


async def run_analysis_job(job_id: int) -> None:
    """Background entry point: own session, run, close."""
    db = SessionLocal()
    try:
        await execute_job(db, job_id)
    finally:
        db.close()
