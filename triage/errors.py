"""
errors.py — Domain error taxonomy shared by the service and the client library

Every error carries a stable `code` and the HTTP `status_code` the service
answers with. The client library maps error bodies back onto these classes
so callers handle the same exceptions on both sides of the wire.

Business Rules:
- Capture and upload errors are recoverable and never reach the server
- ReportClosed is non-retryable as-is; the thread is read-only
- AnalysisFailed is stored on the job, never raised across HTTP

Called by: services/*, routers/*, client/*
Depends on: nothing
"""


class TriageError(Exception):
    """Base class for all domain errors."""

    code = "triage_error"
    status_code = 400
    default_message = "Request could not be completed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(TriageError):
    code = "validation_error"
    status_code = 422
    default_message = "Title and description are required"


class CapturePermissionDenied(TriageError):
    code = "capture_permission_denied"
    default_message = "Screen capture permission was denied"


class CaptureFailed(TriageError):
    code = "capture_failed"
    status_code = 500
    default_message = "Screen capture failed"


class UploadFailed(TriageError):
    code = "upload_failed"
    status_code = 502
    default_message = "Media upload failed"


class ReportClosed(TriageError):
    code = "report_closed"
    status_code = 409
    default_message = "This report is closed and no longer accepts messages"


class InvalidTransition(TriageError):
    code = "invalid_transition"
    status_code = 409
    default_message = "Status change not allowed"


class SatisfactionNotAllowed(TriageError):
    code = "satisfaction_not_allowed"
    status_code = 409
    default_message = "Feedback can only be left once the report is resolved"


class SatisfactionExists(TriageError):
    code = "satisfaction_exists"
    status_code = 409
    default_message = "Feedback was already submitted for this report"


class AnalysisFailed(TriageError):
    code = "analysis_failed"
    status_code = 502
    default_message = "Analysis failed"


class NotFound(TriageError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"


class Forbidden(TriageError):
    code = "forbidden"
    status_code = 403
    default_message = "Not allowed"


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        ValidationError,
        CapturePermissionDenied,
        CaptureFailed,
        UploadFailed,
        ReportClosed,
        InvalidTransition,
        SatisfactionNotAllowed,
        SatisfactionExists,
        AnalysisFailed,
        NotFound,
        Forbidden,
    )
}
