"""Database models — re-exports all models.

Import from here:  from triage.models import User, BugReport, ...
Or from submodules: from triage.models.report import BugReport
"""

from .base import Base  # noqa: F401

# Auth & Users
from .auth import User  # noqa: F401

# Reports & their threads
from .report import BugReport, ReportMessage  # noqa: F401

# AI triage
from .analysis import AnalysisJob  # noqa: F401

# Post-resolution feedback
from .satisfaction import SatisfactionRating  # noqa: F401

# Object storage
from .storage import MediaUpload  # noqa: F401

# Notifications
from .notification import Notification  # noqa: F401
