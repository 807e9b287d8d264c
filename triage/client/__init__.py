"""Client half of the triage pipeline: capture, draft, compose, converse."""

from .api import TriageApiClient
from .capture import CaptureEngine
from .composer import Composer, PageContext
from .conversation import AnalysisPanel, ConversationView, SatisfactionCollector, parse_report_link
from .draft_store import Draft, DraftStore, get_draft_store
from .media import MediaBlob, MediaStream, MediaTrack, ObjectUrlRegistry, capture_scale
from .upload_gateway import MediaUploadGateway

__all__ = [
    "AnalysisPanel",
    "CaptureEngine",
    "Composer",
    "ConversationView",
    "Draft",
    "DraftStore",
    "MediaBlob",
    "MediaStream",
    "MediaTrack",
    "MediaUploadGateway",
    "ObjectUrlRegistry",
    "PageContext",
    "SatisfactionCollector",
    "TriageApiClient",
    "capture_scale",
    "get_draft_store",
    "parse_report_link",
]
