"""AI Bug Analysis — turns a report (text + optional media) into a triage verdict.

Three structured calls through the Claude client:
  1. Screenshot description (vision), only when requested and a screenshot exists
  2. Recording description, only when requested and a recording exists; the
     model receives the recording URL as reference context
  3. The verdict itself, grounded in the report, the media descriptions and
     the platform documentation catalog

Business Rules:
- Media flags come from the caller; media without a URL is simply skipped
- Skipped media leaves screenshot_analysis / video_analysis as None
- Confidence and effort labels are validated, then passed through unchanged
- Any unusable reply raises AnalysisFailed; the job runner stores it

Called by: services/analysis_service.py
Depends on: utils/claude_client.py, services/docs_catalog.py, schemas/analysis.py
"""

import json

from loguru import logger
from pydantic import ValidationError as SchemaError

from ..config import settings
from ..errors import AnalysisFailed
from ..models import BugReport
from ..schemas.analysis import ScreenshotAnalysis, Solution, VideoAnalysis
from ..utils.claude_client import claude_structured, model_for
from . import docs_catalog

_CONFIDENCE = {"type": "string", "enum": ["low", "medium", "high"]}
_TIME_MARKERS = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "seconds": {"type": "number"},
            "description": {"type": "string"},
        },
        "required": ["seconds", "description"],
    },
}
_STRINGS = {"type": "array", "items": {"type": "string"}}

SCREENSHOT_SCHEMA = {
    "type": "object",
    "properties": {
        "description": {"type": "string"},
        "visible_errors": _STRINGS,
        "ui_elements": _STRINGS,
        "potential_issues": _STRINGS,
    },
    "required": ["description", "visible_errors", "potential_issues"],
}

VIDEO_SCHEMA = {
    "type": "object",
    "properties": {
        "description": {"type": "string"},
        "reproduction_steps": _STRINGS,
        "user_actions": _STRINGS,
        "timestamps": _TIME_MARKERS,
        "error_moments": _TIME_MARKERS,
    },
    "required": ["description", "reproduction_steps", "error_moments"],
}

VERDICT_SCHEMA = {
    "type": "object",
    "properties": {
        "summary": {"type": "string"},
        "suggested_cause": {"type": "string"},
        "confidence": _CONFIDENCE,
        "suggested_solutions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "description": {"type": "string"},
                    "steps": _STRINGS,
                    "confidence": _CONFIDENCE,
                    "estimated_effort": {
                        "type": "string",
                        "enum": ["quick", "moderate", "significant"],
                    },
                },
                "required": ["title", "description", "steps", "confidence", "estimated_effort"],
            },
        },
        "related_docs": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "section_id": {"type": "string"},
                    "article_id": {"type": "string"},
                    "relevance": {"type": "string"},
                },
                "required": ["section_id", "article_id", "relevance"],
            },
        },
    },
    "required": ["summary", "suggested_cause", "confidence", "suggested_solutions"],
}

SYSTEM_PROMPT = """\
You are an expert software debugging assistant for a 28-day health challenge web \
application (React frontend, serverless API, object storage for media).

Guidelines:
1. Reference the specific area of the product involved (page, API, entity)
2. Provide practical, step-by-step solutions a developer can follow
3. Include related documentation articles using the exact section/article ids below
4. Only claim high confidence when the evidence points to one cause

Estimate effort per solution:
- "quick": under 30 minutes (typo, config change, one-line fix)
- "moderate": 30 minutes to 2 hours, requires understanding context
- "significant": over 2 hours, architectural change or multiple files

Valid documentation ids (section/article):
{doc_ids}
"""

SCREENSHOT_PROMPT = """\
Analyze this screenshot attached to a bug report titled "{title}".
Describe what is visible, list any error messages or unexpected states,
the key UI elements, and issues that could explain the report."""

VIDEO_PROMPT = """\
A user attached a screen recording to a bug report titled "{title}".
Recording URL for reference: {video_url}

Report description:
{description}

Describe what happens, the reproduction steps, the user actions, and
timestamps (seconds) of key moments and of any visible errors."""


def build_report_context(report: BugReport) -> str:
    """Plain-text report block shared by the verdict prompt and logs."""
    lines = [
        "# Bug Report to Analyze",
        f"ID: {report.id}",
        f"Type: {report.report_type}",
        f"Title: {report.title}",
        f"Description: {report.description}",
        f"Severity: {report.severity}",
        f"Category: {report.category}",
    ]
    if report.page_url:
        lines.append(f"Page URL: {report.page_url}")
    if report.user_agent:
        lines.append(f"User Agent: {report.user_agent}")
    return "\n".join(lines)


def _docs_context(report: BugReport) -> str:
    query = f"{report.category} {report.title} {report.description} {report.page_url or ''}"
    hits = docs_catalog.search(query)
    if not hits:
        return ""
    parts = ["## Possibly Relevant Documentation"]
    for hit in hits:
        parts.append(
            f"- {hit['section_id']}/{hit['article_id']} ({hit['article_title']}): {hit['excerpt']}"
        )
    return "\n".join(parts)


async def analyze_screenshot(report: BugReport) -> dict | None:
    result = await claude_structured(
        SCREENSHOT_PROMPT.format(title=report.title),
        SCREENSHOT_SCHEMA,
        model_tier="fast",
        max_tokens=1024,
        image_urls=[report.screenshot_url],
    )
    if not result:
        logger.warning("Screenshot analysis returned nothing for report #{}", report.id)
        return None
    try:
        return ScreenshotAnalysis.model_validate(result).model_dump()
    except SchemaError as e:
        logger.warning("Screenshot analysis malformed for report #{}: {}", report.id, e)
        return None


async def analyze_video(report: BugReport) -> dict | None:
    result = await claude_structured(
        VIDEO_PROMPT.format(
            title=report.title,
            video_url=report.video_url,
            description=report.description,
        ),
        VIDEO_SCHEMA,
        model_tier="fast",
        max_tokens=1500,
    )
    if not result:
        logger.warning("Video analysis returned nothing for report #{}", report.id)
        return None
    try:
        return VideoAnalysis.model_validate(result).model_dump()
    except SchemaError as e:
        logger.warning("Video analysis malformed for report #{}: {}", report.id, e)
        return None


async def analyze_report(
    report: BugReport,
    *,
    include_screenshot: bool = False,
    include_video: bool = False,
) -> dict:
    """Produce the verdict for a report. Raises AnalysisFailed on any unusable result."""
    if not settings.anthropic_api_key:
        raise AnalysisFailed("AI analysis not configured (ANTHROPIC_API_KEY missing)")

    screenshot_analysis = None
    if include_screenshot and report.screenshot_url:
        screenshot_analysis = await analyze_screenshot(report)

    video_analysis = None
    if include_video and report.video_url:
        video_analysis = await analyze_video(report)

    parts = [build_report_context(report)]
    docs = _docs_context(report)
    if docs:
        parts.append(docs)
    if screenshot_analysis:
        parts.append("## Screenshot Analysis\n" + json.dumps(screenshot_analysis, indent=2))
    if video_analysis:
        parts.append("## Video Analysis\n" + json.dumps(video_analysis, indent=2))
    parts.append(
        "Analyze this report. Be specific and actionable, and always include at "
        "least one related documentation article."
    )

    tier = settings.analysis_model_tier
    verdict = await claude_structured(
        "\n\n".join(parts),
        VERDICT_SCHEMA,
        system=SYSTEM_PROMPT.format(doc_ids="\n".join(docs_catalog.valid_doc_ids())),
        model_tier=tier,
        max_tokens=4096,
    )
    if not verdict or not isinstance(verdict, dict):
        raise AnalysisFailed("AI model returned no verdict")

    summary = verdict.get("summary")
    cause = verdict.get("suggested_cause")
    confidence = verdict.get("confidence")
    if not summary or not cause or confidence not in ("low", "medium", "high"):
        raise AnalysisFailed("AI model returned an incomplete verdict")

    try:
        solutions = [
            Solution.model_validate(s).model_dump()
            for s in verdict.get("suggested_solutions") or []
        ]
    except SchemaError as e:
        raise AnalysisFailed(f"AI model returned malformed solutions: {e.errors()[0]['msg']}")

    return {
        "summary": str(summary),
        "suggested_cause": str(cause),
        "confidence": confidence,
        "model_used": model_for(tier),
        "screenshot_analysis": screenshot_analysis,
        "video_analysis": video_analysis,
        "suggested_solutions": solutions,
        "related_docs": docs_catalog.enrich_related_docs(verdict.get("related_docs")),
    }
