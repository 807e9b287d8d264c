"""Platform documentation catalog used to ground AI triage verdicts.

The verdict prompt lists the valid section/article ids and includes the
articles most relevant to the report; the model answers with id pairs,
which are enriched here with titles and an excerpt.

Called by: services/ai_bug_analysis.py
Depends on: nothing
"""

import re

# section_id -> {"title": str, "articles": {article_id: {...}}}
DOCS = {
    "overview": {
        "title": "Getting Started",
        "articles": {
            "introduction": {
                "title": "Platform Introduction",
                "tags": ["overview", "challenge", "28-day", "dashboard"],
                "content": (
                    "The platform runs a 28-day health challenge: registration, daily habit "
                    "tracking, weekly biometrics, a course content feed and an admin console."
                ),
            },
            "navigation": {
                "title": "Admin Panel Navigation",
                "tags": ["admin", "tabs", "navigation"],
                "content": (
                    "The admin console is organised in tabs: users, content, payments, "
                    "push notifications, documentation and bugs."
                ),
            },
        },
    },
    "bug-tracking": {
        "title": "Bug Tracking",
        "articles": {
            "bug-overview": {
                "title": "Bug Tracking System",
                "tags": ["bugs", "reporting", "screenshots", "video", "upload"],
                "content": (
                    "Users open the report dialog from the floating bug button, optionally "
                    "capture a screenshot or a screen recording with narration, and submit. "
                    "Media is uploaded to object storage first; the report stores the durable "
                    "URLs together with the page URL and user agent."
                ),
            },
            "ai-analysis": {
                "title": "AI Bug Analysis",
                "tags": ["ai", "analysis", "triage", "model"],
                "content": (
                    "Staff trigger an analysis job per report. The job reads the report text and, "
                    "when requested, the screenshot and recording, and produces a summary, a "
                    "suggested cause, solutions with effort estimates and related documentation. "
                    "Failed jobs keep their error and can be re-run, which creates a new job."
                ),
            },
            "bug-triage": {
                "title": "Bug Triage Process",
                "tags": ["triage", "status", "workflow", "resolved", "closed"],
                "content": (
                    "Reports move open, in progress, resolved, closed. Each change posts a system "
                    "message to the thread and notifies the reporter. Closed threads are read-only."
                ),
            },
        },
    },
    "impersonation": {
        "title": "User Impersonation",
        "articles": {
            "overview": {
                "title": "Impersonation Overview",
                "tags": ["impersonation", "admin", "support"],
                "content": (
                    "Admins can view the app as a user for support. Mutations are blocked while "
                    "impersonating and a banner is shown."
                ),
            },
            "troubleshooting": {
                "title": "Impersonation Troubleshooting",
                "tags": ["impersonation", "403", "blocked"],
                "content": "Write actions return 403 during impersonation; end the session to retry.",
            },
        },
    },
    "user-management": {
        "title": "User Management",
        "articles": {
            "user-roles": {
                "title": "User Roles & Permissions",
                "tags": ["roles", "admin", "captain", "permissions", "403"],
                "content": "Roles are participant, captain and admin. Admin-only endpoints return 403 to others.",
            },
            "authentication": {
                "title": "Authentication System",
                "tags": ["login", "otp", "session", "401", "phone"],
                "content": (
                    "Users sign in with a phone one-time code. Expired or missing sessions return "
                    "401 and send the user back to login."
                ),
            },
        },
    },
    "daily-tracking": {
        "title": "Daily Habit Tracking",
        "articles": {
            "habits": {
                "title": "Daily Habits System",
                "tags": ["habits", "water", "steps", "sleep", "score", "points"],
                "content": "Participants log daily habits; each habit contributes points to the daily score.",
            },
        },
    },
    "biometrics": {
        "title": "Weekly Biometrics",
        "articles": {
            "submissions": {
                "title": "Biometric Submissions",
                "tags": ["biometrics", "weight", "scale", "photo", "upload"],
                "content": "Weekly weigh-ins are submitted with a scale photo uploaded to object storage.",
            },
        },
    },
    "content": {
        "title": "Course Content (LMS)",
        "articles": {
            "lms-overview": {
                "title": "LMS System Overview",
                "tags": ["course", "video", "content", "feed", "unlock"],
                "content": "Course content unlocks day by day; videos and articles appear in the content feed.",
            },
        },
    },
    "payments": {
        "title": "Payments & Enrollment",
        "articles": {
            "stripe": {
                "title": "Stripe Integration",
                "tags": ["payment", "stripe", "checkout", "enrollment"],
                "content": "Enrollment is paid through Stripe checkout; the webhook activates the enrollment.",
            },
        },
    },
}


def _humanize(identifier: str) -> str:
    return " ".join(w.capitalize() for w in identifier.split("-") if w)


def valid_doc_ids() -> list[str]:
    """All `section/article` pairs the model may reference."""
    return [
        f"{section_id}/{article_id}"
        for section_id, section in DOCS.items()
        for article_id in section["articles"]
    ]


def lookup(section_id: str, article_id: str) -> dict | None:
    section = DOCS.get(section_id)
    if not section:
        return None
    article = section["articles"].get(article_id)
    if not article:
        return None
    return {
        "section_id": section_id,
        "article_id": article_id,
        "section_title": section["title"],
        "article_title": article["title"],
        "excerpt": article["content"][:240],
    }


def search(query: str, limit: int = 3) -> list[dict]:
    """Rank articles by term overlap with the query (title > tags > body)."""
    terms = [t for t in re.split(r"\W+", query.lower()) if len(t) > 2]
    scored = []
    for section_id, section in DOCS.items():
        for article_id, article in section["articles"].items():
            title = article["title"].lower()
            tags = " ".join(article["tags"]).lower()
            body = article["content"].lower()
            score = 0
            for term in terms:
                if term in title:
                    score += 15
                if term in tags:
                    score += 8
                if term in body:
                    score += 3
            if score:
                scored.append((score, section_id, article_id))
    scored.sort(key=lambda s: -s[0])
    return [lookup(s, a) for _, s, a in scored[:limit]]


def enrich_related_docs(raw: list[dict] | None) -> list[dict]:
    """Attach titles/excerpt to model-provided doc references.

    Unknown ids are kept with title-cased ids as titles.
    """
    enriched = []
    for ref in raw or []:
        section_id = str(ref.get("section_id") or "").strip()
        article_id = str(ref.get("article_id") or "").strip()
        if not section_id or not article_id:
            continue
        match = lookup(section_id, article_id)
        enriched.append({
            "section_id": section_id,
            "article_id": article_id,
            "section_title": match["section_title"] if match else _humanize(section_id),
            "article_title": match["article_title"] if match else _humanize(article_id),
            "relevance": str(ref.get("relevance") or ""),
            "excerpt": match["excerpt"] if match else None,
        })
    return enriched
