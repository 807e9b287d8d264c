"""
test_routers_reports.py — Tests for the reporter-facing report endpoints

Covers submission (incl. durable URL enforcement), listing own reports,
thread reads, posting messages, satisfaction and reading the latest analysis.

Called by: pytest
Depends on: triage/routers/reports.py, conftest.py
"""

from datetime import datetime, timedelta, timezone

from triage.models import AnalysisJob, BugReport, Notification, ReportMessage, SatisfactionRating
from triage.services import report_service


# ── Submit ───────────────────────────────────────────────────────────


class TestCreateReport:
    def test_submit_with_screenshot(self, client, db_session, test_user, admin_user):
        resp = client.post("/api/reports", json={
            "title": "Login button missing",
            "description": "Cannot see login CTA on mobile",
            "severity": "high",
            "category": "ui",
            "page_url": "https://app.example.com/login",
            "user_agent": "Mozilla/5.0 (iPhone)",
            "screenshot_url": "https://app.example.com/api/media/bug-reports/1/abc/shot.png",
        })
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "open"
        assert data["severity"] == "high"
        assert data["category"] == "ui"
        assert data["report_type"] == "bug"
        assert data["screenshot_url"].startswith("https://")
        assert data["reporter_email"] == test_user.email

        msgs = db_session.query(ReportMessage).filter_by(report_id=data["id"]).all()
        assert len(msgs) == 1
        assert msgs[0].is_system
        assert msgs[0].system_type == "submitted"

    def test_defaults_applied(self, client):
        resp = client.post("/api/reports", json={"title": "Slow", "description": "Feed is slow"})
        assert resp.status_code == 201
        data = resp.json()
        assert data["severity"] == "medium"
        assert data["category"] == "other"
        assert data["screenshot_url"] is None

    def test_support_request(self, client):
        resp = client.post("/api/reports", json={
            "report_type": "support",
            "title": "How do I log weight?",
            "description": "Can't find the biometrics form",
        })
        assert resp.status_code == 201
        assert resp.json()["report_type"] == "support"

    def test_blank_title_rejected(self, client):
        resp = client.post("/api/reports", json={"title": "   ", "description": "x"})
        assert resp.status_code == 422
        body = resp.json()
        assert body["code"] == "validation_error"
        assert body["status_code"] == 422

    def test_blob_url_rejected(self, client, db_session):
        resp = client.post("/api/reports", json={
            "title": "Broken",
            "description": "See video",
            "video_url": "blob:https://app.example.com/1234-5678",
        })
        assert resp.status_code == 422
        assert db_session.query(BugReport).count() == 0

    def test_data_url_rejected(self, client):
        resp = client.post("/api/reports", json={
            "title": "Broken",
            "description": "See screenshot",
            "screenshot_url": "data:image/png;base64,AAAA",
        })
        assert resp.status_code == 422

    def test_long_user_agent_clipped(self, client):
        resp = client.post("/api/reports", json={
            "title": "Crash",
            "description": "On a browser with many extensions",
            "user_agent": "Mozilla/5.0 " + "x" * 900,
            "page_url": "https://app.example.com/feed?" + "q" * 3000,
        })
        assert resp.status_code == 201
        data = resp.json()
        assert len(data["user_agent"]) == 512
        assert data["user_agent"].startswith("Mozilla/5.0 ")
        assert len(data["page_url"]) == 2048

    def test_admins_notified(self, client, db_session, admin_user, test_user):
        resp = client.post("/api/reports", json={"title": "Crash", "description": "App crashed"})
        report_id = resp.json()["id"]

        admin_note = db_session.query(Notification).filter_by(user_id=admin_user.id).one()
        assert admin_note.type == "new_bug_report"
        assert admin_note.priority == "high"
        assert admin_note.link == f"/app/admin?tab=bugs&bugId={report_id}"

        own_note = db_session.query(Notification).filter_by(user_id=test_user.id).one()
        assert own_note.type == "bug_submitted"
        assert own_note.link == f"/app/my-bug-reports?bugId={report_id}"


# ── Read ─────────────────────────────────────────────────────────────


class TestReadReports:
    def test_list_mine(self, client, sample_report):
        resp = client.get("/api/reports/mine")
        assert resp.status_code == 200
        rows = resp.json()
        assert [r["id"] for r in rows] == [sample_report.id]
        assert "description" not in rows[0]
        assert rows[0]["has_screenshot"] is False

    def test_list_mine_excludes_others(self, client, db_session, other_user):
        db_session.add(BugReport(
            user_id=other_user.id, title="Theirs", description="d",
            created_at=datetime.now(timezone.utc),
        ))
        db_session.commit()
        assert client.get("/api/reports/mine").json() == []

    def test_get_thread(self, client, sample_report):
        resp = client.get(f"/api/reports/{sample_report.id}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["report"]["id"] == sample_report.id
        assert data["report"]["description"] == "Cannot see login CTA on mobile"
        assert [m["system_type"] for m in data["messages"]] == ["submitted"]
        assert data["satisfaction"] is None

    def test_other_users_report_is_404(self, client, db_session, other_user):
        report = BugReport(
            user_id=other_user.id, title="Theirs", description="d",
            created_at=datetime.now(timezone.utc),
        )
        db_session.add(report)
        db_session.commit()
        resp = client.get(f"/api/reports/{report.id}")
        assert resp.status_code == 404
        assert resp.json()["code"] == "not_found"

    def test_archived_hidden_from_reporter(self, client, db_session, sample_report):
        sample_report.archived_at = datetime.now(timezone.utc)
        db_session.commit()
        assert client.get(f"/api/reports/{sample_report.id}").status_code == 404
        assert client.get("/api/reports/mine").json() == []


# ── Messages ─────────────────────────────────────────────────────────


class TestMessages:
    def test_post_message(self, client, db_session, sample_report, admin_user):
        resp = client.post(
            f"/api/reports/{sample_report.id}/messages",
            json={"message": "  Still happening on Safari  "},
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["body"] == "Still happening on Safari"
        assert data["is_admin"] is False
        assert data["is_system"] is False

        note = db_session.query(Notification).filter_by(user_id=admin_user.id).one()
        assert note.type == "bug_response"
        assert note.link.startswith("/app/admin?tab=bugs")

    def test_empty_message_rejected(self, client, sample_report):
        resp = client.post(f"/api/reports/{sample_report.id}/messages", json={"message": "  "})
        assert resp.status_code == 422

    def test_closed_report_rejects_message(self, client, db_session, sample_report):
        sample_report.status = "closed"
        db_session.commit()

        resp = client.post(
            f"/api/reports/{sample_report.id}/messages", json={"message": "Hello?"},
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "report_closed"
        assert db_session.query(ReportMessage).filter_by(report_id=sample_report.id).count() == 1

    def test_messages_in_insertion_order(self, client, sample_report):
        for text in ("first", "second", "third"):
            client.post(f"/api/reports/{sample_report.id}/messages", json={"message": text})
        resp = client.get(f"/api/reports/{sample_report.id}/messages")
        bodies = [m["body"] for m in resp.json()]
        assert bodies[1:] == ["first", "second", "third"]
        ids = [m["id"] for m in resp.json()]
        assert ids == sorted(ids)


# ── Satisfaction ─────────────────────────────────────────────────────


class TestSatisfaction:
    def test_not_allowed_while_open(self, client, sample_report):
        resp = client.post(
            f"/api/reports/{sample_report.id}/satisfaction", json={"rating": "positive"},
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "satisfaction_not_allowed"

    def test_rating_closes_resolved_report(self, client, db_session, sample_report, admin_user):
        report_service.update_status(db_session, sample_report, "resolved", admin_user)

        resp = client.post(
            f"/api/reports/{sample_report.id}/satisfaction",
            json={"rating": "positive", "feedback": "Thanks!"},
        )
        assert resp.status_code == 201
        assert resp.json()["rating"] == "positive"

        thread = client.get(f"/api/reports/{sample_report.id}").json()
        assert thread["report"]["status"] == "closed"
        assert thread["satisfaction"]["feedback"] == "Thanks!"
        assert thread["messages"][-1]["system_type"] == "status_change"

    def test_second_rating_rejected(self, client, db_session, sample_report, admin_user):
        report_service.update_status(db_session, sample_report, "closed", admin_user)
        first = client.post(
            f"/api/reports/{sample_report.id}/satisfaction", json={"rating": "negative"},
        )
        second = client.post(
            f"/api/reports/{sample_report.id}/satisfaction", json={"rating": "positive"},
        )
        assert first.status_code == 201
        assert second.status_code == 409
        assert second.json()["code"] == "satisfaction_exists"
        assert db_session.query(SatisfactionRating).count() == 1

    def test_invalid_rating(self, client, sample_report):
        resp = client.post(
            f"/api/reports/{sample_report.id}/satisfaction", json={"rating": "meh"},
        )
        assert resp.status_code == 422


# ── Analysis (read-only) ─────────────────────────────────────────────


class TestReporterAnalysis:
    def test_no_analysis_yet(self, client, sample_report):
        resp = client.get(f"/api/reports/{sample_report.id}/analysis")
        assert resp.status_code == 200
        assert resp.json() is None

    def test_latest_job_returned(self, client, db_session, sample_report, admin_user):
        base = datetime.now(timezone.utc)
        older = AnalysisJob(
            report_id=sample_report.id, requested_by_id=admin_user.id,
            status="failed", error="timeout", created_at=base - timedelta(minutes=5),
        )
        newer = AnalysisJob(
            report_id=sample_report.id, requested_by_id=admin_user.id,
            status="processing", created_at=base,
        )
        db_session.add_all([older, newer])
        db_session.commit()

        data = client.get(f"/api/reports/{sample_report.id}/analysis").json()
        assert data["id"] == newer.id
        assert data["status"] == "processing"

    def test_reporter_cannot_trigger_analysis(self, client, sample_report):
        resp = client.post(
            f"/api/admin/reports/{sample_report.id}/analyze", json={},
        )
        assert resp.status_code == 403
