"""
test_services_report.py — Tests for the report lifecycle service

Status workflow, system messages, closed-thread immutability, satisfaction
uniqueness, notifications and access rules, exercised without HTTP.

Called by: pytest
Depends on: triage/services/report_service.py, triage/services/notification_service.py
"""

import pytest

from triage.errors import (
    Forbidden,
    InvalidTransition,
    NotFound,
    ReportClosed,
    SatisfactionExists,
    SatisfactionNotAllowed,
)
from triage.models import Notification, ReportMessage, SatisfactionRating
from triage.schemas.reports import ReportCreate
from triage.services import notification_service, report_service


def _system_types(db, report):
    return [m.system_type for m in report_service.list_messages(db, report.id) if m.is_system]


class TestCreate:
    def test_scenario_login_button(self, db_session, test_user):
        body = ReportCreate(
            title="Login button missing",
            description="Cannot see login CTA on mobile",
            severity="high",
            category="ui",
            screenshot_url="https://cdn.example.com/bug-reports/1/a/shot.png",
        )
        report = report_service.create_report(db_session, test_user, body)
        assert report.status == "open"
        assert report.screenshot_url == "https://cdn.example.com/bug-reports/1/a/shot.png"
        assert _system_types(db_session, report) == ["submitted"]
        assert report.reporter_name == "Rita Reporter"

    def test_support_wording(self, db_session, test_user):
        body = ReportCreate(report_type="support", title="Help", description="Where is my plan?")
        report = report_service.create_report(db_session, test_user, body)
        msg = report_service.list_messages(db_session, report.id)[0]
        assert msg.body.startswith("Support request submitted")


class TestStatusWorkflow:
    def test_full_forward_path(self, db_session, sample_report, admin_user):
        for status in ("in_progress", "resolved", "closed"):
            report_service.update_status(db_session, sample_report, status, admin_user)
        assert sample_report.status == "closed"
        assert _system_types(db_session, sample_report) == [
            "submitted", "status_change", "resolved", "status_change",
        ]
        assert sample_report.resolved_by_id == admin_user.id

    def test_skip_to_resolved(self, db_session, sample_report, admin_user):
        report_service.update_status(db_session, sample_report, "resolved", admin_user)
        assert sample_report.resolved_at is not None

    def test_backwards_rejected(self, db_session, sample_report, admin_user):
        report_service.update_status(db_session, sample_report, "resolved", admin_user)
        with pytest.raises(InvalidTransition):
            report_service.update_status(db_session, sample_report, "in_progress", admin_user)

    def test_update_report_is_all_or_nothing(self, db_session, sample_report, admin_user):
        report_service.update_status(db_session, sample_report, "resolved", admin_user)
        with pytest.raises(InvalidTransition):
            report_service.update_report(
                db_session, sample_report, admin_user, status="in_progress", admin_notes="new",
            )
        assert sample_report.admin_notes is None
        assert _system_types(db_session, sample_report) == ["submitted", "resolved"]

    def test_unknown_status(self, db_session, sample_report, admin_user):
        with pytest.raises(InvalidTransition):
            report_service.update_status(db_session, sample_report, "reopened", admin_user)

    def test_reporter_notified(self, db_session, sample_report, admin_user, test_user):
        report_service.update_status(db_session, sample_report, "in_progress", admin_user)
        note = db_session.query(Notification).filter_by(user_id=test_user.id).one()
        assert note.type == "bug_status_changed"
        assert note.priority == "normal"
        assert note.data == {"bugId": sample_report.id}


class TestClosedImmutability:
    @pytest.fixture()
    def closed_report(self, db_session, sample_report, admin_user):
        report_service.update_status(db_session, sample_report, "closed", admin_user)
        return sample_report

    def test_reporter_rejected(self, db_session, closed_report, test_user):
        with pytest.raises(ReportClosed):
            report_service.add_message(db_session, closed_report, test_user, "hello")

    def test_staff_rejected(self, db_session, closed_report, admin_user):
        with pytest.raises(ReportClosed):
            report_service.add_message(db_session, closed_report, admin_user, "hello")

    def test_assignment_rejected(self, db_session, closed_report, admin_user):
        with pytest.raises(ReportClosed):
            report_service.assign_report(db_session, closed_report, admin_user, admin_user)

    def test_no_message_appended(self, db_session, closed_report, test_user):
        before = db_session.query(ReportMessage).count()
        with pytest.raises(ReportClosed):
            report_service.add_message(db_session, closed_report, test_user, "hello")
        assert db_session.query(ReportMessage).count() == before


class TestMessages:
    def test_interleaved_messages_keep_arrival_order(self, db_session, sample_report, test_user, admin_user):
        report_service.add_message(db_session, sample_report, test_user, "r1")
        report_service.add_message(db_session, sample_report, admin_user, "a1")
        report_service.add_message(db_session, sample_report, test_user, "r2")
        bodies = [m.body for m in report_service.list_messages(db_session, sample_report.id)]
        assert bodies[1:] == ["r1", "a1", "r2"]

    def test_successive_fetches_are_prefix_consistent(self, db_session, sample_report, test_user):
        first = [m.id for m in report_service.list_messages(db_session, sample_report.id)]
        report_service.add_message(db_session, sample_report, test_user, "more")
        second = [m.id for m in report_service.list_messages(db_session, sample_report.id)]
        assert second[: len(first)] == first

    def test_staff_reply_notifies_reporter(self, db_session, sample_report, admin_user, test_user):
        report_service.add_message(db_session, sample_report, admin_user, "Can you retry?")
        note = db_session.query(Notification).filter_by(user_id=test_user.id).one()
        assert note.type == "bug_response"
        assert note.priority == "high"
        assert note.link == f"/app/my-bug-reports?bugId={sample_report.id}"

    def test_stranger_forbidden(self, db_session, sample_report, other_user):
        with pytest.raises(Forbidden):
            report_service.add_message(db_session, sample_report, other_user, "hi")


class TestSatisfaction:
    def test_requires_resolution(self, db_session, sample_report, test_user):
        with pytest.raises(SatisfactionNotAllowed):
            report_service.submit_satisfaction(db_session, sample_report, test_user, "positive")

    def test_only_reporter(self, db_session, sample_report, admin_user, other_user):
        report_service.update_status(db_session, sample_report, "resolved", admin_user)
        with pytest.raises(Forbidden):
            report_service.submit_satisfaction(db_session, sample_report, other_user, "positive")

    def test_at_most_one(self, db_session, sample_report, admin_user, test_user):
        report_service.update_status(db_session, sample_report, "resolved", admin_user)
        report_service.submit_satisfaction(db_session, sample_report, test_user, "positive", "great")
        for _ in range(3):
            with pytest.raises(SatisfactionExists):
                report_service.submit_satisfaction(db_session, sample_report, test_user, "negative")
        assert db_session.query(SatisfactionRating).count() == 1

    def test_rating_on_resolved_closes(self, db_session, sample_report, admin_user, test_user):
        report_service.update_status(db_session, sample_report, "resolved", admin_user)
        report_service.submit_satisfaction(db_session, sample_report, test_user, "negative")
        assert sample_report.status == "closed"
        assert _system_types(db_session, sample_report)[-1] == "status_change"

    def test_empty_feedback_stored_as_null(self, db_session, sample_report, admin_user, test_user):
        report_service.update_status(db_session, sample_report, "closed", admin_user)
        entry = report_service.submit_satisfaction(db_session, sample_report, test_user, "positive", "")
        assert entry.feedback is None


class TestAccess:
    def test_reporter_cannot_read_others(self, db_session, sample_report, other_user):
        with pytest.raises(NotFound):
            report_service.get_report_for_user(db_session, other_user, sample_report.id)

    def test_staff_reads_all(self, db_session, sample_report, admin_user):
        assert report_service.get_report_for_user(db_session, admin_user, sample_report.id) is sample_report

    def test_archive_is_soft(self, db_session, sample_report, admin_user):
        report_service.archive_report(db_session, sample_report, admin_user)
        assert report_service.list_reports(db_session) == []
        assert report_service.list_reports(db_session, include_archived=True) == [sample_report]


class TestNotificationLinks:
    def test_reporter_link(self):
        assert notification_service.link_for(7) == "/app/my-bug-reports?bugId=7"
        assert notification_service.link_for() == "/app/my-bug-reports"

    def test_staff_link(self):
        assert notification_service.link_for(7, staff=True) == "/app/admin?tab=bugs&bugId=7"

    def test_inactive_admins_skipped(self, db_session, admin_user, second_admin):
        second_admin.is_active = False
        db_session.commit()
        notes = notification_service.notify_admins(db_session, "new_bug_report", "t", "m", report_id=1)
        assert [n.user_id for n in notes] == [admin_user.id]

    def test_mark_read(self, db_session, test_user, other_user):
        note = notification_service.send_notification(db_session, test_user.id, "bug_submitted", "t", "m")
        db_session.commit()
        assert notification_service.mark_read(db_session, other_user.id, note.id) is None
        assert notification_service.mark_read(db_session, test_user.id, note.id).is_read is True
        assert notification_service.list_notifications(db_session, test_user.id, unread_only=True) == []
