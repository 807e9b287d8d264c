"""
test_client_conversation.py — Tests for the conversation thread, satisfaction
prompt and analysis card

Called by: pytest
Depends on: triage/client/conversation.py
"""

import asyncio

import pytest

from triage.client.conversation import (
    AnalysisPanel,
    ConversationView,
    SatisfactionCollector,
    latest_job,
    parse_report_link,
)
from triage.errors import ReportClosed, SatisfactionExists, SatisfactionNotAllowed, ValidationError


def _run(coro):
    """Run an async coroutine synchronously in a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _msg(id, body, **kw):
    return {"id": id, "body": body, "is_system": False, "is_admin": False, **kw}


class FakeThreadApi:
    def __init__(self, status="open", messages=None, satisfaction=None):
        self.status = status
        self.messages = list(messages or [])
        self.satisfaction = satisfaction
        self.sent = []
        self.ratings = []
        self.next_id = 100
        self.gate = None

    async def get_report_with_messages(self, report_id):
        return {
            "report": {"id": report_id, "status": self.status},
            "messages": list(self.messages),
            "satisfaction": self.satisfaction,
        }

    async def add_message(self, report_id, text):
        if self.status == "closed":
            raise ReportClosed()
        self.next_id += 1
        message = _msg(self.next_id, text)
        self.messages.append(message)
        self.sent.append(text)
        return message

    async def submit_satisfaction(self, report_id, rating, feedback=None):
        if self.gate is not None:
            await self.gate.wait()
        if self.satisfaction is not None:
            raise SatisfactionExists()
        self.ratings.append(rating)
        self.satisfaction = {"id": 1, "rating": rating, "feedback": feedback}
        if self.status == "resolved":
            self.status = "closed"
        return self.satisfaction


# ── Links ────────────────────────────────────────────────────────────


class TestReportLinks:
    @pytest.mark.parametrize("link,expected", [
        ("/app/my-bug-reports?bugId=17", 17),
        ("/app/admin?tab=bugs&bugId=4", 4),
        ("/app/my-bug-reports", None),
        ("/app/my-bug-reports?bugId=abc", None),
        (None, None),
    ])
    def test_parse(self, link, expected):
        assert parse_report_link(link) == expected

    def test_from_link(self):
        view = ConversationView.from_link(FakeThreadApi(), "/app/my-bug-reports?bugId=17")
        assert view.report_id == 17
        assert ConversationView.from_link(FakeThreadApi(), "/app/my-bug-reports") is None


# ── Thread ───────────────────────────────────────────────────────────


class TestConversation:
    def test_refresh_merges_by_id(self):
        api = FakeThreadApi(messages=[_msg(1, "submitted", is_system=True), _msg(2, "first")])
        view = ConversationView(api, 5)
        view.merge([_msg(3, "local echo")])

        _run(view.refresh())

        assert [m["id"] for m in view.messages] == [1, 2, 3]

    def test_server_copy_replaces_local(self):
        api = FakeThreadApi(messages=[_msg(2, "edited on server")])
        view = ConversationView(api, 5)
        view.merge([_msg(2, "local")])
        _run(view.refresh())
        assert view.messages == [_msg(2, "edited on server")]

    def test_repeated_refresh_is_stable(self):
        api = FakeThreadApi(messages=[_msg(1, "a"), _msg(2, "b")])
        view = ConversationView(api, 5)
        first = list(_run(view.refresh()))
        api.messages.append(_msg(3, "c"))
        second = _run(view.refresh())
        assert second[: len(first)] == first

    def test_send_appends_locally(self):
        api = FakeThreadApi(messages=[_msg(1, "submitted")])
        view = ConversationView(api, 5)
        _run(view.refresh())
        message = _run(view.send("  Still broken  "))
        assert message["body"] == "Still broken"
        assert view.messages[-1]["id"] == message["id"]

    def test_empty_message_rejected_locally(self):
        api = FakeThreadApi()
        with pytest.raises(ValidationError):
            _run(ConversationView(api, 5).send("   "))
        assert api.sent == []

    def test_closed_thread_rejects_send(self):
        api = FakeThreadApi(status="closed", messages=[_msg(1, "submitted")])
        view = ConversationView(api, 5)
        _run(view.refresh())
        assert view.is_closed is True
        with pytest.raises(ReportClosed):
            _run(view.send("Hello?"))
        assert api.sent == []
        assert len(view.messages) == 1

    def test_closed_on_server_marks_view_closed(self):
        api = FakeThreadApi(status="open")
        view = ConversationView(api, 5)
        _run(view.refresh())
        api.status = "closed"
        with pytest.raises(ReportClosed):
            _run(view.send("Hello?"))
        assert view.is_closed is True


# ── Satisfaction ─────────────────────────────────────────────────────


class TestSatisfaction:
    def test_hidden_while_open(self):
        view = ConversationView(FakeThreadApi(status="in_progress"), 5)
        _run(view.refresh())
        assert view.satisfaction.should_show is False
        with pytest.raises(SatisfactionNotAllowed):
            _run(view.satisfaction.submit("positive"))

    def test_shown_when_resolved_and_unrated(self):
        view = ConversationView(FakeThreadApi(status="resolved"), 5)
        _run(view.refresh())
        assert view.satisfaction.should_show is True

    def test_submit_hides_and_closes(self):
        api = FakeThreadApi(status="resolved")
        view = ConversationView(api, 5)
        _run(view.refresh())

        _run(view.satisfaction.submit("positive", "Thanks"))

        assert view.satisfaction.should_show is False
        assert view.satisfaction.status == "closed"
        _run(view.refresh())
        assert view.satisfaction.should_show is False
        assert view.satisfaction.rating["rating"] == "positive"

    def test_pending_hides_prompt_during_refresh(self):
        api = FakeThreadApi(status="resolved")
        view = ConversationView(api, 5)

        async def scenario():
            await view.refresh()
            api.gate = asyncio.Event()
            task = asyncio.create_task(view.satisfaction.submit("negative"))
            await asyncio.sleep(0)
            assert view.satisfaction.pending is True
            await view.refresh()
            assert view.satisfaction.should_show is False
            with pytest.raises(SatisfactionExists):
                await view.satisfaction.submit("positive")
            api.gate.set()
            await task

        _run(scenario())
        assert api.ratings == ["negative"]

    def test_server_wins_when_already_rated(self):
        api = FakeThreadApi(status="closed", satisfaction={"id": 9, "rating": "positive", "feedback": None})
        collector = SatisfactionCollector(api, 5)
        collector.reconcile("closed", None)
        assert collector.should_show is True

        with pytest.raises(SatisfactionExists):
            _run(collector.submit("negative"))
        assert collector.should_show is False

        collector.reconcile("closed", api.satisfaction)
        assert collector.rating["id"] == 9


# ── Analysis card ────────────────────────────────────────────────────


class FakeAnalysisApi:
    def __init__(self, jobs=None):
        self.jobs = list(jobs or [])
        self.started = []

    async def get_latest_analysis(self, report_id, *, staff=False):
        return latest_job(self.jobs)

    async def start_analysis_job(self, report_id, *, include_screenshot=False, include_video=False):
        self.started.append((include_screenshot, include_video))
        job = {"id": len(self.jobs) + 1, "status": "pending", "created_at": "2026-01-01T00:00:0%d" % len(self.jobs)}
        self.jobs.append(job)
        return job


class TestAnalysisPanel:
    def test_latest_job_by_created_at(self):
        jobs = [
            {"id": 1, "status": "completed", "created_at": "2026-01-01T10:00:00"},
            {"id": 2, "status": "failed", "created_at": "2026-01-01T11:00:00"},
        ]
        assert latest_job(jobs)["id"] == 2
        assert latest_job([]) is None

    def test_states(self):
        panel = AnalysisPanel(FakeAnalysisApi(), 5, staff=True)
        assert panel.state == "none"
        panel.job = {"id": 1, "status": "processing"}
        assert panel.state == "in_progress"
        assert panel.can_run is False
        panel.job = {"id": 1, "status": "failed", "error": None}
        assert panel.error_message == "Analysis failed"
        assert panel.can_run is True

    def test_reporter_cannot_run(self):
        panel = AnalysisPanel(FakeAnalysisApi(), 5)
        assert panel.can_run is False

    def test_reanalyze_shows_new_job(self):
        api = FakeAnalysisApi([{"id": 1, "status": "completed", "created_at": "2026-01-01T00:00:00"}])
        panel = AnalysisPanel(api, 5, staff=True)
        _run(panel.refresh())
        assert panel.state == "completed"

        _run(panel.analyze({"screenshot_url": "https://cdn.example.com/s.png", "video_url": None}))
        assert api.started == [(True, False)]
        _run(panel.refresh())
        assert panel.job["id"] == 2
        assert panel.state == "in_progress"

    def test_wait_polls_until_terminal(self):
        api = FakeAnalysisApi([{"id": 1, "status": "pending", "created_at": "2026-01-01T00:00:00"}])
        panel = AnalysisPanel(api, 5, staff=True, poll_interval=0)

        async def scenario():
            await panel.refresh()
            api.jobs[0] = {**api.jobs[0], "status": "completed"}
            return await panel.wait(max_polls=3)

        assert _run(scenario())["status"] == "completed"
