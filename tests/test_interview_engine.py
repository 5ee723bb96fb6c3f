"""
Tests for the interview session state machine.

Covers the end-to-end flow through the website catalog, the validation,
action-failure and completion scenarios, lock contention, cancellation
while an action is running, and terminal-state rejection.

Run with: pytest tests/test_interview_engine.py -v
"""
import asyncio

import pytest

from fakes import EchoUrlAction, GatedAction, StaticAction, engine_for, question

from onboarding.exceptions import (
    ActionFailure,
    ActionNotAllowedError,
    ConcurrencyBusyError,
    NotEligibleError,
    NotFoundError,
    StepMismatchError,
    TerminalStateError,
)
from onboarding.models import ActionResult, MessageRole, SessionStatus


async def new_session(engine, user_id="user-1", **kwargs):
    session = await engine.create_session(user_id, **kwargs)
    await engine.get_current_question(session.id)
    return session.id


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_full_flow(self, engine, crawl_action):
        session = await engine.create_session("user-1", site_id="site-9")
        assert session.status == SessionStatus.NOT_STARTED
        assert session.current_step == 0

        first = await engine.get_current_question(session.id)
        assert first.key == "websiteUrl"

        result = await engine.submit_response(session.id, "websiteUrl", "https://acme.com")
        assert result.accepted is True
        assert result.next_question.key == "platform"
        assert crawl_action.calls[0][0] == {"url": "https://acme.com"}

        result = await engine.submit_response(session.id, "platform", "shopify")
        assert result.next_question.key == "goals"

        result = await engine.submit_response(session.id, "goals", ["leads"])
        assert result.is_complete is True
        assert result.next_question is None
        assert await engine.get_current_question(session.id) is None

        completed = await engine.complete_interview(session.id)
        assert completed.status == SessionStatus.COMPLETED
        assert completed.completed_at is not None

        stored = await engine.get_session(session.id)
        assert stored.responses == {"websiteUrl": "https://acme.com", "platform": "shopify", "goals": ["leads"]}
        assert stored.external_data == {"crawled": {"ran": "crawl"}}
        assert stored.site_id == "site-9"
        assert [m.role for m in stored.transcript] == [
            MessageRole.USER, MessageRole.USER, MessageRole.USER, MessageRole.SYSTEM,
        ]
        assert stored.transcript[0].question_key == "websiteUrl"
        progress = await engine.get_progress(session.id)
        assert progress.percentage == 100

    @pytest.mark.asyncio
    async def test_first_response_starts_session(self, engine):
        session_id = await new_session(engine)
        await engine.submit_response(session_id, "websiteUrl", "https://acme.com")
        assert (await engine.get_session(session_id)).status == SessionStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_start_positions_cursor(self, engine):
        session = await engine.create_session("user-1")
        started = await engine.start(session.id)
        assert started.status == SessionStatus.IN_PROGRESS
        assert started.current_step == 1

        again = await engine.start(session.id)
        assert again.status == SessionStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_create_session_resumes_active_session(self, engine):
        first = await engine.create_session("user-1", initial_responses={"websiteUrl": "https://acme.com"})
        second = await engine.create_session("user-1")
        other = await engine.create_session("user-2")

        assert second.id == first.id
        assert second.responses == {"websiteUrl": "https://acme.com"}
        assert other.id != first.id

    @pytest.mark.asyncio
    async def test_new_session_after_cancel(self, engine):
        first = await engine.create_session("user-1")
        await engine.cancel_interview(first.id)
        second = await engine.create_session("user-1")
        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_resume_does_not_rerun_actions(self, website_catalog, crawl_action):
        engine = engine_for(website_catalog, [crawl_action])
        session_id = await new_session(engine)
        await engine.submit_response(session_id, "websiteUrl", "https://acme.com")

        for _ in range(3):
            assert (await engine.get_current_question(session_id)).key == "platform"
        assert len(crawl_action.calls) == 1

    @pytest.mark.asyncio
    async def test_unknown_session(self, engine):
        with pytest.raises(NotFoundError):
            await engine.get_session("does-not-exist")
        with pytest.raises(NotFoundError):
            await engine.submit_response("does-not-exist", "websiteUrl", "x")


class TestScenarios:

    @pytest.mark.asyncio
    async def test_required_then_dependent_question(self, url_catalog):
        engine = engine_for(url_catalog)
        session_id = await new_session(engine)

        rejected = await engine.submit_response(session_id, "url", "")
        assert rejected.accepted is False
        assert rejected.errors
        assert (await engine.get_session(session_id)).current_step == 1
        assert (await engine.get_session(session_id)).responses == {}

        accepted = await engine.submit_response(session_id, "url", "https://x.com")
        assert accepted.accepted is True
        assert (await engine.get_current_question(session_id)).key == "platform"

    @pytest.mark.asyncio
    async def test_show_condition_skips_branch(self, engine):
        session_id = await new_session(engine)
        await engine.submit_response(session_id, "websiteUrl", "https://acme.com")

        result = await engine.submit_response(session_id, "platform", "shopify")

        assert result.next_question.key == "goals"
        assert (await engine.get_session(session_id)).current_step == 4

    @pytest.mark.asyncio
    async def test_show_condition_includes_branch(self, engine):
        session_id = await new_session(engine)
        await engine.submit_response(session_id, "websiteUrl", "https://acme.com")
        result = await engine.submit_response(session_id, "platform", "wordpress")
        assert result.next_question.key == "importArticles"

    @pytest.mark.asyncio
    async def test_action_failure_keeps_cursor_and_error(self, website_catalog):
        crawl = StaticAction("crawl", ActionResult.fail("timeout"))
        engine = engine_for(website_catalog, [crawl])
        session_id = await new_session(engine)

        result = await engine.submit_response(session_id, "websiteUrl", "https://acme.com")

        assert result.accepted is True
        assert result.action_error == "timeout"
        assert result.failed_action == "crawl"
        assert result.next_question.key == "websiteUrl"
        stored = await engine.get_session(session_id)
        assert stored.current_step == 1
        assert stored.responses == {"websiteUrl": "https://acme.com"}
        assert stored.external_data == {}

        # Resubmitting the same question retries the action
        crawl.result = ActionResult.ok({"title": "Acme"})
        retried = await engine.submit_response(session_id, "websiteUrl", "https://acme.com")
        assert retried.action_error is None
        assert retried.next_question.key == "platform"
        assert (await engine.get_session(session_id)).external_data == {"crawled": {"title": "Acme"}}

    @pytest.mark.asyncio
    async def test_real_timeout_is_surfaced(self, website_catalog):
        engine = engine_for(website_catalog, [StaticAction("crawl", delay=1.0)], timeout=0.01)
        session_id = await new_session(engine)

        result = await engine.submit_response(session_id, "websiteUrl", "https://acme.com")

        assert result.action_error == "timeout"
        assert (await engine.get_session(session_id)).current_step == 1

    @pytest.mark.asyncio
    async def test_complete_while_questions_remain(self, engine):
        session_id = await new_session(engine)

        with pytest.raises(NotEligibleError) as exc_info:
            await engine.complete_interview(session_id)

        assert exc_info.value.remaining_key == "websiteUrl"
        assert "not yet eligible" in exc_info.value.message
        assert (await engine.get_session(session_id)).status == SessionStatus.NOT_STARTED


class TestStepRules:

    @pytest.mark.asyncio
    async def test_duplicate_submission_is_rejected(self, engine):
        session_id = await new_session(engine)
        await engine.submit_response(session_id, "websiteUrl", "https://acme.com")

        with pytest.raises(StepMismatchError) as exc_info:
            await engine.submit_response(session_id, "websiteUrl", "https://acme.com")
        assert exc_info.value.current_key == "platform"

    @pytest.mark.asyncio
    async def test_answering_ahead_is_rejected(self, engine):
        session_id = await new_session(engine)
        with pytest.raises(StepMismatchError):
            await engine.submit_response(session_id, "goals", ["leads"])

    @pytest.mark.asyncio
    async def test_save_to_field(self):
        catalog = [question(1, "companyName", saveToField="business_name"), question(2, "done", "GREETING")]
        engine = engine_for(catalog)
        session_id = await new_session(engine)
        await engine.submit_response(session_id, "companyName", "Acme")
        assert (await engine.get_session(session_id)).responses == {"business_name": "Acme"}

    @pytest.mark.asyncio
    async def test_go_back_keeps_answers_and_skips_actions(self, engine, crawl_action):
        session_id = await new_session(engine)
        await engine.submit_response(session_id, "websiteUrl", "https://acme.com")
        await engine.submit_response(session_id, "platform", "shopify")

        target = await engine.go_back(session_id, "websiteUrl")

        assert target.key == "websiteUrl"
        stored = await engine.get_session(session_id)
        assert stored.current_step == 1
        assert stored.responses["platform"] == "shopify"

        result = await engine.submit_response(session_id, "websiteUrl", "https://acme.com")
        assert result.next_question.key == "platform"
        assert len(crawl_action.calls) == 1

    @pytest.mark.asyncio
    async def test_go_back_reruns_actions_when_answer_changes(self, engine, crawl_action):
        session_id = await new_session(engine)
        await engine.submit_response(session_id, "websiteUrl", "https://acme.com")
        await engine.go_back(session_id, "websiteUrl")
        await engine.submit_response(session_id, "websiteUrl", "https://other.com")
        assert [call[0]["url"] for call in crawl_action.calls] == ["https://acme.com", "https://other.com"]

    @pytest.mark.asyncio
    async def test_go_back_rules(self, engine):
        session_id = await new_session(engine)
        with pytest.raises(StepMismatchError):
            await engine.go_back(session_id, "goals")
        with pytest.raises(NotFoundError):
            await engine.go_back(session_id, "nope")


class TestActions:

    @pytest.mark.asyncio
    async def test_client_action_within_allow_list(self, website_catalog):
        crawl = StaticAction("crawl", ActionResult.ok({"title": "Acme"}))
        other = StaticAction("other")
        engine = engine_for(website_catalog, [crawl, other])
        session_id = await new_session(engine)
        await engine.submit_response(session_id, "websiteUrl", "https://acme.com")

        result = await engine.execute_action(session_id, "crawl", {"url": "{{websiteUrl}}"}, question_key="platform")

        assert result.success is True
        assert crawl.calls[-1][0] == {"url": "https://acme.com"}
        assert crawl.calls[-1][1].trigger.value == "client"
        assert (await engine.get_session(session_id)).external_data["crawl"] == {"title": "Acme"}

        with pytest.raises(ActionNotAllowedError):
            await engine.execute_action(session_id, "other", {})
        assert other.calls == []

    @pytest.mark.asyncio
    async def test_client_result_is_not_taken_for_cached_auto_result(self):
        catalog = [
            question(1, "websiteUrl", validation={"required": True}),
            question(
                2,
                "platform",
                "SELECTION",
                autoActions=[{"actionName": "crawl", "parameters": {"url": "{{websiteUrl}}"}}],
                allowedActions=["crawl"],
            ),
        ]
        crawl = EchoUrlAction("crawl")
        engine = engine_for(catalog, [crawl])
        session_id = await new_session(engine)
        await engine.submit_response(session_id, "websiteUrl", "https://a.com")

        await engine.execute_action(session_id, "crawl", {"url": "https://b.com"})
        assert (await engine.get_session(session_id)).external_data["crawl"] == {"url": "https://b.com"}

        await engine.go_back(session_id, "websiteUrl")
        await engine.submit_response(session_id, "websiteUrl", "https://a.com")

        stored = await engine.get_session(session_id)
        assert stored.external_data["crawl"] == {"url": "https://a.com"}, "auto-action must rerun for its own parameters"
        assert [call[0]["url"] for call in crawl.calls] == ["https://a.com", "https://b.com", "https://a.com"]

    @pytest.mark.asyncio
    async def test_empty_allow_list_permits_any_action(self, website_catalog):
        other = StaticAction("other")
        engine = engine_for(website_catalog, [StaticAction("crawl"), other])
        session_id = await new_session(engine)
        result = await engine.execute_action(session_id, "other", {})
        assert result.success is True

    @pytest.mark.asyncio
    async def test_failed_client_action_changes_nothing(self, website_catalog):
        engine = engine_for(website_catalog, [StaticAction("crawl"), StaticAction("other", ActionResult.fail("down"))])
        session_id = await new_session(engine)
        result = await engine.execute_action(session_id, "other", {})
        assert result.error == "down"
        assert (await engine.get_session(session_id)).external_data == {}

    @pytest.mark.asyncio
    async def test_action_for_wrong_question(self, engine):
        session_id = await new_session(engine)
        with pytest.raises(StepMismatchError):
            await engine.execute_action(session_id, "crawl", {}, question_key="platform")

    @pytest.mark.asyncio
    async def test_handler_exception_is_action_failure(self, website_catalog):
        engine = engine_for(website_catalog, [StaticAction("crawl", raises=RuntimeError("parser crashed"))])
        session_id = await new_session(engine)

        with pytest.raises(ActionFailure) as exc_info:
            await engine.submit_response(session_id, "websiteUrl", "https://acme.com")

        assert exc_info.value.error == "parser crashed"
        stored = await engine.get_session(session_id)
        assert stored.responses == {}
        assert stored.current_step == 1

    @pytest.mark.asyncio
    async def test_failing_first_question_action(self):
        catalog = [question(1, "intro", "GREETING", autoActions=[{"actionName": "broken"}])]
        engine = engine_for(catalog, [StaticAction("broken", ActionResult.fail("HTTP 503"))])
        session = await engine.create_session("user-1")

        with pytest.raises(ActionFailure) as exc_info:
            await engine.get_current_question(session.id)

        assert exc_info.value.error == "HTTP 503"
        assert (await engine.get_session(session.id)).current_step == 0


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_concurrent_mutation_is_rejected(self, website_catalog):
        gate = GatedAction("crawl")
        engine = engine_for(website_catalog, [gate])
        session_id = await new_session(engine)

        submit = asyncio.create_task(engine.submit_response(session_id, "websiteUrl", "https://acme.com"))
        await gate.started.wait()

        with pytest.raises(ConcurrencyBusyError):
            await engine.submit_response(session_id, "websiteUrl", "https://acme.com")
        with pytest.raises(ConcurrencyBusyError):
            await engine.execute_action(session_id, "crawl", {})

        # Readers see the last saved snapshot, never the in-flight copy
        snapshot = await engine.get_session(session_id)
        assert snapshot.responses == {}
        assert snapshot.current_step == 1

        gate.release.set()
        result = await submit
        assert result.next_question.key == "platform"

    @pytest.mark.asyncio
    async def test_other_sessions_are_not_blocked(self, website_catalog):
        gate = GatedAction("crawl")
        engine = engine_for(website_catalog, [gate])
        busy_id = await new_session(engine, "user-1")
        free_id = await new_session(engine, "user-2")

        submit = asyncio.create_task(engine.submit_response(busy_id, "websiteUrl", "https://acme.com"))
        await gate.started.wait()

        result = await engine.submit_response(free_id, "websiteUrl", "")
        assert result.accepted is False

        gate.release.set()
        await submit

    @pytest.mark.asyncio
    async def test_cancel_discards_in_flight_result(self, website_catalog):
        gate = GatedAction("crawl", ActionResult.ok({"title": "Acme"}))
        engine = engine_for(website_catalog, [gate])
        session_id = await new_session(engine)

        submit = asyncio.create_task(engine.submit_response(session_id, "websiteUrl", "https://acme.com"))
        await gate.started.wait()

        cancelled = await engine.cancel_interview(session_id)
        assert cancelled.status == SessionStatus.CANCELLED

        gate.release.set()
        with pytest.raises(TerminalStateError):
            await submit

        stored = await engine.get_session(session_id)
        assert stored.status == SessionStatus.CANCELLED
        assert stored.responses == {}
        assert stored.external_data == {}

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self, engine):
        session_id = await new_session(engine)
        with pytest.raises(StepMismatchError):
            await engine.submit_response(session_id, "goals", [])
        assert not engine.locks.is_locked(session_id)
        result = await engine.submit_response(session_id, "websiteUrl", "https://acme.com")
        assert result.accepted is True

    @pytest.mark.asyncio
    async def test_stale_snapshot_is_not_saved_over_cancel(self, engine):
        session_id = await new_session(engine)
        stale = await engine.session_repo.load_session(session_id)
        stale.responses["websiteUrl"] = "https://acme.com"
        stale.status = SessionStatus.IN_PROGRESS

        await engine.cancel_interview(session_id)

        with pytest.raises(TerminalStateError):
            await engine.session_repo.save_session(stale)
        stored = await engine.get_session(session_id)
        assert stored.status == SessionStatus.CANCELLED
        assert stored.responses == {}

    @pytest.mark.asyncio
    async def test_cancel_does_not_override_completion(self, url_catalog, monkeypatch):
        engine = engine_for(url_catalog)
        session_id = await new_session(engine)
        await engine.submit_response(session_id, "url", "https://x.com")
        await engine.submit_response(session_id, "platform", "wix")
        repo = engine.session_repo
        update_status = repo.update_status

        async def completed_first(sid, status, at=None):
            # Completion commits between cancel's load and its status write
            stored = await repo.load_session(sid)
            stored.status = SessionStatus.COMPLETED
            await repo.save_session(stored)
            return await update_status(sid, status, at)

        monkeypatch.setattr(repo, "update_status", completed_first)

        with pytest.raises(TerminalStateError):
            await engine.cancel_interview(session_id)
        assert (await engine.get_session(session_id)).status == SessionStatus.COMPLETED


class TestTerminalStates:

    @pytest.mark.asyncio
    async def test_not_started_session_can_be_cancelled(self, engine):
        session = await engine.create_session("user-1")
        assert session.status == SessionStatus.NOT_STARTED

        cancelled = await engine.cancel_interview(session.id)

        assert cancelled.status == SessionStatus.CANCELLED
        assert await engine.session_repo.find_active_session("user-1") is None

    @pytest.mark.asyncio
    async def test_cancelled_session_is_immutable(self, engine):
        session_id = await new_session(engine)
        await engine.cancel_interview(session_id)

        with pytest.raises(TerminalStateError):
            await engine.submit_response(session_id, "websiteUrl", "https://acme.com")
        with pytest.raises(TerminalStateError):
            await engine.start(session_id)
        with pytest.raises(TerminalStateError):
            await engine.go_back(session_id, "websiteUrl")
        with pytest.raises(TerminalStateError):
            await engine.execute_action(session_id, "crawl", {})
        with pytest.raises(TerminalStateError):
            await engine.complete_interview(session_id)
        with pytest.raises(TerminalStateError):
            await engine.cancel_interview(session_id)
        assert await engine.get_current_question(session_id) is None

    @pytest.mark.asyncio
    async def test_completed_session_is_immutable(self, url_catalog):
        engine = engine_for(url_catalog)
        session_id = await new_session(engine)
        await engine.submit_response(session_id, "url", "https://x.com")
        await engine.submit_response(session_id, "platform", "wix")
        await engine.complete_interview(session_id)

        with pytest.raises(TerminalStateError) as exc_info:
            await engine.go_back(session_id, "url")
        assert exc_info.value.status_code == 409
        with pytest.raises(TerminalStateError):
            await engine.cancel_interview(session_id)


class TestReset:

    @pytest.mark.asyncio
    async def test_reset_clears_active_session(self, engine, crawl_action):
        session_id = await new_session(engine, site_id="site-1")
        await engine.submit_response(session_id, "websiteUrl", "https://acme.com")
        assert len(crawl_action.calls) == 1

        reset = await engine.reset_interview("user-1")

        assert reset.id == session_id
        stored = await engine.get_session(session_id)
        assert stored.status == SessionStatus.NOT_STARTED
        assert stored.current_step == 0
        assert stored.responses == {}
        assert stored.external_data == {}
        assert stored.action_fingerprints == {}
        assert stored.transcript == []
        assert stored.site_id == "site-1"

        # Starting over runs the auto-actions again
        assert (await engine.get_current_question(session_id)).key == "websiteUrl"
        await engine.submit_response(session_id, "websiteUrl", "https://acme.com")
        assert len(crawl_action.calls) == 2

    @pytest.mark.asyncio
    async def test_reset_without_active_session_creates_one(self, engine):
        created = await engine.reset_interview("user-1", site_id="site-2")
        assert created.status == SessionStatus.NOT_STARTED
        assert created.site_id == "site-2"

        await engine.cancel_interview(created.id)
        replacement = await engine.reset_interview("user-1")

        assert replacement.id != created.id
        assert (await engine.get_session(created.id)).status == SessionStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_reset_of_busy_session_is_rejected(self, website_catalog):
        gate = GatedAction("crawl")
        engine = engine_for(website_catalog, [gate])
        session_id = await new_session(engine)

        submit = asyncio.create_task(engine.submit_response(session_id, "websiteUrl", "https://acme.com"))
        await gate.started.wait()

        with pytest.raises(ConcurrencyBusyError):
            await engine.reset_interview("user-1")

        gate.release.set()
        await submit
        assert (await engine.get_session(session_id)).responses == {"websiteUrl": "https://acme.com"}


class TestSummary:

    async def _finish(self, engine):
        session_id = await new_session(engine)
        await engine.submit_response(session_id, "url", "https://x.com")
        await engine.submit_response(session_id, "platform", "wix")
        return await engine.complete_interview(session_id)

    @pytest.mark.asyncio
    async def test_summary_is_stored(self, url_catalog):
        async def summarize(session, catalog):
            return f"{len(session.responses)} answers over {len(catalog)} questions"

        completed = await self._finish(engine_for(url_catalog, summary_generator=summarize))
        assert completed.summary == "2 answers over 2 questions"

    @pytest.mark.asyncio
    async def test_summary_failure_does_not_block_completion(self, url_catalog):
        async def broken(session, catalog):
            raise RuntimeError("model unavailable")

        completed = await self._finish(engine_for(url_catalog, summary_generator=broken))
        assert completed.status == SessionStatus.COMPLETED
        assert completed.summary is None


class TestPersistence:

    @pytest.mark.asyncio
    async def test_save_load_round_trip(self, engine):
        session_id = await new_session(engine)
        await engine.submit_response(session_id, "websiteUrl", "https://acme.com")

        loaded = await engine.session_repo.load_session(session_id)
        await engine.session_repo.save_session(loaded)
        reloaded = await engine.session_repo.load_session(session_id)

        assert reloaded.responses == loaded.responses
        assert reloaded.current_step == loaded.current_step
        assert reloaded.transcript == loaded.transcript
        assert reloaded.external_data == loaded.external_data

    @pytest.mark.asyncio
    async def test_loads_are_independent_copies(self, engine):
        session_id = await new_session(engine)
        first = await engine.session_repo.load_session(session_id)
        first.responses["websiteUrl"] = "mutated"
        second = await engine.session_repo.load_session(session_id)
        assert second.responses == {}
