"""
Interview engine - the session state machine.

Lifecycle: NOT_STARTED -> IN_PROGRESS -> COMPLETED | CANCELLED.

Every mutating operation holds the session's lock, loads a fresh snapshot
from the repository, mutates that copy, and saves it in one write. A
failed operation simply drops its copy, so readers only ever see whole
snapshots. Cancellation is the exception: it writes the status directly
so it is never rejected as busy, and in-flight operations notice it by
re-reading the stored status before merging action results and before
saving.
"""
import json
import logging
from typing import Any, Awaitable, Callable, Optional

from onboarding.exceptions import (
    ActionFailure,
    ActionNotAllowedError,
    FunctionCallLoopExceeded,
    NotEligibleError,
    NotFoundError,
    OnboardingException,
    SessionNotFoundError,
    StepMismatchError,
    TerminalStateError,
)
from onboarding.models import (
    ActionContext,
    ActionResult,
    ActionTrigger,
    ChatReply,
    InterviewSession,
    MessageRole,
    Progress,
    QuestionDefinition,
    SessionStatus,
    SubmitResult,
)
from onboarding.models.session import utc_now
from onboarding.services import flow_engine
from onboarding.services.action_registry import ActionRegistry, resolve_templates
from onboarding.services.action_runner import ActionRunner, RunOutcome, dispatch_guarded, merge_result
from onboarding.services.session_locks import SessionLockManager
from onboarding.services.validator import validate

logger = logging.getLogger(__name__)

SummaryGenerator = Callable[[InterviewSession, list[QuestionDefinition]], Awaitable[Optional[str]]]


def _display_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str, ensure_ascii=False)


class InterviewEngine:
    """Public operations on interview sessions."""

    def __init__(
        self,
        question_repo,
        session_repo,
        registry: ActionRegistry,
        locks: Optional[SessionLockManager] = None,
        assistant=None,
        summary_generator: Optional[SummaryGenerator] = None,
    ):
        self.question_repo = question_repo
        self.session_repo = session_repo
        self.registry = registry
        self.runner = ActionRunner(registry)
        self.locks = locks or SessionLockManager()
        self.assistant = assistant
        self.summary_generator = summary_generator

    # =========================================================================
    # Internal helpers
    # =========================================================================

    async def _catalog(self) -> list[QuestionDefinition]:
        return await self.question_repo.list_active_questions()

    async def _load(self, session_id: str) -> InterviewSession:
        session = await self.session_repo.load_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    @staticmethod
    def _ensure_mutable(session: InterviewSession):
        if session.is_terminal:
            raise TerminalStateError(session.id, session.status.value)

    async def _ensure_not_cancelled(self, session_id: str):
        stored = await self.session_repo.get_status(session_id)
        if stored is not None and stored.is_terminal:
            logger.info(f"🛑 Session {session_id[:8]} became {stored.value} mid-operation, discarding changes")
            raise TerminalStateError(session_id, stored.value)

    async def _save(self, session: InterviewSession) -> InterviewSession:
        await self._ensure_not_cancelled(session.id)
        return await self.session_repo.save_session(session)

    async def _position(
        self,
        session: InterviewSession,
        question: QuestionDefinition,
        version: str,
    ) -> RunOutcome:
        """Run the question's auto-actions and, if they all succeed, move the cursor onto it."""
        outcome = await self.runner.run(
            question.auto_actions,
            session,
            version,
            question_key=question.key,
            before_merge=lambda name: self._ensure_not_cancelled(session.id),
        )
        if outcome.success:
            session.current_step = question.order
            session.catalog_version = version
        return outcome

    def _current(self, catalog: list[QuestionDefinition], session: InterviewSession) -> Optional[QuestionDefinition]:
        return flow_engine.next_question(catalog, session)

    async def _run_client_action(
        self,
        session: InterviewSession,
        current: Optional[QuestionDefinition],
        action_name: str,
        parameters: dict[str, Any],
        trigger: ActionTrigger,
    ) -> ActionResult:
        resolved = resolve_templates(parameters or {}, session.responses)
        context = ActionContext.from_session(
            session,
            question_key=current.key if current else None,
            trigger=trigger,
        )
        logger.info(f"⚙️ Running '{action_name}' ({trigger.value}) for session {session.id[:8]}")
        result = await dispatch_guarded(self.registry, action_name, resolved, context)
        if result.success:
            await self._ensure_not_cancelled(session.id)
            merge_result(session, action_name, result)
        else:
            logger.warning(f"❌ Action '{action_name}' failed for session {session.id[:8]}: {result.error}")
        return result

    # =========================================================================
    # Read operations
    # =========================================================================

    async def get_session(self, session_id: str) -> InterviewSession:
        return await self._load(session_id)

    async def get_progress(self, session_id: str) -> Progress:
        session = await self._load(session_id)
        catalog = await self._catalog()
        return flow_engine.progress(catalog, session)

    async def get_catalog(self) -> list[QuestionDefinition]:
        return await self._catalog()

    # =========================================================================
    # Lifecycle operations
    # =========================================================================

    async def create_session(
        self,
        user_id: str,
        site_id: Optional[str] = None,
        initial_responses: Optional[dict[str, Any]] = None,
    ) -> InterviewSession:
        """Create a session for the user, or return their active one."""
        async with self.locks.hold(f"user:{user_id}"):
            existing = await self.session_repo.find_active_session(user_id)
            if existing is not None:
                logger.info(f"🔁 Resuming session {existing.id[:8]} for user {user_id[:8]}")
                return existing

            catalog = await self._catalog()
            session = InterviewSession(
                user_id=user_id,
                site_id=site_id,
                responses=dict(initial_responses or {}),
                catalog_version=flow_engine.catalog_version(catalog),
            )
            await self.session_repo.create_session(session)
            logger.info(f"🆕 Created session {session.id[:8]} for user {user_id[:8]}")
            return session

    async def get_current_question(self, session_id: str) -> Optional[QuestionDefinition]:
        """
        The question the user should answer now.

        On the first call the cursor is positioned at the first eligible
        question and its auto-actions run. Later calls only read.
        """
        session = await self._load(session_id)
        if session.is_terminal:
            return None

        catalog = await self._catalog()
        if session.current_step != 0:
            return self._current(catalog, session)

        async with self.locks.hold(session_id):
            session = await self._load(session_id)
            self._ensure_mutable(session)
            question = self._current(catalog, session)
            if question is None or session.current_step != 0:
                return question

            outcome = await self._position(session, question, flow_engine.catalog_version(catalog))
            if not outcome.success:
                raise ActionFailure(outcome.failed_action, outcome.error)
            await self._save(session)
            logger.info(f"📍 Session {session_id[:8]} positioned at '{question.key}'")
            return question

    async def start(self, session_id: str) -> InterviewSession:
        """NOT_STARTED -> IN_PROGRESS; a no-op when already in progress."""
        async with self.locks.hold(session_id):
            session = await self._load(session_id)
            self._ensure_mutable(session)
            if session.status == SessionStatus.IN_PROGRESS:
                return session

            catalog = await self._catalog()
            if session.current_step == 0:
                question = self._current(catalog, session)
                if question is not None:
                    outcome = await self._position(session, question, flow_engine.catalog_version(catalog))
                    if not outcome.success:
                        raise ActionFailure(outcome.failed_action, outcome.error)

            session.status = SessionStatus.IN_PROGRESS
            await self._save(session)
            logger.info(f"▶️ Session {session_id[:8]} started")
            return session

    async def submit_response(self, session_id: str, question_key: str, value: Any) -> SubmitResult:
        """
        Answer the current question.

        Returns:
            SubmitResult. accepted=False carries validation errors and
            nothing is stored. accepted=True with action_error means the
            answer was stored but the next question's auto-actions failed,
            so the cursor stays put and resubmitting retries them.

        Raises:
            StepMismatchError: question_key is not the current question.
            TerminalStateError: the session is completed or cancelled.
        """
        catalog = await self._catalog()
        version = flow_engine.catalog_version(catalog)

        async with self.locks.hold(session_id):
            session = await self._load(session_id)
            self._ensure_mutable(session)

            current = self._current(catalog, session)
            if current is None or current.key != question_key:
                raise StepMismatchError(question_key, current.key if current else None)

            result = validate(current, value)
            if not result.valid:
                logger.info(f"Validation failed for '{question_key}' in session {session_id[:8]}")
                return SubmitResult(
                    accepted=False,
                    errors=result.errors,
                    next_question=current,
                    progress=flow_engine.progress(catalog, session),
                )

            if session.status == SessionStatus.NOT_STARTED:
                session.status = SessionStatus.IN_PROGRESS
                logger.info(f"▶️ Session {session_id[:8]} started by first response")

            if session.current_step == 0:
                outcome = await self._position(session, current, version)
                if not outcome.success:
                    raise ActionFailure(outcome.failed_action, outcome.error)

            session.responses[current.storage_key] = value
            session.add_message(MessageRole.USER, _display_value(value), question_key=current.key)

            upcoming = flow_engine.next_question_after(catalog, session, current.order)
            if upcoming is None:
                session.current_step = current.order + 1
                session.catalog_version = version
                await self._save(session)
                logger.info(f"🏁 Session {session_id[:8]} answered its last question")
                return SubmitResult(
                    accepted=True,
                    is_complete=True,
                    progress=flow_engine.progress(catalog, session),
                )

            outcome = await self._position(session, upcoming, version)
            await self._save(session)

            if not outcome.success:
                return SubmitResult(
                    accepted=True,
                    action_error=outcome.error,
                    failed_action=outcome.failed_action,
                    next_question=current,
                    progress=flow_engine.progress(catalog, session),
                )

            logger.info(f"➡️ Session {session_id[:8]}: '{current.key}' -> '{upcoming.key}'")
            return SubmitResult(
                accepted=True,
                next_question=upcoming,
                progress=flow_engine.progress(catalog, session),
            )

    async def go_back(self, session_id: str, question_key: str) -> Optional[QuestionDefinition]:
        """Rewind the cursor to an earlier question. Stored answers are kept."""
        catalog = await self._catalog()

        async with self.locks.hold(session_id):
            session = await self._load(session_id)
            self._ensure_mutable(session)

            target = flow_engine.find_question(catalog, question_key)
            if target is None:
                raise NotFoundError("Question", question_key)

            if session.current_step == 0 or target.order > session.current_step:
                current = self._current(catalog, session)
                raise StepMismatchError(question_key, current.key if current else None)

            previous_step = session.current_step
            session.current_step = target.order
            question = self._current(catalog, session)
            if question is not None:
                outcome = await self._position(session, question, flow_engine.catalog_version(catalog))
                if not outcome.success:
                    raise ActionFailure(outcome.failed_action, outcome.error)

            await self._save(session)
            logger.info(f"⏪ Session {session_id[:8]} rewound from step {previous_step} to {session.current_step}")
            return question

    async def execute_action(
        self,
        session_id: str,
        action_name: str,
        parameters: Optional[dict[str, Any]] = None,
        question_key: Optional[str] = None,
    ) -> ActionResult:
        """Run an action on client request, within the current question's allowed actions."""
        catalog = await self._catalog()

        async with self.locks.hold(session_id):
            session = await self._load(session_id)
            self._ensure_mutable(session)

            current = self._current(catalog, session)
            if question_key is not None and (current is None or current.key != question_key):
                raise StepMismatchError(question_key, current.key if current else None)
            if current is not None and not current.allows_action(action_name):
                raise ActionNotAllowedError(action_name, current.key)

            result = await self._run_client_action(
                session, current, action_name, parameters or {}, ActionTrigger.CLIENT
            )
            if result.success:
                await self._save(session)
            return result

    async def send_chat_message(self, session_id: str, text: str) -> ChatReply:
        """Hand a freeform message to the assistant."""
        if self.assistant is None:
            raise OnboardingException("Assistant is not configured", 503)

        catalog = await self._catalog()

        async with self.locks.hold(session_id):
            session = await self._load(session_id)
            self._ensure_mutable(session)
            current = self._current(catalog, session)

            async def run_action(action_name: str, parameters: dict[str, Any]) -> ActionResult:
                if current is not None and not current.allows_action(action_name):
                    return ActionResult.fail(f"Action '{action_name}' is not allowed for this question")
                return await self._run_client_action(
                    session, current, action_name, parameters, ActionTrigger.ASSISTANT
                )

            try:
                reply = await self.assistant.run_turn(session, text, catalog, current, run_action=run_action)
            except FunctionCallLoopExceeded as e:
                session.add_message(MessageRole.ASSISTANT, e.message)
                await self._save(session)
                raise

            await self._save(session)
            return reply

    async def complete_interview(self, session_id: str) -> InterviewSession:
        """
        Finish the interview.

        Raises:
            NotEligibleError: an eligible question is still unanswered.
        """
        catalog = await self._catalog()

        async with self.locks.hold(session_id):
            session = await self._load(session_id)
            self._ensure_mutable(session)

            remaining = self._current(catalog, session)
            if remaining is not None:
                raise NotEligibleError(remaining.key)

            if self.summary_generator is not None:
                try:
                    session.summary = await self.summary_generator(session, catalog)
                except Exception as e:
                    logger.error(f"Summary generation failed for session {session_id[:8]}: {e}", exc_info=True)
                    session.summary = None

            session.status = SessionStatus.COMPLETED
            session.completed_at = utc_now()
            session.add_message(MessageRole.SYSTEM, "Interview completed")
            await self._save(session)
            logger.info(f"✅ Session {session_id[:8]} completed")
            return session

    async def cancel_interview(self, session_id: str) -> InterviewSession:
        """
        Cancel the interview.

        Does not take the session lock; an operation still running for this
        session discards its changes when it next checks the stored status.
        """
        session = await self._load(session_id)
        self._ensure_mutable(session)

        if not await self.session_repo.update_status(session_id, SessionStatus.CANCELLED):
            # Completed or cancelled between the load and the write
            self._ensure_mutable(await self._load(session_id))
        logger.info(f"🚫 Session {session_id[:8]} cancelled")
        return await self._load(session_id)

    async def reset_interview(self, user_id: str, site_id: Optional[str] = None) -> InterviewSession:
        """
        Start the user's active interview over.

        Clears responses, external data, fingerprints and the transcript and
        puts the session back to NOT_STARTED with nothing positioned. Creates
        a session when the user has no active one.
        """
        async with self.locks.hold(f"user:{user_id}"):
            existing = await self.session_repo.find_active_session(user_id)
            if existing is None:
                catalog = await self._catalog()
                session = InterviewSession(
                    user_id=user_id,
                    site_id=site_id,
                    catalog_version=flow_engine.catalog_version(catalog),
                )
                await self.session_repo.create_session(session)
                logger.info(f"🆕 Created session {session.id[:8]} for user {user_id[:8]} on reset")
                return session

            async with self.locks.hold(existing.id):
                session = await self._load(existing.id)
                self._ensure_mutable(session)
                catalog = await self._catalog()

                session.status = SessionStatus.NOT_STARTED
                session.current_step = 0
                session.responses = {}
                session.external_data = {}
                session.action_fingerprints = {}
                session.transcript = []
                session.summary = None
                session.completed_at = None
                session.catalog_version = flow_engine.catalog_version(catalog)
                if site_id is not None:
                    session.site_id = site_id

                await self._save(session)
                logger.info(f"🔄 Session {session.id[:8]} reset for user {user_id[:8]}")
                return session
