"""
Onboarding assistant with code-controlled function calling.

The model sees the interview state in its system prompt and may call the
registered actions. The loop runs here, not in the SDK: every function
call is dispatched through the engine's action path, recorded in the
transcript, and the model is asked again, up to a fixed number of
consecutive calls per turn.
"""
import json
import logging
from typing import Any, Awaitable, Callable, Optional

from onboarding.config import (
    ASSISTANT_CONTEXT_MESSAGES,
    EXTERNAL_DATA_PREVIEW_CHARS,
    MAX_FUNCTION_CALLS,
)
from onboarding.exceptions import FunctionCallLoopExceeded
from onboarding.models import (
    ActionContext,
    ActionResult,
    ActionTrigger,
    ChatReply,
    InterviewSession,
    MessageRole,
    QuestionDefinition,
    SelectionConfig,
)
from onboarding.services.action_registry import ActionRegistry
from onboarding.services.action_runner import dispatch_guarded, merge_result
from onboarding_agent.prompts import (
    ASSISTANT_SYSTEM_PROMPT,
    EMPTY_REPLY_FALLBACK,
    NO_ACTIONS,
    NO_EXTERNAL_DATA,
    NO_QUESTION,
    NO_RESPONSES,
    SUMMARY_PROMPT,
)

logger = logging.getLogger(__name__)

RunAction = Callable[[str, dict[str, Any]], Awaitable[ActionResult]]


# =============================================================================
# PROMPT BUILDING
# =============================================================================

def _preview(value: Any, limit: int = EXTERNAL_DATA_PREVIEW_CHARS) -> str:
    text = value if isinstance(value, str) else json.dumps(value, default=str, ensure_ascii=False)
    return text if len(text) <= limit else text[:limit] + "..."


def describe_question(question: Optional[QuestionDefinition]) -> str:
    if question is None:
        return NO_QUESTION
    lines = [f"- key: {question.key}", f"- type: {question.type.value}"]
    config = question.input_config
    if isinstance(config, SelectionConfig) and config.options:
        lines.append(f"- options: {', '.join(str(o) for o in config.option_values())}")
    if question.validation.required:
        lines.append("- required: yes")
    return "\n".join(lines)


def describe_responses(responses: dict[str, Any]) -> str:
    if not responses:
        return NO_RESPONSES
    return "\n".join(f"- {key}: {_preview(value)}" for key, value in responses.items())


def describe_external_data(external_data: dict[str, Any]) -> str:
    if not external_data:
        return NO_EXTERNAL_DATA
    return "\n".join(f"- {key}: {_preview(value)}" for key, value in external_data.items())


def build_system_prompt(
    session: InterviewSession,
    current_question: Optional[QuestionDefinition],
    action_names: list[str],
) -> str:
    return ASSISTANT_SYSTEM_PROMPT.format(
        current_question=describe_question(current_question),
        responses=describe_responses(session.responses),
        external_data=describe_external_data(session.external_data),
        actions=", ".join(action_names) if action_names else NO_ACTIONS,
    )


# =============================================================================
# ASSISTANT BRIDGE
# =============================================================================

class AssistantBridge:
    """Runs one chat turn against the language model with bounded function calling."""

    def __init__(
        self,
        llm,
        registry: ActionRegistry,
        max_function_calls: int = MAX_FUNCTION_CALLS,
        context_messages: int = ASSISTANT_CONTEXT_MESSAGES,
    ):
        self.llm = llm
        self.registry = registry
        self.max_function_calls = max_function_calls
        self.context_messages = context_messages

    async def run_turn(
        self,
        session: InterviewSession,
        text: str,
        catalog: list[QuestionDefinition],
        current_question: Optional[QuestionDefinition],
        run_action: Optional[RunAction] = None,
    ) -> ChatReply:
        """
        Handle one user message, mutating `session` (transcript and merged
        action data) in place.

        Raises:
            FunctionCallLoopExceeded: the model kept calling functions past the limit.
        """
        if run_action is None:
            run_action = self._direct_runner(session, current_question)

        session.add_message(
            MessageRole.USER,
            text,
            question_key=current_question.key if current_question else None,
        )

        allowed = current_question.allowed_actions if current_question else None
        tools = self.registry.declarations(allowed)
        action_names = [tool["name"] for tool in tools]

        calls = 0
        while True:
            system_prompt = build_system_prompt(session, current_question, action_names)
            reply = await self.llm.converse(system_prompt, session.transcript[-self.context_messages:], tools)

            if reply.function_call is None:
                answer = (reply.text or "").strip() or EMPTY_REPLY_FALLBACK
                session.add_message(MessageRole.ASSISTANT, answer)
                logger.info(f"💬 Assistant replied in session {session.id[:8]} after {calls} function calls")
                return ChatReply(reply=answer, function_calls=calls)

            calls += 1
            if calls > self.max_function_calls:
                logger.warning(
                    f"🔁 Function call loop limit ({self.max_function_calls}) hit in session {session.id[:8]}"
                )
                raise FunctionCallLoopExceeded(self.max_function_calls)

            call = reply.function_call
            if call.name not in action_names:
                result = ActionResult.fail(f"Action '{call.name}' is not available")
            else:
                result = await run_action(call.name, call.parameters)

            session.add_message(
                MessageRole.FUNCTION,
                reply.text or "",
                function_call=call,
                function_result=result,
            )

    def _direct_runner(
        self,
        session: InterviewSession,
        current_question: Optional[QuestionDefinition],
    ) -> RunAction:
        async def run(action_name: str, parameters: dict[str, Any]) -> ActionResult:
            context = ActionContext.from_session(
                session,
                question_key=current_question.key if current_question else None,
                trigger=ActionTrigger.ASSISTANT,
            )
            result = await dispatch_guarded(self.registry, action_name, parameters, context)
            if result.success:
                merge_result(session, action_name, result)
            return result
        return run


# =============================================================================
# SUMMARY
# =============================================================================

class StrategySummaryGenerator:
    """Finalize hook: writes a short strategy summary when the interview completes."""

    def __init__(self, llm):
        self.llm = llm

    async def __call__(
        self,
        session: InterviewSession,
        catalog: list[QuestionDefinition],
    ) -> Optional[str]:
        prompt = SUMMARY_PROMPT.format(
            responses=describe_responses(session.responses),
            external_data=describe_external_data(session.external_data),
        )
        summary = (await self.llm.generate(prompt)).strip()
        logger.info(f"📝 Summary generated for session {session.id[:8]} ({len(summary)} chars)")
        return summary or None
