"""
Sequential runner for a question's auto-actions.
"""
import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from onboarding.exceptions import ActionFailure, OnboardingException
from onboarding.models import ActionContext, ActionResult, ActionTrigger, AutoAction, InterviewSession
from onboarding.services.action_registry import ActionRegistry, resolve_templates

logger = logging.getLogger(__name__)

# Awaited before a result is merged; raises to discard the result
BeforeMergeHook = Callable[[str], Awaitable[None]]


@dataclass
class RunOutcome:
    success: bool
    failed_action: Optional[str] = None
    error: Optional[str] = None
    executed: int = 0
    skipped: int = 0


def action_fingerprint(action_name: str, parameters: Any, catalog_version: Optional[str]) -> str:
    payload = json.dumps(
        {"action": action_name, "parameters": parameters, "catalog": catalog_version},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def merge_result(session: InterviewSession, key: str, result: ActionResult, fingerprint: Optional[str] = None):
    """
    Store a successful result's whole payload under `key`.

    A merge without a fingerprint (client or assistant call) drops the
    key's stored fingerprint.
    """
    session.external_data[key] = result.data if result.data is not None else {}
    if fingerprint is not None:
        session.action_fingerprints[key] = fingerprint
    else:
        session.action_fingerprints.pop(key, None)


async def dispatch_guarded(
    registry: ActionRegistry,
    name: str,
    parameters: dict[str, Any],
    context: ActionContext,
) -> ActionResult:
    """Dispatch, converting anything a handler raises into ActionFailure."""
    try:
        return await registry.dispatch(name, parameters, context)
    except OnboardingException:
        raise
    except Exception as e:
        logger.error(f"💥 Action '{name}' raised for session {context.session_id[:8]}: {e}", exc_info=True)
        raise ActionFailure(name, str(e) or type(e).__name__) from e


class ActionRunner:
    """
    Runs auto-actions in declared order against a working session copy.

    Parameters are resolved against the responses as they stand when each
    action starts, so an earlier action's merged data is visible to later
    templates through external_data. The first failure stops the run and
    its error string is returned unchanged.
    """

    def __init__(self, registry: ActionRegistry):
        self.registry = registry

    async def run(
        self,
        auto_actions: list[AutoAction],
        session: InterviewSession,
        catalog_version: Optional[str],
        question_key: Optional[str] = None,
        before_merge: Optional[BeforeMergeHook] = None,
    ) -> RunOutcome:
        outcome = RunOutcome(success=True)

        for auto_action in auto_actions:
            key = auto_action.storage_key
            parameters = resolve_templates(auto_action.parameters, session.responses)
            fingerprint = action_fingerprint(auto_action.action_name, parameters, catalog_version)

            if session.action_fingerprints.get(key) == fingerprint and key in session.external_data:
                logger.info(
                    f"⏭️ Skipping '{auto_action.action_name}' for session {session.id[:8]}, "
                    f"result already stored under '{key}'"
                )
                outcome.skipped += 1
                continue

            context = ActionContext.from_session(session, question_key=question_key, trigger=ActionTrigger.AUTO)
            logger.info(f"⚙️ Running '{auto_action.action_name}' for session {session.id[:8]}")
            result = await dispatch_guarded(self.registry, auto_action.action_name, parameters, context)
            outcome.executed += 1

            if not result.success:
                logger.warning(
                    f"❌ Action '{auto_action.action_name}' failed for session {session.id[:8]}: {result.error}"
                )
                outcome.success = False
                outcome.failed_action = auto_action.action_name
                outcome.error = result.error
                return outcome

            if before_merge is not None:
                await before_merge(auto_action.action_name)
            merge_result(session, key, result, fingerprint)

        return outcome
