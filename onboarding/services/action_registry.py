"""
Action registry.

Actions are named, side-effecting operations (crawl a site, detect its
platform, ...) that the engine runs automatically when a question becomes
current, on explicit client request, or on behalf of the assistant via
function calling. Each action is one class registered by name at start-up.
"""
import asyncio
import copy
import logging
import re
from typing import Any, ClassVar, Mapping, Optional

from onboarding.config import ACTION_TIMEOUT_SECONDS
from onboarding.models import ActionContext, ActionResult

logger = logging.getLogger(__name__)

TEMPLATE_PATTERN = re.compile(r"\{\{\s*([\w.\-]+)\s*\}\}")
_EXACT_TEMPLATE = re.compile(r"^\{\{\s*([\w.\-]+)\s*\}\}$")

_UNRESOLVED = object()


class Action:
    """
    Base class for actions.

    Subclasses set `name`, `description` and `parameters` (a JSON schema
    object used for the assistant's function declarations) and implement
    `execute`. Expected failures (bad input, unreachable site) are returned
    as `ActionResult(success=False, error=...)`; anything raised is treated
    as an unexpected fault by the caller.
    """

    name: str = ""
    description: str = ""
    parameters: ClassVar[dict[str, Any]] = {"type": "object", "properties": {}}

    async def execute(self, parameters: dict[str, Any], context: ActionContext) -> ActionResult:
        raise NotImplementedError

    def declaration(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": copy.deepcopy(self.parameters),
        }


class ActionRegistry:
    """Name -> Action lookup with timeout-bounded dispatch."""

    def __init__(self, timeout: float = ACTION_TIMEOUT_SECONDS):
        self._actions: dict[str, Action] = {}
        self.timeout = timeout

    def register(self, action: Action) -> Action:
        if not action.name:
            raise ValueError(f"{type(action).__name__} has no name")
        if action.name in self._actions:
            logger.warning(f"Replacing registered action '{action.name}'")
        self._actions[action.name] = action
        return action

    def get(self, name: str) -> Optional[Action]:
        return self._actions.get(name)

    def names(self) -> list[str]:
        return sorted(self._actions)

    def __contains__(self, name: object) -> bool:
        return name in self._actions

    def __len__(self) -> int:
        return len(self._actions)

    def declarations(self, allowed: Optional[list[str]] = None) -> list[dict[str, Any]]:
        """Function declarations for registered actions, optionally restricted to `allowed`."""
        return [
            self._actions[name].declaration()
            for name in self.names()
            if not allowed or name in allowed
        ]

    async def dispatch(
        self,
        name: str,
        parameters: dict[str, Any],
        context: ActionContext,
        timeout: Optional[float] = None,
    ) -> ActionResult:
        """
        Run an action by name.

        Unknown names and timeouts come back as failed results. Exceptions
        raised by the handler propagate.
        """
        action = self._actions.get(name)
        if action is None:
            return ActionResult.fail(f"Unknown action: {name}")

        limit = timeout if timeout is not None else self.timeout
        try:
            result = await asyncio.wait_for(action.execute(parameters, context), timeout=limit)
        except asyncio.TimeoutError:
            logger.warning(f"⏱️ Action '{name}' timed out after {limit}s (session {context.session_id[:8]})")
            return ActionResult.fail("timeout")

        if isinstance(result, dict):
            result = ActionResult.model_validate(result)
        return result


# =============================================================================
# Template resolution
# =============================================================================

def _lookup(responses: Mapping[str, Any], key: str) -> Any:
    if key in responses:
        return responses[key]
    current: Any = responses
    for part in key.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return _UNRESOLVED
    return current


def _resolve_string(value: str, responses: Mapping[str, Any]) -> Any:
    exact = _EXACT_TEMPLATE.match(value)
    if exact:
        resolved = _lookup(responses, exact.group(1))
        return None if resolved is _UNRESOLVED else resolved

    def substitute(match: re.Match) -> str:
        resolved = _lookup(responses, match.group(1))
        return "" if resolved is _UNRESOLVED or resolved is None else str(resolved)

    return TEMPLATE_PATTERN.sub(substitute, value)


def resolve_templates(parameters: Any, responses: Mapping[str, Any]) -> Any:
    """
    Replace {{key}} placeholders with stored responses.

    A string that is exactly one placeholder becomes the stored value with
    its type intact (None if unresolved). Placeholders inside longer strings
    are substituted as text, unresolved ones with "". Dicts and lists are
    resolved recursively; a new structure is returned.
    """
    if isinstance(parameters, str):
        return _resolve_string(parameters, responses)
    if isinstance(parameters, dict):
        return {key: resolve_templates(value, responses) for key, value in parameters.items()}
    if isinstance(parameters, list):
        return [resolve_templates(item, responses) for item in parameters]
    return parameters


def create_default_registry(http_client=None, llm=None) -> ActionRegistry:
    """Registry with the built-in website actions."""
    from onboarding.actions import (
        CrawlWebsiteAction,
        DetectPlatformAction,
        FetchArticlesAction,
        FindCompetitorsAction,
    )

    registry = ActionRegistry()
    registry.register(CrawlWebsiteAction(http_client=http_client))
    registry.register(DetectPlatformAction(http_client=http_client))
    registry.register(FetchArticlesAction(http_client=http_client))
    registry.register(FindCompetitorsAction(llm=llm))
    logger.info(f"Registered actions: {', '.join(registry.names())}")
    return registry
