"""
Action and language-model exchange models.
"""
import copy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field

from .enums import ActionTrigger


class ActionResult(BaseModel):
    """Outcome of a single action execution."""
    success: bool
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Optional[dict[str, Any]] = None) -> "ActionResult":
        return cls(success=True, data=data or {})

    @classmethod
    def fail(cls, error: str) -> "ActionResult":
        return cls(success=False, error=error)


class FunctionCall(BaseModel):
    """A function call requested by the language model."""
    name: str
    parameters: dict[str, Any] = Field(default_factory=dict)


class ModelReply(BaseModel):
    """One reply from the language model: text, a function call, or both."""
    text: Optional[str] = None
    function_call: Optional[FunctionCall] = None


@dataclass(frozen=True)
class ActionContext:
    """
    Read-only view of the session handed to an action handler.

    `responses` and `external_data` are proxies over deep copies, so a
    handler can neither see later mutations nor write back into the session.
    """
    session_id: str
    user_id: str
    site_id: Optional[str] = None
    responses: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    external_data: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    question_key: Optional[str] = None
    trigger: ActionTrigger = ActionTrigger.AUTO

    @classmethod
    def from_session(
        cls,
        session,
        question_key: Optional[str] = None,
        trigger: ActionTrigger = ActionTrigger.AUTO,
    ) -> "ActionContext":
        return cls(
            session_id=session.id,
            user_id=session.user_id,
            site_id=session.site_id,
            responses=MappingProxyType(copy.deepcopy(session.responses)),
            external_data=MappingProxyType(copy.deepcopy(session.external_data)),
            question_key=question_key,
            trigger=trigger,
        )
