"""
Flow engine: decides which question comes next.

The catalog is an ordered list; visibility is decided per question by
`is_active`, `depends_on` and `show_condition`. Scans are linear and
always start at the session cursor, so a question ordered before the
cursor is never presented again unless the cursor itself is rewound.
"""
import hashlib
import json
import logging
from typing import Any, Iterable, Mapping, Optional

from onboarding.models import InterviewSession, Progress, QuestionDefinition, SessionStatus
from onboarding.services.condition_evaluator import UnknownOperatorHook, evaluate

logger = logging.getLogger(__name__)


def _warn_unknown(question: QuestionDefinition) -> UnknownOperatorHook:
    def hook(operator: str) -> None:
        logger.warning(
            f"⚠️ Unknown condition operator '{operator}' on question '{question.key}', showing it"
        )
    return hook


def sorted_catalog(catalog: Iterable[QuestionDefinition]) -> list[QuestionDefinition]:
    return sorted(catalog, key=lambda q: q.order)


def is_eligible(
    question: QuestionDefinition,
    responses: Mapping[str, Any],
    on_unknown: Optional[UnknownOperatorHook] = None,
) -> bool:
    """True if the question is active, its dependency is answered and its condition holds."""
    if not question.is_active:
        return False
    if question.depends_on and question.depends_on not in responses:
        return False
    hook = on_unknown if on_unknown is not None else _warn_unknown(question)
    return evaluate(question.show_condition, responses, hook)


def _scan(
    catalog: Iterable[QuestionDefinition],
    responses: Mapping[str, Any],
    predicate,
    on_unknown: Optional[UnknownOperatorHook],
) -> Optional[QuestionDefinition]:
    for question in sorted_catalog(catalog):
        if predicate(question.order) and is_eligible(question, responses, on_unknown):
            return question
    return None


def next_question(
    catalog: Iterable[QuestionDefinition],
    session: InterviewSession,
    on_unknown: Optional[UnknownOperatorHook] = None,
) -> Optional[QuestionDefinition]:
    """
    First eligible question with order >= the session cursor.

    Returns None when nothing is left, i.e. the interview can be completed.
    """
    return _scan(catalog, session.responses, lambda order: order >= session.current_step, on_unknown)


def next_question_after(
    catalog: Iterable[QuestionDefinition],
    session: InterviewSession,
    order: int,
    on_unknown: Optional[UnknownOperatorHook] = None,
) -> Optional[QuestionDefinition]:
    """First eligible question strictly after `order`."""
    return _scan(catalog, session.responses, lambda o: o > order, on_unknown)


def find_question(catalog: Iterable[QuestionDefinition], key: str) -> Optional[QuestionDefinition]:
    for question in catalog:
        if question.key == key:
            return question
    return None


def progress(catalog: Iterable[QuestionDefinition], session: InterviewSession) -> Progress:
    """
    Progress over the questions that apply to this session.

    A question counts toward the total if it is eligible under the current
    responses or has already been answered.
    """
    def silent(operator: str) -> None:
        return None

    relevant = [
        q for q in sorted_catalog(catalog)
        if is_eligible(q, session.responses, silent)
        or (q.is_active and q.storage_key in session.responses)
    ]
    total = len(relevant)

    if session.status == SessionStatus.COMPLETED:
        return Progress(current_step=total, total_steps=total, percentage=100)

    done = sum(1 for q in relevant if q.order < session.current_step)
    percentage = round(done * 100 / total) if total else 0
    return Progress(current_step=done, total_steps=total, percentage=min(100, max(0, percentage)))


def catalog_version(catalog: Iterable[QuestionDefinition]) -> str:
    """Stable sha256 over the serialized catalog."""
    payload = [q.model_dump(mode="json", by_alias=True) for q in sorted_catalog(catalog)]
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()
