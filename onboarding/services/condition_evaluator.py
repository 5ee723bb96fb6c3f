"""
Condition evaluator for question visibility rules.

A condition is a JSON tree of leaves and combinators:

    {"field": "platform", "operator": "equals", "value": "wordpress"}
    {"operator": "and", "conditions": [<condition>, ...]}

Evaluation is pure: it never logs, never raises, and never mutates the
response map. Unknown operators and malformed nodes evaluate to True so a
bad catalog entry shows a question rather than hiding it; callers pass
`on_unknown` to get notified and log a warning.
"""
import math
from typing import Any, Callable, Mapping, Optional

UnknownOperatorHook = Callable[[str], None]

_MISSING = object()


def _lookup(responses: Mapping[str, Any], field: str) -> Any:
    return responses.get(field, _MISSING) if isinstance(responses, Mapping) else _MISSING


def _to_number(value: Any) -> Optional[float]:
    if value is None or value is _MISSING or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) else number


def _is_empty(value: Any) -> bool:
    return value is _MISSING or value is None or value == "" or (isinstance(value, list) and not value)


def _equals(actual: Any, expected: Any) -> bool:
    """Strict equality: no str/number coercion, and True is not 1."""
    if actual is _MISSING:
        return False
    numeric = (int, float)
    if (
        isinstance(actual, numeric) and isinstance(expected, numeric)
        and not isinstance(actual, bool) and not isinstance(expected, bool)
    ):
        return actual == expected
    return type(actual) is type(expected) and actual == expected


def _member(actual: Any, candidates: list) -> bool:
    return any(_equals(actual, candidate) for candidate in candidates)


def _contains(actual: Any, expected: Any) -> bool:
    if actual is _MISSING or actual is None:
        return False
    if isinstance(actual, list):
        return _member(expected, actual)
    return str(expected) in str(actual)


def _compare(actual: Any, expected: Any, op: Callable[[float, float], bool]) -> bool:
    left, right = _to_number(actual), _to_number(expected)
    if left is None or right is None:
        return False
    return op(left, right)


_LEAF_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "equals": _equals,
    "notEquals": lambda a, e: not _equals(a, e),
    "contains": _contains,
    "notContains": lambda a, e: not _contains(a, e),
    "exists": lambda a, e: not (a is _MISSING or a is None or a == ""),
    "isEmpty": lambda a, e: _is_empty(a),
    "greaterThan": lambda a, e: _compare(a, e, lambda x, y: x > y),
    "lessThan": lambda a, e: _compare(a, e, lambda x, y: x < y),
    "greaterThanOrEqual": lambda a, e: _compare(a, e, lambda x, y: x >= y),
    "lessThanOrEqual": lambda a, e: _compare(a, e, lambda x, y: x <= y),
    "in": lambda a, e: isinstance(e, list) and _member(a, e),
    "notIn": lambda a, e: not (isinstance(e, list) and _member(a, e)),
}

_COMBINATORS = ("and", "or")


def evaluate(
    condition: Optional[Mapping[str, Any]],
    responses: Mapping[str, Any],
    on_unknown: Optional[UnknownOperatorHook] = None,
) -> bool:
    """
    Evaluate a condition tree against the response map.

    Args:
        condition: Leaf or combinator node; None or {} means "always".
        responses: The session's stored responses.
        on_unknown: Called with the operator name when a node cannot be
            interpreted.

    Returns:
        True if the condition holds (or cannot be interpreted).
    """
    if not condition:
        return True

    if not isinstance(condition, Mapping):
        _notify(on_unknown, repr(condition))
        return True

    operator = condition.get("operator")

    if operator in _COMBINATORS:
        children = condition.get("conditions")
        if not isinstance(children, list):
            _notify(on_unknown, operator)
            return True
        results = (evaluate(child, responses, on_unknown) for child in children)
        return all(results) if operator == "and" else any(results)

    leaf = _LEAF_OPERATORS.get(operator)
    field = condition.get("field")
    if leaf is None or not isinstance(field, str):
        _notify(on_unknown, str(operator))
        return True

    return leaf(_lookup(responses, field), condition.get("value"))


def _notify(on_unknown: Optional[UnknownOperatorHook], operator: str) -> None:
    if on_unknown is not None:
        on_unknown(operator)
