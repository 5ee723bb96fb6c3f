"""
Response validator.

Checks a submitted value against a question's validation rules and
type-specific input configuration. Never raises and never mutates the
value; every problem is returned as a user-facing error string.
"""
import fnmatch
import re
from typing import Any, Optional
from urllib.parse import urlparse

from onboarding.models import (
    ConfirmationConfig,
    FileUploadConfig,
    InputConfig,
    MultiSelectionConfig,
    QuestionDefinition,
    QuestionType,
    SelectionConfig,
    SliderConfig,
    ValidationResult,
)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
TEL_PATTERN = re.compile(r"^\+?[\d\s\-().]{6,20}$")

REQUIRED_MESSAGE = "This field is required"

_TEXT_TYPES = (QuestionType.INPUT, QuestionType.AI_SUGGESTION, QuestionType.DYNAMIC)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _is_url(value: str) -> bool:
    candidate = value if "://" in value else f"https://{value}"
    parsed = urlparse(candidate)
    return parsed.scheme in ("http", "https") and "." in (parsed.hostname or "")


def validate(question: QuestionDefinition, value: Any) -> ValidationResult:
    """
    Validate a response for a question.

    Args:
        question: The catalog entry being answered.
        value: The raw submitted value.

    Returns:
        ValidationResult with valid=False and the error list on failure.
    """
    rules = question.validation

    if _is_blank(value):
        if rules.required:
            return ValidationResult(valid=False, errors=[rules.error_message or REQUIRED_MESSAGE])
        return ValidationResult(valid=True)

    qtype = question.type
    if qtype in _TEXT_TYPES:
        if qtype == QuestionType.DYNAMIC and not isinstance(value, str):
            errors = []
        else:
            errors = _validate_text(question, value)
    elif qtype == QuestionType.SELECTION:
        errors = _validate_selection(question, value)
    elif qtype == QuestionType.MULTI_SELECTION:
        errors = _validate_multi_selection(question, value)
    elif qtype == QuestionType.SLIDER:
        errors = _validate_slider(question, value)
    elif qtype == QuestionType.FILE_UPLOAD:
        errors = _validate_file_upload(question, value)
    elif qtype == QuestionType.CONFIRMATION:
        errors = _validate_confirmation(question, value)
    elif qtype == QuestionType.EDITABLE_DATA:
        errors = [] if isinstance(value, dict) else ["Expected a set of fields"]
    else:
        errors = []

    if errors and rules.error_message:
        errors = [rules.error_message]
    return ValidationResult(valid=not errors, errors=errors)


def _validate_text(question: QuestionDefinition, value: Any) -> list[str]:
    rules = question.validation
    config = question.input_config if isinstance(question.input_config, InputConfig) else None
    input_type = config.input_type if config else "text"

    if isinstance(value, (int, float)) and not isinstance(value, bool) and input_type == "number":
        value = str(value)
    if not isinstance(value, str):
        return ["Expected a text value"]

    errors = []
    text = value.strip()

    if rules.min_length is not None and len(text) < rules.min_length:
        errors.append(f"Must be at least {rules.min_length} characters")

    max_length = rules.max_length if rules.max_length is not None else (config.max_length if config else None)
    if max_length is not None and len(text) > max_length:
        errors.append(f"Must be at most {max_length} characters")

    if rules.pattern:
        try:
            if not re.fullmatch(rules.pattern, text):
                errors.append("Invalid format")
        except re.error:
            errors.append("Invalid validation pattern")

    if input_type == "email" and not EMAIL_PATTERN.match(text):
        errors.append("Please enter a valid email address")
    elif input_type == "url" and not _is_url(text):
        errors.append("Please enter a valid URL")
    elif input_type == "tel" and not TEL_PATTERN.match(text):
        errors.append("Please enter a valid phone number")
    elif input_type == "number":
        number = _as_number(text)
        if number is None:
            errors.append("Please enter a number")
        else:
            errors.extend(_range_errors(number, rules.min_value, rules.max_value))

    return errors


def _range_errors(number: float, minimum: Optional[float], maximum: Optional[float]) -> list[str]:
    errors = []
    if minimum is not None and number < minimum:
        errors.append(f"Must be at least {minimum:g}")
    if maximum is not None and number > maximum:
        errors.append(f"Must be at most {maximum:g}")
    return errors


def _validate_selection(question: QuestionDefinition, value: Any) -> list[str]:
    config = question.input_config
    if not isinstance(config, SelectionConfig) or not config.options or config.allow_other:
        return []
    if value not in config.option_values():
        return ["Please choose one of the available options"]
    return []


def _validate_multi_selection(question: QuestionDefinition, value: Any) -> list[str]:
    if not isinstance(value, list):
        return ["Expected a list of selections"]

    rules = question.validation
    config = question.input_config if isinstance(question.input_config, MultiSelectionConfig) else None
    minimum = rules.min_selections if rules.min_selections is not None else (config.min_select if config else None)
    maximum = rules.max_selections if rules.max_selections is not None else (config.max_select if config else None)

    errors = []
    if minimum is not None and len(value) < minimum:
        errors.append(f"Select at least {minimum} options")
    if maximum is not None and len(value) > maximum:
        errors.append(f"Select at most {maximum} options")

    if config and config.options and not config.allow_other:
        allowed = config.option_values()
        unknown = [item for item in value if item not in allowed]
        if unknown:
            errors.append(f"Unknown options: {', '.join(str(item) for item in unknown)}")
    return errors


def _validate_slider(question: QuestionDefinition, value: Any) -> list[str]:
    number = _as_number(value)
    if number is None:
        return ["Expected a number"]
    config = question.input_config if isinstance(question.input_config, SliderConfig) else SliderConfig()
    rules = question.validation
    minimum = rules.min_value if rules.min_value is not None else config.min
    maximum = rules.max_value if rules.max_value is not None else config.max
    return _range_errors(number, minimum, maximum)


def _mime_matches(mime_type: str, name: str, accepted: list[str]) -> bool:
    if not accepted:
        return True
    mime_type = (mime_type or "").lower()
    name = (name or "").lower()
    for entry in accepted:
        entry = entry.strip().lower()
        if not entry:
            continue
        if entry.startswith("."):
            if name.endswith(entry):
                return True
        elif fnmatch.fnmatch(mime_type, entry):
            return True
    return False


def _validate_file_upload(question: QuestionDefinition, value: Any) -> list[str]:
    config = question.input_config if isinstance(question.input_config, FileUploadConfig) else FileUploadConfig()
    rules = question.validation

    files = value if isinstance(value, list) else [value]
    if isinstance(value, list) and len(value) > 1 and not config.multiple:
        return ["Only one file can be uploaded"]

    max_size = rules.max_file_size if rules.max_file_size is not None else config.max_size
    accepted = rules.accepted_file_types or [
        part for part in config.accept.split(",") if part.strip() and part.strip() != "*/*"
    ]

    errors = []
    for item in files:
        if not isinstance(item, dict) or "name" not in item:
            errors.append("Invalid file")
            continue
        size = item.get("size")
        if not isinstance(size, (int, float)) or isinstance(size, bool) or size < 0:
            errors.append(f"Invalid file size for {item['name']}")
        elif size > max_size:
            errors.append(f"{item['name']} exceeds the maximum size of {max_size} bytes")
        if not _mime_matches(item.get("type", ""), item["name"], accepted):
            errors.append(f"{item['name']} has an unsupported file type")
    return errors


def _validate_confirmation(question: QuestionDefinition, value: Any) -> list[str]:
    if isinstance(value, bool):
        return []
    config = question.input_config if isinstance(question.input_config, ConfirmationConfig) else ConfirmationConfig()
    if isinstance(value, str) and value in (config.confirm_label, config.deny_label):
        return []
    return ["Please confirm or decline"]
