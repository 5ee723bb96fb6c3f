"""
Question catalog models.

A catalog entry's input configuration is a tagged union over its type:
each QuestionType carries its own config model, selected while the
definition is parsed.
"""
from typing import Any, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .enums import QuestionType


class CatalogModel(BaseModel):
    """Base for catalog payloads authored as camelCase JSON."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


# =============================================================================
# Per-type input configuration
# =============================================================================

class GreetingConfig(CatalogModel):
    message: Optional[str] = None


class InputConfig(CatalogModel):
    input_type: str = "text"  # text | email | tel | url | number | textarea
    placeholder: Optional[str] = None
    max_length: Optional[int] = None


class ConfirmationConfig(CatalogModel):
    confirm_label: str = "Yes"
    deny_label: str = "No"


class SelectionConfig(CatalogModel):
    options: list[Any] = Field(default_factory=list)
    allow_other: bool = False

    def option_values(self) -> list[Any]:
        """Option values; options may be plain values or {value, label} objects."""
        return [o.get("value") if isinstance(o, dict) else o for o in self.options]


class MultiSelectionConfig(SelectionConfig):
    min_select: Optional[int] = None
    max_select: Optional[int] = None


class DynamicConfig(CatalogModel):
    source_action: Optional[str] = None
    template: Optional[str] = None


class FileUploadConfig(CatalogModel):
    accept: str = "*/*"
    max_size: int = 5 * 1024 * 1024
    multiple: bool = False


class SliderConfig(CatalogModel):
    min: float = 0
    max: float = 100
    step: float = 1


class AISuggestionConfig(CatalogModel):
    suggestion_type: Optional[str] = None


class EditableDataConfig(CatalogModel):
    source_field: Optional[str] = None
    fields: list[str] = Field(default_factory=list)


QuestionInputConfig = Union[
    GreetingConfig,
    InputConfig,
    ConfirmationConfig,
    MultiSelectionConfig,
    SelectionConfig,
    DynamicConfig,
    FileUploadConfig,
    SliderConfig,
    AISuggestionConfig,
    EditableDataConfig,
]

INPUT_CONFIG_MODELS: dict[QuestionType, type[CatalogModel]] = {
    QuestionType.GREETING: GreetingConfig,
    QuestionType.INPUT: InputConfig,
    QuestionType.CONFIRMATION: ConfirmationConfig,
    QuestionType.SELECTION: SelectionConfig,
    QuestionType.MULTI_SELECTION: MultiSelectionConfig,
    QuestionType.DYNAMIC: DynamicConfig,
    QuestionType.FILE_UPLOAD: FileUploadConfig,
    QuestionType.SLIDER: SliderConfig,
    QuestionType.AI_SUGGESTION: AISuggestionConfig,
    QuestionType.EDITABLE_DATA: EditableDataConfig,
}


# =============================================================================
# Validation rules and auto actions
# =============================================================================

class ValidationRules(CatalogModel):
    """Rule set consumed by the validator."""
    required: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    min_value: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("minValue", "min_value", "min")
    )
    max_value: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("maxValue", "max_value", "max")
    )
    min_selections: Optional[int] = None
    max_selections: Optional[int] = None
    max_file_size: Optional[int] = None
    accepted_file_types: list[str] = Field(default_factory=list)
    error_message: Optional[str] = None


class AutoAction(CatalogModel):
    """An action to execute when a question becomes current."""
    action_name: str = Field(validation_alias=AliasChoices("actionName", "action_name", "name"))
    parameters: dict[str, Any] = Field(default_factory=dict)
    result_key: Optional[str] = None

    @property
    def storage_key(self) -> str:
        return self.result_key or self.action_name


# =============================================================================
# Question definition
# =============================================================================

class QuestionDefinition(CatalogModel):
    """A single authored catalog entry (read-only to the engine)."""
    id: Optional[str] = None
    order: int
    key: str = Field(validation_alias=AliasChoices("key", "translationKey", "translation_key"))
    type: QuestionType = Field(validation_alias=AliasChoices("type", "questionType", "question_type"))
    input_config: QuestionInputConfig = Field(default=None, validate_default=True)
    validation: ValidationRules = Field(default_factory=ValidationRules)
    depends_on: Optional[str] = None
    show_condition: Optional[dict[str, Any]] = None
    auto_actions: list[AutoAction] = Field(default_factory=list)
    allowed_actions: list[str] = Field(default_factory=list)
    save_to_field: Optional[str] = None
    is_active: bool = True

    @field_validator("input_config", mode="before")
    @classmethod
    def _parse_input_config(cls, value: Any, info: ValidationInfo) -> CatalogModel:
        config_model = INPUT_CONFIG_MODELS.get(info.data.get("type"), GreetingConfig)
        if isinstance(value, config_model):
            return value
        if isinstance(value, BaseModel):
            value = value.model_dump()
        return config_model.model_validate(value or {})

    @field_validator("validation", mode="before")
    @classmethod
    def _default_validation(cls, value: Any) -> Any:
        return value if value is not None else {}

    @field_validator("auto_actions", "allowed_actions", mode="before")
    @classmethod
    def _default_list(cls, value: Any) -> Any:
        return value if value is not None else []

    @property
    def storage_key(self) -> str:
        """Response-map key the submitted value is written to."""
        return self.save_to_field or self.key

    def allows_action(self, action_name: str) -> bool:
        """An empty allow-list permits every registered action."""
        return not self.allowed_actions or action_name in self.allowed_actions
