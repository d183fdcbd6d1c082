import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union

from pydantic import (BaseModel, ConfigDict, Field, ValidationError,
                      field_validator, model_validator)

from webqa_casegen.data.phrases import StepPhrase
from webqa_casegen.exceptions import InvalidSnapshotError


def get_time() -> str:
    """Current time formatted the way reports and snapshots carry it."""
    return datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")


# ============================================================================
# ENUMS
# ============================================================================

class ElementType(str, Enum):
    """Element categories, in the order cases are synthesized."""

    BUTTON = "button"
    FORM = "form"
    LINK = "link"
    INPUT = "input"
    SCREEN = "screen"

    @property
    def plural(self) -> str:
        return f"{self.value}s"

    def __str__(self) -> str:
        return self.value


CATEGORY_ORDER: List[ElementType] = [
    ElementType.BUTTON,
    ElementType.FORM,
    ElementType.LINK,
    ElementType.INPUT,
    ElementType.SCREEN,
]


class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class ExportFormat(str, Enum):
    JSON = "json"
    MAESTRO = "maestro"
    KATALON = "katalon"
    TESTRAIL = "testrail"
    CSV = "csv"
    HTML = "html"
    TXT = "txt"


class TestStatus(str, Enum):
    """Execution status of a single case or a whole run."""

    __test__ = False

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


# ============================================================================
# ELEMENT RECORDS
# ============================================================================

class _Element(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # Extractors emit null for absent attributes; let the defaults apply.
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class ButtonElement(_Element):
    text: str = ""
    type: str = "button"
    id: str = ""
    name: str = ""
    class_name: str = Field(default="", alias="class")
    attributes: Dict[str, str] = Field(default_factory=dict)
    screen: str = ""

    @field_validator("attributes", mode="before")
    @classmethod
    def _clean_attributes(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: str(v) for k, v in value.items() if v is not None}
        return value

    @property
    def label(self) -> str:
        return self.text or self.id or "Unnamed Button"

    @property
    def identifier(self) -> Optional[str]:
        return self.id or None


class LinkElement(_Element):
    text: str = ""
    href: str = ""
    id: str = ""
    class_name: str = Field(default="", alias="class")
    target: str = ""
    title: str = ""
    aria_label: str = Field(default="", alias="ariaLabel")

    @property
    def label(self) -> str:
        return self.text or self.aria_label or self.title or "Unnamed Link"

    @property
    def identifier(self) -> Optional[str]:
        return self.id or None


class InputElement(_Element):
    type: str = "text"
    id: str = ""
    name: str = ""
    placeholder: str = ""
    required: bool = False
    label: str = ""
    autocomplete: str = ""
    pattern: str = ""
    min: str = ""
    max: str = ""
    hint: str = ""
    screen: str = ""

    @property
    def display_name(self) -> str:
        """Human-facing field name; empty when the input carries no naming attribute."""
        return self.label or self.name or self.id or self.hint or self.placeholder

    @property
    def identifier(self) -> Optional[str]:
        return self.id or self.name or None


class FormElement(_Element):
    id: str = ""
    action: str = ""
    method: str = "get"
    inputs: List[InputElement] = Field(default_factory=list)
    submit_button: str = Field(default="Submit", alias="submitButton")

    @property
    def label(self) -> str:
        return self.id or "form"

    @property
    def identifier(self) -> Optional[str]:
        return self.id or None


class ScreenElement(_Element):
    name: str = ""
    id: str = ""

    @property
    def label(self) -> str:
        return self.name or self.id or "Unnamed Screen"

    @property
    def identifier(self) -> Optional[str]:
        return self.id or None


Element = Union[ButtonElement, FormElement, LinkElement, InputElement, ScreenElement]


# ============================================================================
# SNAPSHOT
# ============================================================================

class PageSnapshot(BaseModel):
    """Captured description of a page's (or app's) interactive elements.

    Build from extractor output with :meth:`from_raw`, which reports bad
    input as :class:`InvalidSnapshotError`.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    url: str
    title: str
    buttons: List[ButtonElement] = Field(default_factory=list)
    links: List[LinkElement] = Field(default_factory=list)
    inputs: List[InputElement] = Field(default_factory=list)
    forms: List[FormElement] = Field(default_factory=list)
    screens: List[ScreenElement] = Field(default_factory=list)
    platform: str = "web"
    extracted_at: str = Field(default_factory=get_time, alias="extractedAt")

    @field_validator("url", "title")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("buttons", "links", "inputs", "forms", "screens", mode="before")
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @classmethod
    def from_raw(cls, raw: Union["PageSnapshot", Dict[str, Any]]) -> "PageSnapshot":
        if isinstance(raw, PageSnapshot):
            return raw
        if not isinstance(raw, dict):
            raise InvalidSnapshotError(f"Snapshot must be a mapping, got {type(raw).__name__}")
        for key in ("url", "title"):
            value = raw.get(key)
            if not isinstance(value, str) or not value.strip():
                raise InvalidSnapshotError(f"Snapshot is missing a valid '{key}'")
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise InvalidSnapshotError(f"Malformed snapshot: {e}") from e

    @property
    def is_mobile(self) -> bool:
        return self.platform.lower() != "web"

    def elements(self, element_type: ElementType) -> List[Any]:
        return getattr(self, ElementType(element_type).plural)

    def count(self, element_type: ElementType) -> int:
        return len(self.elements(element_type))

    def counts(self) -> Dict[str, int]:
        return {t.plural: self.count(t) for t in CATEGORY_ORDER}


# ============================================================================
# TEST CASES
# ============================================================================

class TestStep(BaseModel):
    __test__: ClassVar[bool] = False

    step: int = Field(ge=1)
    action: str = ""
    expected: str = ""
    phrase: Optional[StepPhrase] = None

    @field_validator("action", "expected", mode="before")
    @classmethod
    def _null_text(cls, value: Any) -> Any:
        return "" if value is None else value


class TestCase(BaseModel):
    __test__: ClassVar[bool] = False

    id: str
    title: str = ""
    description: str = ""
    priority: Priority = Priority.MEDIUM
    steps: List[TestStep] = Field(default_factory=list)

    @field_validator("title", "description", mode="before")
    @classmethod
    def _null_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("steps")
    @classmethod
    def _contiguous_steps(cls, steps: List[TestStep]) -> List[TestStep]:
        numbers = [s.step for s in steps]
        if numbers != list(range(1, len(steps) + 1)):
            raise ValueError(f"Step numbers must run 1..{len(steps)}, got {numbers}")
        return steps

    def to_export_dict(self) -> Dict[str, Any]:
        """Plain dict of the case without phrase metadata."""
        return self.model_dump(mode="json", exclude={"steps": {"__all__": {"phrase"}}})


# ============================================================================
# SESSION STATE
# ============================================================================

class ProcessedCounts(BaseModel):
    buttons: int = 0
    forms: int = 0
    links: int = 0
    inputs: int = 0
    screens: int = 0

    def get(self, element_type: ElementType) -> int:
        return getattr(self, ElementType(element_type).plural)

    def incremented(self, element_type: ElementType, by: int = 1) -> "ProcessedCounts":
        plural = ElementType(element_type).plural
        return self.model_copy(update={plural: getattr(self, plural) + by})


class Cursor(BaseModel):
    element_type: Optional[ElementType] = None
    element_index: int = 0


class SessionState(BaseModel):
    session_id: str
    snapshot: PageSnapshot
    processed_counts: ProcessedCounts = Field(default_factory=ProcessedCounts)
    test_cases: List[TestCase] = Field(default_factory=list)
    cursor: Cursor = Field(default_factory=Cursor)
    created_at: float = 0.0
    updated_at: float = 0.0


class IncrementalBatch(BaseModel):
    new_cases: List[TestCase] = Field(default_factory=list)
    cursor: Cursor = Field(default_factory=Cursor)
    processed_counts: ProcessedCounts = Field(default_factory=ProcessedCounts)
    has_more: bool = False


# ============================================================================
# EXPORT / SERVICE ENVELOPES
# ============================================================================

class ExportDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    format: ExportFormat
    filename: str
    content_type: str
    body: str


class GenerationResult(BaseModel):
    success: bool = True
    session_id: Optional[str] = None
    test_cases: List[TestCase] = Field(default_factory=list)
    processed: ProcessedCounts = Field(default_factory=ProcessedCounts)
    next_element_type: Optional[ElementType] = None
    next_element_index: int = 0
    has_more_elements: bool = False
    total_test_cases: int = 0
    note: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None


class ExportResult(BaseModel):
    success: bool = True
    document: Optional[ExportDocument] = None
    error: Optional[str] = None
    error_type: Optional[str] = None


class ExecutionSummary(BaseModel):
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0


class StepResult(BaseModel):
    step: int
    action: str = ""
    status: TestStatus = TestStatus.PENDING
    message: str = ""


class CaseExecutionResult(BaseModel):
    id: str
    name: str = ""
    status: TestStatus = TestStatus.PENDING
    duration: float = 0.0
    error: Optional[str] = None
    screenshot: Optional[str] = None
    steps: List[StepResult] = Field(default_factory=list)


class ExecutionReport(BaseModel):
    success: bool = True
    id: str = ""
    url: str = ""
    date: str = Field(default_factory=get_time)
    status: TestStatus = TestStatus.PENDING
    pass_rate: int = 0
    duration: str = "0m 0s"
    summary: ExecutionSummary = Field(default_factory=ExecutionSummary)
    results: List[CaseExecutionResult] = Field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[str] = None
