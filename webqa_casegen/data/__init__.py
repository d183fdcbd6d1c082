from .phrases import PhraseId, StepPhrase, render_phrase
from .test_structures import (
    CATEGORY_ORDER,
    ButtonElement,
    Cursor,
    ElementType,
    ExecutionReport,
    ExportDocument,
    ExportFormat,
    FormElement,
    GenerationResult,
    IncrementalBatch,
    InputElement,
    LinkElement,
    PageSnapshot,
    Priority,
    ProcessedCounts,
    ScreenElement,
    SessionState,
    TestCase,
    TestStatus,
    TestStep,
)

__all__ = [
    "CATEGORY_ORDER",
    "ButtonElement",
    "Cursor",
    "ElementType",
    "ExecutionReport",
    "ExportDocument",
    "ExportFormat",
    "FormElement",
    "GenerationResult",
    "IncrementalBatch",
    "InputElement",
    "LinkElement",
    "PageSnapshot",
    "PhraseId",
    "Priority",
    "ProcessedCounts",
    "ScreenElement",
    "SessionState",
    "StepPhrase",
    "TestCase",
    "TestStatus",
    "TestStep",
    "render_phrase",
]
