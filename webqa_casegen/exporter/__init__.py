from .action_parser import (extract_element_name, extract_expected_text,
                            extract_input_field, extract_input_value)
from .renderers import render, resolve_format
from .step_intent import IntentKind, StepIntent, resolve_step_intent

__all__ = [
    "IntentKind",
    "StepIntent",
    "extract_element_name",
    "extract_expected_text",
    "extract_input_field",
    "extract_input_value",
    "render",
    "resolve_format",
    "resolve_step_intent",
]
