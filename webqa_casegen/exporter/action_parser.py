"""Regex extractors over free-text step actions and expectations.

Used for steps that carry no structured phrase, e.g. cases loaded from JSON
or written by hand. Matching is case-insensitive and first-match-wins; when
nothing matches a named default is returned instead of raising.
"""
import re
from typing import Optional

DEFAULT_ELEMENT_NAME = "element"
DEFAULT_INPUT_FIELD = "input_field"
DEFAULT_INPUT_VALUE = "test_value"

ELEMENT_NAME_RE = re.compile(
    r'(Click|Find|Submit) (?:button|link) (?:with text "([^"]+)"|with ID "([^"]+)"|(\d+))',
    re.IGNORECASE,
)
INPUT_FIELD_RE = re.compile(r'input field (?:with ID "([^"]+)"|with name "([^"]+)")', re.IGNORECASE)
INPUT_VALUE_RE = re.compile(r'Enter "([^"]+)"', re.IGNORECASE)
EXPECTED_TITLE_RE = re.compile(r'Title is "([^"]+)"', re.IGNORECASE)


def _first_group(match: Optional[re.Match], default: str) -> str:
    if match is None:
        return default
    for group in match.groups():
        if group:
            return group
    return default


def extract_element_name(action: Optional[str]) -> str:
    """``'Click button with text "Submit"'`` -> ``"Submit"``; no match -> ``"element"``."""
    match = ELEMENT_NAME_RE.search(action or "")
    if match is None:
        return DEFAULT_ELEMENT_NAME
    # group 1 is the verb
    return next((g for g in match.groups()[1:] if g), DEFAULT_ELEMENT_NAME)


def extract_input_field(action: Optional[str]) -> str:
    return _first_group(INPUT_FIELD_RE.search(action or ""), DEFAULT_INPUT_FIELD)


def extract_input_value(action: Optional[str]) -> str:
    return _first_group(INPUT_VALUE_RE.search(action or ""), DEFAULT_INPUT_VALUE)


def extract_expected_text(expected: Optional[str]) -> str:
    """Text to assert on: the quoted title if present, else ``expected`` without double quotes."""
    expected = expected or ""
    match = EXPECTED_TITLE_RE.search(expected)
    if match:
        return match.group(1)
    return expected.replace('"', "")
