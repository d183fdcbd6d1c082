from dataclasses import dataclass
from enum import Enum
from typing import Optional

from webqa_casegen.data.phrases import PhraseId
from webqa_casegen.data.test_structures import TestStep
from webqa_casegen.exporter.action_parser import (extract_element_name,
                                                  extract_expected_text,
                                                  extract_input_field,
                                                  extract_input_value)


class IntentKind(str, Enum):
    NAVIGATE = "navigate"
    CLICK = "click"
    INPUT = "input"
    VERIFY = "verify"
    NONE = "none"


@dataclass(frozen=True)
class StepIntent:
    """What a step asks an automation tool to do.

    ``target`` is the url (navigate), element name (click) or field (input);
    ``value`` the text to type; ``text`` the text to assert for verify steps.
    """

    kind: IntentKind
    target: Optional[str] = None
    value: Optional[str] = None
    text: Optional[str] = None
    phrase_id: Optional[PhraseId] = None


NO_INTENT = StepIntent(IntentKind.NONE)


def _from_phrase(step: TestStep) -> StepIntent:
    phrase = step.phrase
    pid = phrase.id
    if pid == PhraseId.NAVIGATE:
        return StepIntent(IntentKind.NAVIGATE, target=phrase.get("url"), phrase_id=pid)
    if pid == PhraseId.LAUNCH_APP:
        return StepIntent(IntentKind.NAVIGATE, phrase_id=pid)
    if pid == PhraseId.CLICK_ELEMENT:
        return StepIntent(IntentKind.CLICK, target=phrase.get("label"), phrase_id=pid)
    if pid == PhraseId.SUBMIT_FORM:
        return StepIntent(IntentKind.CLICK, target=phrase.get("button", "Submit"), phrase_id=pid)
    if pid == PhraseId.ENTER_VALUE:
        return StepIntent(IntentKind.INPUT, target=phrase.get("target") or phrase.get("field"),
                          value=phrase.get("value"), phrase_id=pid)
    if pid == PhraseId.VERIFY_TITLE:
        return StepIntent(IntentKind.VERIFY, text=phrase.get("title"), phrase_id=pid)
    if pid == PhraseId.VERIFY_SCREEN:
        return StepIntent(IntentKind.VERIFY, text=phrase.get("name"), phrase_id=pid)
    if pid == PhraseId.VERIFY_COUNT:
        return StepIntent(IntentKind.VERIFY, text=extract_expected_text(step.expected), phrase_id=pid)
    return StepIntent(IntentKind.NONE, phrase_id=pid)


def _from_text(step: TestStep) -> StepIntent:
    action = step.action
    if "Navigate to" in action:
        url = action.split("Navigate to", 1)[1].strip()
        return StepIntent(IntentKind.NAVIGATE, target=url or None)
    if "Click" in action:
        return StepIntent(IntentKind.CLICK, target=extract_element_name(action))
    if "Enter" in action:
        return StepIntent(IntentKind.INPUT, target=extract_input_field(action), value=extract_input_value(action))
    if "Verify" in action:
        return StepIntent(IntentKind.VERIFY, text=extract_expected_text(step.expected))
    return NO_INTENT


def resolve_step_intent(step: TestStep) -> StepIntent:
    """Structured phrase params when the step has them, else keyword matching on the action text."""
    if step.phrase is not None:
        return _from_phrase(step)
    return _from_text(step)
