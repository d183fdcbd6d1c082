from enum import Enum
from typing import Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PhraseId(str, Enum):
    """Step phrasing templates shared by the case builders and the renderers."""

    NAVIGATE = "navigate"
    LAUNCH_APP = "launch_app"
    LOCATE_ELEMENT = "locate_element"
    CLICK_ELEMENT = "click_element"
    ENTER_VALUE = "enter_value"
    FILL_REQUIRED_FIELDS = "fill_required_fields"
    SUBMIT_FORM = "submit_form"
    VERIFY_TITLE = "verify_title"
    VERIFY_COUNT = "verify_count"
    VERIFY_SCREEN = "verify_screen"
    CHECK_VALIDATION = "check_validation"

    def __str__(self) -> str:
        return self.value


PHRASE_TEMPLATES: Dict[PhraseId, str] = {
    PhraseId.NAVIGATE: "Navigate to {url}",
    PhraseId.LAUNCH_APP: "Launch the {platform} app",
    PhraseId.LOCATE_ELEMENT: "Locate the {subject}",
    PhraseId.CLICK_ELEMENT: 'Click the "{label}" {kind}',
    PhraseId.ENTER_VALUE: 'Enter "{value}" into the {field} field',
    PhraseId.FILL_REQUIRED_FIELDS: "Fill all required fields with valid data",
    PhraseId.SUBMIT_FORM: "Submit the {purpose} by clicking the {button} button",
    PhraseId.VERIFY_TITLE: "Verify page title",
    PhraseId.VERIFY_COUNT: "Verify the page contains {count} {noun}",
    PhraseId.VERIFY_SCREEN: 'Verify the "{name}" screen is displayed',
    PhraseId.CHECK_VALIDATION: "Check validation behavior",
}

# Params each template needs; extra params (e.g. ``target``) are allowed and
# carry machine-readable hints for the renderers.
PHRASE_PARAMS: Dict[PhraseId, Tuple[str, ...]] = {
    PhraseId.NAVIGATE: ("url",),
    PhraseId.LAUNCH_APP: ("platform",),
    PhraseId.LOCATE_ELEMENT: ("subject",),
    PhraseId.CLICK_ELEMENT: ("label", "kind"),
    PhraseId.ENTER_VALUE: ("value", "field"),
    PhraseId.FILL_REQUIRED_FIELDS: (),
    PhraseId.SUBMIT_FORM: ("purpose", "button"),
    PhraseId.VERIFY_TITLE: ("title",),
    PhraseId.VERIFY_COUNT: ("count", "noun"),
    PhraseId.VERIFY_SCREEN: ("name",),
    PhraseId.CHECK_VALIDATION: (),
}


class StepPhrase(BaseModel):
    """A template id plus the parameters it was rendered with."""

    model_config = ConfigDict(frozen=True)

    id: PhraseId
    params: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_params(self) -> "StepPhrase":
        missing = [name for name in PHRASE_PARAMS[self.id] if name not in self.params]
        if missing:
            raise ValueError(f"Phrase {self.id} is missing params: {', '.join(missing)}")
        return self

    def get(self, name: str, default: str = "") -> str:
        return self.params.get(name) or default


def render_phrase(phrase: StepPhrase) -> str:
    """Render the action text for ``phrase``.

    Args:
        phrase: The structured phrase.

    Returns:
        The deterministic action text, e.g. ``Click the "Login" button``.
    """
    return PHRASE_TEMPLATES[phrase.id].format(**phrase.params)
