"""Per-category test case builders.

Every step is built from a :class:`StepPhrase`, so the action text is fixed
by the template id and its parameters and the renderers can read the
parameters back without re-parsing the text.
"""
import re
from typing import Callable, Dict, List, Tuple
from urllib.parse import urlparse

import tldextract

from webqa_casegen.data.phrases import PhraseId, StepPhrase, render_phrase
from webqa_casegen.data.test_structures import (ButtonElement, ElementType,
                                                FormElement, InputElement,
                                                LinkElement, PageSnapshot,
                                                Priority, ScreenElement,
                                                TestCase, TestStep)

# Offline extractor: use the bundled public suffix snapshot, never fetch it.
_TLD_EXTRACT = tldextract.TLDExtract(suffix_list_urls=())

FILE_DOWNLOAD_RE = re.compile(r"\.(pdf|doc|docx|xls|xlsx|csv|zip|rar|tar|gz|mp3|mp4|avi|mov|jpeg|jpg|png|gif)$", re.IGNORECASE)

_ACTION_VERBS = ("view", "show", "open", "toggle", "expand", "collapse", "add", "create", "new",
                 "edit", "update", "delete", "remove", "download")

HIGH_PRIORITY_BUTTON_WORDS = ("login", "log in", "sign in", "signin", "register", "sign up", "checkout", "submit")

# Category id prefixes used in case ids, e.g. TC_BTN_1.
ID_PREFIX: Dict[ElementType, str] = {
    ElementType.BUTTON: "BTN",
    ElementType.FORM: "FORM",
    ElementType.LINK: "LINK",
    ElementType.INPUT: "INPUT",
    ElementType.SCREEN: "SCREEN",
}

COUNT_CATEGORIES = [ElementType.BUTTON, ElementType.INPUT, ElementType.LINK, ElementType.FORM]


def phrase_step(number: int, phrase_id: PhraseId, expected: str, **params) -> TestStep:
    phrase = StepPhrase(id=phrase_id, params={k: str(v) for k, v in params.items()})
    return TestStep(step=number, action=render_phrase(phrase), expected=expected, phrase=phrase)


def entry_step(snapshot: PageSnapshot, number: int = 1) -> TestStep:
    """Opening step: navigate for web pages, launch for mobile apps."""
    if snapshot.is_mobile:
        return phrase_step(number, PhraseId.LAUNCH_APP, "App launches without errors", platform=snapshot.platform)
    return phrase_step(number, PhraseId.NAVIGATE, "Page loads successfully", url=snapshot.url)


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


def case_id(element_type: ElementType, index: int) -> str:
    return f"TC_{ID_PREFIX[element_type]}_{index + 1}"


# ============================================================================
# URL HEURISTICS
# ============================================================================

def site_key(url: str) -> str:
    """Registrable domain of ``url`` (``www.shop.example.co.uk`` -> ``example.co.uk``)."""
    ext = _TLD_EXTRACT(url)
    if ext.domain and ext.suffix:
        return f"{ext.domain}.{ext.suffix}".lower()
    # localhost, bare IPs and other suffix-less hosts
    return (urlparse(url).hostname or ext.domain or url).lower()


def is_external(href: str, base_url: str) -> bool:
    if not href.lower().startswith(("http://", "https://")):
        return False
    return site_key(href) != site_key(base_url)


def _page_name_from_href(href: str) -> str:
    absolute = "://" in href
    path = urlparse(href).path if absolute else href.split("?")[0].split("#")[0]
    parts = [p for p in path.split("/") if p]
    if not parts:
        return "Home" if absolute else ""
    name = re.sub(r"\.\w+$", "", parts[-1])
    name = re.sub(r"[-_]", " ", name).strip()
    return " ".join(_capitalize(word) for word in name.split(" ") if word)


def determine_navigation_destination(href: str, link_text: str, base_url: str) -> str:
    """Expected result of following ``href`` from a page at ``base_url``."""
    if href.startswith("#"):
        return f'Page scrolls to the "{href[1:]}" section'
    if is_external(href, base_url):
        return f"User is navigated to external website: {urlparse(href).hostname or href}"
    if FILE_DOWNLOAD_RE.search(href):
        extension = href.rsplit(".", 1)[-1].upper()
        return f"File download begins for the {extension} file"
    if href.startswith("mailto:"):
        return "Email client opens with the specified email address"
    if href.startswith("tel:"):
        return "Phone dialer opens with the specified phone number"
    page_name = _page_name_from_href(href)
    if page_name:
        return f"User is navigated to the {page_name} page"
    return f"User is navigated to the {link_text} page/section"


# ============================================================================
# BUTTONS
# ============================================================================

def extract_content_from_button_text(text: str) -> str:
    """Strip leading action verbs: ``"view pricing"`` -> ``"pricing"``."""
    content = text
    for verb in _ACTION_VERBS:
        content = re.sub(rf"{verb}\s+", "", content, count=1, flags=re.IGNORECASE)
    return content.strip() or "content"


def determine_button_action(button: ButtonElement, base_url: str) -> str:
    text = button.text.lower()
    button_id = button.id.lower()
    button_class = button.class_name.lower()
    attributes = button.attributes

    if attributes.get("href"):
        return determine_navigation_destination(attributes["href"], text, base_url)

    if (
        attributes.get("data-target")
        or attributes.get("data-toggle") == "modal"
        or any(word in button_class or word in button_id for word in ("modal", "dialog"))
        or "open" in text
        or "show" in text
    ):
        return f"{extract_content_from_button_text(text)} dialog/modal is displayed"

    if button.type == "submit" or "submit" in text or "submit" in button_id:
        return "Form is submitted and appropriate response is displayed"

    if "view" in text:
        view_target = re.sub(r"view\s+", "", text, count=1).strip()
        if view_target:
            return f"User is navigated to the {view_target} section/page"

    if "comparison" in text and "table" in text:
        return "Comparison table is displayed showing feature differences"
    if any(word in text for word in ("toggle", "expand", "collapse")):
        return f"{extract_content_from_button_text(text)} section is expanded/collapsed"
    if "filter" in text:
        return "Filter options are applied and results are updated accordingly"
    if "search" in text:
        return "Search is performed and results are displayed"
    if any(word in text for word in ("add", "create", "new")):
        return f"Form or dialog to create new {extract_content_from_button_text(text)} is displayed"
    if "delete" in text or "remove" in text:
        return f"Confirmation dialog appears before deleting {extract_content_from_button_text(text)}"
    if "edit" in text or "update" in text:
        return f"Edit form/dialog for {extract_content_from_button_text(text)} is displayed"
    if "save" in text:
        return "Data is saved and confirmation message is displayed"
    if "cancel" in text:
        return "Action is cancelled and user is returned to previous state"
    if "download" in text:
        return f"Download begins for {extract_content_from_button_text(text)}"
    if "login" in text or "sign in" in text:
        return "User is logged in and redirected to dashboard/home page"
    if "logout" in text or "sign out" in text:
        return "User is logged out and redirected to login page"

    return f"{_capitalize(button.label)} action completes successfully"


def button_priority(button: ButtonElement) -> Priority:
    if button.type == "submit":
        return Priority.HIGH
    haystack = f"{button.text} {button.id} {button.name}".lower()
    if any(word in haystack for word in HIGH_PRIORITY_BUTTON_WORDS):
        return Priority.HIGH
    return Priority.MEDIUM


def build_button_case(snapshot: PageSnapshot, button: ButtonElement, index: int) -> TestCase:
    label = button.label
    return TestCase(
        id=case_id(ElementType.BUTTON, index),
        title=f'Verify "{label}" Button Functionality',
        description=f"Verify that the {label} button works as expected",
        priority=button_priority(button),
        steps=[
            entry_step(snapshot),
            phrase_step(2, PhraseId.CLICK_ELEMENT, determine_button_action(button, snapshot.url),
                        label=label, kind="button", target=button.identifier or label),
        ],
    )


# ============================================================================
# FORMS
# ============================================================================

FIELD_TEST_VALUES = {
    "email": "test@example.com",
    "password": "SecurePassword123",
    "tel": "555-123-4567",
    "number": "42",
    "date": "2023-01-01",
}


def _mentions(field: InputElement, word: str) -> bool:
    return word in field.name.lower() or word in field.placeholder.lower()


def classify_form(form: FormElement) -> Tuple[str, str]:
    """Guess a form's purpose from its id and inputs.

    Returns:
        ``(purpose, expected_result)``, e.g. ``("login form", "User is logged in successfully")``.
    """
    form_id = form.id.lower()
    inputs = form.inputs
    has_email = any(i.type == "email" or _mentions(i, "email") for i in inputs)
    has_password = any(i.type == "password" or _mentions(i, "password") for i in inputs)

    if "contact" in form_id or any("message" in i.name.lower() for i in inputs):
        return "contact form", "Contact message is sent and confirmation is shown"
    if "newsletter" in form_id or "subscribe" in form_id or (has_email and not has_password and len(inputs) < 3):
        return "subscription form", "Subscription is confirmed"
    if "login" in form_id or "signin" in form_id or (has_email and has_password and "register" not in form_id):
        return "login form", "User is logged in successfully"
    if "register" in form_id or "signup" in form_id:
        return "registration form", "User is registered successfully"
    if "search" in form_id or any("search" in i.name.lower() for i in inputs):
        return "search form", "Search results are displayed"
    if "comment" in form_id:
        return "comment form", "Comment is submitted successfully"
    if "checkout" in form_id or "payment" in form_id:
        return "payment form", "Payment is processed successfully"
    return "form", "Form submits successfully"


def build_form_case(snapshot: PageSnapshot, form: FormElement, index: int) -> TestCase:
    purpose, expected = classify_form(form)
    identifier = f'with ID "{form.id}"' if form.id else f"#{index + 1}"
    steps = [
        entry_step(snapshot),
        phrase_step(2, PhraseId.LOCATE_ELEMENT, "Form is visible on the page", subject=f"{purpose} {identifier}"),
    ]

    fields = [i for i in form.inputs if i.type not in ("submit", "button")]
    for position, field in enumerate(fields, start=1):
        name = field.label or field.placeholder or field.name or field.id or f"field {position}"
        value = FIELD_TEST_VALUES.get(field.type, "test value")
        steps.append(phrase_step(len(steps) + 1, PhraseId.ENTER_VALUE, "Input is accepted",
                                 value=value, field=name, target=field.identifier or name))
    if not fields:
        steps.append(phrase_step(len(steps) + 1, PhraseId.FILL_REQUIRED_FIELDS, "All fields accept input correctly"))

    steps.append(phrase_step(len(steps) + 1, PhraseId.SUBMIT_FORM, expected,
                             purpose=purpose, button=form.submit_button or "Submit"))

    return TestCase(
        id=case_id(ElementType.FORM, index),
        title=f"Test {purpose.title()}: {form.id or f'Form {index + 1}'}",
        description=f"Verify that the {purpose} submits correctly",
        priority=Priority.HIGH,
        steps=steps,
    )


# ============================================================================
# LINKS
# ============================================================================

# First keyword hit wins.
LINK_TEXT_DESTINATIONS: List[Tuple[Tuple[str, ...], str]] = [
    (("home",), "User is navigated to the Home page"),
    (("about",), "User is navigated to the About page"),
    (("contact",), "User is navigated to the Contact page"),
    (("login", "sign in"), "User is navigated to the Login page"),
    (("register", "sign up"), "User is navigated to the Registration page"),
    (("product",), "User is navigated to the Products page or specific product"),
    (("service",), "User is navigated to the Services page or specific service"),
    (("blog", "news"), "User is navigated to the Blog or News section"),
    (("faq",), "User is navigated to the FAQ page"),
    (("help", "support"), "User is navigated to the Help or Support page"),
    (("privacy", "policy"), "User is navigated to the Privacy Policy page"),
    (("terms",), "User is navigated to the Terms of Service page"),
]


def describe_link(link: LinkElement, base_url: str) -> Tuple[str, str]:
    """Returns ``(expected_result, description)`` for clicking ``link``."""
    label = link.label
    href = link.href or "#"

    if href.startswith("#"):
        return ("Page scrolls to the corresponding section",
                f"Verify that the {label} link navigates to the correct section on the page")
    if is_external(href, base_url):
        return (f"User is navigated to external website: {urlparse(href).hostname or href}",
                f"Verify that the {label} link navigates to the external website")
    if FILE_DOWNLOAD_RE.search(href):
        extension = href.rsplit(".", 1)[-1].upper()
        return f"File download begins for the {extension} file", f"Verify that the {label} link downloads the file"
    if href.startswith("mailto:"):
        return "Email client opens with the correct email address", f"Verify that the {label} link opens the email client"
    if href.startswith("tel:"):
        return "Phone dialer opens with the correct phone number", f"Verify that the {label} link opens the phone dialer"

    description = f"Verify that the {label} link navigates correctly"
    text = label.lower()
    for keywords, expected in LINK_TEXT_DESTINATIONS:
        if any(word in text for word in keywords):
            return expected, description
    return "User is navigated to the correct page", description


def build_link_case(snapshot: PageSnapshot, link: LinkElement, index: int) -> TestCase:
    label = link.label
    if link.id:
        identifier = f'with ID "{link.id}"'
    elif link.text:
        identifier = f'with text "{link.text}"'
    else:
        identifier = f"#{index + 1}"
    expected, description = describe_link(link, snapshot.url)
    text = label.lower()

    return TestCase(
        id=case_id(ElementType.LINK, index),
        title=f"Test Link: {label}",
        description=description,
        priority=Priority.HIGH if "login" in text or "sign in" in text else Priority.MEDIUM,
        steps=[
            entry_step(snapshot),
            phrase_step(2, PhraseId.LOCATE_ELEMENT, "Link is visible on the page", subject=f"link {identifier}"),
            phrase_step(3, PhraseId.CLICK_ELEMENT, expected, label=label, kind="link", target=link.identifier or label),
        ],
    )


# ============================================================================
# INPUTS
# ============================================================================

# type -> (test data, validation check)
INPUT_TYPE_PROFILES: Dict[str, Tuple[str, str]] = {
    "email": ("test@example.com", "Email format is validated correctly"),
    "password": ("SecurePassword123", "Password is masked and accepted"),
    "checkbox": ("checked state", "Checkbox state is toggled successfully"),
    "radio": ("selected state", "Radio button is selected successfully"),
    "number": ("42", "Numeric value is accepted"),
    "date": ("2023-01-01", "Date is accepted in the correct format"),
    "tel": ("555-123-4567", "Phone number format is validated correctly"),
    "url": ("https://example.com", "URL format is validated correctly"),
    "file": ("test file", "File upload dialog appears and file can be selected"),
}

# name/placeholder keyword -> (purpose, test data, validation check)
INPUT_NAME_PROFILES: List[Tuple[str, Tuple[str, str, str]]] = [
    ("email", ("email", "test@example.com", "Email format is validated correctly")),
    ("name", ("name", "John Doe", "Name is accepted correctly")),
    ("phone", ("phone", "555-123-4567", "Phone number is accepted correctly")),
    ("address", ("address", "123 Main St, City, Country", "Address is accepted correctly")),
    ("search", ("search", "search query", "Search query is accepted and results are displayed")),
    ("password", ("password", "SecurePassword123", "Password is masked and accepted")),
    ("message", ("message", "This is a test message", "Message is accepted correctly")),
]


def input_profile(field: InputElement, name: str) -> Tuple[str, str, str]:
    """Returns ``(purpose, test_data, validation_check)`` for an input."""
    input_type = field.type or "text"
    if input_type in INPUT_TYPE_PROFILES:
        data, validation = INPUT_TYPE_PROFILES[input_type]
        return input_type, data, validation

    name_lower = name.lower()
    placeholder_lower = field.placeholder.lower()
    for keyword, profile in INPUT_NAME_PROFILES:
        if keyword in name_lower or keyword in placeholder_lower:
            return profile
    if "subscribe" in name_lower:
        return "subscription", "checked state", "Subscription preference is saved"
    return input_type, "Sample text", "Input accepts the entered data"


def build_input_case(snapshot: PageSnapshot, field: InputElement, index: int) -> TestCase:
    input_type = field.type or "text"
    name = field.display_name or f"Input {index + 1}"
    if field.id:
        identifier = f'with ID "{field.id}"'
    elif field.name:
        identifier = f'with name "{field.name}"'
    else:
        identifier = f"#{index + 1}"
    purpose, test_data, validation = input_profile(field, name)

    if input_type in ("checkbox", "radio"):
        action = phrase_step(3, PhraseId.CLICK_ELEMENT, "Input is interactive and responds to user action",
                             label=name, kind=input_type, target=field.identifier or name)
    else:
        action = phrase_step(3, PhraseId.ENTER_VALUE, "Input is interactive and responds to user action",
                             value=test_data, field=name, target=field.identifier or name)

    return TestCase(
        id=case_id(ElementType.INPUT, index),
        title=f"Test {_capitalize(purpose)} Input: {name}",
        description=f"Verify that the {name} input field works correctly",
        priority=Priority.HIGH if input_type in ("password", "email") else Priority.MEDIUM,
        steps=[
            entry_step(snapshot),
            phrase_step(2, PhraseId.LOCATE_ELEMENT, "Input field is visible on the page", subject=f"{name} field {identifier}"),
            action,
            phrase_step(4, PhraseId.CHECK_VALIDATION, validation),
        ],
    )


# ============================================================================
# SCREENS (mobile)
# ============================================================================

def build_screen_case(snapshot: PageSnapshot, screen: ScreenElement, index: int) -> TestCase:
    label = screen.label
    return TestCase(
        id=case_id(ElementType.SCREEN, index),
        title=f"Verify {label}",
        description=f"Verify that the {label} can be reached and renders correctly",
        priority=Priority.MEDIUM,
        steps=[
            entry_step(snapshot),
            phrase_step(2, PhraseId.VERIFY_SCREEN, f"{label} is displayed", name=label),
        ],
    )


# ============================================================================
# OVERVIEW CASES
# ============================================================================

def build_page_load_case(snapshot: PageSnapshot) -> TestCase:
    return TestCase(
        id="TC_PAGE_1",
        title="Verify Page Loads Successfully",
        description=f"Test that {snapshot.url} loads and shows the expected title",
        priority=Priority.HIGH,
        steps=[
            phrase_step(1, PhraseId.NAVIGATE, "Page loads successfully", url=snapshot.url),
            phrase_step(2, PhraseId.VERIFY_TITLE, f'Title is "{snapshot.title}"', title=snapshot.title),
        ],
    )


def build_app_launch_case(snapshot: PageSnapshot) -> TestCase:
    first_screen = snapshot.screens[0].label if snapshot.screens else "Home Screen"
    return TestCase(
        id="TC_APP_1",
        title=f"Verify {snapshot.title} Launches Correctly",
        description=f"Test that the app launches successfully and displays the {first_screen}",
        priority=Priority.HIGH,
        steps=[
            phrase_step(1, PhraseId.LAUNCH_APP, "App launches without errors", platform=snapshot.platform),
            phrase_step(2, PhraseId.VERIFY_SCREEN, f"{first_screen} is displayed", name=first_screen),
        ],
    )


def build_count_cases(snapshot: PageSnapshot) -> List[TestCase]:
    categories = list(COUNT_CATEGORIES)
    if snapshot.screens:
        categories.append(ElementType.SCREEN)

    cases = []
    for number, category in enumerate(categories, start=1):
        count = snapshot.count(category)
        cases.append(TestCase(
            id=f"TC_COUNT_{number}",
            title=f"Verify {category.value.title()} Count",
            description=f"Check that the expected number of {category.plural} is present",
            priority=Priority.LOW,
            steps=[
                entry_step(snapshot),
                phrase_step(2, PhraseId.VERIFY_COUNT, f"{count} {category.plural} are present",
                            count=count, noun=category.plural),
            ],
        ))
    return cases


def build_overview_cases(snapshot: PageSnapshot) -> List[TestCase]:
    opening = build_app_launch_case(snapshot) if snapshot.is_mobile else build_page_load_case(snapshot)
    return [opening] + build_count_cases(snapshot)


CASE_BUILDERS: Dict[ElementType, Callable[[PageSnapshot, object, int], TestCase]] = {
    ElementType.BUTTON: build_button_case,
    ElementType.FORM: build_form_case,
    ElementType.LINK: build_link_case,
    ElementType.INPUT: build_input_case,
    ElementType.SCREEN: build_screen_case,
}


def build_element_case(snapshot: PageSnapshot, element_type: ElementType, index: int) -> TestCase:
    """Case for the ``index``-th (0-based) element of ``element_type``."""
    element_type = ElementType(element_type)
    element = snapshot.elements(element_type)[index]
    return CASE_BUILDERS[element_type](snapshot, element, index)
