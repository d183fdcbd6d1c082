import asyncio
import logging
from typing import Any, Dict, Optional

import requests
from bs4 import BeautifulSoup

from webqa_casegen.data.test_structures import PageSnapshot

BUTTON_SELECTOR = 'button, input[type="submit"], input[type="button"], .btn, [role="button"]'
INPUT_SELECTOR = 'input:not([type="submit"]):not([type="button"]), textarea, select'
FORM_FIELD_SELECTOR = "input, textarea, select"
SUBMIT_SELECTOR = 'button[type="submit"], input[type="submit"]'

MAX_BUTTONS = 30
MAX_FORMS = 15
MAX_LINKS = 30
MAX_INPUTS = 25

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml",
    "Accept-Language": "en-US,en;q=0.9",
}


def is_followable_href(href: str) -> bool:
    return bool(href) and not href.startswith("javascript:") and href != "#"


def _text(el) -> str:
    return " ".join(el.get_text(" ", strip=True).split())


def _attr(el, name: str) -> str:
    value = el.get(name)
    if isinstance(value, list):  # class and other multi-valued attributes
        return " ".join(value)
    return value or ""


def _label_for(scope, el) -> str:
    if el.get("aria-label"):
        return _attr(el, "aria-label")
    element_id = el.get("id")
    if element_id:
        label = scope.find("label", attrs={"for": element_id})
        if label is not None:
            return _text(label)
    return ""


def _input_record(scope, el) -> Dict[str, Any]:
    return {
        "type": _attr(el, "type") or "text",
        "id": _attr(el, "id"),
        "name": _attr(el, "name"),
        "placeholder": _attr(el, "placeholder"),
        "required": el.has_attr("required"),
        "label": _label_for(scope, el),
        "autocomplete": _attr(el, "autocomplete"),
        "pattern": _attr(el, "pattern"),
        "min": _attr(el, "min"),
        "max": _attr(el, "max"),
    }


def parse_html(html: str, url: str) -> PageSnapshot:
    """Build a snapshot from an HTML document fetched from ``url``."""
    soup = BeautifulSoup(html, "html.parser")
    title = _text(soup.title) if soup.title else ""

    buttons = []
    for el in soup.select(BUTTON_SELECTOR)[:MAX_BUTTONS]:
        buttons.append({
            "text": _text(el) or _attr(el, "value") or "Unnamed Button",
            "type": _attr(el, "type") or "button",
            "id": _attr(el, "id"),
            "name": _attr(el, "name"),
            "class": _attr(el, "class"),
            "attributes": {
                "href": _attr(el, "href"),
                "onclick": _attr(el, "onclick"),
                "data-target": _attr(el, "data-target"),
                "data-toggle": _attr(el, "data-toggle"),
                "aria-label": _attr(el, "aria-label"),
            },
        })

    forms = []
    for form in soup.find_all("form")[:MAX_FORMS]:
        submit = form.select_one(SUBMIT_SELECTOR)
        submit_text = (_text(submit) or _attr(submit, "value")) if submit is not None else ""
        forms.append({
            "id": _attr(form, "id"),
            "action": _attr(form, "action"),
            "method": _attr(form, "method") or "get",
            "inputs": [_input_record(form, el) for el in form.select(FORM_FIELD_SELECTOR)],
            "submitButton": submit_text or "Submit",
        })

    links = []
    for el in soup.find_all("a", href=True)[:MAX_LINKS]:
        href = _attr(el, "href")
        if not is_followable_href(href):
            continue
        links.append({
            "text": _text(el) or "Unnamed Link",
            "href": href,
            "id": _attr(el, "id"),
            "class": _attr(el, "class"),
            "target": _attr(el, "target"),
            "title": _attr(el, "title"),
            "ariaLabel": _attr(el, "aria-label"),
        })

    inputs = [_input_record(soup, el) for el in soup.select(INPUT_SELECTOR)[:MAX_INPUTS]]

    logging.info(
        f"Found: {len(buttons)} buttons, {len(forms)} forms, {len(links)} links, {len(inputs)} inputs on {url}"
    )
    return PageSnapshot.from_raw({
        "url": url,
        "title": title or url,
        "buttons": buttons,
        "forms": forms,
        "links": links,
        "inputs": inputs,
    })


class StaticPageExtractor:
    """Fetches a page over HTTP and extracts elements without a browser."""

    def __init__(self, timeout: float = 15.0, headers: Optional[Dict[str, str]] = None,
                 session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.headers = {**DEFAULT_HEADERS, **(headers or {})}
        self.session = session or requests.Session()

    def fetch_html(self, url: str) -> str:
        try:
            response = self.session.get(url, headers=self.headers, timeout=self.timeout, allow_redirects=True)
        except requests.RequestException as e:
            logging.error(f"Failed to load page {url}: {e}")
            raise
        if not response.ok:
            raise requests.HTTPError(f"Failed to fetch URL (Status {response.status_code})", response=response)
        return response.text

    def extract_sync(self, url: str) -> PageSnapshot:
        return parse_html(self.fetch_html(url), url)

    async def extract(self, url: str) -> PageSnapshot:
        """Fetch and parse in a thread pool to avoid blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.extract_sync, url)

    def close(self):
        self.session.close()
