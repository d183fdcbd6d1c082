import logging
from typing import Any, Dict, List, Optional

from playwright.async_api import Page

from webqa_casegen.crawler.static_extractor import (BUTTON_SELECTOR,
                                                    FORM_FIELD_SELECTOR,
                                                    INPUT_SELECTOR,
                                                    MAX_BUTTONS, MAX_FORMS,
                                                    MAX_INPUTS, MAX_LINKS,
                                                    SUBMIT_SELECTOR,
                                                    is_followable_href)
from webqa_casegen.data.test_structures import PageSnapshot

# ============================================================================
# JAVASCRIPT PAYLOADS
# ============================================================================

_LABEL_JS = """
(el, scope) => {
    const aria = el.getAttribute('aria-label');
    if (aria) return aria;
    if (!el.id) return '';
    const label = scope.querySelector(`label[for="${CSS.escape(el.id)}"]`);
    return label ? label.textContent.trim() : '';
}
"""

_INPUT_JS = f"""
(el, scope) => ({{
    type: el.getAttribute('type') || 'text',
    id: el.id || '',
    name: el.getAttribute('name') || '',
    placeholder: el.getAttribute('placeholder') || '',
    required: el.hasAttribute('required'),
    label: ({_LABEL_JS})(el, scope),
    autocomplete: el.getAttribute('autocomplete') || '',
    pattern: el.getAttribute('pattern') || '',
    min: el.getAttribute('min') || '',
    max: el.getAttribute('max') || '',
}})
"""

BUTTONS_JS = """
(els, limit) => els.slice(0, limit).map(el => ({
    text: (el.innerText || el.textContent || '').trim() || el.value || 'Unnamed Button',
    type: el.getAttribute('type') || 'button',
    id: el.id || '',
    name: el.getAttribute('name') || '',
    class: el.getAttribute('class') || '',
    attributes: {
        href: el.getAttribute('href') || '',
        onclick: el.getAttribute('onclick') || '',
        'data-target': el.getAttribute('data-target') || '',
        'data-toggle': el.getAttribute('data-toggle') || '',
        'aria-label': el.getAttribute('aria-label') || '',
    },
}))
"""

LINKS_JS = """
(els, limit) => els.slice(0, limit).map(el => ({
    text: (el.innerText || el.textContent || '').trim() || 'Unnamed Link',
    href: el.getAttribute('href') || '',
    id: el.id || '',
    class: el.getAttribute('class') || '',
    target: el.getAttribute('target') || '',
    title: el.getAttribute('title') || '',
    ariaLabel: el.getAttribute('aria-label') || '',
}))
"""

INPUTS_JS = f"""
(els, limit) => els.slice(0, limit).map(el => ({_INPUT_JS})(el, document))
"""

FORMS_JS = f"""
(els, limit) => els.slice(0, limit).map(form => {{
    const submit = form.querySelector('{SUBMIT_SELECTOR}');
    return {{
        id: form.id || '',
        action: form.getAttribute('action') || '',
        method: form.getAttribute('method') || 'get',
        inputs: Array.from(form.querySelectorAll('{FORM_FIELD_SELECTOR}')).map(el => ({_INPUT_JS})(el, form)),
        submitButton: (submit && ((submit.textContent || '').trim() || submit.value)) || 'Submit',
    }};
}})
"""


# ============================================================================
# CRAWLER
# ============================================================================

class SnapshotCrawler:
    """Extracts a :class:`PageSnapshot` from a live Playwright page."""

    def __init__(self, page: Page):
        if page is None:
            raise ValueError("page must be a Playwright Page")
        self.page = page

    async def _eval_all(self, selector: str, script: str, limit: int) -> List[Dict[str, Any]]:
        try:
            return await self.page.eval_on_selector_all(selector, script, limit)
        except Exception as e:
            logging.warning(f"Element extraction failed for '{selector}': {e}")
            return []

    async def crawl(self, url: Optional[str] = None) -> PageSnapshot:
        """Snapshot the current page.

        Args:
            url: URL to record; defaults to the page's current URL.

        Returns:
            PageSnapshot of the page; the title falls back to the URL.
        """
        url = url or self.page.url
        title = (await self.page.title() or "").strip()

        buttons = await self._eval_all(BUTTON_SELECTOR, BUTTONS_JS, MAX_BUTTONS)
        forms = await self._eval_all("form", FORMS_JS, MAX_FORMS)
        # Filtering happens after the limit, as for static pages.
        links = await self._eval_all("a[href]", LINKS_JS, MAX_LINKS)
        links = [link for link in links if is_followable_href(link.get("href", ""))]
        inputs = await self._eval_all(INPUT_SELECTOR, INPUTS_JS, MAX_INPUTS)

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
