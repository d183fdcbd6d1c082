import os
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from webqa_casegen.data import PageSnapshot


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        '--url',
        action='store',
        default=None,
        help='Target URL for live browser tests (skipped when not given)',
    )


@pytest.fixture
def test_url(request: pytest.FixtureRequest) -> str:
    # Priority: CLI --url > env WEBQA_TEST_URL; live tests skip without either
    url = request.config.getoption('--url') or os.getenv('WEBQA_TEST_URL')
    if not url:
        pytest.skip('live browser test: pass --url or set WEBQA_TEST_URL')
    return url


@pytest.fixture
def login_snapshot() -> PageSnapshot:
    return PageSnapshot.from_raw({'url': 'https://x.test', 'title': 'X', 'buttons': [{'text': 'Login'}]})


@pytest.fixture
def shop_snapshot() -> PageSnapshot:
    return PageSnapshot.from_raw({
        'url': 'https://shop.test/',
        'title': 'Shop',
        'buttons': [
            {'text': 'Add to cart', 'id': 'add'},
            {'text': 'Search', 'type': 'submit'},
            {'text': 'View pricing'},
        ],
        'forms': [{
            'id': 'login-form',
            'inputs': [
                {'type': 'email', 'name': 'email', 'label': 'Email'},
                {'type': 'password', 'name': 'password', 'label': 'Password'},
            ],
            'submitButton': 'Sign in',
        }],
        'links': [
            {'text': 'About us', 'href': '/about'},
            {'text': 'Docs', 'href': 'https://docs.example.org/start'},
        ],
        'inputs': [
            {'type': 'email', 'id': 'newsletter-email', 'placeholder': 'Your email'},
            {'type': 'checkbox', 'name': 'remember', 'label': 'Remember me'},
        ],
    })


@pytest.fixture
def app_description() -> Dict[str, Any]:
    return {
        'appId': 'com.example.shop',
        'platform': 'android',
        'name': 'Shop',
        'screens': [{'name': 'Home'}, {'name': 'Cart'}],
        'buttons': [{'text': 'Checkout', 'screen': 'Cart'}],
        'inputs': [{'type': 'email', 'name': 'email', 'screen': 'Home'}],
    }


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_locator(count: int = 1) -> MagicMock:
    locator = MagicMock()
    locator.count = AsyncMock(return_value=count)
    locator.first = locator
    locator.wait_for = AsyncMock()
    locator.click = AsyncMock()
    locator.fill = AsyncMock()
    return locator


def make_page(title: str = 'X', found: bool = True, elements: Optional[List[Any]] = None) -> MagicMock:
    """Playwright page double: locators resolve when ``found``; every selector matches ``elements``."""
    page = MagicMock()
    page.title = AsyncMock(return_value=title)
    page.goto = AsyncMock()
    page.screenshot = AsyncMock(return_value=b'png')
    page.query_selector_all = AsyncMock(return_value=elements if elements is not None else [object()] * 10)
    locator = make_locator(1 if found else 0)
    page.get_by_role.return_value = locator
    page.get_by_label.return_value = locator
    page.get_by_text.return_value = locator
    page.get_by_placeholder.return_value = locator
    page.locator.return_value = locator
    page.test_locator = locator
    return page


class FakeBrowserSession:
    """Stands in for BrowserSession; every navigation returns the same fake page."""

    def __init__(self, page: MagicMock, fail_on_init: bool = False, **kwargs):
        self.page = page
        self.fail_on_init = fail_on_init
        self.kwargs = kwargs
        self.closed = False
        self.navigations: List[str] = []

    async def initialize(self):
        if self.fail_on_init:
            raise RuntimeError('browser launch failed')

    async def navigate_to(self, url: str, **kwargs):
        self.navigations.append(url)
        return self.page

    async def close(self):
        self.closed = True
