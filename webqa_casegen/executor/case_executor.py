import base64
import datetime
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from playwright.async_api import Page

from webqa_casegen.browser.session import BrowserSession
from webqa_casegen.crawler.static_extractor import (BUTTON_SELECTOR,
                                                    INPUT_SELECTOR)
from webqa_casegen.data.phrases import PhraseId
from webqa_casegen.data.test_structures import (CaseExecutionResult,
                                                ExecutionReport,
                                                ExecutionSummary, PageSnapshot,
                                                StepResult, TestCase,
                                                TestStatus)
from webqa_casegen.exporter.step_intent import (IntentKind, StepIntent,
                                                resolve_step_intent)

COUNT_SELECTORS = {
    "buttons": BUTTON_SELECTOR,
    "links": "a[href]",
    "inputs": INPUT_SELECTOR,
    "forms": "form",
}

EXECUTION_FAILED = "Test execution failed"


def format_duration(seconds: float) -> str:
    seconds = int(seconds)
    return f"{seconds // 60}m {seconds % 60}s"


def build_report(url: str, results: List[CaseExecutionResult], elapsed: float) -> ExecutionReport:
    summary = ExecutionSummary(
        total=len(results),
        passed=sum(1 for r in results if r.status == TestStatus.PASSED),
        failed=sum(1 for r in results if r.status == TestStatus.FAILED),
        skipped=sum(1 for r in results if r.status == TestStatus.SKIPPED),
    )
    return ExecutionReport(
        id=uuid.uuid4().hex[:8],
        url=url,
        date=datetime.date.today().isoformat(),
        status=TestStatus.PASSED if summary.failed == 0 else TestStatus.FAILED,
        pass_rate=round(summary.passed / summary.total * 100) if summary.total else 0,
        duration=format_duration(elapsed),
        summary=summary,
        results=results,
    )


def _quote_attr(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


class CaseExecutor:
    """Runs simplified versions of test cases against the live page.

    Every case starts from a fresh navigation to the snapshot URL. Steps are
    interpreted through their intents; steps with no executable intent are
    recorded as skipped. Clicks only assert visibility unless
    ``perform_clicks`` is set, since a click may leave the page.
    """

    def __init__(self, browser_config: Optional[Dict[str, Any]] = None, step_timeout: int = 5000,
                 capture_screenshots: bool = False, perform_clicks: bool = False,
                 session_factory: Callable[..., BrowserSession] = BrowserSession):
        # Stylesheets and images matter for visibility checks.
        self.browser_config = {**(browser_config or {}), "block_resources": False}
        self.step_timeout = step_timeout
        self.capture_screenshots = capture_screenshots
        self.perform_clicks = perform_clicks
        self.session_factory = session_factory

    async def execute(self, snapshot: PageSnapshot, test_cases: Sequence[TestCase]) -> ExecutionReport:
        started = time.monotonic()
        results: List[CaseExecutionResult] = []
        session = self.session_factory(browser_config=self.browser_config)
        try:
            await session.initialize()
            for case in test_cases:
                results.append(await self.run_case(session, snapshot, case))
        except Exception as e:
            logging.error(f"Error executing tests: {e}")
            done = {r.id for r in results}
            results.extend(
                CaseExecutionResult(id=case.id, name=case.title, status=TestStatus.FAILED, error=EXECUTION_FAILED)
                for case in test_cases if case.id not in done
            )
        finally:
            await session.close()

        report = build_report(snapshot.url, results, time.monotonic() - started)
        logging.info(
            f"Executed {report.summary.total} test cases on {snapshot.url}: "
            f"{report.summary.passed} passed, {report.summary.failed} failed, {report.summary.skipped} skipped"
        )
        return report

    async def run_case(self, session: BrowserSession, snapshot: PageSnapshot, case: TestCase) -> CaseExecutionResult:
        started = time.monotonic()
        result = CaseExecutionResult(id=case.id, name=case.title, status=TestStatus.RUNNING)
        if not case.steps:
            result.status = TestStatus.SKIPPED
            return result

        page = None
        try:
            page = await session.navigate_to(snapshot.url)
            for step in case.steps:
                intent = resolve_step_intent(step)
                status, message = await self._run_step(page, snapshot, intent)
                result.steps.append(StepResult(step=step.step, action=step.action, status=status, message=message))
                if status == TestStatus.FAILED:
                    result.error = f"Step {step.step}: {message}"
                    break
            result.status = TestStatus.FAILED if result.error else TestStatus.PASSED
        except Exception as e:
            logging.warning(f"Test case {case.id} failed: {e}")
            result.status = TestStatus.FAILED
            result.error = str(e)

        if self.capture_screenshots and page is not None:
            try:
                image = await page.screenshot()
                result.screenshot = f"data:image/png;base64,{base64.b64encode(image).decode()}"
            except Exception as e:
                logging.warning(f"Screenshot for {case.id} failed: {e}")
        result.duration = round(time.monotonic() - started, 1)
        return result

    async def _run_step(self, page: Page, snapshot: PageSnapshot, intent: StepIntent) -> Tuple[TestStatus, str]:
        if intent.kind == IntentKind.NAVIGATE:
            if intent.target and intent.target.rstrip("/") != snapshot.url.rstrip("/"):
                await page.goto(intent.target)
            return TestStatus.PASSED, "Page loaded"

        if intent.kind == IntentKind.VERIFY:
            if intent.phrase_id == PhraseId.VERIFY_TITLE:
                return await self._verify_title(page, intent.text)
            if intent.phrase_id == PhraseId.VERIFY_COUNT:
                return await self._verify_count(page, snapshot)
            return TestStatus.SKIPPED, "Expectation is not checked automatically"

        if intent.kind == IntentKind.CLICK:
            locator = await self._find(page, self._click_candidates(page, intent.target or ""))
            if locator is None:
                return TestStatus.FAILED, f'Element "{intent.target}" not found'
            await locator.wait_for(state="visible", timeout=self.step_timeout)
            if self.perform_clicks:
                await locator.click(timeout=self.step_timeout)
                return TestStatus.PASSED, f'Clicked "{intent.target}"'
            return TestStatus.PASSED, f'"{intent.target}" is visible'

        if intent.kind == IntentKind.INPUT:
            locator = await self._find(page, self._field_candidates(page, intent.target or ""))
            if locator is None:
                return TestStatus.FAILED, f'Field "{intent.target}" not found'
            await locator.fill(intent.value or "", timeout=self.step_timeout)
            return TestStatus.PASSED, f'Filled "{intent.target}"'

        return TestStatus.SKIPPED, "No executable action"

    async def _verify_title(self, page: Page, expected: Optional[str]) -> Tuple[TestStatus, str]:
        title = await page.title()
        if not title:
            return TestStatus.FAILED, "Page title is empty"
        if expected and expected not in title:
            return TestStatus.FAILED, f'Expected title "{expected}", got "{title}"'
        return TestStatus.PASSED, f'Title is "{title}"'

    async def _verify_count(self, page: Page, snapshot: PageSnapshot) -> Tuple[TestStatus, str]:
        # Count checks were captured with the snapshot; re-counting against the
        # live DOM only asserts that nothing disappeared.
        for noun, selector in COUNT_SELECTORS.items():
            expected = snapshot.counts()[noun]
            actual = len(await page.query_selector_all(selector))
            if actual < expected:
                return TestStatus.FAILED, f"Expected at least {expected} {noun}, found {actual}"
        return TestStatus.PASSED, "Element counts match the snapshot"

    def _click_candidates(self, page: Page, name: str) -> list:
        return [
            page.get_by_role("button", name=name),
            page.get_by_role("link", name=name),
            page.get_by_label(name),
            page.get_by_text(name, exact=True),
        ]

    def _field_candidates(self, page: Page, name: str) -> list:
        quoted = _quote_attr(name)
        return [
            page.locator(f'[id="{quoted}"]'),
            page.locator(f'[name="{quoted}"]'),
            page.get_by_label(name),
            page.get_by_placeholder(name),
        ]

    async def _find(self, page: Page, candidates: list):
        for locator in candidates:
            if await locator.count() > 0:
                return locator.first
        return None
