import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar, Union

from webqa_casegen.browser.session import BrowserSession
from webqa_casegen.crawler import (SnapshotCrawler, StaticPageExtractor,
                                   snapshot_from_app_description)
from webqa_casegen.data.test_structures import (Cursor, ElementType,
                                                ExecutionReport, ExportFormat,
                                                ExportResult, GenerationResult,
                                                PageSnapshot, ProcessedCounts,
                                                TestCase)
from webqa_casegen.exceptions import (CaseGenError,
                                      ExternalCollaboratorTimeout)
from webqa_casegen.executor import CaseExecutor
from webqa_casegen.exporter import render
from webqa_casegen.generator import TestCaseSynthesizer
from webqa_casegen.generator.ai_generator import AICaseGenerator
from webqa_casegen.session import SessionStore
from webqa_casegen.session.store import (DEFAULT_MAX_SESSIONS,
                                         DEFAULT_TTL_SECONDS)

DEFAULT_BATCH_SIZE = 5
EXTRACTION_FALLBACK_NOTE = "Page elements could not be extracted; returned generic test cases"
AI_FALLBACK_NOTE = "AI generation failed; returned templated test cases"
AI_NOT_CONFIGURED_NOTE = "AI generation is not configured; returned templated test cases"

Envelope = TypeVar("Envelope", GenerationResult, ExportResult, ExecutionReport)


def normalize_url(url: str) -> str:
    url = (url or "").strip()
    if not url:
        raise CaseGenError("URL is required")
    if "://" not in url:
        url = f"https://{url}"
    return url


def _join_notes(*notes: Optional[str]) -> Optional[str]:
    return "; ".join(n for n in notes if n) or None


class CaseGenService:
    """Request-level API over extraction, synthesis, sessions, export and execution.

    Every public method returns a result envelope; errors are reported through
    ``success``/``error``/``error_type`` instead of being raised.

    Args:
        config: Parsed configuration with the ``generation``, ``session``,
            ``execution``, ``browser_config`` and ``llm_config`` sections.
        session_store: Store for session state; an in-memory TTL store by default.
        synthesizer: Case synthesizer; the default category order when omitted.
        static_extractor: HTTP extractor; when set (or ``generation.static_fetch``
            is true) pages are fetched without a browser.
        ai_generator: LLM case generator; created lazily from ``llm_config``.
        executor: Case executor for :meth:`execute`.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 session_store: Optional[SessionStore] = None,
                 synthesizer: Optional[TestCaseSynthesizer] = None,
                 static_extractor: Optional[StaticPageExtractor] = None,
                 ai_generator: Optional[AICaseGenerator] = None,
                 executor: Optional[CaseExecutor] = None):
        self.config = config or {}
        generation = self.config.get("generation") or {}
        session_config = self.config.get("session") or {}
        execution = self.config.get("execution") or {}
        self.browser_config = self.config.get("browser_config") or {}
        self.llm_config = self.config.get("llm_config") or {}

        self.batch_size = int(generation.get("batch_size", DEFAULT_BATCH_SIZE))
        self.use_ai = bool(generation.get("use_ai", False))
        self.ai_timeout = float(generation.get("ai_timeout", 30))
        self.extraction_timeout = float(generation.get("extraction_timeout", 30))

        self.sessions = session_store or SessionStore(
            ttl_seconds=session_config.get("ttl_seconds", DEFAULT_TTL_SECONDS),
            max_sessions=session_config.get("max_sessions", DEFAULT_MAX_SESSIONS),
        )
        self.synthesizer = synthesizer or TestCaseSynthesizer()
        if static_extractor is None and generation.get("static_fetch", False):
            static_extractor = StaticPageExtractor(timeout=self.extraction_timeout)
        self.static_extractor = static_extractor
        self.ai_generator = ai_generator
        self.executor = executor or CaseExecutor(
            browser_config=self.browser_config,
            step_timeout=int(execution.get("step_timeout", 5000)),
            capture_screenshots=bool(execution.get("screenshots", False)),
            perform_clicks=bool(execution.get("perform_clicks", False)),
        )

    # ------------------------------------------------------------------
    # Snapshot acquisition
    # ------------------------------------------------------------------

    async def extract_snapshot(self, url: str) -> Tuple[PageSnapshot, Optional[str]]:
        """Extract a snapshot of ``url`` within ``extraction_timeout``.

        Returns:
            The snapshot and a note. When extraction fails or times out the
            snapshot only carries the url as url and title, and the note says so.
        """
        url = normalize_url(url)
        try:
            snapshot = await asyncio.wait_for(self._extract(url), timeout=self.extraction_timeout)
            return snapshot, None
        except asyncio.TimeoutError:
            error = ExternalCollaboratorTimeout("Extractor", self.extraction_timeout)
            logging.warning(f"Extraction of {url} timed out: {error.message}")
        except Exception as e:
            logging.error(f"Extraction of {url} failed: {e}")
        return PageSnapshot.from_raw({"url": url, "title": url}), EXTRACTION_FALLBACK_NOTE

    async def _extract(self, url: str) -> PageSnapshot:
        if self.static_extractor is not None:
            return await self.static_extractor.extract(url)
        async with BrowserSession(browser_config=self.browser_config) as session:
            page = await session.navigate_to(url)
            return await SnapshotCrawler(page).crawl(url)

    async def _resolve_snapshot(self, url: Optional[str], snapshot: Union[PageSnapshot, Dict[str, Any], None],
                                app_description: Optional[Dict[str, Any]]) -> Tuple[PageSnapshot, Optional[str]]:
        if snapshot is not None:
            return PageSnapshot.from_raw(snapshot), None
        if app_description is not None:
            return snapshot_from_app_description(app_description), None
        if url:
            return await self.extract_snapshot(url)
        raise CaseGenError("A url, snapshot or app description is required")

    # ------------------------------------------------------------------
    # AI cases
    # ------------------------------------------------------------------

    def _get_ai_generator(self) -> Optional[AICaseGenerator]:
        if self.ai_generator is None and self.llm_config.get("api_key"):
            self.ai_generator = AICaseGenerator(self.llm_config, timeout=self.ai_timeout)
        return self.ai_generator

    async def _ai_cases(self, snapshot: PageSnapshot, existing: List[TestCase]) -> Tuple[List[TestCase], Optional[str]]:
        generator = self._get_ai_generator()
        if generator is None:
            logging.warning("AI generation requested but llm_config has no api_key")
            return [], AI_NOT_CONFIGURED_NOTE
        try:
            return await generator.generate(snapshot, existing), None
        except Exception as e:
            logging.warning(f"AI generation failed, keeping templated cases: {e}")
            return [], AI_FALLBACK_NOTE

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_first(self, url: Optional[str] = None,
                             snapshot: Union[PageSnapshot, Dict[str, Any], None] = None,
                             app_description: Optional[Dict[str, Any]] = None,
                             use_ai: Optional[bool] = None) -> GenerationResult:
        """Start a session with the overview cases; element cases follow via :meth:`generate_next`."""
        try:
            snapshot, note = await self._resolve_snapshot(url, snapshot, app_description)
            cases = self.synthesizer.synthesize_first(snapshot)
            if self.use_ai if use_ai is None else use_ai:
                ai_cases, ai_note = await self._ai_cases(snapshot, cases)
                cases += ai_cases
                note = _join_notes(note, ai_note)
            cursor = self.synthesizer.initial_cursor(snapshot)
            session_id = self.sessions.create(snapshot, cases, cursor=cursor)
        except Exception as e:
            return self._failure(GenerationResult, e)

        return GenerationResult(
            session_id=session_id,
            test_cases=cases,
            processed=ProcessedCounts(),
            next_element_type=cursor.element_type,
            next_element_index=cursor.element_index,
            has_more_elements=cursor.element_type is not None,
            total_test_cases=len(cases),
            note=note,
        )

    def generate_next(self, session_id: str, element_type: Union[ElementType, str, None] = None,
                      element_index: Optional[int] = None,
                      batch_size: Optional[int] = None) -> GenerationResult:
        """Append the next batch of element cases to a session."""
        try:
            with self.sessions.locked(session_id):
                state = self.sessions.get(session_id)
                batch = self.synthesizer.synthesize_incremental(
                    state, self.batch_size if batch_size is None else batch_size, element_type, element_index
                )
                state = self.sessions.update(session_id, batch.new_cases, batch.cursor, batch.processed_counts)
        except Exception as e:
            return self._failure(GenerationResult, e)

        logging.info(f"Session {session_id}: generated {len(batch.new_cases)} more test cases")
        return GenerationResult(
            session_id=session_id,
            test_cases=batch.new_cases,
            processed=batch.processed_counts,
            next_element_type=batch.cursor.element_type,
            next_element_index=batch.cursor.element_index,
            has_more_elements=batch.has_more,
            total_test_cases=len(state.test_cases),
        )

    async def generate_all(self, url: Optional[str] = None,
                           snapshot: Union[PageSnapshot, Dict[str, Any], None] = None,
                           app_description: Optional[Dict[str, Any]] = None,
                           use_ai: Optional[bool] = None) -> GenerationResult:
        """Generate every case at once; the session is created fully processed."""
        try:
            snapshot, note = await self._resolve_snapshot(url, snapshot, app_description)
            cases = self.synthesizer.synthesize_full(snapshot)
            if self.use_ai if use_ai is None else use_ai:
                ai_cases, ai_note = await self._ai_cases(snapshot, cases)
                cases += ai_cases
                note = _join_notes(note, ai_note)
            counts = ProcessedCounts(**snapshot.counts())
            session_id = self.sessions.create(snapshot, cases, cursor=Cursor(), processed_counts=counts)
        except Exception as e:
            return self._failure(GenerationResult, e)

        return GenerationResult(
            session_id=session_id,
            test_cases=cases,
            processed=counts,
            total_test_cases=len(cases),
            note=note,
        )

    # ------------------------------------------------------------------
    # Export and execution
    # ------------------------------------------------------------------

    def export(self, session_id: str, export_format: Union[ExportFormat, str, None] = ExportFormat.JSON) -> ExportResult:
        try:
            state = self.sessions.get(session_id)
            document = render(export_format, state.snapshot, state.test_cases)
        except Exception as e:
            return self._failure(ExportResult, e)
        logging.info(f"Session {session_id}: exported {len(state.test_cases)} test cases as {document.format.value}")
        return ExportResult(document=document)

    async def execute(self, session_id: str) -> ExecutionReport:
        """Run the session's cases against the live page."""
        try:
            state = self.sessions.get(session_id)
            if state.snapshot.is_mobile:
                raise CaseGenError("Test execution is only supported for web pages")
            return await self.executor.execute(state.snapshot, state.test_cases)
        except Exception as e:
            return self._failure(ExecutionReport, e)

    def purge_expired(self) -> int:
        return self.sessions.purge_expired()

    async def close(self):
        if self.ai_generator is not None:
            await self.ai_generator.close()
        if self.static_extractor is not None:
            self.static_extractor.close()

    @staticmethod
    def _failure(result_type: Type[Envelope], error: Exception) -> Envelope:
        if isinstance(error, CaseGenError):
            message = error.message
            logging.warning(f"{type(error).__name__}: {message}")
        else:
            message = str(error) or type(error).__name__
            logging.error(f"Unexpected error: {message}", exc_info=True)
        return result_type(success=False, error=message, error_type=type(error).__name__)
