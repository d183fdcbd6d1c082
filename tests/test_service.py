import asyncio
import json
import threading
from unittest.mock import AsyncMock, MagicMock

import pytest

from webqa_casegen import CaseGenService
from webqa_casegen.data import ElementType, ExecutionReport, ExportFormat
from webqa_casegen.exceptions import ExternalCollaboratorTimeout
from webqa_casegen.generator import synthesize_full
from webqa_casegen.generator.ai_generator import parse_ai_cases
from webqa_casegen.service import (AI_FALLBACK_NOTE, AI_NOT_CONFIGURED_NOTE,
                                   EXTRACTION_FALLBACK_NOTE, normalize_url)

AI_RESPONSE = json.dumps([{
    'title': 'Checkout flow',
    'steps': [{'action': 'Click button with text "Add to cart"', 'expected': 'Cart updates'}],
}])


def _extractor(snapshot=None, error=None):
    extractor = MagicMock()
    extractor.extract = AsyncMock(return_value=snapshot, side_effect=error)
    return extractor


def _ai(cases=None, error=None):
    generator = MagicMock()
    generator.generate = AsyncMock(return_value=cases or [], side_effect=error)
    generator.close = AsyncMock()
    return generator


@pytest.fixture
def service():
    return CaseGenService({'generation': {'batch_size': 3}})


class TestGenerate:
    def test_first_then_next_until_exhausted(self, service, shop_snapshot):
        first = asyncio.run(service.generate_first(snapshot=shop_snapshot))
        assert first.success
        assert first.session_id.startswith('session-')
        assert [c.id for c in first.test_cases][:1] == ['TC_PAGE_1']
        assert first.next_element_type == ElementType.BUTTON
        assert first.has_more_elements

        ids = [c.id for c in first.test_cases]
        result = first
        while result.has_more_elements:
            result = service.generate_next(first.session_id)
            assert result.success
            ids += [c.id for c in result.test_cases]

        assert ids == [c.id for c in synthesize_full(shop_snapshot)]
        assert result.total_test_cases == len(ids)
        assert result.next_element_type is None
        assert result.processed.buttons == 3

    def test_next_with_explicit_category(self, service, shop_snapshot):
        first = asyncio.run(service.generate_first(snapshot=shop_snapshot))
        result = service.generate_next(first.session_id, element_type='input', element_index=0, batch_size=1)
        assert [c.id for c in result.test_cases] == ['TC_INPUT_1']
        assert result.next_element_type == ElementType.INPUT
        assert result.next_element_index == 1
        assert result.total_test_cases == 6

    def test_next_unknown_session(self, service):
        result = service.generate_next('session-missing')
        assert not result.success
        assert result.error == 'Invalid or expired session ID'
        assert result.error_type == 'SessionNotFoundError'

    def test_next_invalid_batch_size(self, service, shop_snapshot):
        first = asyncio.run(service.generate_first(snapshot=shop_snapshot))
        result = service.generate_next(first.session_id, batch_size=-2)
        assert not result.success
        assert result.error_type == 'ValueError'

    def test_next_zero_batch_size_is_rejected(self, service, shop_snapshot):
        first = asyncio.run(service.generate_first(snapshot=shop_snapshot))
        result = service.generate_next(first.session_id, batch_size=0)
        assert not result.success
        assert result.error_type == 'ValueError'
        assert service.sessions.get(first.session_id).processed_counts.buttons == 0

    def test_next_unknown_sessions_leave_no_locks(self, service):
        for i in range(200):
            assert not service.generate_next(f'session-unknown-{i}').success
        assert service.sessions._locks == {}

    def test_concurrent_next_calls_share_the_cursor(self, shop_snapshot):
        service = CaseGenService({'generation': {'batch_size': 1}})
        first = asyncio.run(service.generate_first(snapshot=shop_snapshot))
        barrier = threading.Barrier(8)
        results = []

        def next_batch():
            barrier.wait()
            results.append(service.generate_next(first.session_id))

        threads = [threading.Thread(target=next_batch) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        ids = [c.id for r in results for c in r.test_cases]
        assert all(r.success for r in results)
        assert len(ids) == len(set(ids)) == 8
        assert sorted(ids) == sorted(c.id for c in synthesize_full(shop_snapshot)[5:])
        assert service.sessions.get(first.session_id).processed_counts.inputs == 2

    def test_generate_all(self, service, shop_snapshot):
        result = asyncio.run(service.generate_all(snapshot=shop_snapshot))
        assert result.success
        assert result.total_test_cases == 13
        assert not result.has_more_elements
        assert result.processed.links == 2

        follow_up = service.generate_next(result.session_id)
        assert follow_up.success
        assert follow_up.test_cases == []
        assert follow_up.total_test_cases == 13

    def test_app_description(self, service, app_description):
        result = asyncio.run(service.generate_first(app_description=app_description))
        assert result.success
        assert result.test_cases[0].id == 'TC_APP_1'
        assert result.next_element_type == ElementType.BUTTON

    def test_invalid_snapshot(self, service):
        result = asyncio.run(service.generate_first(snapshot={'url': 'https://a.test'}))
        assert not result.success
        assert result.error_type == 'InvalidSnapshotError'
        assert result.session_id is None

    def test_no_target(self, service):
        result = asyncio.run(service.generate_first())
        assert not result.success
        assert result.error_type == 'CaseGenError'


class TestExtraction:
    def test_url_uses_extractor(self, shop_snapshot):
        extractor = _extractor(shop_snapshot)
        service = CaseGenService(static_extractor=extractor)

        result = asyncio.run(service.generate_first(url='shop.test/'))

        extractor.extract.assert_awaited_once_with('https://shop.test/')
        assert result.success
        assert result.note is None
        assert len(result.test_cases) == 5

    def test_extraction_failure_falls_back(self):
        service = CaseGenService(static_extractor=_extractor(error=ConnectionError('refused')))

        result = asyncio.run(service.generate_all(url='https://down.test'))

        assert result.success
        assert result.note == EXTRACTION_FALLBACK_NOTE
        assert [c.id for c in result.test_cases] == ['TC_PAGE_1', 'TC_COUNT_1', 'TC_COUNT_2', 'TC_COUNT_3', 'TC_COUNT_4']
        assert result.test_cases[0].steps[1].expected == 'Title is "https://down.test"'

    def test_extraction_timeout_falls_back(self, shop_snapshot):
        async def slow(url):
            await asyncio.sleep(1)
            return shop_snapshot

        extractor = MagicMock()
        extractor.extract = slow
        service = CaseGenService({'generation': {'extraction_timeout': 0.01}}, static_extractor=extractor)

        snapshot, note = asyncio.run(service.extract_snapshot('https://slow.test'))

        assert note == EXTRACTION_FALLBACK_NOTE
        assert (snapshot.url, snapshot.title) == ('https://slow.test', 'https://slow.test')
        assert snapshot.buttons == []

    @pytest.mark.parametrize('url,normalized', [
        ('example.com', 'https://example.com'),
        ('  http://example.com/a ', 'http://example.com/a'),
    ])
    def test_normalize_url(self, url, normalized):
        assert normalize_url(url) == normalized


class TestAiCases:
    def test_ai_cases_are_appended(self, shop_snapshot):
        generator = _ai(parse_ai_cases(AI_RESPONSE))
        service = CaseGenService(ai_generator=generator)

        result = asyncio.run(service.generate_first(snapshot=shop_snapshot, use_ai=True))

        assert [c.id for c in result.test_cases][-1] == 'TC_AI_1'
        assert result.note is None
        snapshot_arg, existing = generator.generate.call_args.args
        assert snapshot_arg == shop_snapshot
        assert [c.id for c in existing][0] == 'TC_PAGE_1'

    def test_ai_disabled_by_default(self, shop_snapshot):
        generator = _ai(parse_ai_cases(AI_RESPONSE))
        service = CaseGenService(ai_generator=generator)
        asyncio.run(service.generate_first(snapshot=shop_snapshot))
        generator.generate.assert_not_awaited()

    @pytest.mark.parametrize('error', [ExternalCollaboratorTimeout('LLM', 30), ValueError('rate limited')])
    def test_ai_failure_keeps_templated_cases(self, shop_snapshot, error):
        service = CaseGenService({'generation': {'use_ai': True}}, ai_generator=_ai(error=error))

        result = asyncio.run(service.generate_all(snapshot=shop_snapshot))

        assert result.success
        assert result.note == AI_FALLBACK_NOTE
        assert result.total_test_cases == 13

    def test_ai_not_configured(self, shop_snapshot):
        service = CaseGenService({'generation': {'use_ai': True}})
        result = asyncio.run(service.generate_first(snapshot=shop_snapshot))
        assert result.success
        assert result.note == AI_NOT_CONFIGURED_NOTE

    def test_notes_are_joined(self):
        service = CaseGenService(static_extractor=_extractor(error=RuntimeError('boom')))
        result = asyncio.run(service.generate_first(url='https://down.test', use_ai=True))
        assert result.note == f'{EXTRACTION_FALLBACK_NOTE}; {AI_NOT_CONFIGURED_NOTE}'


class TestExportAndExecute:
    def test_export(self, service, login_snapshot):
        session_id = asyncio.run(service.generate_all(snapshot=login_snapshot)).session_id
        result = service.export(session_id, 'maestro')
        assert result.success
        assert result.document.format == ExportFormat.MAESTRO
        assert result.document.body.startswith('appId: x.test\n')

    def test_export_unknown_format_is_json(self, service, login_snapshot):
        session_id = asyncio.run(service.generate_all(snapshot=login_snapshot)).session_id
        result = service.export(session_id, 'pdf')
        assert result.document.format == ExportFormat.JSON
        assert len(json.loads(result.document.body)) == 6

    def test_export_unknown_session(self, service):
        result = service.export('session-missing', 'json')
        assert not result.success
        assert result.document is None
        assert result.error_type == 'SessionNotFoundError'

    def test_execute(self, login_snapshot):
        executor = MagicMock()
        executor.execute = AsyncMock(return_value=ExecutionReport(url='https://x.test'))
        service = CaseGenService(executor=executor)
        session_id = asyncio.run(service.generate_all(snapshot=login_snapshot)).session_id

        report = asyncio.run(service.execute(session_id))

        assert report.success
        snapshot, cases = executor.execute.call_args.args
        assert snapshot == login_snapshot
        assert len(cases) == 6

    def test_execute_mobile_is_rejected(self, service, app_description):
        session_id = asyncio.run(service.generate_first(app_description=app_description)).session_id
        report = asyncio.run(service.execute(session_id))
        assert not report.success
        assert report.error_type == 'CaseGenError'

    def test_execute_unknown_session(self, service):
        report = asyncio.run(service.execute('session-missing'))
        assert not report.success
        assert report.error == 'Invalid or expired session ID'

    def test_purge_expired(self, login_snapshot):
        service = CaseGenService({'session': {'ttl_seconds': 0}})
        asyncio.run(service.generate_first(snapshot=login_snapshot))
        assert service.purge_expired() == 1

    def test_close(self):
        generator = _ai()
        extractor = _extractor()
        service = CaseGenService(static_extractor=extractor, ai_generator=generator)
        asyncio.run(service.close())
        generator.close.assert_awaited_once()
        extractor.close.assert_called_once()
