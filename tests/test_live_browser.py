import asyncio

from webqa_casegen import CaseGenService


def test_generate_and_execute_live(test_url):
    async def run():
        service = CaseGenService({'generation': {'batch_size': 10, 'extraction_timeout': 60}})
        try:
            first = await service.generate_first(url=test_url)
            assert first.success, first.error
            while first.has_more_elements:
                first = service.generate_next(first.session_id)
                assert first.success, first.error
            report = await service.execute(first.session_id)
            return first, report
        finally:
            await service.close()

    result, report = asyncio.run(run())
    assert result.total_test_cases >= 5
    assert report.success
    assert report.summary.total == result.total_test_cases
