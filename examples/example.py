import asyncio
import os
import sys
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from dotenv import load_dotenv
load_dotenv()

from webqa_casegen import CaseGenService


async def example():
    config = {
        "generation": {
            "batch_size": 5,
            "use_ai": bool(os.getenv("OPENAI_API_KEY")),
            "static_fetch": True,
        },
        "llm_config": {
            "api": "openai",
            "model": "gpt-4o-mini",
            "api_key": os.getenv("OPENAI_API_KEY"),
            "base_url": os.getenv("OPENAI_BASE_URL"),
        },
    }
    service = CaseGenService(config)
    try:
        # ---------- Website: overview first, then element batches ----------
        result = await service.generate_first(url="https://example.com")
        print(f"session: {result.session_id}, cases: {result.total_test_cases}, note: {result.note}")
        while result.success and result.has_more_elements:
            result = service.generate_next(result.session_id)
            print(f"+{len(result.test_cases)} cases, next: {result.next_element_type}")

        exported = service.export(result.session_id, "maestro")
        print(exported.document.body)

        # ---------- Mobile app description ----------
        app = {
            "appId": "com.example.shop",
            "platform": "android",
            "name": "Shop",
            "screens": [{"name": "Home"}, {"name": "Cart"}],
            "buttons": [{"text": "Checkout", "screen": "Cart"}],
            "inputs": [{"type": "email", "name": "email", "screen": "Home"}],
        }
        result = await service.generate_all(app_description=app)
        print(service.export(result.session_id, "txt").document.body)
    finally:
        await service.close()


if __name__ == "__main__":
    asyncio.run(example())
