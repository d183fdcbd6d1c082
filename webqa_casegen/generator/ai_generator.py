import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from webqa_casegen.data.test_structures import (PageSnapshot, Priority,
                                                TestCase, TestStep)
from webqa_casegen.exceptions import CaseGenError, ExternalCollaboratorTimeout
from webqa_casegen.llm.llm_api import LLMAPI
from webqa_casegen.llm.prompt import CaseGenPrompt


def _priority(value: Any) -> Priority:
    text = str(value or "").strip().capitalize()
    try:
        return Priority(text)
    except ValueError:
        return Priority.MEDIUM


def parse_ai_cases(raw: str, start_index: int = 1) -> List[TestCase]:
    """Parse an LLM answer into test cases numbered ``TC_AI_<n>``.

    Steps are renumbered 1..n in the order given; entries without steps are
    dropped.

    Raises:
        CaseGenError: The answer is not a JSON array of case objects.
    """
    try:
        data = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise CaseGenError(f"AI response is not valid JSON: {e}") from e
    if isinstance(data, dict):
        data = data.get("test_cases") or data.get("testCases") or []
    if not isinstance(data, list):
        raise CaseGenError("AI response must be a JSON array of test cases")

    cases: List[TestCase] = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        raw_steps = [s for s in entry.get("steps") or [] if isinstance(s, dict)]
        if not raw_steps:
            logging.debug(f"Dropping AI case without steps: {entry.get('title')}")
            continue
        try:
            steps = [
                TestStep(step=number, action=str(s.get("action") or ""), expected=str(s.get("expected") or ""))
                for number, s in enumerate(raw_steps, start=1)
            ]
            cases.append(TestCase(
                id=f"TC_AI_{start_index + len(cases)}",
                title=str(entry.get("title") or "AI generated test case"),
                description=str(entry.get("description") or ""),
                priority=_priority(entry.get("priority")),
                steps=steps,
            ))
        except ValidationError as e:
            logging.warning(f"Skipping malformed AI case: {e}")
    return cases


class AICaseGenerator:
    """Asks an LLM for flow-level cases on top of the templated ones."""

    def __init__(self, llm_config: Dict[str, Any], timeout: float = 30.0, max_cases: int = 5,
                 llm: Optional[LLMAPI] = None):
        self.llm = llm or LLMAPI(llm_config)
        self.timeout = timeout
        self.max_cases = max_cases

    async def generate(self, snapshot: PageSnapshot, existing: Sequence[TestCase] = ()) -> List[TestCase]:
        system_prompt = CaseGenPrompt.case_generation_system_prompt
        prompt = CaseGenPrompt.case_generation_user_prompt(snapshot, [c.id for c in existing], self.max_cases)
        try:
            raw = await asyncio.wait_for(self.llm.get_llm_response(system_prompt, prompt), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ExternalCollaboratorTimeout("LLM", self.timeout) from e

        cases = parse_ai_cases(raw)[: self.max_cases]
        logging.info(f"AI generated {len(cases)} additional test cases for {snapshot.url}")
        return cases

    async def close(self):
        await self.llm.close()
