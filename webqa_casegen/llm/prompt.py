import json

from webqa_casegen.data.test_structures import CATEGORY_ORDER, PageSnapshot


class CaseGenPrompt:
    case_generation_system_prompt = """
    ## Role
    You are a senior QA engineer writing functional test cases for web pages and mobile apps.

    ## Context Provided
    - **`page`**: url, title and platform of the target.
    - **`elements`**: the interactive elements extracted from the target (buttons, forms, links, inputs, screens).
    - **`existing_case_ids`**: ids of cases that are already covered by templated generation.

    ## Objective
    - Propose additional test cases that cover user flows spanning several elements (e.g. login, search, checkout).
    - Do not repeat single-element checks; those already exist.
    - Keep every step concrete and executable by a browser automation tool.

    ## Step Phrasing
    Start each `action` with one of these verbs so downstream tools can convert it:
    - `Navigate to <url>`
    - `Click button with text "<text>"` or `Click link with text "<text>"`
    - `Enter "<value>" into input field with ID "<id>"` (or `with name "<name>"`)
    - `Verify <what is checked>`

    ## Output Format
    Return ONLY a JSON array, no prose:
    [
      {
        "title": "<short title>",
        "description": "<what the case verifies>",
        "priority": "High" | "Medium" | "Low",
        "steps": [
          {"action": "<action>", "expected": "<expected result>"}
        ]
      }
    ]
    """

    @staticmethod
    def case_generation_user_prompt(snapshot: PageSnapshot, existing_case_ids=None, max_cases: int = 5) -> str:
        elements = {
            t.plural: [e.model_dump(by_alias=True, exclude_defaults=True) for e in snapshot.elements(t)]
            for t in CATEGORY_ORDER
        }
        payload = {
            "page": {"url": snapshot.url, "title": snapshot.title, "platform": snapshot.platform},
            "elements": {k: v for k, v in elements.items() if v},
            "existing_case_ids": list(existing_case_ids or []),
        }
        return (
            f"Generate at most {max_cases} additional test cases for the target below.\n"
            f"{json.dumps(payload, ensure_ascii=False, separators=(',', ':'))}"
        )
