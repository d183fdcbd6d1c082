from .llm_api import LLMAPI
from .prompt import CaseGenPrompt

__all__ = ["LLMAPI", "CaseGenPrompt"]
