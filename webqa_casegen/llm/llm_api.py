import logging
import re

import httpx
from openai import AsyncOpenAI

# ```json ... ``` or ``` ... ``` wrapped around the whole answer
CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.DOTALL)


class LLMAPI:
    """Chat-completion client used for AI test case generation.

    ``llm_config`` keys: ``model``, ``api_key``, ``base_url``, ``temperature``,
    optional ``top_p`` and ``timeout`` (seconds, for the HTTP client).
    """

    def __init__(self, llm_config) -> None:
        self.llm_config = llm_config or {}
        self.model = self.llm_config.get("model")
        self.temperature = self.llm_config.get("temperature", 0.1)
        self.top_p = self.llm_config.get("top_p")
        self.client = None
        self._http_client = None

    async def initialize(self):
        api_key = self.llm_config.get("api_key")
        if not api_key:
            raise ValueError("API key is empty. OpenAI client not initialized.")
        base_url = self.llm_config.get("base_url") or None
        self._http_client = httpx.AsyncClient(timeout=self.llm_config.get("timeout", 60.0))
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, http_client=self._http_client)
        logging.info(f"LLM client ready, model: {self.model}, base URL: {base_url or 'default'}")
        return self

    async def get_llm_response(self, system_prompt, prompt):
        """Send one system + user exchange and return the answer without code fences."""
        if self.client is None:
            await self.initialize()

        request = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
        }
        if self.top_p is not None:
            request["top_p"] = self.top_p

        try:
            completion = await self.client.chat.completions.create(**request)
        except Exception as e:
            logging.error(f"Chat completion failed for model {self.model}: {e}")
            raise
        content = completion.choices[0].message.content
        logging.debug(f"LLM answered with {len(content or '')} characters")
        return self._clean_response(content)

    def _clean_response(self, response):
        if not isinstance(response, str):
            return response
        response = response.strip()
        match = CODE_FENCE.match(response)
        return match.group(1) if match else response

    async def close(self):
        if self.client is not None:
            await self.client.close()
            self.client = None
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
