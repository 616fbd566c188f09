import asyncio
import json
import re
from typing import Any, Protocol

import anthropic
import structlog
from anthropic import AsyncAnthropic

from app.core.errors import GenerationError

logger = structlog.get_logger()

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class LanguageModel(Protocol):
    async def complete(
        self,
        prompt: str,
        *,
        max_tokens: int = 300,
        temperature: float = 0.7,
        timeout: float | None = None,
    ) -> str: ...


class AnthropicLanguageModel:
    """Claude-backed text generation with a hard per-call time bound."""

    def __init__(self, api_key: str, model: str, timeout: float = 10.0):
        self.model = model
        self.timeout = timeout
        self._client = AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)

    async def complete(
        self,
        prompt: str,
        *,
        max_tokens: int = 300,
        temperature: float = 0.7,
        timeout: float | None = None,
    ) -> str:
        bound = timeout or self.timeout
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self.model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    messages=[{"role": "user", "content": prompt}],
                    timeout=bound,
                ),
                timeout=bound,
            )
        except asyncio.TimeoutError as e:
            raise GenerationError("Language model timed out", {"timeout": bound}) from e
        except anthropic.APIError as e:
            raise GenerationError(f"Language model request failed: {e}") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        ).strip()
        if not text:
            raise GenerationError("Language model returned no text")
        return text

    async def aclose(self) -> None:
        await self._client.close()


def extract_json(text: str) -> Any:
    """Parse a JSON document out of a model reply, tolerating markdown fences and chatter."""
    content = text.strip()
    if "```json" in content:
        content = content.split("```json")[1].split("```")[0]
    elif "```" in content:
        content = content.split("```")[1].split("```")[0]

    try:
        return json.loads(content.strip())
    except json.JSONDecodeError:
        pass

    match = _JSON_OBJECT.search(text)
    if match:
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            pass

    logger.warning("llm_json_parse_failed", preview=text[:200])
    raise GenerationError("Model reply did not contain valid JSON")
