"""Language-model client used for test generation and auto-fix."""

import json
import os
import re
from typing import Any, Dict, Optional, Protocol

import anthropic
from tenacity import retry, stop_after_attempt, wait_exponential

from ..config import get_settings
from ..logging import get_logger

logger = get_logger(__name__)

STRUCTURED_OUTPUT_INSTRUCTION = (
    "\n\nRespond with a single valid JSON object only. Do not wrap it in prose."
)


class LLMClient(Protocol):
    """Anything that can turn a prompt pair into text."""

    async def infer(
        self,
        system_prompt: str,
        user_prompt: str,
        structured_output: bool = False,
    ) -> str:
        ...


class AnthropicLLMClient:
    """Claude-backed implementation of :class:`LLMClient`."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ):
        """Initialize the Claude client."""
        settings = get_settings()
        api_key = api_key or os.environ.get('CLAUDE_API_KEY') or settings.claude_api_key
        if not api_key:
            raise ValueError("Claude API key not configured")

        self.model = model or settings.llm_model
        self.max_tokens = max_tokens or settings.llm_max_tokens
        self.client = anthropic.AsyncAnthropic(api_key=api_key)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        reraise=True
    )
    async def infer(
        self,
        system_prompt: str,
        user_prompt: str,
        structured_output: bool = False,
    ) -> str:
        """Send one prompt and return the concatenated text response."""
        system = system_prompt
        if structured_output:
            system += STRUCTURED_OUTPUT_INSTRUCTION

        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system,
            messages=[{"role": "user", "content": user_prompt}],
        )

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

        logger.info(
            "LLM call completed",
            model=self.model,
            structured_output=structured_output,
            stop_reason=response.stop_reason,
            response_chars=len(text),
        )
        return text


def parse_structured_output(content: str) -> Optional[Dict[str, Any]]:
    """Recover a JSON object from model output, or None if there is none."""
    if not content:
        return None

    # Strategy 1: Direct JSON parse
    parsed = _loads_object(content)
    if parsed is not None:
        return parsed

    # Strategy 2: Extract JSON from markdown code blocks
    json_patterns = [
        r'```json\s*([\s\S]*?)```',
        r'```\s*([\s\S]*?)```',
    ]

    for pattern in json_patterns:
        for match in re.findall(pattern, content, re.IGNORECASE | re.MULTILINE):
            parsed = _loads_object(match.strip())
            if parsed is not None:
                return parsed

    # Strategy 3: Outermost braces, with trailing commas removed
    start = content.find('{')
    end = content.rfind('}')
    if start != -1 and end > start:
        parsed = _loads_object(_fix_common_json_issues(content[start:end + 1]))
        if parsed is not None:
            return parsed

    return None


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def _fix_common_json_issues(json_str: str) -> str:
    """Fix common JSON formatting issues."""
    return re.sub(r',(\s*[}\]])', r'\1', json_str)
