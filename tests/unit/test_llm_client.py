"""Unit tests for the LLM client and structured output parsing."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from riskgate.adapters.llm_client import (
    STRUCTURED_OUTPUT_INSTRUCTION,
    AnthropicLLMClient,
    parse_structured_output,
)
from riskgate.config import reset_settings


class TestParseStructuredOutput:
    """Test cases for recovering JSON from model output."""

    def test_plain_json(self):
        assert parse_structured_output('{"tests": []}') == {'tests': []}

    def test_fenced_json(self):
        content = 'Here you go:\n```json\n{"canFix": false}\n```\nThanks.'
        assert parse_structured_output(content) == {'canFix': False}

    def test_unlabelled_fence(self):
        content = '```\n{"files": [{"path": "a.ts"}]}\n```'
        assert parse_structured_output(content) == {'files': [{'path': 'a.ts'}]}

    def test_embedded_object_with_trailing_commas(self):
        content = 'Result: {"tests": [{"id": "TC001",},],} done'
        assert parse_structured_output(content) == {'tests': [{'id': 'TC001'}]}

    @pytest.mark.parametrize("content", ['', 'no json here', '[1, 2, 3]', '{broken'])
    def test_unrecoverable(self, content):
        assert parse_structured_output(content) is None


class TestAnthropicLLMClient:
    """Test cases for AnthropicLLMClient."""

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("CLAUDE_API_KEY", raising=False)
        reset_settings()
        try:
            with pytest.raises(ValueError, match="Claude API key not configured"):
                AnthropicLLMClient()
        finally:
            reset_settings()

    @pytest.mark.asyncio
    async def test_infer_joins_text_blocks(self):
        client = AnthropicLLMClient(api_key="test-key", model="test-model", max_tokens=100)
        response = SimpleNamespace(
            content=[
                SimpleNamespace(type='text', text='{"tests": '),
                SimpleNamespace(type='tool_use', id='ignored'),
                SimpleNamespace(type='text', text='[]}'),
            ],
            stop_reason='end_turn',
        )
        client.client.messages.create = AsyncMock(return_value=response)

        result = await client.infer("system", "user", structured_output=True)

        assert result == '{"tests": []}'
        kwargs = client.client.messages.create.await_args.kwargs
        assert kwargs['model'] == 'test-model'
        assert kwargs['max_tokens'] == 100
        assert kwargs['system'] == "system" + STRUCTURED_OUTPUT_INSTRUCTION
        assert kwargs['messages'] == [{'role': 'user', 'content': 'user'}]
