"""Tests for the LLM analysis provider, its SDK clients and factory."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

import pytest

from conftest import make_record
from rxreminders.adapters.analysis.factory import get_analysis_provider
from rxreminders.adapters.analysis.llm_clients import (
    AnthropicChatClient,
    BaseLLMClient,
    LLMCompletion,
    OpenAIChatClient,
)
from rxreminders.adapters.analysis.llm_provider import LLMAnalysisProvider
from rxreminders.adapters.analysis.prompts import SYSTEM_PROMPT, build_analysis_prompt
from rxreminders.infrastructure.config_manager import GROQ_BASE_URL, AnalysisConfig

PLAN = json.dumps({"reminders": [
    {"medication_name": "Amoxicillin", "dosage": "500mg", "frequency": "twice daily", "time": "07:00"},
]})


def scripted_client(*replies) -> Mock:
    """LLM client mock returning (or raising) one reply per call."""
    client = Mock(spec=BaseLLMClient)
    client.complete = AsyncMock(side_effect=[
        reply if isinstance(reply, Exception) else LLMCompletion(content=reply, model="m")
        for reply in replies
    ])
    return client


class TestBuildAnalysisPrompt:
    """Test suite for build_analysis_prompt()."""

    def test_includes_whole_record(self):
        record = make_record(
            "rec-1",
            ("Amoxicillin", "twice daily"),
            hospital="City Hospital",
            discharge_diagnosis="Acute sinusitis",
            physician_notes="Drink plenty of water",
        )

        prompt = build_analysis_prompt(record)

        assert "City Hospital" in prompt
        assert "Acute sinusitis" in prompt
        assert "Drink plenty of water" in prompt
        assert "1. Amoxicillin" in prompt
        assert "Frequency: twice daily" in prompt
        assert '"health_reminders"' in prompt

    def test_missing_fields(self):
        prompt = build_analysis_prompt(make_record("rec-1"))

        assert "No prescription" in prompt
        assert "Hospital: Not provided" in prompt


class TestLLMAnalysisProvider:
    """Test suite for LLMAnalysisProvider."""

    def test_requires_models(self):
        with pytest.raises(ValueError):
            LLMAnalysisProvider(scripted_client(), [])

    @pytest.mark.asyncio
    async def test_success(self):
        client = scripted_client(PLAN)
        provider = LLMAnalysisProvider(client, ["model-a"])
        record = make_record("rec-1", ("Amoxicillin", "twice daily"))

        response = await provider.analyze(record)

        assert response.success
        assert [s.time for s in response.reminders] == ["07:00"]
        client.complete.assert_awaited_once_with(SYSTEM_PROMPT, build_analysis_prompt(record), "model-a")

    @pytest.mark.asyncio
    async def test_falls_through_models_in_order(self):
        """Test that an SDK error and an unusable reply each move to the next model."""
        client = scripted_client(RuntimeError("rate limited"), "no json here", PLAN)
        provider = LLMAnalysisProvider(client, ["model-a", "model-b", "model-c"])

        response = await provider.analyze(make_record("rec-1", ("Amoxicillin", "twice daily")))

        assert response.success
        assert [call.args[2] for call in client.complete.await_args_list] == ["model-a", "model-b", "model-c"]

    @pytest.mark.asyncio
    async def test_all_models_fail(self):
        client = scripted_client(RuntimeError("rate limited"), RuntimeError("overloaded"))
        provider = LLMAnalysisProvider(client, ["model-a", "model-b"])

        response = await provider.analyze(make_record("rec-1", ("Amoxicillin", "twice daily")))

        assert not response.success
        assert response.reminders == []
        assert "model-b" in response.error


class TestOpenAIChatClient:
    """Test suite for OpenAIChatClient."""

    @pytest.mark.asyncio
    async def test_complete(self):
        with patch("openai.AsyncOpenAI") as openai_cls:
            sdk = openai_cls.return_value
            sdk.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
                choices=[SimpleNamespace(message=SimpleNamespace(content=PLAN))]
            ))

            client = OpenAIChatClient(api_key="sk-test", base_url=GROQ_BASE_URL, max_tokens=100)
            completion = await client.complete("system", "user", "llama-3.3-70b-versatile")

        openai_cls.assert_called_once_with(api_key="sk-test", base_url=GROQ_BASE_URL, timeout=None)
        kwargs = sdk.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "llama-3.3-70b-versatile"
        assert kwargs["max_tokens"] == 100
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}
        assert completion.content == PLAN


class TestAnthropicChatClient:
    """Test suite for AnthropicChatClient."""

    @pytest.mark.asyncio
    async def test_complete_joins_text_blocks(self):
        with patch("anthropic.AsyncAnthropic") as anthropic_cls:
            sdk = anthropic_cls.return_value
            sdk.messages.create = AsyncMock(return_value=SimpleNamespace(content=[
                SimpleNamespace(type="text", text='{"reminders": '),
                SimpleNamespace(type="tool_use"),
                SimpleNamespace(type="text", text="[]}"),
            ]))

            client = AnthropicChatClient(api_key="sk-ant-test")
            completion = await client.complete("system", "user", "claude-sonnet-4-20250514")

        kwargs = sdk.messages.create.await_args.kwargs
        assert kwargs["system"] == "system"
        assert kwargs["messages"] == [{"role": "user", "content": "user"}]
        assert completion.content == '{"reminders": []}'


class TestGetAnalysisProvider:
    """Test suite for the provider factory."""

    def test_unconfigured_returns_none(self):
        assert get_analysis_provider(AnalysisConfig(provider="openai")) is None

    def test_groq_uses_openai_client_with_groq_endpoint(self):
        config = AnalysisConfig(provider="groq", api_key="gsk-test")

        with patch("openai.AsyncOpenAI") as openai_cls:
            provider = get_analysis_provider(config)

        assert isinstance(provider.client, OpenAIChatClient)
        assert provider.models == ["llama-3.3-70b-versatile", "llama-3.1-8b-instant"]
        assert openai_cls.call_args.kwargs["base_url"] == GROQ_BASE_URL

    def test_anthropic(self):
        config = AnalysisConfig(provider="anthropic", api_key="sk-ant-test", models="claude-a,claude-b")

        with patch("anthropic.AsyncAnthropic"):
            provider = get_analysis_provider(config)

        assert isinstance(provider.client, AnthropicChatClient)
        assert provider.models == ["claude-a", "claude-b"]
        assert provider.name == "anthropic"
