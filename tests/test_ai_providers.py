"""Tests for the AI client layer and its provider implementations."""

import json
from unittest.mock import MagicMock, patch

import pytest

from wine_catalog.config import AIConfig
from wine_catalog.core.enums import AIProvider
from wine_catalog.core.schema import WineRecord
from wine_catalog.services.ai.client import (
    create_client_from_config,
    get_ai_client,
    parse_json_response,
    strip_code_fences,
)
from wine_catalog.services.ai.prompts import build_extraction_prompt, build_profile_prompt
from wine_catalog.services.ai.providers.anthropic import AnthropicClient
from wine_catalog.services.ai.providers.openai import OpenAIClient


class TestResponseParsing:
    """Tests for JSON response cleanup."""

    def test_strip_json_fence(self) -> None:
        assert strip_code_fences('```json\n{"name": "Opus One"}\n```') == '{"name": "Opus One"}'

    def test_strip_plain_fence(self) -> None:
        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_no_fence(self) -> None:
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'

    def test_parse_json_response(self) -> None:
        assert parse_json_response('```json\n{"vintage": "2018"}\n```') == {"vintage": "2018"}

    def test_parse_invalid_json(self) -> None:
        with pytest.raises(json.JSONDecodeError):
            parse_json_response("Sorry, I cannot help with that.")


class TestOpenAIClient:
    """Tests for the OpenAI provider with a mocked SDK."""

    def test_complete_json_uses_json_mode(self) -> None:
        mock_sdk = MagicMock()
        mock_sdk.chat.completions.create.return_value = MagicMock(
            choices=[MagicMock(message=MagicMock(content='{"name": "Opus One"}'))]
        )

        with patch("openai.OpenAI", return_value=mock_sdk) as factory:
            client = OpenAIClient(api_key="sk-test", timeout=5.0)
            raw = client.complete_json("system", "user", max_tokens=300)

        factory.assert_called_once_with(api_key="sk-test", timeout=5.0)
        assert raw == '{"name": "Opus One"}'
        kwargs = mock_sdk.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["max_tokens"] == 300
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}

    def test_empty_content(self) -> None:
        mock_sdk = MagicMock()
        mock_sdk.chat.completions.create.return_value = MagicMock(
            choices=[MagicMock(message=MagicMock(content=None))]
        )

        with patch("openai.OpenAI", return_value=mock_sdk):
            client = OpenAIClient(api_key="sk-test")
            assert client.complete_json("system", "user") == ""


class TestAnthropicClient:
    """Tests for the Anthropic provider with a mocked SDK."""

    def test_complete_json(self) -> None:
        mock_sdk = MagicMock()
        mock_sdk.messages.create.return_value = MagicMock(
            content=[MagicMock(text='{"vintage": "2015"}')]
        )

        with patch("anthropic.Anthropic", return_value=mock_sdk):
            client = AnthropicClient(api_key="sk-ant-test", model="claude-test")
            raw = client.complete_json("system", "user")

        assert raw == '{"vintage": "2015"}'
        kwargs = mock_sdk.messages.create.call_args.kwargs
        assert kwargs["system"] == "system"
        assert kwargs["model"] == "claude-test"
        assert kwargs["messages"] == [{"role": "user", "content": "user"}]


class TestClientFactory:
    """Tests for provider selection."""

    def test_get_openai_client(self) -> None:
        with patch("openai.OpenAI"):
            client = get_ai_client("openai", api_key="sk-test")
        assert isinstance(client, OpenAIClient)
        assert client.provider == AIProvider.OPENAI

    def test_get_anthropic_client_case_insensitive(self) -> None:
        with patch("anthropic.Anthropic"):
            client = get_ai_client("Anthropic", api_key="sk-ant-test")
        assert isinstance(client, AnthropicClient)

    def test_unsupported_provider(self) -> None:
        with pytest.raises(ValueError):
            get_ai_client("mistral", api_key="x")

    def test_create_from_config_without_key(self) -> None:
        assert create_client_from_config(AIConfig(api_key=None)) is None

    def test_create_from_config(self) -> None:
        config = AIConfig(provider=AIProvider.OPENAI, model="gpt-4o-mini", api_key="sk-test")
        with patch("openai.OpenAI"):
            client = create_client_from_config(config, timeout=3.0)
        assert client.model == "gpt-4o-mini"


class TestPrompts:
    """Tests for prompt construction."""

    def test_extraction_prompt_contains_line(self) -> None:
        prompt = build_extraction_prompt("Opus One 2018, Napa Valley - $315")
        assert "Opus One 2018, Napa Valley - $315" in prompt

    def test_profile_prompt_includes_known_fields(self) -> None:
        record = WineRecord(
            dedup_key="opus one|2018|", name="Opus One", vintage="2018", region="Napa Valley"
        )
        prompt = build_profile_prompt(record)
        assert "Wine: Opus One" in prompt
        assert "Vintage: 2018" in prompt
        assert "Region: Napa Valley" in prompt
        assert "Producer:" not in prompt
