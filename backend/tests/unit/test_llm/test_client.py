"""Unit tests for the LLM client helpers."""

import pytest

from castaway.llm.client import get_model_string, parse_json_response


class TestParseJsonResponse:
    def test_plain_object(self) -> None:
        assert parse_json_response('{"narration": "Rain."}') == {"narration": "Rain."}

    def test_markdown_code_block(self) -> None:
        response = '```json\n{"possible": true, "trivial": false}\n```'
        assert parse_json_response(response) == {"possible": True, "trivial": False}

    def test_object_inside_chatter(self) -> None:
        response = 'Here is the outcome:\n{"hpChange": -2}\nHope that helps!'
        assert parse_json_response(response) == {"hpChange": -2}

    @pytest.mark.parametrize("response", [None, "", "   "])
    def test_empty_response(self, response) -> None:
        with pytest.raises(ValueError, match="empty"):
            parse_json_response(response)

    def test_no_json_at_all(self) -> None:
        with pytest.raises(ValueError, match="No JSON object"):
            parse_json_response("The survivors sleep.")

    def test_malformed_json(self) -> None:
        with pytest.raises(ValueError, match="Malformed JSON"):
            parse_json_response('{"narration": }')

    def test_array_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="Expected a JSON object"):
            parse_json_response("[1, 2, 3]")


class TestModelString:
    @pytest.mark.parametrize("provider", ["gemini", "anthropic", "ollama"])
    def test_prefixed_providers(self, monkeypatch, provider) -> None:
        monkeypatch.setenv("LLM_PROVIDER", provider)
        monkeypatch.setenv("LLM_MODEL", "some-model")
        assert get_model_string() == f"{provider}/some-model"

    def test_openai_is_unprefixed(self, monkeypatch) -> None:
        monkeypatch.setenv("LLM_PROVIDER", "openai")
        monkeypatch.setenv("LLM_MODEL", "gpt-4o-mini")
        assert get_model_string() == "gpt-4o-mini"

    def test_defaults(self, monkeypatch) -> None:
        monkeypatch.delenv("LLM_PROVIDER", raising=False)
        monkeypatch.delenv("LLM_MODEL", raising=False)
        assert get_model_string() == "gpt-4o"
