"""Tests for the regulation narrative collaborator."""

import json

import pytest
import requests

from adaptive_progression import narrative
from adaptive_progression.config import config
from adaptive_progression.errors import NarrativeError
from adaptive_progression.narrative import RegulationNarrator, build_prompt, get_narrator, parse_narrative

CONTEXT = {"regulation_score": 64, "regulation_color": "yellow", "scores": {"sleep": 75}}

REPLY = {
    "headline": "Solid base today. Small tweaks tonight set up tomorrow.",
    "sections": {
        "sleep": {"why": "Good rest", "what_to_do": "Same bedtime", "how_it_helps": "Faster reactions"},
        "fuel": {"why": "Under target", "what_to_do": "Add a snack", "how_it_helps": "More energy"},
        "horoscope": {"why": "n/a"},
    },
}


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}

    def json(self):
        return self._payload


class FakeMessages:
    def __init__(self, text):
        self.text = text
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        block = type("Block", (), {"text": self.text})()
        return type("Message", (), {"content": [block]})()


class TestParseNarrative:
    def test_parses_known_sections(self):
        parsed = parse_narrative(json.dumps(REPLY))

        assert parsed.headline == REPLY["headline"]
        assert set(parsed.sections) == {"sleep", "fuel"}
        assert parsed.sections["fuel"].what_to_do == "Add a snack"

    def test_tolerates_surrounding_text(self):
        parsed = parse_narrative("Here you go:\n" + json.dumps(REPLY) + "\nGood luck!")
        assert parsed.headline == REPLY["headline"]

    def test_rejects_non_json(self):
        with pytest.raises(NarrativeError):
            parse_narrative("I cannot help with that.")
        with pytest.raises(NarrativeError):
            parse_narrative("{not json}")

    def test_prompt_lists_all_sections(self):
        prompt = build_prompt(CONTEXT)
        for section in ("sleep", "stress", "movement", "training_load", "fuel", "game_readiness"):
            assert f'"{section}"' in prompt
        assert "64/100 (yellow)" in prompt


class TestRegulationNarrator:
    def test_ollama_backend(self, monkeypatch):
        calls = []

        def fake_post(url, json=None, timeout=None):
            calls.append((url, json))
            return FakeResponse(payload={"response": narrative.json.dumps(REPLY)})

        monkeypatch.setattr(narrative.requests, "post", fake_post)
        narrator = RegulationNarrator(use_ollama=True, model="llama3.1:8b", base_url="http://ollama:11434/")

        result = narrator.generate(CONTEXT)

        assert result.headline == REPLY["headline"]
        assert calls[0][0] == "http://ollama:11434/api/generate"
        assert calls[0][1]["model"] == "llama3.1:8b"
        assert calls[0][1]["format"] == "json"

    def test_ollama_error_status(self, monkeypatch):
        monkeypatch.setattr(narrative.requests, "post", lambda *a, **k: FakeResponse(status_code=500))
        narrator = RegulationNarrator(use_ollama=True)

        with pytest.raises(NarrativeError):
            narrator.generate(CONTEXT)

    def test_ollama_timeout(self, monkeypatch):
        def fake_post(*args, **kwargs):
            raise requests.exceptions.Timeout()

        monkeypatch.setattr(narrative.requests, "post", fake_post)

        with pytest.raises(NarrativeError):
            RegulationNarrator(use_ollama=True).generate(CONTEXT)

    def test_claude_backend(self):
        narrator = RegulationNarrator(use_ollama=False, api_key="test-key", model="claude-test")
        messages = FakeMessages(json.dumps(REPLY))
        narrator.client = type("Client", (), {"messages": messages})()

        result = narrator.generate(CONTEXT)

        assert result.sections["sleep"].why == "Good rest"
        assert messages.calls[0]["model"] == "claude-test"

    def test_claude_requires_api_key(self, monkeypatch):
        monkeypatch.setattr(config, "ANTHROPIC_API_KEY", None)
        with pytest.raises(NarrativeError):
            RegulationNarrator(use_ollama=False)


class TestGetNarrator:
    def test_disabled(self):
        assert get_narrator("none") is None

    def test_ollama_not_running(self, monkeypatch):
        monkeypatch.setattr(narrative, "check_ollama_available", lambda base_url=None: False)
        assert get_narrator("ollama") is None

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            get_narrator("gpt")
