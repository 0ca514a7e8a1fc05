"""
Regulation report narrative using Ollama (local) or Claude API.

Given the computed regulation scores and the inputs behind them, the
narrator asks a language model for a short forward-looking headline and
a why / what to do / how it helps explanation per component. It is an
optional collaborator: every failure surfaces as ``NarrativeError`` and
the regulation service keeps its deterministic fallback headline.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import anthropic
import requests

from .analysis.regulation import NARRATIVE_SECTIONS, NarrativeSection
from .config import config
from .errors import NarrativeError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a sports physio assistant that writes athlete regulation reports.
Your tone is always forward-looking, positive, and empowering. Never dwell on negatives.
Frame every insight as an opportunity for better performance tomorrow.
Keep all text concise and actionable. No clinical jargon."""


@dataclass
class Narrative:
    headline: str
    sections: Dict[str, NarrativeSection] = field(default_factory=dict)


def build_prompt(context: Dict) -> str:
    """Format the regulation context into the request sent to the model."""
    score = context.get("regulation_score")
    color = context.get("regulation_color")
    sections = ", ".join(f'"{name}"' for name in NARRATIVE_SECTIONS)

    return f"""Based on this athlete data: {json.dumps(context, default=str)}

Generate a JSON response with:
1. "headline": A 2-3 sentence forward-looking summary (positive framing)
2. "sections": An object with {len(NARRATIVE_SECTIONS)} keys: {sections}
   Each section has: "why" (1 sentence), "what_to_do" (1-2 sentences), "how_it_helps" (1 sentence)

Regulation score: {score}/100 ({color})
Be specific, practical, and encouraging. Respond with JSON only."""


def parse_narrative(text: str) -> Narrative:
    """Parse the model's JSON reply, tolerating text around the object."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise NarrativeError("Narrative response contained no JSON object")

    try:
        payload = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise NarrativeError(f"Narrative response is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise NarrativeError("Narrative response must be a JSON object")

    sections = {}
    for name, body in (payload.get("sections") or {}).items():
        if name not in NARRATIVE_SECTIONS or not isinstance(body, dict):
            continue
        sections[name] = NarrativeSection(
            why=str(body.get("why", "")),
            what_to_do=str(body.get("what_to_do", "")),
            how_it_helps=str(body.get("how_it_helps", "")),
        )

    return Narrative(headline=str(payload.get("headline") or ""), sections=sections)


class RegulationNarrator:
    """Narrative generator backed by Ollama or the Claude API."""

    def __init__(
        self,
        use_ollama: bool = True,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        """
        Initialize the narrator.

        Args:
            use_ollama: If True, use local Ollama. If False, use Claude API.
            model: Model name; defaults to OLLAMA_MODEL or CLAUDE_MODEL
            api_key: Anthropic API key (only needed if use_ollama=False)
            base_url: Ollama server URL
            timeout: Request timeout in seconds
        """
        self.use_ollama = use_ollama
        self.timeout = timeout or config.NARRATIVE_TIMEOUT
        self.base_url = (base_url or config.OLLAMA_URL).rstrip("/")

        if use_ollama:
            self.model = model or config.OLLAMA_MODEL
            self.client = None
        else:
            self.api_key = api_key or config.ANTHROPIC_API_KEY
            if not self.api_key:
                raise NarrativeError(
                    "Anthropic API key not found. Set the ANTHROPIC_API_KEY environment variable."
                )
            self.model = model or config.CLAUDE_MODEL
            self.client = anthropic.Anthropic(api_key=self.api_key)

    def generate(self, context: Dict) -> Narrative:
        """Generate a headline and per-section explanations for a report."""
        prompt = build_prompt(context)
        if self.use_ollama:
            text = self._get_ollama_response(prompt)
        else:
            text = self._get_claude_response(prompt)
        return parse_narrative(text)

    def _get_ollama_response(self, prompt: str) -> str:
        try:
            response = requests.post(
                f"{self.base_url}/api/generate",
                json={
                    "model": self.model,
                    "system": SYSTEM_PROMPT,
                    "prompt": prompt,
                    "stream": False,
                    "format": "json",
                    "options": {"temperature": 0.7, "num_predict": 800},
                },
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise NarrativeError("Ollama request timed out") from e
        except requests.exceptions.RequestException as e:
            raise NarrativeError(f"Cannot reach Ollama at {self.base_url}: {e}") from e

        if response.status_code != 200:
            raise NarrativeError(f"Ollama returned status {response.status_code}")
        return response.json().get("response", "")

    def _get_claude_response(self, prompt: str) -> str:
        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=1024,
                temperature=0.7,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            raise NarrativeError(f"Claude request failed: {e}") from e
        return message.content[0].text


def check_ollama_available(base_url: Optional[str] = None) -> bool:
    """Check if Ollama is available and running."""
    url = (base_url or config.OLLAMA_URL).rstrip("/")
    try:
        response = requests.get(f"{url}/api/tags", timeout=2)
        return response.status_code == 200
    except requests.exceptions.RequestException:
        return False


def get_narrator(backend: Optional[str] = None) -> Optional[RegulationNarrator]:
    """Build the narrator configured by NARRATIVE_BACKEND, or None when disabled."""
    backend = (backend or config.NARRATIVE_BACKEND).lower()
    if backend == "none":
        return None
    if backend == "ollama":
        if not check_ollama_available():
            logger.warning("Ollama is not running; regulation reports will use fallback headlines")
            return None
        return RegulationNarrator(use_ollama=True)
    if backend == "claude":
        return RegulationNarrator(use_ollama=False)
    raise ValueError(f"Unknown narrative backend: {backend}")
