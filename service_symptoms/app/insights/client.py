"""
Insight provider client for the Symptoms Service.

Talks to an OpenAI-compatible chat completions endpoint and returns the
generated text. The provider is treated as an opaque text producer.
"""

from typing import Any, Dict, List, Optional, Sequence

import httpx

from shared.logging import get_logger
from shared.errors import InsightError
from ..models import Symptom


NO_SYMPTOMS_INSIGHT = "No insights yet. Log some symptoms!"
RECENT_SYMPTOM_LIMIT = 10


def build_insight_prompt(symptoms: Sequence[Symptom], limit: int = RECENT_SYMPTOM_LIMIT) -> str:
    """Summarise the most recent symptoms into a prompt for the provider."""
    recent = sorted(symptoms, key=lambda s: (s.logged_at, s.id), reverse=True)[:limit]
    lines = []
    for symptom in recent:
        line = f"- {symptom.logged_at.date().isoformat()}: {symptom.symptom_type} (severity {symptom.severity}/10)"
        if symptom.notes:
            line += f", notes: {symptom.notes}"
        lines.append(line)

    return (
        "Here are my most recent symptom log entries:\n"
        + "\n".join(lines)
        + "\nGive a short, friendly observation about patterns in these symptoms. "
        "Do not give a diagnosis."
    )


class InsightClient:
    """Client for the insight text provider."""

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str],
        model: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.transport = transport
        self.logger = get_logger("symptoms.insights.client")

    async def generate(self, prompt: str) -> str:
        """Return provider text for a prompt, or raise ``InsightError``."""
        if not self.api_key:
            raise InsightError("Insight provider is not configured")

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": "You are a careful health journaling assistant."},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": 150,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.api_url}/chat/completions",
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"}
                )
        except httpx.HTTPError as e:
            self.logger.error("Insight provider HTTP error", error=str(e))
            raise InsightError("Insight provider unavailable", details={"http_error": str(e)}) from e

        if response.status_code != 200:
            self.logger.error("Insight provider error", status_code=response.status_code)
            raise InsightError(
                f"Insight provider error: {response.status_code}",
                details={"status_code": response.status_code}
            )

        try:
            body = response.json()
        except ValueError as e:
            raise InsightError("Malformed insight provider response") from e

        return self._extract_text(body)

    def _extract_text(self, body: Dict[str, Any]) -> str:
        try:
            choices: List[Dict[str, Any]] = body["choices"]
            text = choices[0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise InsightError("Malformed insight provider response") from e

        if not isinstance(text, str) or not text.strip():
            raise InsightError("Insight provider returned no text")
        return text.strip()
