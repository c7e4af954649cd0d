# synthmind/probes/narrative.py
"""
Narrative generation — the "SynthMind AI Verdict".

Sends the assembled context plus a fixed instruction payload to an
OpenRouter chat-completions endpoint and returns the model's text.
The verdict is decoration on top of the measured data: any failure here
is answered with fallback text, never surfaced as an audit failure.

Config:
    OPENROUTER_API_KEY   — required for live verdicts
    OPENROUTER_MODEL     — default: openai/gpt-4o-mini
    OPENROUTER_BASE_URL  — default: https://openrouter.ai/api/v1
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from synthmind.probes.base import UnifiedMetrics
from synthmind.probes.context import MAX_CONTEXT_CHARS

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "openai/gpt-4o-mini"
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
REQUEST_TIMEOUT = 60.0

NO_METRICS_MESSAGE = (
    "Load Test Failed: No runtime metrics were collected. The target may be unreachable."
)
EMPTY_RESPONSE_MESSAGE = (
    "**SynthMind AI Verdict**\n\nAnalysis completed. Refer to displayed metrics."
)
SERVICE_ISSUE_MESSAGE = (
    "SynthMind AI could not generate the live audit due to a temporary service issue."
)

SYSTEM_PROMPT = """
You are SynthMind AI, a blunt business-continuity and risk auditor writing for startup founders.
You base every statement on two sources: a simulated load test (k6) and a real-browser audit (Playwright).

Rules:
1. Tone: direct and professional. If the data shows a risk, name it a fail-point.
2. Never use the word "error". If failures are 0%, say there is no breakdown under load for now; otherwise speak of "System Disruption" or "Integrity Breakdown".
3. No technical jargon (p95, throughput, 5xx). Say "User Experience Speed", "System Capacity" and "Service Stability".
4. Focus on business impact: lost revenue, churn, brand damage.
5. State the breakpoint the data implies.
6. You are an auditor, not an engineer: no fixes, no code.
""".strip()

USER_PROMPT_TEMPLATE = """
{context}

Write the live audit strictly in this format:

**SynthMind AI Verdict**

Paragraph 1: Launch Suitability
What the site does, what works, and whether it is truly ready to launch. Use the simulation and the browser audit as evidence.

Paragraph 2: The Breakpoint
Where the product breaks under the simulated traffic, and what that limit means for the business.

Paragraph 3: Future Damages
Risks this test could not uncover: security, viral traffic spikes, the cost of being unprepared.

Confidence Scope:
Runtime telemetry — High
Browser experience — High
Repository signals — Medium
Production inference — Not evaluated
""".strip()


class NarrativeGenerationFailed(RuntimeError):
    """Raised when the text-completion service cannot return an answer."""


def build_messages(context: str) -> List[Dict[str, str]]:
    """Fixed instruction payload around the (already bounded) context."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": USER_PROMPT_TEMPLATE.format(context=context)},
    ]


class NarrativeClient:
    """Thin OpenRouter chat-completions client."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("OPENROUTER_API_KEY", "")
        self.model = model or os.getenv("OPENROUTER_MODEL", DEFAULT_MODEL)
        self.base_url = (base_url or os.getenv("OPENROUTER_BASE_URL", DEFAULT_BASE_URL)).rstrip("/")
        self.timeout = timeout

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def complete(self, messages: List[Dict[str, str]]) -> Any:
        """
        Send a chat completion and return the first choice's content
        (whatever type the service put there).
        """
        if not self.available:
            raise NarrativeGenerationFailed("OPENROUTER_API_KEY is not set")

        try:
            resp = httpx.post(
                f"{self.base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={"model": self.model, "messages": messages},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise NarrativeGenerationFailed(
                f"text completion returned {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, json.JSONDecodeError) as e:
            raise NarrativeGenerationFailed(f"text completion request failed: {e}") from e

        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise NarrativeGenerationFailed("text completion returned an unexpected payload") from e


def generate_verdict(
    metrics: Optional[UnifiedMetrics],
    context: str,
    client: Optional[NarrativeClient],
) -> str:
    """
    Produce the narrative verdict. Never raises.

    No metrics → fixed "no runtime metrics" message without calling the
    service. Empty or non-string reply → neutral fallback. Service failure
    → temporary-issue fallback.
    """
    if metrics is None:
        return NO_METRICS_MESSAGE

    if client is None:
        return SERVICE_ISSUE_MESSAGE

    safe_context = context if isinstance(context, str) and context.strip() else ""
    if not safe_context:
        safe_context = "Runtime Metrics:\n" + json.dumps(metrics.to_dict(), indent=2)

    try:
        reply = client.complete(build_messages(safe_context[:MAX_CONTEXT_CHARS]))
    except NarrativeGenerationFailed as e:
        logger.warning(f"Narrative generation failed: {e}")
        return SERVICE_ISSUE_MESSAGE
    except Exception:
        logger.exception("Narrative generation crashed")
        return SERVICE_ISSUE_MESSAGE

    if isinstance(reply, str) and reply.strip():
        return reply.strip()
    return EMPTY_RESPONSE_MESSAGE
