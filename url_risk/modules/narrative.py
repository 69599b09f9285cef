from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Mapping, Optional

from google import genai
from google.genai import types

from ..models.results import ProviderResult, SeverityTier
from ..providers.safe_browsing import NAME as SAFE_BROWSING
from ..providers.ssl_labs import NAME as SSL_LABS
from ..providers.virustotal import NAME as VIRUSTOTAL
from ..providers.whois import NAME as WHOIS

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are a cyber security expert explaining a website's safety to a non-technical friend. "
    "Analyze the provided technical JSON data and any screenshot. The JSON includes a severity_hint "
    "(low/medium/high) and a risk_score_hint. Your wording MUST align with severity_hint and must not "
    "contradict it. Do NOT use markdown, headers, labels, bullet points, or structured prefixes. "
    "Do NOT start with 'Risk Level:', 'Why:', or 'Summary:'. Do NOT mention any numerical score. "
    "Start directly with the explanation. Keep it concise, direct, and human-readable (max 3 sentences)."
)

UNAVAILABLE_TEXT = "AI analysis unavailable (missing GEMINI_API_KEY)."
EMPTY_TEXT = "AI analysis did not return a summary."
FAILED_TEXT = "AI analysis failed."

CONTEXT_PROVIDERS = (VIRUSTOTAL, SAFE_BROWSING, WHOIS, SSL_LABS)


def build_context(
    url: str,
    domain: Optional[str],
    raw_results: Mapping[str, ProviderResult],
    tier: SeverityTier,
    risk_score: int,
) -> dict:
    """Prompt payload: provider details plus the severity hints the wording must follow."""
    context: dict[str, Any] = {"url": url, "domain": domain}
    for name in CONTEXT_PROVIDERS:
        if name in raw_results:
            context[name] = raw_results[name].to_wire()
    context["severity_hint"] = tier.value
    context["risk_score_hint"] = risk_score
    return context


class NarrativeGenerator:
    """Short plain-language explanation from Gemini.

    The output is untrusted free text; callers must run it through
    ``consistency.enforce`` before storing or returning it.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-1.5-flash-latest",
        timeout: float = 20.0,
        client: Any = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def _generate(self, contents: Any, config: Optional[types.GenerateContentConfig]) -> str:
        resp = await asyncio.wait_for(
            self.client.aio.models.generate_content(model=self.model, contents=contents, config=config),
            self.timeout,
        )
        return (getattr(resp, "text", None) or "").strip()

    async def generate(self, context: dict, screenshot: Optional[bytes] = None) -> str:
        if not self.api_key:
            return UNAVAILABLE_TEXT

        data_text = f"Technical data:\n{json.dumps(context, default=str)}"
        parts = [types.Part.from_text(text=data_text)]
        if screenshot:
            parts.append(types.Part.from_bytes(data=screenshot, mime_type="image/png"))
        config = types.GenerateContentConfig(system_instruction=SYSTEM_INSTRUCTION, temperature=0.2)

        try:
            text = await self._generate([types.Content(role="user", parts=parts)], config)
            return text or EMPTY_TEXT
        except Exception as exc:
            logger.warning("narrative generation failed, retrying without screenshot", extra={"error": repr(exc)})

        try:
            text = await self._generate(f"{SYSTEM_INSTRUCTION}\n\n{data_text}", None)
            if text:
                return text
        except Exception as exc:
            logger.warning("simplified narrative generation failed", extra={"error": repr(exc)})
        return FAILED_TEXT
