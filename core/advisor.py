"""
advisor.py -- Outbound calls to the text-generation provider (Google Gemini).

The API key never leaves the server: clients call /api/ai/*, and the routes
delegate here. Every failure becomes UpstreamError, which the API answers
with 500 {"error": ..., "code": "upstream_error"}. There is no retry and no
caching; one user action is one provider call.

Layer rule: core/ is the kernel. No imports from api/, auth/, register/, client/.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import requests

from core.config import get_settings
from core.errors import UpstreamError

logger = logging.getLogger("riskregister.advisor")

_SUGGEST_PROMPT = (
    "You are an information security risk analyst working on an ISO 27001 risk register.\n"
    "Asset: {asset}\n"
    "Context: {context}\n"
    "List the most relevant threats to this asset and the vulnerabilities that could be exploited. "
    'Answer with JSON only, in the form {{"threats": ["..."], "vulnerabilities": ["..."]}}, '
    "at most five short entries in each list."
)

_TREATMENT_PROMPT = (
    "You are an information security risk analyst working on an ISO 27001 risk register.\n"
    "Risk: {title}\n"
    "Threat: {threat}\n"
    "Vulnerability: {vulnerability}\n"
    "Write a concise risk treatment plan (at most five sentences) naming concrete controls. "
    "Answer with plain text only."
)


def _strip_fence(text: str) -> str:
    """Remove a surrounding Markdown code fence, if the model added one."""
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


class RiskAdvisor:
    """Thin client for the Gemini generateContent endpoint.

    One instance is created in the API lifespan and stored on app.state.
    Tests replace it with a mock.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        settings = get_settings()
        self.api_key = settings.gemini_api_key if api_key is None else api_key
        self.model = model or settings.gemini_model
        self.base_url = (base_url or settings.gemini_api_url).rstrip("/")
        self.timeout = timeout or settings.ai_timeout_seconds
        self._session = session or requests.Session()
        # Known endpoint; no reason to follow a long redirect chain.
        self._session.max_redirects = 3

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _generate(self, prompt: str, json_reply: bool) -> str:
        """Send one prompt and return the model's text reply.

        Raises UpstreamError when the key is missing, the request fails,
        the provider answers non-2xx, or the reply has no text.
        """
        if not self.api_key:
            raise UpstreamError("AI suggestions are not configured on this server.")

        body: dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if json_reply:
            body["generationConfig"] = {"responseMimeType": "application/json"}

        url = f"{self.base_url}/models/{self.model}:generateContent"
        try:
            resp = self._session.post(
                url,
                json=body,
                headers={"x-goog-api-key": self.api_key},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as e:
            logger.warning("AI provider request failed: %s", e)
            raise UpstreamError() from e
        except ValueError as e:
            logger.warning("AI provider returned a non-JSON body")
            raise UpstreamError() from e

        try:
            parts = data["candidates"][0]["content"]["parts"]
            text = "".join(part.get("text", "") for part in parts)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            logger.warning("AI provider reply had no candidates")
            raise UpstreamError() from e
        if not text.strip():
            raise UpstreamError()
        return text

    def suggest(self, asset: str, context: str = "") -> dict[str, list[str]]:
        """Return {"threats": [...], "vulnerabilities": [...]} for an asset."""
        text = self._generate(_SUGGEST_PROMPT.format(asset=asset, context=context or "none"), json_reply=True)
        try:
            parsed = json.loads(_strip_fence(text))
        except ValueError as e:
            logger.warning("AI suggestion was not valid JSON")
            raise UpstreamError() from e
        if not isinstance(parsed, dict):
            raise UpstreamError()
        return {
            "threats": _string_list(parsed.get("threats")),
            "vulnerabilities": _string_list(parsed.get("vulnerabilities")),
        }

    def treatment_plan(self, title: str, threat: str = "", vulnerability: str = "") -> str:
        """Return a short free-text treatment plan for a risk."""
        text = self._generate(
            _TREATMENT_PROMPT.format(title=title, threat=threat or "unspecified", vulnerability=vulnerability or "unspecified"),
            json_reply=False,
        )
        return _strip_fence(text)

    def close(self) -> None:
        self._session.close()
