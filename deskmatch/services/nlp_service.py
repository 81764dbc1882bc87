"""Free-text query parsing through the OpenAI chat completions API."""

from __future__ import annotations

import json
import re
from typing import Any, Optional

from openai import AsyncOpenAI

from deskmatch.domain.models import ParsedQueryPreferences
from deskmatch.utils.config import Settings, get_settings
from deskmatch.utils.logger import get_logger


logger = get_logger(__name__)

QUERY_PROMPT_TEMPLATE = """\
Return JSON with exactly these fields from the user's text:
{{
  "desk_preferences": string[],         // e.g. ["standing","near-window"]
  "equipment_needs": string[],          // e.g. ["dual-monitors","ergonomic-chair"]
  "preferred_days": string[],           // e.g. ["Monday","Wednesday"]
  "preferred_location": string,         // e.g. "3rd Floor"
  "accessibility_needs": string|null,   // e.g. "wheelchair" or null
  "adjacency_preferences": string[],    // e.g. ["marketing team","design team"]
  "team": string                        // e.g. "marketing"
}}
Text: \"\"\"{query}\"\"\"
"""

_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\r?\n")
_FENCE_CLOSE_RE = re.compile(r"\r?\n```$")


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ``` or ```json fence from a model reply."""
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    stripped = _FENCE_OPEN_RE.sub("", stripped)
    stripped = _FENCE_CLOSE_RE.sub("", stripped)
    return stripped.strip()


def _string_list(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(item for item in value if isinstance(item, str))


def coerce_parsed_preferences(raw: Any) -> ParsedQueryPreferences:
    """Replace every field of unexpected type with its empty default."""
    if not isinstance(raw, dict):
        return ParsedQueryPreferences()

    accessibility = raw.get("accessibility_needs")
    return ParsedQueryPreferences(
        desk_preferences=_string_list(raw.get("desk_preferences")),
        equipment_needs=_string_list(raw.get("equipment_needs")),
        preferred_days=_string_list(raw.get("preferred_days")),
        preferred_location=(
            raw["preferred_location"] if isinstance(raw.get("preferred_location"), str) else ""
        ),
        accessibility_needs=accessibility if isinstance(accessibility, str) else None,
        adjacency_preferences=_string_list(raw.get("adjacency_preferences")),
        team=raw["team"] if isinstance(raw.get("team"), str) else "",
    )


class QueryParser:
    """Turns a desk request into ParsedQueryPreferences; never raises."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client

    @property
    def enabled(self) -> bool:
        return self._client is not None or bool(self._settings.openai_api_key)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._settings.openai_api_key,
                timeout=self._settings.nlp_timeout_seconds,
            )
        return self._client

    async def parse(self, query: str) -> ParsedQueryPreferences:
        if not self.enabled:
            logger.info("Query parser disabled (no OPENAI_API_KEY); using empty preferences")
            return ParsedQueryPreferences()

        try:
            completion = await self._get_client().chat.completions.create(
                model=self._settings.openai_model,
                messages=[
                    {"role": "user", "content": QUERY_PROMPT_TEMPLATE.format(query=query)},
                ],
            )
            content = completion.choices[0].message.content or ""
            raw = json.loads(strip_code_fences(content))
        except Exception:
            logger.warning("Query parsing failed, falling back to empty preferences", exc_info=True)
            return ParsedQueryPreferences()

        parsed = coerce_parsed_preferences(raw)
        logger.debug(
            "Query parsed | desk_preferences=%s | equipment_needs=%s | location=%r",
            list(parsed.desk_preferences),
            list(parsed.equipment_needs),
            parsed.preferred_location,
        )
        return parsed
