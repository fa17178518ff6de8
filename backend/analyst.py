# analyst.py — LLM-backed signal analysis and trend description drafting
"""
Turns raw article text into a foresight classification (summary, three
takeaways, tags, relevance, horizon, certainty) and drafts trend
descriptions from linked signals.

Model output is never trusted as-is: ``normalize_analysis`` clamps every
field into its allowed range and fills gaps with fixed defaults, so callers
always receive a well-formed result or a typed error. Nothing is persisted
here.
"""
import os
import re
import json
import math
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import httpx

from models import Horizon, Certainty
from providers import (
    ProviderError, ProviderNotConfigured, ContentRequired, ContentTooShort,
    InsufficientContent, MalformedResponse, TitleRequired, raise_for_provider_status,
)

logger = logging.getLogger("foresight.analyst")

LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))

MIN_CONTENT_LENGTH = 100
MAX_PROMPT_CONTENT = 8000
MAX_SUMMARY_LENGTH = 1200
MAX_DESCRIPTION_LENGTH = 1800
TAKEAWAY_COUNT = 3
MIN_TAGS = 2
MAX_TAGS = 6

DEFAULT_RELEVANCE = 50
DEFAULT_HORIZON = Horizon.MID.value
DEFAULT_CERTAINTY = Certainty.UNCERTAIN.value
FILLER_TAGS = ("unclassified", "emerging-signal")

LLM_PROVIDERS = {
    "gateway": {
        "base_url": os.getenv("AI_GATEWAY_URL", "https://ai.gateway.lovable.dev/v1"),
        "env_key": "AI_GATEWAY_API_KEY",
        "default_model": "google/gemini-2.5-flash",
    },
    "openai": {
        "base_url": "https://api.openai.com/v1",
        "env_key": "OPENAI_API_KEY",
        "default_model": "gpt-4o-mini",
    },
    "groq": {
        "base_url": "https://api.groq.com/openai/v1",
        "env_key": "GROQ_API_KEY",
        "default_model": "llama-3.3-70b-versatile",
    },
}
PROVIDER_ORDER = ["gateway", "openai", "groq"]

ANALYSIS_SYSTEM_PROMPT = """You are a strategic foresight analyst. Your task is to analyze content and extract key insights for trend analysis.

Base every statement only on the supplied content. Do not infer anything from the title or URL alone.
If the content does not contain enough substance to analyze, respond with exactly {"insufficient_content": true}.

Otherwise respond with valid JSON matching this exact schema:
{
  "summary": "string (max 150 words, concise summary of the key points)",
  "takeaways": ["string", "string", "string"] (exactly 3 bullet-point takeaways),
  "tags": ["kebab-case-tag"] (2-6 lowercase kebab-case tags describing themes),
  "relevance": number (0-100, how relevant this is for strategic foresight),
  "horizon": "0_5" | "5_10" | "10_plus" (time horizon: 0-5 years, 5-10 years, or 10+ years),
  "certainty": "certain" | "uncertain" | "wildcard" (how certain is this development)
}

Guidelines:
- Summary should be in the same language as the source content
- Tags should be in English and lowercase kebab-case (e.g., "artificial-intelligence", "sustainability")
- Relevance considers strategic importance, disruptiveness, and scope of impact
- Horizon considers when this trend will have significant impact
- Certainty: "certain" for established trends, "uncertain" for emerging patterns, "wildcard" for speculative developments"""

DESCRIPTION_SYSTEM_PROMPT = (
    "You are a strategic foresight analyst. Write concise, professional trend descriptions "
    "that synthesize signals into a coherent narrative about future developments."
)

_FENCE = re.compile(r"```(?:json)?\n?|\n?```")
_TAG_SPACES = re.compile(r"[\s_]+")
_TAG_INVALID = re.compile(r"[^a-z0-9-]")
_TAG_HYPHENS = re.compile(r"-{2,}")


# ============================================================
# NORMALISATION
# ============================================================

def _summary(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()[:MAX_SUMMARY_LENGTH]


def _takeaways(value: Any) -> List[str]:
    items = []
    if isinstance(value, list):
        items = [str(t).strip() for t in value if t is not None and str(t).strip()]
    items = items[:TAKEAWAY_COUNT]
    while len(items) < TAKEAWAY_COUNT:
        items.append(f"Key insight {len(items) + 1}")
    return items


def normalize_tag(tag: Any) -> str:
    text = _TAG_SPACES.sub("-", str(tag).strip().lower())
    text = _TAG_INVALID.sub("", text)
    return _TAG_HYPHENS.sub("-", text).strip("-")


def _tags(value: Any) -> List[str]:
    tags: List[str] = []
    if isinstance(value, list):
        for raw in value:
            tag = normalize_tag(raw)
            if tag and tag not in tags:
                tags.append(tag)
    tags = tags[:MAX_TAGS]
    for filler in FILLER_TAGS:
        if len(tags) >= MIN_TAGS:
            break
        if filler not in tags:
            tags.append(filler)
    return tags


def _relevance(value: Any) -> int:
    if isinstance(value, bool):
        return DEFAULT_RELEVANCE
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return DEFAULT_RELEVANCE
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return DEFAULT_RELEVANCE
    return int(round(min(100, max(0, value))))


def _choice(value: Any, allowed: Iterable[str], default: str) -> str:
    return value if isinstance(value, str) and value in allowed else default


def normalize_analysis(parsed: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce a model payload into the analysis contract, filling gaps with defaults."""
    return {
        "summary": _summary(parsed.get("summary")),
        "takeaways": _takeaways(parsed.get("takeaways")),
        "tags": _tags(parsed.get("tags")),
        "relevance": _relevance(parsed.get("relevance")),
        "horizon": _choice(parsed.get("horizon"), [h.value for h in Horizon], DEFAULT_HORIZON),
        "certainty": _choice(parsed.get("certainty"), [c.value for c in Certainty], DEFAULT_CERTAINTY),
    }


def parse_model_json(text: str) -> Dict[str, Any]:
    cleaned = _FENCE.sub("", text or "").strip()
    try:
        parsed = json.loads(cleaned)
    except ValueError:
        logger.error("Failed to parse AI response as JSON")
        raise MalformedResponse("Failed to parse AI response")
    if not isinstance(parsed, dict):
        raise MalformedResponse("AI response was not a JSON object")
    return parsed


def build_analysis_prompt(content: str, title: Optional[str] = None, url: Optional[str] = None) -> str:
    header = ""
    if title:
        header += f"Title: {title}\n"
    if url:
        header += f"Source URL: {url}\n"
    return (
        "Analyze this content for strategic foresight:\n\n"
        f"{header}\nContent:\n{content[:MAX_PROMPT_CONTENT]}\n\n"
        "Respond with JSON only, no additional text."
    )


def build_description_prompt(title: str, signals: List[Dict[str, Any]]) -> str:
    if signals:
        lines = []
        for i, s in enumerate(signals, start=1):
            summary = s.get("summary")
            lines.append(f"[{i}] {s.get('title', '')}" + (f": {summary}" if summary else ""))
        context = "\n".join(lines)
    else:
        context = "No signals linked yet."
    return f"""Write a trend description (max 250 words) for:

Trend Title: {title}

Linked Signals:
{context}

Guidelines:
- Start with a clear definition of the trend
- Explain key drivers and manifestations
- Discuss potential implications
- Reference signals where appropriate using [1], [2], etc.
- Be concise and actionable

Respond with the description text only, no additional formatting."""


# ============================================================
# PROVIDER CLIENT
# ============================================================

@dataclass
class LLMProvider:
    name: str
    base_url: str
    api_key: str
    model: str


def resolve_provider() -> Optional[LLMProvider]:
    """Pick the preferred configured provider, or None when no key is set."""
    preferred = os.getenv("LLM_PROVIDER", "").lower()
    order = ([preferred] if preferred in LLM_PROVIDERS else []) + PROVIDER_ORDER
    for key in order:
        cfg = LLM_PROVIDERS[key]
        api_key = os.getenv(cfg["env_key"])
        if api_key:
            return LLMProvider(
                name=key,
                base_url=cfg["base_url"].rstrip("/"),
                api_key=api_key,
                model=os.getenv("LLM_MODEL") or cfg["default_model"],
            )
    return None


class ForesightAnalyst:
    """OpenAI-compatible chat-completions client specialised for foresight prompts"""

    def __init__(
        self,
        provider: Optional[LLMProvider],
        timeout: float = LLM_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.provider = provider
        self.timeout = timeout
        self.transport = transport

    async def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        if self.provider is None:
            logger.error("No LLM provider key configured")
            raise ProviderNotConfigured("AI service not configured")

        logger.info(f"Calling {self.provider.name}/{self.provider.model}")
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                resp = await client.post(
                    f"{self.provider.base_url}/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self.provider.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "model": self.provider.model,
                        "messages": [
                            {"role": "system", "content": system_prompt},
                            {"role": "user", "content": user_prompt},
                        ],
                        "temperature": 0,
                        "max_tokens": max_tokens,
                    },
                )
            except httpx.HTTPError as e:
                logger.warning(f"LLM call failed ({self.provider.name}): {e}")
                raise ProviderError("AI service unreachable")

        raise_for_provider_status(resp, "AI service", "AI service error")

        try:
            data = resp.json()
            text = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            raise MalformedResponse("No response from AI")
        if not isinstance(text, str) or not text.strip():
            raise MalformedResponse("No response from AI")
        return text

    async def analyze(self, content: Optional[str], title: Optional[str] = None, url: Optional[str] = None) -> Dict[str, Any]:
        if not content or not content.strip():
            raise ContentRequired("Content is required")
        if len(content.strip()) < MIN_CONTENT_LENGTH:
            raise ContentTooShort(
                f"Content is too short to analyze (minimum {MIN_CONTENT_LENGTH} characters)"
            )

        text = await self._complete(
            ANALYSIS_SYSTEM_PROMPT,
            build_analysis_prompt(content.strip(), title, url),
            max_tokens=1000,
        )
        parsed = parse_model_json(text)
        if parsed.get("insufficient_content") is True:
            raise InsufficientContent("The supplied text does not contain enough substance to analyze")

        result = normalize_analysis(parsed)
        logger.info(
            f"Analysis complete: relevance={result['relevance']} "
            f"horizon={result['horizon']} certainty={result['certainty']}"
        )
        return result

    async def describe_trend(self, title: Optional[str], signals: List[Dict[str, Any]]) -> str:
        if not title or not title.strip():
            raise TitleRequired("Title is required")
        text = await self._complete(
            DESCRIPTION_SYSTEM_PROMPT,
            build_description_prompt(title.strip(), signals),
            max_tokens=500,
        )
        return text.strip()[:MAX_DESCRIPTION_LENGTH]


def get_analyst() -> ForesightAnalyst:
    """Dependency returning an analyst bound to the environment's provider keys"""
    return ForesightAnalyst(resolve_provider())
