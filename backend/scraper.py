# scraper.py — Firecrawl client for pulling article bodies into signals
"""
Fetches a page through the Firecrawl scrape API and returns its main-body
markdown with newsletter, social-share and navigation boilerplate removed.

The client is stateless: it never writes to the database. Callers review
the returned text and save it through the signals API themselves.
"""
import os
import re
import logging
from typing import Any, Dict, Optional

import httpx

from providers import (
    ProviderError, ProviderNotConfigured, NoContentExtracted, MalformedResponse, UrlRequired,
    raise_for_provider_status,
)

logger = logging.getLogger("foresight.scraper")

FIRECRAWL_BASE_URL = os.getenv("FIRECRAWL_BASE_URL", "https://api.firecrawl.dev")
SCRAPE_TIMEOUT_SECONDS = float(os.getenv("SCRAPE_TIMEOUT_SECONDS", "60"))

EXCLUDE_TAGS = [
    "nav", "footer", "aside", "form", "header",
    ".newsletter", ".social-share", ".related-articles", ".sidebar", ".comments",
]

_ML = re.MULTILINE
_MLI = re.MULTILINE | re.IGNORECASE

BOILERPLATE_PATTERNS = [
    # Newsletter forms and subscription prompts
    re.compile(r"^#+\s*(Newsletter|Subscribe|Sign up|Abonnieren|Teilen Sie|Mit dem.*Newsletter).*$", _MLI),
    re.compile(r"^\*\*?\[.*Newsletter.*\].*$", _MLI),
    re.compile(r"^Phone\s*$", _MLI),
    re.compile(r"^E-Mail\(erforderlich\)\s*$", _MLI),
    re.compile(r"^Dieses Feld.*$", _MLI),
    re.compile(r"^Einwilligung\(erforderlich\).*$", _MLI),
    re.compile(r"^Ich stimme der Datenschutz.*$", _MLI),
    re.compile(r"^Zum Artikel\s*$", _MLI),
    re.compile(r"^\[Zurück zur Startseite\].*$", _MLI),
    # Social sharing and related articles
    re.compile(r"^#+\s*(TEILEN SIE DIESE SEITE|Share this).*$", _MLI),
    re.compile(r"^- \[(Teilen auf|Share on).*$", _MLI),
    re.compile(r"^- \[(Per E-Mail teilen|Share via e-?mail)\].*$", _MLI),
    re.compile(r"^###\s*(DAS KÖNNTE SIE AUCH INTERESSIEREN|Related articles|You might also like)[\s\S]*?(?=^#|\Z)", _MLI),
    re.compile(r"^###\s*SIE MÖCHTEN KEINE INFORMATION VERPASSEN\?[\s\S]*\Z", _MLI),
    # Navigation and UI elements
    re.compile(r"^\[(Nach oben scrollen|Back to top|Scroll to top).*$", _MLI),
    re.compile(r"^Benachrichtigungen\s*$", _MLI),
    re.compile(r"^✕\s*$", _MLI),
    re.compile(r"^×\s*$", _MLI),
    # Empty tables
    re.compile(r"^\|\s*\|\s*\|\s*$", _ML),
    re.compile(r"^\| --- \| --- \|$", _ML),
    # Validation fields
    re.compile(r"^confirm list\s*$", _MLI),
    re.compile(r"^TK NL\s*$", _MLI),
]

_BLANK_RUNS = re.compile(r"\n{3,}")


def clean_content(markdown: str) -> str:
    """Strip scraped-page boilerplate and collapse the blank lines it leaves."""
    cleaned = markdown or ""
    for pattern in BOILERPLATE_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    cleaned = _BLANK_RUNS.sub("\n\n", cleaned)
    return cleaned.strip()


def normalize_url(url: str) -> str:
    formatted = url.strip()
    if not formatted.startswith(("http://", "https://")):
        formatted = f"https://{formatted}"
    return formatted


class FirecrawlClient:
    """Thin async client for Firecrawl's /v1/scrape endpoint"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = FIRECRAWL_BASE_URL,
        timeout: float = SCRAPE_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def scrape(self, url: str, wait_for: Optional[int] = None) -> Dict[str, Any]:
        if not url or not url.strip():
            raise UrlRequired("URL is required")
        if not self.configured:
            logger.error("FIRECRAWL_API_KEY not configured")
            raise ProviderNotConfigured(
                "Firecrawl connector not configured. Please connect Firecrawl in Settings."
            )

        formatted_url = normalize_url(url)
        logger.info(f"Scraping URL: {formatted_url}")

        payload: Dict[str, Any] = {
            "url": formatted_url,
            "formats": ["markdown"],
            "onlyMainContent": True,
            "excludeTags": EXCLUDE_TAGS,
            "removeBase64Images": True,
        }
        if wait_for is not None:
            payload["waitFor"] = wait_for

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                resp = await client.post(
                    f"{self.base_url}/v1/scrape",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
            except httpx.HTTPError as e:
                logger.warning(f"Firecrawl request failed: {e}")
                raise ProviderError("Failed to reach the scraping service")

        try:
            data = resp.json()
        except ValueError:
            data = None

        if not resp.is_success:
            detail = data.get("error") if isinstance(data, dict) else None
            raise_for_provider_status(resp, "Firecrawl", detail, passthrough=True)

        if not isinstance(data, dict):
            raise MalformedResponse("Firecrawl returned an unreadable response")

        page = data.get("data") or {}
        if not isinstance(page, dict):
            raise MalformedResponse("Firecrawl returned an unreadable response")
        raw_markdown = page.get("markdown") or ""
        if not isinstance(raw_markdown, str):
            raise MalformedResponse("Firecrawl returned an unreadable response")
        cleaned = clean_content(raw_markdown)
        logger.info(f"Scrape finished, raw length {len(raw_markdown)}, cleaned length {len(cleaned)}")

        if not cleaned:
            raise NoContentExtracted("No content could be extracted from this page")

        metadata = page.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        return {
            "markdown": cleaned,
            "rawMarkdown": raw_markdown,
            "metadata": metadata,
        }


def get_scraper() -> FirecrawlClient:
    """Dependency returning a client bound to the environment's credentials"""
    return FirecrawlClient(api_key=os.getenv("FIRECRAWL_API_KEY"))
