# providers.py — Error taxonomy for scrape and LLM ingestion calls
# Scrape and LLM calls fail in a handful of distinguishable ways; each one
# maps to a stable machine-readable code and an HTTP status that the
# ingestion router hands back verbatim. Nothing here retries.

import logging
from typing import Optional

import httpx

logger = logging.getLogger("foresight.providers")


class IngestionError(Exception):
    """Base class for scrape/analysis failures returned to the caller"""
    code = "provider_error"
    status_code = 502

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def as_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class ProviderError(IngestionError):
    """The upstream service failed or answered with an error"""


class UrlRequired(IngestionError):
    code = "url_required"
    status_code = 400


class ContentRequired(IngestionError):
    code = "content_required"
    status_code = 400


class TitleRequired(IngestionError):
    code = "title_required"
    status_code = 400


class ContentTooShort(IngestionError):
    code = "content_too_short"
    status_code = 400


class InsufficientContent(IngestionError):
    code = "insufficient_content"
    status_code = 422


class NoContentExtracted(IngestionError):
    code = "no_content"
    status_code = 422


class ProviderNotConfigured(IngestionError):
    code = "not_configured"
    status_code = 500


class RateLimited(ProviderError):
    code = "rate_limited"
    status_code = 429


class QuotaExhausted(ProviderError):
    code = "quota_exhausted"
    status_code = 402


class MalformedResponse(ProviderError):
    code = "malformed_response"
    status_code = 502


def raise_for_provider_status(
    response: httpx.Response,
    provider: str,
    detail: Optional[str] = None,
    passthrough: bool = False,
) -> None:
    """Translate a non-2xx provider response into a typed error.

    With ``passthrough`` the generic error keeps the provider's own status
    code instead of 502.
    """
    if response.is_success:
        return
    status = response.status_code
    logger.warning(f"{provider} returned HTTP {status}")
    if status == 429:
        raise RateLimited("Rate limit exceeded. Please try again later.")
    if status == 402:
        raise QuotaExhausted(f"{provider} credits exhausted. Please add more credits.")
    raise ProviderError(
        detail or f"Request failed with status {status}",
        status_code=status if passthrough else 502,
    )
