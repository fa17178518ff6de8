# routers/ingest.py — Scrape and AI enrichment endpoints
# Stateless: nothing is persisted here. Results go back to the caller, who
# reviews them and saves through the signals/trends endpoints.
import logging
from typing import Optional, List

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from auth import get_current_user, CurrentUser
from analyst import ForesightAnalyst, get_analyst
from providers import IngestionError
from scraper import FirecrawlClient, get_scraper

router = APIRouter(prefix="/api/v1/ingest", tags=["Ingestion"])
logger = logging.getLogger("foresight.ingest")


# --- Schemas ---

class ScrapeOptions(BaseModel):
    wait_for: Optional[int] = Field(None, ge=0, le=60000)


class ScrapeRequest(BaseModel):
    url: Optional[str] = None
    options: Optional[ScrapeOptions] = None


class SummarizeRequest(BaseModel):
    content: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None


class SignalBrief(BaseModel):
    title: str = ""
    summary: Optional[str] = None
    url: Optional[str] = None


class DescribeRequest(BaseModel):
    title: Optional[str] = None
    signals: List[SignalBrief] = Field(default_factory=list)


def _error_response(exc: IngestionError, **extra) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={**extra, **exc.as_dict()})


# --- Endpoints ---

@router.post("/scrape")
async def scrape_url(
    req: ScrapeRequest,
    user: CurrentUser = Depends(get_current_user),
    scraper: FirecrawlClient = Depends(get_scraper),
):
    """Fetch a page's main content as cleaned markdown"""
    wait_for = req.options.wait_for if req.options else None
    try:
        data = await scraper.scrape(req.url or "", wait_for=wait_for)
    except IngestionError as exc:
        logger.info(f"Scrape failed for {user.id}: {exc.code}")
        return _error_response(exc, success=False)
    return {"success": True, "data": data}


@router.post("/summarize")
async def summarize_signal(
    req: SummarizeRequest,
    user: CurrentUser = Depends(get_current_user),
    analyst: ForesightAnalyst = Depends(get_analyst),
):
    """Analyze raw text into a summary, takeaways, tags and foresight ratings"""
    try:
        return await analyst.analyze(req.content, title=req.title, url=req.url)
    except IngestionError as exc:
        logger.info(f"Analysis failed for {user.id}: {exc.code}")
        return _error_response(exc)


@router.post("/trend-description")
async def generate_trend_description(
    req: DescribeRequest,
    user: CurrentUser = Depends(get_current_user),
    analyst: ForesightAnalyst = Depends(get_analyst),
):
    """Draft a trend description from its title and linked signals"""
    signals = [s.model_dump() for s in req.signals]
    try:
        description = await analyst.describe_trend(req.title, signals)
    except IngestionError as exc:
        logger.info(f"Trend description failed for {user.id}: {exc.code}")
        return _error_response(exc)
    return {"description": description}
