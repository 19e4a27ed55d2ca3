from __future__ import annotations

import logging
from dataclasses import dataclass

import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

_CONTENT_SELECTORS = (
    "[class*='job-description']",
    "[class*='jobDescription']",
    "[id*='job-description']",
    "[id*='jobDescription']",
    "article",
    "main",
)


@dataclass(slots=True)
class ScrapeResult:
    success: bool
    description: str = ""
    method: str = "requests"
    final_url: str | None = None
    error: str | None = None


def extract_description(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "nav", "header", "footer"]):
        tag.extract()

    node = None
    for selector in _CONTENT_SELECTORS:
        node = soup.select_one(selector)
        if node is not None:
            break

    text = (node or soup).get_text("\n")
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    return "\n".join(lines)


def scrape_job_description(url: str, fallback: str = "", timeout_sec: int = 30) -> ScrapeResult:
    """Fetch a posting and keep the scraped text only when it beats ``fallback``."""
    try:
        response = requests.get(url, timeout=timeout_sec, headers={"User-Agent": USER_AGENT})
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Failed to fetch job URL %s: %s", url, exc)
        final_url = exc.response.url if exc.response is not None else None
        return ScrapeResult(success=False, final_url=final_url, error=str(exc))

    description = extract_description(response.text)
    if len(description) <= len(fallback.strip()):
        return ScrapeResult(
            success=False,
            final_url=response.url,
            error="Scraped content shorter than existing description",
        )
    return ScrapeResult(success=True, description=description, final_url=response.url)


def fetch_job_text(url: str, timeout_sec: int = 30) -> str:
    return scrape_job_description(url, timeout_sec=timeout_sec).description
