"""
Web Research — fetch the campaign's own website and competitor articles.

Visible text is extracted with BeautifulSoup after dropping script/style blocks.
"""

import logging
from typing import Optional

import httpx
from bs4 import BeautifulSoup

from seo_campaigns.config import get_settings
from seo_campaigns.errors import TransientServiceError
from seo_campaigns.utils import normalize_url

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124 Safari/537.36"
)


def html_to_text(html: str, max_chars: Optional[int] = None) -> str:
    """Visible text of an HTML document, whitespace collapsed."""
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    text = " ".join(soup.get_text(separator=" ").split())
    return text[:max_chars] if max_chars else text


class WebResearchClient:
    """Thin httpx wrapper; one client per research run."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        website_excerpt_chars: Optional[int] = None,
        article_excerpt_chars: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.timeout = timeout or settings.http_timeout_seconds
        self.website_excerpt_chars = website_excerpt_chars or settings.website_excerpt_chars
        self.article_excerpt_chars = article_excerpt_chars or settings.article_excerpt_chars
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": BROWSER_USER_AGENT},
            transport=self._transport,
        )

    async def _fetch(self, url: str) -> str:
        target = normalize_url(url)
        if not target:
            raise TransientServiceError("No URL to fetch")
        try:
            async with self._client() as client:
                resp = await client.get(target)
        except httpx.HTTPError as e:
            raise TransientServiceError(f"Request to {target} failed: {e}") from e
        if resp.status_code >= 400:
            raise TransientServiceError(f"{target} responded with HTTP {resp.status_code}")
        return resp.text

    async def extract_website_text(self, url: str) -> str:
        html = await self._fetch(url)
        text = html_to_text(html, self.website_excerpt_chars)
        if not text:
            raise TransientServiceError(f"No readable text found at {url}")
        logger.info(f"Extracted {len(text)} chars from {url}")
        return text

    async def scrape_article(self, url: str) -> str:
        html = await self._fetch(url)
        return html_to_text(html, self.article_excerpt_chars)
