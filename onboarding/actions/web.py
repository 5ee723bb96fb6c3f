"""
Shared helpers for the website actions.
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional
from urllib.parse import urlparse

import httpx

from onboarding.config import CRAWLER_USER_AGENT, HTTP_TIMEOUT_SECONDS
from onboarding.models import ActionContext

# Response keys a catalog typically stores the website under
WEBSITE_RESPONSE_KEYS = ("websiteUrl", "website_url", "url", "website")


def normalize_url(url: Any) -> Optional[str]:
    """Trim, add https:// when missing, and reject anything without a dotted host."""
    if not isinstance(url, str) or not url.strip():
        return None
    candidate = url.strip()
    if not candidate.startswith(("http://", "https://")):
        candidate = f"https://{candidate}"
    parsed = urlparse(candidate)
    if not parsed.hostname or "." not in parsed.hostname:
        return None
    return candidate


def base_url(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def root_domain(url: Any) -> Optional[str]:
    """example.com for https://www.example.com/page."""
    normalized = normalize_url(url)
    if normalized is None:
        return None
    host = urlparse(normalized).hostname or ""
    return host[4:] if host.startswith("www.") else host


def website_from_context(parameters: dict[str, Any], context: ActionContext) -> Optional[str]:
    """
    The website to work on: explicit parameter first, then the interview's answers.

    An explicit but invalid parameter yields None rather than falling back.
    """
    for key in ("url", "websiteUrl", "website_url"):
        value = parameters.get(key)
        if value is not None and value != "":
            return normalize_url(value)
    for key in WEBSITE_RESPONSE_KEYS:
        url = normalize_url(context.responses.get(key))
        if url:
            return url
    crawled = context.external_data.get("crawl_website")
    if isinstance(crawled, dict):
        return normalize_url(crawled.get("url"))
    return None


@asynccontextmanager
async def crawler_client(client: Optional[httpx.AsyncClient] = None) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the injected client, or a short-lived one configured for crawling."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(
        timeout=HTTP_TIMEOUT_SECONDS,
        follow_redirects=True,
        headers={
            "User-Agent": CRAWLER_USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml,application/json",
        },
    ) as owned:
        yield owned
