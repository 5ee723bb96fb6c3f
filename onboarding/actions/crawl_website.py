"""
Crawl a website's homepage and extract what the interview needs.
"""
import logging
import re
from typing import Any, Optional

import httpx
from bs4 import BeautifulSoup

from onboarding.actions.detect_platform import detect_platform_from_html
from onboarding.actions.web import base_url, crawler_client, root_domain, website_from_context
from onboarding.models import ActionContext, ActionResult
from onboarding.services.action_registry import Action

logger = logging.getLogger(__name__)

TITLE_SEPARATORS = re.compile(r"\s+[|\-–—:·]\s+")
MAX_HEADINGS = 10


def _meta(soup: BeautifulSoup, **attrs) -> Optional[str]:
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        return tag["content"].strip()
    return None


def _business_name(soup: BeautifulSoup, title: str, url: str) -> str:
    site_name = _meta(soup, property="og:site_name")
    if site_name:
        return site_name
    if title:
        return TITLE_SEPARATORS.split(title)[0].strip()
    domain = root_domain(url) or ""
    return domain.split(".")[0].capitalize()


def parse_homepage(html: str, url: str, headers=None) -> dict[str, Any]:
    """Pull title, description, language, headings and platform out of a page."""
    soup = BeautifulSoup(html, "html.parser")

    title = soup.title.get_text(strip=True) if soup.title else ""
    description = _meta(soup, name="description") or _meta(soup, property="og:description") or ""
    html_tag = soup.find("html")
    language = (html_tag.get("lang") if html_tag else None) or None

    headings = {
        level: [h.get_text(" ", strip=True) for h in soup.find_all(level)[:MAX_HEADINGS]]
        for level in ("h1", "h2")
    }

    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    body = soup.body or soup
    word_count = len(body.get_text(" ", strip=True).split())

    platform = detect_platform_from_html(html, headers)
    return {
        "url": url,
        "title": title,
        "description": description,
        "language": language,
        "headings": headings,
        "word_count": word_count,
        "business_name": _business_name(soup, title, url),
        "platform": platform["platform"],
        "technologies": platform["technologies"],
    }


class CrawlWebsiteAction(Action):
    name = "crawl_website"
    description = "Fetch a website's homepage and extract its title, description, language, headings and platform."
    parameters = {
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "Website URL to crawl"},
        },
        "required": ["url"],
    }

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.http_client = http_client

    async def execute(self, parameters: dict[str, Any], context: ActionContext) -> ActionResult:
        url = website_from_context(parameters, context)
        if url is None:
            return ActionResult.fail("Invalid URL provided")

        logger.info(f"🕷️ Crawling {url} for session {context.session_id[:8]}")
        try:
            async with crawler_client(self.http_client) as client:
                response = await client.get(url)
                if response.status_code >= 400:
                    return ActionResult.fail(f"HTTP {response.status_code} - could not load {url}")

                data = parse_homepage(response.text, url, response.headers)
                data["final_url"] = str(response.url)
                data["has_sitemap"] = await self._has_sitemap(client, url)
        except httpx.HTTPError as e:
            logger.warning(f"Crawl failed for {url}: {e}")
            return ActionResult.fail(f"Failed to fetch website: {e}")

        logger.info(f"Crawled {url}: '{data['title'][:60]}' ({data['platform']})")
        return ActionResult.ok(data)

    async def _has_sitemap(self, client: httpx.AsyncClient, url: str) -> bool:
        try:
            response = await client.get(f"{base_url(url)}/sitemap.xml")
        except httpx.HTTPError:
            return False
        if response.status_code != 200:
            return False
        return "<urlset" in response.text or "<sitemapindex" in response.text
