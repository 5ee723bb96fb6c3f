"""
Fetch a website's recent blog posts.

Tries the public WordPress REST API first, then falls back to post URLs
listed in sitemap.xml. A site without a blog is not a failure: the result
is an empty article list.
"""
import html
import logging
import re
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from onboarding.actions.web import base_url, crawler_client, website_from_context
from onboarding.models import ActionContext, ActionResult
from onboarding.services.action_registry import Action

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100

LOC_PATTERN = re.compile(r"<loc>\s*(.*?)\s*</loc>", re.I | re.S)
TAG_PATTERN = re.compile(r"<[^>]+>")
POST_URL_PATTERN = re.compile(r"/(blog|news|article|articles|post|posts)/|/20\d{2}/", re.I)


def _strip_html(value: str) -> str:
    return html.unescape(TAG_PATTERN.sub("", value or "")).strip()


def _title_from_url(url: str) -> str:
    slug = urlparse(url).path.rstrip("/").rsplit("/", 1)[-1]
    return slug.replace("-", " ").replace("_", " ").strip().capitalize() or url


class FetchArticlesAction(Action):
    name = "fetch_articles"
    description = "List recent blog posts from the user's website."
    parameters = {
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "Website URL; defaults to the one given in the interview"},
            "limit": {"type": "integer", "description": "Maximum number of articles"},
        },
    }

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.http_client = http_client

    async def execute(self, parameters: dict[str, Any], context: ActionContext) -> ActionResult:
        url = website_from_context(parameters, context)
        if url is None:
            return ActionResult.ok({"articles": [], "total": 0, "message": "No website URL available"})

        try:
            limit = int(parameters.get("limit") or DEFAULT_LIMIT)
        except (TypeError, ValueError):
            return ActionResult.fail("limit must be an integer")
        limit = max(1, min(limit, MAX_LIMIT))

        async with crawler_client(self.http_client) as client:
            articles = await self._from_wordpress(client, url, limit)
            source = "wordpress-rest-api"
            if not articles:
                articles = await self._from_sitemap(client, url, limit)
                source = "sitemap"

        if not articles:
            logger.info(f"No articles found for {url}")
            return ActionResult.ok({"articles": [], "total": 0, "message": "No blog posts found on this website"})

        logger.info(f"📰 Fetched {len(articles)} articles from {url} via {source}")
        return ActionResult.ok({"articles": articles, "total": len(articles), "source": source})

    async def _from_wordpress(self, client: httpx.AsyncClient, url: str, limit: int) -> list[dict]:
        endpoint = f"{base_url(url)}/wp-json/wp/v2/posts"
        try:
            response = await client.get(
                endpoint,
                params={"per_page": limit, "_fields": "id,title,link,excerpt,date"},
            )
        except httpx.HTTPError as e:
            logger.debug(f"WordPress REST API unavailable for {url}: {e}")
            return []
        if response.status_code != 200:
            return []
        try:
            posts = response.json()
        except ValueError:
            return []
        if not isinstance(posts, list):
            return []

        articles = []
        for post in posts[:limit]:
            if not isinstance(post, dict) or not post.get("link"):
                continue
            articles.append({
                "title": _strip_html((post.get("title") or {}).get("rendered", "")),
                "url": post["link"],
                "excerpt": _strip_html((post.get("excerpt") or {}).get("rendered", "")),
                "date": post.get("date"),
            })
        return articles

    async def _from_sitemap(self, client: httpx.AsyncClient, url: str, limit: int) -> list[dict]:
        locations = await self._sitemap_locations(client, f"{base_url(url)}/sitemap.xml")

        # A sitemap index points at child sitemaps; follow the post one
        children = [loc for loc in locations if loc.endswith(".xml")]
        if children:
            post_sitemaps = [loc for loc in children if "post" in loc.lower()] or children[:1]
            locations = await self._sitemap_locations(client, post_sitemaps[0])

        post_urls = [loc for loc in locations if POST_URL_PATTERN.search(urlparse(loc).path)]
        return [{"title": _title_from_url(loc), "url": loc} for loc in post_urls[:limit]]

    async def _sitemap_locations(self, client: httpx.AsyncClient, sitemap_url: str) -> list[str]:
        try:
            response = await client.get(sitemap_url)
        except httpx.HTTPError as e:
            logger.debug(f"Sitemap unavailable at {sitemap_url}: {e}")
            return []
        if response.status_code != 200:
            return []
        return [html.unescape(loc) for loc in LOC_PATTERN.findall(response.text)]
