"""
Detect the CMS or framework a website is built on.
"""
import logging
import re
from typing import Any, Mapping, Optional

import httpx

from onboarding.actions.web import crawler_client, website_from_context
from onboarding.models import ActionContext, ActionResult
from onboarding.services.action_registry import Action

logger = logging.getLogger(__name__)

# (platform, patterns, technologies); order breaks ties
PLATFORM_PATTERNS: list[tuple[str, list[re.Pattern], list[str]]] = [
    ("wordpress", [
        re.compile(r"wp-content", re.I),
        re.compile(r"wp-includes", re.I),
        re.compile(r"wordpress", re.I),
        re.compile(r'<meta name="generator" content="WordPress', re.I),
    ], ["PHP", "MySQL"]),
    ("shopify", [
        re.compile(r"cdn\.shopify\.com", re.I),
        re.compile(r"shopify", re.I),
        re.compile(r'<meta name="shopify-', re.I),
    ], ["Ruby", "Liquid"]),
    ("wix", [
        re.compile(r"wix\.com", re.I),
        re.compile(r"wixstatic\.com", re.I),
        re.compile(r"_wix_", re.I),
    ], ["JavaScript", "Corvid"]),
    ("squarespace", [
        re.compile(r"squarespace\.com", re.I),
        re.compile(r"static1\.squarespace\.com", re.I),
    ], ["JavaScript", "JSON-T"]),
    ("webflow", [
        re.compile(r"webflow\.com", re.I),
        re.compile(r"assets\.website-files\.com", re.I),
        re.compile(r'<meta content="Webflow"', re.I),
    ], ["JavaScript", "CSS"]),
    ("drupal", [
        re.compile(r"Drupal", re.I),
        re.compile(r"sites/all/themes", re.I),
        re.compile(r"sites/default/files", re.I),
    ], ["PHP", "MySQL"]),
    ("joomla", [
        re.compile(r"Joomla", re.I),
        re.compile(r"media/jui", re.I),
        re.compile(r"/templates/", re.I),
    ], ["PHP", "MySQL"]),
    ("magento", [
        re.compile(r"Magento", re.I),
        re.compile(r"mage/cookies", re.I),
        re.compile(r"skin/frontend", re.I),
    ], ["PHP", "MySQL"]),
    ("ghost", [
        re.compile(r"ghost", re.I),
        re.compile(r'<meta name="generator" content="Ghost', re.I),
    ], ["Node.js", "MySQL"]),
    ("next.js", [
        re.compile(r"_next/", re.I),
        re.compile(r"__NEXT_DATA__", re.I),
    ], ["Node.js", "React"]),
    ("gatsby", [
        re.compile(r"gatsby", re.I),
        re.compile(r"___gatsby", re.I),
    ], ["Node.js", "React", "GraphQL"]),
]

SERVER_TECHNOLOGIES = {"php": "PHP", "nginx": "Nginx", "apache": "Apache"}


def detect_platform_from_html(html: str, headers: Optional[Mapping[str, str]] = None) -> dict[str, Any]:
    """
    Score every platform's patterns against the page and pick the best.

    A platform named in the Server or X-Powered-By header scores two extra points.
    """
    headers = headers or {}
    server = (headers.get("x-powered-by") or headers.get("server") or "").lower()

    best_platform, best_score, best_technologies = None, 0, []
    for name, patterns, technologies in PLATFORM_PATTERNS:
        score = sum(1 for pattern in patterns if pattern.search(html))
        if name in server:
            score += 2
        if score > best_score:
            best_platform, best_score, best_technologies = name, score, technologies

    technologies = list(best_technologies)
    for marker, technology in SERVER_TECHNOLOGIES.items():
        if marker in server and technology not in technologies:
            technologies.append(technology)

    confidence = round(min(0.95, 0.5 + best_score * 0.15), 2) if best_platform else 0.0
    return {
        "platform": best_platform or "unknown",
        "confidence": confidence,
        "technologies": technologies,
        "server_info": server or None,
    }


class DetectPlatformAction(Action):
    name = "detect_platform"
    description = "Detect which CMS or framework (WordPress, Shopify, Wix, ...) a website runs on."
    parameters = {
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "Website URL; defaults to the one given in the interview"},
        },
    }

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.http_client = http_client

    async def execute(self, parameters: dict[str, Any], context: ActionContext) -> ActionResult:
        url = website_from_context(parameters, context)
        if url is None:
            return ActionResult.fail("Invalid URL provided")

        logger.info(f"🔎 Detecting platform for {url}")
        try:
            async with crawler_client(self.http_client) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"Platform detection fetch failed for {url}: {e}")
            return ActionResult.fail(f"Failed to fetch website: {e}")

        if response.status_code >= 400:
            return ActionResult.fail(f"Failed to fetch website: {response.status_code}")

        detected = detect_platform_from_html(response.text, response.headers)
        logger.info(f"Detected platform '{detected['platform']}' ({detected['confidence']}) for {url}")
        return ActionResult.ok({"url": url, **detected})
