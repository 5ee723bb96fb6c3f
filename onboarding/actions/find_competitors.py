"""
Suggest direct competitors for the user's business.

The language model proposes candidate business websites; the result is
filtered of directories, aggregators, social networks, government and
academic sites, and the user's own domain.
"""
import logging
import re
from typing import Any, Optional

from onboarding.actions.web import WEBSITE_RESPONSE_KEYS, root_domain
from onboarding.models import ActionContext, ActionResult
from onboarding.services.action_registry import Action
from onboarding.utils import parse_json_response

logger = logging.getLogger(__name__)

MAX_COMPETITORS = 10

AGGREGATOR_DOMAINS = {
    # Directories and review sites
    "yelp.com", "tripadvisor.com", "glassdoor.com", "trustpilot.com", "bbb.org",
    "yellowpages.com", "whitepages.com", "crunchbase.com", "clutch.co", "g2.com",
    "capterra.com", "softwareadvice.com", "midrag.co.il", "easy.co.il", "duns100.co.il",
    "b144.co.il", "zap.co.il",
    # SEO and marketing tools
    "semrush.com", "ahrefs.com", "moz.com", "similarweb.com", "hubspot.com",
    # Reference and news
    "wikipedia.org", "ynet.co.il", "globes.co.il", "themarker.com",
    # Social
    "facebook.com", "fb.com", "linkedin.com", "twitter.com", "x.com", "instagram.com",
    "youtube.com", "tiktok.com", "pinterest.com", "reddit.com",
    # Marketplaces and freelance platforms
    "amazon.com", "ebay.com", "aliexpress.com", "alibaba.com", "fiverr.com", "upwork.com",
    # Search
    "google.com", "google.co.il", "bing.com",
}

EXCLUDED_SUFFIXES = (".gov", ".gov.il", ".gov.uk", ".edu", ".ac.il")

AGGREGATOR_TITLE_PATTERNS = [
    re.compile(r"^(top|best)\s*\d+", re.I),
    re.compile(r"^(list of|comparison|guide to)", re.I),
    re.compile(r"^(index|directory)", re.I),
    re.compile(r"\d+\s*(top|best)", re.I),
    re.compile(r"price comparison", re.I),
]

COMPETITOR_PROMPT = """List up to {limit} businesses that compete directly with the business below.

Business: {business}
Keywords: {keywords}
Market: {location}

Only include actual business websites offering the same or similar products or services.
Exclude directories, aggregators, "top 10" lists, comparison and review sites, news,
Wikipedia, social networks and government sites.

Respond with JSON only:
{{"competitors": [{{"name": "Business name", "url": "https://example.com", "reason": "One short sentence"}}]}}
"""


def is_valid_competitor_domain(domain: Optional[str], own_domain: Optional[str] = None) -> bool:
    if not domain:
        return False
    if any(domain == blocked or domain.endswith(f".{blocked}") for blocked in AGGREGATOR_DOMAINS):
        return False
    if domain.endswith(EXCLUDED_SUFFIXES):
        return False
    return domain != own_domain


def is_aggregator_title(title: str) -> bool:
    return any(pattern.search(title or "") for pattern in AGGREGATOR_TITLE_PATTERNS)


def filter_competitors(candidates: list[Any], own_domain: Optional[str], limit: int = MAX_COMPETITORS) -> list[dict]:
    """Normalize to homepage URLs, dedupe by domain and drop non-competitors."""
    competitors, seen = [], set()
    for candidate in candidates:
        if not isinstance(candidate, dict):
            continue
        domain = root_domain(candidate.get("url") or candidate.get("domain"))
        name = str(candidate.get("name") or domain or "").strip()
        if domain in seen or not is_valid_competitor_domain(domain, own_domain) or is_aggregator_title(name):
            continue
        seen.add(domain)
        competitors.append({
            "name": name,
            "domain": domain,
            "url": f"https://{domain}",
            "reason": candidate.get("reason"),
        })
        if len(competitors) >= limit:
            break
    return competitors


class FindCompetitorsAction(Action):
    name = "find_competitors"
    description = "Suggest direct competitor websites for the user's business."
    parameters = {
        "type": "object",
        "properties": {
            "keywords": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Keywords the business wants to rank for",
            },
            "business": {"type": "string", "description": "Short description of the business"},
            "location": {"type": "string", "description": "Target market or location"},
        },
    }

    def __init__(self, llm=None):
        self.llm = llm

    async def execute(self, parameters: dict[str, Any], context: ActionContext) -> ActionResult:
        if self.llm is None:
            return ActionResult.fail("Language model is not configured")

        keywords = parameters.get("keywords") or context.responses.get("keywords")
        if isinstance(keywords, str):
            keywords = [k.strip() for k in keywords.split(",") if k.strip()]
        if not keywords:
            return ActionResult.fail("No keywords provided")

        crawled = context.external_data.get("crawl_website") or {}
        business = (
            parameters.get("business")
            or context.responses.get("businessDescription")
            or crawled.get("description")
            or crawled.get("business_name")
            or "unknown"
        )
        location = parameters.get("location") or context.responses.get("location") or "the business's market"

        own_domain = None
        for key in WEBSITE_RESPONSE_KEYS:
            own_domain = root_domain(context.responses.get(key))
            if own_domain:
                break

        prompt = COMPETITOR_PROMPT.format(
            limit=MAX_COMPETITORS,
            business=business,
            keywords=", ".join(str(k) for k in keywords),
            location=location,
        )
        logger.info(f"🏁 Finding competitors for session {context.session_id[:8]} ({len(keywords)} keywords)")
        response_text = await self.llm.generate(prompt)

        parsed = parse_json_response(response_text)
        candidates = parsed.get("competitors", []) if isinstance(parsed, dict) else parsed
        if not isinstance(candidates, list):
            return ActionResult.fail("Could not parse competitor suggestions")

        competitors = filter_competitors(candidates, own_domain)
        logger.info(f"Found {len(competitors)} competitors ({len(candidates)} suggested)")
        return ActionResult.ok({"competitors": competitors, "total": len(competitors)})
