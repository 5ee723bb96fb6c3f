"""
Built-in actions.
"""
from .crawl_website import CrawlWebsiteAction
from .detect_platform import DetectPlatformAction
from .fetch_articles import FetchArticlesAction
from .find_competitors import FindCompetitorsAction

__all__ = [
    "CrawlWebsiteAction",
    "DetectPlatformAction",
    "FetchArticlesAction",
    "FindCompetitorsAction",
]
