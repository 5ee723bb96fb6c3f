"""
Pytest fixtures for the onboarding engine tests.

Everything runs in memory: the catalog and session repositories are the
in-memory implementations, the language model is scripted and actions are
test doubles. API tests drive the FastAPI app through httpx's ASGI transport.
"""
import httpx
import pytest
import pytest_asyncio

from fakes import FakeLanguageModel, StaticAction, engine_for, question

from app import app
from onboarding.dependencies import set_interview_engine
from onboarding_agent import AssistantBridge


@pytest.fixture
def url_catalog():
    """Two-question catalog: a required URL, then a platform that depends on it."""
    return [
        question(1, "url", validation={"required": True}),
        question(2, "platform", "SELECTION", dependsOn="url"),
    ]


@pytest.fixture
def website_catalog():
    """Website flow with auto-actions and a conditional WordPress branch."""
    return [
        question(1, "websiteUrl", inputConfig={"inputType": "url"}, validation={"required": True}),
        question(
            2,
            "platform",
            "SELECTION",
            inputConfig={"options": ["wordpress", "shopify", "wix"]},
            dependsOn="websiteUrl",
            autoActions=[{"actionName": "crawl", "parameters": {"url": "{{websiteUrl}}"}, "resultKey": "crawled"}],
            allowedActions=["crawl"],
        ),
        question(
            3,
            "importArticles",
            "CONFIRMATION",
            showCondition={"field": "platform", "operator": "equals", "value": "wordpress"},
        ),
        question(4, "goals", "MULTI_SELECTION", inputConfig={"options": ["traffic", "leads"]}),
    ]


@pytest.fixture
def crawl_action():
    return StaticAction("crawl")


@pytest.fixture
def engine(website_catalog, crawl_action):
    return engine_for(website_catalog, [crawl_action])


@pytest.fixture
def fake_llm():
    return FakeLanguageModel()


@pytest_asyncio.fixture
async def api_engine(website_catalog, crawl_action, fake_llm):
    engine = engine_for(website_catalog, [crawl_action])
    engine.assistant = AssistantBridge(fake_llm, engine.registry)
    set_interview_engine(engine)
    yield engine
    set_interview_engine(None)


@pytest_asyncio.fixture
async def client(api_engine):
    """Async HTTP client bound to the app in-process."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
