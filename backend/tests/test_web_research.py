"""
Tests for website/article text extraction over a mocked HTTP transport.
"""

import httpx
import pytest

from seo_campaigns.errors import TransientServiceError
from seo_campaigns.services.web_research import BROWSER_USER_AGENT, WebResearchClient, html_to_text

PAGE = """
<html><head><title>Roasters</title><style>body { color: red; }</style></head>
<body><script>var tracking = 1;</script><h1>Fresh   coffee</h1><p>Roasted daily.</p></body></html>
"""


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _client(handler, **kwargs):
    return WebResearchClient(transport=httpx.MockTransport(handler), **kwargs)


def test_html_to_text_strips_scripts_and_styles():
    text = html_to_text(PAGE)
    assert "tracking" not in text
    assert "color" not in text
    assert "Fresh coffee Roasted daily." in text
    assert html_to_text(PAGE, 5) == text[:5]


@pytest.mark.anyio
async def test_scrape_article_sends_browser_agent_and_truncates():
    seen = {}

    def handler(request):
        seen["ua"] = request.headers["user-agent"]
        seen["url"] = str(request.url)
        return httpx.Response(200, text=PAGE)

    text = await _client(handler, article_excerpt_chars=10).scrape_article("roaster.example/post")

    assert seen["ua"] == BROWSER_USER_AGENT
    assert seen["url"] == "https://roaster.example/post"
    assert len(text) == 10


@pytest.mark.anyio
async def test_non_2xx_is_transient():
    client = _client(lambda request: httpx.Response(503, text="unavailable"))
    with pytest.raises(TransientServiceError, match="503"):
        await client.extract_website_text("https://down.example")


@pytest.mark.anyio
async def test_network_error_is_transient():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransientServiceError, match="failed"):
        await _client(handler).scrape_article("https://gone.example")


@pytest.mark.anyio
async def test_empty_website_is_transient():
    client = _client(lambda request: httpx.Response(200, text="<html><script>x</script></html>"))
    with pytest.raises(TransientServiceError, match="No readable text"):
        await client.extract_website_text("https://blank.example")
