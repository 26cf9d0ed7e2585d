"""
FetchStrategyChain: tier order, acceptance short-circuit, variant cycling,
provider/proxy skipping, and the minimum-body guarantee.
"""

import asyncio
import json

import httpx
import pytest

from harvester.news.extractor import ContentExtractor
from harvester.news.fetch_chain import FetchStrategyChain
from harvester.schemas import FetchOutcome, FetchTier
from harvester.tools.http_client import FetchClient

BASE = "https://news.example.com"
URL = f"{BASE}/news/harbour-volumes"
BODY_300 = (
    "Container throughput at the harbour rose for a third straight month in June, the port "
    "authority said on Tuesday, as regional trade recovered from a slow start to the year. "
    "Officials expect volumes to keep climbing through the summer shipping season, while "
    "carriers add capacity on the busiest routes."
)


def _html(body, title="Harbour volumes climb"):
    return f"<html><head><title>{title}</title></head><body><div class='story-body'><p>{body}</p></div></body></html>"


def _fetch(source, settings, handler, url=URL):
    attempts = []

    async def _run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = FetchClient(settings, http=http, session_number=123456)
            return await FetchStrategyChain(source, settings, client).fetch(url, attempts=attempts)

    return asyncio.run(_run()), attempts


@pytest.fixture
def provider_settings(settings):
    return settings.model_copy(update={"provider_api_key": "test-key"})


def test_short_structured_body_falls_through_to_lightweight(provider_settings, make_source):
    source = make_source(lightweight_url_template="{url}/amp")

    def handler(request):
        assert request.url.host == "api.scraperapi.com"
        params = request.url.params
        assert params["session_number"] == "123456"
        if params.get("autoparse") == "true":
            return httpx.Response(200, text=json.dumps({"title": "Harbour volumes climb", "content": "x" * 40}))
        if params["url"] == f"{URL}/amp":
            return httpx.Response(200, text=_html(BODY_300))
        return httpx.Response(500, text="unexpected")

    result, attempts = _fetch(source, provider_settings, handler)
    assert result.tier == FetchTier.LIGHTWEIGHT
    assert result.fields.body_text == BODY_300
    assert [(a.tier, a.outcome) for a in attempts] == [
        (FetchTier.PROVIDER_PARSE, FetchOutcome.REJECTED),
        (FetchTier.LIGHTWEIGHT, FetchOutcome.ACCEPTED),
    ]
    assert attempts[0].detail == "short_body"


def test_accepted_tier_short_circuits(provider_settings, make_source):
    calls = []

    def handler(request):
        calls.append(request.url.params.get("autoparse"))
        return httpx.Response(200, text=json.dumps({"headline": "Harbour volumes climb", "content": BODY_300}))

    result, _ = _fetch(make_source(lightweight_url_template="{url}/amp"), provider_settings, handler)
    assert result.tier == FetchTier.PROVIDER_PARSE
    assert calls == ["true"]


def test_provider_tier_skipped_without_key(settings, make_source):
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, text=_html(BODY_300))

    result, attempts = _fetch(make_source(), settings, handler)
    assert result.tier == FetchTier.CANONICAL_HTML
    assert seen == [URL]
    assert attempts[0].tier == FetchTier.PROVIDER_PARSE
    assert attempts[0].outcome == FetchOutcome.SKIPPED
    assert attempts[1].tier == FetchTier.LIGHTWEIGHT
    assert attempts[1].outcome == FetchOutcome.SKIPPED


def test_variants_cycle_after_block(settings, make_source):
    languages = []

    def handler(request):
        language = request.headers["Accept-Language"]
        languages.append(language)
        if language.startswith("zh-HK"):
            return httpx.Response(403, text="forbidden")
        return httpx.Response(200, text=_html(BODY_300))

    result, attempts = _fetch(make_source(), settings, handler)
    assert result.variant.region == "sg"
    assert len(languages) == 2
    failed = [a for a in attempts if a.outcome == FetchOutcome.FAILED]
    assert len(failed) == 1
    assert failed[0].variant.region == "hk"
    assert "403" in failed[0].detail


def test_text_proxy_last_resort(settings, make_source):
    proxy_settings = settings.model_copy(update={"text_proxy_endpoint": "https://r.jina.ai/"})

    def handler(request):
        if request.url.host == "r.jina.ai":
            return httpx.Response(200, text=f"Title: Harbour volumes climb\nMarkdown Content:\n{BODY_300}\n")
        return httpx.Response(500, text="server error")

    result, attempts = _fetch(make_source(), proxy_settings, handler)
    assert result.tier == FetchTier.TEXT_PROXY
    assert result.fields.title == "Harbour volumes climb"
    assert sum(1 for a in attempts if a.tier == FetchTier.CANONICAL_HTML) == 3


def test_exhausted_chain_returns_none(settings, make_source):
    def handler(request):
        return httpx.Response(500, text="server error")

    result, attempts = _fetch(make_source(), settings, handler)
    assert result is None
    assert {a.outcome for a in attempts} == {FetchOutcome.SKIPPED, FetchOutcome.FAILED}


def test_timeouts_are_failed_attempts(settings, make_source):
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    result, attempts = _fetch(make_source(), settings, handler)
    assert result is None
    assert all("timed out" in a.detail for a in attempts if a.outcome == FetchOutcome.FAILED)


@pytest.mark.parametrize("length", [0, 40, 149, 150, 151, 400])
def test_never_returns_body_below_minimum(settings, make_source, length):
    body = ("harbour " * 60)[:length]

    def handler(request):
        return httpx.Response(200, text=_html(body))

    result, _ = _fetch(make_source(min_body_length=150), settings, handler)
    if result is not None:
        assert len(result.fields.body_text) > 150
    if length > 150:
        assert result is not None


def test_json_ld_image_url_list_still_accepted(settings, make_source):
    ld = {"@type": "NewsArticle", "headline": "Harbour volumes climb",
          "image": {"@type": "ImageObject", "url": ["https://news.example.com/uploads/a.jpg"]}}
    page = _html(BODY_300).replace(
        "</head>", "<script type='application/ld+json'>" + json.dumps(ld) + "</script></head>",
    )

    def handler(request):
        return httpx.Response(200, text=page)

    result, _ = _fetch(make_source(), settings, handler)
    assert result.tier == FetchTier.CANONICAL_HTML
    assert result.fields.cover_image_url == "https://news.example.com/uploads/a.jpg"


def test_parse_error_moves_to_next_tier(settings, make_source):
    class BrokenHtmlExtractor(ContentExtractor):
        def parse_html(self, html_content, url, title_hint=""):
            raise RuntimeError("unexpected markup")

    source = make_source()
    proxy_settings = settings.model_copy(update={"text_proxy_endpoint": "https://r.jina.ai/"})

    def handler(request):
        if request.url.host == "r.jina.ai":
            return httpx.Response(200, text=f"Title: Harbour volumes climb\nMarkdown Content:\n{BODY_300}\n")
        return httpx.Response(200, text=_html(BODY_300))

    attempts = []

    async def _run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = FetchClient(proxy_settings, http=http)
            chain = FetchStrategyChain(source, proxy_settings, client, BrokenHtmlExtractor(source))
            return await chain.fetch(URL, attempts=attempts)

    result = asyncio.run(_run())
    assert result.tier == FetchTier.TEXT_PROXY
    failed = [a for a in attempts if a.tier == FetchTier.CANONICAL_HTML]
    assert failed[0].outcome == FetchOutcome.FAILED
    assert "unexpected markup" in failed[0].detail
