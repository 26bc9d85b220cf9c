from contextlib import contextmanager
from types import SimpleNamespace

import pytest
import requests
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from requests.utils import requote_uri

from site_crawler.fetch import render
from site_crawler.fetch.plain import PUBLIC_RELAY_ROUTES, FetchRoute, PlainTransport, build_routes
from site_crawler.fetch.render import RenderTransport
from site_crawler.fetch.strategy import FetchStrategy, looks_like_script_app
from tests.helpers.crawler_imports import CrawlerConfig, FetchError, FetchFailure, canonicalize
from tests.helpers.fakes import FakeFetcher

URL = "https://example.test/page"
RELAY = "https://relay.test/?u={quoted_url}"


def _response(status_code=200, text="<html></html>", url=""):
    return SimpleNamespace(ok=status_code < 400, status_code=status_code, text=text, url=url)


class FakeSession:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.requested = []
        self.closed = False

    def get(self, url, timeout, allow_redirects):  # noqa: ARG002
        self.requested.append(url)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        self.closed = True


def test_route_templates_substitute_raw_and_quoted_urls():
    assert FetchRoute("{url}").build(URL) == URL
    assert FetchRoute(RELAY).build(URL) == "https://relay.test/?u=https%3A%2F%2Fexample.test%2Fpage"
    assert FetchRoute("https://proxy.test/{url}").build(URL) == "https://proxy.test/https://example.test/page"
    assert FetchRoute("{url}").name == "direct"
    assert FetchRoute(RELAY).name == "https://relay.test/?u="


def test_build_routes_skips_blank_templates():
    routes = build_routes(["{url}", "  ", *PUBLIC_RELAY_ROUTES])

    assert len(routes) == 1 + len(PUBLIC_RELAY_ROUTES)
    assert routes[0].is_direct


def test_plain_transport_falls_back_until_a_route_succeeds():
    session = FakeSession(
        [
            requests.ConnectionError("refused"),
            _response(503),
            _response(200, text="<p>relayed</p>", url="https://other-relay.test/raw"),
        ]
    )
    transport = PlainTransport(
        build_routes(["{url}", RELAY, "https://other-relay.test/raw?url={quoted_url}"]),
        user_agent="test-agent",
        session=session,
    )

    page = transport.fetch(URL)

    assert page.content == "<p>relayed</p>"
    assert page.final_url == URL
    assert page.base_url == URL
    assert page.route == "https://other-relay.test/raw?url="
    assert len(session.requested) == 3


def test_plain_transport_reports_direct_redirects():
    session = FakeSession([_response(200, url="https://www.example.test/moved/")])
    transport = PlainTransport(build_routes(["{url}"]), user_agent="test-agent", session=session)

    page = transport.fetch(URL)

    assert page.final_url == "https://example.test/moved"
    assert page.base_url == "https://www.example.test/moved/"
    assert page.route == "direct"


class EchoSession(FakeSession):
    """Answers every request with the URL as requests would re-encode it."""

    def __init__(self):
        super().__init__([])

    def get(self, url, timeout, allow_redirects):  # noqa: ARG002
        self.requested.append(url)
        return _response(200, url=requote_uri(url))


def test_plain_transport_does_not_report_encoded_paths_as_redirects():
    url = canonicalize("https://example.test/my page")
    transport = PlainTransport(build_routes(["{url}"]), user_agent="test-agent", session=EchoSession())

    page = transport.fetch(url)

    assert url == "https://example.test/my%20page"
    assert page.final_url == url


def test_plain_transport_raises_when_all_routes_fail():
    session = FakeSession([requests.Timeout("slow"), _response(404)])
    transport = PlainTransport(build_routes(["{url}", RELAY]), user_agent="test-agent", session=session)

    with pytest.raises(FetchError) as excinfo:
        transport.fetch(URL)

    assert excinfo.value.reason is FetchFailure.ALL_ROUTES_EXHAUSTED
    assert "HTTP 404" in str(excinfo.value)


def test_plain_transport_requires_routes():
    with pytest.raises(ValueError):
        PlainTransport([], user_agent="test-agent")


# ----------------------------------------------------------------------
# Render transport
# ----------------------------------------------------------------------
class FakePage:
    def __init__(self, goto_error=None, final_url=URL, html="<html><body>rendered</body></html>"):
        self.goto_error = goto_error
        self.url = final_url
        self.html = html
        self.goto_calls = []

    def goto(self, url, timeout, wait_until):
        self.goto_calls.append((url, timeout, wait_until))
        if self.goto_error is not None:
            raise self.goto_error

    def wait_for_load_state(self, state, timeout):  # noqa: ARG002
        raise PlaywrightTimeoutError("still loading")

    def content(self):
        return self.html


def _install_fake_playwright(monkeypatch, page, launch_error=None):
    browser = SimpleNamespace(closed=False, launch_timeouts=[])
    browser.new_context = lambda **_kwargs: SimpleNamespace(new_page=lambda: page)

    def close():
        browser.closed = True

    browser.close = close

    def launch(headless, timeout):  # noqa: ARG001
        browser.launch_timeouts.append(timeout)
        if launch_error is not None:
            raise launch_error
        return browser

    playwright = SimpleNamespace(chromium=SimpleNamespace(launch=launch))

    @contextmanager
    def fake_sync_playwright():
        yield playwright

    monkeypatch.setattr(render, "sync_playwright", fake_sync_playwright)
    return browser


def test_render_transport_returns_rendered_document(monkeypatch):
    page = FakePage(final_url="https://example.test/app/")
    browser = _install_fake_playwright(monkeypatch, page)

    result = RenderTransport(timeout_ms=10_000).fetch(URL)

    assert result.content == "<html><body>rendered</body></html>"
    assert result.final_url == "https://example.test/app"
    assert result.route == "render"
    assert browser.closed is True
    assert page.goto_calls[0][1] <= 10_000
    assert 0 < browser.launch_timeouts[0] <= 10_000


def test_render_transport_times_out(monkeypatch):
    page = FakePage(goto_error=PlaywrightTimeoutError("Timeout 10000ms exceeded"))
    browser = _install_fake_playwright(monkeypatch, page)

    with pytest.raises(FetchError) as excinfo:
        RenderTransport(timeout_ms=10_000).fetch(URL)

    assert excinfo.value.reason is FetchFailure.TIMEOUT
    assert browser.closed is True


def test_render_transport_bounds_browser_startup(monkeypatch):
    page = FakePage()
    browser = _install_fake_playwright(
        monkeypatch, page, launch_error=PlaywrightTimeoutError("Timeout 2000ms exceeded while launching")
    )

    with pytest.raises(FetchError) as excinfo:
        RenderTransport(timeout_ms=2000).fetch(URL)

    assert excinfo.value.reason is FetchFailure.TIMEOUT
    assert 0 < browser.launch_timeouts[0] <= 2000
    assert page.goto_calls == []


def test_render_transport_wraps_browser_errors(monkeypatch):
    page = FakePage(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))
    _install_fake_playwright(monkeypatch, page)

    with pytest.raises(FetchError) as excinfo:
        RenderTransport().fetch(URL)

    assert excinfo.value.reason is FetchFailure.RENDER_FAILED


# ----------------------------------------------------------------------
# Strategy
# ----------------------------------------------------------------------
SPA_MARKUP = '<html><div id="root"></div><script src="/static/react.production.js"></script></html>'
STATIC_MARKUP = "<html><body><a href='/next'>next</a></body></html>"


@pytest.mark.parametrize(
    ("html", "expected"),
    [
        (SPA_MARKUP, True),
        ("<SCRIPT>window.Vue = {}</SCRIPT>", True),
        ("<script>var x = 1;</script>", False),
        ("<p>angular brackets without scripts</p>", False),
        ("", False),
    ],
)
def test_looks_like_script_app(html, expected):
    assert looks_like_script_app(html) is expected


def test_strategy_without_render_uses_plain_transport_only():
    plain = FakeFetcher({URL: STATIC_MARKUP})

    page = FetchStrategy(plain).fetch(URL)

    assert page.content == STATIC_MARKUP
    assert plain.calls == [URL]


def test_strategy_renders_script_applications():
    plain = FakeFetcher({URL: SPA_MARKUP})
    rendered = FakeFetcher({URL: "<html>hydrated</html>"})

    page = FetchStrategy(plain, rendered).fetch(URL)

    assert page.content == "<html>hydrated</html>"
    assert plain.calls == [URL]
    assert rendered.calls == [URL]


def test_strategy_reuses_classification_response_for_static_pages():
    plain = FakeFetcher({URL: STATIC_MARKUP})
    rendered = FakeFetcher({})

    page = FetchStrategy(plain, rendered).fetch(URL)

    assert page.content == STATIC_MARKUP
    assert plain.calls == [URL]
    assert rendered.calls == []


def test_strategy_treats_classification_failure_as_static():
    plain = FakeFetcher({})
    rendered = FakeFetcher({URL: "<html>never used</html>"})

    assert FetchStrategy(plain, rendered).needs_rendering(URL) is False
    assert rendered.calls == []


def test_strategy_fails_once_when_classification_fetch_fails():
    plain = FakeFetcher({})
    rendered = FakeFetcher({URL: "<html>never used</html>"})

    with pytest.raises(FetchError) as excinfo:
        FetchStrategy(plain, rendered).fetch(URL)

    assert excinfo.value.reason is FetchFailure.ALL_ROUTES_EXHAUSTED
    assert plain.calls == [URL]
    assert rendered.calls == []


def test_strategy_from_config_builds_transports():
    plain_only = FetchStrategy.from_config(CrawlerConfig())
    with_render = FetchStrategy.from_config(
        CrawlerConfig(use_rendering_transport=True, fetch_routes=("{url}", RELAY))
    )

    assert plain_only.render is None
    assert isinstance(with_render.render, RenderTransport)
    assert [route.template for route in with_render.plain.routes] == ["{url}", RELAY]
    plain_only.close()
    with_render.close()
