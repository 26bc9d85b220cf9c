import pytest

from tests.helpers.crawler_imports import (
    ConfigurationError,
    CrawlerConfig,
    config_module,
    load_configuration,
)

ENV_KEYS = [
    "CRAWLER_MAX_PAGES",
    "CRAWLER_DELAY_MS",
    "CRAWLER_USE_RENDERING",
    "CRAWLER_WORKERS",
    "CRAWLER_REQUEST_TIMEOUT",
    "CRAWLER_RENDER_TIMEOUT_MS",
    "CRAWLER_USER_AGENT",
    "CRAWLER_FETCH_ROUTES",
    "CRAWLER_REPORT",
    "HEADLESS",
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    monkeypatch.setattr(config_module, "load_dotenv", lambda *_args, **_kwargs: False)
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_load_configuration_uses_environment(monkeypatch, tmp_path):
    report_path = tmp_path / "pages.json"
    monkeypatch.setenv("CRAWLER_MAX_PAGES", "25")
    monkeypatch.setenv("CRAWLER_DELAY_MS", "0")
    monkeypatch.setenv("CRAWLER_USE_RENDERING", "true")
    monkeypatch.setenv("CRAWLER_WORKERS", "3")
    monkeypatch.setenv("CRAWLER_RENDER_TIMEOUT_MS", "5000")
    monkeypatch.setenv("CRAWLER_FETCH_ROUTES", "{url}, https://relay.test/?u={quoted_url}")
    monkeypatch.setenv("CRAWLER_REPORT", str(report_path))
    monkeypatch.setenv("HEADLESS", "false")

    config = load_configuration()

    assert config.max_pages == 25
    assert config.delay_ms == 0
    assert config.use_rendering_transport is True
    assert config.workers == 3
    assert config.render_timeout_ms == 5000
    assert config.fetch_routes == ("{url}", "https://relay.test/?u={quoted_url}")
    assert config.report_path == report_path.resolve()
    assert config.headless is False


def test_load_configuration_defaults():
    config = load_configuration()

    assert config.max_pages == 500
    assert config.delay_ms == 200
    assert config.use_rendering_transport is False
    assert config.workers == 1
    assert config.fetch_routes == ("{url}",)
    assert config.report_path is None
    assert config.headless is True
    assert config.delay_seconds == pytest.approx(0.2)


def test_explicit_arguments_override_environment(monkeypatch):
    monkeypatch.setenv("CRAWLER_MAX_PAGES", "25")
    monkeypatch.setenv("CRAWLER_USE_RENDERING", "yes")

    config = load_configuration(max_pages=3, use_rendering_transport=False, delay_ms=50)

    assert config.max_pages == 3
    assert config.use_rendering_transport is False
    assert config.delay_ms == 50


def test_malformed_environment_values_raise(monkeypatch):
    monkeypatch.setenv("CRAWLER_MAX_PAGES", "lots")

    with pytest.raises(ConfigurationError):
        load_configuration()


@pytest.mark.parametrize(
    "overrides",
    [
        {"max_pages": 0},
        {"max_pages": True},
        {"delay_ms": -1},
        {"workers": 0},
        {"render_timeout_ms": 0},
        {"fetch_routes": ()},
        {"fetch_routes": ("https://relay.test/",)},
    ],
)
def test_validate_rejects_unusable_values(overrides):
    with pytest.raises(ConfigurationError):
        CrawlerConfig(**overrides).validate()


def test_validate_accepts_defaults():
    CrawlerConfig().validate()
