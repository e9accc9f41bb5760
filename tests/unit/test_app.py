"""Unit tests for the application builder."""

import pytest

from watchvuln.app import build_app, build_channels, build_sources
from watchvuln.core.config import Settings
from watchvuln.core.exceptions import ConfigurationError
from watchvuln.intelligence.enricher import GitHubPocEnricher
from watchvuln.intelligence.sources.cisa_kev import CisaKevSource
from watchvuln.push.dingding import DingDingChannel
from watchvuln.push.lark import LarkChannel
from watchvuln.push.telegram import TelegramChannel


@pytest.mark.unit
def test_default_sources():
    sources = build_sources(Settings())
    assert len(sources) == 1
    assert isinstance(sources[0], CisaKevSource)


@pytest.mark.unit
def test_source_timeout_from_settings():
    sources = build_sources(Settings(sources={"timeout": 7}))
    assert sources[0].timeout == 7


@pytest.mark.unit
def test_unknown_source():
    with pytest.raises(ConfigurationError) as exc_info:
        build_sources(Settings(sources={"enabled": ["kev", "nope"]}))
    assert exc_info.value.key == "nope"


@pytest.mark.unit
def test_no_channels_without_tokens():
    assert build_channels(Settings()) == []


@pytest.mark.unit
def test_channels_with_tokens():
    settings = Settings(push={
        "timeout": 3,
        "telegram": {"token": "123abc", "chat_id": 42},
        "dingding": {"access_token": "d", "secret_token": "s"},
        "lark": {"access_token": "  ", "secret_token": "s"},
    })
    channels = build_channels(settings)

    assert [type(c) for c in channels] == [TelegramChannel, DingDingChannel]
    assert all(c.timeout == 3 for c in channels)


@pytest.mark.unit
def test_lark_channel():
    channels = build_channels(Settings(push={"lark": {"access_token": "hook", "secret_token": "s"}}))
    assert len(channels) == 1
    assert isinstance(channels[0], LarkChannel)
    assert channels[0].url.endswith("/hook")


@pytest.mark.unit
def test_build_app_creates_store(settings, tmp_path):
    context = build_app(settings, sources=[], channels=[])
    try:
        assert (tmp_path / "app.sqlite").exists()
        assert context.store.count() == 0
        assert context.enricher is None
        assert context.notifier.channels == []
    finally:
        context.close()


@pytest.mark.unit
def test_build_app_enricher(settings, store):
    cfg = settings.model_copy(update={
        "enrichment": settings.enrichment.model_copy(update={"github_search": True}),
    })
    context = build_app(cfg, store=store, sources=[], channels=[])
    assert isinstance(context.enricher, GitHubPocEnricher)
    assert context.store is store
