"""
WatchVuln Test Configuration

Shared pytest fixtures and configuration for all test types.
"""

import asyncio
from typing import Callable, List, Optional

import pytest

from watchvuln.app import AppContext, build_app
from watchvuln.core.config import Settings
from watchvuln.core.models import RawRecord, Severity
from watchvuln.intelligence.base import VulnSource
from watchvuln.push.base import NotificationChannel
from watchvuln.storage.store import VulnStore


# Configure pytest collection
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (several components, no network)")


# =============================================================================
# Test doubles
# =============================================================================


class StaticSource(VulnSource):
    """Source returning a fixed batch, an error, or hanging."""

    def __init__(
        self,
        name: str,
        records: Optional[List[RawRecord]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        timeout: float = 5.0,
    ) -> None:
        super().__init__(name=name, display_name=f"{name} feed", timeout=timeout)
        self.records = list(records or [])
        self.error = error
        self.delay = delay
        self.calls: List[int] = []

    async def get_update(self, volume_hint: int) -> List[RawRecord]:
        self.calls.append(volume_hint)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.records)


class RecordingChannel(NotificationChannel):
    """Channel that records messages and optionally fails."""

    def __init__(self, name: str, fail: bool = False, delay: float = 0.0, timeout: float = 5.0) -> None:
        super().__init__(name=name, timeout=timeout)
        self.fail = fail
        self.delay = delay
        self.messages: List[tuple] = []

    async def push(self, title: str, body: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.messages.append((title, body))
        if self.fail:
            raise RuntimeError(f"{self.name} is down")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def make_raw() -> Callable[..., RawRecord]:
    """Factory for RawRecord with sensible defaults."""

    def _make(unique_key: str = "CVE-2024-0001_KEV", **overrides) -> RawRecord:
        data = dict(
            unique_key=unique_key,
            title="Example Remote Code Execution",
            description="A crafted request allows code execution.",
            severity=Severity.HIGH,
            cve="CVE-2024-0001",
            disclosure="2024-01-15",
            references=["https://example.com/advisory"],
            solutions="Upgrade to the fixed release.",
            origin="https://example.com/feed",
            tags=["Example", "Server"],
            is_valuable=True,
        )
        data.update(overrides)
        return RawRecord(**data)

    return _make


@pytest.fixture
def store(tmp_path) -> VulnStore:
    """File-backed store in a temporary directory."""
    s = VulnStore.from_path(tmp_path / "watchvuln.sqlite")
    yield s
    s.close()


@pytest.fixture
def make_source() -> Callable[..., StaticSource]:
    return StaticSource


@pytest.fixture
def make_channel() -> Callable[..., RecordingChannel]:
    return RecordingChannel


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with no channels, no enrichment and a temporary database."""
    return Settings(
        database={"path": str(tmp_path / "app.sqlite")},
        task={"cron_config": "0 */30 * * * *", "timezone": "UTC"},
        logging={"level": "DEBUG", "format": "console"},
    )


@pytest.fixture
def make_context(settings, store) -> Callable[..., AppContext]:
    """Build an AppContext around the shared store with test doubles."""

    def _make(sources=None, channels=None, **overrides) -> AppContext:
        task = overrides.pop("task", None)
        cfg = settings.model_copy(update={"task": settings.task.model_copy(update=task)}) if task else settings
        return build_app(
            cfg,
            store=store,
            sources=list(sources or []),
            channels=list(channels or []),
            **overrides,
        )

    return _make
