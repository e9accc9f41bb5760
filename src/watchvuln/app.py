"""Application builder.

Turns a Settings instance into the set of components a pass needs. Sources
and channels are looked up by name in the registries below; nothing else in
the code base depends on concrete source or channel classes.

Usage:
    from watchvuln.app import build_app
    from watchvuln.core.config import create_settings

    context = build_app(create_settings())
    scheduler = PassScheduler(context)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import structlog

from watchvuln import __version__
from watchvuln.core.config import Settings
from watchvuln.core.exceptions import ConfigurationError
from watchvuln.daemon.reconciler import Reconciler
from watchvuln.intelligence.base import Enricher, VulnSource
from watchvuln.intelligence.collector import Collector
from watchvuln.intelligence.enricher import GitHubPocEnricher
from watchvuln.intelligence.sources.cisa_kev import CisaKevSource
from watchvuln.push.base import NotificationChannel
from watchvuln.push.dingding import DingDingChannel
from watchvuln.push.lark import LarkChannel
from watchvuln.push.notifier import Notifier
from watchvuln.push.telegram import TelegramChannel
from watchvuln.storage.store import VulnStore

log = structlog.get_logger()

SourceFactory = Callable[[Settings], VulnSource]
# Returns None when the channel is not configured.
ChannelFactory = Callable[[Settings], Optional[NotificationChannel]]


def _secret(value) -> str:
    return value.get_secret_value().strip() if value is not None else ""


def _telegram(settings: Settings) -> Optional[NotificationChannel]:
    cfg = settings.push.telegram
    token = _secret(cfg.token)
    if not token:
        return None
    return TelegramChannel(token=token, chat_id=cfg.chat_id, timeout=settings.push.timeout)


def _dingding(settings: Settings) -> Optional[NotificationChannel]:
    cfg = settings.push.dingding
    access_token = _secret(cfg.access_token)
    if not access_token:
        return None
    return DingDingChannel(
        access_token=access_token,
        secret_token=_secret(cfg.secret_token),
        timeout=settings.push.timeout,
    )


def _lark(settings: Settings) -> Optional[NotificationChannel]:
    cfg = settings.push.lark
    access_token = _secret(cfg.access_token)
    if not access_token:
        return None
    return LarkChannel(
        access_token=access_token,
        secret_token=_secret(cfg.secret_token),
        timeout=settings.push.timeout,
    )


SOURCE_REGISTRY: Dict[str, SourceFactory] = {
    "kev": lambda settings: CisaKevSource(timeout=settings.sources.timeout),
}

CHANNEL_REGISTRY: Dict[str, ChannelFactory] = {
    "telegram": _telegram,
    "dingding": _dingding,
    "lark": _lark,
}


@dataclass
class AppContext:
    """Components shared by every pass, built once at startup."""

    settings: Settings
    store: VulnStore
    sources: List[VulnSource]
    channels: List[NotificationChannel]
    collector: Collector
    reconciler: Reconciler
    notifier: Notifier
    enricher: Optional[Enricher] = None
    version: str = __version__

    def close(self) -> None:
        self.store.close()


def build_sources(settings: Settings) -> List[VulnSource]:
    """Instantiate every enabled source.

    Raises:
        ConfigurationError: If an enabled name is not registered.
    """
    sources = []
    for name in settings.sources.enabled:
        factory = SOURCE_REGISTRY.get(name)
        if factory is None:
            raise ConfigurationError(
                config_path="sources.enabled",
                key=name,
                message=f"Unknown source '{name}'. Available: {sorted(SOURCE_REGISTRY)}",
            )
        sources.append(factory(settings))
    return sources


def build_channels(settings: Settings) -> List[NotificationChannel]:
    """Instantiate every channel that has a token configured."""
    channels = []
    for factory in CHANNEL_REGISTRY.values():
        channel = factory(settings)
        if channel is not None:
            channels.append(channel)
    return channels


def build_app(
    settings: Settings,
    store: Optional[VulnStore] = None,
    sources: Optional[List[VulnSource]] = None,
    channels: Optional[List[NotificationChannel]] = None,
    enricher: Optional[Enricher] = None,
) -> AppContext:
    """Build the application context.

    Components passed explicitly replace the ones the settings describe.

    Raises:
        ConfigurationError: If the settings reference unknown sources.
    """
    if store is None:
        store = VulnStore.from_path(
            settings.database.path,
            echo=settings.database.echo,
            strict_contracts=settings.strict_contracts,
        )
    if sources is None:
        sources = build_sources(settings)
    if channels is None:
        channels = build_channels(settings)
    if enricher is None and settings.enrichment.github_search:
        enricher = GitHubPocEnricher(
            token=_secret(settings.enrichment.github_token) or None,
            timeout=settings.enrichment.timeout,
        )

    notifier = Notifier(
        channels=channels,
        store=store,
        enricher=enricher,
        timeout=settings.push.timeout,
        enrichment_timeout=settings.enrichment.timeout,
    )

    log.info(
        "app_built",
        sources=[s.name for s in sources],
        channels=[c.name for c in channels],
        enrichment=enricher is not None,
    )

    return AppContext(
        settings=settings,
        store=store,
        sources=sources,
        channels=channels,
        collector=Collector(
            timeout=settings.sources.timeout,
            strict_contracts=settings.strict_contracts,
        ),
        reconciler=Reconciler(store),
        notifier=notifier,
        enricher=enricher,
    )
