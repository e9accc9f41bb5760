"""Vulnerability Intelligence Layer for WatchVuln.

Exports:
    VulnSource: Abstract base class for advisory sources.
    Enricher: Abstract base class for best-effort link lookups.
    Collector: Fetches all sources in parallel with failure isolation.
    GitHubPocEnricher: Proof-of-concept link search on GitHub.

Usage:
    from watchvuln.intelligence import Collector, VulnSource
"""

from watchvuln.intelligence.base import Enricher, VulnSource
from watchvuln.intelligence.collector import Collector
from watchvuln.intelligence.enricher import GitHubPocEnricher

__all__ = [
    "VulnSource",
    "Enricher",
    "Collector",
    "GitHubPocEnricher",
]
