"""
WatchVuln - Vulnerability advisory watcher

Collects advisories from intelligence sources, reconciles them against local
state and pushes new or materially changed ones to chat channels.
"""

__version__ = "0.1.0"
__author__ = "WatchVuln Team"
