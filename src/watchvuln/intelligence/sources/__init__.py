"""Vulnerability Sources Package.

This package contains implementations of the VulnSource interface.

Sources:
    CisaKevSource: CISA Known Exploited Vulnerabilities catalog
"""

from watchvuln.intelligence.sources.cisa_kev import CisaKevSource, KevEntry

__all__ = [
    "CisaKevSource",
    "KevEntry",
]
