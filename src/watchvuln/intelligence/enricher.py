"""GitHub proof-of-concept link enricher.

Searches two places for public exploit material about a CVE:

- open pull requests of projectdiscovery/nuclei-templates whose title or
  body mentions the CVE
- repositories created during the last year whose URL mentions the CVE

Both lookups run concurrently and fail independently; a failed lookup
contributes nothing.
"""

from __future__ import annotations

import asyncio
import re
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional

import httpx
import structlog

from watchvuln.core.exceptions import EnrichmentError
from watchvuln.intelligence.base import Enricher

log = structlog.get_logger()

GITHUB_API_URL = "https://api.github.com"
NUCLEI_PULLS_PATH = "/repos/projectdiscovery/nuclei-templates/pulls"
SEARCH_REPOS_PATH = "/search/repositories"
PER_PAGE = 100
REPO_LANGUAGES = ("Python", "JavaScript", "C", "C++", "Java", "PHP", "Ruby", "Rust", "C#")


def cve_pattern(cve_id: str) -> re.Pattern[str]:
    """Case-insensitive match of ``cve_id`` bounded by a word edge, ``/`` or ``_``."""
    return re.compile(rf"(?:\b|/|_){re.escape(cve_id)}(?:\b|/|_)", re.IGNORECASE)


def last_year(today: Optional[date] = None) -> str:
    """ISO date one year before ``today``."""
    today = today or date.today()
    return (today - timedelta(days=365)).isoformat()


class GitHubPocEnricher(Enricher):
    """Enricher backed by the GitHub REST API.

    Attributes:
        token: Optional GitHub token; raises the API rate limit.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        timeout: float = 15.0,
        http_client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ) -> None:
        super().__init__(name="github", timeout=timeout)
        self._token = token
        self._http_client_factory = http_client_factory or (
            lambda: httpx.AsyncClient(
                base_url=GITHUB_API_URL,
                headers=self._headers(),
                timeout=self.timeout,
            )
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _get_json(self, client: httpx.AsyncClient, cve_id: str, lookup: str,
                        path: str, params: Dict[str, Any]) -> Any:
        try:
            response = await client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise EnrichmentError(cve_id=cve_id, lookup=lookup, message=str(e)) from e

    async def search_nuclei_pulls(self, client: httpx.AsyncClient, cve_id: str) -> List[str]:
        """Links of nuclei-templates pull requests mentioning ``cve_id``."""
        log.debug("enricher_search_nuclei", cve=cve_id)
        pulls = await self._get_json(
            client, cve_id, "nuclei_pulls", NUCLEI_PULLS_PATH,
            {"per_page": PER_PAGE, "page": 1},
        )
        regex = cve_pattern(cve_id)
        links = []
        for pull in pulls or []:
            title = pull.get("title") or ""
            body = pull.get("body") or ""
            url = pull.get("html_url")
            if url and (regex.search(title) or regex.search(body)):
                links.append(url)
        return links

    async def search_repositories(self, client: httpx.AsyncClient, cve_id: str) -> List[str]:
        """Links of recently created repositories whose URL mentions ``cve_id``."""
        log.debug("enricher_search_repos", cve=cve_id)
        languages = " ".join(f"language:{lang}" for lang in REPO_LANGUAGES)
        query = f"{languages} created:>{last_year()} {cve_id}"
        payload = await self._get_json(
            client, cve_id, "repositories", SEARCH_REPOS_PATH,
            {"q": query, "per_page": PER_PAGE, "page": 1},
        )
        regex = cve_pattern(cve_id)
        return [
            repo["html_url"]
            for repo in (payload or {}).get("items", [])
            if repo.get("html_url") and regex.search(repo["html_url"])
        ]

    async def search(self, cve_id: str) -> List[str]:
        """Run both lookups concurrently and merge their links.

        A failing lookup is logged and skipped.
        """
        async with self._http_client_factory() as client:
            results = await asyncio.gather(
                self.search_nuclei_pulls(client, cve_id),
                self.search_repositories(client, cve_id),
                return_exceptions=True,
            )

        links: List[str] = []
        for lookup, result in zip(("nuclei_pulls", "repositories"), results):
            if isinstance(result, BaseException):
                log.warning("enricher_lookup_failed",
                            cve=cve_id,
                            lookup=lookup,
                            error=str(result))
                continue
            for link in result:
                if link not in links:
                    links.append(link)

        log.info("enricher_search_complete", cve=cve_id, link_count=len(links))
        return links
