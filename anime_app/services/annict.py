import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..errors import NotFound, UpstreamUnavailable

logger = logging.getLogger(__name__)

ANNICT_API_URL = "https://api.annict.com/graphql"
DEFAULT_TIMEOUT = 10
DEFAULT_LIMIT = 10
MAX_LIMIT = 50

_WORK_FIELDS = """
    nodes {
        annictId
        title
        seasonYear
        image {
            recommendedImageUrl
        }
    }
    pageInfo {
        hasNextPage
        endCursor
    }
"""

SEARCH_WORKS_QUERY = """
query SearchWorks($title: String!, $limit: Int!, $after: String) {
    searchWorks(
        titles: [$title],
        first: $limit,
        after: $after,
        orderBy: { field: SEASON, direction: DESC }
    ) {%s}
}
""" % _WORK_FIELDS

WORK_BY_ID_QUERY = """
query WorkById($annictId: Int!) {
    searchWorks(annictIds: [$annictId], first: 1) {%s}
}
""" % _WORK_FIELDS


@dataclass
class AnnictWork:
    annict_id: int
    title: str
    season_year: Optional[int] = None
    image_url: Optional[str] = None

    @classmethod
    def from_node(cls, node: Dict[str, Any]) -> "AnnictWork":
        try:
            image = node.get("image") or {}
            season_year = node.get("seasonYear")
            if season_year is not None and (isinstance(season_year, bool) or not isinstance(season_year, int)):
                raise ValueError(f"bad seasonYear {season_year!r}")
            return cls(
                annict_id=int(node["annictId"]),
                title=node.get("title") or "",
                season_year=season_year,
                # Annict sends "" when a work has no image
                image_url=image.get("recommendedImageUrl") or None,
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Malformed Annict work node %r: %s", node, exc)
            raise UpstreamUnavailable("annict returned a malformed work") from exc

    def to_dict(self) -> Dict[str, Any]:
        return {
            "annict_id": self.annict_id,
            "title": self.title,
            "season_year": self.season_year,
            "image_url": self.image_url,
        }


def clamp_limit(limit: Optional[int]) -> int:
    if not limit or limit <= 0:
        return DEFAULT_LIMIT
    return min(limit, MAX_LIMIT)


def _nodes(result: Dict[str, Any]) -> List[Any]:
    nodes = result.get("nodes") or []
    if not isinstance(nodes, list):
        raise UpstreamUnavailable("annict returned malformed nodes")
    return [n for n in nodes if n]


class AnnictClient:
    """
    Read-only client for the Annict GraphQL API.

    Every call is one POST with a bounded timeout. Failures are not retried
    here; they surface as UpstreamUnavailable (or NotFound for a lookup that
    matched nothing).
    """

    def __init__(
        self,
        token: str,
        endpoint: str = ANNICT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        http: Optional[requests.Session] = None,
    ):
        self.token = token
        self.endpoint = endpoint
        self.timeout = timeout
        self.http = http or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _execute(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = self.http.post(
                self.endpoint,
                json={"query": query, "variables": variables},
                headers=self._headers(),
                timeout=self.timeout,
            )
            resp.raise_for_status()
            payload = resp.json() or {}
        except requests.RequestException as exc:
            logger.warning("Annict request failed: %s", exc)
            raise UpstreamUnavailable(f"annict request failed: {exc}") from exc
        except ValueError as exc:
            logger.warning("Annict returned a non-JSON body: %s", exc)
            raise UpstreamUnavailable("annict returned an undecodable response") from exc

        if not isinstance(payload, dict):
            raise UpstreamUnavailable("annict returned a malformed response")

        errors = payload.get("errors") or []
        if errors:
            first = errors[0] if isinstance(errors, list) and isinstance(errors[0], dict) else {}
            message = first.get("message") or "unknown error"
            logger.warning("Annict GraphQL error: %s", message)
            raise UpstreamUnavailable(f"annict graphql error: {message}")

        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise UpstreamUnavailable("annict returned a malformed response")
        result = data.get("searchWorks")
        if result is None:
            return {}
        if not isinstance(result, dict):
            raise UpstreamUnavailable("annict returned a malformed response")
        return result

    def search_works(
        self, keyword: str, limit: Optional[int] = None, after: Optional[str] = None
    ) -> Tuple[List[AnnictWork], Optional[str]]:
        """
        Search works by title. Returns (works, next_cursor); next_cursor is
        None when the provider reports no further page.
        """
        variables: Dict[str, Any] = {"title": keyword, "limit": clamp_limit(limit)}
        if after:
            variables["after"] = after

        result = self._execute(SEARCH_WORKS_QUERY, variables)
        works = [AnnictWork.from_node(n) for n in _nodes(result)]

        page_info = result.get("pageInfo") or {}
        if not isinstance(page_info, dict):
            raise UpstreamUnavailable("annict returned malformed page info")
        next_cursor = page_info.get("endCursor") if page_info.get("hasNextPage") else None
        return works, next_cursor or None

    def get_work(self, annict_id: int) -> AnnictWork:
        result = self._execute(WORK_BY_ID_QUERY, {"annictId": annict_id})
        nodes = _nodes(result)
        if not nodes:
            raise NotFound(f"anime {annict_id} not found")
        return AnnictWork.from_node(nodes[0])
