"""
Roster Service

Loads member candidates from the external directory and filters them into a
voting event's participant snapshot. The snapshot is taken once, when the
event is created or edited; later directory changes never reach it.
"""

from typing import Any, Iterable, Optional

import httpx
import structlog

from core.exceptions import RosterUnavailableError
from models.documents import ParticipantSnapshot
from models.org import normalize_org_labels, portfolios_for_group
from schemas.voting import RosterCandidate

logger = structlog.get_logger(__name__)


def normalize_candidate(raw: dict[str, Any]) -> Optional[RosterCandidate]:
    """
    Normalize one directory record.

    Accepts snake_case or camelCase keys. Unknown groups and portfolios that
    do not belong to the group are dropped to None. Records without an id
    are skipped.
    """
    user_id = str(raw.get("user_id") or raw.get("userId") or raw.get("id") or "").strip()
    if not user_id:
        return None

    group, portfolio = normalize_org_labels(raw.get("group"), raw.get("portfolio"))
    return RosterCandidate(
        user_id=user_id,
        first_name=(raw.get("first_name") or raw.get("firstName") or "").strip(),
        last_name=(raw.get("last_name") or raw.get("lastName") or "").strip(),
        group=group,
        portfolio=portfolio,
    )


def is_candidate_eligible(
    candidate: RosterCandidate,
    allowed_groups: Iterable[str],
    allowed_portfolios: Iterable[str],
    allow_ungrouped: bool,
) -> bool:
    """
    Decide whether a candidate belongs in a voting roster.

    - No group: eligible only when ungrouped members are allowed.
    - Portfolio selected directly: eligible.
    - Group selected: eligible, unless some of that group's portfolios are
      selected, in which case only members of those portfolios are.
    """
    groups = set(allowed_groups)
    portfolios = set(allowed_portfolios)

    if candidate.group is None:
        return allow_ungrouped

    if candidate.portfolio is not None and candidate.portfolio in portfolios:
        return True

    if candidate.group not in groups:
        return False

    narrowed = portfolios.intersection(portfolios_for_group(candidate.group))
    if narrowed:
        return candidate.portfolio in narrowed
    return True


def filter_roster(
    candidates: Iterable[RosterCandidate],
    allowed_groups: Iterable[str],
    allowed_portfolios: Iterable[str],
    allow_ungrouped: bool,
    previous: Optional[Iterable[ParticipantSnapshot]] = None,
) -> list[ParticipantSnapshot]:
    """
    Build a participant snapshot from eligible candidates.

    New participants start with zero votes; participants already present in
    ``previous`` keep their balance.
    """
    allowed_groups = list(allowed_groups)
    allowed_portfolios = list(allowed_portfolios)
    balances = {p.user_id: p.votes for p in previous or []}

    roster: list[ParticipantSnapshot] = []
    seen: set[str] = set()
    for candidate in candidates:
        if candidate.user_id in seen:
            continue
        if not is_candidate_eligible(candidate, allowed_groups, allowed_portfolios, allow_ungrouped):
            continue
        seen.add(candidate.user_id)
        roster.append(
            ParticipantSnapshot(
                user_id=candidate.user_id,
                first_name=candidate.first_name,
                last_name=candidate.last_name,
                group=candidate.group,
                portfolio=candidate.portfolio,
                votes=balances.get(candidate.user_id, 0),
            )
        )
    return roster


class HttpRosterSource:
    """
    Roster source backed by the member directory's HTTP API.

    Expects ``GET {base_url}/users`` to answer ``{"users": [...]}``.
    """

    PAGE_LIMIT = 500

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.http_client = http_client

    async def _fetch(self, client: httpx.AsyncClient) -> list[dict[str, Any]]:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        response = await client.get(
            f"{self.base_url}/users",
            params={"limit": self.PAGE_LIMIT},
            headers=headers,
        )
        response.raise_for_status()
        data = response.json()
        if isinstance(data, dict):
            return data.get("users", []) or []
        return data or []

    async def list_candidates(self) -> list[RosterCandidate]:
        """
        Fetch and normalize every roster candidate.

        Raises:
            RosterUnavailableError: If the directory cannot be reached
        """
        try:
            if self.http_client is not None:
                records = await self._fetch(self.http_client)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    records = await self._fetch(client)
        except httpx.HTTPStatusError as e:
            logger.error("roster_fetch_failed", status_code=e.response.status_code)
            raise RosterUnavailableError() from e
        except httpx.HTTPError as e:
            logger.error("roster_fetch_failed", error=str(e))
            raise RosterUnavailableError() from e

        candidates = [c for c in (normalize_candidate(r) for r in records if isinstance(r, dict)) if c]
        logger.info("roster_loaded", candidates=len(candidates))
        return candidates
