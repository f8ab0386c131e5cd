"""Team membership lookup used for team-addressed notifications."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Protocol

import httpx
import structlog

from opsnotify.core.config import TeamsConfig
from opsnotify.notifications.exceptions import TeamLookupError

logger = structlog.get_logger(__name__)


class TeamDirectory(Protocol):
    """Resolves a team id to its member user ids."""

    async def members(self, team_id: int) -> list[int]: ...


class StaticTeamDirectory:
    """In-memory membership table."""

    def __init__(self, teams: Mapping[int, Iterable[int]] | None = None) -> None:
        self._teams: dict[int, list[int]] = {
            team_id: list(dict.fromkeys(users)) for team_id, users in (teams or {}).items()
        }

    def add_member(self, team_id: int, user_id: int) -> None:
        members = self._teams.setdefault(team_id, [])
        if user_id not in members:
            members.append(user_id)

    def remove_member(self, team_id: int, user_id: int) -> None:
        members = self._teams.get(team_id)
        if members and user_id in members:
            members.remove(user_id)

    async def members(self, team_id: int) -> list[int]:
        return list(self._teams.get(team_id, ()))


def _parse_members(data: Any) -> list[int]:
    """Accept ``[1, 2]``, ``[{"userId": 1}, ...]`` or ``{"members": [...]}``."""
    if isinstance(data, dict):
        data = data.get("members", [])
    if not isinstance(data, list):
        raise TeamLookupError(f"Unexpected membership payload: {type(data).__name__}")

    user_ids: list[int] = []
    for entry in data:
        if isinstance(entry, dict):
            entry = entry.get("userId", entry.get("user_id"))
        try:
            user_ids.append(int(entry))
        except (TypeError, ValueError):
            continue
    return list(dict.fromkeys(user_ids))


class HttpTeamDirectory:
    """Fetches membership from the host's ``GET {base}/teams/{id}/members``."""

    def __init__(self, config: TeamsConfig) -> None:
        self._base_url = config.membership_url.rstrip("/")
        self._timeout = config.request_timeout_secs
        self._http: httpx.AsyncClient | None = None

    @property
    def connected(self) -> bool:
        return self._http is not None and not self._http.is_closed

    async def connect(self) -> None:
        self._http = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def members(self, team_id: int) -> list[int]:
        if self._http is None:
            await self.connect()
        assert self._http is not None

        url = f"{self._base_url}/teams/{team_id}/members"
        try:
            response = await self._http.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TeamLookupError(
                f"Membership API returned {exc.response.status_code} for team {team_id}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TeamLookupError(f"Membership request failed for team {team_id}: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise TeamLookupError(f"Invalid JSON from membership API for team {team_id}") from exc

        members = _parse_members(body)
        logger.debug("team_members_resolved", team_id=team_id, count=len(members))
        return members
