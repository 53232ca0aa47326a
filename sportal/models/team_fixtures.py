from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .enums import FetchStatus


class TeamFixtureResult(BaseModel):
    """Fixtures fetched for one team, already filtered to the date window.

    ``FAILED`` and ``EMPTY`` both carry no fixtures; keeping them apart lets
    callers tell a confirmed empty schedule from a fetch that went wrong.
    """

    team: Dict[str, Any]
    status: FetchStatus
    fixtures: List[Dict[str, Any]] = Field(default_factory=list)
    fetched_count: int = 0
    error: Optional[str] = None

    @property
    def team_id(self) -> Optional[str]:
        return self.team.get("id")

    @property
    def failed(self) -> bool:
        return self.status == FetchStatus.FAILED
