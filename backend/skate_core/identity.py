from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .models import Skater, Team
from .standings import StandingEntry

logger = logging.getLogger(__name__)

SKIP_UNKNOWN_TEAM = "unknown_team"
SKIP_BLANK_NAME = "blank_name"


@dataclass(frozen=True)
class ResolvedEntry:
    entry: StandingEntry
    team: Team
    skater: Optional[Skater] = None


@dataclass(frozen=True)
class SkippedEntry:
    entry: StandingEntry
    reason: str


@dataclass
class Resolution:
    resolved: List[ResolvedEntry] = field(default_factory=list)
    skipped: List[SkippedEntry] = field(default_factory=list)


class IdentityResolver:
    """Match parsed competitors to known teams and skaters.

    Teams are matched on the exact affiliation string. Entries from
    affiliations outside the tracked team set are skipped without error. A
    skater that cannot be identified still yields a team-level result.
    """

    def __init__(self, teams: Iterable[Team], skaters: Iterable[Skater]) -> None:
        self._teams: Dict[str, Team] = {}
        for team in teams:
            self._teams.setdefault(team.name, team)

        self._skaters_by_name: Dict[str, List[Skater]] = {}
        for skater in skaters:
            self._skaters_by_name.setdefault(skater.name, []).append(skater)

    def team_for(self, affiliation: Optional[str]) -> Optional[Team]:
        if not affiliation:
            return None
        return self._teams.get(affiliation)

    def skater_for(self, name: str, team: Team) -> Optional[Skater]:
        candidates = self._skaters_by_name.get(name, [])
        for skater in candidates:
            if skater.team_id == team.id:
                return skater
        # Fall back to a name that identifies exactly one skater.
        if len(candidates) == 1:
            return candidates[0]
        return None

    def resolve(self, entries: Iterable[StandingEntry]) -> Resolution:
        resolution = Resolution()
        for entry in entries:
            if not entry.competitor_name:
                resolution.skipped.append(SkippedEntry(entry, SKIP_BLANK_NAME))
                continue
            team = self.team_for(entry.affiliation)
            if team is None:
                resolution.skipped.append(SkippedEntry(entry, SKIP_UNKNOWN_TEAM))
                continue
            skater = self.skater_for(entry.competitor_name, team)
            if skater is None:
                logger.debug("No skater named %r on %s", entry.competitor_name, team.name)
            resolution.resolved.append(ResolvedEntry(entry=entry, team=team, skater=skater))
        return resolution
