from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from .models import Event, ResultRecord, Skater, Team, TeamSummary

logger = logging.getLogger(__name__)

SORT_KEYS = ("event_order", "points")


@dataclass(frozen=True)
class ResultLine:
    """A result joined with its event and skater for display and export."""

    record: ResultRecord
    event: Optional[Event] = None
    skater: Optional[Skater] = None

    @property
    def event_order(self) -> int:
        return self.event.event_order if self.event else 0

    @property
    def event_name(self) -> str:
        return self.event.name if self.event else ""

    @property
    def skater_name(self) -> str:
        return self.skater.name if self.skater else ""


def summarize_teams(results: Iterable[ResultRecord], teams: Sequence[Team]) -> List[TeamSummary]:
    """Total points and starts per team, highest total first.

    Every team in *teams* is reported, including teams without results. Teams
    with equal totals keep the order in which they were supplied.
    """

    totals: Dict[str, float] = {team.id: 0.0 for team in teams}
    starts: Dict[str, int] = {team.id: 0 for team in teams}

    for record in results:
        if record.team_id not in totals:
            logger.debug("Ignoring result %s for unknown team %s", record.id, record.team_id)
            continue
        totals[record.team_id] += record.points
        starts[record.team_id] += 1

    summaries: List[TeamSummary] = []
    seen: set[str] = set()
    for team in teams:
        if team.id in seen:
            continue
        seen.add(team.id)
        summaries.append(
            TeamSummary(
                team_id=team.id,
                name=team.name,
                total_points=totals[team.id],
                starts=starts[team.id],
            )
        )

    return sorted(summaries, key=lambda item: item.total_points, reverse=True)


def join_results(
    results: Iterable[ResultRecord],
    events: Iterable[Event],
    skaters: Iterable[Skater],
) -> List[ResultLine]:
    events_by_id = {event.id: event for event in events}
    skaters_by_id = {skater.id: skater for skater in skaters}
    return [
        ResultLine(
            record=record,
            event=events_by_id.get(record.event_id),
            skater=skaters_by_id.get(record.skater_id) if record.skater_id else None,
        )
        for record in results
    ]


def sort_results(
    lines: Iterable[ResultLine],
    sort_by: str = "event_order",
    descending: bool = False,
) -> List[ResultLine]:
    if sort_by not in SORT_KEYS:
        raise ValueError(f"Unknown sort key '{sort_by}'")
    if sort_by == "points":
        return sorted(lines, key=lambda line: line.record.points, reverse=descending)
    return sorted(lines, key=lambda line: line.event_order, reverse=descending)


def group_by_team(lines: Iterable[ResultLine]) -> Dict[str, List[ResultLine]]:
    grouped: Dict[str, List[ResultLine]] = {}
    for line in lines:
        grouped.setdefault(line.record.team_id, []).append(line)
    return grouped
