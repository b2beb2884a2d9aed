from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from .identity import IdentityResolver, ResolvedEntry, SkippedEntry
from .models import ResultRecord
from .standings import StandingsBlock, parse_standings
from .store import DataStore

logger = logging.getLogger(__name__)


class IngestionError(ValueError):
    """Raised when a request names a competition or event that does not exist."""


@dataclass
class IngestionReport:
    """Outcome of one standings ingestion.

    ``standings`` is what was parsed from the page; the other lists describe
    what happened to each parsed entry when it was written.
    """

    standings: StandingsBlock
    recorded: List[ResultRecord] = field(default_factory=list)
    skipped: List[SkippedEntry] = field(default_factory=list)
    duplicates: List[ResolvedEntry] = field(default_factory=list)
    failed: List[ResolvedEntry] = field(default_factory=list)


class StandingsIngestor:
    def __init__(self, store: DataStore) -> None:
        self.store = store

    def ingest(self, markup: str, *, competition_id: str, event_name: str) -> IngestionReport:
        """Parse a results page and record every entry from a tracked team.

        Writes are independent: a failed insert is logged and counted, and the
        remaining entries are still written. Entries matching a result that
        was already stored for the same competition, event, team, skater and
        placement before this call are not inserted again; ties within one page
        are all recorded.
        """

        standings = parse_standings(markup)

        competition = self.store.fetch_competition(competition_id)
        if competition is None:
            raise IngestionError("Unknown competition")
        event = self.store.find_event(event_name)
        if event is None:
            raise IngestionError("Unknown event")

        resolver = IdentityResolver(self.store.fetch_teams(), self.store.fetch_skaters())
        points = self.store.load_points_lookup()
        resolution = resolver.resolve(standings)

        report = IngestionReport(standings=standings, skipped=list(resolution.skipped))
        existing = {
            record.identity_key()
            for record in self.store.fetch_results(competition.id, event_id=event.id)
        }

        for resolved in resolution.resolved:
            entry = resolved.entry
            record = ResultRecord(
                competition_id=competition.id,
                event_id=event.id,
                team_id=resolved.team.id,
                skater_id=resolved.skater.id if resolved.skater else None,
                placement=entry.placement,
                field_size=entry.field_size,
                points=points.points_for(entry.placement, entry.field_size),
            )
            key = record.identity_key()
            if key in existing:
                report.duplicates.append(resolved)
                continue
            try:
                stored = self.store.insert_result(record)
            except (RuntimeError, ValueError) as exc:
                logger.warning(
                    "Failed to record %s (placement %s) for %s: %s",
                    entry.competitor_name,
                    entry.placement,
                    resolved.team.name,
                    exc,
                )
                report.failed.append(resolved)
                continue
            report.recorded.append(stored)

        logger.info(
            "Ingested %s for %s: %d parsed, %d recorded, %d skipped, %d duplicates, %d failed",
            event.name,
            competition.title,
            standings.field_size,
            len(report.recorded),
            len(report.skipped),
            len(report.duplicates),
            len(report.failed),
        )
        return report
