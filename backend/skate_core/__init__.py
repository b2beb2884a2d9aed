"""Figure skating standings ingestion and team scoring."""

from .aggregator import ResultLine, join_results, sort_results, summarize_teams
from .identity import IdentityResolver
from .ingest import IngestionError, IngestionReport, StandingsIngestor
from .models import Competition, Event, PointsTableEntry, ResultRecord, Skater, Team, TeamSummary
from .points import PointsLookup
from .standings import StandingEntry, StandingsBlock, StandingsNotFound, parse_standings
from .store import DataStore

__all__ = [
    "Competition",
    "DataStore",
    "Event",
    "IdentityResolver",
    "IngestionError",
    "IngestionReport",
    "PointsLookup",
    "PointsTableEntry",
    "ResultLine",
    "ResultRecord",
    "Skater",
    "StandingEntry",
    "StandingsBlock",
    "StandingsIngestor",
    "StandingsNotFound",
    "Team",
    "TeamSummary",
    "join_results",
    "parse_standings",
    "sort_results",
    "summarize_teams",
]
