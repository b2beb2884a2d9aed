"""CLI helper for ingesting one event's final standings from a results page."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Sequence

import httpx

from skate_core.ingest import IngestionError, IngestionReport, StandingsIngestor
from skate_core.standings import StandingsNotFound, fetch_standings_page
from skate_core.store import DataStore


def _format_report(report: IngestionReport) -> str:
    lines = [
        f"Field size: {report.standings.field_size}",
        f"Recorded: {len(report.recorded)}",
        f"Skipped (untracked team): {len(report.skipped)}",
        f"Duplicates: {len(report.duplicates)}",
        f"Failed: {len(report.failed)}",
    ]
    for resolved in report.failed:
        lines.append(f"  - {resolved.entry.placement}. {resolved.entry.competitor_name} ({resolved.team.name})")
    return "\n".join(lines)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("url", help="Results page containing a Final Standings block")
    parser.add_argument("--event", required=True, help="Event name as stored in the Event table")
    parser.add_argument("--competition", required=True, help="Competition id the results belong to")
    parser.add_argument("--timeout", type=float, default=None, help="Fetch timeout in seconds")
    return parser.parse_args(argv)


def main(argv: List[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    args = _parse_args(argv)

    with DataStore() as store:
        try:
            markup = fetch_standings_page(args.url, timeout=args.timeout)
            report = StandingsIngestor(store).ingest(
                markup,
                competition_id=args.competition,
                event_name=args.event,
            )
        except (StandingsNotFound, IngestionError, httpx.HTTPError, RuntimeError) as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    print(_format_report(report))
    return 1 if report.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
