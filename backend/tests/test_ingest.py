from __future__ import annotations

from pathlib import Path

import pytest

from skate_core.identity import SKIP_UNKNOWN_TEAM
from skate_core.ingest import IngestionError, StandingsIngestor
from skate_core.models import ResultRecord
from skate_core.standings import StandingsNotFound
from skate_core.store import DataStore

from conftest import read_table

PAGE = """
<h1>Final Standings</h1>
<div>1. Mia Chen, Tech Institute</div>
<div>2. Jane Doe, State University</div>
<div>3. Pat Quinn, Unknown College</div>
<div>4. Zoe Hart, State University</div>
<h1>Panel of Officials</h1>
"""


def test_ingest_records_tracked_teams(seeded_dir: Path) -> None:
    store = DataStore(data_dir=seeded_dir)

    report = StandingsIngestor(store).ingest(PAGE, competition_id="c1", event_name="Junior Ladies")

    assert report.standings.field_size == 4
    assert [(record.team_id, record.skater_id, record.placement, record.points) for record in report.recorded] == [
        ("t2", "s2", 1, 7),
        ("t1", "s1", 2, 5),
        ("t1", None, 4, 0),
    ]
    assert {record.event_id for record in report.recorded} == {"e2"}
    assert {record.field_size for record in report.recorded} == {4}
    assert [(item.entry.competitor_name, item.reason) for item in report.skipped] == [
        ("Pat Quinn", SKIP_UNKNOWN_TEAM),
    ]
    assert len(read_table(seeded_dir, "Result")) == 3


def test_reingesting_the_same_page_does_not_duplicate(seeded_dir: Path) -> None:
    store = DataStore(data_dir=seeded_dir)
    ingestor = StandingsIngestor(store)

    ingestor.ingest(PAGE, competition_id="c1", event_name="Junior Ladies")
    second = ingestor.ingest(PAGE, competition_id="c1", event_name="Junior Ladies")

    assert second.recorded == []
    assert len(second.duplicates) == 3
    assert len(store.fetch_results("c1")) == 3


def test_same_page_for_another_event_is_recorded(seeded_dir: Path) -> None:
    store = DataStore(data_dir=seeded_dir)
    ingestor = StandingsIngestor(store)

    ingestor.ingest(PAGE, competition_id="c1", event_name="Junior Ladies")
    other = ingestor.ingest(PAGE, competition_id="c1", event_name="Pre-Juvenile")

    assert len(other.recorded) == 3
    assert len(store.fetch_results("c1")) == 6


class _FlakyStore(DataStore):
    def insert_result(self, record: ResultRecord) -> ResultRecord:
        if record.placement == 1:
            raise RuntimeError("Failed to insert into Result: connection reset")
        return super().insert_result(record)


def test_failed_write_does_not_block_other_entries(seeded_dir: Path) -> None:
    store = _FlakyStore(data_dir=seeded_dir)

    report = StandingsIngestor(store).ingest(PAGE, competition_id="c1", event_name="Junior Ladies")

    assert [item.entry.placement for item in report.failed] == [1]
    assert [record.placement for record in report.recorded] == [2, 4]


def test_missing_standings_is_fatal(seeded_dir: Path) -> None:
    store = DataStore(data_dir=seeded_dir)

    with pytest.raises(StandingsNotFound):
        StandingsIngestor(store).ingest("<p>No results yet</p>", competition_id="c1", event_name="Junior Ladies")
    assert read_table(seeded_dir, "Result") == []


@pytest.mark.parametrize(
    "competition_id, event_name, message",
    [("c9", "Junior Ladies", "Unknown competition"), ("c1", "Senior Men", "Unknown event")],
)
def test_unknown_competition_or_event(seeded_dir: Path, competition_id: str, event_name: str, message: str) -> None:
    store = DataStore(data_dir=seeded_dir)

    with pytest.raises(IngestionError, match=message):
        StandingsIngestor(store).ingest(PAGE, competition_id=competition_id, event_name=event_name)


def test_tied_unidentified_skaters_are_all_recorded(seeded_dir: Path) -> None:
    page = (
        "<p>Final Standings</p>"
        "<p>1. New One, State University</p>"
        "<p>1. New Two, State University</p>"
        "<p>3. Mia Chen, Tech Institute</p>"
    )
    store = DataStore(data_dir=seeded_dir)
    ingestor = StandingsIngestor(store)

    first = ingestor.ingest(page, competition_id="c1", event_name="Pre-Juvenile")

    assert [(record.team_id, record.skater_id, record.placement) for record in first.recorded] == [
        ("t1", None, 1),
        ("t1", None, 1),
        ("t2", "s2", 3),
    ]
    assert first.duplicates == []

    second = ingestor.ingest(page, competition_id="c1", event_name="Pre-Juvenile")
    assert second.recorded == []
    assert len(second.duplicates) == 3
    assert len(store.fetch_results("c1")) == 3
