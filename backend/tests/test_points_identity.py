from __future__ import annotations

import pytest

from skate_core.identity import SKIP_BLANK_NAME, SKIP_UNKNOWN_TEAM, IdentityResolver
from skate_core.models import PointsTableEntry, Skater, Team
from skate_core.points import MISSING_POINTS, PointsLookup
from skate_core.standings import StandingEntry


@pytest.fixture
def lookup() -> PointsLookup:
    return PointsLookup(
        [
            PointsTableEntry(placement=1, field_size=4, points=7),
            PointsTableEntry(placement=2, field_size=4, points=5),
            PointsTableEntry(placement=1, field_size=6, points=9),
        ]
    )


def test_lookup_exact_match(lookup: PointsLookup) -> None:
    assert lookup.lookup(2, 4) == 5
    assert lookup.points_for(1, 6) == 9


def test_missing_pair_defaults_to_zero_without_interpolation(lookup: PointsLookup) -> None:
    assert lookup.lookup(1, 5) is None
    assert lookup.points_for(1, 5) == MISSING_POINTS == 0
    assert lookup.points_for(3, 4) == 0


def test_duplicate_points_rows_keep_first() -> None:
    lookup = PointsLookup(
        [
            PointsTableEntry(placement=1, field_size=4, points=7),
            PointsTableEntry(placement=1, field_size=4, points=99),
        ]
    )

    assert len(lookup) == 1
    assert lookup.points_for(1, 4) == 7


def test_points_entry_from_row_validates() -> None:
    entry = PointsTableEntry.from_row({"placement": "2", "group_size": 8, "points": "4.5"})
    assert entry == PointsTableEntry(placement=2, field_size=8, points=4.5)

    with pytest.raises(ValueError):
        PointsTableEntry.from_row({"placement": None, "group_size": 8, "points": 1})


def _entry(placement: int, name: str, affiliation: str | None) -> StandingEntry:
    return StandingEntry(placement=placement, competitor_name=name, affiliation=affiliation, field_size=5)


@pytest.fixture
def resolver() -> IdentityResolver:
    teams = [Team(id="t1", name="State University"), Team(id="t2", name="Tech Institute")]
    skaters = [
        Skater(id="s1", name="Jane Doe", team_id="t1"),
        Skater(id="s2", name="Jane Doe", team_id="t2"),
        Skater(id="s3", name="Mia Chen", team_id="t2"),
        Skater(id="s4", name="Ava Park", team_id="t9"),
        Skater(id="s5", name="Kim Lee", team_id="t8"),
        Skater(id="s6", name="Kim Lee", team_id="t7"),
    ]
    return IdentityResolver(teams, skaters)


def test_unknown_affiliation_is_skipped(resolver: IdentityResolver) -> None:
    entries = [
        _entry(1, "Mia Chen", "Tech Institute"),
        _entry(2, "Other Skater", "Unknown College"),
        _entry(3, "No Club", None),
        _entry(4, "Jane Doe", "State University"),
    ]

    resolution = resolver.resolve(entries)

    assert [item.entry.placement for item in resolution.resolved] == [1, 4]
    assert [(item.entry.placement, item.reason) for item in resolution.skipped] == [
        (2, SKIP_UNKNOWN_TEAM),
        (3, SKIP_UNKNOWN_TEAM),
    ]
    assert len(resolution.resolved) <= len(entries)


def test_team_match_is_exact(resolver: IdentityResolver) -> None:
    resolution = resolver.resolve([_entry(1, "Mia Chen", "tech institute")])

    assert resolution.resolved == []


def test_unknown_skater_still_resolves_team(resolver: IdentityResolver) -> None:
    resolution = resolver.resolve([_entry(2, "New Skater", "State University")])

    resolved = resolution.resolved[0]
    assert resolved.team.id == "t1"
    assert resolved.skater is None


def test_skater_on_resolved_team_wins(resolver: IdentityResolver) -> None:
    resolution = resolver.resolve(
        [_entry(1, "Jane Doe", "Tech Institute"), _entry(2, "Jane Doe", "State University")]
    )

    assert [item.skater.id for item in resolution.resolved] == ["s2", "s1"]


def test_unique_name_on_other_team_is_accepted(resolver: IdentityResolver) -> None:
    resolution = resolver.resolve([_entry(1, "Ava Park", "State University")])
    assert resolution.resolved[0].skater.id == "s4"

    ambiguous = resolver.resolve([_entry(1, "Kim Lee", "State University")])
    assert ambiguous.resolved[0].skater is None


def test_blank_name_is_skipped(resolver: IdentityResolver) -> None:
    resolution = resolver.resolve([_entry(1, "", "State University")])

    assert resolution.resolved == []
    assert resolution.skipped[0].reason == SKIP_BLANK_NAME
