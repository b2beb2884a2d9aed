from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


def _require_id(row: Dict[str, Any], key: str = "id") -> str:
    value = row.get(key)
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValueError(f"missing '{key}'")
    return text


def _optional_id(row: Dict[str, Any], key: str) -> Optional[str]:
    value = row.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _require_int(row: Dict[str, Any], key: str) -> int:
    value = row.get(key)
    if isinstance(value, bool):
        raise ValueError(f"invalid integer for '{key}': {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid integer for '{key}': {value!r}") from exc


def _coerce_points(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid points value {value!r}") from exc


@dataclass(frozen=True)
class Competition:
    id: str
    title: str
    year: Optional[int] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Competition":
        year = row.get("year")
        return cls(
            id=_require_id(row),
            title=str(row.get("title") or "").strip(),
            year=_require_int(row, "year") if year not in (None, "") else None,
        )


@dataclass(frozen=True)
class Team:
    id: str
    name: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Team":
        return cls(id=_require_id(row), name=str(row.get("name") or "").strip())


@dataclass(frozen=True)
class Skater:
    id: str
    name: str
    team_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Skater":
        return cls(
            id=_require_id(row),
            name=str(row.get("name") or "").strip(),
            team_id=_optional_id(row, "team_id"),
        )


@dataclass(frozen=True)
class Event:
    id: str
    name: str
    event_order: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Event":
        order = row.get("event_order")
        return cls(
            id=_require_id(row),
            name=str(row.get("name") or "").strip(),
            event_order=_require_int(row, "event_order") if order is not None else 0,
        )


@dataclass(frozen=True)
class PointsTableEntry:
    """One cell of the points table: (placement, field size) -> points."""

    placement: int
    field_size: int
    points: float

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "PointsTableEntry":
        return cls(
            placement=_require_int(row, "placement"),
            field_size=_require_int(row, "group_size"),
            points=_coerce_points(row.get("points")),
        )


@dataclass(frozen=True)
class ResultRecord:
    """A placement scored for a team in one event of a competition.

    ``skater_id`` is optional: a result may be recorded without an identified
    individual. ``id`` is ``None`` until the record has been stored.
    """

    competition_id: str
    event_id: str
    team_id: str
    placement: int
    field_size: int
    points: float
    skater_id: Optional[str] = None
    id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ResultRecord":
        return cls(
            id=_optional_id(row, "id"),
            competition_id=_require_id(row, "competition_id"),
            event_id=_require_id(row, "event_id"),
            team_id=_require_id(row, "team_id"),
            skater_id=_optional_id(row, "skater_id"),
            placement=_require_int(row, "placement"),
            field_size=_require_int(row, "group_size"),
            points=_coerce_points(row.get("points")),
        )

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "competition_id": self.competition_id,
            "event_id": self.event_id,
            "team_id": self.team_id,
            "skater_id": self.skater_id,
            "placement": self.placement,
            "group_size": self.field_size,
            "points": self.points,
        }
        if self.id is not None:
            row["id"] = self.id
        return row

    def identity_key(self) -> tuple:
        return (self.competition_id, self.event_id, self.team_id, self.skater_id, self.placement)


@dataclass(frozen=True)
class TeamSummary:
    """Per-team totals for one competition. Derived on request, never stored."""

    team_id: str
    name: str
    total_points: float = 0.0
    starts: int = 0

    @property
    def points_per_start(self) -> float:
        if self.starts == 0:
            return 0.0
        return round(self.total_points / self.starts, 3)
