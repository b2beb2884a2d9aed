from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Generator, List

import pytest

_SUPABASE_ENV = (
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SB_SERVICE_ROLE_KEY",
    "SUPABASE_SERVICE_KEY",
    "SUPABASE_ANON_KEY",
    "SUPABASE_SCHEMA",
    "SKATE_DATA_DIR",
    "STANDINGS_FETCH_TIMEOUT",
)


@pytest.fixture(autouse=True)
def reset_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    for name in _SUPABASE_ENV:
        monkeypatch.delenv(name, raising=False)
    yield


def write_table(data_dir: Path, table: str, rows: List[Dict[str, Any]]) -> None:
    (data_dir / f"{table.lower()}_local.json").write_text(json.dumps(rows))


def read_table(data_dir: Path, table: str) -> List[Dict[str, Any]]:
    path = data_dir / f"{table.lower()}_local.json"
    if not path.exists():
        return []
    return json.loads(path.read_text())


@pytest.fixture
def seeded_dir(tmp_path: Path) -> Path:
    write_table(tmp_path, "Competition", [
        {"id": "c1", "title": "Eastern Sectionals", "year": 2025},
        {"id": "c2", "title": "Intercollegiate Open", "year": 2024},
    ])
    write_table(tmp_path, "Team", [
        {"id": "t1", "name": "State University"},
        {"id": "t2", "name": "Tech Institute"},
        {"id": "t3", "name": "River College"},
    ])
    write_table(tmp_path, "Skater", [
        {"id": "s1", "name": "Jane Doe", "team_id": "t1"},
        {"id": "s2", "name": "Mia Chen", "team_id": "t2"},
        {"id": "s3", "name": "Ava Park", "team_id": "t1"},
    ])
    write_table(tmp_path, "Event", [
        {"id": "e2", "name": "Junior Ladies", "event_order": 2},
        {"id": "e1", "name": "Pre-Juvenile", "event_order": 1},
    ])
    write_table(tmp_path, "Point", [
        {"placement": 1, "group_size": 4, "points": 7},
        {"placement": 2, "group_size": 4, "points": 5},
        {"placement": 3, "group_size": 4, "points": 3},
        {"placement": 1, "group_size": 3, "points": 6},
    ])
    return tmp_path
