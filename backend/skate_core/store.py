from __future__ import annotations

import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

import httpx

from .models import Competition, Event, PointsTableEntry, ResultRecord, Skater, Team
from .points import PointsLookup

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DataStore:
    """Reads and writes competition data in Supabase, or local JSON files as fallback.

    The store owns an ``httpx.Client`` when Supabase is configured and no client
    is supplied; call :meth:`close` (or use the store as a context manager) to
    release it.
    """

    def __init__(self, data_dir: Path | None = None, client: httpx.Client | None = None) -> None:
        env_dir = os.getenv("SKATE_DATA_DIR")
        self.data_dir = data_dir or (Path(env_dir) if env_dir else Path(__file__).parent.parent / "data")

        self.supabase_url = os.getenv("SUPABASE_URL", "")
        self.supabase_key = (
            os.getenv("SUPABASE_SERVICE_ROLE_KEY")
            or os.getenv("SB_SERVICE_ROLE_KEY")
            or os.getenv("SUPABASE_SERVICE_KEY")
            or os.getenv("SUPABASE_ANON_KEY")
            or ""
        )
        self.supabase_schema = os.getenv("SUPABASE_SCHEMA", "public")
        self.competition_table = os.getenv("SUPABASE_COMPETITION_TABLE", "Competition")
        self.team_table = os.getenv("SUPABASE_TEAM_TABLE", "Team")
        self.skater_table = os.getenv("SUPABASE_SKATER_TABLE", "Skater")
        self.event_table = os.getenv("SUPABASE_EVENT_TABLE", "Event")
        self.point_table = os.getenv("SUPABASE_POINT_TABLE", "Point")
        self.result_table = os.getenv("SUPABASE_RESULT_TABLE", "Result")

        self._client = client
        self._owns_client = False
        if self._client is None and self.is_remote:
            self._client = httpx.Client(timeout=10.0)
            self._owns_client = True

    @property
    def is_remote(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
        self._client = None
        self._owns_client = False

    def __enter__(self) -> "DataStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Reference data

    def fetch_competitions(self) -> List[Competition]:
        rows = self._select(self.competition_table, order="year.desc,title.asc")
        return self._typed(rows, Competition.from_row, "competition")

    def fetch_competition(self, competition_id: str) -> Optional[Competition]:
        rows = self._select(self.competition_table, filters={"id": competition_id})
        competitions = self._typed(rows, Competition.from_row, "competition")
        return competitions[0] if competitions else None

    def fetch_teams(self) -> List[Team]:
        rows = self._select(self.team_table, order="id.asc")
        return self._typed(rows, Team.from_row, "team")

    def fetch_skaters(self, team_id: str | None = None) -> List[Skater]:
        filters = {"team_id": team_id} if team_id else None
        rows = self._select(self.skater_table, filters=filters, order="name.asc")
        return self._typed(rows, Skater.from_row, "skater")

    def fetch_events(self) -> List[Event]:
        rows = self._select(self.event_table, order="event_order.asc")
        return self._typed(rows, Event.from_row, "event")

    def find_event(self, name: str) -> Optional[Event]:
        rows = self._select(self.event_table, filters={"name": name})
        events = self._typed(rows, Event.from_row, "event")
        return events[0] if events else None

    def load_points_lookup(self) -> PointsLookup:
        rows = self._select(self.point_table, order="group_size.asc,placement.asc")
        return PointsLookup(self._typed(rows, PointsTableEntry.from_row, "points"))

    # ------------------------------------------------------------------
    # Results

    def fetch_results(
        self,
        competition_id: str,
        team_id: str | None = None,
        event_id: str | None = None,
        skater_id: str | None = None,
    ) -> List[ResultRecord]:
        filters = {"competition_id": competition_id}
        if team_id:
            filters["team_id"] = team_id
        if event_id:
            filters["event_id"] = event_id
        if skater_id:
            filters["skater_id"] = skater_id
        rows = self._select(self.result_table, filters=filters)
        return self._typed(rows, ResultRecord.from_row, "result")

    def insert_result(self, record: ResultRecord) -> ResultRecord:
        row = self._insert(self.result_table, record.to_row())
        return ResultRecord.from_row(row)

    def update_result_points(self, result_id: str, points: float) -> ResultRecord:
        row = self._update(self.result_table, result_id, {"points": points})
        if row is None:
            raise ValueError("Result not found")
        return ResultRecord.from_row(row)

    # ---- typed conversion ----------------------------------------------------------

    @staticmethod
    def _typed(rows: List[Dict[str, Any]], factory: Callable[[Dict[str, Any]], T], label: str) -> List[T]:
        typed: List[T] = []
        for row in rows:
            try:
                typed.append(factory(row))
            except ValueError as exc:
                logger.warning("Skipping invalid %s row %r: %s", label, row.get("id"), exc)
        return typed

    # ---- storage primitives ----------------------------------------------------------

    def _select(
        self,
        table: str,
        filters: Dict[str, Any] | None = None,
        order: str | None = None,
    ) -> List[Dict[str, Any]]:
        if not self.is_remote:
            return self._select_local(table, filters, order)

        params: Dict[str, Any] = {"select": "*"}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"
        if order:
            params["order"] = order

        try:
            response = self._http().get(
                self._supabase_endpoint(table),
                params=params,
                headers=self._supabase_headers(include_content_profile=False),
            )
            response.raise_for_status()
            rows = response.json()
        except httpx.HTTPStatusError as exc:
            detail = self._extract_supabase_detail(exc.response) or str(exc)
            raise RuntimeError(f"Failed to read {table} from Supabase: {detail}") from exc
        except httpx.HTTPError as exc:
            raise RuntimeError(f"Failed to read {table} from Supabase: {exc}") from exc

        if not isinstance(rows, list):
            raise RuntimeError(f"Unexpected payload from Supabase {table} endpoint")
        return [row for row in rows if isinstance(row, dict)]

    def _insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        if not self.is_remote:
            return self._insert_local(table, record)

        headers = self._supabase_headers("return=representation")
        headers["Content-Type"] = "application/json"
        try:
            response = self._http().post(
                self._supabase_endpoint(table),
                params={"select": "*"},
                json=record,
                headers=headers,
            )
            response.raise_for_status()
            rows = response.json()
        except httpx.HTTPStatusError as exc:
            detail = self._extract_supabase_detail(exc.response) or str(exc)
            raise RuntimeError(f"Failed to insert into {table}: {detail}") from exc
        except httpx.HTTPError as exc:
            raise RuntimeError(f"Failed to insert into {table}: {exc}") from exc

        if isinstance(rows, list) and rows and isinstance(rows[0], dict):
            return rows[0]
        if isinstance(rows, dict):
            return rows
        raise RuntimeError(f"Unexpected response when inserting into {table}")

    def _update(self, table: str, row_id: str, patch: Dict[str, Any]) -> Dict[str, Any] | None:
        if not self.is_remote:
            return self._update_local(table, row_id, patch)

        headers = self._supabase_headers("return=representation")
        headers["Content-Type"] = "application/json"
        try:
            response = self._http().patch(
                self._supabase_endpoint(table),
                params={"id": f"eq.{row_id}", "select": "*"},
                json=patch,
                headers=headers,
            )
            response.raise_for_status()
            rows = response.json()
        except httpx.HTTPStatusError as exc:
            detail = self._extract_supabase_detail(exc.response) or str(exc)
            raise RuntimeError(f"Failed to update {table}: {detail}") from exc
        except httpx.HTTPError as exc:
            raise RuntimeError(f"Failed to update {table}: {exc}") from exc

        if isinstance(rows, list):
            return rows[0] if rows and isinstance(rows[0], dict) else None
        if isinstance(rows, dict):
            return rows
        return None

    # ---- internal Supabase helpers -------------------------------------------------

    def _http(self) -> httpx.Client:
        if self._client is None:
            raise RuntimeError("DataStore is closed")
        return self._client

    def _supabase_endpoint(self, table: str) -> str:
        return f"{self.supabase_url.rstrip('/')}/rest/v1/{table}"

    def _supabase_headers(self, prefer: str | None = None, include_content_profile: bool = True) -> Dict[str, str]:
        headers = {
            "apikey": self.supabase_key,
            "Authorization": f"Bearer {self.supabase_key}",
            "Accept": "application/json",
        }
        if include_content_profile and self.supabase_schema and self.supabase_schema != "public":
            headers["Content-Profile"] = self.supabase_schema
        if self.supabase_schema and self.supabase_schema != "public":
            headers["Accept-Profile"] = self.supabase_schema
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _extract_supabase_detail(self, response: httpx.Response | None) -> str | None:
        if response is None:
            return None
        try:
            payload = response.json()
        except ValueError:
            text = (response.text or "").strip()
            return text or None

        if isinstance(payload, list) and payload:
            payload = payload[0]
        if isinstance(payload, dict):
            for key in ("message", "detail", "error", "hint", "code"):
                value = payload.get(key)
                if isinstance(value, str) and value.strip():
                    return value.strip()
        return None

    # ---- local JSON fallback -------------------------------------------------------

    def _local_path(self, table: str) -> Path:
        return self.data_dir / f"{table.lower()}_local.json"

    def _select_local(
        self,
        table: str,
        filters: Dict[str, Any] | None,
        order: str | None,
    ) -> List[Dict[str, Any]]:
        data = self._read_json_file(self._local_path(table), [])
        rows = [row for row in data if isinstance(row, dict)]
        for column, value in (filters or {}).items():
            rows = [row for row in rows if row.get(column) is not None and str(row.get(column)) == str(value)]
        if order:
            # Apply the least significant key first so earlier keys dominate.
            for clause in reversed(order.split(",")):
                column, _, direction = clause.partition(".")
                rows.sort(key=_local_sort_key(column), reverse=direction == "desc")
        return rows

    def _insert_local(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        path = self._local_path(table)
        data = self._read_json_file(path, [])
        entry = {"id": str(uuid.uuid4()), **record}
        data.append(entry)
        self._write_json_file(path, data)
        return entry

    def _update_local(self, table: str, row_id: str, patch: Dict[str, Any]) -> Dict[str, Any] | None:
        path = self._local_path(table)
        data = self._read_json_file(path, [])
        for row in data:
            if isinstance(row, dict) and str(row.get("id")) == str(row_id):
                row.update(patch)
                self._write_json_file(path, data)
                return row
        return None

    def _read_json_file(self, path: Path, default: Any) -> Any:
        try:
            if not path.exists():
                return default
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Falling back to default for %s due to read error: %s", path, exc)
            return default

    def _write_json_file(self, path: Path, data: Any) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, sort_keys=True)
        except OSError as exc:
            raise RuntimeError(f"Failed to write local data store {path}") from exc


def _local_sort_key(column: str) -> Callable[[Dict[str, Any]], tuple]:
    def key(row: Dict[str, Any]) -> tuple:
        value = row.get(column)
        if value is None:
            return (1, 0, "")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return (0, 0, value)
        return (0, 1, str(value))

    return key
