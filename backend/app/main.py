from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional, Union
from urllib.parse import quote

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from skate_core import (
    Competition,
    DataStore,
    IngestionError,
    ResultLine,
    ResultRecord,
    StandingsIngestor,
    StandingsNotFound,
    join_results,
    sort_results,
    summarize_teams,
)
from skate_core.aggregator import SORT_KEYS, group_by_team
from skate_core.report import XLSX_MEDIA_TYPE, build_report, report_filename, workbook_bytes
from skate_core.standings import fetch_standings_page

logger = logging.getLogger(__name__)

Identifier = Union[int, str]


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = DataStore()
    app.state.store = store
    try:
        yield
    finally:
        store.close()


app = FastAPI(title="Skating Results API", version="1.0.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(RequestValidationError)
async def scrape_validation_handler(request: Request, exc: RequestValidationError):
    if request.url.path == "/scrape-results":
        return JSONResponse({"error": "Invalid request body"}, status_code=400)
    return await request_validation_exception_handler(request, exc)


class ScrapeRequest(BaseModel):
    url: Optional[str] = None
    event_name: Optional[str] = None
    competition_id: Optional[Identifier] = None


class ScrapedEntryModel(BaseModel):
    placement: int
    name: str
    university: Optional[str] = None


class ScrapeResponse(BaseModel):
    success: bool = True
    group_size: int = Field(alias="groupSize")
    entries: List[ScrapedEntryModel]
    recorded: int
    skipped: int
    duplicates: int
    failed: int

    model_config = ConfigDict(populate_by_name=True)


class CompetitionModel(BaseModel):
    id: str
    title: str
    year: Optional[int] = None


class CompetitionListResponse(BaseModel):
    competitions: List[CompetitionModel]


class TeamModel(BaseModel):
    id: str
    name: str


class EventModel(BaseModel):
    id: str
    name: str
    event_order: int = Field(alias="eventOrder")

    model_config = ConfigDict(populate_by_name=True)


class ReferenceResponse(BaseModel):
    teams: List[TeamModel]
    events: List[EventModel]


class TeamSummaryModel(BaseModel):
    team_id: str = Field(alias="teamId")
    name: str
    total_points: float = Field(alias="totalPoints")
    starts: int
    points_per_start: float = Field(alias="pointsPerStart")

    model_config = ConfigDict(populate_by_name=True)


class CompetitionSummaryResponse(BaseModel):
    competition: CompetitionModel
    teams: List[TeamSummaryModel]


class ResultRowModel(BaseModel):
    id: Optional[str] = None
    event_id: str = Field(alias="eventId")
    event_name: str = Field(alias="eventName")
    event_order: Optional[int] = Field(default=None, alias="eventOrder")
    team_id: str = Field(alias="teamId")
    skater_id: Optional[str] = Field(default=None, alias="skaterId")
    skater_name: str = Field(default="", alias="skaterName")
    placement: int
    group_size: int = Field(alias="groupSize")
    points: float

    model_config = ConfigDict(populate_by_name=True)


class ResultListResponse(BaseModel):
    results: List[ResultRowModel]


class ResultCreate(BaseModel):
    team_id: Identifier = Field(alias="teamId")
    event_id: Identifier = Field(alias="eventId")
    skater_id: Optional[Identifier] = Field(default=None, alias="skaterId")
    placement: int = Field(ge=1)
    group_size: int = Field(alias="groupSize", ge=1)

    model_config = ConfigDict(populate_by_name=True)


class PointsUpdate(BaseModel):
    points: float


def get_store(request: Request) -> DataStore:
    return request.app.state.store


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _fetch_timeout() -> float | None:
    raw = os.getenv("STANDINGS_FETCH_TIMEOUT", "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid STANDINGS_FETCH_TIMEOUT %r", raw)
        return None


def _competition_model(competition: Competition) -> CompetitionModel:
    return CompetitionModel(id=competition.id, title=competition.title, year=competition.year)


def _result_row(line: ResultLine) -> ResultRowModel:
    record = line.record
    return ResultRowModel(
        id=record.id,
        event_id=record.event_id,
        event_name=line.event_name,
        event_order=line.event.event_order if line.event else None,
        team_id=record.team_id,
        skater_id=record.skater_id,
        skater_name=line.skater_name,
        placement=record.placement,
        group_size=record.field_size,
        points=record.points,
    )


def _load_competition(store: DataStore, competition_id: str) -> Competition:
    competition = store.fetch_competition(competition_id)
    if competition is None:
        raise HTTPException(status_code=404, detail="Competition not found")
    return competition


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/scrape-results", response_model=ScrapeResponse)
def scrape_results(payload: ScrapeRequest, store: DataStore = Depends(get_store)):
    if not payload.url:
        return _error(400, "Missing url")
    if payload.competition_id is None or str(payload.competition_id).strip() == "":
        return _error(400, "Missing competition_id")

    try:
        markup = fetch_standings_page(payload.url, timeout=_fetch_timeout())
        report = StandingsIngestor(store).ingest(
            markup,
            competition_id=str(payload.competition_id).strip(),
            event_name=(payload.event_name or "").strip(),
        )
    except StandingsNotFound:
        return _error(400, "Standings not found")
    except IngestionError as exc:
        return _error(400, str(exc))
    except Exception as exc:
        logger.exception("Standings ingestion failed for %s", payload.url)
        return _error(500, str(exc))

    return ScrapeResponse(
        groupSize=report.standings.field_size,
        entries=[
            ScrapedEntryModel(
                placement=entry.placement,
                name=entry.competitor_name,
                university=entry.affiliation,
            )
            for entry in report.standings
        ],
        recorded=len(report.recorded),
        skipped=len(report.skipped),
        duplicates=len(report.duplicates),
        failed=len(report.failed),
    )


@app.get("/reference", response_model=ReferenceResponse)
def reference(store: DataStore = Depends(get_store)):
    try:
        teams = store.fetch_teams()
        events = store.fetch_events()
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return ReferenceResponse(
        teams=[TeamModel(id=team.id, name=team.name) for team in teams],
        events=[EventModel(id=event.id, name=event.name, event_order=event.event_order) for event in events],
    )


@app.get("/competitions", response_model=CompetitionListResponse)
def list_competitions(store: DataStore = Depends(get_store)):
    try:
        competitions = store.fetch_competitions()
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return CompetitionListResponse(competitions=[_competition_model(item) for item in competitions])


@app.get("/competitions/{competition_id}/summary", response_model=CompetitionSummaryResponse)
def competition_summary(competition_id: str, store: DataStore = Depends(get_store)):
    try:
        competition = _load_competition(store, competition_id)
        summaries = summarize_teams(store.fetch_results(competition.id), store.fetch_teams())
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return CompetitionSummaryResponse(
        competition=_competition_model(competition),
        teams=[
            TeamSummaryModel(
                team_id=summary.team_id,
                name=summary.name,
                total_points=summary.total_points,
                starts=summary.starts,
                points_per_start=summary.points_per_start,
            )
            for summary in summaries
        ],
    )


@app.get("/competitions/{competition_id}/teams/{team_id}/results", response_model=ResultListResponse)
def team_results(
    competition_id: str,
    team_id: str,
    event_id: Optional[str] = Query(default=None, alias="eventId"),
    skater_id: Optional[str] = Query(default=None, alias="skaterId"),
    sort_by: str = Query(default="event_order", alias="sortBy"),
    descending: bool = Query(default=False),
    store: DataStore = Depends(get_store),
):
    if sort_by not in SORT_KEYS:
        raise HTTPException(status_code=400, detail=f"Unknown sort key '{sort_by}'")
    try:
        competition = _load_competition(store, competition_id)
        results = store.fetch_results(competition.id, team_id=team_id, event_id=event_id, skater_id=skater_id)
        lines = join_results(results, store.fetch_events(), store.fetch_skaters(team_id=team_id))
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    ordered = sort_results(lines, sort_by=sort_by, descending=descending)
    return ResultListResponse(results=[_result_row(line) for line in ordered])


@app.post("/competitions/{competition_id}/results", response_model=ResultRowModel, status_code=201)
def add_result(competition_id: str, payload: ResultCreate, store: DataStore = Depends(get_store)):
    try:
        competition = _load_competition(store, competition_id)
        points = store.load_points_lookup().points_for(payload.placement, payload.group_size)
        record = store.insert_result(
            ResultRecord(
                competition_id=competition.id,
                event_id=str(payload.event_id),
                team_id=str(payload.team_id),
                skater_id=str(payload.skater_id) if payload.skater_id not in (None, "") else None,
                placement=payload.placement,
                field_size=payload.group_size,
                points=points,
            )
        )
        lines = join_results([record], store.fetch_events(), store.fetch_skaters(team_id=record.team_id))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return _result_row(lines[0])


@app.patch("/results/{result_id}", response_model=ResultRowModel)
def update_result_points(result_id: str, payload: PointsUpdate, store: DataStore = Depends(get_store)):
    try:
        record = store.update_result_points(result_id, payload.points)
        lines = join_results([record], store.fetch_events(), store.fetch_skaters(team_id=record.team_id))
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return _result_row(lines[0])


@app.get("/competitions/{competition_id}/report")
def competition_report(competition_id: str, store: DataStore = Depends(get_store)):
    try:
        competition = _load_competition(store, competition_id)
        results = store.fetch_results(competition.id)
        summaries = summarize_teams(results, store.fetch_teams())
        lines = join_results(results, store.fetch_events(), store.fetch_skaters())
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    workbook = build_report(summaries, group_by_team(lines))
    filename = report_filename(competition)
    ascii_name = filename.encode("ascii", "ignore").decode("ascii").replace('"', "'")
    headers = {
        "Content-Disposition": f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}",
    }
    return Response(content=workbook_bytes(workbook), media_type=XLSX_MEDIA_TYPE, headers=headers)
