"""Excel export of a competition: one sheet per team, in ranking order."""

from __future__ import annotations

import io
import re
from typing import Iterable, List, Mapping, Sequence

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from .aggregator import ResultLine, sort_results
from .models import Competition, TeamSummary

HEADERS = ["Event Order", "Event Name", "Skater", "Placement", "Field Size", "Points"]
MAX_SHEET_TITLE = 31
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_FORBIDDEN_TITLE_CHARS = re.compile(r"[\\/?*\[\]:]")


def sheet_title(name: str, team_id: str, taken: set[str]) -> str:
    base = _FORBIDDEN_TITLE_CHARS.sub("_", (name or "").strip()) or f"Team {team_id}"
    title = base[:MAX_SHEET_TITLE]
    counter = 2
    while title.lower() in taken:
        suffix = f" ({counter})"
        title = base[: MAX_SHEET_TITLE - len(suffix)] + suffix
        counter += 1
    taken.add(title.lower())
    return title


def _sheet_rows(lines: Iterable[ResultLine]) -> List[list]:
    rows = []
    for line in sort_results(lines, sort_by="event_order"):
        record = line.record
        rows.append(
            [
                line.event_order if line.event else "",
                line.event_name,
                line.skater_name,
                record.placement,
                record.field_size,
                record.points,
            ]
        )
    if not rows:
        rows.append([""] * len(HEADERS))
    return rows


def build_report(
    summaries: Sequence[TeamSummary],
    lines_by_team: Mapping[str, Sequence[ResultLine]],
) -> Workbook:
    workbook = Workbook()
    taken: set[str] = set()

    if not summaries:
        workbook.active.title = "Results"
        workbook.active.append(HEADERS)
        return workbook

    for index, summary in enumerate(summaries):
        worksheet = workbook.active if index == 0 else workbook.create_sheet()
        worksheet.title = sheet_title(summary.name, summary.team_id, taken)
        worksheet.append(HEADERS)
        for row in _sheet_rows(lines_by_team.get(summary.team_id, ())):
            worksheet.append(row)
        worksheet.freeze_panes = "A2"
        for col_idx in range(1, len(HEADERS) + 1):
            worksheet.column_dimensions[get_column_letter(col_idx)].width = 16
    return workbook


def workbook_bytes(workbook: Workbook) -> bytes:
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def report_filename(competition: Competition) -> str:
    title = competition.title.strip() or f"Competition {competition.id}"
    return f"{title} Results.xlsx"
