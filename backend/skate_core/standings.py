"""Extraction of ranked entries from an IJS results page.

The page is treated as unstructured text: markup is reduced to its text nodes,
the "Final Standings" block is cut out and every line that starts with
``<n>.`` is read as one ranked competitor.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple

import httpx
from bs4 import BeautifulSoup

START_ANCHOR = "Final Standings"
END_ANCHOR = "Panel of Officials"
USER_AGENT = "skating-results-bot/1.0"

_RANKED_LINE_RE = re.compile(r"^([1-9]\d*)\.")
_RANK_PREFIX_RE = re.compile(r"^[1-9]\d*\.\s*")
_NON_CONTENT_TAGS = ("script", "style", "template")


class StandingsNotFound(ValueError):
    """Raised when a page has no "Final Standings" block."""


@dataclass(frozen=True)
class StandingEntry:
    placement: int
    competitor_name: str
    affiliation: Optional[str]
    field_size: int


@dataclass(frozen=True)
class StandingsBlock:
    entries: Tuple[StandingEntry, ...] = field(default_factory=tuple)

    @property
    def field_size(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[StandingEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


def flatten_markup(markup: str) -> str:
    """Return the visible text of *markup*, one text node per line, entities decoded."""

    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(_NON_CONTENT_TAGS):
        tag.decompose()
    return soup.get_text("\n")


def extract_block(text: str) -> str:
    start = text.find(START_ANCHOR)
    if start == -1:
        raise StandingsNotFound("Standings not found")
    end = text.find(END_ANCHOR, start)
    return text[start:] if end == -1 else text[start:end]


def ranked_lines(block: str) -> list[str]:
    lines = (line.strip() for line in block.splitlines())
    return [line for line in lines if line and _RANKED_LINE_RE.match(line)]


def split_entry_line(line: str) -> Tuple[int, str, Optional[str]]:
    """Split ``"3. Jane Doe, State University"`` into its three parts."""

    match = _RANKED_LINE_RE.match(line)
    if match is None:
        raise ValueError(f"not a ranked entry line: {line!r}")
    placement = int(match.group(1))
    remainder = _RANK_PREFIX_RE.sub("", line, count=1)
    name, _, affiliation = remainder.partition(",")
    return placement, name.strip(), affiliation.strip() or None


def parse_standings(markup: str) -> StandingsBlock:
    """Parse the ranked entries of a results page.

    Every entry of one call shares the same field size: the number of ranked
    lines found in the block. Raises :class:`StandingsNotFound` when the page
    has no start anchor.
    """

    lines = ranked_lines(extract_block(flatten_markup(markup)))
    field_size = len(lines)
    entries = []
    for line in lines:
        placement, name, affiliation = split_entry_line(line)
        entries.append(
            StandingEntry(
                placement=placement,
                competitor_name=name,
                affiliation=affiliation,
                field_size=field_size,
            )
        )
    return StandingsBlock(entries=tuple(entries))


def fetch_standings_page(
    url: str,
    *,
    timeout: float | None = None,
    client: httpx.Client | None = None,
) -> str:
    """Download a results page. Without *timeout* the httpx default applies."""

    headers = {"User-Agent": USER_AGENT}
    request_kwargs = {"headers": headers}
    if timeout is not None:
        request_kwargs["timeout"] = timeout

    if client is not None:
        response = client.get(url, **request_kwargs)
        response.raise_for_status()
        return response.text

    with httpx.Client(follow_redirects=True) as owned:
        response = owned.get(url, **request_kwargs)
        response.raise_for_status()
        return response.text
