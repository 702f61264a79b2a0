"""Anime broadcast season helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

SEASON_NAMES: tuple[str, ...] = ("winter", "spring", "summer", "fall")
SEASON_ORDER = {name: index for index, name in enumerate(SEASON_NAMES)}

_SEASON_LABEL_RE = re.compile(r"^(\d{4})\s*-\s*([A-Za-z]+)$")


@dataclass(frozen=True, slots=True)
class SeasonKey:
    """A broadcast season such as ``2025 - Winter``."""

    year: int
    season: str

    @property
    def label(self) -> str:
        return f"{self.year} - {self.season.capitalize()}"

    @property
    def index_key(self) -> str:
        return f"{self.year}-{self.season}"

    def sort_key(self) -> tuple[int, int]:
        return self.year, SEASON_ORDER.get(self.season, -1)


def season_for_month(month: int) -> str:
    """Winter is Jan-Mar, spring Apr-Jun, summer Jul-Sep, fall Oct-Dec."""

    return SEASON_NAMES[(month - 1) // 3]


def season_from_date(value: str | None) -> str | None:
    """Return the season for an ISO ``YYYY-MM-DD`` date string."""

    if not value or len(value) < 7:
        return None
    try:
        month = int(value[5:7])
    except ValueError:
        return None
    if not 1 <= month <= 12:
        return None
    return season_for_month(month)


def current_season(today: date | None = None) -> SeasonKey:
    today = today or date.today()
    return SeasonKey(today.year, season_for_month(today.month))


def is_future_season(year: int, season: str, today: date | None = None) -> bool:
    """Return ``True`` when the season has not started yet."""

    current = current_season(today)
    name = season.lower()
    if name not in SEASON_ORDER:
        return False
    return (year, SEASON_ORDER[name]) > current.sort_key()


def parse_season_label(value: str | None) -> SeasonKey | None:
    """Parse ``"2025 - Winter"`` into a :class:`SeasonKey`."""

    if not value:
        return None
    match = _SEASON_LABEL_RE.match(value.strip())
    if not match:
        return None
    season = match.group(2).lower()
    if season not in SEASON_ORDER:
        return None
    return SeasonKey(int(match.group(1)), season)
