from __future__ import annotations

import math
from dataclasses import dataclass

import pandas as pd

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

PLACEHOLDER = "..."
UNKNOWN_MONTH = "???"


@dataclass(frozen=True)
class TimelineConfig:
    start_year: int = 2026
    start_month: int = 1
    end_year: int = 2026
    end_month: int = 12

    @classmethod
    def from_dict(cls, data: dict | None) -> "TimelineConfig":
        if not data:
            return cls()
        default = cls()
        return cls(
            start_year=int(data.get("startYear", default.start_year)),
            start_month=int(data.get("startMonth", default.start_month)),
            end_year=int(data.get("endYear", default.end_year)),
            end_month=int(data.get("endMonth", default.end_month)),
        )

    def to_dict(self) -> dict:
        return {
            "startYear": self.start_year,
            "startMonth": self.start_month,
            "endYear": self.end_year,
            "endMonth": self.end_month,
        }


@dataclass(frozen=True)
class TimelineColumn:
    label: str
    month: int
    year: int
    index: int


def month_name(month: int) -> str:
    if 1 <= month <= 12:
        return MONTH_NAMES[month - 1]
    return UNKNOWN_MONTH


def total_columns(config: TimelineConfig) -> int:
    count = (config.end_year - config.start_year) * 12 + (config.end_month - config.start_month) + 1
    return max(count, 0)


def build_timeline_columns(config: TimelineConfig) -> list[TimelineColumn]:
    columns: list[TimelineColumn] = []
    month = config.start_month
    year = config.start_year
    for index in range(1, total_columns(config) + 1):
        columns.append(TimelineColumn(label=f"{month_name(month)} {year % 100:02d}", month=month, year=year, index=index))
        month += 1
        if month > 12:
            month = 1
            year += 1
    return columns


def date_to_view_index(month: float, year: int, config: TimelineConfig) -> float:
    """Position of (month, year) on the timeline, 1 being the configured start month.

    No validation is done: months outside 1..12 and dates outside the window
    produce indices below 1 or past the last column, and fractional months
    produce fractional indices.
    """
    return (year - config.start_year) * 12 + (month - config.start_month) + 1


def view_index_to_date(index: float, config: TimelineConfig) -> tuple[float, int]:
    whole = math.floor(index)
    fraction = index - whole
    months_from_epoch = config.start_year * 12 + (config.start_month - 1) + (whole - 1)
    year, month_zero = divmod(months_from_epoch, 12)
    return month_zero + 1 + fraction, int(year)


def _to_number(value: object) -> float:
    if value is None:
        return math.nan
    number = pd.to_numeric(value, errors="coerce")
    if pd.isna(number) or not math.isfinite(number):
        return math.nan
    return float(number)


def _period_label(fraction: float) -> str:
    if fraction < 0.4:
        return "Early"
    if fraction < 0.7:
        return "Mid"
    return "Late"


def _split_month_value(value: float) -> tuple[int, float]:
    whole = math.floor(value)
    # 1.4 - 1 is 0.3999... in binary
    return int(whole), round(value - whole, 9)


def _format_year(year: float) -> str:
    return str(int(year)) if float(year).is_integer() else str(year)


def format_fuzzy_date(value: object, year: object) -> str:
    number = _to_number(value)
    year_number = _to_number(year)
    if not number or math.isnan(number) or not year_number or math.isnan(year_number):
        return PLACEHOLDER

    month, fraction = _split_month_value(number)
    return f"{_period_label(fraction)} {month_name(month)} {_format_year(year_number)}"


def format_view_position(value: object, columns: list[TimelineColumn]) -> str:
    """Label an absolute view index with its column, e.g. ``"Mid Mar 26"``.

    Indices that match no column are labelled with the last column.
    """
    number = _to_number(value)
    if not number or math.isnan(number) or not columns:
        return PLACEHOLDER

    index, fraction = _split_month_value(number)
    column = next((c for c in columns if c.index == index), columns[-1])
    return f"{_period_label(fraction)} {column.label}"
