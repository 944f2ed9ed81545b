from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date
    label: str


PRESET_OPTIONS: tuple[tuple[str, str], ...] = (
    ("current_fy", "Current Fiscal Year"),
    ("previous_fy", "Previous Fiscal Year"),
    ("current_quarter", "Current Quarter"),
    ("previous_quarter", "Previous Quarter"),
    ("fiscal_ytd", "Fiscal Year to Date"),
    ("calendar_year", "Calendar Year"),
    ("custom", "Custom Range"),
)

PRESET_KEYS = frozenset(key for key, _ in PRESET_OPTIONS)


def add_months(first_of_month: date, count: int) -> date:
    idx = first_of_month.year * 12 + (first_of_month.month - 1) + count
    return date(idx // 12, idx % 12 + 1, 1)


def month_end(year: int, month: int) -> date:
    if month == 12:
        return date(year + 1, 1, 1) - date.resolution
    return date(year, month + 1, 1) - date.resolution


def _check_month(fiscal_start_month: int) -> None:
    if not 1 <= fiscal_start_month <= 12:
        raise ValueError("Fiscal year start month must be between 1 and 12")


def _label_date(d: date) -> str:
    return f"{d:%b} {d.day}, {d.year}"


def _span(start: date, end: date) -> str:
    return f"({_label_date(start)} – {_label_date(end)})"


def fiscal_year_label(fiscal_start_month: int, fiscal_year_start: date) -> str:
    year = fiscal_year_start.year
    if fiscal_start_month == 1:
        return f"FY {year}"
    return f"FY {year}-{year + 1}"


def fiscal_year_start(fiscal_start_month: int, reference_date: date) -> date:
    _check_month(fiscal_start_month)
    year = reference_date.year
    if reference_date.month < fiscal_start_month:
        year -= 1
    return date(year, fiscal_start_month, 1)


def _fiscal_year_end(start: date) -> date:
    last_month = add_months(start, 11)
    return month_end(last_month.year, last_month.month)


def fiscal_year_range(
    fiscal_start_month: int, reference_date: Optional[date] = None
) -> Period:
    reference_date = reference_date or date.today()
    start = fiscal_year_start(fiscal_start_month, reference_date)
    end = _fiscal_year_end(start)
    label = f"{fiscal_year_label(fiscal_start_month, start)} {_span(start, end)}"
    return Period("current_fy", start, end, label)


def previous_fiscal_year_range(
    fiscal_start_month: int, reference_date: Optional[date] = None
) -> Period:
    reference_date = reference_date or date.today()
    current_start = fiscal_year_start(fiscal_start_month, reference_date)
    previous = fiscal_year_range(fiscal_start_month, add_months(current_start, -12))
    return Period("previous_fy", previous.start, previous.end, previous.label)


def fiscal_quarter_range(
    fiscal_start_month: int, reference_date: Optional[date] = None
) -> Period:
    reference_date = reference_date or date.today()
    fy_start = fiscal_year_start(fiscal_start_month, reference_date)
    months_in = (reference_date.year - fy_start.year) * 12 + (
        reference_date.month - fy_start.month
    )
    quarter = months_in // 3
    start = add_months(fy_start, quarter * 3)
    last_month = add_months(start, 2)
    end = month_end(last_month.year, last_month.month)
    fy_label = fiscal_year_label(fiscal_start_month, fy_start)
    label = f"Q{quarter + 1} {fy_label} {_span(start, end)}"
    return Period("current_quarter", start, end, label)


def previous_fiscal_quarter_range(
    fiscal_start_month: int, reference_date: Optional[date] = None
) -> Period:
    reference_date = reference_date or date.today()
    current = fiscal_quarter_range(fiscal_start_month, reference_date)
    previous = fiscal_quarter_range(fiscal_start_month, add_months(current.start, -3))
    return Period("previous_quarter", previous.start, previous.end, previous.label)


def fiscal_ytd_range(
    fiscal_start_month: int, reference_date: Optional[date] = None
) -> Period:
    reference_date = reference_date or date.today()
    start = fiscal_year_start(fiscal_start_month, reference_date)
    fy_label = fiscal_year_label(fiscal_start_month, start)
    label = f"{fy_label} YTD {_span(start, reference_date)}"
    return Period("fiscal_ytd", start, reference_date, label)


def calendar_year_range(reference_date: Optional[date] = None) -> Period:
    reference_date = reference_date or date.today()
    year = reference_date.year
    start = date(year, 1, 1)
    end = date(year, 12, 31)
    return Period("calendar_year", start, end, f"Calendar Year {year} {_span(start, end)}")


_FISCAL_PRESETS: dict[str, Callable[[int, Optional[date]], Period]] = {
    "current_fy": fiscal_year_range,
    "previous_fy": previous_fiscal_year_range,
    "current_quarter": fiscal_quarter_range,
    "previous_quarter": previous_fiscal_quarter_range,
    "fiscal_ytd": fiscal_ytd_range,
}


def preset_date_range(
    preset: Optional[str],
    fiscal_start_month: int,
    reference_date: Optional[date] = None,
) -> Optional[Period]:
    """Resolve a named preset; ``None`` means use the caller's explicit range."""
    if preset == "calendar_year":
        return calendar_year_range(reference_date)
    resolver = _FISCAL_PRESETS.get(preset or "")
    if resolver is None:
        return None
    return resolver(fiscal_start_month, reference_date)
