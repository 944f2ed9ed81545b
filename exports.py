import re
from datetime import date

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_CONTENT_TYPE = "application/pdf"

CONTENT_TYPES = {"xlsx": XLSX_CONTENT_TYPE, "pdf": PDF_CONTENT_TYPE}

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9]")
_SEASON_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_-]")
SEASON_NAME_LIMIT = 50


class ReportRenderError(RuntimeError):
    """A workbook or PDF could not be serialised."""


def sanitize_filename_part(name: str) -> str:
    return _UNSAFE_RE.sub("", name or "")


def _check_extension(extension: str) -> str:
    extension = extension.lstrip(".").lower()
    if extension not in CONTENT_TYPES:
        raise ValueError(f"Unsupported export format: {extension}")
    return extension


def report_filename(org_name: str, start: date, end: date, extension: str) -> str:
    ext = _check_extension(extension)
    safe = sanitize_filename_part(org_name) or "Organization"
    return f"{safe}_Transactions_{start.isoformat()}_to_{end.isoformat()}.{ext}"


def _season_part(name: str) -> str:
    return _SEASON_UNSAFE_RE.sub("_", name or "")[:SEASON_NAME_LIMIT]


def season_filename(
    org_name: str, season_name: str, generated_on: date, extension: str
) -> str:
    ext = _check_extension(extension)
    return (
        f"{_season_part(org_name)}_Season_{_season_part(season_name)}_"
        f"{generated_on.isoformat()}.{ext}"
    )


def content_disposition(filename: str) -> str:
    return f'attachment; filename="{filename}"'
