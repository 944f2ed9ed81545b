import logging
from datetime import datetime
from typing import Callable, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from sqlalchemy.orm import Session

from config import get_settings
from database import read_session
from exports import (
    CONTENT_TYPES,
    content_disposition,
    report_filename,
    season_filename,
)
from models import Organization
from pdf_export import render_report_pdf, render_season_pdf
from schemas import ReportParamsInvalid, parse_report_params
from seasons import SeasonsReportData
from services import (
    BudgetService,
    RecordNotFound,
    ReportService,
    SeasonService,
    get_organization,
    now_local,
)
from xlsx_export import render_report_xlsx, render_season_xlsx

logger = logging.getLogger(__name__)

app = FastAPI(title="Ledger Reports")

REPORT_RENDERERS: dict[str, Callable[..., bytes]] = {
    "xlsx": render_report_xlsx,
    "pdf": render_report_pdf,
}
SEASON_RENDERERS: dict[str, Callable[..., bytes]] = {
    "xlsx": render_season_xlsx,
    "pdf": render_season_pdf,
}


@app.on_event("startup")
def startup_event():
    logging.basicConfig(level=get_settings().log_level)


def get_db():
    with read_session() as db:
        yield db


def error_response(
    status_code: int, message: str, details: Optional[dict] = None
) -> JSONResponse:
    content: dict[str, object] = {"error": message}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def file_response(payload: bytes, filename: str, extension: str) -> StreamingResponse:
    return StreamingResponse(
        iter([payload]),
        media_type=CONTENT_TYPES[extension],
        headers={
            "Content-Disposition": content_disposition(filename),
            "Content-Length": str(len(payload)),
        },
    )


def optional_seasons(db: Session, org: Organization) -> Optional[SeasonsReportData]:
    if not org.seasons_enabled:
        return None
    try:
        return SeasonService(db).fetch_seasons_summary(org.id)
    except Exception:
        logger.exception(
            f"seasons_summary_failed: org={org.id} proceeding without seasons data"
        )
        return None


def optional_budget(db: Session, org: Organization, budget_id: Optional[str]):
    if not budget_id:
        return None
    try:
        return BudgetService(db).fetch_budget_report(org.id, budget_id)
    except RecordNotFound:
        raise
    except Exception:
        logger.exception(
            f"budget_report_failed: org={org.id} budget={budget_id} "
            "proceeding without budget data"
        )
        return None


def export_report(org_id: str, request: Request, db: Session, extension: str) -> Response:
    try:
        params = parse_report_params(request.query_params)
    except ReportParamsInvalid as exc:
        return error_response(400, "Invalid parameters", exc.field_errors)

    try:
        org = get_organization(db, org_id)
    except RecordNotFound as exc:
        return error_response(404, exc.message)

    try:
        start_time = datetime.now()
        data = ReportService(db).fetch_report_data(org.id, params)
        budget = optional_budget(db, org, params.budget_id)
        seasons = optional_seasons(db, org)
        payload = REPORT_RENDERERS[extension](data, budget, seasons)
        duration = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"report_generated: org={org.id} format={extension} "
            f"period={params.start_date}to{params.end_date} "
            f"rows={len(data.transactions)} size_bytes={len(payload)} "
            f"duration={duration:.2f}s"
        )
    except RecordNotFound as exc:
        return error_response(404, exc.message)
    except Exception:
        logger.exception(f"report_export_failed: org={org.id} format={extension}")
        return error_response(500, "Failed to generate report")

    filename = report_filename(
        data.organization_name, params.start_date, params.end_date, extension
    )
    return file_response(payload, filename, extension)


def export_season(org_id: str, season_id: str, db: Session, extension: str) -> Response:
    try:
        org = get_organization(db, org_id)
        data = SeasonService(db).fetch_season_report(org.id, season_id)
    except RecordNotFound as exc:
        return error_response(404, exc.message)

    try:
        payload = SEASON_RENDERERS[extension](data)
    except Exception:
        logger.exception(f"season_export_failed: season={season_id} format={extension}")
        return error_response(500, "Failed to generate report")

    logger.info(
        f"season_report_generated: season={season_id} format={extension} "
        f"enrollments={len(data.enrollments)} size_bytes={len(payload)}"
    )
    filename = season_filename(org.name, data.season_name, now_local().date(), extension)
    return file_response(payload, filename, extension)


@app.get("/organizations/{org_id}/reports/export")
def export_report_xlsx(org_id: str, request: Request, db: Session = Depends(get_db)):
    return export_report(org_id, request, db, "xlsx")


@app.get("/organizations/{org_id}/reports/export-pdf")
def export_report_pdf(org_id: str, request: Request, db: Session = Depends(get_db)):
    return export_report(org_id, request, db, "pdf")


@app.get("/organizations/{org_id}/seasons/{season_id}/export")
def export_season_xlsx(org_id: str, season_id: str, db: Session = Depends(get_db)):
    return export_season(org_id, season_id, db, "xlsx")


@app.get("/organizations/{org_id}/seasons/{season_id}/export/pdf")
def export_season_pdf(org_id: str, season_id: str, db: Session = Depends(get_db)):
    return export_season(org_id, season_id, db, "pdf")
