import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from budgets import BudgetReportData
from exports import ReportRenderError
from layout import (
    budget_layout,
    format_date,
    format_percent,
    format_timestamp,
    format_variance,
    report_header,
    season_lines,
    status_label,
    summary_layout,
    tone_for,
    transaction_rows,
)
from money import format_currency
from reports import ReportData
from seasons import SeasonReportData, SeasonsReportData

if TYPE_CHECKING:  # pragma: no cover
    from weasyprint import HTML, CSS  # noqa: F401

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

LEDGER_COLUMNS = (
    ("Txn Date", ""),
    ("Account", ""),
    ("Check #", ""),
    ("Vendor", ""),
    ("Description", ""),
    ("Category", ""),
    ("Line Memo", ""),
    ("Income", "cell-right"),
    ("Expense", "cell-right"),
    ("Status", ""),
    ("Cleared", ""),
    ("Balance", "cell-right"),
)

REPORT_CSS = """
    @page {
        size: letter landscape;
        margin: 14mm 14mm 16mm 14mm;
        @bottom-right {
            content: "Page " counter(page) " of " counter(pages);
            color: #808080;
            font-size: 8pt;
        }
    }
    :root {
        --text: #0f172a;
        --muted: #666666;
        --border: #e2e8f0;
        --header-bg: #e2e8f0;
        --account-bg: #dbeafe;
        --status-bg: #f1f5f9;
        --expense-bg: #fef2f2;
        --banner: #1e293b;
        --stripe: #f8fafc;
        --positive: #16a34a;
        --negative: #dc2626;
    }

    html, body {
        margin: 0;
        padding: 0;
    }

    body {
        font-family: Helvetica, Arial, sans-serif;
        font-size: 7pt;
        line-height: 1.3;
        color: var(--text);
    }

    .header {
        margin-bottom: 5mm;
    }

    .title {
        font-size: 16pt;
        font-weight: 700;
    }

    .subtitle {
        font-size: 12pt;
        margin-top: 1mm;
    }

    .range {
        font-size: 9pt;
        font-style: italic;
        margin-top: 1mm;
    }

    .meta {
        font-size: 9pt;
        font-style: italic;
        color: var(--muted);
    }

    .page {
        page-break-before: always;
    }

    .page-title {
        font-size: 14pt;
        font-weight: 700;
        margin-bottom: 2mm;
    }

    .banner {
        background: var(--banner);
        color: #ffffff;
        font-size: 14pt;
        font-weight: 700;
        text-align: center;
        padding: 3px 0;
    }

    .banner-subtitle {
        text-align: center;
        font-size: 8pt;
        color: var(--muted);
        margin: 2mm 0 4mm 0;
    }

    .split {
        display: flex;
        align-items: flex-start;
        gap: 32px;
    }

    .split > .col {
        flex: 1;
    }

    .section-title {
        background: var(--banner);
        color: #ffffff;
        font-size: 9pt;
        font-weight: 700;
        padding: 2px 6px;
        margin-top: 3mm;
    }

    table {
        width: 100%;
        border-collapse: collapse;
        margin-top: 2mm;
    }

    thead th {
        text-align: left;
        font-weight: 700;
        background: var(--header-bg);
        padding: 3px;
        border: 1px solid var(--border);
    }

    tbody td {
        padding: 3px;
        border: 1px solid var(--border);
        vertical-align: top;
    }

    .summary-table td {
        font-size: 8pt;
        border: none;
    }

    .summary-table tr:nth-child(even) td {
        background: var(--stripe);
    }

    .account-header td {
        background: var(--account-bg);
        font-weight: 700;
        font-size: 8pt;
    }

    .status-header td {
        background: var(--status-bg);
        font-weight: 700;
        font-style: italic;
        padding-left: 10px;
    }

    .balance-row .label,
    .status-subtotal .label {
        font-style: italic;
    }

    .balance-row .cell-right {
        font-weight: 700;
        font-style: italic;
    }

    .account-total .label,
    .grand-total td,
    .bold td,
    td.bold {
        font-weight: 700;
    }

    .grand-total td {
        border: none;
        font-size: 8pt;
    }

    .placeholder td {
        text-align: center;
        font-style: italic;
        color: var(--muted);
    }

    .budget-section td {
        font-weight: 700;
        font-size: 8pt;
    }

    .positive-section td {
        background: var(--account-bg);
    }

    .negative-section td {
        background: var(--expense-bg);
    }

    .net-row td {
        border: none;
        font-size: 9pt;
    }

    .italic {
        font-style: italic;
    }

    .indent {
        padding-left: 12px;
    }

    .cell-right {
        text-align: right;
        white-space: nowrap;
    }

    .cell-center {
        text-align: center;
    }

    .positive {
        color: var(--positive);
    }

    .negative {
        color: var(--negative);
    }

    .neutral {
        color: var(--text);
    }

    .pill {
        display: inline-block;
        padding: 1px 6px;
        border-radius: 999px;
        font-weight: 700;
        background: var(--status-bg);
    }

    .pill-paid {
        color: var(--positive);
    }

    .pill-unpaid,
    .pill-partial {
        color: var(--negative);
    }
"""


def _tone_class(cents: int) -> str:
    return tone_for(cents).value


def _row_kind(row: object) -> str:
    return type(row).__name__


def build_environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
    )
    env.filters["currency"] = format_currency
    env.filters["date"] = format_date
    env.filters["timestamp"] = format_timestamp
    env.filters["status"] = status_label
    env.filters["tone"] = _tone_class
    env.filters["variance"] = format_variance
    env.filters["percent"] = format_percent
    env.globals["row_kind"] = _row_kind
    return env


templates = build_environment()


def render_report_html(
    data: ReportData,
    budget: Optional[BudgetReportData] = None,
    seasons: Optional[SeasonsReportData] = None,
) -> str:
    return templates.get_template("report.html").render(
        header=report_header(data),
        columns=LEDGER_COLUMNS,
        rows=transaction_rows(data),
        summary=summary_layout(data),
        start_date=data.start_date,
        end_date=data.end_date,
        budget=budget_layout(budget) if budget is not None else None,
        seasons=season_lines(seasons) if seasons is not None else None,
    )


def render_season_html(data: SeasonReportData) -> str:
    return templates.get_template("season_report.html").render(report=data)


def html_to_pdf(html: str, kind: str) -> bytes:
    try:
        from weasyprint import CSS, HTML
        from weasyprint.text.fonts import FontConfiguration
    except Exception as exc:
        raise ReportRenderError(
            "PDF export requires WeasyPrint system dependencies; install them for your OS and retry."
        ) from exc

    start_time = datetime.now()
    try:
        font_config = FontConfiguration()
        css = CSS(string=REPORT_CSS, font_config=font_config)
        pdf_bytes = HTML(string=html, base_url=str(TEMPLATES_DIR)).write_pdf(
            stylesheets=[css], font_config=font_config
        )
    except Exception as exc:
        logger.exception(f"pdf_render_failed: kind={kind}")
        raise ReportRenderError(f"Failed to write {kind} PDF") from exc
    pdf_duration = (datetime.now() - start_time).total_seconds()
    logger.info(
        f"pdf_rendered: kind={kind} pdf_size_bytes={len(pdf_bytes)} "
        f"pdf_duration={pdf_duration:.2f}s"
    )
    return pdf_bytes


def render_report_pdf(
    data: ReportData,
    budget: Optional[BudgetReportData] = None,
    seasons: Optional[SeasonsReportData] = None,
) -> bytes:
    try:
        html = render_report_html(data, budget, seasons)
    except Exception as exc:
        logger.exception("pdf_render_failed: kind=report")
        raise ReportRenderError("Failed to lay out report PDF") from exc
    return html_to_pdf(html, "report")


def render_season_pdf(data: SeasonReportData) -> bytes:
    try:
        html = render_season_html(data)
    except Exception as exc:
        logger.exception("pdf_render_failed: kind=season")
        raise ReportRenderError("Failed to lay out season PDF") from exc
    return html_to_pdf(html, "season")
