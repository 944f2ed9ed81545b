import logging
from io import BytesIO
from typing import Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from budgets import BudgetReportData
from exports import ReportRenderError
from layout import (
    AccountHeaderRow,
    BalanceRow,
    BudgetRow,
    DataRow,
    GrandTotalRow,
    PlaceholderRow,
    StatusHeaderRow,
    SubtotalRow,
    Tone,
    budget_layout,
    format_date,
    format_timestamp,
    report_header,
    season_lines,
    status_label,
    summary_layout,
    tone_for,
    transaction_rows,
)
from money import cents_to_dollars
from reports import ReportData
from seasons import SeasonReportData, SeasonsReportData

logger = logging.getLogger(__name__)

CURRENCY_FORMAT = "$#,##0.00"
PERCENT_FORMAT = "0.0%"
WHOLE_PERCENT_FORMAT = "0%"

POSITIVE = "FF16A34A"
NEGATIVE = "FFDC2626"
MUTED = "FF666666"

HEADER_FILL = PatternFill(fill_type="solid", start_color="FFE2E8F0", end_color="FFE2E8F0")
ACCOUNT_FILL = PatternFill(fill_type="solid", start_color="FFDBEAFE", end_color="FFDBEAFE")
STATUS_FILL = PatternFill(fill_type="solid", start_color="FFF1F5F9", end_color="FFF1F5F9")
EXPENSE_FILL = PatternFill(fill_type="solid", start_color="FFFEF2F2", end_color="FFFEF2F2")
HEADER_BORDER = Border(bottom=Side(style="thin", color="FF94A3B8"))

TONE_COLORS = {Tone.positive: POSITIVE, Tone.negative: NEGATIVE}

TRANSACTION_COLUMNS = (
    ("Transaction Date", 15),
    ("Created Date", 15),
    ("Account", 20),
    ("Check #", 10),
    ("Vendor", 20),
    ("Description", 40),
    ("Category", 30),
    ("Line Memo", 25),
    ("Income", 15),
    ("Expense", 15),
    ("Status", 12),
    ("Cleared Date", 15),
    ("Running Balance", 15),
)
LAST_COLUMN = get_column_letter(len(TRANSACTION_COLUMNS))
LABEL_COL, INCOME_COL, EXPENSE_COL, BALANCE_COL = 7, 9, 10, 13


def _set_widths(ws: Worksheet, widths: Sequence[int]) -> None:
    for idx, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = width


def _money(
    ws: Worksheet,
    row: int,
    col: int,
    cents: int,
    tone: Optional[Tone] = None,
    bold: bool = False,
    italic: bool = False,
):
    cell = ws.cell(row=row, column=col, value=cents_to_dollars(cents))
    cell.number_format = CURRENCY_FORMAT
    color = TONE_COLORS.get(tone) if tone else None
    if color or bold or italic:
        cell.font = Font(color=color, bold=bold, italic=italic)
    return cell


def _merged_line(
    ws: Worksheet,
    text: str,
    font: Font,
    last_column: str = LAST_COLUMN,
    fill: Optional[PatternFill] = None,
) -> int:
    ws.append([text])
    row = ws.max_row
    ws.merge_cells(f"A{row}:{last_column}{row}")
    cell = ws.cell(row=row, column=1)
    cell.font = font
    if fill is not None:
        cell.fill = fill
    return row


def _open_row(ws: Worksheet) -> int:
    # append([]) would not register in max_row
    ws.append([None])
    return ws.max_row


def _header_row(ws: Worksheet, headers: Sequence[str]) -> int:
    ws.append(list(headers))
    row = ws.max_row
    for col in range(1, len(headers) + 1):
        cell = ws.cell(row=row, column=col)
        cell.font = Font(bold=True)
        cell.fill = HEADER_FILL
        cell.border = HEADER_BORDER
    return row


def _write_transactions_sheet(ws: Worksheet, data: ReportData) -> None:
    _set_widths(ws, [width for _, width in TRANSACTION_COLUMNS])
    header = report_header(data)
    _merged_line(ws, header.title, Font(size=14, bold=True))
    _merged_line(ws, header.subtitle, Font(size=12))
    _merged_line(ws, header.range_line, Font(italic=True))
    _merged_line(ws, header.generated_line, Font(italic=True, color=MUTED))
    ws.append([])
    _header_row(ws, [title for title, _ in TRANSACTION_COLUMNS])
    ws.freeze_panes = "A7"

    for item in transaction_rows(data):
        if isinstance(item, PlaceholderRow):
            _merged_line(ws, item.message, Font(italic=True, color=MUTED))
        elif isinstance(item, AccountHeaderRow):
            _merged_line(ws, item.label, Font(bold=True), fill=ACCOUNT_FILL)
        elif isinstance(item, StatusHeaderRow):
            _merged_line(
                ws, f"  {item.label}", Font(bold=True, italic=True), fill=STATUS_FILL
            )
        elif isinstance(item, BalanceRow):
            row = _open_row(ws)
            ws.cell(row=row, column=LABEL_COL, value=item.label).font = Font(italic=True)
            _money(ws, row, BALANCE_COL, item.balance_cents, bold=True, italic=True)
        elif isinstance(item, DataRow):
            _write_data_row(ws, item)
        elif isinstance(item, SubtotalRow):
            row = _open_row(ws)
            label_font = Font(bold=True) if item.is_account_total else Font(italic=True)
            ws.cell(row=row, column=LABEL_COL, value=item.label).font = label_font
            if item.income_cents:
                _money(ws, row, INCOME_COL, item.income_cents, Tone.positive)
            if item.expense_cents:
                _money(ws, row, EXPENSE_COL, item.expense_cents, Tone.negative)
        elif isinstance(item, GrandTotalRow):
            row = _open_row(ws)
            ws.cell(row=row, column=LABEL_COL, value=item.label).font = Font(bold=True)
            if item.income_cents:
                _money(ws, row, INCOME_COL, item.income_cents, Tone.positive, bold=True)
            if item.expense_cents:
                _money(ws, row, EXPENSE_COL, item.expense_cents, Tone.negative, bold=True)


def _write_data_row(ws: Worksheet, item: DataRow) -> None:
    ws.append(
        [
            format_date(item.transaction_date),
            format_date(item.created_at),
            item.account_name,
            item.check_number,
            item.vendor,
            item.description,
            item.category_label,
            item.memo,
            None,
            None,
            status_label(item.status) if item.status else "",
            format_date(item.cleared_at),
            None,
        ]
    )
    row = ws.max_row
    if item.income_cents is not None:
        _money(ws, row, INCOME_COL, item.income_cents, Tone.positive)
    if item.expense_cents is not None:
        _money(ws, row, EXPENSE_COL, item.expense_cents, Tone.negative)
    if item.running_balance_cents is not None:
        _money(ws, row, BALANCE_COL, item.running_balance_cents)


def _write_summary_sheet(ws: Worksheet, data: ReportData) -> None:
    _set_widths(ws, [35, 20])
    for section in summary_layout(data).sections:
        ws.append([section.title])
        ws.cell(row=ws.max_row, column=1).font = Font(size=13, bold=True)
        ws.append([])
        for line in section.lines:
            label = f"  {line.label}" if line.indent else line.label
            ws.append([label])
            row = ws.max_row
            if line.bold or line.italic:
                ws.cell(row=row, column=1).font = Font(bold=line.bold, italic=line.italic)
            if line.amount_cents is not None:
                _money(
                    ws,
                    row,
                    2,
                    line.amount_cents,
                    line.tone,
                    bold=line.bold,
                    italic=line.italic,
                )
        ws.append([])


def _write_budget_sheet(ws: Worksheet, budget: BudgetReportData) -> None:
    layout = budget_layout(budget)
    _set_widths(ws, [40, 16, 16, 16, 16, 16, 16])
    _merged_line(ws, layout.title, Font(size=14, bold=True), last_column="G")
    _merged_line(ws, layout.period_line, Font(italic=True), last_column="G")
    ws.append([])

    if layout.combined_rows:
        _header_row(
            ws,
            [
                "Category",
                "Inc. Budgeted",
                "Inc. Actual",
                "Exp. Budgeted",
                "Exp. Actual",
                "Net Budgeted",
                "Net Actual",
            ],
        )
        for line in layout.combined_rows:
            ws.append([line.category_name])
            row = ws.max_row
            bold = line.is_total
            if bold:
                ws.cell(row=row, column=1).font = Font(bold=True)
            _money(ws, row, 2, line.income_budgeted_cents, Tone.positive, bold=bold)
            _money(ws, row, 3, line.income_actual_cents, Tone.positive, bold=bold)
            _money(ws, row, 4, line.expense_budgeted_cents, Tone.negative, bold=bold)
            _money(ws, row, 5, line.expense_actual_cents, Tone.negative, bold=bold)
            for col, cents in ((6, line.net_budgeted_cents), (7, line.net_actual_cents)):
                _money(ws, row, col, cents, tone_for(cents), bold=bold)
        ws.append([])

    if layout.sections:
        _header_row(ws, ["Category", "Budgeted", "Actual", "Variance ($)", "Variance (%)"])
        for section in layout.sections:
            fill = ACCOUNT_FILL if section.tone == Tone.positive else EXPENSE_FILL
            _merged_line(ws, section.title, Font(bold=True), last_column="E", fill=fill)
            for line in section.rows:
                _write_budget_row(ws, line)
        ws.append([])

    _write_budget_row(ws, layout.net_row)


def _write_budget_row(ws: Worksheet, line: BudgetRow) -> None:
    ws.append([line.category_name])
    row = ws.max_row
    bold = line.is_subtotal
    if bold:
        ws.cell(row=row, column=1).font = Font(bold=True)
    _money(ws, row, 2, line.budgeted_cents, bold=bold)
    _money(ws, row, 3, line.actual_cents, bold=bold)
    _money(ws, row, 4, line.variance_cents, line.variance_tone, bold=bold)
    if line.variance_percent is not None:
        cell = ws.cell(row=row, column=5, value=line.variance_percent / 100)
        cell.number_format = WHOLE_PERCENT_FORMAT
    elif not line.is_subtotal:
        ws.cell(row=row, column=5, value="--")


def _write_seasons_sheet(ws: Worksheet, seasons: SeasonsReportData) -> None:
    headers = [
        "Season",
        "Dates",
        "Base Fee",
        "Enrolled",
        "Expected",
        "Collected",
        "Outstanding",
        "Collection Rate",
    ]
    _set_widths(ws, [30, 26, 14, 10, 14, 14, 14, 16])
    _header_row(ws, headers)
    ws.freeze_panes = "A2"
    for line in season_lines(seasons):
        totals = line.totals
        ws.append([line.label, line.period, None, totals.enrolled_count])
        row = ws.max_row
        bold = line.is_total
        if bold:
            ws.cell(row=row, column=1).font = Font(bold=True)
        if line.base_fee_cents is not None:
            _money(ws, row, 3, line.base_fee_cents)
        _money(ws, row, 5, totals.total_expected_cents, bold=bold)
        _money(ws, row, 6, totals.total_collected_cents, Tone.positive, bold=bold)
        _money(ws, row, 7, totals.total_outstanding_cents, Tone.negative, bold=bold)
        cell = ws.cell(row=row, column=8, value=totals.collection_rate / 100)
        cell.number_format = PERCENT_FORMAT


def _workbook_bytes(wb: Workbook, kind: str) -> bytes:
    buffer = BytesIO()
    try:
        wb.save(buffer)
    except Exception as exc:
        logger.exception(f"xlsx_render_failed: kind={kind}")
        raise ReportRenderError(f"Failed to write {kind} workbook") from exc
    payload = buffer.getvalue()
    logger.info(
        f"xlsx_rendered: kind={kind} sheets={len(wb.sheetnames)} "
        f"size_bytes={len(payload)}"
    )
    return payload


def build_report_workbook(
    data: ReportData,
    budget: Optional[BudgetReportData] = None,
    seasons: Optional[SeasonsReportData] = None,
) -> Workbook:
    wb = Workbook()
    transactions = wb.active
    transactions.title = "Transactions"
    _write_transactions_sheet(transactions, data)
    _write_summary_sheet(wb.create_sheet("Summary"), data)
    if budget is not None:
        _write_budget_sheet(wb.create_sheet("Budget vs Actuals"), budget)
    if seasons is not None:
        _write_seasons_sheet(wb.create_sheet("Seasons"), seasons)
    return wb


def render_report_xlsx(
    data: ReportData,
    budget: Optional[BudgetReportData] = None,
    seasons: Optional[SeasonsReportData] = None,
) -> bytes:
    try:
        wb = build_report_workbook(data, budget, seasons)
    except Exception as exc:
        logger.exception("xlsx_render_failed: kind=report")
        raise ReportRenderError("Failed to lay out report workbook") from exc
    return _workbook_bytes(wb, "report")


def _write_season_summary_sheet(ws: Worksheet, data: SeasonReportData) -> None:
    _set_widths(ws, [25, 20])
    ws.append([data.organization_name])
    ws.cell(row=1, column=1).font = Font(bold=True, size=14)
    ws.append([f"Season Report: {data.season_name}"])
    ws.cell(row=2, column=1).font = Font(bold=True, size=12)
    ws.append([f"{format_date(data.start_date)} to {format_date(data.end_date)}"])
    ws.append([f"Generated: {format_timestamp(data.generated_at)}"])
    ws.append([])
    ws.append(["Summary"])
    ws.cell(row=ws.max_row, column=1).font = Font(bold=True, size=12)

    summary = data.summary
    ws.append(["Total Enrolled:", summary.total_enrolled])
    for label, cents in (
        ("Total Fees Expected:", summary.total_fees_expected_cents),
        ("Total Collected:", summary.total_collected_cents),
        ("Total Outstanding:", summary.total_outstanding_cents),
    ):
        ws.append([label])
        _money(ws, ws.max_row, 2, cents)
    ws.append(["Collection Rate:", summary.collection_rate / 100])
    ws.cell(row=ws.max_row, column=2).number_format = PERCENT_FORMAT


def _write_enrollment_sheet(ws: Worksheet, data: SeasonReportData) -> None:
    headers = [
        "Student Name",
        "Guardian",
        "Contact",
        "Fee",
        "Total Paid",
        "Balance Due",
        "Status",
    ]
    _set_widths(ws, [25, 25, 25, 12, 12, 12, 12])
    _header_row(ws, headers)
    ws.freeze_panes = "A2"
    for enrollment in data.enrollments:
        ws.append(
            [
                enrollment.student_name,
                enrollment.guardian_name or "",
                enrollment.contact_email or enrollment.contact_phone or "",
                None,
                None,
                None,
                enrollment.payment_status.value.capitalize(),
            ]
        )
        row = ws.max_row
        _money(ws, row, 4, enrollment.fee_amount_cents)
        _money(ws, row, 5, enrollment.total_paid_cents)
        _money(ws, row, 6, enrollment.balance_due_cents)


def _write_payment_sheet(ws: Worksheet, data: SeasonReportData) -> None:
    _set_widths(ws, [25, 15, 12, 15, 30])
    _header_row(ws, ["Student Name", "Payment Date", "Amount", "Method", "Notes"])
    ws.freeze_panes = "A2"
    for enrollment in data.enrollments:
        for payment in enrollment.payments:
            ws.append(
                [
                    enrollment.student_name,
                    format_date(payment.payment_date),
                    None,
                    payment.payment_method or "",
                    payment.notes or "",
                ]
            )
            _money(ws, ws.max_row, 3, payment.amount_cents)


def build_season_workbook(data: SeasonReportData) -> Workbook:
    wb = Workbook()
    summary = wb.active
    summary.title = "Season Summary"
    _write_season_summary_sheet(summary, data)
    _write_enrollment_sheet(wb.create_sheet("Enrollment Detail"), data)
    _write_payment_sheet(wb.create_sheet("Payment Detail"), data)
    return wb


def render_season_xlsx(data: SeasonReportData) -> bytes:
    try:
        wb = build_season_workbook(data)
    except Exception as exc:
        logger.exception("xlsx_render_failed: kind=season")
        raise ReportRenderError("Failed to lay out season workbook") from exc
    return _workbook_bytes(wb, "season")
