"""
Report Exports

Turns ledger read results into downloadable files:
- csv: UTF-8 with a byte-order mark, entry rows followed by summary rows
- spreadsheet: an .xlsx workbook with Income and Summary sheets
- document: a petition to the tax office as PDF (see petition.py)

Formatters only format. Totals and headroom come from the ledger via
ExportSummary; nothing here re-derives business values.
"""

import csv
import io
from datetime import date
from decimal import Decimal
from typing import Any, Optional

import structlog
from openpyxl import Workbook
from openpyxl.styles import Font
from pydantic import BaseModel, Field

from exemption_tracker.export.petition import render_petition_pdf
from exemption_tracker.models.income import (
    DOMESTIC_CURRENCY,
    ExportKind,
    IncomeEntry,
    UserProfile,
)


logger = structlog.get_logger()

ENTRY_COLUMNS = ["Date", "Description", "Amount", "Currency", "Rate", "Domestic Value"]

REPORT_BASENAME = "exemption-income-report"


class ExportError(Exception):
    """An export could not be produced."""
    pass


class ExportSummary(BaseModel):
    """Ledger figures printed alongside the entries."""

    entry_count: int = Field(..., ge=0)
    total_domestic_value: Decimal
    threshold: Decimal
    remaining_headroom: Decimal

    @classmethod
    def from_ledger(cls, ledger) -> "ExportSummary":
        status = ledger.threshold_status()
        return cls(
            entry_count=len(ledger),
            total_domestic_value=status.total,
            threshold=status.threshold,
            remaining_headroom=status.headroom,
        )


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


def _entry_row(entry: IncomeEntry) -> list:
    return [
        entry.date.isoformat(),
        entry.description,
        str(entry.amount),
        entry.currency.value,
        str(entry.exchange_rate),
        _money(entry.domestic_value),
    ]


def _summary_rows(summary: ExportSummary) -> list[tuple[str, Any]]:
    return [
        ("Entry count", summary.entry_count),
        (f"Total ({DOMESTIC_CURRENCY})", summary.total_domestic_value),
        (f"Exemption threshold ({DOMESTIC_CURRENCY})", summary.threshold),
        (f"Remaining ({DOMESTIC_CURRENCY})", summary.remaining_headroom),
    ]


def format_csv(entries: list[IncomeEntry], summary: ExportSummary) -> bytes:
    """Entry rows, a blank line, then the label/value summary rows."""
    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer)
    writer.writerow(ENTRY_COLUMNS)
    for entry in entries:
        writer.writerow(_entry_row(entry))
    writer.writerow([])
    for label, value in _summary_rows(summary):
        writer.writerow([label, _money(value) if isinstance(value, Decimal) else value])
    return buffer.getvalue().encode("utf-8-sig")


def format_spreadsheet(entries: list[IncomeEntry], summary: ExportSummary) -> bytes:
    workbook = Workbook()

    income = workbook.active
    income.title = "Income"
    income.append(ENTRY_COLUMNS)
    for cell in income[1]:
        cell.font = Font(bold=True)
    for entry in entries:
        income.append([
            entry.date,
            entry.description,
            entry.amount,
            entry.currency.value,
            entry.exchange_rate,
            entry.domestic_value,
        ])
    for row in income.iter_rows(min_row=2, min_col=6, max_col=6):
        for cell in row:
            cell.number_format = "#,##0.00"

    sheet = workbook.create_sheet("Summary")
    sheet.append(["Metric", "Value"])
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for label, value in _summary_rows(summary):
        sheet.append([label, value])

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def format_entries(
    entries: list[IncomeEntry],
    kind: ExportKind,
    summary: ExportSummary,
    profile: Optional[UserProfile] = None,
) -> bytes:
    """
    Render entries in the requested format.

    Args:
        entries: Ledger entries in display order
        kind: csv, spreadsheet or document
        summary: Figures from the same ledger snapshot
        profile: Required for the document (petition) export

    Raises:
        ExportError: Unknown kind, missing profile, or a rendering failure
    """
    try:
        kind = ExportKind(kind)
    except ValueError as e:
        raise ExportError(f"Unknown export kind: {kind}") from e

    if kind == ExportKind.DOCUMENT and profile is None:
        raise ExportError("A user profile is required to generate the petition")

    try:
        if kind == ExportKind.CSV:
            content = format_csv(entries, summary)
        elif kind == ExportKind.SPREADSHEET:
            content = format_spreadsheet(entries, summary)
        else:
            content = render_petition_pdf(profile, summary)
    except ExportError:
        raise
    except Exception as e:
        logger.error("export_render_failed", kind=kind.value, error=str(e))
        raise ExportError(f"Failed to generate {kind.value} export: {e}") from e

    logger.info(
        "export_rendered",
        kind=kind.value,
        entry_count=len(entries),
        size_bytes=len(content),
    )
    return content


def export_filename(
    kind: ExportKind,
    profile: Optional[UserProfile] = None,
    on: Optional[date] = None,
) -> str:
    """
    Download name for an export.

    Reports: exemption-income-report-YYYY-MM-DD.xlsx / .csv
    Petition: petition_<national id>_YYYY-MM-DD.pdf
    """
    kind = ExportKind(kind)
    stamp = (on or date.today()).isoformat()

    if kind == ExportKind.CSV:
        return f"{REPORT_BASENAME}-{stamp}.csv"
    if kind == ExportKind.SPREADSHEET:
        return f"{REPORT_BASENAME}-{stamp}.xlsx"

    if profile is None:
        raise ExportError("A user profile is required to name the petition")
    return f"petition_{profile.national_id}_{stamp}.pdf"
