"""Tests for report and petition exports."""

import csv
import io
from datetime import date
from decimal import Decimal

import pytest
from openpyxl import load_workbook

from exemption_tracker.export import (
    ENTRY_COLUMNS,
    ExportError,
    ExportSummary,
    export_filename,
    format_entries,
    render_petition_text,
)
from exemption_tracker.models.income import ExportKind


@pytest.fixture
def filled_ledger(ledger, stripe_payment, paypal_payment):
    ledger.add_entry(stripe_payment)
    ledger.add_entry(paypal_payment)
    return ledger


@pytest.fixture
def summary(filled_ledger):
    return ExportSummary.from_ledger(filled_ledger)


class TestExportSummary:
    """Tests for the summary built from a ledger."""

    def test_from_ledger(self, summary):
        assert summary.entry_count == 2
        assert summary.total_domestic_value == Decimal("28175")
        assert summary.threshold == Decimal("67000")
        assert summary.remaining_headroom == Decimal("38825")


class TestCsvExport:
    """Tests for the CSV report."""

    def test_bom_header_and_rows(self, filled_ledger, summary):
        """Test the byte-order mark, the header and two-decimal values."""
        content = format_entries(filled_ledger.entries(), ExportKind.CSV, summary)

        assert content.startswith(b"\xef\xbb\xbf")
        rows = list(csv.reader(io.StringIO(content.decode("utf-8-sig"))))
        assert rows[0] == ENTRY_COLUMNS
        assert rows[1] == ["2025-02-01", "PayPal client payment", "300", "EUR", "37.05", "11115.00"]
        assert rows[2][5] == "17060.00"

    def test_summary_rows_follow_entries(self, filled_ledger, summary):
        """Test that threshold and headroom are appended after a blank row."""
        content = format_entries(filled_ledger.entries(), ExportKind.CSV, summary)

        rows = list(csv.reader(io.StringIO(content.decode("utf-8-sig"))))
        assert rows[3] == []
        assert rows[4:] == [
            ["Entry count", "2"],
            ["Total (TRY)", "28175.00"],
            ["Exemption threshold (TRY)", "67000.00"],
            ["Remaining (TRY)", "38825.00"],
        ]

    def test_description_with_comma_is_quoted(self, ledger, summary):
        """Test that the CSV writer quotes embedded commas."""
        entry = ledger.add_entry({
            "date": "2025-03-01",
            "description": "Upwork, March",
            "amount": "10",
            "currency": "USD",
            "exchange_rate": "34",
        })
        content = format_entries([entry], "csv", summary)
        assert b'"Upwork, March"' in content


class TestSpreadsheetExport:
    """Tests for the xlsx report."""

    def test_income_and_summary_sheets(self, filled_ledger, summary):
        """Test that both sheets are written."""
        content = format_entries(filled_ledger.entries(), ExportKind.SPREADSHEET, summary)
        workbook = load_workbook(io.BytesIO(content))

        assert workbook.sheetnames == ["Income", "Summary"]

        income = list(workbook["Income"].iter_rows(values_only=True))
        assert list(income[0]) == ENTRY_COLUMNS
        assert len(income) == 3
        assert income[1][1] == "PayPal client payment"
        assert income[1][5] == pytest.approx(11115)

        summary_rows = {row[0]: row[1] for row in workbook["Summary"].iter_rows(min_row=2, values_only=True)}
        assert summary_rows["Entry count"] == 2
        assert summary_rows["Total (TRY)"] == pytest.approx(28175)
        assert summary_rows["Remaining (TRY)"] == pytest.approx(38825)


class TestPetitionExport:
    """Tests for the tax office petition."""

    def test_petition_text(self, profile, summary):
        """Test that the letter names the office, the filer and the limit."""
        text = render_petition_text(profile, summary, on=date(2025, 3, 1))

        assert "To the Kadikoy Tax Office" in text
        assert "Name: Ayse Yilmaz" in text
        assert "National ID: 12345678901" in text
        assert "SUBJECT: Foreign-Sourced Income Declaration" in text
        assert "Software and services export" in text
        assert "Sole proprietorship" in text
        assert "Article 23" in text
        assert "67,000 TRY" in text
        assert "28,175.00 TRY" in text
        assert "Date: 01.03.2025" in text

    def test_petition_pdf(self, filled_ledger, summary, profile):
        """Test that a PDF document is produced."""
        content = format_entries(filled_ledger.entries(), ExportKind.DOCUMENT, summary, profile=profile)
        assert content.startswith(b"%PDF")

    def test_petition_escapes_markup(self, filled_ledger, summary, profile):
        """Test that user text with markup characters still renders."""
        odd = profile.model_copy(update={"address": "A & B <Street>"})
        content = format_entries(filled_ledger.entries(), ExportKind.DOCUMENT, summary, profile=odd)
        assert content.startswith(b"%PDF")

    def test_petition_requires_profile(self, filled_ledger, summary):
        """Test that the document export needs a profile."""
        with pytest.raises(ExportError, match="profile"):
            format_entries(filled_ledger.entries(), ExportKind.DOCUMENT, summary)


class TestExportErrors:
    """Tests for failures."""

    def test_unknown_kind(self, summary):
        with pytest.raises(ExportError, match="Unknown export kind"):
            format_entries([], "pptx", summary)


class TestExportFilename:
    """Tests for download names."""

    def test_report_names(self):
        on = date(2025, 3, 1)
        assert export_filename(ExportKind.SPREADSHEET, on=on) == "exemption-income-report-2025-03-01.xlsx"
        assert export_filename(ExportKind.CSV, on=on) == "exemption-income-report-2025-03-01.csv"

    def test_petition_name(self, profile):
        name = export_filename(ExportKind.DOCUMENT, profile=profile, on=date(2025, 3, 1))
        assert name == "petition_12345678901_2025-03-01.pdf"

    def test_petition_name_requires_profile(self):
        with pytest.raises(ExportError):
            export_filename(ExportKind.DOCUMENT)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
