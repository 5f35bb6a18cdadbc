"""Report and petition exports."""

from exemption_tracker.export.formatters import (
    ENTRY_COLUMNS,
    ExportError,
    ExportSummary,
    export_filename,
    format_entries,
)
from exemption_tracker.export.petition import render_petition_pdf, render_petition_text

__all__ = [
    "ENTRY_COLUMNS",
    "ExportError",
    "ExportSummary",
    "export_filename",
    "format_entries",
    "render_petition_pdf",
    "render_petition_text",
]
