"""
Tax office petition.

Builds the foreign-income declaration letter from the user's profile and
the ledger summary, and lays it out as a one-page PDF with ReportLab.
"""

import io
from datetime import date
from typing import Optional
from xml.sax.saxutils import escape

from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from exemption_tracker.ledger import format_amount
from exemption_tracker.models.income import (
    DOMESTIC_CURRENCY,
    CompanyStatus,
    IncomeSource,
    UserProfile,
)


PETITION_SUBJECT = "Foreign-Sourced Income Declaration"

INCOME_SOURCE_LABELS = {
    IncomeSource.DIGITAL_PLATFORMS: "Digital platforms (Stripe, PayPal etc.)",
    IncomeSource.FREELANCE: "Freelance services",
    IncomeSource.SOFTWARE_EXPORT: "Software and services export",
    IncomeSource.OTHER: "Other foreign-sourced income",
}

COMPANY_STATUS_LABELS = {
    CompanyStatus.NONE: "Individual (no company)",
    CompanyStatus.SOLE_PROPRIETORSHIP: "Sole proprietorship",
    CompanyStatus.LIMITED: "Limited company",
}

ATTACHMENTS = [
    "Income detail report",
    "Central bank exchange rate calculations",
    "Payment platform statements",
]


def render_petition_text(profile: UserProfile, summary, on: Optional[date] = None) -> str:
    """
    Plain-text petition body.

    Paragraphs are separated by blank lines; render_petition_pdf lays
    out the same text.
    """
    on = on or date.today()
    threshold = format_amount(summary.threshold)

    header = [
        f"Date: {on.strftime('%d.%m.%Y')}",
        f"To the {profile.tax_office} Tax Office",
    ]
    filer = [
        f"Name: {profile.full_name}",
        f"National ID: {profile.national_id}",
    ]
    if profile.tax_id:
        filer.append(f"Tax ID: {profile.tax_id}")
    filer.append(f"Address: {profile.address}")
    filer.append(f"Phone: {profile.phone}")

    paragraphs = [
        "PETITION",
        "\n".join(header),
        "\n".join(filer),
        f"SUBJECT: {PETITION_SUBJECT}",
        "Dear Sir or Madam,",
        (
            "I hereby submit this petition to declare my foreign-sourced "
            "digital platform income and to request the exemption provided "
            "under the relevant articles of the Income Tax Law."
        ),
        f"Income source: {INCOME_SOURCE_LABELS[profile.income_source]}",
        f"Company status: {COMPANY_STATUS_LABELS[profile.company_status]}",
        (
            f"Recorded income: {summary.entry_count} entries totalling "
            f"{format_amount(summary.total_domestic_value, 2)} {DOMESTIC_CURRENCY}."
        ),
        (
            "Pursuant to Article 23 of the Income Tax Law, I request that my "
            f"foreign-sourced income up to an annual gross of {threshold} "
            f"{DOMESTIC_CURRENCY} be exempted from income tax."
        ),
        "Attachments:\n" + "\n".join(f"- {item}" for item in ATTACHMENTS),
        "Respectfully submitted.",
        f"{profile.full_name}\nSignature",
    ]
    return "\n\n".join(paragraphs)


def _styles():
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(
        'PetitionTitle',
        parent=styles['Normal'],
        fontSize=16,
        fontName='Helvetica-Bold',
        alignment=TA_CENTER,
        spaceAfter=12,
    ))
    styles.add(ParagraphStyle(
        'PetitionBody',
        parent=styles['Normal'],
        fontSize=11,
        leading=15,
        alignment=TA_JUSTIFY,
        spaceAfter=10,
    ))
    styles.add(ParagraphStyle(
        'PetitionSubject',
        parent=styles['Normal'],
        fontSize=11,
        fontName='Helvetica-Bold',
        alignment=TA_CENTER,
        spaceAfter=10,
    ))
    styles.add(ParagraphStyle(
        'PetitionSignature',
        parent=styles['Normal'],
        fontSize=11,
        leading=15,
        alignment=TA_RIGHT,
        spaceBefore=24,
    ))
    return styles


def render_petition_pdf(profile: UserProfile, summary, on: Optional[date] = None) -> bytes:
    """Lay out the petition text as a PDF document."""
    styles = _styles()
    paragraphs = render_petition_text(profile, summary, on).split("\n\n")

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=inch,
        leftMargin=inch,
        topMargin=inch,
        bottomMargin=inch,
        title=PETITION_SUBJECT,
        author=profile.full_name,
    )

    story = []
    last = len(paragraphs) - 1
    for index, text in enumerate(paragraphs):
        markup = escape(text).replace("\n", "<br/>")
        if index == 0:
            style = styles['PetitionTitle']
        elif text.startswith("SUBJECT:"):
            style = styles['PetitionSubject']
        elif index == last:
            style = styles['PetitionSignature']
        else:
            style = styles['PetitionBody']
        story.append(Paragraph(markup, style))
        if index == 0:
            story.append(Spacer(1, 0.25 * inch))

    doc.build(story)
    return buffer.getvalue()
