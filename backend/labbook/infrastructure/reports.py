from datetime import date, datetime
from io import BytesIO
from typing import Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..domain.services import DAILY_CAPACITY
from ..models import Booking

_HEADER = ["#", "Name", "Email", "Year", "Time", "Code"]
_ACCENT = colors.HexColor("#667eea")


def build_day_report(report_date: date, bookings: Sequence[Booking], *, generated_at: datetime | None = None) -> bytes:
    """Render the bookings of one day as an A4 PDF and return the document bytes."""
    generated_at = generated_at or datetime.now()
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=18 * mm,
        leftMargin=18 * mm,
        topMargin=18 * mm,
        bottomMargin=18 * mm,
        title=f"Bookings {report_date.isoformat()}",
    )
    styles = getSampleStyleSheet()
    story: list = [
        Paragraph("<b>Laboratory Booking Report</b>", styles["Title"]),
        Paragraph(f"Date: {report_date.isoformat()}", styles["Heading2"]),
        Paragraph(f"Total bookings: {len(bookings)}/{DAILY_CAPACITY}", styles["Normal"]),
        Paragraph(f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M')}", styles["Normal"]),
        Spacer(1, 8 * mm),
    ]

    if not bookings:
        story.append(Paragraph("No bookings for this date.", styles["Italic"]))
    else:
        rows = [_HEADER]
        for idx, booking in enumerate(sorted(bookings, key=lambda b: (b.time_of_day, b.id or 0)), start=1):
            rows.append(
                [
                    str(idx),
                    f"{booking.first_name} {booking.last_name}",
                    booking.email,
                    booking.year_label,
                    booking.time_of_day.strftime("%H:%M"),
                    booking.code,
                ]
            )
        table = Table(rows, hAlign="LEFT", repeatRows=1, colWidths=[8 * mm, 45 * mm, 55 * mm, 25 * mm, 15 * mm, 18 * mm])
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), _ACCENT),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                    ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
                    ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f9fafb")]),
                    ("TEXTCOLOR", (-1, 1), (-1, -1), _ACCENT),
                    ("FONTSIZE", (0, 0), (-1, -1), 9),
                    ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                ]
            )
        )
        story.append(table)

    story.append(Spacer(1, 10 * mm))
    story.append(Paragraph("Laboratory booking system", styles["Normal"]))
    doc.build(story)
    return buffer.getvalue()


def report_filename(report_date: date) -> str:
    return f"bookings_{report_date.isoformat()}.pdf"
