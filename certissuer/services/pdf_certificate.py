"""Render certificate PDFs with ReportLab."""

from __future__ import annotations

import asyncio
import io
import logging
from datetime import date
from pathlib import Path
from typing import Any
from xml.sax.saxutils import escape

import qrcode
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer

from certissuer.config import settings
from certissuer.services.storage import CertificateStorage

logger = logging.getLogger(__name__)

LANDSCAPE_PAGE = (792, 612)
PAGE_MARGIN = 50
DEFAULT_TITLE = "Certificate"
DEFAULT_FONT_SIZE = 14
FOOTER_TEXT = "This certificate is digitally signed and verifiable"
FOOTER_COLOR = colors.HexColor("#cccccc")

# Standard Type 1 fonts that need no embedding: (regular, bold)
FONT_FAMILIES: dict[str, tuple[str, str]] = {
    "helvetica": ("Helvetica", "Helvetica-Bold"),
    "times": ("Times-Roman", "Times-Bold"),
    "times-roman": ("Times-Roman", "Times-Bold"),
    "courier": ("Courier", "Courier-Bold"),
}


def get_fonts(layout: dict[str, Any]) -> tuple[str, str]:
    """Return (regular_font_name, bold_font_name) for the layout hint."""
    family = str(layout.get("fontFamily") or "").strip().lower()
    return FONT_FAMILIES.get(family, FONT_FAMILIES["helvetica"])


def page_size_for(layout: dict[str, Any]) -> tuple[float, float]:
    if layout.get("orientation") == "landscape":
        return LANDSCAPE_PAGE
    return A4


def _font_size(layout: dict[str, Any]) -> float:
    try:
        size = float(layout.get("fontSize") or DEFAULT_FONT_SIZE)
    except (TypeError, ValueError):
        return DEFAULT_FONT_SIZE
    return size if 6 <= size <= 48 else DEFAULT_FONT_SIZE


def _accent(styling: dict[str, Any] | None):
    value = (styling or {}).get("accentColor") or settings.default_accent_color
    try:
        return colors.HexColor(value)
    except (TypeError, ValueError):
        return colors.HexColor(settings.default_accent_color)


def format_value(value: Any) -> str:
    """Printable form of a data value; missing values print as empty."""
    if value is None:
        return ""
    return escape(str(value))


def create_styles(accent, reg: str, bold: str, font_size: float):
    """Paragraph styles used on the certificate page."""
    styles = getSampleStyleSheet()
    styles["Normal"].fontName = reg
    styles["Normal"].fontSize = font_size
    styles["Normal"].leading = font_size * 1.3

    styles.add(
        ParagraphStyle(
            "CertTitle",
            parent=styles["Normal"],
            fontName=bold,
            fontSize=24,
            leading=30,
            alignment=TA_CENTER,
            textColor=accent,
        )
    )
    styles.add(
        ParagraphStyle(
            "Field",
            parent=styles["Normal"],
            spaceBefore=font_size * 0.5,
        )
    )
    styles.add(
        ParagraphStyle(
            "Meta",
            parent=styles["Normal"],
            fontSize=10,
            leading=13,
            alignment=TA_CENTER,
        )
    )
    styles.add(
        ParagraphStyle(
            "Footer",
            parent=styles["Meta"],
            textColor=FOOTER_COLOR,
        )
    )
    return styles


def qr_image(url: str, size: float = 1.1 * inch) -> Image:
    """QR code flowable pointing at the public verification URL."""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(url)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    buf.seek(0)
    return Image(buf, width=size, height=size)


def build_certificate(
    out_path: Path,
    content: dict[str, Any],
    styling: dict[str, Any] | None,
    data: dict[str, Any],
    certificate_number: str,
    verification_url: str,
    issued_on: date | None = None,
) -> Path:
    """Assemble the certificate PDF at ``out_path``."""
    layout = dict(content.get("layout") or {})
    reg, bold = get_fonts(layout)
    styles = create_styles(_accent(styling), reg, bold, _font_size(layout))
    issued_on = issued_on or date.today()

    doc = SimpleDocTemplate(
        str(out_path),
        pagesize=page_size_for(layout),
        leftMargin=PAGE_MARGIN,
        rightMargin=PAGE_MARGIN,
        topMargin=PAGE_MARGIN,
        bottomMargin=PAGE_MARGIN,
        title=content.get("title") or DEFAULT_TITLE,
        author="certissuer",
    )

    story: list[Any] = [
        Paragraph(escape(content.get("title") or DEFAULT_TITLE), styles["CertTitle"]),
        Spacer(1, 28),
    ]
    for field in content.get("fields") or []:
        label = escape(str(field.get("label") or field.get("key") or ""))
        value = format_value(data.get(field.get("key")))
        story.append(Paragraph(f"<b>{label}:</b> {value}", styles["Field"]))

    story.extend(
        [
            Spacer(1, 28),
            Paragraph(
                f"Certificate Number: {escape(certificate_number)}", styles["Meta"]
            ),
            Spacer(1, 6),
            Paragraph(
                f"Generated on: {issued_on.strftime('%B %d, %Y')}", styles["Meta"]
            ),
            Paragraph(FOOTER_TEXT, styles["Footer"]),
            Spacer(1, 10),
            qr_image(verification_url),
        ]
    )

    doc.build(story)
    return out_path


class CertificateRenderer:
    """Writes one PDF per certificate number into ``storage``."""

    def __init__(self, storage: CertificateStorage):
        self.storage = storage

    async def render(
        self,
        content: dict[str, Any],
        styling: dict[str, Any] | None,
        data: dict[str, Any],
        certificate_number: str,
        verification_token: str,
    ) -> Path:
        """Render off the event loop; I/O errors propagate to the caller."""
        out_path = self.storage.path_for(certificate_number)
        await asyncio.to_thread(
            build_certificate,
            out_path,
            content,
            styling,
            data,
            certificate_number,
            settings.verification_url(verification_token),
        )
        logger.debug("Rendered %s", out_path.name)
        return out_path
