"""
Barangay document generator (template-free).

Builds the field set printed on certificates, clearances, indigency
certificates, barangay IDs and business permits, then renders it:
- DOCX with python-docx
- PDF with reportlab (border, government header, optional PREVIEW watermark)

Entry point: generate_document(document_type, data, control_id, sequence, fmt, preview)
    -> (bytes, mimetype, filename)
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from io import BytesIO
from typing import Dict, Optional

from flask import current_app

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt, RGBColor

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from apps.bsphere.models.document import BUSINESS_PERMIT, DOCUMENT_PREFIXES
from apps.bsphere.utils.identity import format_permit_number
from apps.bsphere.utils.time import ordinal_day, parse_datetime, utc_now

logger = logging.getLogger(__name__)

DOCX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.wordprocessingml.document'
PDF_MIMETYPE = 'application/pdf'

TITLES = {
    'Barangay Certificate': 'BARANGAY CERTIFICATION',
    'Barangay Clearance': 'BARANGAY CLEARANCE',
    'Barangay Indigency': 'CERTIFICATE OF INDIGENCY',
    'Barangay ID': 'BARANGAY IDENTIFICATION',
    'Business Permit': 'BARANGAY BUSINESS PERMIT',
}

# Body paragraphs; {{key}} placeholders come from build_template_context
BODIES = {
    'Barangay Certificate': [
        "This is to certify that {{fullName}}, {{age}} years of age, is a bona fide resident of "
        "{{address}}, Barangay {{barangay}}.",
        "This certification is issued upon the request of the above-named person for {{purpose}}.",
    ],
    'Barangay Clearance': [
        "This is to certify that {{fullName}}, {{age}} years of age, residing at {{address}}, "
        "has no derogatory record filed in this barangay as of this date.",
        "This clearance is issued upon the request of the above-named person for {{purpose}}.",
    ],
    'Barangay Indigency': [
        "This is to certify that {{fullName}}, {{age}} years of age, residing at {{address}}, "
        "belongs to an indigent family of this barangay.",
        "This certification is issued upon the request of the above-named person for {{purpose}}.",
    ],
    'Barangay ID': [
        "Name: {{fullName}}",
        "Address: {{address}}",
        "Age: {{age}}",
        "This identification card is issued for {{purpose}}.",
    ],
    'Business Permit': [
        "Permission is hereby granted to {{applicantName}} of {{applicantAddress}} to operate "
        "{{businessName}}, a {{natureOfBusiness}} business located at {{businessAddress}}, "
        "within the jurisdiction of {{brgyName}}.",
        "Permit No.: {{permitNo}}    CTC No.: {{ctcNo}}    O.R. No.: {{orNo}}    Amount Paid: {{amount}}",
        "Validity: {{validityPeriod}}, from {{issueDate}} until {{expiryDate}}.",
    ],
}

CLOSING = "Issued this {{day}} day of {{month}}, {{year}} at Barangay {{barangay}}, {{municipality}}, {{province}}."


class DocumentGenerationError(Exception):
    """Raised when a document cannot be produced."""
    pass


def _upper(value) -> str:
    return str(value).upper() if value not in (None, '') else ''


def _simple_template(text: str, ctx: Dict[str, str]) -> str:
    if not text:
        return ""
    out = text
    for k, v in ctx.items():
        out = out.replace(f"{{{{{k}}}}}", str(v) if v is not None else "")
    return out


def _safe_text(value: object) -> str:
    """Return PDF-safe text for built-in ReportLab fonts."""
    text = str(value or "")
    try:
        text.encode("latin-1")
        return text
    except UnicodeEncodeError:
        return text.encode("latin-1", "replace").decode("latin-1")


def _request_date(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        parsed = parse_datetime(value)
    except ValueError:
        parsed = None
    return parsed or utc_now()


def _add_one_year(d: datetime) -> datetime:
    try:
        return d.replace(year=d.year + 1)
    except ValueError:
        # Feb 29 -> Feb 28
        return d.replace(year=d.year + 1, day=28)


def build_template_context(document_type: str, data: dict, control_id: str, sequence: Optional[int] = None) -> Dict[str, str]:
    """All fields printed on the document, keyed by their template names."""
    if document_type not in DOCUMENT_PREFIXES:
        raise DocumentGenerationError(f"Invalid document type: {document_type}")

    cfg = current_app.config
    requested = _request_date(data.get('requestedAt'))

    ctx = {
        'documentType': document_type,
        'printClearance': control_id,
        'printCertificate': control_id,
        'controlNo': control_id,
        'Control_No': control_id,
        'date': requested.strftime('%m/%d/%Y'),
        'day': ordinal_day(requested.day),
        'month': requested.strftime('%B'),
        'year': str(requested.year),
        'fullName': _upper(data.get('fullName')),
        'age': str(data.get('age') or ''),
        'address': _upper(data.get('address')),
        'purpose': _upper(data.get('purpose')),
        'chairman': _upper(data.get('chairman')) or cfg.get('BARANGAY_CHAIRMAN'),
        'secretary': _upper(data.get('secretary')) or cfg.get('BARANGAY_SECRETARY'),
        'treasurer': _upper(data.get('treasurer')) or cfg.get('BARANGAY_TREASURER'),
        'barangay': cfg.get('BARANGAY_NAME', ''),
        'municipality': cfg.get('MUNICIPALITY_NAME', ''),
        'province': cfg.get('PROVINCE_NAME', ''),
    }

    if document_type == BUSINESS_PERMIT:
        issued = _request_date(data.get('issueDate') or data.get('requestedAt'))
        permit_no = data.get('permitNo') or format_permit_number(sequence or 0)
        ctx.update({
            'printPermit': control_id,
            'permitNo': permit_no,
            'ctcNo': data.get('ctcNumber') or '',
            'orNo': data.get('orNumber') or '',
            'businessName': _upper(data.get('businessName')),
            'businessType': _upper(data.get('businessType')),
            'businessAddress': _upper(data.get('businessAddress')),
            'natureOfBusiness': _upper(data.get('businessType')),
            'validityPeriod': data.get('validityPeriod') or '1 YEAR',
            'validity': '1 YEAR',
            'amount': cfg.get('BUSINESS_PERMIT_FEE', 'PHP 500.00'),
            'brgyName': f"BRGY. {_upper(cfg.get('BARANGAY_NAME', ''))}",
            'status': 'ACTIVE',
            'applicantName': _upper(data.get('fullName')),
            'applicantAddress': _upper(data.get('address')),
            'issueDate': issued.strftime('%m/%d/%Y'),
            'expiryDate': _add_one_year(issued).strftime('%m/%d/%Y'),
        })
    return ctx


def render_docx(ctx: Dict[str, str], preview: bool = False) -> bytes:
    """Render the certificate as a Word document."""
    document_type = ctx['documentType']
    doc = Document()

    if preview:
        header = doc.sections[0].header.paragraphs[0]
        header.alignment = WD_ALIGN_PARAGRAPH.CENTER
        run = header.add_run('PREVIEW - NOT VALID AS AN OFFICIAL DOCUMENT')
        run.bold = True
        run.font.color.rgb = RGBColor(0xB0, 0x1C, 0x1C)

    for line, bold in (
        ("Republic of the Philippines", False),
        (f"Province of {ctx['province']}", False),
        (f"Municipality of {ctx['municipality']}", False),
        (f"BARANGAY {ctx['barangay'].upper()}", True),
        ("Office of the Punong Barangay", False),
    ):
        p = doc.add_paragraph()
        p.alignment = WD_ALIGN_PARAGRAPH.CENTER
        run = p.add_run(line)
        run.bold = bold

    title = doc.add_heading(TITLES[document_type], 1)
    title.alignment = WD_ALIGN_PARAGRAPH.CENTER

    control = doc.add_paragraph()
    control.alignment = WD_ALIGN_PARAGRAPH.RIGHT
    control.add_run(f"Control No.: {ctx['controlNo']}").bold = True

    doc.add_paragraph("TO WHOM IT MAY CONCERN:")
    for template in BODIES[document_type]:
        p = doc.add_paragraph(_simple_template(template, ctx))
        p.paragraph_format.first_line_indent = Pt(36)

    doc.add_paragraph(_simple_template(CLOSING, ctx))
    doc.add_paragraph()

    signatories = [(ctx['chairman'], 'Punong Barangay')]
    if document_type == BUSINESS_PERMIT:
        signatories.append((ctx['treasurer'], 'Barangay Treasurer'))
    signatories.append((ctx['secretary'], 'Barangay Secretary'))
    for name, position in signatories:
        p = doc.add_paragraph()
        p.alignment = WD_ALIGN_PARAGRAPH.RIGHT
        name_run = p.add_run(name)
        name_run.bold = True
        name_run.font.size = Pt(12)
        p.add_run(f"\n{position}")

    buf = BytesIO()
    doc.save(buf)
    return buf.getvalue()


def _set_font(c: canvas.Canvas, name: str, size: int):
    """Set font with fallback to Helvetica family if Times is unavailable."""
    try:
        c.setFont(name, size)
    except KeyError:
        fallback = {
            'Times-Roman': 'Helvetica',
            'Times-Bold': 'Helvetica-Bold',
        }
        c.setFont(fallback.get(name, 'Helvetica'), size)


def _draw_border(c: canvas.Canvas, margin_mm: float = 12.0):
    width, height = A4
    m = margin_mm * mm
    c.setStrokeColor(colors.HexColor("#1f3c88"))
    c.setLineWidth(2)
    c.rect(m, m, width - 2 * m, height - 2 * m, stroke=1, fill=0)


def _draw_header(c: canvas.Canvas, ctx: Dict[str, str]):
    width, height = A4
    top_y = height - 28 * mm
    lines = (
        ("Times-Roman", 11, "Republic of the Philippines"),
        ("Times-Roman", 11, f"Province of {ctx['province']}"),
        ("Times-Roman", 11, f"Municipality of {ctx['municipality']}"),
        ("Times-Bold", 13, f"BARANGAY {ctx['barangay'].upper()}"),
        ("Times-Roman", 11, "Office of the Punong Barangay"),
    )
    for i, (font, size, text) in enumerate(lines):
        _set_font(c, font, size)
        c.drawCentredString(width / 2, top_y - i * 6 * mm, _safe_text(text))


def _draw_preview_watermark(c: canvas.Canvas, opacity: float = 0.25):
    width, height = A4
    c.saveState()
    c.translate(width / 2, height / 2)
    c.rotate(45)
    c.setFillColor(colors.Color(0.7, 0.1, 0.1, alpha=opacity))
    _set_font(c, "Helvetica-Bold", 72)
    c.drawCentredString(0, 0, "PREVIEW")
    c.restoreState()


def _wrap(text: str, max_chars: int = 88) -> list:
    words = text.split()
    lines, current = [], ''
    for word in words:
        candidate = f"{current} {word}".strip()
        if len(candidate) > max_chars and current:
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


def render_pdf(ctx: Dict[str, str], preview: bool = False) -> bytes:
    """Render the certificate as a single A4 page."""
    document_type = ctx['documentType']
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4

    if preview:
        _draw_preview_watermark(c)
    _draw_border(c)
    _draw_header(c, ctx)

    y = height - 70 * mm
    _set_font(c, "Times-Bold", 16)
    c.drawCentredString(width / 2, y, _safe_text(TITLES[document_type]))

    y -= 10 * mm
    _set_font(c, "Times-Bold", 10)
    c.drawRightString(width - 22 * mm, y, _safe_text(f"Control No.: {ctx['controlNo']}"))

    y -= 12 * mm
    _set_font(c, "Times-Roman", 12)
    c.drawString(22 * mm, y, "TO WHOM IT MAY CONCERN:")
    y -= 10 * mm

    for template in BODIES[document_type] + [CLOSING]:
        for line in _wrap(_simple_template(template, ctx)):
            c.drawString(22 * mm, y, _safe_text(line))
            y -= 6 * mm
        y -= 4 * mm

    y -= 14 * mm
    signatories = [(ctx['chairman'], 'Punong Barangay')]
    if document_type == BUSINESS_PERMIT:
        signatories.append((ctx['treasurer'], 'Barangay Treasurer'))
    signatories.append((ctx['secretary'], 'Barangay Secretary'))
    for name, position in signatories:
        _set_font(c, "Times-Bold", 12)
        c.drawRightString(width - 22 * mm, y, _safe_text(name))
        _set_font(c, "Times-Roman", 11)
        c.drawRightString(width - 22 * mm, y - 5 * mm, position)
        y -= 18 * mm

    c.showPage()
    c.save()
    return buf.getvalue()


def generate_document(document_type: str, data: dict, control_id: str, sequence: Optional[int] = None,
                      fmt: str = 'docx', preview: bool = False):
    """Render a document request.

    Returns:
        Tuple of (content bytes, mimetype, download filename)
    """
    ctx = build_template_context(document_type, data, control_id, sequence)
    slug = document_type.lower().replace(' ', '_')
    prefix = 'preview_' if preview else ''

    if fmt == 'pdf':
        content = render_pdf(ctx, preview=preview)
        mimetype, ext = PDF_MIMETYPE, 'pdf'
    else:
        content = render_docx(ctx, preview=preview)
        mimetype, ext = DOCX_MIMETYPE, 'docx'

    logger.info("Generated %s%s for %s (%d bytes)", prefix, ext, control_id, len(content))
    return content, mimetype, f"{prefix}{slug}_{control_id}.{ext}"
