# services/form_pdf.py

from datetime import datetime, timezone
from io import BytesIO
from typing import Any, Dict, Optional

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from xml.sax.saxutils import escape

from models.enums import FormFieldType
from models.form import FormSchema, FormFieldDef
from services.form_engine import visible_fields


# ============================================================
# Helper: render a submitted value for print
# ============================================================
def format_value(field: FormFieldDef, value: Any) -> str:
    if value is None or value == "":
        return "—"

    if field.type == FormFieldType.CHECKBOX:
        return "Yes" if value else "No"

    labels = {o.value: o.label for o in (field.options or [])}
    if field.type == FormFieldType.MULTI_SELECT and isinstance(value, list):
        return ", ".join(labels.get(str(v), str(v)) for v in value)
    if field.type in (FormFieldType.SELECT, FormFieldType.RADIO):
        return labels.get(str(value), str(value))

    if field.type == FormFieldType.SIGNATURE:
        return "Signed" if value else "—"

    if isinstance(value, dict):
        # ADDRESS fields come back as {street, city, state, zip}
        return ", ".join(str(v) for v in value.values() if v)

    return str(value)


# ============================================================
# Form submission → PDF
# ============================================================
def generate_form_pdf(
    template: Dict[str, Any],
    schema: FormSchema,
    submission: Dict[str, Any],
    permit: Optional[Dict[str, Any]] = None,
) -> bytes:
    """
    Printable copy of a permit application form.
    Only fields visible for the submitted data are printed.
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=letter, title=template.get("name") or "Permit Form")
    story = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        "FormTitle",
        parent=styles["Heading1"],
        fontSize=18,
        textColor=colors.HexColor("#1a1a1a"),
        spaceAfter=12,
        alignment=TA_CENTER,
    )

    story.append(Paragraph(escape(template.get("name") or "Permit Form"), title_style))

    header_bits = []
    if permit:
        header_bits.append(f"Permit: {escape(permit.get('title') or '')}")
        if permit.get("permit_number"):
            header_bits.append(f"No. {escape(permit['permit_number'])}")
    header_bits.append(f"Status: {submission.get('status', 'DRAFT')}")
    story.append(Paragraph(" | ".join(header_bits), styles["Normal"]))
    story.append(Spacer(1, 0.25 * inch))

    data = submission.get("data") or {}

    for section, fields in visible_fields(schema, data):
        if not fields:
            continue

        story.append(Paragraph(escape(section.title), styles["Heading2"]))
        if section.description:
            story.append(Paragraph(escape(section.description), styles["Italic"]))
        story.append(Spacer(1, 0.1 * inch))

        rows = [["Field", "Value"]]
        for field in fields:
            label = field.label + (" *" if field.required else "")
            rows.append([
                Paragraph(escape(label), styles["Normal"]),
                Paragraph(escape(format_value(field, data.get(field.id))), styles["Normal"]),
            ])

        table = Table(rows, colWidths=[2.5 * inch, 4.5 * inch])
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
            ("ALIGN", (0, 0), (-1, -1), "LEFT"),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
        ]))
        story.append(table)
        story.append(Spacer(1, 0.25 * inch))

    story.append(Spacer(1, 0.3 * inch))
    footer = f"Generated: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}"
    if submission.get("submitted_at"):
        footer += f" | Submitted: {submission['submitted_at']}"
    story.append(Paragraph(footer, styles["Normal"]))

    doc.build(story)
    buffer.seek(0)
    return buffer.read()
