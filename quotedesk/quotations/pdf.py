# quotedesk/quotations/pdf.py

import os
from decimal import Decimal, InvalidOperation
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

# template font family -> reportlab base font
FONT_MAP = {
    "arial": ("Helvetica", "Helvetica-Bold"),
    "helvetica": ("Helvetica", "Helvetica-Bold"),
    "times": ("Times-Roman", "Times-Bold"),
    "times new roman": ("Times-Roman", "Times-Bold"),
    "georgia": ("Times-Roman", "Times-Bold"),
    "courier": ("Courier", "Courier-Bold"),
    "courier new": ("Courier", "Courier-Bold"),
}

DEFAULT_STYLE = {
    "layout": "modern",
    "primary_color": "#1a73e8",
    "font_family": "Arial",
    "font_size": "12px",
    "show_logo": True,
    "show_business_info": True,
    "show_quotation_number": True,
    "customer_info_position": "left",
    "show_terms": True,
    "show_signature": True,
    "footer_text": None,
}


def template_style(template=None):
    """Template row (or None) -> plain dict with every key the renderer reads."""
    style = dict(DEFAULT_STYLE)
    if template is not None:
        for key in DEFAULT_STYLE:
            val = getattr(template, key, None)
            if val is not None:
                style[key] = val
    return style


def _money(val):
    try:
        v = Decimal(str(val or 0))
    except InvalidOperation:
        v = Decimal("0")
    return f"{v:,.2f}"


def _pct(val):
    v = Decimal(str(val or 0)).normalize()
    return f"{v:f}%"


def _font_size(raw):
    try:
        size = int(str(raw or "").lower().replace("px", "").replace("pt", "").strip())
    except ValueError:
        return 10
    return max(7, min(size, 16))


def _color(raw):
    try:
        return colors.HexColor(raw)
    except (ValueError, TypeError):
        return colors.HexColor(DEFAULT_STYLE["primary_color"])


def _fonts(family):
    return FONT_MAP.get((family or "").strip().lower(), FONT_MAP["helvetica"])


def _address(*parts):
    return ", ".join(escape(p) for p in parts if p)


def render_quotation_pdf(q, business, template=None) -> bytes:
    style = template_style(template)
    base_font, bold_font = _fonts(style["font_family"])
    size = _font_size(style["font_size"])
    primary = _color(style["primary_color"])
    currency = q.currency or business.currency or ""

    buff = BytesIO()
    doc = SimpleDocTemplate(
        buff,
        pagesize=A4,
        leftMargin=18 * mm,
        rightMargin=18 * mm,
        topMargin=16 * mm,
        bottomMargin=16 * mm,
        title=f"Quotation {q.quotation_number}",
    )

    styles = getSampleStyleSheet()
    body = ParagraphStyle(name="Body", parent=styles["Normal"], fontName=base_font, fontSize=size, leading=size + 3)
    muted = ParagraphStyle(name="Muted", parent=body, fontSize=size - 1, textColor=colors.grey)
    h1 = ParagraphStyle(name="H1", parent=body, fontName=bold_font, fontSize=size + 8, leading=size + 12,
                        textColor=primary, spaceAfter=6)
    right = ParagraphStyle(name="Right", parent=body, alignment=TA_RIGHT)
    center = ParagraphStyle(name="Center", parent=muted, alignment=TA_CENTER)

    story = []

    logo_path = business.logo_url
    if style["show_logo"] and logo_path and os.path.exists(logo_path):
        story.append(Image(logo_path, width=40 * mm, height=14 * mm, hAlign="LEFT"))
        story.append(Spacer(1, 6))

    # header
    if style["show_business_info"]:
        header_left = Paragraph(
            f"<b>{escape(business.name or '')}</b><br/>"
            f"{escape(business.email or '')}<br/>"
            f"{escape(business.phone or '')}<br/>"
            f"{_address(business.street, business.city, business.state, business.zip_code, business.country)}",
            body,
        )
    else:
        header_left = Paragraph("", body)

    right_lines = []
    if style["show_quotation_number"]:
        right_lines.append(f"No: {escape(q.quotation_number)}")
    if q.created_at:
        right_lines.append(f"Date: {q.created_at.strftime('%d-%b-%Y')}")
    if q.valid_until:
        right_lines.append(f"Valid Until: {q.valid_until.strftime('%d-%b-%Y')}")
    header_right = [Paragraph("QUOTATION", ParagraphStyle(name="Title", parent=h1, alignment=TA_RIGHT)),
                    Paragraph("<br/>".join(right_lines), right)]

    header_tbl = Table([[header_left, header_right]], colWidths=[100 * mm, 74 * mm])
    header_tbl.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
        ("LINEBELOW", (0, 0), (-1, -1), 1.2 if style["layout"] != "minimal" else 0.4, primary),
    ]))
    story.append(header_tbl)
    story.append(Spacer(1, 10))

    # bill to
    bill_to = Paragraph(
        "<b>Bill To</b><br/>"
        f"{escape(q.customer_name or '')}<br/>"
        f"{escape(q.customer_email or '')}<br/>"
        f"{escape(q.customer_phone or '')}<br/>"
        f"{_address(q.customer_street, q.customer_city, q.customer_state, q.customer_zip_code, q.customer_country)}",
        body,
    )
    row = [bill_to, ""] if style["customer_info_position"] != "right" else ["", bill_to]
    story.append(Table([row], colWidths=[87 * mm, 87 * mm]))
    story.append(Spacer(1, 10))

    # items
    data = [[
        Paragraph(f"<b>{h}</b>", body)
        for h in ("#", "Item", "Description", "Qty", "Price", "Disc.", "Tax", "Amount")
    ]]
    for idx, it in enumerate(q.items, start=1):
        data.append([
            Paragraph(str(idx), body),
            Paragraph(escape(it.item_name or ""), body),
            Paragraph(escape(it.description or ""), body),
            Paragraph(str(it.quantity or 0), body),
            Paragraph(_money(it.unit_price), body),
            Paragraph(_pct(it.discount_percent), body),
            Paragraph(_pct(it.tax_percent), body),
            Paragraph(_money(it.subtotal), body),
        ])
    if not q.items:
        data.append([Paragraph("No items", muted)] + [""] * 7)

    items_tbl = Table(data, colWidths=[8 * mm, 30 * mm, 50 * mm, 12 * mm, 20 * mm, 16 * mm, 16 * mm, 22 * mm],
                      repeatRows=1)
    grid = [
        ("BACKGROUND", (0, 0), (-1, 0), primary if style["layout"] == "modern" else colors.HexColor("#f1f5f9")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white if style["layout"] == "modern" else colors.HexColor("#0f172a")),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("ALIGN", (3, 1), (-1, -1), "RIGHT"),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
        ("TOPPADDING", (0, 0), (-1, -1), 5),
    ]
    if style["layout"] in ("classic", "professional"):
        grid.append(("GRID", (0, 0), (-1, -1), 0.4, colors.lightgrey))
    else:
        grid.append(("LINEBELOW", (0, 0), (-1, -1), 0.3, colors.lightgrey))
    if style["layout"] != "minimal":
        grid.append(("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#fcfcfd")]))
    items_tbl.setStyle(TableStyle(grid))
    story.append(items_tbl)
    story.append(Spacer(1, 10))

    # totals
    totals_data = [
        ["Subtotal", _money(q.subtotal)],
        ["Discount", _money(q.discount_total)],
        ["Tax", _money(q.tax_total)],
        [f"Total ({currency})" if currency else "Total", _money(q.total)],
    ]
    totals_tbl = Table(totals_data, colWidths=[60 * mm, 40 * mm], hAlign="RIGHT")
    totals_tbl.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, -1), base_font),
        ("FONTNAME", (0, -1), (-1, -1), bold_font),
        ("FONTSIZE", (0, 0), (-1, -1), size),
        ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
        ("LINEABOVE", (0, 0), (-1, 0), 0.6, colors.lightgrey),
        ("LINEBELOW", (0, -1), (-1, -1), 0.8, primary),
        ("TOPPADDING", (0, 0), (-1, -1), 5),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
    ]))
    story.append(totals_tbl)
    story.append(Spacer(1, 12))

    # footer
    if style["show_terms"] and q.terms:
        story.append(Paragraph("<b>Terms &amp; Conditions</b>", body))
        story.append(Spacer(1, 4))
        for ln in [ln.strip() for ln in q.terms.splitlines() if ln.strip()]:
            story.append(Paragraph(f"• {escape(ln)}", muted))
        story.append(Spacer(1, 8))

    if q.notes:
        story.append(Paragraph("<b>Notes</b>", body))
        story.append(Spacer(1, 4))
        story.append(Paragraph(escape(q.notes).replace("\n", "<br/>"), muted))
        story.append(Spacer(1, 8))

    if style["show_signature"]:
        story.append(Spacer(1, 30))
        sig = Table([["", "Authorized Signature"]], colWidths=[114 * mm, 60 * mm])
        sig.setStyle(TableStyle([
            ("LINEABOVE", (1, 0), (1, 0), 0.5, colors.black),
            ("ALIGN", (1, 0), (1, 0), "CENTER"),
            ("FONTNAME", (0, 0), (-1, -1), base_font),
            ("FONTSIZE", (0, 0), (-1, -1), size - 1),
        ]))
        story.append(sig)

    if style["footer_text"]:
        story.append(Spacer(1, 16))
        story.append(Paragraph(escape(style["footer_text"]), center))

    doc.build(story)
    return buff.getvalue()
