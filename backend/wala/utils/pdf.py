"""Invoice PDF rendering with reportlab."""

from __future__ import annotations

from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from xml.sax.saxutils import escape

BRAND = colors.HexColor("#0a6e5c")


def _money(value: float) -> str:
    return f"{value:,.2f} €"


def invoice_filename(purchase_id: int) -> str:
    return f"factura_{purchase_id}.pdf"


def invoice_pdf(invoice: dict) -> bytes:
    """Render the invoice dict built by `PurchaseService.invoice` to PDF bytes."""
    styles = getSampleStyleSheet()
    right = ParagraphStyle("Right", parent=styles["Normal"], alignment=TA_RIGHT)
    title = ParagraphStyle("InvoiceTitle", parent=styles["Title"], textColor=BRAND)

    story = [
        Paragraph("WalaSpringBoot", title),
        Paragraph(f"Invoice nº {escape(invoice['number'])}", styles["Heading2"]),
        Paragraph(f"Date: {invoice['date'].strftime('%d/%m/%Y %H:%M')}", styles["Normal"]),
        Spacer(1, 0.4 * cm),
        Paragraph("<b>Customer</b>", styles["Normal"]),
        Paragraph(escape(invoice["buyer"]["name"]), styles["Normal"]),
        Paragraph(escape(invoice["buyer"]["email"]), styles["Normal"]),
        Spacer(1, 0.6 * cm),
    ]

    rows = [["Product", "Category", "Price"]]
    for item in invoice["items"]:
        rows.append([
            Paragraph(escape(item["name"]), styles["Normal"]),
            item["category"] or "-",
            Paragraph(_money(item["price"]), right),
        ])
    table = Table(rows, colWidths=[9 * cm, 4 * cm, 3.5 * cm], repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), BRAND),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("ALIGN", (2, 0), (2, 0), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.lightgrey),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f4f6f6")]),
    ]))
    story.append(table)
    story.append(Spacer(1, 0.6 * cm))

    vat_pct = int(round(invoice["vat_rate"] * 100))
    totals = Table(
        [
            ["Subtotal", _money(invoice["subtotal"])],
            [f"VAT ({vat_pct}%)", _money(invoice["vat"])],
            ["Total", _money(invoice["total"])],
        ],
        colWidths=[13 * cm, 3.5 * cm],
    )
    totals.setStyle(TableStyle([
        ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
        ("FONTNAME", (0, 2), (-1, 2), "Helvetica-Bold"),
        ("LINEABOVE", (0, 2), (-1, 2), 1, BRAND),
    ]))
    story.append(totals)
    story.append(Spacer(1, 1 * cm))
    story.append(Paragraph("Thank you for your purchase.", styles["Italic"]))

    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf, pagesize=A4, rightMargin=2 * cm, leftMargin=2 * cm, topMargin=2 * cm, bottomMargin=2 * cm,
        title=f"Invoice {invoice['number']}",
    )
    doc.build(story)
    return buf.getvalue()
