"""Payment receipt PDF."""

from __future__ import annotations

import io
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from gymstudio.db.models import PAYMENT_METHOD_LABELS, Invoice, Lead, Payment, Unit
from gymstudio.documents._pdf import FALLBACK_UNIT_NAME, build_styles, text
from gymstudio.documents.export import format_currency_br, format_date_br


def receipt_number(payment: Payment) -> str:
    return f"REC-{payment.id.replace('-', '')[:8].upper()}"


def receipt_filename(payment: Payment) -> str:
    return f"recibo_{receipt_number(payment).lower()}_{payment.paid_at:%Y%m%d}.pdf"


def render_receipt_pdf(
    payment: Payment,
    invoice: Invoice,
    lead: Lead,
    unit: Optional[Unit] = None,
) -> bytes:
    styles = build_styles()
    unit_name = unit.name if unit and unit.name else FALLBACK_UNIT_NAME

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=20 * mm,
        rightMargin=20 * mm,
        topMargin=20 * mm,
        bottomMargin=20 * mm,
        title="Recibo de Pagamento",
    )

    story = [Paragraph(text(unit_name), styles["unit"])]
    if unit and unit.cnpj:
        story.append(Paragraph(f"CNPJ: {text(unit.cnpj)}", styles["unit_info"]))
    if unit and unit.address:
        story.append(Paragraph(text(unit.address), styles["unit_info"]))
    story.append(Paragraph("RECIBO DE PAGAMENTO", styles["title"]))
    story.append(Paragraph(f"Nº {receipt_number(payment)}", styles["unit_info"]))
    story.append(Spacer(1, 8 * mm))

    amount = format_currency_br(payment.amount)
    story.append(
        Paragraph(
            f"Recebemos de <b>{text(lead.full_name)}</b>"
            + (f", CPF {text(lead.cpf)}," if lead.cpf else "")
            + f" a importância de <b>R$ {amount}</b> referente a "
            + text(invoice.description or "mensalidade")
            + ".",
            styles["normal"],
        )
    )
    story.append(Spacer(1, 6 * mm))

    details = [
        ["Descrição", "Vencimento", "Forma de pagamento", "Valor"],
        [
            invoice.description or "Mensalidade",
            format_date_br(invoice.due_date),
            PAYMENT_METHOD_LABELS[payment.payment_method],
            f"R$ {amount}",
        ],
    ]
    table = Table(details, colWidths=[60 * mm, 30 * mm, 45 * mm, 35 * mm])
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("ALIGN", (1, 0), (-1, -1), "CENTER"),
                ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
            ]
        )
    )
    story += [table, Spacer(1, 6 * mm)]

    if payment.transaction_id:
        story.append(Paragraph(f"Transação: {text(payment.transaction_id)}", styles["normal"]))
    story.append(Paragraph(f"Pago em {format_date_br(payment.paid_at, with_time=True)}", styles["normal"]))
    story.append(Spacer(1, 20 * mm))

    signature = Table([[""], [unit_name]], colWidths=[80 * mm])
    signature.setStyle(
        TableStyle(
            [
                ("LINEABOVE", (0, 1), (0, 1), 0.8, colors.black),
                ("ALIGN", (0, 0), (-1, -1), "CENTER"),
                ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
            ]
        )
    )
    story.append(signature)

    doc.build(story)
    return buf.getvalue()
