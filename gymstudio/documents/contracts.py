"""Service contract PDF for a member, optionally with plan details."""

from __future__ import annotations

import io
import re
import unicodedata
from datetime import datetime
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from gymstudio.db.models import Lead, Plan, Unit
from gymstudio.documents._pdf import FALLBACK_UNIT_NAME, build_styles, text
from gymstudio.documents.export import format_currency_br

GENERAL_TERMS = (
    "a) O CONTRATANTE declara estar em boas condições de saúde para a prática de atividades físicas;",
    "b) O CONTRATANTE compromete-se a respeitar as normas internas do estabelecimento;",
    "c) A CONTRATADA reserva-se o direito de alterar horários e atividades mediante aviso prévio;",
    "d) O pagamento deve ser efetuado até a data de vencimento, sob pena de suspensão do acesso;",
    "e) O cancelamento deve ser solicitado com antecedência mínima de 30 dias;",
    "f) A CONTRATADA não se responsabiliza por objetos pessoais deixados nas dependências.",
)

LGPD_TEXT = (
    "O CONTRATANTE autoriza a coleta e tratamento de seus dados pessoais para fins de prestação dos "
    "serviços contratados, conforme a Lei Geral de Proteção de Dados (Lei nº 13.709/2018). Os dados "
    "serão utilizados exclusivamente para gestão do relacionamento comercial e não serão compartilhados "
    "com terceiros sem consentimento expresso."
)

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def contract_number(now: datetime) -> str:
    value = int(now.timestamp() * 1000)
    digits = ""
    while value:
        value, rest = divmod(value, 36)
        digits = _BASE36[rest] + digits
    return f"CTR-{digits or '0'}"


def section_titles(has_plan: bool) -> list[str]:
    """Numbered section headings; the plan section shifts the rest by one."""

    titles = ["DAS PARTES"]
    if has_plan:
        titles.append("DO PLANO CONTRATADO")
    titles += ["DAS CONDIÇÕES GERAIS", "DO TRATAMENTO DE DADOS (LGPD)", "DAS ASSINATURAS"]
    return [f"{index}. {title}" for index, title in enumerate(titles, start=1)]


def contract_filename(lead: Lead, now: datetime) -> str:
    slug = re.sub(r"\s+", "_", lead.full_name.strip()).lower()
    slug = unicodedata.normalize("NFKD", slug).encode("ascii", "ignore").decode("ascii")
    return f"contrato_{slug}_{now:%Y%m%d}.pdf"


def render_contract_pdf(
    lead: Lead,
    unit: Optional[Unit],
    plan: Optional[Plan],
    now: datetime,
) -> bytes:
    styles = build_styles()
    unit_name = unit.name if unit and unit.name else FALLBACK_UNIT_NAME
    titles = iter(section_titles(plan is not None))

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=20 * mm,
        rightMargin=20 * mm,
        topMargin=20 * mm,
        bottomMargin=20 * mm,
        title="Contrato de Prestação de Serviços",
    )
    story = [Paragraph(text(unit_name), styles["unit"])]
    if unit and unit.cnpj:
        story.append(Paragraph(f"CNPJ: {text(unit.cnpj)}", styles["unit_info"]))
    if unit and unit.address:
        story.append(Paragraph(text(unit.address), styles["unit_info"]))

    story.append(Paragraph("CONTRATO DE PRESTAÇÃO DE SERVIÇOS", styles["title"]))

    header = Table(
        [[f"Contrato Nº: {contract_number(now)}", f"Data: {now:%d/%m/%Y}"]],
        colWidths=[85 * mm, 85 * mm],
    )
    header.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 0), (-1, -1), 10),
                ("ALIGN", (1, 0), (1, 0), "RIGHT"),
                ("LEFTPADDING", (0, 0), (-1, -1), 0),
                ("RIGHTPADDING", (0, 0), (-1, -1), 0),
            ]
        )
    )
    story += [header, Spacer(1, 6 * mm)]

    # Parties
    story.append(Paragraph(next(titles), styles["section"]))
    story.append(Paragraph("CONTRATANTE:", styles["normal"]))
    contratante = [f"Nome: {lead.full_name}"]
    if lead.cpf:
        contratante.append(f"CPF: {lead.cpf}")
    if lead.address:
        contratante.append(f"Endereço: {lead.address}")
    contratante.append(f"Telefone: {lead.phone}")
    if lead.email:
        contratante.append(f"E-mail: {lead.email}")
    story += [Paragraph(text(line), styles["body"]) for line in contratante]

    story.append(Spacer(1, 3 * mm))
    story.append(Paragraph("CONTRATADA:", styles["normal"]))
    contratada = [f"Razão Social: {unit_name}"]
    if unit and unit.cnpj:
        contratada.append(f"CNPJ: {unit.cnpj}")
    if unit and unit.address:
        contratada.append(f"Endereço: {unit.address}")
    story += [Paragraph(text(line), styles["body"]) for line in contratada]

    if plan is not None:
        story.append(Paragraph(next(titles), styles["section"]))
        story.append(Paragraph(text(f"Plano: {plan.name}"), styles["body"]))
        story.append(Paragraph(f"Valor: R$ {format_currency_br(plan.price)}", styles["body"]))
        story.append(Paragraph(f"Duração: {plan.duration_days} dias", styles["body"]))
        if plan.features:
            story.append(Paragraph("Benefícios inclusos:", styles["body"]))
            story += [Paragraph(f"• {text(feature)}", styles["bullet"]) for feature in plan.features]

    story.append(Paragraph(next(titles), styles["section"]))
    story += [Paragraph(text(term), styles["body"]) for term in GENERAL_TERMS]

    story.append(Paragraph(next(titles), styles["section"]))
    story.append(Paragraph(text(LGPD_TEXT), styles["body"]))

    story.append(Paragraph(next(titles), styles["section"]))
    story.append(Spacer(1, 12 * mm))
    signatures = Table(
        [
            ["", ""],
            ["CONTRATANTE", "CONTRATADA"],
            [lead.full_name, unit_name],
        ],
        colWidths=[75 * mm, 75 * mm],
    )
    signatures.setStyle(
        TableStyle(
            [
                ("LINEABOVE", (0, 1), (0, 1), 0.8, colors.black),
                ("LINEABOVE", (1, 1), (1, 1), 0.8, colors.black),
                ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("ALIGN", (0, 0), (-1, -1), "CENTER"),
            ]
        )
    )
    story += [signatures, Spacer(1, 10 * mm)]
    story.append(Paragraph(f"Documento gerado em {now:%d/%m/%Y} às {now:%H:%M}", styles["small"]))

    doc.build(story)
    return buf.getvalue()
