"""
CSV/XLSX export and spreadsheet reading for lead import.

CSV output starts with a UTF-8 BOM so spreadsheet tools pick the right
encoding; XLSX goes through openpyxl.
"""

from __future__ import annotations

import csv
import io
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Sequence

from openpyxl import Workbook, load_workbook
from openpyxl.utils import get_column_letter

from gymstudio.db.models import INVOICE_STATUS_LABELS, PIPELINE_STATUS_LABELS, Invoice, Lead

BOM = "\ufeff"
MAX_COLUMN_WIDTH = 60

LEAD_HEADERS: dict[str, str] = {
    "full_name": "Nome Completo",
    "phone": "Telefone",
    "email": "E-mail",
    "cpf": "CPF",
    "birth_date": "Data de Nascimento",
    "gender": "Gênero",
    "address": "Endereço",
    "source": "Origem",
    "status": "Status",
    "notes": "Observações",
    "created_at": "Data de Cadastro",
}

INVOICE_HEADERS: dict[str, str] = {
    "lead": "Aluno",
    "description": "Descrição",
    "amount": "Valor",
    "due_date": "Vencimento",
    "status": "Status",
    "paid_at": "Pago em",
}

Row = Mapping[str, Any]


def format_currency_br(value: Decimal | float | int) -> str:
    """1234.5 -> '1.234,50'."""
    text = f"{Decimal(str(value)):,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_date_br(value: Optional[date | datetime], *, with_time: bool = False) -> str:
    if value is None:
        return ""
    if with_time and isinstance(value, datetime):
        return value.strftime("%d/%m/%Y %H:%M")
    return value.strftime("%d/%m/%Y")


def export_filename(prefix: str, extension: str, now: datetime) -> str:
    return f"{prefix}_{now:%Y-%m-%d}.{extension.lstrip('.')}"


def leads_to_rows(leads: Iterable[Lead]) -> list[dict[str, str]]:
    """Leads as rows keyed by the Portuguese column headers."""

    rows = []
    for lead in leads:
        rows.append(
            {
                LEAD_HEADERS["full_name"]: lead.full_name,
                LEAD_HEADERS["phone"]: lead.phone,
                LEAD_HEADERS["email"]: lead.email or "",
                LEAD_HEADERS["cpf"]: lead.cpf or "",
                LEAD_HEADERS["birth_date"]: format_date_br(lead.birth_date),
                LEAD_HEADERS["gender"]: lead.gender or "",
                LEAD_HEADERS["address"]: lead.address or "",
                LEAD_HEADERS["source"]: lead.source or "",
                LEAD_HEADERS["status"]: PIPELINE_STATUS_LABELS[lead.status],
                LEAD_HEADERS["notes"]: lead.notes or "",
                LEAD_HEADERS["created_at"]: format_date_br(lead.created_at, with_time=True),
            }
        )
    return rows


def invoices_to_rows(invoices: Iterable[Invoice]) -> list[dict[str, str]]:
    return [
        {
            INVOICE_HEADERS["lead"]: invoice.lead.full_name if invoice.lead else "",
            INVOICE_HEADERS["description"]: invoice.description or "",
            INVOICE_HEADERS["amount"]: format_currency_br(invoice.amount),
            INVOICE_HEADERS["due_date"]: format_date_br(invoice.due_date),
            INVOICE_HEADERS["status"]: INVOICE_STATUS_LABELS[invoice.status],
            INVOICE_HEADERS["paid_at"]: format_date_br(invoice.paid_at),
        }
        for invoice in invoices
    ]


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def export_csv(rows: Sequence[Row], headers: Optional[Mapping[str, str]] = None) -> bytes:
    """
    Serialize rows to CSV bytes.

    Columns come from the first row; `headers` optionally renames them.
    Values with commas, quotes or newlines are quoted. An empty input
    yields an empty payload.
    """

    if not rows:
        return b""
    keys = list(rows[0].keys())
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow([(headers or {}).get(key, key) for key in keys])
    for row in rows:
        writer.writerow([_cell(row.get(key)) for key in keys])
    return (BOM + buf.getvalue()).encode("utf-8")


def export_xlsx(rows: Sequence[Row], sheet_name: str = "Leads") -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name[:31]

    keys = list(rows[0].keys()) if rows else []
    ws.append(keys)
    for row in rows:
        ws.append([_cell(row.get(key)) for key in keys])

    # User text is never written as a formula
    for cells in ws.iter_rows():
        for cell in cells:
            if cell.data_type == "f":
                cell.data_type = "s"

    for index, key in enumerate(keys, start=1):
        width = max([len(str(key))] + [len(str(_cell(row.get(key)))) for row in rows])
        ws.column_dimensions[get_column_letter(index)].width = min(width + 2, MAX_COLUMN_WIDTH)

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _table_to_dicts(table: list[list[str]]) -> list[dict[str, str]]:
    table = [r for r in table if any((c or "").strip() for c in r)]
    if not table:
        return []
    headers = [h.strip() for h in table[0]]
    result = []
    for values in table[1:]:
        padded = (values + [""] * len(headers))[: len(headers)]
        result.append({h: v.strip() for h, v in zip(headers, padded) if h})
    return result


def read_csv(content: bytes) -> list[dict[str, str]]:
    """Rows of a CSV file keyed by its header row (BOM tolerated)."""

    text = content.decode("utf-8-sig")
    sample = text[:2048]
    delimiter = ";" if sample.count(";") > sample.count(",") else ","
    return _table_to_dicts(list(csv.reader(io.StringIO(text), delimiter=delimiter)))


def read_xlsx(content: bytes) -> list[dict[str, str]]:
    wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    ws = wb.active
    table: list[list[str]] = []
    for values in ws.iter_rows(values_only=True):
        table.append([_xlsx_text(v) for v in values])
    wb.close()
    return _table_to_dicts(table)


def _xlsx_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.strftime("%Y-%m-%d")
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()
