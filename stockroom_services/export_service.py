"""
Spreadsheet export of the stock ledger.

Builds a three-sheet workbook for one department scope:

  Inventory Balance      one row per product
  Stock Entry History    IN transactions
  Stock Issue History    OUT transactions

Each sheet carries a heading in row 1, ``Generated on: <timestamp>`` in
row 2, a blank row 3, and the table (header + rows) from A4.
"""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Sequence

from openpyxl import Workbook
from openpyxl.styles import Font

from stockroom_kernel.domain.clock import Clock, SystemClock
from stockroom_kernel.domain.models import MovementType, Product, Transaction, User
from stockroom_kernel.domain.permissions import Permission, require_permission
from stockroom_kernel.domain.visibility import filter_products, filter_transactions
from stockroom_kernel.logging_config import get_logger

logger = get_logger("export.ledger")

BALANCE_SHEET = "Inventory Balance"
ENTRY_SHEET = "Stock Entry History"
ISSUE_SHEET = "Stock Issue History"

BALANCE_COLUMNS = (
    "Item Name", "SKU", "Category", "Department", "Price",
    "Qty In (Add)", "Qty Out (Issue)", "Available Balance", "Unit",
    "Location", "Status",
)
ENTRY_COLUMNS = ("Date", "Item", "Qty Added", "Ref/Source", "Remarks", "Posted By")
ISSUE_COLUMNS = ("Date", "Item", "Qty Issued", "Target Dept", "Remarks", "Issued By")

TABLE_START_ROW = 4
_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class LedgerExport:
    filename: str
    workbook: Workbook

    def to_bytes(self) -> bytes:
        buffer = BytesIO()
        self.workbook.save(buffer)
        return buffer.getvalue()

    def save(self, directory: Path) -> Path:
        path = Path(directory) / self.filename
        self.workbook.save(path)
        return path


def export_filename(department: str, clock: Clock) -> str:
    return f"{department}_Inventory_Ledger_{clock.today_iso()}.xlsx"


def _write_sheet(ws, heading: str, generated_on: str, columns: Sequence[str], rows) -> None:
    ws.cell(row=1, column=1, value=heading).font = Font(bold=True)
    ws.cell(row=2, column=1, value=f"Generated on: {generated_on}")
    for col, title in enumerate(columns, start=1):
        ws.cell(row=TABLE_START_ROW, column=col, value=title).font = Font(bold=True)
    for offset, values in enumerate(rows, start=1):
        for col, value in enumerate(values, start=1):
            ws.cell(row=TABLE_START_ROW + offset, column=col, value=value)


def _balance_row(p: Product) -> tuple:
    return (
        p.name, p.sku, p.category, p.department, p.price,
        p.total_received, p.total_issued, p.quantity, p.unit.value,
        p.location or "-",
        "LOW STOCK" if p.is_low_stock else "OK",
    )


def _entry_row(t: Transaction) -> tuple:
    return (
        t.date.strftime(_TIMESTAMP_FORMAT), t.product_name, t.quantity,
        t.reference or "-", t.remarks or "-", t.user,
    )


def _issue_row(t: Transaction) -> tuple:
    return (
        t.date.strftime(_TIMESTAMP_FORMAT), t.product_name, t.quantity,
        t.department, t.remarks or "-", t.user,
    )


def build_ledger_workbook(
    actor: User,
    products: Sequence[Product],
    transactions: Sequence[Transaction],
    department: str,
    clock: Clock | None = None,
) -> LedgerExport:
    """
    Build the ledger workbook for ``department`` (``All`` for every one).

    Args:
        actor: Needs REPORTS_EXPORT.
        products: Product store; filtered to ``department`` here.
        transactions: Transaction store; filtered to ``department`` here.
        department: The effective department of the requesting view.
        clock: Source of the generation timestamp and filename date.
    """
    require_permission(actor, Permission.REPORTS_EXPORT)
    clock = clock or SystemClock()
    generated_on = clock.now().strftime(_TIMESTAMP_FORMAT)
    scope = department.upper()

    visible_products = filter_products(products, department)
    visible_transactions = filter_transactions(transactions, department)
    receipts = [t for t in visible_transactions if t.type == MovementType.IN]
    issues = [t for t in visible_transactions if t.type == MovementType.OUT]

    wb = Workbook()
    balance = wb.active
    balance.title = BALANCE_SHEET
    _write_sheet(
        balance, f"INVENTORY BALANCE REPORT - {scope}", generated_on,
        BALANCE_COLUMNS, (_balance_row(p) for p in visible_products),
    )
    _write_sheet(
        wb.create_sheet(ENTRY_SHEET), f"STOCK RECEIPT LOG (ADDITIONS) - {scope}",
        generated_on, ENTRY_COLUMNS, (_entry_row(t) for t in receipts),
    )
    _write_sheet(
        wb.create_sheet(ISSUE_SHEET), f"STOCK ISSUANCE LOG (CONSUMPTION) - {scope}",
        generated_on, ISSUE_COLUMNS, (_issue_row(t) for t in issues),
    )

    logger.info(
        "ledger_exported",
        extra={
            "scope": department,
            "product_rows": len(visible_products),
            "receipt_rows": len(receipts),
            "issue_rows": len(issues),
        },
    )
    return LedgerExport(filename=export_filename(department, clock), workbook=wb)
