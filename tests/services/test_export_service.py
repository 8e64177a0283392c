"""
Tests for the ledger workbook export.

Covers:
- Filename and sheet layout
- Department scoping of products and movements
- Placeholders and LOW STOCK status
- REPORTS_EXPORT capability
"""

from io import BytesIO

import pytest
from openpyxl import load_workbook

from stockroom_kernel.domain.models import MovementType
from stockroom_kernel.domain.permissions import Permission
from stockroom_kernel.exceptions import PermissionDeniedError
from stockroom_services.export_service import (
    BALANCE_COLUMNS,
    BALANCE_SHEET,
    ENTRY_SHEET,
    ISSUE_COLUMNS,
    ISSUE_SHEET,
    TABLE_START_ROW,
    build_ledger_workbook,
)


@pytest.fixture
def stocked(ledger, admin, register_product):
    """Two HR products and one Store product with some movements."""
    gloves = register_product("Gloves", quantity="10", department="HR", min_stock="10", location="R1")
    register_product("Files", quantity="40", department="HR")
    drum = register_product("Oil Drum", quantity="5", department="Store")
    ledger.apply_movement(admin, gloves.id, MovementType.OUT, "4", target_department="ETP")
    ledger.apply_movement(admin, drum.id, MovementType.OUT, "1", remarks="Boiler top-up")
    return gloves


def _rows(ws):
    return [list(row) for row in ws.iter_rows(min_row=TABLE_START_ROW + 1, values_only=True)]


def _reopen(export):
    return load_workbook(BytesIO(export.to_bytes()))


class TestLayout:
    def test_filename_uses_scope_and_date(self, admin, state, deterministic_clock):
        export = build_ledger_workbook(admin, state.products, state.transactions, "All", deterministic_clock)
        assert export.filename == "All_Inventory_Ledger_2024-03-15.xlsx"

    def test_sheets_and_headings(self, stocked, admin, state, deterministic_clock):
        wb = _reopen(build_ledger_workbook(
            admin, state.products, state.transactions, "HR", deterministic_clock
        ))

        assert wb.sheetnames == [BALANCE_SHEET, ENTRY_SHEET, ISSUE_SHEET]
        balance = wb[BALANCE_SHEET]
        assert balance["A1"].value == "INVENTORY BALANCE REPORT - HR"
        assert balance["A1"].font.bold
        assert balance["A2"].value == "Generated on: 2024-03-15 09:30:00"
        assert balance["A3"].value is None
        header = [c.value for c in balance[TABLE_START_ROW]]
        assert tuple(header) == BALANCE_COLUMNS
        assert tuple(c.value for c in wb[ISSUE_SHEET][TABLE_START_ROW]) == ISSUE_COLUMNS

    def test_save_to_directory(self, admin, state, deterministic_clock, tmp_path):
        export = build_ledger_workbook(admin, state.products, state.transactions, "Store", deterministic_clock)
        path = export.save(tmp_path)
        assert path.name == "Store_Inventory_Ledger_2024-03-15.xlsx"
        assert load_workbook(path).sheetnames[0] == BALANCE_SHEET


class TestContent:
    def test_balance_rows_scoped_to_department(self, stocked, admin, state, deterministic_clock):
        wb = _reopen(build_ledger_workbook(
            admin, state.products, state.transactions, "HR", deterministic_clock
        ))
        rows = _rows(wb[BALANCE_SHEET])

        assert [r[0] for r in rows] == ["Gloves", "Files"]
        gloves = rows[0]
        assert gloves[5] == 10  # received
        assert gloves[6] == 4   # issued
        assert gloves[7] == 6   # balance
        assert gloves[9] == "R1"
        assert gloves[10] == "LOW STOCK"
        assert rows[1][9] == "-"
        assert rows[1][10] == "OK"

    def test_movement_sheets(self, stocked, admin, state, deterministic_clock):
        wb = _reopen(build_ledger_workbook(
            admin, state.products, state.transactions, "All", deterministic_clock
        ))
        entries = _rows(wb[ENTRY_SHEET])
        issues = _rows(wb[ISSUE_SHEET])

        assert len(entries) == 3
        assert entries[0][3] == "Opening Stock"
        assert {i[1] for i in issues} == {"Gloves", "Oil Drum"}
        gloves_issue = next(i for i in issues if i[1] == "Gloves")
        assert gloves_issue[3] == "ETP"
        assert gloves_issue[4] == "-"

    def test_issue_booked_elsewhere_leaves_department_export(self, stocked, admin, state, deterministic_clock):
        wb = _reopen(build_ledger_workbook(
            admin, state.products, state.transactions, "HR", deterministic_clock
        ))
        assert _rows(wb[ISSUE_SHEET]) == []

    def test_requires_reports_export(self, make_user, state):
        viewer = make_user("viewer", "HR", {Permission.REPORTS_VIEW})
        with pytest.raises(PermissionDeniedError):
            build_ledger_workbook(viewer, state.products, state.transactions, "HR")
