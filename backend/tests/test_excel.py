# Overview: Pytest coverage for the Excel export and import.

import io

import pytest
from openpyxl import Workbook, load_workbook

from shopledger.models import Category, Product
from shopledger.services import excel_service, sell_service
from shopledger.services.excel_service import ExcelImportError
from shopledger.validation import ValidationError


def _workbook_bytes(sheets: dict) -> io.BytesIO:
    wb = Workbook()
    wb.remove(wb.active)
    for title, rows in sheets.items():
        ws = wb.create_sheet(title=title)
        for row in rows:
            ws.append(row)
    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output


class TestExport:

    def test_all_sheets(self, db_session, make_category, make_product):
        drinks = make_category("Drinks")
        cola = make_product(name="Cola", initial_price_cents=2500, selling_price_cents=3550,
                            quantity=10, category_id=drinks.id)
        sell_service.sell_product(cola.id, amount=2, sold_price_cents=3550)

        wb = load_workbook(excel_service.export_workbook())

        assert wb.sheetnames == ["Categories", "Products", "Sell History", "Analytics"]

        products = list(wb["Products"].values)
        assert products[0][1] == "Product Name"
        assert products[1][1] == "Cola"
        assert products[1][2] == "Drinks"
        assert products[1][3] == 25.0
        assert products[1][4] == 35.5
        assert products[1][5] == 8

        sales = list(wb["Sell History"].values)
        assert len(sales) == 2
        assert sales[1][2] == "Cola"
        assert sales[1][6] == 71.0
        assert sales[1][7] == 21.0

        metrics = {row[0]: row[1] for row in wb["Analytics"].values}
        assert metrics["Total Revenue"] == 71.0

    def test_sell_history_placeholder_when_empty(self, db_session):
        wb = load_workbook(excel_service.export_workbook(["Sell History"]))
        assert wb.sheetnames == ["Sell History"]
        rows = list(wb["Sell History"].values)
        assert len(rows) == 2
        assert rows[1][2] == "No sell history available"

    def test_unknown_sheet(self, db_session):
        with pytest.raises(ValidationError):
            excel_service.export_workbook(["Customers"])


class TestImport:

    def test_categories_and_products(self, db_session, make_category):
        make_category("Drinks")
        upload = _workbook_bytes({
            "Categories": [
                ["Category Name"],
                ["Snacks"],
                ["Bakery"],
                ["drinks"],
                [None],
            ],
            "Products": [
                ["Product Name", "Category", "Initial Price (ETB)", "Selling Price (ETB)", "Quantity"],
                ["Cola", "Drinks", 25, 35, 48],
                ["Broken", None, "abc", 10, 1],
                ["Chips", "snacks", 10.5, 15, 3.0],
                [None, "Drinks", 1, 2, 3],
                ["Gum", "Candy", 1, 0, 3],
            ],
        })

        result = excel_service.import_workbook(upload)

        assert result.success == 4
        assert result.failed == 4
        assert result.errors[0] == 'Categories - Row 4: Duplicate category name "drinks"'
        assert result.errors[1].startswith("Products - Row 3: Invalid price")
        assert result.errors[2] == "Products - Row 5: Product name is required"
        assert result.errors[3] == "Products - Row 6: Selling price must be positive"

        chips = db_session.query(Product).filter_by(name="Chips").one()
        assert chips.initial_price_cents == 1050
        assert chips.selling_price_cents == 1500
        assert chips.quantity == 3
        assert chips.category.name == "Snacks"
        assert chips.total_sold == 0

        cola = db_session.query(Product).filter_by(name="Cola").one()
        assert cola.category.name == "Drinks"
        assert db_session.query(Category).count() == 3

    def test_plain_headers_on_first_sheet(self, db_session):
        upload = _workbook_bytes({
            "Sheet1": [
                ["Name", "Initial Price", "Selling Price", "Stock"],
                ["Pen", 5, 8, 100],
            ],
        })

        result = excel_service.import_workbook(upload, categories=False)

        assert result.to_dict() == {"success": 1, "failed": 0, "errors": []}
        pen = db_session.query(Product).filter_by(name="Pen").one()
        assert pen.category_id is None
        assert pen.quantity == 100

    def test_unknown_category_is_created(self, db_session):
        upload = _workbook_bytes({
            "Products": [
                ["Product Name", "Category", "Initial Price (ETB)", "Selling Price (ETB)", "Quantity"],
                ["Soap", "Hygiene", 20, 30, 5],
            ],
        })
        excel_service.import_workbook(upload)
        assert db_session.query(Category).filter_by(name="Hygiene").count() == 1

    def test_nothing_selected(self, db_session):
        with pytest.raises(ValidationError):
            excel_service.import_workbook(io.BytesIO(b""), categories=False, products=False)

    def test_not_a_workbook(self, db_session):
        with pytest.raises(ExcelImportError):
            excel_service.import_workbook(io.BytesIO(b"not an xlsx file"))
