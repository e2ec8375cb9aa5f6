"""
Excel exchange.

Export writes an .xlsx workbook with Categories, Products, Sell History and
Analytics sheets. Import reads Categories and Products sheets row by row;
a bad row is reported and skipped, it never aborts the other rows.
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Iterable

from flask import current_app
from openpyxl import Workbook, load_workbook
from openpyxl.utils import get_column_letter
from sqlalchemy import func

from ..extensions import db
from ..models import Category, Product, SellHistory
from ..money import cents_to_etb, etb_to_cents
from ..validation import ValidationError, MAX_PRICE_CENTS, MAX_QUANTITY
from shopledger.time_utils import utcnow
from . import analytics_service
from .sell_service import sale_profit_cents

SHEET_CATEGORIES = "Categories"
SHEET_PRODUCTS = "Products"
SHEET_SELL_HISTORY = "Sell History"
SHEET_ANALYTICS = "Analytics"
EXPORT_SHEETS = (SHEET_CATEGORIES, SHEET_PRODUCTS, SHEET_SELL_HISTORY, SHEET_ANALYTICS)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class ExcelImportError(ValidationError):
    """Raised when an uploaded workbook cannot be read at all."""


@dataclass
class ImportResult:
    success: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def merge(self, other: "ImportResult") -> None:
        self.success += other.success
        self.failed += other.failed
        self.errors.extend(other.errors)

    def to_dict(self) -> dict:
        return {"success": self.success, "failed": self.failed, "errors": list(self.errors)}


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def _fmt(dt) -> str:
    return dt.strftime(DATETIME_FORMAT) if dt else ""


def _write_sheet(wb: Workbook, title: str, headers: list[str], rows: Iterable[list[Any]]) -> None:
    ws = wb.create_sheet(title=title)
    ws.append(headers)
    for row in rows:
        ws.append(row)
    for index, header in enumerate(headers, start=1):
        ws.column_dimensions[get_column_letter(index)].width = max(12, len(header) + 2)


def _categories_rows() -> list[list[Any]]:
    counts = dict(
        db.session.query(Product.category_id, func.count(Product.id))
        .group_by(Product.category_id)
        .all()
    )
    return [
        [c.id, c.name, counts.get(c.id, 0), _fmt(c.created_at)]
        for c in db.session.query(Category).order_by(Category.name.asc()).all()
    ]


def _products_rows() -> list[list[Any]]:
    return [
        [
            p.id,
            p.name,
            p.category.name if p.category else "",
            cents_to_etb(p.initial_price_cents),
            cents_to_etb(p.selling_price_cents),
            p.quantity,
            p.total_sold,
            cents_to_etb(p.revenue_cents),
            cents_to_etb(p.profit_cents),
            _fmt(p.created_at),
            _fmt(p.updated_at),
        ]
        for p in db.session.query(Product).order_by(Product.name.asc(), Product.id.asc()).all()
    ]


def _sell_history_rows() -> list[list[Any]]:
    sales = (
        db.session.query(SellHistory)
        .order_by(SellHistory.created_at.desc(), SellHistory.id.desc())
        .all()
    )
    rows = [
        [
            s.id,
            s.kind,
            s.target_name or "",
            _fmt(s.created_at),
            s.amount,
            cents_to_etb(s.sold_price_cents),
            cents_to_etb(s.total_price_cents),
            cents_to_etb(sale_profit_cents(s)),
            s.transaction_id or "",
            s.debit_item.debit_id if s.debit_item else "",
        ]
        for s in sales
    ]
    if not rows:
        rows = [["", "", "No sell history available", "", "", "", "", "", "", ""]]
    return rows


def _analytics_rows() -> list[list[Any]]:
    o = analytics_service.overview()
    return [
        ["Total Products", o["total_products"], "items"],
        ["Total Services", o["total_services"], "items"],
        ["Total Revenue", cents_to_etb(o["total_revenue_cents"]), "ETB"],
        ["Total Items Sold", o["total_items_sold"], "items"],
        ["Today's Profit", cents_to_etb(o["today_profit_cents"]), "ETB"],
        ["Weekly Profit (Last 7 Days)", cents_to_etb(o["weekly_profit_cents"]), "ETB"],
        ["Total Profit", cents_to_etb(o["total_profit_cents"]), "ETB"],
        ["Total Expenses", cents_to_etb(o["total_expenses_cents"]), "ETB"],
        ["Net Profit", cents_to_etb(o["net_profit_cents"]), "ETB"],
        ["Export Date", utcnow().strftime(DATETIME_FORMAT), ""],
    ]


def export_workbook(sheets: Iterable[str] | None = None) -> io.BytesIO:
    """Build the export workbook. `sheets` limits which sheets are written."""
    wanted = list(sheets) if sheets else list(EXPORT_SHEETS)
    unknown = [s for s in wanted if s not in EXPORT_SHEETS]
    if unknown:
        raise ValidationError(f"Unknown sheet: {unknown[0]}", details={"allowed": list(EXPORT_SHEETS)})

    wb = Workbook()
    wb.remove(wb.active)

    if SHEET_CATEGORIES in wanted:
        _write_sheet(wb, SHEET_CATEGORIES, ["Category ID", "Category Name", "Products", "Created At"],
                     _categories_rows())
    if SHEET_PRODUCTS in wanted:
        _write_sheet(
            wb, SHEET_PRODUCTS,
            ["Product ID", "Product Name", "Category", "Initial Price (ETB)", "Selling Price (ETB)",
             "Quantity", "Total Sold", "Revenue (ETB)", "Profit (ETB)", "Created At", "Updated At"],
            _products_rows(),
        )
    if SHEET_SELL_HISTORY in wanted:
        _write_sheet(
            wb, SHEET_SELL_HISTORY,
            ["Sale ID", "Kind", "Name", "Sale Date", "Quantity Sold", "Price per Unit (ETB)",
             "Total Revenue (ETB)", "Profit (ETB)", "Transaction ID", "Debit ID"],
            _sell_history_rows(),
        )
    if SHEET_ANALYTICS in wanted:
        _write_sheet(wb, SHEET_ANALYTICS, ["Metric", "Value", "Unit"], _analytics_rows())

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output


def export_filename() -> str:
    return f"Shop_Inventory_{utcnow().strftime('%Y-%m-%d_%H-%M-%S')}.xlsx"


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

def _sheet_rows(ws) -> list[dict[str, Any]]:
    data = list(ws.values)
    if not data:
        return []
    headers = [str(h).strip() if h is not None else "" for h in data[0]]
    rows = []
    for values in data[1:]:
        if values is None or all(v is None or str(v).strip() == "" for v in values):
            rows.append({})
            continue
        rows.append({headers[i]: values[i] for i in range(min(len(headers), len(values)))})
    return rows


def _first(row: dict, *keys: str):
    for key in keys:
        value = row.get(key)
        if value is not None and str(value).strip() != "":
            return value
    return None


def parse_category_row(row: dict, seen: set[str]) -> str:
    name = str(_first(row, "Category Name", "Name") or "").strip()
    if not name:
        raise ValidationError("Category name is required")
    if len(name) > 100:
        raise ValidationError("Category name must be less than 100 characters")
    if name.lower() in seen:
        raise ValidationError(f'Duplicate category name "{name}"')
    return name


def parse_product_row(row: dict) -> dict:
    name = str(_first(row, "Product Name", "Name") or "").strip()
    if not name:
        raise ValidationError("Product name is required")

    try:
        initial = etb_to_cents(_first(row, "Initial Price (ETB)", "Initial Price") or 0)
        selling = etb_to_cents(_first(row, "Selling Price (ETB)", "Selling Price") or 0)
    except ValueError as e:
        raise ValidationError(f"Invalid price: {e}")
    if initial <= 0:
        raise ValidationError("Initial price must be positive")
    if selling <= 0:
        raise ValidationError("Selling price must be positive")
    if initial > MAX_PRICE_CENTS or selling > MAX_PRICE_CENTS:
        raise ValidationError("Price is too large")

    raw_qty = _first(row, "Quantity", "Stock")
    try:
        quantity = int(str(raw_qty).strip()) if raw_qty is not None else 0
    except ValueError:
        try:
            as_float = float(str(raw_qty))
        except ValueError:
            raise ValidationError("Quantity must be a non-negative integer")
        if not as_float.is_integer():
            raise ValidationError("Quantity must be a non-negative integer")
        quantity = int(as_float)
    if quantity < 0:
        raise ValidationError("Quantity must be a non-negative integer")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"Quantity cannot exceed {MAX_QUANTITY:,}")

    category = _first(row, "Category")
    return {
        "name": name,
        "initial_price_cents": initial,
        "selling_price_cents": selling,
        "quantity": quantity,
        "category_name": str(category).strip() if category is not None else None,
    }


def _import_categories(rows: list[dict]) -> ImportResult:
    result = ImportResult()
    seen = {n.lower() for (n,) in db.session.query(Category.name).all()}
    for index, row in enumerate(rows):
        excel_row = index + 2  # header is row 1
        if not row:
            continue
        try:
            name = parse_category_row(row, seen)
            db.session.add(Category(name=name))
            db.session.commit()
            seen.add(name.lower())
            result.success += 1
        except ValidationError as e:
            db.session.rollback()
            result.failed += 1
            result.errors.append(f"{SHEET_CATEGORIES} - Row {excel_row}: {e}")
    return result


def _category_by_name(name: str) -> Category:
    category = db.session.query(Category).filter(func.lower(Category.name) == name.lower()).first()
    if category is None:
        category = Category(name=name)
        db.session.add(category)
        db.session.flush()
    return category


def _import_products(rows: list[dict]) -> ImportResult:
    result = ImportResult()
    for index, row in enumerate(rows):
        excel_row = index + 2
        if not row:
            continue
        try:
            data = parse_product_row(row)
            category_name = data.pop("category_name")
            product = Product(total_sold=0, revenue_cents=0, profit_cents=0, **data)
            if category_name:
                product.category = _category_by_name(category_name)
            db.session.add(product)
            db.session.commit()
            result.success += 1
        except ValidationError as e:
            db.session.rollback()
            result.failed += 1
            result.errors.append(f"{SHEET_PRODUCTS} - Row {excel_row}: {e}")
    return result


def import_workbook(stream: BinaryIO, *, categories: bool = True, products: bool = True) -> ImportResult:
    """
    Import categories and/or products from an uploaded workbook.

    When no sheet is named "Products", the first sheet is read as products.
    """
    if not categories and not products:
        raise ValidationError("Select at least one of categories or products to import")
    try:
        wb = load_workbook(stream, data_only=True, read_only=True)
    except Exception as e:
        raise ExcelImportError(f"Failed to read workbook: {e}") from e

    result = ImportResult()
    try:
        names = wb.sheetnames
        if categories and SHEET_CATEGORIES in names:
            result.merge(_import_categories(_sheet_rows(wb[SHEET_CATEGORIES])))
        if products:
            if SHEET_PRODUCTS in names:
                sheet = wb[SHEET_PRODUCTS]
            elif names and names[0] != SHEET_CATEGORIES:
                sheet = wb[names[0]]
            else:
                sheet = None
            if sheet is not None:
                result.merge(_import_products(_sheet_rows(sheet)))
    finally:
        wb.close()

    current_app.logger.info(
        "Excel import finished: success=%s failed=%s", result.success, result.failed,
    )
    return result
