# backend/shopledger/routes/products.py
"""
Product routes.

Aggregates (total_sold, revenue_cents, profit_cents) are read-only here;
they only move through the sell endpoints.
"""
from flask import Blueprint, request, jsonify, current_app

from ..models import Product
from ..services import catalog_service, sell_service, analytics_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    LedgerError,
)
from . import error_response, date_range_args, json_object

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "initial_price_cents", "selling_price_cents", "quantity", "category_id"},
    required_on_create={"name", "initial_price_cents", "selling_price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List products.

    Query params:
    - category_id: int (optional)
    - search: str (optional) - case-insensitive name match
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    return catalog_service.list_products(
        category_id=request.args.get("category_id", type=int),
        search=request.args.get("search"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
    except LedgerError as e:
        return error_response(e)
    data = product.to_dict()
    data["sell_history"] = [s.to_dict() for s in sell_service.list_sales(product_id=product.id)]
    return data


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        product = catalog_service.create_product(patch=patch)
    except LedgerError as e:
        return error_response(e)
    return product.to_dict(), 201


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        product = catalog_service.update_product(product_id, patch=patch)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500
    return product.to_dict()


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    """Delete a product and its sell history. Refused while any of its sales is on a debit."""
    try:
        catalog_service.delete_product(product_id)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
    return {"deleted": True}


@products_bp.post("/<int:product_id>/sell")
def sell_product_route(product_id: int):
    """
    Record a single sale of this product.

    Body: {amount, sold_price_cents, created_at?}
    """
    try:
        data = json_object()
        sale = sell_service.sell_product(
            product_id,
            amount=data.get("amount"),
            sold_price_cents=data.get("sold_price_cents"),
            created_at=data.get("created_at"),
        )
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record product sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"sale": sale.to_dict(), "product": sale.product.to_dict()}), 201


@products_bp.get("/<int:product_id>/analytics")
def product_analytics_route(product_id: int):
    """Lifetime, today, last-7-days and optional start/end figures for one product."""
    try:
        start, end = date_range_args()
        product = catalog_service.get_product(product_id)
    except LedgerError as e:
        return error_response(e)
    return analytics_service.product_analytics(product, start=start, end=end)
