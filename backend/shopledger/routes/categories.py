# backend/shopledger/routes/categories.py
"""Category routes. Deleting a category detaches its products."""
from flask import Blueprint, request, jsonify, current_app

from ..models import Category
from ..services import catalog_service
from ..validation import ModelValidationPolicy, validate_payload, LedgerError
from . import error_response

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name"},
    required_on_create={"name"},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
def list_categories_route():
    items = catalog_service.list_categories()
    return {"items": items, "count": len(items)}


@categories_bp.get("/<int:category_id>")
def get_category_route(category_id: int):
    try:
        category = catalog_service.get_category(category_id)
    except LedgerError as e:
        return error_response(e)
    data = category.to_dict()
    data["products"] = [p.to_dict() for p in sorted(category.products, key=lambda p: p.name)]
    return data


@categories_bp.post("")
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        category = catalog_service.create_category(patch=patch)
    except LedgerError as e:
        return error_response(e)
    return category.to_dict(), 201


@categories_bp.put("/<int:category_id>")
def rename_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
        category = catalog_service.rename_category(category_id, patch=patch)
    except LedgerError as e:
        return error_response(e)
    return category.to_dict()


@categories_bp.delete("/<int:category_id>")
def delete_category_route(category_id: int):
    try:
        detached = catalog_service.delete_category(category_id)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return jsonify({"error": "Internal server error"}), 500
    return {"deleted": True, "products_detached": detached}
