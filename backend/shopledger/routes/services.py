# backend/shopledger/routes/services.py
"""Service (non-stocked offering) routes."""
from flask import Blueprint, request, jsonify, current_app

from ..models import Service
from ..services import catalog_service, sell_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_service,
    LedgerError,
)
from . import error_response, json_object

SERVICE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "default_price_cents"},
    required_on_create={"name", "default_price_cents"},
)

services_bp = Blueprint("services", __name__, url_prefix="/api/services")


@services_bp.get("")
def list_services_route():
    services = catalog_service.list_services()
    return {"items": [s.to_dict() for s in services], "count": len(services)}


@services_bp.get("/<int:service_id>")
def get_service_route(service_id: int):
    try:
        service = catalog_service.get_service(service_id)
    except LedgerError as e:
        return error_response(e)
    data = service.to_dict()
    data["sell_history"] = [s.to_dict() for s in sell_service.list_sales(service_id=service.id)]
    return data


@services_bp.post("")
def create_service_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Service, payload=payload, policy=SERVICE_POLICY, partial=False)
        enforce_rules_service(patch)
        service = catalog_service.create_service(patch=patch)
    except LedgerError as e:
        return error_response(e)
    return service.to_dict(), 201


@services_bp.put("/<int:service_id>")
def update_service_route(service_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Service, payload=payload, policy=SERVICE_POLICY, partial=True)
        enforce_rules_service(patch)
        service = catalog_service.update_service(service_id, patch=patch)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update service")
        return jsonify({"error": "Internal server error"}), 500
    return service.to_dict()


@services_bp.delete("/<int:service_id>")
def delete_service_route(service_id: int):
    try:
        catalog_service.delete_service(service_id)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete service")
        return jsonify({"error": "Internal server error"}), 500
    return {"deleted": True}


@services_bp.post("/<int:service_id>/sell")
def sell_service_route(service_id: int):
    """
    Record a single sale of this service.

    Body: {amount, sold_price_cents, created_at?}
    """
    try:
        data = json_object()
        sale = sell_service.sell_service(
            service_id,
            amount=data.get("amount"),
            sold_price_cents=data.get("sold_price_cents"),
            created_at=data.get("created_at"),
        )
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record service sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"sale": sale.to_dict(), "service": sale.service.to_dict()}), 201
