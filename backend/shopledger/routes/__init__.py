# backend/shopledger/routes/__init__.py
"""Shared helpers for the API blueprints."""
from __future__ import annotations

from flask import jsonify, request

from ..time_utils import parse_date_range
from ..validation import (
    LedgerError,
    ValidationError,
    NotFoundError,
    ConflictError,
)


def error_response(e: LedgerError):
    """Map a known ledger error to its JSON response and status code."""
    if isinstance(e, NotFoundError):
        status = 404
    elif isinstance(e, ConflictError):
        status = 409
    else:
        status = 400
    return jsonify({"error": str(e), "details": e.details}), status


def date_range_args():
    """
    Read start/end from the query string.

    Both `start`/`end` and `startDate`/`endDate` are accepted.
    """
    start = request.args.get("start") or request.args.get("startDate")
    end = request.args.get("end") or request.args.get("endDate")
    try:
        return parse_date_range(start, end)
    except ValueError:
        raise ValidationError("start/end must be ISO-8601 dates")


def json_object() -> dict:
    """Request body as a JSON object; an empty or missing body reads as {}."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data
