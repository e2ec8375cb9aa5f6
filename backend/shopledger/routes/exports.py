# backend/shopledger/routes/exports.py
"""
Excel export and import.

Export streams an .xlsx workbook. Import accepts a multipart upload under
the "file" field; each row succeeds or fails on its own.
"""
import io

from flask import Blueprint, request, jsonify, send_file, current_app

from ..services import excel_service
from ..validation import LedgerError
from . import error_response

exports_bp = Blueprint("exports", __name__, url_prefix="/api/excel")

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _flag(name: str, default: bool = True) -> bool:
    raw = request.args.get(name) or request.form.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


@exports_bp.get("/export")
def export_route():
    """
    Query params:
    - sheets: comma-separated sheet names (optional, default all)
    """
    raw = request.args.get("sheets")
    sheets = [s.strip() for s in raw.split(",") if s.strip()] if raw else None
    try:
        output = excel_service.export_workbook(sheets)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to export workbook")
        return jsonify({"error": "Internal server error"}), 500

    return send_file(
        output,
        mimetype=excel_service.XLSX_MIMETYPE,
        as_attachment=True,
        download_name=excel_service.export_filename(),
    )


@exports_bp.post("/import")
def import_route():
    """
    Form fields:
    - file: .xlsx upload (required)
    - categories / products: "true" | "false" (optional, default true)
    """
    if "file" not in request.files:
        return jsonify({"error": "file is required"}), 400

    file = request.files["file"]
    filename = file.filename or ""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if ext not in {"xlsx", "xlsm"}:
        return jsonify({"error": "Please upload an Excel file (.xlsx)"}), 400

    try:
        result = excel_service.import_workbook(
            io.BytesIO(file.read()),
            categories=_flag("categories"),
            products=_flag("products"),
        )
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to import workbook")
        return jsonify({"error": "Internal server error"}), 500

    return result.to_dict()
