# backend/shopledger/routes/ledger.py
from flask import Blueprint

from ..services.reconcile_service import check_ledger

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


@ledger_bp.get("/check")
def ledger_check_route():
    """Recompute stored aggregates from their rows and list every mismatch."""
    drifts = check_ledger()
    return {
        "ok": not drifts,
        "drift_count": len(drifts),
        "drifts": [d.to_dict() for d in drifts],
    }
