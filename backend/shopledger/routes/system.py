# backend/shopledger/routes/system.py
"""
System health and version endpoints.

Health checks the database and the ledger tables the engine depends on;
version reports non-sensitive deployment information.
"""

import sys
import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Product, Service, SellHistory, Debit
from ..time_utils import utcnow, to_utc_z

API_VERSION = "1.0.0"

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity by counting the core ledger tables.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        details = {
            "products": db.session.query(Product).count(),
            "services": db.session.query(Service).count(),
            "sell_history": db.session.query(SellHistory).count(),
            "debits": db.session.query(Debit).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unhealthy
    """
    start_time = time.time()
    database_health = check_database_health()
    healthy = database_health["status"] == "healthy"

    response = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {"database": database_health},
    }
    return response, 200 if healthy else 503


@system_bp.get("/version")
def version():
    """Non-sensitive deployment information. Never exposes secrets or paths."""
    env = "production" if not current_app.debug else "development"
    return {
        "api_version": API_VERSION,
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
