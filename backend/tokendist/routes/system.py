# backend/tokendist/routes/system.py
"""
System health endpoint.

Checks database connectivity and that both engines have been bootstrapped.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import SaleRound, SaleState, AllocationGroup, AllocationState
from ..models.allocation import GROUP_CODES
from ..models.sale import ROUND_COUNT
from .. import time_utils

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        round_count = db.session.query(SaleRound).count()
        group_count = db.session.query(AllocationGroup).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "sale_rounds": round_count,
                "allocation_groups": group_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_bootstrap_health() -> dict:
    """
    Check that rounds, groups and both singleton state rows exist.
    """
    start_time = time.time()
    try:
        missing = []
        if db.session.query(SaleRound).count() != ROUND_COUNT:
            missing.append("sale_rounds")
        if db.session.query(SaleState).filter_by(id=1).first() is None:
            missing.append("sale_state")
        if db.session.query(AllocationGroup).count() != len(GROUP_CODES):
            missing.append("allocation_groups")
        if db.session.query(AllocationState).filter_by(id=1).first() is None:
            missing.append("allocation_state")

        elapsed_ms = (time.time() - start_time) * 1000

        if missing:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": f"Not initialized: {', '.join(missing)}",
            }

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Bootstrap health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Bootstrap check error"
        }


@system_bp.get("/api/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded (not yet bootstrapped)
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    bootstrap_health = check_bootstrap_health()

    all_checks = [database_health, bootstrap_health]
    unhealthy_count = sum(1 for check in all_checks if check["status"] == "unhealthy")
    degraded_count = sum(1 for check in all_checks if check["status"] == "degraded")

    if unhealthy_count > 0:
        overall_status = "unhealthy"
        http_status = 503
    elif degraded_count > 0:
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": time_utils.ts_to_utc_z(time_utils.now_ts()),
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "bootstrap": bootstrap_health,
        }
    }

    return response, http_status
