# Overview: Liveness and dependency health endpoint.

"""
System health endpoint.

Reports database and session-table health. A failing check turns the
overall status to unhealthy and the response code to 503.
"""

import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import SessionToken, Store, StoreStatus
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def _timed_check(name: str, check) -> dict:
    start_time = time.time()
    try:
        details = check()
    except Exception:
        current_app.logger.exception("%s health check failed", name)
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": f"{name} error",
        }
    return {
        "status": "healthy",
        "latency_ms": round((time.time() - start_time) * 1000, 2),
        "details": details,
    }


def _database_check() -> dict:
    return {
        "stores": db.session.query(Store).count(),
        "active_stores": db.session.query(Store).filter(Store.status == StoreStatus.ACTIVE).count(),
    }


def _session_check() -> dict:
    now = utcnow()
    active = db.session.query(SessionToken).filter(SessionToken.is_revoked.is_(False))
    return {
        "active_sessions": active.count(),
        "expired_pending_cleanup": active.filter(SessionToken.expires_at < now).count(),
    }


@system_bp.get("/health")
def health():
    start_time = time.time()
    checks = {
        "database": _timed_check("Database", _database_check),
        "session_service": _timed_check("Session service", _session_check),
    }
    healthy = all(check["status"] == "healthy" for check in checks.values())

    response = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": checks,
    }
    return response, 200 if healthy else 503
