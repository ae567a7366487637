from flask import Blueprint, current_app, jsonify

from app.seedtrace.db import ping_database

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast liveness check for container orchestrators. No DB access, minimal overhead.
    """
    return "ok", 200


@bp.get("/api/health")
def api_health():
    try:
        ping_database(current_app)
    except Exception as e:
        current_app.logger.error("Database health check failed: %s", e)
        return jsonify({"status": "error", "database": "unreachable"}), 503
    return jsonify({"status": "ok", "database": "ok"})
