from flask import Blueprint, jsonify, request, current_app

from posboard.decorators import require_auth, require_role
from posboard.models.auth import ROLE_ADMIN
from posboard.services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales")
@require_auth
@require_role(ROLE_ADMIN)
def sales_report():
    """Monthly order count and revenue plus the trailing six-month series (?month=YYYY-MM)."""
    try:
        report = reporting_service.sales_report(month=request.args.get("month"))
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Failed to build sales report")
        return jsonify({"error": "Failed to load sales data"}), 500


@reports_bp.get("/financial")
@require_auth
@require_role(ROLE_ADMIN)
def financial_report():
    """Estimated gross/net profit for a month (?month=YYYY-MM)."""
    try:
        report = reporting_service.financial_report(month=request.args.get("month"))
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Failed to build financial report")
        return jsonify({"error": "Failed to load financial data"}), 500


@reports_bp.get("/dashboard")
@require_auth
@require_role(ROLE_ADMIN)
def dashboard():
    try:
        return jsonify(reporting_service.pos_dashboard()), 200
    except Exception:
        current_app.logger.exception("Failed to build dashboard")
        return jsonify({"error": "Failed to load dashboard"}), 500
