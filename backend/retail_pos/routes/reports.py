from flask import Blueprint, jsonify, request

from ..errors import PosError
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales")
def sales_report():
    """
    Query params: start_date, end_date (required, ISO-8601, inclusive),
    report_type (daily | weekly | monthly, default daily)
    """
    try:
        report = reporting_service.generate_sales_report(
            request.args.get("start_date") or None,
            request.args.get("end_date") or None,
            request.args.get("report_type", "daily"),
        )
        return jsonify(reporting_service.report_to_json(report)), 200
    except PosError as exc:
        return jsonify(exc.to_dict()), exc.status_code
