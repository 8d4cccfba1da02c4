import csv
import io
from datetime import date
from flask import Blueprint, Response, jsonify, request, current_app
from flask_login import login_required, current_user

from services import reporting
from utils.errors import BadRequestError
from utils.helpers import parse_date_range

reports_bp = Blueprint('reports', __name__, url_prefix='/reports')

EXPORT_FORMATS = ('json', 'csv')

def _parse_range():
    start_date, end_date, error_response = parse_date_range(request.args, default_range_str='all')
    if error_response:
        error_message, status_code = error_response
        current_app.logger.warning(f"Bad request to {request.path}: {error_message.get('error')} (Params: {request.args})")
        raise BadRequestError(error_message.get('error'), status_code=status_code)
    return start_date, end_date

@reports_bp.route('/consolidated-metrics', methods=['GET'])
@login_required
def consolidated_metrics():
    start_date, end_date = _parse_range()
    return jsonify(reporting.consolidated_metrics(current_user, start_date, end_date))

@reports_bp.route('/rejection-reasons', methods=['GET'])
@login_required
def rejection_reasons():
    """Issues of non-compliant audits grouped into logo, colors, prohibited, required, copy and other."""
    start_date, end_date = _parse_range()
    return jsonify(reporting.rejection_reasons(current_user, start_date, end_date))

@reports_bp.route('/by-keyword', methods=['GET'])
@login_required
def by_keyword():
    keyword = (request.args.get('keyword') or '').strip()
    if not keyword:
        raise BadRequestError("keyword parameter is required")
    return jsonify(reporting.audits_by_keyword(current_user, keyword))

@reports_bp.route('/export', methods=['GET'])
@login_required
def export_report():
    """
    Exports every audit of the caller's company (optionally within a date range).

    Query Parameters:
        format (str, optional): 'json' (default) or 'csv'. CSV is sent as an attachment.
    """
    export_format = (request.args.get('format') or 'json').lower()
    if export_format not in EXPORT_FORMATS:
        raise BadRequestError(f"Unsupported export format: '{export_format}'. Use json or csv.")
    start_date, end_date = _parse_range()
    rows = reporting.export_rows(current_user, start_date, end_date)
    current_app.logger.info(f"User {current_user.id} exported {len(rows)} audit(s) as {export_format}.")

    if export_format == 'json':
        return jsonify({"generatedAt": date.today().isoformat(), "count": len(rows), "audits": rows})

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=reporting.EXPORT_COLUMNS)
    writer.writeheader()
    writer.writerows(rows)
    filename = f"audit-report-{date.today().isoformat()}.csv"
    return Response(buffer.getvalue(), mimetype='text/csv',
                    headers={"Content-Disposition": f"attachment; filename={filename}"})
