from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user

from models.audit import Audit
from services import reporting
from utils.helpers import parse_date_range, tenant_query

# Blueprint for the data behind the main dashboard screen.
dashboard_bp = Blueprint('dashboard', __name__, url_prefix='/dashboard')

RECENT_AUDITS_LIMIT = 10

def _date_range_or_error():
    """Parses the optional date range; returns (start, end, error_response)."""
    start_date, end_date, error_response = parse_date_range(request.args, default_range_str='all')
    if error_response:
        error_message, status_code = error_response
        current_app.logger.warning(f"Bad request to {request.path}: {error_message.get('error')} (Params: {request.args})")
        return None, None, (jsonify(error_message), status_code)
    return start_date, end_date, None

@dashboard_bp.route('/metrics', methods=['GET'])
@login_required
def get_metrics():
    """
    Headline numbers for the dashboard cards.

    Query Parameters:
        integrationId (int, optional): Only campaigns (and their creatives) from this integration.
        date_range (str, optional): Restricts the audit counts; see parse_date_range.
    Returns:
        JSON: activeCampaigns, averageCtr (over creatives with impressions), compliant, nonCompliant.
    """
    start_date, end_date, error = _date_range_or_error()
    if error:
        return error
    integration_id = request.args.get('integrationId', type=int)
    return jsonify(reporting.dashboard_metrics(current_user, integration_id, start_date, end_date))

@dashboard_bp.route('/recent-audits', methods=['GET'])
@login_required
def get_recent_audits():
    audits = tenant_query(Audit, current_user).order_by(Audit.created_at.desc(), Audit.id.desc()) \
        .limit(RECENT_AUDITS_LIMIT).all()
    return jsonify([audit.to_dict() for audit in audits])

@dashboard_bp.route('/problem-creatives', methods=['GET'])
@login_required
def get_problem_creatives():
    integration_id = request.args.get('integrationId', type=int)
    return jsonify(reporting.problem_creatives(current_user, integration_id=integration_id))

@dashboard_bp.route('/top-campaigns', methods=['GET'])
@login_required
def get_top_campaigns():
    integration_id = request.args.get('integrationId', type=int)
    return jsonify(reporting.top_campaigns(current_user, integration_id=integration_id))

@dashboard_bp.route('/compliance-stats', methods=['GET'])
@login_required
def get_compliance_stats():
    integration_id = request.args.get('integrationId', type=int)
    return jsonify(reporting.compliance_stats(current_user, integration_id=integration_id))
