from flask import Blueprint, jsonify, current_app, request
from flask_login import login_required, current_user

from extensions import db
from forms import AuditActionForm, AuditForm
from models.audit import Audit, AuditAction, AuditActionTypeEnum, AuditStatusEnum
from models.policy import Policy
from services.audit_service import get_accessible_creative
from utils.errors import ForbiddenError, FormValidationError, NotFoundError
from utils.helpers import commit_session, get_json_payload

audits_bp = Blueprint('audits', __name__, url_prefix='/audits')
audit_actions_bp = Blueprint('audit_actions', __name__, url_prefix='/audit-actions')

def _own_audit(audit_id):
    audit = db.session.get(Audit, audit_id)
    if audit is None:
        raise NotFoundError("Audit not found")
    if audit.user_id != current_user.id and not current_user.is_super_admin:
        raise ForbiddenError("Access denied")
    return audit

@audits_bp.route('', methods=['GET'])
@login_required
def list_audits():
    query = Audit.query.filter_by(user_id=current_user.id)
    status = request.args.get('status')
    if status and status != 'all':
        try:
            query = query.filter(Audit.status == AuditStatusEnum(status))
        except ValueError:
            return jsonify({"error": f"Invalid status: '{status}'"}), 400
    return jsonify([audit.to_dict() for audit in query.order_by(Audit.created_at.desc()).all()])

@audits_bp.route('/creative/<int:creative_id>', methods=['GET'])
@login_required
def creative_audits(creative_id):
    creative = get_accessible_creative(creative_id, current_user)
    return jsonify([audit.to_dict() for audit in creative.audits.order_by(Audit.created_at.desc()).all()])

@audits_bp.route('/<int:audit_id>', methods=['GET'])
@login_required
def get_audit(audit_id):
    audit = _own_audit(audit_id)
    data = audit.to_dict()
    data["actions"] = [action.to_dict() for action in audit.actions.order_by(AuditAction.created_at).all()]
    return jsonify(data)

@audits_bp.route('', methods=['POST'])
@login_required
def create_audit():
    """Records a manual audit result (e.g. from a human review)."""
    payload = get_json_payload()
    form = AuditForm()
    if not form.validate_on_submit():
        raise FormValidationError(form)
    creative = get_accessible_creative(form.creativeId.data, current_user)
    if form.policyId.data and db.session.get(Policy, form.policyId.data) is None:
        raise NotFoundError("Policy not found")
    issues = payload.get('issues') if isinstance(payload.get('issues'), list) else []
    recommendations = payload.get('recommendations') if isinstance(payload.get('recommendations'), list) else []
    audit = Audit(
        company_id=creative.company_id,
        user_id=current_user.id,
        creative_id=creative.id,
        policy_id=form.policyId.data or None,
        status=AuditStatusEnum(form.status.data),
        compliance_score=form.complianceScore.data,
        performance_score=form.performanceScore.data,
        issues=issues,
        recommendations=recommendations,
        ai_analysis=payload.get('aiAnalysis') if isinstance(payload.get('aiAnalysis'), dict) else None,
    )
    db.session.add(audit)
    commit_session("creating audit")
    current_app.logger.info(f"User {current_user.id} recorded manual audit {audit.id} for creative {creative.id}.")
    return jsonify(audit.to_dict()), 201

@audits_bp.route('/<int:audit_id>', methods=['DELETE'])
@login_required
def delete_audit(audit_id):
    audit = _own_audit(audit_id)
    db.session.delete(audit)
    commit_session("deleting audit")
    return '', 204

# --- Audit actions ---

@audit_actions_bp.route('', methods=['GET'])
@login_required
def list_audit_actions():
    actions = AuditAction.query.filter_by(user_id=current_user.id).order_by(AuditAction.created_at.desc()).all()
    return jsonify([action.to_dict() for action in actions])

@audit_actions_bp.route('', methods=['POST'])
@login_required
def create_audit_action():
    get_json_payload()
    form = AuditActionForm()
    if not form.validate_on_submit():
        raise FormValidationError(form)
    audit = _own_audit(form.auditId.data)
    action = AuditAction(audit_id=audit.id, user_id=current_user.id,
                         action=AuditActionTypeEnum(form.action.data), notes=form.notes.data or None)
    db.session.add(action)
    commit_session("creating audit action")
    current_app.logger.info(f"User {current_user.id} queued {action.action.value} on audit {audit.id}.")
    return jsonify(action.to_dict()), 201
