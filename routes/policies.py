from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user

from extensions import db
from forms import PolicyForm, PolicyUpdateForm
from models.policy import Policy, PolicyStatusEnum, PolicyScopeEnum
from services.settings_service import build_settings, save_settings, validate_settings
from utils.decorators import active_company_required
from utils.errors import BadRequestError, ForbiddenError, FormValidationError, NotFoundError
from utils.helpers import commit_session, get_json_payload

policies_bp = Blueprint('policies', __name__, url_prefix='/policies')

def _own_policy(policy_id):
    policy = db.session.get(Policy, policy_id)
    if policy is None:
        raise NotFoundError("Policy not found")
    if policy.user_id != current_user.id and not current_user.is_super_admin:
        raise ForbiddenError("Access denied")
    return policy

def _json_fields(payload):
    """Validated JSON-typed fields present in the payload, as column values."""
    values = {}
    for key, column in (('rules', 'rules'), ('performanceThresholds', 'performance_thresholds')):
        if key in payload:
            if payload[key] is not None and not isinstance(payload[key], dict):
                raise BadRequestError(f"{key} must be an object")
            values[column] = payload[key] or {}
    if 'campaignIds' in payload:
        campaign_ids = payload['campaignIds'] or []
        if not isinstance(campaign_ids, list) or not all(isinstance(cid, int) and not isinstance(cid, bool) for cid in campaign_ids):
            raise BadRequestError("campaignIds must be a list of integers")
        values['campaign_ids'] = campaign_ids
    return values

def _clear_other_defaults(policy):
    Policy.query.filter(Policy.user_id == policy.user_id, Policy.id != policy.id, Policy.is_default.is_(True)) \
        .update({Policy.is_default: False}, synchronize_session=False)

# --- Settings (combined brand / policy / criteria / benchmarks view) ---

@policies_bp.route('/settings', methods=['GET'])
@login_required
def get_settings():
    return jsonify(build_settings(current_user))

@policies_bp.route('/settings', methods=['PUT'])
@login_required
@active_company_required
def update_settings():
    settings, errors = validate_settings(get_json_payload())
    if errors:
        return jsonify({"error": "Invalid settings data", "details": errors}), 400
    save_settings(current_user, settings)
    commit_session("saving settings") # One transaction for all four records.
    current_app.logger.info(f"User {current_user.id} updated brand settings.")
    return jsonify(build_settings(current_user))

# --- Policy CRUD ---

@policies_bp.route('', methods=['GET'])
@login_required
def list_policies():
    policies = Policy.query.filter_by(user_id=current_user.id).order_by(Policy.created_at.desc()).all()
    return jsonify([policy.to_dict() for policy in policies])

@policies_bp.route('/<int:policy_id>', methods=['GET'])
@login_required
def get_policy(policy_id):
    return jsonify(_own_policy(policy_id).to_dict())

@policies_bp.route('', methods=['POST'])
@login_required
@active_company_required
def create_policy():
    payload = get_json_payload()
    form = PolicyForm()
    if not form.validate_on_submit():
        raise FormValidationError(form)
    policy = Policy(
        company_id=current_user.company_id,
        user_id=current_user.id,
        name=form.name.data.strip(),
        description=form.description.data or None,
        status=PolicyStatusEnum(form.status.data or 'active'),
        scope=PolicyScopeEnum(form.scope.data or 'global'),
        is_default=bool(form.isDefault.data),
        rules={},
        campaign_ids=[],
    )
    for column, value in _json_fields(payload).items():
        setattr(policy, column, value)
    db.session.add(policy)
    db.session.flush()
    if policy.is_default:
        _clear_other_defaults(policy)
    commit_session("creating policy")
    current_app.logger.info(f"User {current_user.id} created policy {policy.id} ({policy.scope.value}).")
    return jsonify(policy.to_dict()), 201

@policies_bp.route('/<int:policy_id>', methods=['PUT'])
@login_required
def update_policy(policy_id):
    payload = get_json_payload()
    policy = _own_policy(policy_id)
    form = PolicyUpdateForm()
    if not form.validate_provided(payload):
        raise FormValidationError(form)
    for field in form.provided_fields(payload):
        if field.name == 'name':
            if not field.data:
                raise BadRequestError("Policy name is required")
            policy.name = field.data.strip()
        elif field.name == 'description':
            policy.description = field.data or None
        elif field.name == 'status' and field.data:
            policy.status = PolicyStatusEnum(field.data)
        elif field.name == 'scope' and field.data:
            policy.scope = PolicyScopeEnum(field.data)
        elif field.name == 'isDefault':
            policy.is_default = bool(field.data)
    for column, value in _json_fields(payload).items():
        setattr(policy, column, value)
    if policy.is_default:
        _clear_other_defaults(policy)
    commit_session("updating policy")
    return jsonify(policy.to_dict())

@policies_bp.route('/<int:policy_id>', methods=['DELETE'])
@login_required
def delete_policy(policy_id):
    policy = _own_policy(policy_id)
    db.session.delete(policy)
    commit_session("deleting policy")
    current_app.logger.info(f"User {current_user.id} deleted policy {policy_id}.")
    return '', 204
