"""
Platform administration: subscription plans, tenant companies and admin users.
Everything under /admin is reserved to super admins; /plans is the public catalogue.
"""
from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user

from forms import AdminCompanyForm, AdminUserForm, PlanForm
from models.company import Company, CompanyStatusEnum
from models.subscription_plan import SubscriptionPlan, BillingCycleEnum
from models.user import User, UserRoleEnum
from extensions import db
from utils.decorators import super_admin_required
from utils.errors import BadRequestError, ConflictError, FormValidationError, NotFoundError
from utils.helpers import commit_session, get_json_payload, slugify

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')
plans_bp = Blueprint('plans', __name__, url_prefix='/plans')

PLAN_FIELDS = {
    'name': 'name',
    'slug': 'slug',
    'price': 'price',
    'maxUsers': 'max_users',
    'maxCampaigns': 'max_campaigns',
    'maxAuditsPerMonth': 'max_audits_per_month',
    'stripePriceId': 'stripe_price_id',
    'isActive': 'is_active',
}

COMPANY_FIELDS = {
    'name': 'name',
    'slug': 'slug',
    'logoUrl': 'logo_url',
    'primaryColor': 'primary_color',
    'contactEmail': 'contact_email',
    'billingEmail': 'billing_email',
    'taxId': 'tax_id',
}

def _get_or_404(model, object_id, message):
    obj = db.session.get(model, object_id)
    if obj is None:
        raise NotFoundError(message)
    return obj

def _features_from(payload):
    features = payload.get('features')
    if features is None:
        return None
    if not isinstance(features, list) or not all(isinstance(item, str) for item in features):
        raise BadRequestError("features must be a list of strings")
    return features

# --- Public plan catalogue ---

@plans_bp.route('', methods=['GET'])
def list_public_plans():
    plans = SubscriptionPlan.query.filter_by(is_active=True).order_by(SubscriptionPlan.price).all()
    return jsonify([plan.to_dict() for plan in plans])

# --- Plans ---

@admin_bp.route('/plans', methods=['GET'])
@login_required
@super_admin_required
def list_plans():
    return jsonify([plan.to_dict() for plan in SubscriptionPlan.query.order_by(SubscriptionPlan.price).all()])

@admin_bp.route('/plans/<int:plan_id>', methods=['GET'])
@login_required
@super_admin_required
def get_plan(plan_id):
    return jsonify(_get_or_404(SubscriptionPlan, plan_id, "Plan not found").to_dict())

@admin_bp.route('/plans', methods=['POST'])
@login_required
@super_admin_required
def create_plan():
    payload = get_json_payload()
    form = PlanForm()
    if not form.validate_on_submit():
        raise FormValidationError(form)
    plan = SubscriptionPlan(
        billing_cycle=BillingCycleEnum(form.billingCycle.data or 'monthly'),
        features=_features_from(payload) or [],
    )
    for field in form.provided_fields(payload):
        if field.name in PLAN_FIELDS:
            setattr(plan, PLAN_FIELDS[field.name], field.data if field.data != '' else None)
    db.session.add(plan)
    commit_session("creating plan")
    current_app.logger.info(f"Super admin {current_user.id} created plan {plan.slug}.")
    return jsonify(plan.to_dict()), 201

@admin_bp.route('/plans/<int:plan_id>', methods=['PUT'])
@login_required
@super_admin_required
def update_plan(plan_id):
    payload = get_json_payload()
    plan = _get_or_404(SubscriptionPlan, plan_id, "Plan not found")
    form = PlanForm()
    if not form.validate_provided(payload):
        raise FormValidationError(form)
    for field in form.provided_fields(payload):
        if field.name == 'billingCycle' and field.data:
            plan.billing_cycle = BillingCycleEnum(field.data)
        elif field.name in PLAN_FIELDS:
            setattr(plan, PLAN_FIELDS[field.name], field.data if field.data != '' else None)
    features = _features_from(payload)
    if features is not None:
        plan.features = features
    commit_session("updating plan")
    current_app.logger.info(f"Super admin {current_user.id} updated plan {plan.id}.")
    return jsonify(plan.to_dict())

@admin_bp.route('/plans/<int:plan_id>', methods=['DELETE'])
@login_required
@super_admin_required
def delete_plan(plan_id):
    plan = _get_or_404(SubscriptionPlan, plan_id, "Plan not found")
    db.session.delete(plan)
    commit_session("deleting plan")
    current_app.logger.info(f"Super admin {current_user.id} deleted plan {plan_id}.")
    return '', 204

# --- Companies ---

@admin_bp.route('/companies', methods=['GET'])
@login_required
@super_admin_required
def list_companies():
    return jsonify([company.to_dict() for company in Company.query.order_by(Company.created_at.desc()).all()])

@admin_bp.route('/companies/<int:company_id>', methods=['GET'])
@login_required
@super_admin_required
def get_company(company_id):
    return jsonify(_get_or_404(Company, company_id, "Company not found").to_dict())

@admin_bp.route('/companies', methods=['POST'])
@login_required
@super_admin_required
def create_company():
    """Creates a tenant; when planId is given the plan's limits are applied."""
    payload = get_json_payload()
    form = AdminCompanyForm()
    if not form.validate_on_submit():
        raise FormValidationError(form)

    company = Company(status=CompanyStatusEnum(form.status.data or 'trial'))
    for field in form.provided_fields(payload):
        if field.name in COMPANY_FIELDS:
            setattr(company, COMPANY_FIELDS[field.name], field.data or None)
    if not company.slug:
        company.slug = slugify(company.name)
        if Company.query.filter_by(slug=company.slug).first():
            raise ConflictError("Slug is already in use.")
    if form.planId.data:
        company.apply_plan_limits(_get_or_404(SubscriptionPlan, form.planId.data, "Plan not found"))

    db.session.add(company)
    commit_session("creating company")
    current_app.logger.info(f"Super admin {current_user.id} created company {company.slug}.")
    return jsonify(company.to_dict()), 201

@admin_bp.route('/companies/<int:company_id>', methods=['PUT'])
@login_required
@super_admin_required
def update_company(company_id):
    payload = get_json_payload()
    company = _get_or_404(Company, company_id, "Company not found")
    form = AdminCompanyForm()
    form.editing_id = company.id
    if not form.validate_provided(payload):
        raise FormValidationError(form)
    for field in form.provided_fields(payload):
        if field.name == 'status' and field.data:
            company.status = CompanyStatusEnum(field.data)
        elif field.name == 'planId' and field.data:
            company.apply_plan_limits(_get_or_404(SubscriptionPlan, field.data, "Plan not found"))
        elif field.name == 'name' and not field.data:
            raise BadRequestError("Company name is required")
        elif field.name in COMPANY_FIELDS:
            setattr(company, COMPANY_FIELDS[field.name], field.data or None)
    commit_session("updating company")
    current_app.logger.info(f"Super admin {current_user.id} updated company {company.id}.")
    return jsonify(company.to_dict())

@admin_bp.route('/companies/<int:company_id>', methods=['DELETE'])
@login_required
@super_admin_required
def delete_company(company_id):
    company = _get_or_404(Company, company_id, "Company not found")
    if company.users.count():
        raise ConflictError("Company still has users; remove them first")
    db.session.delete(company)
    commit_session("deleting company")
    current_app.logger.info(f"Super admin {current_user.id} deleted company {company_id}.")
    return '', 204

# --- Admin users ---

@admin_bp.route('/admin-users', methods=['GET'])
@login_required
@super_admin_required
def list_admin_users():
    admins = User.query.filter(User.role.in_([UserRoleEnum.SUPER_ADMIN, UserRoleEnum.COMPANY_ADMIN])) \
        .order_by(User.created_at).all()
    return jsonify([user.to_dict() for user in admins])

@admin_bp.route('/admin-users/<int:user_id>', methods=['GET'])
@login_required
@super_admin_required
def get_admin_user(user_id):
    return jsonify(_get_or_404(User, user_id, "User not found").to_dict())

@admin_bp.route('/admin-users', methods=['POST'])
@login_required
@super_admin_required
def create_admin_user():
    get_json_payload()
    form = AdminUserForm()
    if not form.validate_on_submit():
        raise FormValidationError(form)
    email = form.email.data.strip().lower()
    if User.query.filter_by(email=email).first():
        raise ConflictError("That email address is already registered.")
    role = UserRoleEnum(form.role.data)
    company = None
    if form.companyId.data:
        company = _get_or_404(Company, form.companyId.data, "Company not found")
    elif role != UserRoleEnum.SUPER_ADMIN:
        raise BadRequestError("companyId is required for company users")

    user = User(email=email, role=role, company=company,
                first_name=form.firstName.data or None, last_name=form.lastName.data or None)
    user.set_password(form.password.data)
    if company is not None:
        company.current_users += 1
    db.session.add(user)
    commit_session("creating admin user")
    current_app.logger.info(f"Super admin {current_user.id} created {role.value} {user.email}.")
    return jsonify(user.to_dict()), 201

@admin_bp.route('/admin-users/<int:user_id>', methods=['PUT'])
@login_required
@super_admin_required
def update_admin_user(user_id):
    payload = get_json_payload()
    user = _get_or_404(User, user_id, "User not found")
    form = AdminUserForm()
    if not form.validate_provided(payload):
        raise FormValidationError(form)
    for field in form.provided_fields(payload):
        if field.name == 'firstName':
            user.first_name = field.data or None
        elif field.name == 'lastName':
            user.last_name = field.data or None
        elif field.name == 'role' and field.data:
            user.role = UserRoleEnum(field.data)
        elif field.name == 'password' and field.data:
            user.set_password(field.data)
        elif field.name == 'companyId':
            new_company = _get_or_404(Company, field.data, "Company not found") if field.data else None
            if new_company is not user.company:
                if user.company is not None:
                    user.company.release_member()
                if new_company is not None:
                    new_company.current_users += 1
                user.company = new_company
        elif field.name == 'email' and field.data:
            user.email = field.data.strip().lower()
    commit_session("updating admin user")
    current_app.logger.info(f"Super admin {current_user.id} updated user {user.id}.")
    return jsonify(user.to_dict())

@admin_bp.route('/admin-users/<int:user_id>', methods=['DELETE'])
@login_required
@super_admin_required
def delete_admin_user(user_id):
    user = _get_or_404(User, user_id, "User not found")
    if user.id == current_user.id:
        raise BadRequestError("You cannot delete your own account")
    if user.company is not None:
        user.company.release_member()
        user.company.release_campaigns(user.campaigns.filter_by(company_id=user.company_id).count())
    db.session.delete(user)
    commit_session("deleting admin user")
    current_app.logger.info(f"Super admin {current_user.id} deleted user {user_id}.")
    return '', 204
