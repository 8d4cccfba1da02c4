from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user

from forms import UserCreateForm, UserUpdateForm
from models.user import User, UserRoleEnum
from extensions import db
from utils.decorators import active_company_required, company_admin_required
from utils.errors import BadRequestError, ConflictError, ForbiddenError, FormValidationError
from utils.helpers import commit_session, get_json_payload, get_tenant_object

# Company user management. Users only ever see members of their own company.
users_bp = Blueprint('users', __name__, url_prefix='/users')

@users_bp.route('', methods=['GET'])
@login_required
@active_company_required
def list_users():
    users = User.query.filter_by(company_id=current_user.company_id).order_by(User.created_at).all()
    return jsonify([user.to_dict() for user in users])

@users_bp.route('', methods=['POST'])
@login_required
@company_admin_required
@active_company_required
def create_user():
    """
    Adds a user to the caller's company.

    Company admins cannot hand out the super_admin role. The company's
    max_users limit is enforced.
    """
    get_json_payload()
    form = UserCreateForm()
    if not form.validate_on_submit():
        raise FormValidationError(form, "Email, password and role are required")

    role = UserRoleEnum(form.role.data)
    if role == UserRoleEnum.SUPER_ADMIN and not current_user.is_super_admin:
        raise ForbiddenError("Only super admins can create super admins")

    email = form.email.data.strip().lower()
    if User.query.filter_by(email=email).first():
        raise ConflictError("That email address is already registered.")

    company = current_user.company
    if company is None:
        raise BadRequestError("User is not attached to a company")
    if not company.can_add_user():
        raise ForbiddenError(f"User limit reached ({company.max_users})")

    user = User(
        company_id=company.id,
        email=email,
        first_name=form.firstName.data or None,
        last_name=form.lastName.data or None,
        role=role,
    )
    user.set_password(form.password.data)
    company.current_users += 1
    db.session.add(user)
    commit_session("creating user")
    current_app.logger.info(f"User {current_user.id} created user {user.id} ({user.email}) in company {company.id}.")
    return jsonify(user.to_dict()), 201

@users_bp.route('/<int:user_id>', methods=['PATCH'])
@login_required
@company_admin_required
def update_user(user_id):
    payload = get_json_payload()
    user = get_tenant_object(User, user_id, current_user, "User not found")
    form = UserUpdateForm()
    if not form.validate_on_submit():
        raise FormValidationError(form)

    for field in form.provided_fields(payload):
        if field.name == 'firstName':
            user.first_name = field.data or None
        elif field.name == 'lastName':
            user.last_name = field.data or None
        elif field.name == 'role' and field.data:
            role = UserRoleEnum(field.data)
            if role == UserRoleEnum.SUPER_ADMIN and not current_user.is_super_admin:
                raise ForbiddenError("Only super admins can grant the super_admin role")
            user.role = role
        elif field.name == 'isActive':
            if user.id == current_user.id and not field.data:
                raise BadRequestError("You cannot deactivate your own account")
            user.is_active = field.data
    commit_session("updating user")
    current_app.logger.info(f"User {current_user.id} updated user {user.id}.")
    return jsonify(user.to_dict())

@users_bp.route('/<int:user_id>', methods=['DELETE'])
@login_required
@company_admin_required
def delete_user(user_id):
    user = get_tenant_object(User, user_id, current_user, "User not found")
    if user.id == current_user.id:
        raise BadRequestError("You cannot delete your own account")
    company = user.company
    if company is not None:
        company.release_member()
        company.release_campaigns(user.campaigns.filter_by(company_id=company.id).count())
    db.session.delete(user)
    commit_session("deleting user")
    current_app.logger.info(f"User {current_user.id} deleted user {user_id}.")
    return '', 204
