from functools import wraps
from flask import jsonify, current_app
from flask_login import current_user
from models.company import CompanyStatusEnum
from models.user import UserRoleEnum

def role_required(*roles):
    """
    Decorator that only lets users with one of `roles` through.
    Super admins always pass. Meant to be stacked under @login_required.

    Args:
        roles (UserRoleEnum): Allowed roles.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({"error": "Authentication required"}), 401
            if current_user.role != UserRoleEnum.SUPER_ADMIN and current_user.role not in roles:
                current_app.logger.warning(f"User {current_user.id} ({current_user.role.value}) denied access to {f.__name__}.")
                return jsonify({"error": "Insufficient permissions"}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator

def super_admin_required(f):
    """Restricts a view to platform super admins."""
    return role_required(UserRoleEnum.SUPER_ADMIN)(f)

def company_admin_required(f):
    """Restricts a view to company admins (and super admins)."""
    return role_required(UserRoleEnum.COMPANY_ADMIN)(f)

def active_company_required(f):
    """
    Blocks users of suspended or cancelled companies.

    Trial and active companies pass; super admins without a company pass as well.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({"error": "Authentication required"}), 401
        company = current_user.company
        if company is None:
            if current_user.is_super_admin:
                return f(*args, **kwargs)
            return jsonify({"error": "User is not attached to a company"}), 403
        if company.status in (CompanyStatusEnum.SUSPENDED, CompanyStatusEnum.CANCELLED):
            current_app.logger.warning(f"User {current_user.id} blocked: company {company.id} is {company.status.value}.")
            return jsonify({"error": f"Company account is {company.status.value}"}), 403
        return f(*args, **kwargs)
    return decorated_function
