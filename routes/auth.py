from datetime import datetime, timedelta
from flask import Blueprint, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from sqlalchemy.exc import IntegrityError

from forms import LoginForm, RegistrationForm
from models.company import Company, CompanyStatusEnum
from models.user import User, UserRoleEnum
from extensions import db
from utils.errors import FormValidationError, UnauthorizedError
from utils.helpers import get_json_payload, slugify

TRIAL_DAYS = 14

# Blueprint for session authentication. Every view answers JSON.
auth_bp = Blueprint('auth', __name__, url_prefix='/auth')

def unique_company_slug(name):
    """Slug derived from the company name, suffixed with -2, -3 ... until unused."""
    base = slugify(name)
    slug, counter = base, 2
    while Company.query.filter_by(slug=slug).first() is not None:
        slug = f"{base}-{counter}"
        counter += 1
    return slug

@auth_bp.route('/register', methods=['POST'])
def register():
    """
    Self-service sign-up. Creates a trial company and its first company admin,
    then starts a session for the new user.
    """
    get_json_payload()
    form = RegistrationForm()
    if not form.validate_on_submit():
        if 'email' in form.errors and 'That email address is already registered.' in form.errors['email']:
            return jsonify({"error": "That email address is already registered."}), 409
        raise FormValidationError(form)

    now = datetime.utcnow()
    company = Company(
        name=form.companyName.data.strip(),
        slug=unique_company_slug(form.companyName.data),
        status=CompanyStatusEnum.TRIAL,
        trial_ends_at=now + timedelta(days=TRIAL_DAYS),
        contact_email=form.email.data.strip().lower(),
        current_users=1,
    )
    new_user = User(
        company=company,
        email=form.email.data.strip().lower(),
        first_name=form.firstName.data.strip(),
        last_name=(form.lastName.data or '').strip() or None,
        role=UserRoleEnum.COMPANY_ADMIN,
        last_login_at=now,
    )
    new_user.set_password(form.password.data) # Hash the password for secure storage.

    try:
        db.session.add(company)
        db.session.add(new_user)
        db.session.commit()
    except IntegrityError: # Unique constraint on email (race with another sign-up).
        db.session.rollback()
        current_app.logger.warning(f"Registration failed for email {form.email.data}: email already exists (IntegrityError).")
        return jsonify({"error": "That email address is already registered."}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error during registration for {form.email.data}: {e}", exc_info=True)
        return jsonify({"error": "An error occurred during registration. Please try again later."}), 500

    login_user(new_user)
    current_app.logger.info(f"New company '{company.slug}' registered by {new_user.email}.")
    return jsonify({"user": new_user.to_dict(), "company": company.to_dict()}), 201

@auth_bp.route('/login', methods=['POST'])
def login():
    get_json_payload()
    form = LoginForm()
    if not form.validate_on_submit():
        raise FormValidationError(form)

    user = User.query.filter_by(email=form.email.data.strip().lower()).first()
    if user is None or not user.check_password(form.password.data):
        current_app.logger.warning(f"Failed login attempt for email: {form.email.data} due to invalid credentials.")
        raise UnauthorizedError("Invalid email or password")
    if not user.is_active:
        current_app.logger.warning(f"Login refused for deactivated user {user.email}.")
        raise UnauthorizedError("User account is deactivated")
    if user.company is not None and user.company.status in (CompanyStatusEnum.SUSPENDED, CompanyStatusEnum.CANCELLED):
        current_app.logger.warning(f"Login refused for {user.email}: company {user.company_id} is {user.company.status.value}.")
        raise UnauthorizedError(f"Company account is {user.company.status.value}")

    user.last_login_at = datetime.utcnow()
    db.session.commit()
    login_user(user, remember=form.rememberMe.data)
    current_app.logger.info(f"User {user.email} logged in successfully.")
    return jsonify({"user": user.to_dict(), "company": user.company.to_dict() if user.company else None})

@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    user_email = current_user.email # Captured before the session is cleared.
    logout_user()
    current_app.logger.info(f"User {user_email} logged out.")
    return jsonify({"message": "Logged out"})

@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({
        "user": current_user.to_dict(),
        "company": current_user.company.to_dict() if current_user.company else None,
    })
