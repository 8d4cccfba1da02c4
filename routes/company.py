from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user

from forms import CompanyForm
from utils.decorators import company_admin_required
from utils.errors import FormValidationError, NotFoundError
from utils.helpers import commit_session, get_json_payload

company_bp = Blueprint('company', __name__, url_prefix='/company')

# Payload key -> Company column, for the fields a company admin may edit.
EDITABLE_FIELDS = {
    'name': 'name',
    'logoUrl': 'logo_url',
    'primaryColor': 'primary_color',
    'contactEmail': 'contact_email',
    'billingEmail': 'billing_email',
    'taxId': 'tax_id',
}

def _own_company():
    company = current_user.company
    if company is None:
        raise NotFoundError("Company not found")
    return company

@company_bp.route('', methods=['GET'])
@login_required
def get_company():
    return jsonify(_own_company().to_dict())

@company_bp.route('', methods=['PUT'])
@login_required
@company_admin_required
def update_company():
    payload = get_json_payload()
    company = _own_company()
    form = CompanyForm()
    if not form.validate_on_submit():
        raise FormValidationError(form, "Company name is required" if 'name' in form.errors else "Validation failed")
    for field in form.provided_fields(payload):
        setattr(company, EDITABLE_FIELDS[field.name], (field.data or '').strip() or None)
    commit_session("updating company")
    current_app.logger.info(f"User {current_user.id} updated company {company.id}.")
    return jsonify(company.to_dict())
