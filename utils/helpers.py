import re
from decimal import Decimal
from flask import request, current_app
from datetime import date, timedelta, datetime # For date calculations.
from sqlalchemy.exc import IntegrityError
from extensions import db
from utils.errors import AppError, BadRequestError, ConflictError, ForbiddenError, NotFoundError

SLUG_PATTERN = re.compile(r'^[a-z0-9-]+$')
HEX_COLOR_PATTERN = re.compile(r'^#[0-9A-Fa-f]{6}$')

# Relative ranges accepted by parse_date_range, as number of days including today.
RELATIVE_RANGES = {
    'last_7_days': 7,
    'last_30_days': 30,
    'last_90_days': 90,
}

def parse_date_range(request_args, default_range_str='all'):
    """
    Parses the 'date_range' query parameter into a start and end date.

    Supported values are 'last_7_days', 'last_30_days', 'last_90_days', 'all'
    (no bounds) and 'custom', which needs 'start_date' and 'end_date' (YYYY-MM-DD).
    Unknown values fall back to `default_range_str`.

    Args:
        request_args (werkzeug.datastructures.MultiDict): Typically `request.args`.
        default_range_str (str, optional): Range used when none (or an unknown one) is given.

    Returns:
        tuple: (start_date_obj, end_date_obj, error_response_tuple). Both dates are None
               for 'all'. error_response_tuple is ({"error": msg}, status) or None.
    """
    date_range_str = request_args.get('date_range', default_range_str)
    if date_range_str not in RELATIVE_RANGES and date_range_str not in ('all', 'custom'):
        date_range_str = default_range_str
    today = date.today()

    if date_range_str == 'all':
        return None, None, None

    if date_range_str == 'custom':
        start_date_param = request_args.get('start_date')
        end_date_param = request_args.get('end_date')
        if not (start_date_param and end_date_param):
            return None, None, ({"error": "Custom date range requires 'start_date' and 'end_date' parameters (YYYY-MM-DD)."}, 400)
        try:
            start_date_obj = datetime.strptime(start_date_param, '%Y-%m-%d').date()
            end_date_obj = datetime.strptime(end_date_param, '%Y-%m-%d').date()
        except ValueError:
            return None, None, ({"error": "Invalid date format for custom range. Please use YYYY-MM-DD."}, 400)
        if start_date_obj > end_date_obj:
            return None, None, ({"error": "Start date cannot be after end date for custom range."}, 400)
        return start_date_obj, end_date_obj, None

    if date_range_str not in RELATIVE_RANGES:
        return None, None, ({"error": f"Invalid or unsupported default_range_str configured: {default_range_str}"}, 500)

    days = RELATIVE_RANGES[date_range_str]
    return today - timedelta(days=days - 1), today, None

def day_bounds(start_date_obj, end_date_obj):
    """Turns an inclusive date range into [start 00:00, day after end 00:00) datetimes."""
    start_dt = datetime.combine(start_date_obj, datetime.min.time())
    end_dt = datetime.combine(end_date_obj + timedelta(days=1), datetime.min.time())
    return start_dt, end_dt

def parse_pagination(request_args, default_limit=50, max_limit=200):
    """
    Reads 'page' and 'limit' query parameters.

    Non-numeric or non-positive values fall back to page 1 / `default_limit`;
    `limit` is capped at `max_limit`.
    """
    try:
        page = int(request_args.get('page', 1))
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(request_args.get('limit', default_limit))
    except (TypeError, ValueError):
        limit = default_limit
    page = page if page > 0 else 1
    limit = min(limit if limit > 0 else default_limit, max_limit)
    return page, limit

def pagination_meta(page, limit, total):
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": (total + limit - 1) // limit if limit else 0,
    }

def get_json_payload(required=True):
    """
    The request's JSON body as a dict.

    Returns an empty dict for a missing body when `required` is False.
    Raises BadRequestError for anything that is not a JSON object.
    """
    payload = request.get_json(silent=True)
    if payload is None and not required:
        return {}
    if not isinstance(payload, dict):
        raise BadRequestError("Request body must be a JSON object")
    return payload

def slugify(value):
    """Lower-cases `value` and reduces it to the [a-z0-9-] alphabet used by company slugs."""
    slug = re.sub(r'[^a-z0-9]+', '-', (value or '').lower()).strip('-')
    return slug or 'company'

def isoformat_or_none(value):
    return value.isoformat() if value else None

def to_float(value):
    """Converts Decimal/str/int values coming from Numeric columns or APIs to float; None stays None."""
    if value is None or value == '':
        return None
    if isinstance(value, Decimal):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return None

def calculate_percentage(part, total):
    """Percentage of `part` in `total`, rounded to 2 decimals. 0.0 when total is 0."""
    if not total:
        return 0.0
    return round(part / total * 100, 2)

# --- Tenant helpers ---

def tenant_query(model, user):
    """`model.query` limited to the user's company; unrestricted for super admins."""
    if user.is_super_admin:
        return model.query
    return model.query.filter(model.company_id == user.company_id)

def get_tenant_object(model, object_id, user, not_found_message="Not found"):
    """
    Loads `model` by primary key and applies the tenant check.

    Raises:
        NotFoundError: Unknown id.
        ForbiddenError: Row belongs to another company.
    """
    obj = db.session.get(model, object_id)
    if obj is None:
        raise NotFoundError(not_found_message)
    if not user.can_access_company(obj.company_id):
        raise ForbiddenError("Access denied")
    return obj

def commit_session(context):
    """
    Commits the session, rolling back on failure.

    Raises:
        ConflictError: A unique constraint was violated.
        AppError: Any other database error (500).
    """
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.warning(f"Integrity error while {context}: {e.orig}")
        raise ConflictError(f"Conflict while {context}: a record with the same unique value already exists")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Database error while {context}: {e}", exc_info=True)
        raise AppError(f"Database error while {context}")
