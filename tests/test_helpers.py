import pytest
from datetime import date, timedelta, datetime
from conftest import make_company, make_user
from models.campaign import Campaign
from models.company import Company
from models.user import UserRoleEnum
from utils.errors import ConflictError, ForbiddenError, NotFoundError
from utils.helpers import (calculate_percentage, commit_session, day_bounds, get_tenant_object,
                           pagination_meta, parse_date_range, parse_pagination, slugify, tenant_query, to_float)

def test_parse_date_range_last_7_days(app_context):
    today = date.today()
    start, end, err = parse_date_range({'date_range': 'last_7_days'})
    assert err is None
    assert start == today - timedelta(days=6)
    assert end == today

def test_parse_date_range_defaults_to_all(app_context):
    assert parse_date_range({}) == (None, None, None)

def test_parse_date_range_custom_valid(app_context):
    args_dict = {'date_range': 'custom', 'start_date': '2023-01-01', 'end_date': '2023-01-15'}
    start, end, err = parse_date_range(args_dict)
    assert err is None
    assert start == date(2023, 1, 1)
    assert end == date(2023, 1, 15)

def test_parse_date_range_custom_missing_dates(app_context):
    start, end, err = parse_date_range({'date_range': 'custom'})
    assert err is not None
    assert "requires 'start_date' and 'end_date'" in err[0]['error']
    assert err[1] == 400

def test_parse_date_range_custom_invalid_format(app_context):
    args_dict = {'date_range': 'custom', 'start_date': 'invalid', 'end_date': '2023-01-15'}
    start, end, err = parse_date_range(args_dict)
    assert err == ({"error": "Invalid date format for custom range. Please use YYYY-MM-DD."}, 400)

def test_parse_date_range_custom_start_after_end(app_context):
    args_dict = {'date_range': 'custom', 'start_date': '2023-01-15', 'end_date': '2023-01-01'}
    start, end, err = parse_date_range(args_dict)
    assert err == ({"error": "Start date cannot be after end date for custom range."}, 400)

def test_parse_date_range_invalid_range_str_defaults(app_context):
    today = date.today()
    start, end, err = parse_date_range({'date_range': 'invalid_range_string'}, default_range_str='last_30_days')
    assert err is None
    assert start == today - timedelta(days=29)
    assert end == today

def test_day_bounds_cover_whole_end_day():
    start_dt, end_dt = day_bounds(date(2024, 5, 1), date(2024, 5, 3))
    assert start_dt == datetime(2024, 5, 1)
    assert end_dt == datetime(2024, 5, 4)

@pytest.mark.parametrize('args, expected', [
    ({}, (1, 50)),
    ({'page': '3', 'limit': '10'}, (3, 10)),
    ({'page': '0', 'limit': '-5'}, (1, 50)),
    ({'page': 'abc', 'limit': '1000'}, (1, 200)),
])
def test_parse_pagination(args, expected):
    assert parse_pagination(args) == expected

def test_pagination_meta():
    assert pagination_meta(2, 10, 25) == {"page": 2, "limit": 10, "total": 25, "totalPages": 3}
    assert pagination_meta(1, 10, 0)["totalPages"] == 0

def test_slugify():
    assert slugify("Acme Corp, Inc.") == "acme-corp-inc"
    assert slugify("!!!") == "company"

def test_to_float_and_percentage():
    assert to_float(None) is None
    assert to_float("1.5") == 1.5
    assert to_float("n/a") is None
    assert calculate_percentage(1, 3) == 33.33
    assert calculate_percentage(5, 0) == 0.0

def test_tenant_query_scopes_by_company(db):
    acme = make_company()
    globex = make_company(name='Globex', slug='globex')
    operator = make_user('op@acme.com', acme)
    root = make_user('root@platform.com', role=UserRoleEnum.SUPER_ADMIN)
    db.session.add_all([
        Campaign(company_id=acme.id, user_id=operator.id, name='Acme Spring'),
        Campaign(company_id=globex.id, user_id=operator.id, name='Globex Fall'),
    ])
    db.session.commit()

    assert [c.name for c in tenant_query(Campaign, operator).all()] == ['Acme Spring']
    assert tenant_query(Campaign, root).count() == 2

def test_get_tenant_object_checks_company(db):
    acme = make_company()
    globex = make_company(name='Globex', slug='globex')
    operator = make_user('op@acme.com', acme)
    foreign = Campaign(company_id=globex.id, user_id=operator.id, name='Globex Fall')
    db.session.add(foreign)
    db.session.commit()

    with pytest.raises(ForbiddenError):
        get_tenant_object(Campaign, foreign.id, operator)
    with pytest.raises(NotFoundError, match="Campaign not found"):
        get_tenant_object(Campaign, 9999, operator, "Campaign not found")

def test_commit_session_maps_integrity_error_to_conflict(db):
    make_company(slug='acme')
    db.session.add(Company(name='Dup', slug='acme'))
    with pytest.raises(ConflictError):
        commit_session("creating company")
    # The session was rolled back and is usable again.
    assert db.session.execute(db.select(Campaign)).first() is None
