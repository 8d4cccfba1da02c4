import json
from decimal import Decimal
import pytest
import stripe
from extensions import db
from models.company import CompanyStatusEnum, PlanTierEnum
from models.subscription_plan import SubscriptionPlan

def make_plan(slug, stripe_price_id=None, max_users=5, **kwargs):
    plan = SubscriptionPlan(name=slug.title(), slug=slug, price=Decimal('49.90'), stripe_price_id=stripe_price_id,
                            max_users=max_users, max_campaigns=10, max_audits_per_month=100, **kwargs)
    db.session.add(plan)
    db.session.commit()
    return plan

def post_event(client, mocker, event_type, data_object):
    event = {"id": "evt_1", "type": event_type, "data": {"object": data_object}}
    mocker.patch('stripe.Webhook.construct_event', return_value=mocker.Mock(type=event_type))
    return client.post('/billing/stripe-webhook', data=json.dumps(event), content_type='application/json',
                       headers={'Stripe-Signature': 't=1,v1=abc'})

def test_checkout_session(mocker, admin_client, company):
    plan = make_plan('starter', stripe_price_id='price_starter')
    create = mocker.patch('stripe.checkout.Session.create', return_value=mocker.Mock(url='https://checkout.stripe.com/c/1'))

    response = admin_client.post(f'/billing/checkout/{plan.id}')

    assert response.status_code == 200
    assert response.get_json() == {"url": "https://checkout.stripe.com/c/1"}
    params = create.call_args.kwargs
    assert params['client_reference_id'] == str(company.id)
    assert params['metadata'] == {'company_id': str(company.id), 'plan_id': str(plan.id)}
    assert params['customer_email'] == 'admin@acme.com'
    assert params['cancel_url'] == 'http://frontend.test/billing?status=cancelled'

def test_checkout_rejects_plan_without_price(admin_client):
    plan = make_plan('starter')
    assert admin_client.post(f'/billing/checkout/{plan.id}').status_code == 400
    assert admin_client.post('/billing/checkout/9999').status_code == 404

def test_checkout_stripe_failure(mocker, admin_client):
    plan = make_plan('starter', stripe_price_id='price_starter')
    mocker.patch('stripe.checkout.Session.create', side_effect=stripe.APIConnectionError("down"))
    response = admin_client.post(f'/billing/checkout/{plan.id}')
    assert response.status_code == 502

def test_checkout_requires_company_admin(operator_client):
    assert operator_client.post('/billing/checkout/1').status_code == 403

def test_portal(mocker, admin_client, company):
    assert admin_client.post('/billing/portal').status_code == 400
    company.stripe_customer_id = 'cus_1'
    db.session.commit()
    create = mocker.patch('stripe.billing_portal.Session.create', return_value=mocker.Mock(url='https://billing.stripe.com/p/1'))
    assert admin_client.post('/billing/portal').get_json() == {"url": "https://billing.stripe.com/p/1"}
    create.assert_called_once_with(customer='cus_1', return_url='http://frontend.test/billing')

def test_webhook_invalid_signature(mocker, client):
    mocker.patch('stripe.Webhook.construct_event',
                 side_effect=stripe.SignatureVerificationError("bad", "t=1,v1=abc"))
    response = client.post('/billing/stripe-webhook', data='{}', content_type='application/json')
    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid signature"}

def test_checkout_completed_provisions_plan(mocker, client, company):
    plan = make_plan('professional', max_users=20)
    company.status = CompanyStatusEnum.TRIAL
    db.session.commit()

    session = {"client_reference_id": str(company.id), "subscription": "sub_1", "customer": "cus_1",
               "metadata": {"company_id": str(company.id), "plan_id": str(plan.id)}}
    assert post_event(client, mocker, 'checkout.session.completed', session).get_json() == {"received": True}

    assert company.stripe_subscription_id == 'sub_1'
    assert company.stripe_customer_id == 'cus_1'
    assert company.max_users == 20
    assert company.subscription_plan == PlanTierEnum.PROFESSIONAL
    assert company.subscription_status == 'active'
    assert company.status == CompanyStatusEnum.ACTIVE

def test_subscription_updated_changes_plan(mocker, client, company):
    make_plan('professional', stripe_price_id='price_pro', max_users=20)
    company.stripe_subscription_id = 'sub_1'
    company.subscription_status = 'active'
    db.session.commit()

    subscription = {"id": "sub_1", "customer": "cus_1", "status": "past_due",
                    "items": {"data": [{"price": {"id": "price_pro"}, "current_period_end": 1700000000}]}}
    post_event(client, mocker, 'customer.subscription.updated', subscription)

    assert company.subscription_status == 'past_due'
    assert company.max_users == 20
    assert company.subscription_end_date.year == 2023

def test_subscription_deleted_applies_free_plan(mocker, client, company):
    make_plan('free', max_users=1)
    company.stripe_subscription_id = 'sub_1'
    company.subscription_status = 'active'
    db.session.commit()

    post_event(client, mocker, 'customer.subscription.deleted', {"id": "sub_1", "ended_at": 1700000000})

    assert company.subscription_status == 'cancelled'
    assert company.max_users == 1
    assert company.subscription_plan == PlanTierEnum.FREE
    assert company.status == CompanyStatusEnum.ACTIVE

def test_payment_failed_marks_past_due(mocker, client, company):
    company.stripe_subscription_id = 'sub_1'
    db.session.commit()
    post_event(client, mocker, 'invoice.payment_failed', {"subscription": "sub_1", "customer": "cus_1"})
    assert company.subscription_status == 'past_due'

@pytest.mark.parametrize('event_type', ['customer.created', 'invoice.paid'])
def test_unknown_events_are_acknowledged(mocker, client, event_type):
    assert post_event(client, mocker, event_type, {}).get_json() == {"received": True}
