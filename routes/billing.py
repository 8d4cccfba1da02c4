import json
from datetime import datetime
from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user
import stripe # Import the Stripe Python library

from extensions import db
from models.company import Company, CompanyStatusEnum
from models.subscription_plan import SubscriptionPlan, SubscriptionStatusEnum
from utils.decorators import company_admin_required
from utils.errors import AppError, BadRequestError, NotFoundError
from utils.helpers import commit_session

# Blueprint for company subscriptions (Stripe Checkout, Billing Portal and webhooks).
billing_bp = Blueprint('billing', __name__, url_prefix='/billing')

FREE_PLAN_SLUG = 'free'

def _company_or_error():
    company = current_user.company
    if company is None:
        raise BadRequestError("User is not attached to a company")
    return company

def _timestamp(value):
    return datetime.utcfromtimestamp(value) if value else None

def _first_item(subscription):
    items = (subscription.get('items') or {}).get('data') or []
    return items[0] if items else {}

def _period_end(subscription):
    """current_period_end moved from the subscription onto its items in newer Stripe API versions."""
    return _timestamp(subscription.get('current_period_end') or _first_item(subscription).get('current_period_end'))

def _find_company(stripe_subscription_id, stripe_customer_id=None):
    company = None
    if stripe_subscription_id:
        company = Company.query.filter_by(stripe_subscription_id=stripe_subscription_id).first()
    if company is None and stripe_customer_id:
        company = Company.query.filter_by(stripe_customer_id=stripe_customer_id).first()
    return company

@billing_bp.route('/checkout/<int:plan_id>', methods=['POST'])
@login_required
@company_admin_required
def create_checkout_session(plan_id):
    """
    Creates a Stripe Checkout session for a subscription plan.

    The company id goes into client_reference_id and the plan id into the metadata,
    so the checkout.session.completed webhook can provision the plan without
    another Stripe call.

    Returns:
        JSON: {"url": <Stripe-hosted checkout page>}.
    """
    company = _company_or_error()
    plan = db.session.get(SubscriptionPlan, plan_id)
    if plan is None or not plan.is_active:
        raise NotFoundError("Plan not found")
    if not plan.stripe_price_id:
        current_app.logger.error(f"User {current_user.id} attempted to subscribe company {company.id} to plan ID {plan_id} ('{plan.name}') which has no stripe_price_id.")
        raise BadRequestError("This plan is not available for online purchase")

    frontend_url = current_app.config['FRONTEND_URL'].rstrip('/')
    params = {
        'client_reference_id': str(company.id),
        'line_items': [{'price': plan.stripe_price_id, 'quantity': 1}],
        'mode': 'subscription',
        'success_url': f"{frontend_url}/billing?status=success&session_id={{CHECKOUT_SESSION_ID}}",
        'cancel_url': f"{frontend_url}/billing?status=cancelled",
        'allow_promotion_codes': True,
        'metadata': {'company_id': str(company.id), 'plan_id': str(plan.id)},
        'subscription_data': {'metadata': {'company_id': str(company.id), 'plan_id': str(plan.id)}},
    }
    # Reuse the Stripe customer so all subscriptions of the company stay under one customer.
    if company.stripe_customer_id:
        params['customer'] = company.stripe_customer_id
    else:
        params['customer_email'] = company.billing_email or current_user.email

    try:
        checkout_session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as e:
        current_app.logger.error(f"Stripe error creating checkout for company {company.id} (Plan ID: {plan_id}): {e}")
        raise AppError("Could not start checkout with the payment provider", status_code=502)
    current_app.logger.info(f"Checkout session created for company {company.id}, plan '{plan.name}'.")
    return jsonify({"url": checkout_session.url})

@billing_bp.route('/portal', methods=['POST'])
@login_required
@company_admin_required
def create_customer_portal_session():
    """Opens the Stripe Billing Portal for the caller's company; returns {"url"}."""
    company = _company_or_error()
    if not company.stripe_customer_id:
        current_app.logger.warning(f"User {current_user.id} attempted to open the billing portal for company {company.id} without a stripe_customer_id.")
        raise BadRequestError("No billing information found for this company")
    try:
        portal_session = stripe.billing_portal.Session.create(
            customer=company.stripe_customer_id,
            return_url=f"{current_app.config['FRONTEND_URL'].rstrip('/')}/billing",
        )
    except stripe.StripeError as e:
        current_app.logger.error(f"Stripe Portal Error for company {company.id} (Stripe Customer ID: {company.stripe_customer_id}): {e}")
        raise AppError("Could not open the billing portal", status_code=502)
    return jsonify({"url": portal_session.url})

# --- Webhook event handlers ---
# Each handler receives the event's data.object as a plain dict and returns a
# short outcome string for logging. They do not commit.

def _handle_checkout_completed(session):
    company_id = session.get('client_reference_id') or (session.get('metadata') or {}).get('company_id')
    stripe_subscription_id = session.get('subscription')
    stripe_customer_id = session.get('customer')
    if not company_id or not stripe_subscription_id:
        raise BadRequestError("Missing company or subscription id in checkout session")

    company = db.session.get(Company, int(company_id))
    if company is None:
        raise NotFoundError(f"Company {company_id} not found")
    if company.stripe_subscription_id == stripe_subscription_id:
        return "already processed"

    company.stripe_customer_id = stripe_customer_id or company.stripe_customer_id
    company.stripe_subscription_id = stripe_subscription_id
    plan_id = (session.get('metadata') or {}).get('plan_id')
    plan = db.session.get(SubscriptionPlan, int(plan_id)) if plan_id else None
    if plan is not None:
        company.apply_plan_limits(plan)
    else:
        current_app.logger.warning(f"Checkout for company {company.id} carries no known plan_id ({plan_id}); limits unchanged.")
    company.subscription_status = SubscriptionStatusEnum.ACTIVE.value
    company.subscription_start_date = datetime.utcnow()
    if company.status == CompanyStatusEnum.TRIAL:
        company.status = CompanyStatusEnum.ACTIVE
    return f"company {company.id} subscribed ({stripe_subscription_id})"

def _handle_subscription_updated(subscription):
    company = _find_company(subscription.get('id'), subscription.get('customer'))
    if company is None:
        return "company not found"
    if company.subscription_status == SubscriptionStatusEnum.CANCELLED.value:
        return "ignored: subscription already cancelled"

    changed = []
    new_status = SubscriptionStatusEnum.from_stripe_status(subscription.get('status'))
    if new_status and company.subscription_status != new_status.value:
        company.subscription_status = new_status.value
        changed.append(f"status={new_status.value}")

    price_id = (_first_item(subscription).get('price') or {}).get('id')
    if price_id:
        plan = SubscriptionPlan.query.filter_by(stripe_price_id=price_id).first()
        if plan is None:
            current_app.logger.error(f"Stripe Price ID {price_id} does not match any local SubscriptionPlan.")
        elif company.subscription_plan.value != plan.slug or company.max_users != plan.max_users:
            company.apply_plan_limits(plan)
            changed.append(f"plan={plan.slug}")

    end_date = _timestamp(subscription.get('cancel_at')) if subscription.get('cancel_at_period_end') else _period_end(subscription)
    if end_date and company.subscription_end_date != end_date:
        company.subscription_end_date = end_date
        changed.append(f"end_date={end_date.isoformat()}")
    return f"company {company.id} updated: {', '.join(changed)}" if changed else "no changes"

def _handle_subscription_deleted(subscription):
    company = _find_company(subscription.get('id'), subscription.get('customer'))
    if company is None:
        return "company not found"
    if company.subscription_status == SubscriptionStatusEnum.CANCELLED.value:
        return "already cancelled"
    company.subscription_status = SubscriptionStatusEnum.CANCELLED.value
    company.subscription_end_date = _timestamp(subscription.get('ended_at')) or datetime.utcnow()
    free_plan = SubscriptionPlan.query.filter_by(slug=FREE_PLAN_SLUG).first()
    if free_plan is not None:
        company.apply_plan_limits(free_plan)
    return f"company {company.id} subscription cancelled"

def _handle_payment_failed(invoice):
    stripe_subscription_id = invoice.get('subscription')
    if not stripe_subscription_id:
        return "no subscription on invoice"
    company = _find_company(stripe_subscription_id, invoice.get('customer'))
    if company is None:
        return "company not found"
    if company.subscription_status == SubscriptionStatusEnum.PAST_DUE.value:
        return "already past_due"
    company.subscription_status = SubscriptionStatusEnum.PAST_DUE.value
    return f"company {company.id} marked past_due"

WEBHOOK_HANDLERS = {
    'checkout.session.completed': _handle_checkout_completed,
    'customer.subscription.updated': _handle_subscription_updated,
    'customer.subscription.deleted': _handle_subscription_deleted,
    'invoice.payment_failed': _handle_payment_failed,
}

@billing_bp.route('/stripe-webhook', methods=['POST'])
def stripe_webhook():
    """
    Receives Stripe events and mirrors them onto the company's subscription.

    The signature is verified with STRIPE_WEBHOOK_SECRET. Handlers are
    idempotent: replaying an event leaves the company unchanged. Unknown event
    types are acknowledged and ignored.
    """
    payload = request.get_data()
    sig_header = request.headers.get('Stripe-Signature')
    try:
        event = stripe.Webhook.construct_event(payload, sig_header, current_app.config['STRIPE_WEBHOOK_SECRET'])
    except ValueError as e:
        current_app.logger.error(f"Webhook ValueError: Invalid payload - {e}")
        return jsonify({"error": "Invalid payload"}), 400
    except stripe.SignatureVerificationError as e:
        current_app.logger.error(f"Webhook SignatureVerificationError: {e}")
        return jsonify({"error": "Invalid signature"}), 400

    # The verified payload, handled as plain dicts.
    event_data = json.loads(payload)
    event_id = event_data.get('id', 'unknown_event_id')
    event_type = event_data.get('type') or event.type
    current_app.logger.info(f"Stripe Webhook Event ID {event_id}: Received event type '{event_type}'.")

    handler = WEBHOOK_HANDLERS.get(event_type)
    if handler is None:
        return jsonify({"received": True})
    outcome = handler((event_data.get('data') or {}).get('object') or {})
    commit_session(f"processing Stripe event {event_id}")
    current_app.logger.info(f"Stripe Webhook Event ID {event_id} ({event_type}): {outcome}.")
    return jsonify({"received": True})
