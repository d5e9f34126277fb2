import logging
from datetime import datetime, timezone
from typing import Optional

import stripe
from flask import Blueprint, request, jsonify

from rankitpro.models.company import Company
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.service.sales_service import SalesServiceSingleton
from rankitpro.utils.constants import PLANS, PLAN_USAGE_LIMITS, Settings

stripe_webhook = Blueprint("stripe_webhook", __name__, url_prefix="/webhooks/stripe")

logger = logging.getLogger(__name__)

INACTIVE_STATUSES = ("canceled", "unpaid", "incomplete_expired")


@stripe_webhook.route("", methods=["POST"])
def handle_webhook():
    signature = request.headers.get("Stripe-Signature")

    try:
        event = stripe.Webhook.construct_event(
            payload=request.data, sig_header=signature, secret=Settings().STRIPE_WEBHOOK_SECRET
        )
    except Exception as e:
        logger.error(f"Error verifying webhook signature: {str(e)}")
        return jsonify({"success": False, "error": "Invalid signature"}), 400

    try:
        event_type = event["type"]
        event_data = event["data"]["object"]

        logger.info(f"Processing Stripe event: {event_type}")

        if event_type in ("customer.subscription.created", "customer.subscription.updated"):
            handle_subscription_changed(event_data)
        elif event_type == "customer.subscription.deleted":
            handle_subscription_deleted(event_data)
        elif event_type == "invoice.paid":
            handle_invoice_paid(event_data)
        elif event_type == "invoice.payment_failed":
            handle_invoice_payment_failed(event_data)

        return jsonify({"success": True}), 200
    except Exception as e:
        logger.error(f"Error processing webhook: {str(e)}")
        return jsonify({"success": False, "error": str(e)}), 500


def find_company(data) -> Optional[Company]:
    """Locate the company from subscription metadata or the Stripe customer."""
    company_service = CompanyServiceSingleton.get_instance()
    company_id = (data.get("metadata") or {}).get("company_id")
    if company_id:
        company = company_service.get_by_id(int(company_id))
        if company:
            return company
    if data.get("customer"):
        return company_service.get_by_stripe_customer(data["customer"])
    return None


def plan_for_subscription(data) -> Optional[str]:
    plan = (data.get("metadata") or {}).get("plan")
    if plan in PLANS:
        return plan

    items = (data.get("items") or {}).get("data") or []
    if not items:
        return None
    price_id = items[0]["price"]["id"]
    settings = Settings()
    for name in PLANS:
        for period in ("monthly", "yearly"):
            if settings.stripe_price_id(name, period) == price_id:
                return name
    return None


def handle_subscription_changed(data):
    company = find_company(data)
    if not company:
        logger.error(f"Could not determine company for subscription {data.get('id')}")
        return

    if data.get("status") in INACTIVE_STATUSES:
        handle_subscription_deleted(data)
        return

    fields = {
        "stripe_subscription_id": data["id"],
        "stripe_customer_id": data.get("customer") or company.stripe_customer_id,
    }
    plan = plan_for_subscription(data)
    if plan:
        fields["plan"] = plan
        fields["usage_limit"] = PLAN_USAGE_LIMITS[plan]
    if data.get("status") in ("active", "trialing"):
        fields["is_trial_active"] = False

    CompanyServiceSingleton.get_instance().update(company.id, fields)
    logger.info(f"Company {company.id} subscription {data['id']} is {data.get('status')}")


def handle_subscription_deleted(data):
    company = find_company(data)
    if not company:
        logger.error(f"Could not determine company for subscription {data.get('id')}")
        return

    # a newer subscription may already have replaced this one
    if company.stripe_subscription_id and company.stripe_subscription_id != data.get("id"):
        return

    CompanyServiceSingleton.get_instance().update(company.id, {
        "stripe_subscription_id": None,
        "is_trial_active": False,
    })

    sales_service = SalesServiceSingleton.get_instance()
    assignment = sales_service.get_active_assignment(company.id)
    if assignment:
        sales_service.update_assignment(assignment.id, {"status": "cancelled"})
    logger.info(f"Subscription {data.get('id')} ended for company {company.id}")


def handle_invoice_paid(data):
    """Pay the assigned sales person: ``signup`` on the first invoice, ``renewal`` after."""
    company = find_company({"customer": data.get("customer"), "metadata": data.get("metadata")})
    if not company:
        logger.warning(f"Paid invoice {data.get('id')} has no matching company")
        return

    amount = (data.get("amount_paid") or 0) / 100
    if amount <= 0:
        return

    sales_service = SalesServiceSingleton.get_instance()
    assignment = sales_service.get_active_assignment(company.id)
    if not assignment:
        return
    person = sales_service.get_person(assignment.sales_person_id)
    if not person or not person.is_active:
        return

    created = data.get("created")
    paid_at = datetime.fromtimestamp(created, tz=timezone.utc) if created else datetime.now(timezone.utc)
    month = paid_at.strftime("%Y-%m")
    if sales_service.commission_exists(person.id, company.id, month):
        return

    commission_type = "signup" if data.get("billing_reason") == "subscription_create" else "renewal"
    sales_service.create_commission(
        person,
        company.id,
        amount,
        commission_type=commission_type,
        month=month,
        subscription_id=data.get("subscription"),
    )
    logger.info(f"Recorded {commission_type} commission for sales person {person.id} on company {company.id}")


def handle_invoice_payment_failed(data):
    company = find_company({"customer": data.get("customer"), "metadata": data.get("metadata")})
    if not company:
        logger.warning(f"Failed invoice {data.get('id')} has no matching company")
        return
    logger.warning(
        f"Payment failed for company {company.id} (invoice {data.get('id')}, "
        f"attempt {data.get('attempt_count')})"
    )
