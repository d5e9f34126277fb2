import os
import logging
from typing import Dict, Any, Optional, List

import stripe
from dotenv import load_dotenv

from rankitpro.models.company import Company
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.utils.constants import Settings

load_dotenv()

stripe.api_key = os.getenv("STRIPE_SECRET_KEY")
logger = logging.getLogger(__name__)


def stripe_configured() -> bool:
    return bool(stripe.api_key)


def get_price_id(plan: str, billing_period: str = 'monthly') -> Optional[str]:
    return Settings().stripe_price_id(plan, billing_period)


def get_or_create_customer(company: Company, email: str) -> str:
    """Return the company's Stripe customer id, creating the customer when missing."""
    if company.stripe_customer_id:
        return company.stripe_customer_id

    customer = stripe.Customer.create(
        email=email,
        name=company.name,
        metadata={"company_id": str(company.id)},
    )
    CompanyServiceSingleton.get_instance().update(company.id, {'stripe_customer_id': customer.id})
    company.stripe_customer_id = customer.id
    logger.info(f"Created Stripe customer {customer.id} for company {company.id}")
    return customer.id


def get_subscription(subscription_id: str) -> Optional[Dict[str, Any]]:
    try:
        return stripe.Subscription.retrieve(subscription_id)
    except stripe.StripeError as e:
        logger.error(f"Error retrieving subscription {subscription_id}: {e}")
        return None


def create_or_update_subscription(company: Company, email: str, price_id: str, plan: str) -> Dict[str, Any]:
    """
    Move the company onto ``price_id``.

    Returns ``alreadySubscribed`` when nothing changes, ``updated`` when an
    existing subscription switched price, or the ``clientSecret`` of the first
    invoice's payment intent for a new subscription.
    """
    customer_id = get_or_create_customer(company, email)

    if company.stripe_subscription_id:
        subscription = get_subscription(company.stripe_subscription_id)
        if subscription and subscription.get('status') in ('active', 'trialing'):
            item = subscription['items']['data'][0]
            if item['price']['id'] == price_id:
                return {'alreadySubscribed': True, 'subscriptionId': subscription['id']}

            updated = stripe.Subscription.modify(
                subscription['id'],
                items=[{'id': item['id'], 'price': price_id}],
                proration_behavior='create_prorations',
                metadata={'company_id': str(company.id), 'plan': plan},
            )
            return {'updated': True, 'subscriptionId': updated['id'], 'status': updated['status']}

    subscription = stripe.Subscription.create(
        customer=customer_id,
        items=[{'price': price_id}],
        payment_behavior='default_incomplete',
        payment_settings={'save_default_payment_method': 'on_subscription'},
        expand=['latest_invoice.payment_intent'],
        metadata={'company_id': str(company.id), 'plan': plan},
    )
    CompanyServiceSingleton.get_instance().update(company.id, {'stripe_subscription_id': subscription['id']})

    payment_intent = (subscription.get('latest_invoice') or {}).get('payment_intent') or {}
    return {
        'subscriptionId': subscription['id'],
        'clientSecret': payment_intent.get('client_secret'),
        'status': subscription['status'],
    }


def cancel_subscription(subscription_id: str) -> Dict[str, Any]:
    subscription = stripe.Subscription.modify(subscription_id, cancel_at_period_end=True)
    logger.info(f"Subscription {subscription_id} set to cancel at period end")
    return {
        'subscriptionId': subscription['id'],
        'cancelAtPeriodEnd': subscription.get('cancel_at_period_end', True),
        'currentPeriodEnd': subscription.get('current_period_end'),
    }


def create_payment_intent(amount: float, currency: str = 'usd', customer_id: Optional[str] = None) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        'amount': int(round(amount * 100)),
        'currency': currency,
        'automatic_payment_methods': {'enabled': True},
    }
    if customer_id:
        params['customer'] = customer_id
    intent = stripe.PaymentIntent.create(**params)
    return {'clientSecret': intent['client_secret'], 'paymentIntentId': intent['id']}


def list_invoices(customer_id: str, limit: int = 10) -> List[Dict[str, Any]]:
    try:
        invoices = stripe.Invoice.list(customer=customer_id, limit=limit)
    except stripe.StripeError as e:
        logger.error(f"Error listing invoices for {customer_id}: {e}")
        return []
    return [
        {
            'id': invoice['id'],
            'amountPaid': (invoice.get('amount_paid') or 0) / 100,
            'status': invoice.get('status'),
            'created': invoice.get('created'),
            'hostedInvoiceUrl': invoice.get('hosted_invoice_url'),
        }
        for invoice in invoices.get('data', [])
    ]


def create_plan_price(name: str, amount: float, interval: str = 'month', product_id: Optional[str] = None) -> Dict[str, str]:
    """Create (or reuse) a Stripe product and attach a new recurring price."""
    if not product_id:
        product = stripe.Product.create(name=name)
        product_id = product['id']
    price = stripe.Price.create(
        product=product_id,
        unit_amount=int(round(amount * 100)),
        currency='usd',
        recurring={'interval': interval},
    )
    return {'productId': product_id, 'priceId': price['id']}
