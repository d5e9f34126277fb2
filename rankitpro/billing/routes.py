"""
Billing API Routes - plans, subscriptions, usage and trial status.
"""

import logging

import stripe
from flask import request, jsonify, g

from rankitpro.billing import billing_bp
from rankitpro.integrations.stripe import service as stripe_service
from rankitpro.middleware.auth import require_auth, require_company_admin, require_super_admin, resolve_company_id
from rankitpro.models.subscription_plan import SubscriptionPlan
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.service.subscription_plan_service import SubscriptionPlanServiceSingleton
from rankitpro.service.trial_service import get_trial_status
from rankitpro.service.usage_service import get_usage, plan_limits
from rankitpro.utils.constants import PLANS, PLAN_PRICES, PLAN_USAGE_LIMITS
from rankitpro.utils.validators import ValidationError, require_choice, require_fields

logger = logging.getLogger(__name__)

BILLING_PERIODS = ('monthly', 'yearly')


def _current_company():
    company_id = resolve_company_id(g.user)
    if not company_id:
        return None
    return CompanyServiceSingleton.get_instance().get_by_id(company_id)


def _builtin_plans():
    return [
        {
            'name': plan,
            'price': PLAN_PRICES[plan],
            'billingPeriod': 'monthly',
            'limits': plan_limits(plan),
        }
        for plan in PLANS
    ]


# =============================================================================
# Plans
# =============================================================================

@billing_bp.route('/plans', methods=['GET'])
def list_plans():
    """Active subscription plans; the built-in tiers when none are configured."""
    try:
        plans = SubscriptionPlanServiceSingleton.get_instance().get_all(active_only=True)
        if not plans:
            return jsonify(_builtin_plans())
        return jsonify([p.to_dict() for p in plans])
    except Exception as e:
        logger.error(f"Error listing plans: {e}")
        return jsonify({"error": str(e)}), 500


# =============================================================================
# Subscription
# =============================================================================

@billing_bp.route('/subscription', methods=['GET'])
@require_company_admin
def get_subscription():
    company = _current_company()
    if not company:
        return jsonify({"error": "Company not found"}), 404

    trial = get_trial_status(company)
    body = {
        'plan': company.plan,
        'status': 'active' if trial.get('subscribed') else ('trial_expired' if trial['expired'] else 'trialing'),
        'limits': plan_limits(company.plan),
        'trial': trial,
        'subscriptionId': company.stripe_subscription_id,
        'nextBillingDate': None,
        'cancelAtPeriodEnd': False,
        'invoices': [],
    }

    if stripe_service.stripe_configured() and company.stripe_subscription_id:
        subscription = stripe_service.get_subscription(company.stripe_subscription_id)
        if subscription:
            body['status'] = subscription.get('status')
            body['nextBillingDate'] = subscription.get('current_period_end')
            body['cancelAtPeriodEnd'] = subscription.get('cancel_at_period_end', False)
    if stripe_service.stripe_configured() and company.stripe_customer_id:
        body['invoices'] = stripe_service.list_invoices(company.stripe_customer_id)

    return jsonify(body)


@billing_bp.route('/subscription', methods=['POST'])
@require_company_admin
def create_subscription():
    data = request.get_json(silent=True) or {}
    plan = data.get('plan')
    billing_period = data.get('billingPeriod') or 'monthly'

    try:
        require_choice(plan, PLANS, 'plan')
        require_choice(billing_period, BILLING_PERIODS, 'billingPeriod')
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    company = _current_company()
    if not company:
        return jsonify({"error": "Company not found"}), 404

    company_service = CompanyServiceSingleton.get_instance()
    plan_fields = {'plan': plan, 'usage_limit': PLAN_USAGE_LIMITS[plan]}

    if not stripe_service.stripe_configured():
        company_service.update(company.id, plan_fields)
        logger.info(f"Stripe not configured; company {company.id} moved to {plan} directly")
        return jsonify({'success': True, 'plan': plan})

    price_id = stripe_service.get_price_id(plan, billing_period)
    if not price_id:
        return jsonify({"error": f"No {billing_period} price configured for the {plan} plan"}), 400

    try:
        result = stripe_service.create_or_update_subscription(company, g.user.email, price_id, plan)
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating subscription for company {company.id}: {e}")
        return jsonify({"error": getattr(e, 'user_message', None) or str(e)}), 400
    except Exception as e:
        logger.error(f"Error creating subscription for company {company.id}: {e}")
        return jsonify({"error": str(e)}), 500

    if result.get('updated'):
        company_service.update(company.id, plan_fields)
    return jsonify(result)


@billing_bp.route('/subscription/cancel', methods=['POST'])
@require_company_admin
def cancel_subscription():
    company = _current_company()
    if not company:
        return jsonify({"error": "Company not found"}), 404
    if not company.stripe_subscription_id:
        return jsonify({"error": "No active subscription"}), 400
    if not stripe_service.stripe_configured():
        return jsonify({"error": "Billing is not configured"}), 400

    try:
        return jsonify(stripe_service.cancel_subscription(company.stripe_subscription_id))
    except stripe.StripeError as e:
        logger.error(f"Stripe error cancelling subscription for company {company.id}: {e}")
        return jsonify({"error": str(e)}), 400


@billing_bp.route('/payment-intent', methods=['POST'])
@require_auth
def create_payment_intent():
    data = request.get_json(silent=True) or {}
    try:
        amount = float(data.get('amount'))
    except (TypeError, ValueError):
        return jsonify({"error": "Invalid amount"}), 400
    if amount <= 0:
        return jsonify({"error": "Amount must be greater than zero"}), 400
    if not stripe_service.stripe_configured():
        return jsonify({"error": "Billing is not configured"}), 400

    company = _current_company()
    try:
        intent = stripe_service.create_payment_intent(
            amount,
            data.get('currency') or 'usd',
            company.stripe_customer_id if company else None,
        )
        return jsonify(intent)
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating payment intent: {e}")
        return jsonify({"error": str(e)}), 400


# =============================================================================
# Usage and trial
# =============================================================================

@billing_bp.route('/usage', methods=['GET'])
@require_company_admin
def usage():
    company = _current_company()
    if not company:
        return jsonify({"error": "Company not found"}), 404

    try:
        return jsonify(get_usage(company))
    except Exception as e:
        logger.error(f"Error getting usage for company {company.id}: {e}")
        return jsonify({"error": str(e)}), 500


@billing_bp.route('/trial-status', methods=['GET'])
@require_auth
def trial_status():
    if g.user.is_super_admin and not request.args.get('company_id'):
        return jsonify({'subscribed': True, 'expired': False})

    company = _current_company()
    if not company:
        return jsonify({"error": "Company not found"}), 404
    return jsonify(get_trial_status(company))


# =============================================================================
# Admin plan management
# =============================================================================

def _plan_fields(data):
    fields = {}
    for key in ('name', 'price', 'yearlyPrice', 'billingPeriod', 'maxTechnicians', 'maxCheckIns', 'features', 'isActive'):
        if key in data:
            fields[SubscriptionPlan.snake_case(key)] = data[key]

    for key in ('price', 'yearly_price'):
        if fields.get(key) is not None:
            try:
                fields[key] = float(fields[key])
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid {key}")
            if fields[key] < 0:
                raise ValidationError(f"{key} cannot be negative")
    if 'billing_period' in fields:
        require_choice(fields['billing_period'], BILLING_PERIODS, 'billingPeriod')
    return fields


@billing_bp.route('/admin/plans', methods=['GET'])
@require_super_admin
def admin_list_plans():
    service = SubscriptionPlanServiceSingleton.get_instance()
    return jsonify([
        {**plan.to_dict(), 'subscriberCount': service.count_subscribers(plan.id)}
        for plan in service.get_all()
    ])


@billing_bp.route('/admin/plans', methods=['POST'])
@require_super_admin
def admin_create_plan():
    data = request.get_json(silent=True) or {}
    try:
        require_fields(data, ['name', 'price'])
        fields = _plan_fields(data)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        plan = SubscriptionPlan.from_dict(fields)
        if stripe_service.stripe_configured():
            interval = 'year' if plan.billing_period == 'yearly' else 'month'
            ids = stripe_service.create_plan_price(plan.name, plan.price, interval)
            plan.stripe_product_id = ids['productId']
            plan.stripe_price_id = ids['priceId']
        plan = SubscriptionPlanServiceSingleton.get_instance().create(plan)
        return jsonify(plan.to_dict()), 201
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating plan: {e}")
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.error(f"Error creating plan: {e}")
        return jsonify({"error": str(e)}), 500


@billing_bp.route('/admin/plans/<int:plan_id>', methods=['PUT'])
@require_super_admin
def admin_update_plan(plan_id):
    service = SubscriptionPlanServiceSingleton.get_instance()
    plan = service.get_by_id(plan_id)
    if not plan:
        return jsonify({"error": "Plan not found"}), 404

    try:
        fields = _plan_fields(request.get_json(silent=True) or {})
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        # Stripe prices are immutable, so a new amount needs a new price
        price_changed = 'price' in fields and float(fields['price']) != float(plan.price or 0)
        if price_changed and stripe_service.stripe_configured():
            period = fields.get('billing_period', plan.billing_period)
            ids = stripe_service.create_plan_price(
                fields.get('name', plan.name),
                fields['price'],
                'year' if period == 'yearly' else 'month',
                product_id=plan.stripe_product_id,
            )
            fields['stripe_product_id'] = ids['productId']
            fields['stripe_price_id'] = ids['priceId']
        return jsonify(service.update(plan_id, fields).to_dict())
    except stripe.StripeError as e:
        logger.error(f"Stripe error updating plan {plan_id}: {e}")
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.error(f"Error updating plan {plan_id}: {e}")
        return jsonify({"error": str(e)}), 500


@billing_bp.route('/admin/plans/<int:plan_id>', methods=['DELETE'])
@require_super_admin
def admin_delete_plan(plan_id):
    service = SubscriptionPlanServiceSingleton.get_instance()
    if not service.get_by_id(plan_id):
        return jsonify({"error": "Plan not found"}), 404

    subscribers = service.count_subscribers(plan_id)
    service.deactivate(plan_id)
    return jsonify({"message": "Plan deactivated", "subscriberCount": subscribers})
