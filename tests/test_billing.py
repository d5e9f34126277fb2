# -*- coding: utf-8 -*-
"""
Billing and Stripe Webhook Tests.

Stripe is switched off by default (see conftest); tests that need it patch
the ``stripe_service`` helpers or ``stripe.Webhook.construct_event``.

Run with: pytest tests/test_billing.py -v
"""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest
import stripe

from rankitpro.models.sales import SalesPerson
from rankitpro.models.subscription_plan import SubscriptionPlan
from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.service.sales_service import SalesServiceSingleton
from rankitpro.service.subscription_plan_service import SubscriptionPlanServiceSingleton

STRIPE = 'rankitpro.billing.routes.stripe_service'


def _company(company_id):
    return CompanyServiceSingleton.get_instance().get_by_id(company_id)


# =============================================================================
# PLANS
# =============================================================================

class TestPlans:

    def test_builtin_plans_when_none_configured(self, client):
        response = client.get('/api/billing/plans')

        assert response.status_code == 200
        plans = {p['name']: p for p in response.get_json()}
        assert set(plans) == {'starter', 'pro', 'agency'}
        assert plans['starter']['price'] == 49
        assert plans['pro']['limits'] == {'checkins': 200, 'blogPosts': 50, 'technicians': 5}
        assert plans['agency']['limits']['technicians'] == 15

    def test_configured_plans_replace_builtin(self, client, db):
        plan = SubscriptionPlan()
        plan.name = 'Enterprise'
        plan.price = 499.0
        SubscriptionPlanServiceSingleton.get_instance().create(plan)

        plans = client.get('/api/billing/plans').get_json()

        assert [p['name'] for p in plans] == ['Enterprise']

    def test_inactive_plans_hidden(self, client, db):
        plan = SubscriptionPlan()
        plan.name = 'Legacy'
        plan.price = 29.0
        plan.is_active = False
        SubscriptionPlanServiceSingleton.get_instance().create(plan)

        plans = client.get('/api/billing/plans').get_json()

        assert 'Legacy' not in [p['name'] for p in plans]


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

class TestSubscription:

    def test_get_subscription_during_trial(self, client, company, company_admin, auth_headers):
        response = client.get('/api/billing/subscription', headers=auth_headers(company_admin))

        assert response.status_code == 200
        body = response.get_json()
        assert body['plan'] == 'starter'
        assert body['status'] == 'trialing'
        assert body['trial']['daysLeft'] == 14
        assert body['invoices'] == []

    def test_get_subscription_when_subscribed(self, client, db, company, company_admin, auth_headers):
        CompanyServiceSingleton.get_instance().update(company.id, {'stripe_subscription_id': 'sub_123'})

        body = client.get('/api/billing/subscription', headers=auth_headers(company_admin)).get_json()

        assert body['status'] == 'active'
        assert body['subscriptionId'] == 'sub_123'

    def test_technician_cannot_view_subscription(self, client, tech_user, auth_headers):
        response = client.get('/api/billing/subscription', headers=auth_headers(tech_user))

        assert response.status_code == 403

    def test_plan_change_without_stripe(self, client, company, company_admin, auth_headers):
        response = client.post('/api/billing/subscription', headers=auth_headers(company_admin), json={'plan': 'pro'})

        assert response.status_code == 200
        assert response.get_json() == {'success': True, 'plan': 'pro'}
        updated = _company(company.id)
        assert updated.plan == 'pro'
        assert updated.usage_limit == 200

    @pytest.mark.parametrize("payload", [
        {'plan': 'platinum'},
        {},
        {'plan': 'pro', 'billingPeriod': 'weekly'},
    ])
    def test_invalid_subscription_request(self, client, company_admin, auth_headers, payload):
        response = client.post('/api/billing/subscription', headers=auth_headers(company_admin), json=payload)

        assert response.status_code == 400

    def test_missing_price_id(self, client, company_admin, auth_headers):
        with patch(f'{STRIPE}.stripe_configured', return_value=True), \
                patch(f'{STRIPE}.get_price_id', return_value=None):
            response = client.post('/api/billing/subscription', headers=auth_headers(company_admin), json={
                'plan': 'agency', 'billingPeriod': 'yearly',
            })

        assert response.status_code == 400
        assert 'yearly' in response.get_json()['error']

    def test_new_subscription_returns_client_secret(self, client, company, company_admin, auth_headers):
        result = {'subscriptionId': 'sub_new', 'clientSecret': 'pi_secret', 'status': 'incomplete'}
        with patch(f'{STRIPE}.stripe_configured', return_value=True), \
                patch(f'{STRIPE}.get_price_id', return_value='price_pro'), \
                patch(f'{STRIPE}.create_or_update_subscription', return_value=result) as create:
            response = client.post('/api/billing/subscription', headers=auth_headers(company_admin), json={'plan': 'pro'})

        assert response.status_code == 200
        assert response.get_json() == result
        assert create.call_args[0][1:] == ('owner@acme.com', 'price_pro', 'pro')
        # the webhook moves the plan once the payment confirms
        assert _company(company.id).plan == 'starter'

    def test_updated_subscription_changes_plan(self, client, company, company_admin, auth_headers):
        result = {'updated': True, 'subscriptionId': 'sub_1', 'status': 'active'}
        with patch(f'{STRIPE}.stripe_configured', return_value=True), \
                patch(f'{STRIPE}.get_price_id', return_value='price_agency'), \
                patch(f'{STRIPE}.create_or_update_subscription', return_value=result):
            client.post('/api/billing/subscription', headers=auth_headers(company_admin), json={'plan': 'agency'})

        updated = _company(company.id)
        assert updated.plan == 'agency'
        assert updated.usage_limit == 1000

    def test_stripe_error_is_bad_request(self, client, company_admin, auth_headers):
        with patch(f'{STRIPE}.stripe_configured', return_value=True), \
                patch(f'{STRIPE}.get_price_id', return_value='price_pro'), \
                patch(f'{STRIPE}.create_or_update_subscription', side_effect=stripe.StripeError("Card declined")):
            response = client.post('/api/billing/subscription', headers=auth_headers(company_admin), json={'plan': 'pro'})

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Card declined'

    def test_cancel_without_subscription(self, client, company_admin, auth_headers):
        response = client.post('/api/billing/subscription/cancel', headers=auth_headers(company_admin))

        assert response.status_code == 400

    def test_cancel_subscription(self, client, db, company, company_admin, auth_headers):
        CompanyServiceSingleton.get_instance().update(company.id, {'stripe_subscription_id': 'sub_123'})
        with patch(f'{STRIPE}.stripe_configured', return_value=True), \
                patch(f'{STRIPE}.cancel_subscription', return_value={'cancelAtPeriodEnd': True}) as cancel:
            response = client.post('/api/billing/subscription/cancel', headers=auth_headers(company_admin))

        assert response.status_code == 200
        cancel.assert_called_once_with('sub_123')


class TestPaymentIntent:

    @pytest.mark.parametrize("amount", [None, 'abc', 0, -5])
    def test_invalid_amount(self, client, company_admin, auth_headers, amount):
        response = client.post('/api/billing/payment-intent', headers=auth_headers(company_admin), json={'amount': amount})

        assert response.status_code == 400

    def test_requires_stripe(self, client, company_admin, auth_headers):
        response = client.post('/api/billing/payment-intent', headers=auth_headers(company_admin), json={'amount': 49})

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Billing is not configured'

    def test_creates_intent(self, client, company_admin, auth_headers):
        intent = {'clientSecret': 'pi_1_secret', 'paymentIntentId': 'pi_1'}
        with patch(f'{STRIPE}.stripe_configured', return_value=True), \
                patch(f'{STRIPE}.create_payment_intent', return_value=intent) as create:
            response = client.post('/api/billing/payment-intent', headers=auth_headers(company_admin), json={'amount': 49})

        assert response.get_json() == intent
        create.assert_called_once_with(49.0, 'usd', None)


# =============================================================================
# USAGE AND TRIAL
# =============================================================================

class TestUsageAndTrial:

    def test_usage(self, client, company_admin, technician, auth_headers):
        response = client.get('/api/billing/usage', headers=auth_headers(company_admin))

        assert response.status_code == 200
        body = response.get_json()
        assert body['plan'] == 'starter'
        assert body['usage']['technicians'] == {'used': 1, 'limit': 2, 'percentage': 50}
        assert body['usage']['checkins'] == {'used': 0, 'limit': 50, 'percentage': 0}

    def test_trial_status_for_company(self, client, company_admin, auth_headers):
        body = client.get('/api/billing/trial-status', headers=auth_headers(company_admin)).get_json()

        assert body['subscribed'] is False
        assert body['expired'] is False
        assert body['daysLeft'] == 14
        assert body['trialEndDate']

    def test_trial_status_for_super_admin(self, client, super_admin, auth_headers):
        body = client.get('/api/billing/trial-status', headers=auth_headers(super_admin)).get_json()

        assert body == {'subscribed': True, 'expired': False}

    def test_trial_status_after_expiry(self, client, db, company, company_admin, auth_headers):
        CompanyServiceSingleton.get_instance().update(company.id, {
            'trial_end_date': datetime(2020, 1, 1, tzinfo=timezone.utc).isoformat(),
        })

        body = client.get('/api/billing/trial-status', headers=auth_headers(company_admin)).get_json()

        assert body['expired'] is True
        assert body['daysLeft'] == 0


# =============================================================================
# ADMIN PLAN MANAGEMENT
# =============================================================================

class TestAdminPlans:

    def test_requires_super_admin(self, client, company_admin, auth_headers):
        response = client.get('/api/billing/admin/plans', headers=auth_headers(company_admin))

        assert response.status_code == 403

    def test_create_plan(self, client, super_admin, auth_headers):
        response = client.post('/api/billing/admin/plans', headers=auth_headers(super_admin), json={
            'name': 'Enterprise', 'price': '499', 'maxTechnicians': 50, 'features': ['Priority support'],
        })

        assert response.status_code == 201
        body = response.get_json()
        assert body['name'] == 'Enterprise'
        assert body['price'] == 499.0
        assert body['max_technicians'] == 50
        assert body['stripe_price_id'] is None

    def test_create_plan_registers_stripe_price(self, client, super_admin, auth_headers):
        ids = {'productId': 'prod_1', 'priceId': 'price_1'}
        with patch(f'{STRIPE}.stripe_configured', return_value=True), \
                patch(f'{STRIPE}.create_plan_price', return_value=ids) as create_price:
            body = client.post('/api/billing/admin/plans', headers=auth_headers(super_admin), json={
                'name': 'Enterprise', 'price': 4990, 'billingPeriod': 'yearly',
            }).get_json()

        create_price.assert_called_once_with('Enterprise', 4990.0, 'year')
        assert body['stripe_product_id'] == 'prod_1'
        assert body['stripe_price_id'] == 'price_1'

    @pytest.mark.parametrize("payload", [
        {'name': 'No price'},
        {'name': 'Negative', 'price': -1},
        {'name': 'Bad', 'price': 'free'},
        {'name': 'Weekly', 'price': 10, 'billingPeriod': 'weekly'},
    ])
    def test_create_plan_validation(self, client, super_admin, auth_headers, payload):
        response = client.post('/api/billing/admin/plans', headers=auth_headers(super_admin), json=payload)

        assert response.status_code == 400

    def test_update_plan_price_creates_new_stripe_price(self, client, db, super_admin, auth_headers):
        plan = SubscriptionPlan()
        plan.name = 'Enterprise'
        plan.price = 499.0
        plan.stripe_product_id = 'prod_1'
        plan = SubscriptionPlanServiceSingleton.get_instance().create(plan)

        with patch(f'{STRIPE}.stripe_configured', return_value=True), \
                patch(f'{STRIPE}.create_plan_price', return_value={'productId': 'prod_1', 'priceId': 'price_2'}) as create_price:
            body = client.put(f'/api/billing/admin/plans/{plan.id}', headers=auth_headers(super_admin), json={
                'price': 599,
            }).get_json()

        create_price.assert_called_once_with('Enterprise', 599.0, 'month', product_id='prod_1')
        assert body['price'] == 599.0
        assert body['stripe_price_id'] == 'price_2'

    def test_update_missing_plan(self, client, super_admin, auth_headers):
        response = client.put('/api/billing/admin/plans/999', headers=auth_headers(super_admin), json={'name': 'x'})

        assert response.status_code == 404

    def test_delete_plan_reports_subscribers(self, client, db, make_company, super_admin, auth_headers):
        plan = SubscriptionPlan()
        plan.name = 'Enterprise'
        plan.price = 499.0
        plan = SubscriptionPlanServiceSingleton.get_instance().create(plan)
        make_company(name="Big Co", subscription_plan_id=plan.id)
        make_company(name="Other Co")

        response = client.delete(f'/api/billing/admin/plans/{plan.id}', headers=auth_headers(super_admin))

        assert response.status_code == 200
        assert response.get_json()['subscriberCount'] == 1
        assert SubscriptionPlanServiceSingleton.get_instance().get_by_id(plan.id).is_active is False

        listing = client.get('/api/billing/admin/plans', headers=auth_headers(super_admin)).get_json()
        assert listing[0]['subscriberCount'] == 1


# =============================================================================
# STRIPE WEBHOOK
# =============================================================================

@pytest.fixture
def send_event(client):
    def send(event_type, data):
        event = {'type': event_type, 'data': {'object': data}}
        with patch('rankitpro.webhook.stripe_webhook_handler.stripe.Webhook.construct_event', return_value=event):
            return client.post('/webhooks/stripe', data=b'{}', headers={'Stripe-Signature': 't=1,v1=abc'})
    return send


@pytest.fixture
def sales_person(db):
    person = SalesPerson()
    person.name = 'Sally Seller'
    person.email = 'sally@rankitpro.com'
    person.commission_rate = 0.10
    return SalesServiceSingleton.get_instance().create_person(person)


class TestStripeWebhook:

    def test_invalid_signature(self, client):
        with patch('rankitpro.webhook.stripe_webhook_handler.stripe.Webhook.construct_event',
                   side_effect=ValueError("bad signature")):
            response = client.post('/webhooks/stripe', data=b'{}', headers={'Stripe-Signature': 'nope'})

        assert response.status_code == 400
        assert response.get_json()['success'] is False

    def test_unhandled_event_is_acknowledged(self, send_event):
        response = send_event('charge.refunded', {'id': 'ch_1'})

        assert response.status_code == 200

    def test_subscription_updated_sets_plan(self, send_event, company):
        response = send_event('customer.subscription.updated', {
            'id': 'sub_1', 'customer': 'cus_1', 'status': 'active',
            'metadata': {'company_id': str(company.id), 'plan': 'pro'},
        })

        assert response.status_code == 200
        updated = _company(company.id)
        assert updated.plan == 'pro'
        assert updated.usage_limit == 200
        assert updated.stripe_subscription_id == 'sub_1'
        assert updated.stripe_customer_id == 'cus_1'
        assert updated.is_trial_active is False

    def test_plan_resolved_from_price_id(self, send_event, make_company, monkeypatch):
        monkeypatch.setenv('STRIPE_AGENCY_MONTHLY_PRICE_ID', 'price_agency')
        company = make_company(stripe_customer_id='cus_9')

        send_event('customer.subscription.created', {
            'id': 'sub_9', 'customer': 'cus_9', 'status': 'active',
            'items': {'data': [{'price': {'id': 'price_agency'}}]},
        })

        assert _company(company.id).plan == 'agency'

    def test_unknown_company_is_ignored(self, send_event, company):
        response = send_event('customer.subscription.updated', {
            'id': 'sub_1', 'customer': 'cus_unknown', 'status': 'active',
        })

        assert response.status_code == 200
        assert _company(company.id).stripe_subscription_id is None

    def test_subscription_deleted(self, send_event, make_company, sales_person):
        company = make_company(stripe_customer_id='cus_1', stripe_subscription_id='sub_1')
        assignment = SalesServiceSingleton.get_instance().assign_company(sales_person, company)

        send_event('customer.subscription.deleted', {'id': 'sub_1', 'customer': 'cus_1', 'status': 'canceled'})

        updated = _company(company.id)
        assert updated.stripe_subscription_id is None
        assert updated.is_trial_active is False
        assert SalesServiceSingleton.get_instance().get_active_assignment(company.id) is None
        assert SalesServiceSingleton.get_instance().get_assignments(sales_person.id)[0].id == assignment.id

    def test_stale_subscription_deleted_is_ignored(self, send_event, make_company):
        company = make_company(stripe_customer_id='cus_1', stripe_subscription_id='sub_2')

        send_event('customer.subscription.deleted', {'id': 'sub_1', 'customer': 'cus_1'})

        assert _company(company.id).stripe_subscription_id == 'sub_2'

    def test_canceled_status_ends_subscription(self, send_event, make_company):
        company = make_company(stripe_customer_id='cus_1', stripe_subscription_id='sub_1')

        send_event('customer.subscription.updated', {'id': 'sub_1', 'customer': 'cus_1', 'status': 'canceled'})

        assert _company(company.id).stripe_subscription_id is None

    def test_first_invoice_pays_signup_commission_once(self, send_event, make_company, sales_person):
        company = make_company(stripe_customer_id='cus_1', stripe_subscription_id='sub_1', plan='pro')
        SalesServiceSingleton.get_instance().assign_company(sales_person, company)
        invoice = {
            'id': 'in_1', 'customer': 'cus_1', 'subscription': 'sub_1', 'amount_paid': 14900,
            'billing_reason': 'subscription_create',
            'created': int(datetime(2024, 3, 5, tzinfo=timezone.utc).timestamp()),
        }

        send_event('invoice.paid', invoice)
        send_event('invoice.paid', dict(invoice, id='in_2'))

        commissions = SalesServiceSingleton.get_instance().get_commissions(sales_person.id)
        assert len(commissions) == 1
        assert commissions[0].type == 'signup'
        assert commissions[0].amount == 14.9
        assert commissions[0].commission_month == '2024-03'
        assert SalesServiceSingleton.get_instance().get_person(sales_person.id).pending_commissions == 14.9

    def test_later_invoice_is_renewal(self, send_event, make_company, sales_person):
        company = make_company(stripe_customer_id='cus_1', stripe_subscription_id='sub_1')
        SalesServiceSingleton.get_instance().assign_company(sales_person, company)

        send_event('invoice.paid', {
            'id': 'in_5', 'customer': 'cus_1', 'amount_paid': 4900, 'billing_reason': 'subscription_cycle',
            'created': int(datetime(2024, 4, 1, tzinfo=timezone.utc).timestamp()),
        })

        commission = SalesServiceSingleton.get_instance().get_commissions(sales_person.id)[0]
        assert commission.type == 'renewal'
        assert commission.amount == 4.9

    def test_invoice_without_assignment(self, send_event, make_company, db):
        make_company(stripe_customer_id='cus_1')

        response = send_event('invoice.paid', {'id': 'in_1', 'customer': 'cus_1', 'amount_paid': 4900})

        assert response.status_code == 200
        assert db.rows('sales_commissions') == []

    def test_payment_failed_is_logged(self, send_event, make_company):
        make_company(stripe_customer_id='cus_1')

        response = send_event('invoice.payment_failed', {'id': 'in_1', 'customer': 'cus_1', 'attempt_count': 2})

        assert response.status_code == 200
