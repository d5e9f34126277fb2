# -*- coding: utf-8 -*-
"""
Authentication Tests.

Covers registration, login (bearer token and session cookie), logout,
password changes and deactivated accounts.

Run with: pytest tests/test_auth.py -v
"""

from datetime import datetime, timedelta, timezone

from rankitpro.service.user_service import UserServiceSingleton, hash_password, verify_password
from rankitpro.utils.constants import Roles

from conftest import TEST_PASSWORD


# =============================================================================
# REGISTRATION
# =============================================================================

class TestRegister:

    def test_register_creates_company_and_admin(self, client, db, mock_email):
        response = client.post('/api/auth/register', json={
            'email': 'Owner@NewCo.com',
            'username': 'newowner',
            'password': 'supersecret',
            'companyName': 'NewCo Heating',
        })

        assert response.status_code == 201
        body = response.get_json()
        assert body['user']['role'] == Roles.COMPANY_ADMIN
        assert body['user']['email'] == 'owner@newco.com'
        assert 'password' not in body['user']
        assert body['company']['name'] == 'NewCo Heating'
        assert body['company']['plan'] == 'starter'
        assert body['company']['is_trial_active'] is True
        assert body['token']
        mock_email.send_welcome_email.assert_called_once_with('owner@newco.com', 'newowner', 'NewCo Heating')

    def test_register_rejects_short_password(self, client):
        response = client.post('/api/auth/register', json={
            'email': 'a@b.com', 'username': 'abc', 'password': 'short', 'companyName': 'X',
        })

        assert response.status_code == 400
        assert response.get_json()['details'][0]['field'] == 'password'

    def test_register_rejects_missing_fields(self, client):
        response = client.post('/api/auth/register', json={'email': 'a@b.com'})

        assert response.status_code == 400
        fields = {d['field'] for d in response.get_json()['details']}
        assert {'username', 'password', 'companyName'} <= fields

    def test_register_rejects_duplicate_email(self, client, company_admin):
        response = client.post('/api/auth/register', json={
            'email': company_admin.email, 'username': 'another', 'password': 'supersecret', 'companyName': 'X',
        })

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Email already in use'

    def test_welcome_email_failure_does_not_fail_registration(self, client, mock_email):
        mock_email.send_welcome_email.side_effect = RuntimeError("smtp down")

        response = client.post('/api/auth/register', json={
            'email': 'x@y.com', 'username': 'xyuser', 'password': 'supersecret', 'companyName': 'XY',
        })

        assert response.status_code == 201


# =============================================================================
# LOGIN / SESSION
# =============================================================================

class TestLogin:

    def test_login_returns_token(self, client, company_admin):
        response = client.post('/api/auth/login', json={'email': company_admin.email, 'password': TEST_PASSWORD})

        assert response.status_code == 200
        body = response.get_json()
        assert body['token']
        assert body['user']['id'] == company_admin.id

    def test_login_records_last_login(self, client, company_admin):
        client.post('/api/auth/login', json={'email': company_admin.email, 'password': TEST_PASSWORD})

        user = UserServiceSingleton.get_instance().get_by_id(company_admin.id)
        assert user.last_login_at is not None

    def test_login_wrong_password(self, client, company_admin):
        response = client.post('/api/auth/login', json={'email': company_admin.email, 'password': 'wrong-password'})

        assert response.status_code == 401
        assert response.get_json()['error'] == 'Invalid credentials'

    def test_login_unknown_email(self, client):
        response = client.post('/api/auth/login', json={'email': 'nobody@example.com', 'password': 'whatever1'})

        assert response.status_code == 401

    def test_login_invalid_input(self, client):
        response = client.post('/api/auth/login', json={'email': 'not-an-email'})

        assert response.status_code == 400

    def test_login_deactivated_user(self, client, company_admin):
        UserServiceSingleton.get_instance().deactivate(company_admin.id)

        response = client.post('/api/auth/login', json={'email': company_admin.email, 'password': TEST_PASSWORD})

        assert response.status_code == 401
        assert response.get_json()['error'] == 'Account is deactivated'

    def test_session_cookie_authenticates(self, client, company_admin):
        client.post('/api/auth/login', json={'email': company_admin.email, 'password': TEST_PASSWORD})

        response = client.get('/api/auth/me')

        assert response.status_code == 200
        assert response.get_json()['user']['email'] == company_admin.email

    def test_remember_me_cookie_lasts_thirty_days(self, client, company_admin):
        client.post('/api/auth/login', json={
            'email': company_admin.email, 'password': TEST_PASSWORD, 'rememberMe': True,
        })

        cookie = client.get_cookie('session')
        assert cookie.expires is not None
        lifetime = cookie.expires - datetime.now(timezone.utc)
        assert timedelta(days=29) < lifetime <= timedelta(days=30)

    def test_session_cookie_without_remember_me(self, client, company_admin):
        client.post('/api/auth/login', json={'email': company_admin.email, 'password': TEST_PASSWORD})

        assert client.get_cookie('session').expires is None
        with client.session_transaction() as sess:
            remaining = sess['expires_at'] - datetime.now(timezone.utc).timestamp()
        assert 3.9 * 3600 < remaining <= 4 * 3600

    def test_expired_session_rejected(self, client, company_admin):
        client.post('/api/auth/login', json={'email': company_admin.email, 'password': TEST_PASSWORD})
        with client.session_transaction() as sess:
            sess['expires_at'] = (datetime.now(timezone.utc) - timedelta(minutes=1)).timestamp()

        assert client.get('/api/auth/me').status_code == 401

    def test_second_login_reports_already_logged_in(self, client, company_admin):
        client.post('/api/auth/login', json={'email': company_admin.email, 'password': TEST_PASSWORD})

        response = client.post('/api/auth/login', json={'email': company_admin.email, 'password': TEST_PASSWORD})

        assert response.get_json()['alreadyLoggedIn'] is True

    def test_logout_clears_session(self, client, company_admin):
        client.post('/api/auth/login', json={'email': company_admin.email, 'password': TEST_PASSWORD})

        client.post('/api/auth/logout')

        assert client.get('/api/auth/me').status_code == 401


class TestCurrentUser:

    def test_me_requires_auth(self, client):
        response = client.get('/api/auth/me')

        assert response.status_code == 401
        assert response.get_json()['code'] == 'auth_required'

    def test_me_with_bearer_token(self, client, company_admin, auth_headers):
        response = client.get('/api/auth/me', headers=auth_headers(company_admin))

        assert response.status_code == 200
        assert response.get_json()['user']['role'] == Roles.COMPANY_ADMIN

    def test_garbage_token_rejected(self, client):
        response = client.get('/api/auth/me', headers={'Authorization': 'Bearer not.a.jwt'})

        assert response.status_code == 401

    def test_deactivated_user_token_rejected(self, client, company_admin, auth_headers):
        headers = auth_headers(company_admin)
        UserServiceSingleton.get_instance().deactivate(company_admin.id)

        assert client.get('/api/auth/me', headers=headers).status_code == 401


# =============================================================================
# PASSWORDS
# =============================================================================

class TestChangePassword:

    def test_change_password(self, client, company_admin, auth_headers):
        response = client.post('/api/auth/change-password', headers=auth_headers(company_admin), json={
            'currentPassword': TEST_PASSWORD, 'newPassword': 'brand-new-pass',
        })

        assert response.status_code == 200
        user = UserServiceSingleton.get_instance().get_by_id(company_admin.id)
        assert verify_password(user.password, 'brand-new-pass')

    def test_change_password_wrong_current(self, client, company_admin, auth_headers):
        response = client.post('/api/auth/change-password', headers=auth_headers(company_admin), json={
            'currentPassword': 'nope-nope', 'newPassword': 'brand-new-pass',
        })

        assert response.status_code == 400

    def test_change_password_too_short(self, client, company_admin, auth_headers):
        response = client.post('/api/auth/change-password', headers=auth_headers(company_admin), json={
            'currentPassword': TEST_PASSWORD, 'newPassword': 'short',
        })

        assert response.status_code == 400
        assert response.get_json()['details'][0]['field'] == 'newPassword'

    def test_verify_password_handles_missing_hash(self):
        assert verify_password(None, 'anything') is False
        assert verify_password(hash_password('secret12'), 'secret12') is True
