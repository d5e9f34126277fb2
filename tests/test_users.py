# -*- coding: utf-8 -*-
"""
User Management Tests.

Run with: pytest tests/test_users.py -v
"""

import pytest

from rankitpro.service.technician_service import TechnicianServiceSingleton
from rankitpro.service.user_service import UserServiceSingleton
from rankitpro.utils.constants import Roles


def _user(user_id):
    return UserServiceSingleton.get_instance().get_by_id(user_id)


# =============================================================================
# LISTING
# =============================================================================

class TestListUsers:

    def test_company_admin_sees_own_company(self, client, make_company, make_user, company_admin, tech_user, auth_headers):
        other = make_company(name="Other Co")
        make_user(company_id=other.id, email="boss@other.com")

        users = client.get('/api/users', headers=auth_headers(company_admin)).get_json()

        assert {u['email'] for u in users} == {'owner@acme.com', 'tom@acme.com'}
        assert all('password' not in u for u in users)

    def test_role_filter(self, client, company_admin, tech_user, auth_headers):
        users = client.get('/api/users?role=technician', headers=auth_headers(company_admin)).get_json()

        assert [u['email'] for u in users] == ['tom@acme.com']

    def test_super_admin_sees_everyone(self, client, super_admin, company_admin, tech_user, auth_headers):
        users = client.get('/api/users', headers=auth_headers(super_admin)).get_json()

        assert len(users) == 3

    def test_super_admin_company_filter(self, client, company, super_admin, company_admin, auth_headers):
        users = client.get(f'/api/users?company_id={company.id}', headers=auth_headers(super_admin)).get_json()

        assert [u['email'] for u in users] == ['owner@acme.com']

    def test_technician_forbidden(self, client, tech_user, auth_headers):
        response = client.get('/api/users', headers=auth_headers(tech_user))

        assert response.status_code == 403


# =============================================================================
# CREATION
# =============================================================================

class TestCreateUser:

    def test_create_technician_user_links_technician(self, client, company, company_admin, auth_headers):
        response = client.post('/api/users', headers=auth_headers(company_admin), json={
            'email': 'Nina@Acme.com', 'password': 'longenough', 'name': 'Nina Pipes', 'phone': '555-0111',
        })

        assert response.status_code == 201
        body = response.get_json()
        assert body['email'] == 'nina@acme.com'
        assert body['role'] == Roles.TECHNICIAN
        assert body['company_id'] == company.id
        assert body['technician']['name'] == 'Nina Pipes'
        technician = TechnicianServiceSingleton.get_instance().get_by_user_id(body['id'])
        assert technician.company_id == company.id

    def test_technician_limit(self, client, company_admin, technician, auth_headers):
        first = client.post('/api/users', headers=auth_headers(company_admin), json={
            'email': 'second@acme.com', 'password': 'longenough',
        })
        second = client.post('/api/users', headers=auth_headers(company_admin), json={
            'email': 'third@acme.com', 'password': 'longenough',
        })

        assert first.status_code == 201
        assert second.status_code == 403
        assert second.get_json()['error'] == 'limit_reached'

    def test_company_admin_cannot_create_super_admin(self, client, company_admin, auth_headers):
        response = client.post('/api/users', headers=auth_headers(company_admin), json={
            'email': 'evil@acme.com', 'password': 'longenough', 'role': Roles.SUPER_ADMIN,
        })

        assert response.status_code == 400

    def test_super_admin_needs_company_for_company_roles(self, client, super_admin, auth_headers):
        response = client.post('/api/users', headers=auth_headers(super_admin), json={
            'email': 'owner@new.com', 'password': 'longenough', 'role': Roles.COMPANY_ADMIN,
        })

        assert response.status_code == 400

    def test_super_admin_creates_company_admin(self, client, company, super_admin, auth_headers):
        response = client.post('/api/users', headers=auth_headers(super_admin), json={
            'email': 'manager@acme.com', 'password': 'longenough', 'role': Roles.COMPANY_ADMIN, 'companyId': company.id,
        })

        assert response.status_code == 201
        assert 'technician' not in response.get_json()

    @pytest.mark.parametrize("payload", [
        {'email': 'x@acme.com'},
        {'email': 'not-an-email', 'password': 'longenough'},
        {'email': 'x@acme.com', 'password': 'short'},
        {'email': 'owner@acme.com', 'password': 'longenough'},
    ])
    def test_invalid_user(self, client, company_admin, auth_headers, payload):
        response = client.post('/api/users', headers=auth_headers(company_admin), json=payload)

        assert response.status_code == 400


# =============================================================================
# UPDATES AND DEACTIVATION
# =============================================================================

class TestUpdateUser:

    def test_update_email_and_password(self, client, company_admin, tech_user, auth_headers):
        response = client.put(f'/api/users/{tech_user.id}', headers=auth_headers(company_admin), json={
            'email': 'thomas@acme.com', 'password': 'brandnewpass',
        })

        assert response.status_code == 200
        assert response.get_json()['email'] == 'thomas@acme.com'
        result = UserServiceSingleton.get_instance().authenticate('thomas@acme.com', 'brandnewpass')
        assert result['user'].id == tech_user.id

    def test_email_taken(self, client, company_admin, tech_user, auth_headers):
        response = client.put(f'/api/users/{tech_user.id}', headers=auth_headers(company_admin), json={
            'email': 'owner@acme.com',
        })

        assert response.status_code == 400

    def test_cannot_change_own_role(self, client, company_admin, auth_headers):
        response = client.put(f'/api/users/{company_admin.id}', headers=auth_headers(company_admin), json={
            'role': Roles.TECHNICIAN,
        })

        assert response.status_code == 400

    def test_other_company_user_forbidden(self, client, make_company, make_user, company_admin, auth_headers):
        other = make_user(company_id=make_company(name="Other Co").id, email="boss@other.com")

        response = client.put(f'/api/users/{other.id}', headers=auth_headers(company_admin), json={'username': 'x'})

        assert response.status_code == 403

    def test_super_admin_hidden_from_company_admin(self, client, super_admin, company_admin, auth_headers):
        response = client.put(f'/api/users/{super_admin.id}', headers=auth_headers(company_admin), json={'username': 'x'})

        assert response.status_code == 403

    def test_missing_user(self, client, company_admin, auth_headers):
        response = client.put('/api/users/999', headers=auth_headers(company_admin), json={'username': 'x'})

        assert response.status_code == 404


class TestDeactivateUser:

    def test_deactivates_user_and_technician(self, client, company_admin, tech_user, technician, auth_headers):
        response = client.delete(f'/api/users/{tech_user.id}', headers=auth_headers(company_admin))

        assert response.status_code == 200
        assert _user(tech_user.id).active is False
        assert TechnicianServiceSingleton.get_instance().get_by_id(technician.id).active is False

    def test_deactivated_user_token_rejected(self, client, company_admin, tech_user, auth_headers):
        client.delete(f'/api/users/{tech_user.id}', headers=auth_headers(company_admin))

        response = client.get('/api/auth/me', headers=auth_headers(tech_user))

        assert response.status_code == 401

    def test_cannot_deactivate_self(self, client, company_admin, auth_headers):
        response = client.delete(f'/api/users/{company_admin.id}', headers=auth_headers(company_admin))

        assert response.status_code == 400


# =============================================================================
# PREFERENCES
# =============================================================================

class TestPreferences:

    def test_defaults_empty(self, client, tech_user, auth_headers):
        assert client.get('/api/users/me/preferences', headers=auth_headers(tech_user)).get_json() == {}

    def test_update_preferences(self, client, tech_user, auth_headers):
        response = client.put('/api/users/me/preferences', headers=auth_headers(tech_user), json={
            'emailNotifications': False, 'weeklyDigest': True, 'unknownKey': True,
        })

        assert response.get_json() == {'emailNotifications': False, 'weeklyDigest': True}
        assert _user(tech_user.id).notification_preferences == {'emailNotifications': False, 'weeklyDigest': True}

    def test_preferences_must_be_boolean(self, client, tech_user, auth_headers):
        response = client.put('/api/users/me/preferences', headers=auth_headers(tech_user), json={
            'checkInAlerts': 'yes',
        })

        assert response.status_code == 400
