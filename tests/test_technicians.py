# -*- coding: utf-8 -*-
"""
Technician and Job Type Tests.

Run with: pytest tests/test_technicians.py -v
"""

from rankitpro.service.technician_service import TechnicianServiceSingleton


def technician_payload(**overrides):
    payload = {
        'name': 'Sara Sparks',
        'email': 'sara@acme.com',
        'phone': '555-0111',
        'location': 'Shelbyville',
    }
    payload.update(overrides)
    return payload


# =============================================================================
# TECHNICIANS
# =============================================================================

class TestCreateTechnician:

    def test_create_technician(self, client, company_admin, company, auth_headers):
        response = client.post('/api/technicians', headers=auth_headers(company_admin), json=technician_payload())

        assert response.status_code == 201
        body = response.get_json()
        assert body['company_id'] == company.id
        assert body['email'] == 'sara@acme.com'
        assert body['active'] is True

    def test_missing_fields_are_reported(self, client, company_admin, auth_headers):
        response = client.post('/api/technicians', headers=auth_headers(company_admin), json={'name': 'Only Name'})

        assert response.status_code == 400
        fields = [d['field'] for d in response.get_json()['details']]
        assert fields == ['email', 'phone', 'location']

    def test_invalid_email(self, client, company_admin, auth_headers):
        response = client.post(
            '/api/technicians', headers=auth_headers(company_admin), json=technician_payload(email='nope'),
        )

        assert response.status_code == 400
        assert response.get_json()['details'][0]['field'] == 'email'

    def test_duplicate_email_in_company(self, client, company_admin, technician, auth_headers):
        response = client.post(
            '/api/technicians', headers=auth_headers(company_admin), json=technician_payload(email='TOM@acme.com'),
        )

        assert response.status_code == 400

    def test_plan_technician_limit(self, client, company_admin, company, make_technician, auth_headers):
        # starter allows two active technicians
        make_technician(company.id, name="One Tech", email="one@acme.com")
        make_technician(company.id, name="Two Tech", email="two@acme.com")

        response = client.post('/api/technicians', headers=auth_headers(company_admin), json=technician_payload())

        assert response.status_code == 403
        body = response.get_json()
        assert body['error'] == 'limit_reached'
        assert body['resource'] == 'technicians'
        assert body['limit'] == 2

    def test_super_admin_targets_company(self, client, super_admin, company, auth_headers):
        response = client.post(
            '/api/technicians', headers=auth_headers(super_admin), json=technician_payload(companyId=company.id),
        )

        assert response.status_code == 201
        assert response.get_json()['company_id'] == company.id

    def test_cannot_link_user_from_other_company(self, client, company_admin, make_company, make_user, auth_headers):
        rival = make_company(name="Rival Roofing")
        rival_user = make_user(role='technician', company_id=rival.id, email='rita@rival.com')

        response = client.post(
            '/api/technicians', headers=auth_headers(company_admin), json=technician_payload(userId=rival_user.id),
        )

        assert response.status_code == 403
        assert client.get('/api/technicians/me', headers=auth_headers(rival_user)).status_code == 404

    def test_linked_user_must_exist_and_be_technician(self, client, company_admin, auth_headers):
        missing = client.post(
            '/api/technicians', headers=auth_headers(company_admin), json=technician_payload(userId=999),
        )
        admin_link = client.post(
            '/api/technicians', headers=auth_headers(company_admin), json=technician_payload(userId=company_admin.id),
        )

        assert missing.status_code == 404
        assert admin_link.status_code == 400

    def test_link_own_technician_user(self, client, company_admin, company, make_user, auth_headers):
        sara = make_user(role='technician', company_id=company.id, email='sara@acme.com')

        response = client.post(
            '/api/technicians', headers=auth_headers(company_admin), json=technician_payload(userId=sara.id),
        )

        assert response.status_code == 201
        assert client.get('/api/technicians/me', headers=auth_headers(sara)).get_json()['name'] == 'Sara Sparks'

    def test_technician_role_cannot_create(self, client, tech_user, auth_headers):
        response = client.post('/api/technicians', headers=auth_headers(tech_user), json=technician_payload())

        assert response.status_code == 403


class TestTechnicianAccess:

    def test_list_only_active(self, client, company_admin, company, technician, make_technician, auth_headers):
        retired = make_technician(company.id, name="Old Timer", email="old@acme.com")
        TechnicianServiceSingleton.get_instance().deactivate(retired.id)

        body = client.get('/api/technicians', headers=auth_headers(company_admin)).get_json()

        assert [t['id'] for t in body] == [technician.id]

    def test_include_inactive(self, client, company_admin, company, technician, make_technician, auth_headers):
        retired = make_technician(company.id, name="Old Timer", email="old@acme.com")
        TechnicianServiceSingleton.get_instance().deactivate(retired.id)

        body = client.get(
            f'/api/technicians/company/{company.id}?include_inactive=true', headers=auth_headers(company_admin),
        ).get_json()

        assert len(body) == 2

    def test_me_returns_linked_record(self, client, tech_user, technician, auth_headers):
        response = client.get('/api/technicians/me', headers=auth_headers(tech_user))

        assert response.status_code == 200
        assert response.get_json()['id'] == technician.id

    def test_me_without_record(self, client, company_admin, auth_headers):
        assert client.get('/api/technicians/me', headers=auth_headers(company_admin)).status_code == 404

    def test_other_company_technician_forbidden(self, client, company_admin, make_company, make_technician, auth_headers):
        other = make_company(name="Rival Roofing")
        rival_tech = make_technician(other.id, name="Rival Tech", email="rival@rival.com")

        response = client.get(f'/api/technicians/{rival_tech.id}', headers=auth_headers(company_admin))

        assert response.status_code == 403

    def test_all_requires_super_admin(self, client, company_admin, super_admin, technician, auth_headers):
        assert client.get('/api/technicians/all', headers=auth_headers(company_admin)).status_code == 403
        assert len(client.get('/api/technicians/all', headers=auth_headers(super_admin)).get_json()) == 1


class TestUpdateTechnician:

    def test_update_fields(self, client, company_admin, technician, auth_headers):
        response = client.put(
            f'/api/technicians/{technician.id}', headers=auth_headers(company_admin),
            json={'specialty': 'HVAC', 'company_id': 999},
        )

        body = response.get_json()
        assert body['specialty'] == 'HVAC'
        assert body['company_id'] == technician.company_id

    def test_delete_deactivates(self, client, company_admin, technician, auth_headers):
        response = client.delete(f'/api/technicians/{technician.id}', headers=auth_headers(company_admin))

        assert response.status_code == 200
        assert TechnicianServiceSingleton.get_instance().get_by_id(technician.id).active is False

    def test_reactivation_respects_plan_limit(self, client, company_admin, company, technician, make_technician, auth_headers):
        retired = make_technician(company.id, name="Old Timer", email="old@acme.com")
        TechnicianServiceSingleton.get_instance().deactivate(retired.id)
        make_technician(company.id, name="New Hire", email="new@acme.com")

        response = client.put(
            f'/api/technicians/{retired.id}', headers=auth_headers(company_admin), json={'active': True},
        )

        assert response.status_code == 403
        assert response.get_json()['error'] == 'limit_reached'
        assert TechnicianServiceSingleton.get_instance().count_active(company.id) == 2

    def test_reactivation_within_limit(self, client, company_admin, company, technician, make_technician, auth_headers):
        retired = make_technician(company.id, name="Old Timer", email="old@acme.com")
        TechnicianServiceSingleton.get_instance().deactivate(retired.id)

        response = client.put(
            f'/api/technicians/{retired.id}', headers=auth_headers(company_admin), json={'active': True},
        )

        assert response.status_code == 200
        assert response.get_json()['active'] is True

    def test_link_user_of_same_company(self, client, company_admin, company, make_user, make_technician, auth_headers):
        helper = make_technician(company.id, name="Hal Helper", email="hal@acme.com")
        hal = make_user(role='technician', company_id=company.id, email='hal@acme.com')

        response = client.put(
            f'/api/technicians/{helper.id}', headers=auth_headers(company_admin), json={'userId': hal.id},
        )

        assert response.status_code == 200
        assert response.get_json()['user_id'] == hal.id

    def test_cannot_link_user_already_linked(self, client, company_admin, company, tech_user, technician,
                                             make_technician, auth_headers):
        helper = make_technician(company.id, name="Hal Helper", email="hal@acme.com")

        response = client.put(
            f'/api/technicians/{helper.id}', headers=auth_headers(company_admin), json={'userId': tech_user.id},
        )

        assert response.status_code == 400

    def test_stats(self, client, db, company_admin, company, technician, auth_headers):
        db.seed('check_ins', company_id=company.id, technician_id=technician.id, job_type='Repair', is_deleted=False)
        db.seed('review_responses', company_id=company.id, technician_id=technician.id, rating=5)

        body = client.get(
            f'/api/technicians/company/{company.id}/stats', headers=auth_headers(company_admin),
        ).get_json()

        assert body[0]['checkinsCount'] == 1
        assert body[0]['reviewsCount'] == 1
        assert body[0]['rating'] == 5


# =============================================================================
# JOB TYPES
# =============================================================================

class TestJobTypes:

    def test_create_and_list(self, client, company_admin, tech_user, auth_headers):
        created = client.post('/api/job-types', headers=auth_headers(company_admin), json={'name': 'Drain Cleaning'})

        assert created.status_code == 201
        listed = client.get('/api/job-types', headers=auth_headers(tech_user)).get_json()
        assert [j['name'] for j in listed] == ['Drain Cleaning']

    def test_duplicate_name_case_insensitive(self, client, company_admin, auth_headers):
        client.post('/api/job-types', headers=auth_headers(company_admin), json={'name': 'Drain Cleaning'})

        response = client.post('/api/job-types', headers=auth_headers(company_admin), json={'name': 'drain cleaning'})

        assert response.status_code == 400

    def test_name_required(self, client, company_admin, auth_headers):
        assert client.post('/api/job-types', headers=auth_headers(company_admin), json={}).status_code == 400

    def test_delete_hides_from_list(self, client, company_admin, auth_headers):
        job_type = client.post(
            '/api/job-types', headers=auth_headers(company_admin), json={'name': 'Water Heater'},
        ).get_json()

        client.delete(f"/api/job-types/{job_type['id']}", headers=auth_headers(company_admin))

        assert client.get('/api/job-types', headers=auth_headers(company_admin)).get_json() == []

    def test_technician_cannot_create(self, client, tech_user, auth_headers):
        assert client.post('/api/job-types', headers=auth_headers(tech_user), json={'name': 'X'}).status_code == 403
