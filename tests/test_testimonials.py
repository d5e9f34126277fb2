# -*- coding: utf-8 -*-
"""
Testimonial Tests.

Covers recording testimonials, the customer approval link, company
moderation and the public embed feed.

Run with: pytest tests/test_testimonials.py -v
"""

from datetime import timedelta

import pytest

from rankitpro.service import testimonial_service
from rankitpro.utils.dates import utcnow


def _payload(technician, **fields):
    body = {
        'technicianId': technician.id,
        'customerName': 'Jane Doe',
        'customerEmail': 'jane@example.com',
        'title': 'Fast water heater fix',
        'type': 'video',
        'storageUrl': 'https://cdn.example.com/t/1.mp4',
        'jobType': 'Water Heater Install',
        'location': 'Austin, TX',
        'rating': 5,
    }
    body.update(fields)
    return body


def _service():
    return testimonial_service.TestimonialServiceSingleton.get_instance()


@pytest.fixture
def seed_testimonial(db, company, technician):
    def seed(**fields):
        row = {
            'company_id': company.id, 'technician_id': technician.id, 'customer_name': 'Jane Doe',
            'type': 'video', 'title': 'Great service', 'storage_url': 'https://cdn.example.com/t.mp4',
            'job_type': 'AC Repair', 'location': 'Austin, TX', 'status': 'published', 'is_public': True,
            'tags': ['AC Repair'], 'rating': 5, 'created_at': utcnow().isoformat(),
        }
        row.update(fields)
        return db.seed('testimonials', **row)
    return seed


@pytest.fixture
def approval(db, seed_testimonial):
    testimonial = seed_testimonial(status='pending', is_public=False)
    return db.seed(
        'testimonial_approvals', testimonial_id=testimonial['id'], customer_email='jane@example.com',
        approval_token='approve-me', status='pending', expires_at=(utcnow() + timedelta(days=7)).isoformat(),
    )


# =============================================================================
# RECORDING
# =============================================================================

class TestCreateTestimonial:

    def test_create_sends_approval_email(self, client, db, company, company_admin, technician, auth_headers, mock_email):
        response = client.post('/api/testimonials', headers=auth_headers(company_admin), json=_payload(technician))

        assert response.status_code == 201
        body = response.get_json()
        assert body['status'] == 'pending'
        assert body['is_public'] is False
        assert body['tags'] == ['Water Heater Install']
        assert body['approvalRequested'] is True

        approval = db.rows('testimonial_approvals')[0]
        assert approval['testimonial_id'] == body['id']
        assert len(approval['approval_token']) == 64
        args = mock_email.send_testimonial_approval_email.call_args[0]
        assert args == ('jane@example.com', 'Jane Doe', 'Acme Plumbing', 'Fast water heater fix',
                        approval['approval_token'])

    def test_create_without_email_skips_approval(self, client, db, company_admin, technician, auth_headers, mock_email):
        response = client.post('/api/testimonials', headers=auth_headers(company_admin),
                               json=_payload(technician, customerEmail=None))

        assert response.status_code == 201
        assert response.get_json()['approvalRequested'] is False
        assert db.rows('testimonial_approvals') == []
        mock_email.send_testimonial_approval_email.assert_not_called()

    def test_email_failure_still_records(self, client, db, company_admin, technician, auth_headers, mock_email):
        mock_email.send_testimonial_approval_email.side_effect = RuntimeError("SMTP down")

        response = client.post('/api/testimonials', headers=auth_headers(company_admin), json=_payload(technician))

        assert response.status_code == 201
        assert len(db.rows('testimonials')) == 1

    @pytest.mark.parametrize("fields", [
        {'type': 'photo'},
        {'title': ''},
        {'storageUrl': None},
        {'rating': 6},
        {'rating': True},
        {'customerEmail': 'not-an-email'},
    ])
    def test_create_rejects_invalid_input(self, client, company_admin, technician, auth_headers, fields):
        response = client.post('/api/testimonials', headers=auth_headers(company_admin),
                               json=_payload(technician, **fields))

        assert response.status_code == 400

    def test_create_unknown_technician(self, client, company_admin, technician, auth_headers):
        response = client.post('/api/testimonials', headers=auth_headers(company_admin),
                               json=_payload(technician, technicianId=9999))

        assert response.status_code == 404

    def test_create_for_other_company_technician(self, client, db, make_company, make_technician,
                                                 company_admin, technician, auth_headers):
        rival = make_company(name="Rival Co")
        theirs = make_technician(rival.id, name="Rita Rival")

        response = client.post('/api/testimonials', headers=auth_headers(company_admin),
                               json=_payload(technician, technicianId=theirs.id))

        assert response.status_code == 403
        assert db.rows('testimonials') == []


# =============================================================================
# MODERATION
# =============================================================================

class TestTestimonialModeration:

    def test_list_filters_by_status(self, client, company_admin, seed_testimonial, auth_headers):
        seed_testimonial(title='Live')
        seed_testimonial(title='Waiting', status='pending', is_public=False)

        response = client.get('/api/testimonials?status=pending', headers=auth_headers(company_admin))

        assert [t['title'] for t in response.get_json()] == ['Waiting']

    def test_list_filters_by_visibility(self, client, company_admin, seed_testimonial, auth_headers):
        seed_testimonial(title='Live')
        seed_testimonial(title='Hidden', status='approved', is_public=False)

        response = client.get('/api/testimonials?isPublic=false', headers=auth_headers(company_admin))

        assert [t['title'] for t in response.get_json()] == ['Hidden']

    def test_get_other_company_forbidden(self, client, make_company, make_user, seed_testimonial, auth_headers):
        testimonial = seed_testimonial()
        rival = make_company(name="Rival Co")
        rival_admin = make_user(company_id=rival.id, email="owner@rival.com")

        response = client.get(f"/api/testimonials/{testimonial['id']}", headers=auth_headers(rival_admin))

        assert response.status_code == 403

    def test_publish_makes_public(self, client, company_admin, seed_testimonial, auth_headers):
        testimonial = seed_testimonial(status='approved', is_public=False)

        response = client.patch(f"/api/testimonials/{testimonial['id']}/status",
                                headers=auth_headers(company_admin), json={'status': 'published'})

        assert response.status_code == 200
        body = response.get_json()
        assert body['is_public'] is True
        assert body['show_on_website'] is True
        assert body['published_at'] is not None

    def test_reject_hides_testimonial(self, client, company_admin, seed_testimonial, auth_headers):
        testimonial = seed_testimonial()

        response = client.patch(f"/api/testimonials/{testimonial['id']}/status",
                                headers=auth_headers(company_admin), json={'status': 'rejected'})

        assert response.get_json()['is_public'] is False

    def test_invalid_status(self, client, company_admin, seed_testimonial, auth_headers):
        testimonial = seed_testimonial()

        response = client.patch(f"/api/testimonials/{testimonial['id']}/status",
                                headers=auth_headers(company_admin), json={'status': 'viral'})

        assert response.status_code == 400

    def test_technician_cannot_publish(self, client, tech_user, seed_testimonial, auth_headers):
        testimonial = seed_testimonial(status='approved', is_public=False)

        response = client.patch(f"/api/testimonials/{testimonial['id']}/status",
                                headers=auth_headers(tech_user), json={'status': 'published'})

        assert response.status_code == 403

    def test_shortcode(self, client, company, company_admin, auth_headers):
        response = client.get('/api/testimonials/shortcode?location=Austin&type=video&limit=3',
                              headers=auth_headers(company_admin))

        body = response.get_json()
        assert body['shortcode'] == (
            f'[rank_it_pro_testimonials location="Austin" service="" type="video" limit="3" company_id="{company.id}"]'
        )
        assert f"/api/embed/testimonials?company_id={company.id}&limit=3" in body['embedCode']


# =============================================================================
# CUSTOMER APPROVAL
# =============================================================================

class TestCustomerApproval:

    def test_approval_page(self, client, approval):
        response = client.get('/api/testimonials/approve/approve-me')

        assert response.status_code == 200
        body = response.get_json()
        assert body['testimonial']['companyName'] == 'Acme Plumbing'
        assert body['approval']['status'] == 'pending'

    def test_customer_approves(self, client, db, approval):
        response = client.post('/api/testimonials/approve/approve-me', json={'approved': True})

        assert response.status_code == 200
        assert response.get_json()['status'] == 'approved'
        stored = db.rows('testimonial_approvals')[0]
        assert stored['status'] == 'approved'
        assert stored['approved_at'] is not None
        assert _service().get_by_id(approval['testimonial_id']).is_public is False

    def test_customer_rejects_with_reason(self, client, db, approval):
        client.post('/api/testimonials/approve/approve-me', json={'approved': False, 'reason': 'Changed my mind'})

        stored = db.rows('testimonial_approvals')[0]
        assert stored['status'] == 'rejected'
        assert stored['rejection_reason'] == 'Changed my mind'
        assert _service().get_by_id(approval['testimonial_id']).status == 'rejected'

    def test_decision_recorded_once(self, client, approval):
        client.post('/api/testimonials/approve/approve-me', json={'approved': True})

        response = client.post('/api/testimonials/approve/approve-me', json={'approved': False})

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Testimonial has already been processed'

    def test_expired_link(self, client, db, approval):
        db.rows('testimonial_approvals')[0]['expires_at'] = (utcnow() - timedelta(hours=1)).isoformat()

        response = client.get('/api/testimonials/approve/approve-me')

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Approval link has expired'

    def test_unknown_token(self, client, db):
        assert client.get('/api/testimonials/approve/nope').status_code == 404

    def test_decision_must_be_boolean(self, client, approval):
        response = client.post('/api/testimonials/approve/approve-me', json={'approved': 'yes'})

        assert response.status_code == 400


# =============================================================================
# PUBLIC EMBED
# =============================================================================

class TestTestimonialEmbed:

    def test_only_published_public_testimonials(self, client, company, seed_testimonial):
        seed_testimonial(title='Live')
        seed_testimonial(title='Waiting', status='approved', is_public=False)

        response = client.get(f'/api/embed/testimonials?company_id={company.id}')

        body = response.get_json()
        assert body['count'] == 1
        assert body['testimonials'][0]['title'] == 'Live'
        assert 'Waiting' not in body['html']

    def test_filters_by_location_and_service(self, client, company, seed_testimonial):
        seed_testimonial(title='Austin AC')
        seed_testimonial(title='Dallas AC', location='Dallas, TX')
        seed_testimonial(title='Austin Plumbing', job_type='Drain Cleaning', tags=['Drain Cleaning'])

        response = client.get(f'/api/embed/testimonials?company_id={company.id}&location=austin&service=ac')

        assert [t['title'] for t in response.get_json()['testimonials']] == ['Austin AC']

    def test_html_is_escaped(self, client, company, seed_testimonial):
        seed_testimonial(title='<script>alert(1)</script>')

        html = client.get(f'/api/embed/testimonials?company_id={company.id}').get_json()['html']

        assert '<script>' not in html
        assert '&lt;script&gt;' in html

    @pytest.mark.parametrize("limit,expected", [('2', 2), ('0', 1), ('-5', 1), ('500', 3)])
    def test_limit_is_bounded(self, client, company, seed_testimonial, limit, expected):
        for _ in range(3):
            seed_testimonial()

        response = client.get(f'/api/embed/testimonials?company_id={company.id}&limit={limit}')

        assert response.get_json()['count'] == expected

    def test_company_id_required(self, client, db):
        assert client.get('/api/embed/testimonials').status_code == 400
