# -*- coding: utf-8 -*-
"""
Review Request Tests.

Sending requests, automation settings, and the public token-based
review page.

Run with: pytest tests/test_reviews.py -v
"""

import pytest

from rankitpro.service.company_service import CompanyServiceSingleton
from rankitpro.utils.constants import DEFAULT_REVIEW_SETTINGS
from rankitpro.utils.dates import utcnow


# =============================================================================
# SENDING
# =============================================================================

class TestSendReviewRequest:

    def test_send_by_email(self, client, db, company_admin, technician, mock_email, auth_headers):
        response = client.post('/api/review-requests/send', headers=auth_headers(company_admin), json={
            'customerName': 'Jane Doe', 'technicianId': technician.id, 'email': 'jane@example.com',
            'jobType': 'Furnace Tune-up',
        })

        assert response.status_code == 201
        body = response.get_json()
        assert body['success'] is True
        assert body['status'] == 'sent'
        assert body['technician_name'] == 'Tom Tech'
        assert body['token']
        assert body['sent_at']
        args = mock_email.send_review_request.call_args[0]
        assert args[0] == 'jane@example.com'
        assert args[3] == 'Tom Tech'

    def test_admin_notified_of_result(self, client, company_admin, technician, mock_email, auth_headers):
        client.post('/api/review-requests/send', headers=auth_headers(company_admin), json={
            'customerName': 'Jane Doe', 'technicianId': technician.id, 'email': 'jane@example.com',
        })

        mock_email.send_review_request_admin_notification.assert_called_once_with(
            company_admin.email, 'Jane Doe', 'Tom Tech', 'email', True
        )

    def test_failed_delivery_is_recorded(self, client, company_admin, technician, mock_email, auth_headers):
        mock_email.send_review_request.return_value = False

        response = client.post('/api/review-requests/send', headers=auth_headers(company_admin), json={
            'customerName': 'Jane Doe', 'technicianId': technician.id, 'email': 'jane@example.com',
        })

        assert response.status_code == 201
        assert response.get_json()['status'] == 'failed'
        assert response.get_json()['success'] is False

    def test_sms_requires_phone(self, client, company_admin, technician, auth_headers):
        response = client.post('/api/review-requests/send', headers=auth_headers(company_admin), json={
            'customerName': 'Jane Doe', 'technicianId': technician.id, 'method': 'sms', 'email': 'jane@example.com',
        })

        assert response.status_code == 400

    def test_contact_required(self, client, company_admin, technician, auth_headers):
        response = client.post('/api/review-requests/send', headers=auth_headers(company_admin), json={
            'customerName': 'Jane Doe', 'technicianId': technician.id,
        })

        assert response.status_code == 400

    def test_invalid_method(self, client, company_admin, technician, auth_headers):
        response = client.post('/api/review-requests/send', headers=auth_headers(company_admin), json={
            'customerName': 'Jane Doe', 'technicianId': technician.id, 'method': 'pigeon', 'email': 'j@x.com',
        })

        assert response.status_code == 400

    def test_technician_name_left_out_when_disabled(self, client, company_admin, company, technician, mock_email, auth_headers):
        CompanyServiceSingleton.get_instance().update(company.id, {
            'review_settings': {**DEFAULT_REVIEW_SETTINGS, 'includeTechnicianName': False},
        })

        client.post('/api/review-requests/send', headers=auth_headers(company_admin), json={
            'customerName': 'Jane Doe', 'technicianId': technician.id, 'email': 'jane@example.com',
        })

        assert mock_email.send_review_request.call_args[0][3] is None

    def test_resend_completed_request(self, client, db, company_admin, company, technician, auth_headers):
        row = db.seed('review_requests', company_id=company.id, technician_id=technician.id, customer_name='Jane',
                      email='jane@example.com', method='email', token='tok', status='sent',
                      completed_at=utcnow().isoformat())

        response = client.post(f"/api/review-requests/resend/{row['id']}", headers=auth_headers(company_admin))

        assert response.status_code == 400

    def test_list_includes_technician_name(self, client, db, company_admin, company, technician, auth_headers):
        db.seed('review_requests', company_id=company.id, technician_id=technician.id, customer_name='Jane',
                method='email', token='tok', status='sent', created_at=utcnow().isoformat())

        body = client.get('/api/review-requests', headers=auth_headers(company_admin)).get_json()

        assert body[0]['technician_name'] == 'Tom Tech'

    def test_stats(self, client, db, company_admin, company, technician, auth_headers):
        now = utcnow().isoformat()
        db.seed('review_requests', company_id=company.id, status='sent', sent_at=now, created_at=now, token='a')
        db.seed('review_requests', company_id=company.id, status='failed', created_at=now, token='b')
        db.seed('review_responses', company_id=company.id, rating=5, created_at=now)

        body = client.get('/api/review-requests/stats', headers=auth_headers(company_admin)).get_json()

        assert body['totalSent'] == 2
        assert body['successfulSent'] == 1
        assert body['failedSent'] == 1
        assert body['responseRate'] == 50
        assert body['positiveReviews'] == 1
        assert body['sentThisWeek'] == 1


# =============================================================================
# SETTINGS
# =============================================================================

class TestReviewSettings:

    def test_defaults(self, client, company_admin, auth_headers):
        body = client.get('/api/review-requests/settings', headers=auth_headers(company_admin)).get_json()

        assert body == DEFAULT_REVIEW_SETTINGS

    def test_update_settings(self, client, company_admin, company, auth_headers):
        response = client.put('/api/review-requests/settings', headers=auth_headers(company_admin), json={
            'delayHours': 48, 'followUpEnabled': False, 'contactPreference': 'both',
        })

        assert response.status_code == 200
        stored = CompanyServiceSingleton.get_instance().get_by_id(company.id).review_settings
        assert stored['delayHours'] == 48
        assert stored['followUpEnabled'] is False
        assert stored['contactPreference'] == 'both'
        assert stored['maxFollowUps'] == DEFAULT_REVIEW_SETTINGS['maxFollowUps']

    @pytest.mark.parametrize('payload', [
        {'delayHours': 500},
        {'followUpDelayDays': 0},
        {'maxFollowUps': 4},
        {'followUpEnabled': 'yes'},
        {'contactPreference': 'fax'},
    ])
    def test_invalid_settings(self, client, company_admin, payload, auth_headers):
        response = client.put('/api/review-requests/settings', headers=auth_headers(company_admin), json=payload)

        assert response.status_code == 400

    def test_technician_cannot_change_settings(self, client, tech_user, auth_headers):
        response = client.put('/api/review-requests/settings', headers=auth_headers(tech_user), json={'delayHours': 1})

        assert response.status_code == 403


# =============================================================================
# PUBLIC REVIEW PAGE
# =============================================================================

@pytest.fixture
def review_request(db, company, technician):
    return db.seed('review_requests', company_id=company.id, technician_id=technician.id, customer_name='Jane Doe',
                   email='jane@example.com', method='email', job_type='Drain Cleaning', token='public-token',
                   status='sent', follow_up_count=0, created_at=utcnow().isoformat())


class TestPublicReviews:

    def test_get_request_by_token(self, client, review_request):
        response = client.get('/api/reviews/request/public-token')

        assert response.status_code == 200
        assert response.get_json() == {
            'companyName': 'Acme Plumbing',
            'technicianName': 'Tom Tech',
            'jobType': 'Drain Cleaning',
            'customerName': 'Jane Doe',
        }

    def test_unknown_token(self, client):
        assert client.get('/api/reviews/request/nope').status_code == 404

    def test_submit_review(self, client, db, review_request):
        response = client.post('/api/reviews/submit/public-token', json={
            'rating': 5, 'feedback': 'Great work!', 'publicDisplay': True,
        })

        assert response.status_code == 201
        body = response.get_json()
        assert body['rating'] == 5
        assert body['technician_id'] == review_request['technician_id']
        assert db.rows('review_requests')[0]['completed_at']

    def test_submit_twice(self, client, review_request):
        client.post('/api/reviews/submit/public-token', json={'rating': 4})

        response = client.post('/api/reviews/submit/public-token', json={'rating': 5})

        assert response.status_code == 400

    def test_completed_request_page(self, client, review_request):
        client.post('/api/reviews/submit/public-token', json={'rating': 4})

        assert client.get('/api/reviews/request/public-token').status_code == 400

    @pytest.mark.parametrize('rating', [0, 6, 'five', None, 4.7, True])
    def test_rating_out_of_range(self, client, review_request, rating):
        response = client.post('/api/reviews/submit/public-token', json={'rating': rating})

        assert response.status_code == 400

    def test_public_company_reviews(self, client, review_request):
        client.post('/api/reviews/submit/public-token', json={'rating': 4, 'feedback': 'Good', 'publicDisplay': True})

        body = client.get(f"/api/reviews/public/{review_request['company_id']}").get_json()

        assert body['companyName'] == 'Acme Plumbing'
        assert body['totalReviews'] == 1
        assert body['averageRating'] == 4
        assert body['reviews'][0]['customerName'] == 'Jane Doe'

    def test_private_reviews_hidden(self, client, review_request):
        client.post('/api/reviews/submit/public-token', json={'rating': 2})

        body = client.get(f"/api/reviews/public/{review_request['company_id']}").get_json()

        assert body['totalReviews'] == 0

    @pytest.mark.parametrize('limit, expected', [('2', 2), ('-1', 1), ('0', 1), ('500', 3)])
    def test_public_reviews_limit_is_bounded(self, client, db, company, limit, expected):
        for rating in (5, 4, 5):
            db.seed('review_responses', company_id=company.id, rating=rating, public_display=True,
                    customer_name='Jane Doe', created_at=utcnow().isoformat())

        body = client.get(f"/api/reviews/public/{company.id}?limit={limit}").get_json()

        assert body['totalReviews'] == 3
        assert len(body['reviews']) == expected
