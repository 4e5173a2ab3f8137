"""
Tests for the HTTP API blueprints
"""
import pytest
from io import BytesIO

from config import TestingConfig


def create_quote(client, **fields):
    body = {'customerName': 'Jane Smith', 'services': ['House Wash', 'Deck'], 'amount': 450}
    body.update(fields)
    response = client.post('/api/quotes', json=body)
    assert response.status_code == 201
    return response.get_json()['record']


def create_job(client, **fields):
    body = {'customerName': 'Jane Smith', 'scheduledDate': '2024-06-20T12:00:00',
            'service': 'House Wash', 'assignedCrew': 'Kevin Rodriguez'}
    body.update(fields)
    response = client.post('/api/jobs', json=body)
    assert response.status_code == 201
    return response.get_json()['record']


@pytest.mark.integration
class TestAuth:
    """Tests for the session flag"""

    def test_office_login(self, client):
        response = client.post('/api/auth/login', json={'code': TestingConfig.ADMIN_ACCESS_CODE})
        data = response.get_json()
        assert data['role'] == 'admin'
        assert data['roleName'] == 'Office'

        session = client.get('/api/auth/session').get_json()
        assert session['authenticated'] is True
        assert session['role'] == 'admin'

    def test_crew_login_needs_name(self, client):
        response = client.post('/api/auth/login', json={'code': TestingConfig.CREW_ACCESS_CODE})
        assert response.status_code == 401
        assert response.get_json()['error'] == 'Crew member name required'

    def test_bad_code(self, client):
        response = client.post('/api/auth/login', json={'code': 'guess'})
        assert response.status_code == 401

    def test_logout(self, admin_client):
        admin_client.post('/api/auth/logout')
        assert admin_client.get('/api/auth/session').get_json()['authenticated'] is False
        assert admin_client.get('/api/quotes').status_code == 401

    def test_anonymous_requests_rejected(self, client):
        assert client.get('/api/jobs').status_code == 401
        assert client.get('/api/customers').status_code == 401

    def test_crew_cannot_reach_office_routes(self, crew_client):
        assert crew_client.get('/api/quotes').status_code == 403
        assert crew_client.get('/api/invoices').status_code == 403
        assert crew_client.post('/api/admin/resync').status_code == 403

    def test_missing_json_body(self, admin_client):
        response = admin_client.post('/api/quotes', data='not json', content_type='text/plain')
        assert response.status_code == 400
        assert response.get_json()['success'] is False


@pytest.mark.integration
class TestCustomers:

    def test_create_and_summary(self, admin_client, sample_customer):
        response = admin_client.post('/api/customers', json=sample_customer)
        assert response.status_code == 201
        customer = response.get_json()['customer']

        create_quote(admin_client)
        summary = admin_client.get(f"/api/customers/{customer['id']}/summary").get_json()
        assert summary['summary']['quoteCount'] == 1

    def test_duplicate_email_rejected(self, admin_client, sample_customer):
        admin_client.post('/api/customers', json=sample_customer)
        response = admin_client.post('/api/customers', json={**sample_customer, 'name': 'J. Smith'})
        assert response.status_code == 400

    def test_invalid_email(self, admin_client):
        response = admin_client.post('/api/customers', json={'name': 'Jane', 'email': 'nope'})
        assert response.status_code == 400
        assert 'email' in response.get_json()['error']

    def test_archive_and_restore(self, admin_client, sample_customer):
        customer = admin_client.post('/api/customers', json=sample_customer).get_json()['customer']

        assert admin_client.post(f"/api/customers/{customer['id']}/archive").status_code == 200
        assert admin_client.get('/api/customers').get_json()['count'] == 0
        assert admin_client.get('/api/customers/archived').get_json()['count'] == 1

        assert admin_client.post(f"/api/customers/archived/{customer['id']}/restore").status_code == 200
        restored = admin_client.get(f"/api/customers/{customer['id']}").get_json()['customer']
        assert restored == customer

    def test_unknown_customer(self, admin_client):
        assert admin_client.get('/api/customers/C-missing').status_code == 404
        assert admin_client.put('/api/customers/C-missing', json={'phone': '5551234567'}).status_code == 404
        assert admin_client.delete('/api/customers/archived/C-missing').status_code == 404


@pytest.mark.integration
class TestQuoteWorkflow:
    """Quote status changes cascading through the HTTP surface"""

    def test_approve_creates_job(self, admin_client):
        quote = create_quote(admin_client)

        response = admin_client.post(f"/api/quotes/{quote['id']}/approve")
        assert response.status_code == 200
        assert response.get_json()['record']['status'] == 'approved'

        jobs = admin_client.get('/api/jobs').get_json()['jobs']
        assert len(jobs) == 1
        assert jobs[0]['quoteId'] == quote['id']
        assert jobs[0]['service'] == 'House Wash, Deck'
        assert admin_client.get('/api/invoices').get_json()['invoices'][0]['status'] == 'pending'

    def test_invoiced_creates_invoice(self, admin_client):
        quote = create_quote(admin_client)

        admin_client.post(f"/api/quotes/{quote['id']}/status", json={'status': 'invoiced'})

        invoices = admin_client.get('/api/invoices').get_json()['invoices']
        assert len(invoices) == 1
        assert invoices[0]['amount'] == 450
        assert invoices[0]['status'] == 'paid'

    def test_invalid_status(self, admin_client):
        quote = create_quote(admin_client)
        response = admin_client.post(f"/api/quotes/{quote['id']}/status", json={'status': 'paid'})
        assert response.status_code == 400

    def test_unknown_quote(self, admin_client):
        assert admin_client.post('/api/quotes/Q-missing/approve').status_code == 404

    def test_delete_quote_is_not_resurrected(self, admin_client):
        quote = create_quote(admin_client)
        admin_client.post(f"/api/quotes/{quote['id']}/approve")

        assert admin_client.delete(f"/api/quotes/{quote['id']}").status_code == 200
        admin_client.post('/api/admin/resync')

        assert admin_client.get('/api/quotes').get_json()['count'] == 0
        assert admin_client.get('/api/jobs').get_json()['count'] == 0


@pytest.mark.integration
class TestJobs:

    def test_crew_sees_only_own_jobs(self, admin_client, crew_client):
        create_job(admin_client)
        create_job(admin_client, assignedCrew='Ryan Mitchell')

        jobs = crew_client.get('/api/jobs').get_json()['jobs']
        assert [j['assignedCrew'] for j in jobs] == ['Kevin Rodriguez']

    def test_crew_can_update_own_job_status(self, admin_client, crew_client):
        job = create_job(admin_client)
        other = create_job(admin_client, assignedCrew='Ryan Mitchell')

        response = crew_client.post(f"/api/jobs/{job['id']}/status", json={'status': 'in-progress'})
        assert response.status_code == 200
        assert response.get_json()['record']['status'] == 'in-progress'

        response = crew_client.post(f"/api/jobs/{other['id']}/status", json={'status': 'completed'})
        assert response.status_code == 403

    def test_crew_cannot_edit_job(self, admin_client, crew_client):
        job = create_job(admin_client)
        assert crew_client.put(f"/api/jobs/{job['id']}", json={'notes': 'x'}).status_code == 403

    def test_photo_upload_and_delete(self, admin_client, crew_client, flask_app):
        job = create_job(admin_client)

        response = crew_client.post(
            f"/api/jobs/{job['id']}/photos",
            data={'type': 'before', 'photo': (BytesIO(b'fake jpeg'), 'driveway.jpg')},
            content_type='multipart/form-data',
        )
        assert response.status_code == 201
        photo = response.get_json()['record']['photos'][0]
        assert photo['type'] == 'before'
        assert photo['url'].startswith(f"/api/jobs/photos/{job['id']}/before_")

        download = crew_client.get(photo['url'])
        assert download.status_code == 200
        assert download.data == b'fake jpeg'

        response = admin_client.delete(f"/api/jobs/{job['id']}/photos/{photo['id']}")
        assert response.status_code == 200
        assert response.get_json()['record']['photos'] == []
        assert admin_client.get(photo['url']).status_code == 404

    def test_photo_rejects_bad_type(self, admin_client):
        job = create_job(admin_client)
        response = admin_client.post(
            f"/api/jobs/{job['id']}/photos",
            data={'type': 'during', 'photo': (BytesIO(b'x'), 'a.jpg')},
            content_type='multipart/form-data',
        )
        assert response.status_code == 400

    def test_photo_rejects_non_image(self, admin_client):
        job = create_job(admin_client)
        response = admin_client.post(
            f"/api/jobs/{job['id']}/photos",
            data={'type': 'after', 'photo': (BytesIO(b'MZ'), 'malicious.exe')},
            content_type='multipart/form-data',
        )
        assert response.status_code == 400


@pytest.mark.integration
class TestCrewFeed:

    def test_assignment_reaches_crew_feed(self, admin_client, crew_client):
        create_job(admin_client)

        feed = crew_client.get('/api/crew/Kevin Rodriguez/feed').get_json()
        assert feed['unreadCount'] == 1
        assert feed['current']['type'] == 'new_assignment'

        notification_id = feed['current']['id']
        assert crew_client.post(f"/api/crew/notifications/{notification_id}/read").status_code == 200
        assert crew_client.get('/api/crew/Kevin Rodriguez/feed').get_json()['unreadCount'] == 0

    def test_crew_cannot_read_other_feeds(self, admin_client, crew_client):
        create_job(admin_client, assignedCrew='Ryan Mitchell')
        notification = admin_client.get('/api/crew/Ryan Mitchell/notifications').get_json()['notifications'][0]

        assert crew_client.get('/api/crew/Ryan Mitchell/feed').status_code == 403
        assert crew_client.post(f"/api/crew/notifications/{notification['id']}/read").status_code == 403

    def test_unknown_notification(self, crew_client):
        assert crew_client.post('/api/crew/notifications/notif-missing/read').status_code == 404

    def test_schedule(self, admin_client, crew_client):
        create_job(admin_client)

        response = crew_client.get('/api/crew/Kevin Rodriguez/schedule?weekOf=2024-06-18')
        schedule = response.get_json()['schedule']
        assert schedule['weekStart'] == '2024-06-16'
        assert schedule['totalItems'] == 1

    def test_schedule_bad_week(self, crew_client):
        response = crew_client.get('/api/crew/Kevin Rodriguez/schedule?weekOf=soon')
        assert response.status_code == 400


@pytest.mark.integration
class TestInvoicesAndAccounting:

    @pytest.fixture
    def invoice(self, admin_client):
        quote = create_quote(admin_client)
        admin_client.post(f"/api/quotes/{quote['id']}/approve")
        return admin_client.get('/api/invoices').get_json()['invoices'][0]

    def test_demo_sync(self, admin_client, invoice):
        response = admin_client.post(f"/api/invoices/{invoice['id']}/sync")
        data = response.get_json()

        assert response.status_code == 200
        assert data['mockMode'] is True
        assert data['quickbooksInvoiceId'].startswith(f"QB-{invoice['id']}-")

        stored = admin_client.get('/api/invoices').get_json()['invoices'][0]
        assert stored['quickbooksSynced'] is True

        status = admin_client.get(f"/api/invoices/{invoice['id']}/sync-status").get_json()
        assert status['synced'] is True

    def test_mark_paid(self, admin_client, invoice):
        response = admin_client.post(f"/api/invoices/{invoice['id']}/status", json={'status': 'paid'})
        assert response.status_code == 200
        assert response.get_json()['record']['paidDate']

    def test_sync_unknown_invoice(self, admin_client):
        assert admin_client.post('/api/invoices/INV-missing/sync').status_code == 404

    def test_bridge_endpoint_open_without_key(self, client, invoice):
        response = client.post('/api/quickbooks/sync-invoice', json={'invoice': invoice})
        assert response.status_code == 200
        assert response.get_json()['mockMode'] is True

    def test_bridge_endpoint_requires_configured_key(self, client, flask_app, invoice):
        flask_app.config['BRIDGE_API_KEY'] = 'bridge-secret'

        assert client.post('/api/quickbooks/sync-invoice', json={'invoice': invoice}).status_code == 401
        response = client.post('/api/quickbooks/sync-invoice', json={'invoice': invoice},
                               headers={'X-API-Key': 'wrong'})
        assert response.status_code == 403
        response = client.post('/api/quickbooks/sync-invoice', json={'invoice': invoice},
                               headers={'X-API-Key': 'bridge-secret'})
        assert response.status_code == 200

    def test_bridge_requires_invoice(self, client):
        assert client.post('/api/quickbooks/sync-invoice', json={}).status_code == 400


@pytest.mark.integration
class TestAppointmentsAndReminders:

    def test_appointment_crud(self, admin_client):
        response = admin_client.post('/api/appointments', json={
            'customerName': 'Jane Smith', 'date': '2024-06-20', 'time': '09:00',
            'services': ['Roof'], 'assignedEmployee': 'Kevin Rodriguez',
        })
        assert response.status_code == 201
        appointment = response.get_json()['record']

        response = admin_client.post(f"/api/appointments/{appointment['id']}/status", json={'status': 'completed'})
        assert response.get_json()['record']['status'] == 'completed'

        assert admin_client.delete(f"/api/appointments/{appointment['id']}").status_code == 200
        assert admin_client.get('/api/appointments').get_json()['count'] == 0

    def test_yearly_reminders_empty(self, admin_client):
        data = admin_client.get('/api/reminders/yearly').get_json()
        assert data['reminders'] == []

    def test_dismiss_reminder(self, admin_client):
        assert admin_client.post('/api/reminders/yearly/J-1/dismiss').status_code == 200


@pytest.mark.integration
class TestAdmin:

    def test_reset_requires_confirmation(self, admin_client):
        assert admin_client.post('/api/admin/reset', json={}).status_code == 400

    def test_reset_clears_business_data(self, admin_client):
        create_quote(admin_client)

        response = admin_client.post('/api/admin/reset', json={'confirm': True})
        assert response.status_code == 200
        assert admin_client.get('/api/quotes').get_json()['count'] == 0

    def test_store_info(self, admin_client):
        create_quote(admin_client)
        data = admin_client.get('/api/admin/store').get_json()
        assert data['storageMode'] == 'json'
        assert data['versions']['quotes'] == 1

    def test_poll(self, admin_client):
        data = admin_client.post('/api/admin/poll').get_json()
        assert data['changed'] == []
