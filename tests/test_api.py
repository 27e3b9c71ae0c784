"""
Integration tests for the HTTP API
"""
from io import BytesIO

import pytest

from services.resource_folders import DEFAULT_ROOT_FOLDERS


def create_school(client, **overrides):
    data = {'name': 'Colegio Norte', 'city': 'Madrid', 'email': 'norte@colegio.es'}
    data.update(overrides)
    response = client.post('/api/schools', json=data)
    assert response.status_code == 201
    return response.get_json()['school']


@pytest.mark.integration
class TestSchoolsAPI:
    """Tests for the schools endpoints"""

    def test_create_and_get_school(self, client):
        """Test creating a school and reading it back"""
        school = create_school(client)
        assert school['phase'] == 'Lead'

        response = client.get(f"/api/schools/{school['id']}")
        assert response.status_code == 200
        assert response.get_json()['school']['name'] == 'Colegio Norte'

    def test_create_school_validation_error(self, client):
        """Test that an invalid payload answers 400"""
        response = client.post('/api/schools', json={'name': 'X', 'email': 'bad'})
        assert response.status_code == 400
        assert response.get_json()['success'] is False

    def test_unknown_school(self, client):
        """Test that unknown ids answer 404"""
        assert client.get('/api/schools/missing').status_code == 404
        assert client.delete('/api/schools/missing').status_code == 404

    def test_move_phase_and_pipeline(self, client):
        """Test moving a school and reading the pipeline"""
        school = create_school(client)
        response = client.put(f"/api/schools/{school['id']}/phase", json={'phase': 'Interesado'})
        assert response.status_code == 200
        assert response.get_json()['school']['phase'] == 'Interesado'

        assert client.put(f"/api/schools/{school['id']}/phase", json={'phase': 'Nope'}).status_code == 400

        response = client.get('/api/schools/pipeline')
        assert response.status_code == 200

    def test_delete_school(self, client):
        """Test deleting a school"""
        school = create_school(client)
        assert client.delete(f"/api/schools/{school['id']}").status_code == 200
        assert client.get(f"/api/schools/{school['id']}").status_code == 404

    def test_school_tasks(self, client):
        """Test creating a task for a school and toggling it"""
        school = create_school(client)
        response = client.post(f"/api/schools/{school['id']}/tasks",
                               json={'title': 'Llamar', 'due_date': '2024-05-10'})
        assert response.status_code == 201
        task = response.get_json()['task']

        response = client.post(f"/api/tasks/{task['id']}/toggle")
        assert response.status_code == 200

        missing = client.post('/api/schools/missing/tasks', json={'title': 'X', 'due_date': '2024-05-10'})
        assert missing.status_code == 404

    def test_import_csv(self, client):
        """Test importing schools from an uploaded CSV"""
        content = (b"Colegio A,Madrid,600111222,a@colegio.es,Ana\n"
                   b"Colegio B,Toledo,600333444,b@colegio.es,Luis\n")
        response = client.post(
            '/api/schools/import',
            data={'file': (BytesIO(content), 'colegios.csv')},
            content_type='multipart/form-data'
        )
        assert response.status_code == 200
        result = response.get_json()['result']
        assert result['total'] == 2
        assert result['created'] == 2

    def test_import_rejects_other_files(self, client):
        """Test that only CSV/TXT uploads are accepted"""
        response = client.post(
            '/api/schools/import',
            data={'file': (BytesIO(b'data'), 'colegios.xlsx')},
            content_type='multipart/form-data'
        )
        assert response.status_code == 400


@pytest.mark.integration
class TestRemindersAPI:
    """Tests for reminder settings, upcoming items and permission"""

    def test_default_settings(self, client):
        """Test that unset settings come back with defaults"""
        response = client.get('/api/reminders/settings')
        assert response.status_code == 200
        assert response.get_json()['settings']['remind_minutes_before'] == 15

    def test_update_settings(self, client):
        """Test updating and rejecting settings"""
        response = client.put('/api/reminders/settings', json={'remind_minutes_before': 30})
        assert response.status_code == 200
        assert response.get_json()['settings']['remind_minutes_before'] == 30

        bad = client.put('/api/reminders/settings', json={'check_interval_minutes': 0})
        assert bad.status_code == 400

    def test_upcoming(self, client):
        """Test that a meeting inside the window is listed"""
        school = create_school(client)
        client.post(f"/api/schools/{school['id']}/tasks", json={
            'title': 'Demo', 'due_date': '2024-05-10', 'due_time': '10:30', 'is_meeting': True
        })

        response = client.get('/api/reminders/upcoming?now=2024-05-10T10:20:00')
        data = response.get_json()
        assert response.status_code == 200
        assert data['count'] == 1
        assert data['items'][0]['at'] == '2024-05-10T10:30:00'
        assert data['items'][0]['school_name'] == 'Colegio Norte'

    def test_upcoming_with_corrupt_stored_settings(self, client):
        """Test that a stored settings record with bad types does not break the listing"""
        from database.connection import get_db_session
        from database.models import ReminderSetting

        with get_db_session() as session:
            session.add(ReminderSetting(user_id='default', settings={'remind_minutes_before': 'x'}))

        school = create_school(client)
        client.post(f"/api/schools/{school['id']}/tasks", json={
            'title': 'Llamar', 'due_date': '2024-05-10', 'due_time': '10:30'
        })

        response = client.get('/api/reminders/upcoming?now=2024-05-10T10:20:00')
        assert response.status_code == 200
        assert response.get_json()['count'] == 1

    def test_permission(self, client):
        """Test reading and changing the notification permission"""
        response = client.put('/api/reminders/permission', json={'permission': 'denied'})
        assert response.get_json()['permission'] == 'denied'
        assert client.get('/api/reminders/permission').get_json()['permission'] == 'denied'

        assert client.put('/api/reminders/permission', json={'permission': 'maybe'}).status_code == 400


@pytest.mark.integration
class TestWorkTasksAPI:
    """Tests for the work task endpoints"""

    def test_mine_requires_user(self, client):
        """Test that the caller must identify themselves"""
        assert client.get('/api/work-tasks/mine').status_code == 400

    def test_create_and_list_mine(self, client):
        """Test that a created task is assigned to its creator"""
        headers = {'X-User-Id': 'u1'}
        response = client.post('/api/work-tasks', json={'title': 'Preparar propuesta'}, headers=headers)
        assert response.status_code == 201
        assert response.get_json()['task']['assignee_user_id'] == 'u1'

        mine = client.get('/api/work-tasks/mine', headers=headers).get_json()
        assert [t['title'] for t in mine['tasks']] == ['Preparar propuesta']

    def test_done_and_missing(self, client):
        """Test completing a task and 404 for unknown tasks"""
        task = client.post('/api/work-tasks', json={'title': 'X'}).get_json()['task']
        assert client.post(f"/api/work-tasks/{task['id']}/done").get_json()['task']['status'] == 'done'
        assert client.get('/api/work-tasks/missing').status_code == 404

    def test_snooze_requires_time(self, client):
        """Test that snoozing needs a remind_at"""
        task = client.post('/api/work-tasks', json={'title': 'X'}).get_json()['task']
        assert client.post(f"/api/work-tasks/{task['id']}/snooze", json={}).status_code == 400


@pytest.mark.integration
class TestExpensesAPI:
    """Tests for expenses and the CSV download"""

    def test_export_download(self, client):
        """Test that the export is a CSV attachment"""
        client.post('/api/expenses', json={
            'date': '2024-03-15', 'supplier_name': 'Papelería Central', 'amount_base': 100, 'tax_rate': 21
        })
        response = client.get('/api/expenses/export?from=2024-03-01&to=2024-03-31')

        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        assert response.headers['Content-Disposition'] == \
            'attachment; filename=gastos-finomik-2024-03-01_a_2024-03-31.csv'
        assert 'Papelería Central' in response.get_data(as_text=True)

    def test_export_download_defaults_range(self, client):
        """Test that an export without dates is named after the current month"""
        from datetime import date

        today = date.today()
        response = client.get('/api/expenses/export')

        assert response.status_code == 200
        disposition = response.headers['Content-Disposition']
        assert f"gastos-finomik-{today.replace(day=1).isoformat()}" in disposition
        assert today.isoformat() in disposition

    def test_create_validation(self, client):
        """Test that a supplier is required"""
        assert client.post('/api/expenses', json={'date': '2024-03-15'}).status_code == 400


@pytest.mark.integration
class TestFinanceAPI:
    """Tests for finance endpoints"""

    def test_kpis(self, client):
        """Test the KPIs endpoint with a starting cash override"""
        response = client.get('/api/finance/dashboard/kpis?starting_cash=1000')
        assert response.status_code == 200
        assert response.get_json()['kpis']['cash_position'] == 1000

    def test_kpis_bad_starting_cash(self, client):
        """Test that a non numeric starting cash answers 400"""
        assert client.get('/api/finance/dashboard/kpis?starting_cash=abc').status_code == 400

    def test_overview(self, client):
        """Test that the overview bundles every section"""
        data = client.get('/api/finance/dashboard').get_json()
        assert data['success'] is True
        assert 'payable_owing' in data

    def test_invoice_crud(self, client):
        """Test creating and deleting an invoice"""
        response = client.post('/api/finance/invoices', json={'title': 'Cuota', 'issue_date': '2024-05-01'})
        assert response.status_code == 201
        invoice_id = response.get_json()['invoice']['id']
        assert client.delete(f'/api/finance/invoices/{invoice_id}').status_code == 200
        assert client.get(f'/api/finance/invoices/{invoice_id}').status_code == 404


@pytest.mark.integration
class TestLibraryAPI:
    """Tests for documents, resources and folders"""

    def test_documents(self, client):
        """Test creating and listing documents"""
        response = client.post('/api/documents', json={'title': 'Contrato', 'url': 'https://example.com/c'})
        assert response.status_code == 201
        assert client.post('/api/documents', json={'title': 'Sin url'}).status_code == 400

        documents = client.get('/api/documents').get_json()['documents']
        assert [d['title'] for d in documents] == ['Contrato']

    def test_resources(self, client):
        """Test creating a resource and finding it by entity"""
        response = client.post('/api/resources', json={
            'title': 'Logo', 'url': 'https://example.com/logo.png', 'type': 'logo',
            'link_to': {'entity_type': 'client', 'entity_id': 's1'}
        })
        assert response.status_code == 201

        listed = client.get('/api/resources?entity_type=client&entity_id=s1').get_json()['resources']
        assert [r['title'] for r in listed] == ['Logo']

    def test_folder_tree_has_default_roots(self, client):
        """Test that the tree always holds the default root folders"""
        response = client.get('/api/resource-folders/tree')
        assert response.status_code == 200
        assert {f['name'] for f in response.get_json()['tree']} == set(DEFAULT_ROOT_FOLDERS)


@pytest.mark.integration
class TestReportingAPI:
    """Tests for the reporting endpoints"""

    def test_operational(self, client):
        """Test that the operational report counts open work tasks"""
        client.post('/api/work-tasks', json={'title': 'Preparar propuesta', 'priority': 'high'})

        response = client.get('/api/reporting/operational')
        data = response.get_json()
        assert response.status_code == 200
        assert data['kpis']['open_tasks'] == 1
        assert data['kpis']['high_priority_tasks'] == 1

    def test_financial_custom_range(self, client):
        """Test financial KPIs over a custom range"""
        client.post('/api/finance/invoices', json={
            'title': 'Cuota', 'issue_date': '2024-03-10', 'amount': 250, 'status': 'paid'
        })

        response = client.get('/api/reporting/financial?range=custom&from=2024-03-01&to=2024-03-31')
        data = response.get_json()
        assert response.status_code == 200
        assert data['range'] == {'key': 'custom', 'from': '2024-03-01', 'to': '2024-03-31'}
        assert data['kpis']['income_in_range'] == 250
        assert len(data['charts']['forecast']) == 60

    def test_financial_invalid_range(self, client):
        """Test that unknown ranges answer 400"""
        response = client.get('/api/reporting/financial?range=forever')
        assert response.status_code == 400


@pytest.mark.integration
class TestDashboardAndSchedulerAPI:
    """Tests for the pipeline dashboard and scheduler endpoints"""

    def test_metrics(self, client):
        """Test the default dashboard metrics"""
        create_school(client)
        response = client.get('/api/dashboard/metrics')
        assert response.status_code == 200
        assert response.get_json()['metrics']['total_schools'] == 1

    def test_invalid_range(self, client):
        """Test that unknown ranges answer 400"""
        response = client.get('/api/dashboard/metrics?range=forever')
        assert response.status_code == 400
        assert response.get_json()['field'] == 'range'

    def test_scheduler_status(self, client):
        """Test that the scheduler is idle in tests"""
        data = client.get('/api/scheduler/status').get_json()
        assert data['running'] is False
        assert data['jobs'] == {}

    def test_run_unknown_job(self, client):
        """Test that running an unknown job answers 404"""
        assert client.post('/api/scheduler/run/missing').status_code == 404
