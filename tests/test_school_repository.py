"""
Tests for the schools pipeline repository and CSV import
"""
import pytest

from services.school_repository import SchoolRepository
from services.school_import import parse_import_rows, import_schools
from validators import ValidationError, SCHOOL_PHASES


@pytest.mark.unit
class TestSchools:
    """Tests for school CRUD"""

    def test_create_school_defaults(self, school_factory):
        """Test that a new school starts as Lead with status N/A"""
        school = school_factory()
        assert school['phase'] == 'Lead'
        assert school['status'] == 'N/A'
        assert school['milestones'] == []
        assert school['activities'] == []
        assert school['tasks'] == []

    def test_create_school_requires_name(self, db_session):
        """Test that a school without name is rejected"""
        with pytest.raises(ValidationError):
            SchoolRepository(db_session).create_school({'city': 'Madrid'})

    def test_create_school_rejects_bad_email(self, db_session):
        """Test that an invalid email is rejected"""
        with pytest.raises(ValidationError):
            SchoolRepository(db_session).create_school({'name': 'X', 'email': 'nope'})

    def test_update_only_changes_given_fields(self, db_session, school_factory):
        """Test that a partial update keeps other fields"""
        school = school_factory()
        updated = SchoolRepository(db_session).update_school(school['id'], {'city': 'Sevilla'})
        assert updated['city'] == 'Sevilla'
        assert updated['name'] == school['name']

    def test_update_missing_school(self, db_session):
        """Test that updating an unknown school returns None"""
        assert SchoolRepository(db_session).update_school('missing', {'city': 'X'}) is None

    def test_list_filters_and_search(self, db_session, school_factory):
        """Test filtering by phase and searching by name or city"""
        school_factory(name='Colegio Alfa', city='Bilbao', email='a@alfa.es')
        school_factory(name='Instituto Beta', city='Valencia', email='b@beta.es', phase='Interesado')
        repo = SchoolRepository(db_session)

        assert [s['name'] for s in repo.list_schools(phase='Interesado')] == ['Instituto Beta']
        assert [s['name'] for s in repo.search_schools('bilbao')] == ['Colegio Alfa']
        assert len(repo.list_schools()) == 2

    def test_delete_school_removes_children(self, db_session, school_factory):
        """Test that deleting a school deletes its activities and tasks"""
        from database.models import Activity, Task

        school = school_factory()
        repo = SchoolRepository(db_session)
        repo.add_activity(school['id'], {'type': 'Llamada', 'description': 'Primer contacto'})
        repo.create_task(school['id'], {'title': 'Enviar dossier', 'due_date': '2024-05-10'})

        assert repo.delete_school(school['id']) is True
        assert repo.get_school(school['id']) is None
        assert db_session.query(Activity).count() == 0
        assert db_session.query(Task).count() == 0

    def test_delete_missing_school(self, db_session):
        """Test that deleting an unknown school returns False"""
        assert SchoolRepository(db_session).delete_school('missing') is False


@pytest.mark.unit
class TestPipeline:
    """Tests for pipeline phases"""

    def test_move_to_phase(self, db_session, school_factory):
        """Test moving a school to another phase"""
        school = school_factory()
        moved = SchoolRepository(db_session).move_to_phase(school['id'], 'Negociación')
        assert moved['phase'] == 'Negociación'

    def test_move_to_unknown_phase(self, db_session, school_factory):
        """Test that an unknown phase is rejected"""
        school = school_factory()
        with pytest.raises(ValidationError) as exc_info:
            SchoolRepository(db_session).move_to_phase(school['id'], 'Perdido')
        assert exc_info.value.field == 'phase'

    def test_pipeline_has_every_phase_in_order(self, db_session, school_factory):
        """Test that the pipeline lists every phase, including empty ones"""
        school_factory(phase='Cerrado')
        pipeline = SchoolRepository(db_session).get_pipeline()

        assert [column['phase'] for column in pipeline] == SCHOOL_PHASES
        counts = {column['phase']: column['count'] for column in pipeline}
        assert counts['Cerrado'] == 1
        assert counts['Lead'] == 0


@pytest.mark.unit
class TestActivitiesAndTasks:
    """Tests for activities and school tasks"""

    def test_activity_requires_known_type(self, db_session, school_factory):
        """Test that an unknown activity type is rejected"""
        school = school_factory()
        with pytest.raises(ValidationError):
            SchoolRepository(db_session).add_activity(school['id'], {'type': 'Fax'})

    def test_activities_newest_first(self, db_session, school_factory):
        """Test that activities are listed newest first"""
        school = school_factory()
        repo = SchoolRepository(db_session)
        repo.add_activity(school['id'], {'type': 'Email', 'date': '2024-01-01T10:00:00'})
        repo.add_activity(school['id'], {'type': 'Llamada', 'date': '2024-03-01T10:00:00'})

        assert [a['type'] for a in repo.list_activities(school['id'])] == ['Llamada', 'Email']
        assert len(repo.get_school(school['id'])['activities']) == 2

    def test_activity_for_missing_school(self, db_session):
        """Test that an activity for an unknown school returns None"""
        assert SchoolRepository(db_session).add_activity('missing', {'type': 'Nota'}) is None

    def test_create_task(self, db_session, school_factory):
        """Test creating a meeting with a due time"""
        school = school_factory()
        task = SchoolRepository(db_session).create_task(school['id'], {
            'title': 'Reunión con dirección', 'due_date': '2024-05-10',
            'due_time': '11:30', 'is_meeting': True, 'priority': 'Alta'
        })
        assert task['due_date'] == '2024-05-10'
        assert task['due_time'] == '11:30'
        assert task['is_meeting'] is True
        assert task['completed'] is False

    def test_create_task_rejects_bad_time(self, db_session, school_factory):
        """Test that a malformed due time is rejected"""
        school = school_factory()
        with pytest.raises(ValidationError):
            SchoolRepository(db_session).create_task(
                school['id'], {'title': 'X', 'due_date': '2024-05-10', 'due_time': '25:00'}
            )

    def test_tasks_sorted_by_due_date_and_time(self, db_session, school_factory):
        """Test that tasks are ordered by date then time"""
        school = school_factory()
        repo = SchoolRepository(db_session)
        repo.create_task(school['id'], {'title': 'C', 'due_date': '2024-05-11', 'due_time': '08:00'})
        repo.create_task(school['id'], {'title': 'B', 'due_date': '2024-05-10', 'due_time': '12:00'})
        repo.create_task(school['id'], {'title': 'A', 'due_date': '2024-05-10', 'due_time': '09:00'})

        assert [t['title'] for t in repo.list_tasks(school['id'])] == ['A', 'B', 'C']

    def test_toggle_and_filter_completed(self, db_session, school_factory):
        """Test toggling completion and excluding completed tasks"""
        school = school_factory()
        repo = SchoolRepository(db_session)
        task = repo.create_task(school['id'], {'title': 'Hecha', 'due_date': '2024-05-10'})

        assert repo.toggle_task_completed(task['id'])['completed'] is True
        assert repo.list_tasks(include_completed=False) == []
        assert repo.toggle_task_completed(task['id'])['completed'] is False

    def test_update_task_clears_time(self, db_session, school_factory):
        """Test that an empty due time is stored as None"""
        school = school_factory()
        repo = SchoolRepository(db_session)
        task = repo.create_task(school['id'], {'title': 'X', 'due_date': '2024-05-10', 'due_time': '10:00'})

        assert repo.update_task(task['id'], {'due_time': ''})['due_time'] is None

    def test_delete_task(self, db_session, school_factory):
        """Test deleting a task"""
        school = school_factory()
        repo = SchoolRepository(db_session)
        task = repo.create_task(school['id'], {'title': 'X', 'due_date': '2024-05-10'})

        assert repo.delete_task(task['id']) is True
        assert repo.get_task(task['id']) is None
        assert repo.delete_task(task['id']) is False


@pytest.mark.unit
class TestSchoolImport:
    """Tests for the CSV school import"""

    def test_parse_drops_header_and_blank_rows(self):
        """Test that a header row mentioning the name column is skipped"""
        text = "Nombre del centro,Ciudad,Teléfono,Email,Contacto\nColegio A,Madrid,600111222,a@a.es,Ana\n,,,,\n"
        assert parse_import_rows(text) == [['Colegio A', 'Madrid', '600111222', 'a@a.es', 'Ana']]

    def test_parse_semicolon_separated(self):
        """Test that semicolon separated exports are detected"""
        text = "Colegio A;Madrid;600111222;a@a.es;Ana\nColegio B;Toledo;600333444;b@b.es;Luis\n"
        rows = parse_import_rows(text)
        assert len(rows) == 2
        assert rows[1][0] == 'Colegio B'

    def test_import_creates_and_updates(self, db_session, school_factory):
        """Test that rows matching an email update the school and others create Leads"""
        existing = school_factory(name='Colegio Viejo', email='info@viejo.es')
        rows = [
            ['Colegio Nuevo Nombre', 'Madrid', '', 'INFO@viejo.es', 'Marta'],
            ['Colegio Nuevo', 'Toledo', '600999888', 'hola@nuevo.es', 'Pedro'],
            ['Sin email', 'Cuenca', '', '', ''],
        ]

        result = import_schools(db_session, rows)

        assert result == {'total': 3, 'created': 1, 'updated': 1, 'skipped': 1, 'errors': []}
        repo = SchoolRepository(db_session)
        assert repo.get_school(existing['id'])['name'] == 'Colegio Nuevo Nombre'
        created = repo.search_schools('hola@nuevo.es')[0]
        assert created['phase'] == 'Lead'
        assert created['role'] == 'Contacto General'
        assert created['region'] == 'Toledo'

    def test_import_reports_invalid_rows(self, db_session):
        """Test that a row with an invalid email is reported, not raised"""
        result = import_schools(db_session, [['Colegio', 'Madrid', '', 'not-an-email', '']])
        assert result['created'] == 0
        assert result['errors'][0]['row'] == 1
        assert result['errors'][0]['message'].startswith('Fila 1:')

    def test_import_cleans_cells_and_checks_phones(self, db_session):
        """Test that null bytes are stripped and unusable phones are reported"""
        result = import_schools(db_session, [
            ['Colegio\x00 Limpio ', 'Madrid', '600 111 222', 'limpio@colegio.es', ''],
            ['Colegio Roto', 'Madrid', 'sin teléfono', 'roto@colegio.es', ''],
        ])

        assert result['created'] == 1
        assert result['errors'][0]['row'] == 2
        assert 'Invalid phone' in result['errors'][0]['message']
        created = SchoolRepository(db_session).search_schools('limpio@colegio.es')[0]
        assert created['name'] == 'Colegio Limpio'
