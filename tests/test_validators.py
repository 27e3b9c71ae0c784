"""
Tests for input validation utilities
"""
import pytest
from datetime import date
from io import BytesIO
from werkzeug.datastructures import FileStorage
from validators import (
    ValidationError,
    validate_required_fields,
    validate_email,
    validate_phone,
    validate_url,
    validate_string_length,
    validate_number_range,
    validate_choice,
    validate_time_string,
    validate_date_string,
    sanitize_string,
    sanitize_filename,
    validate_file_extension,
    validate_import_upload,
    validate_school_data,
    validate_task_data,
    validate_activity_data,
    validate_reminder_settings,
    require_valid,
    format_validation_error,
    MAX_IMPORT_SIZE,
)


@pytest.mark.unit
class TestRequiredFields:
    """Tests for required fields validation"""

    def test_validate_all_fields_present(self):
        """Test validation passes when all fields present"""
        data = {'name': 'Colegio', 'email': 'info@colegio.es'}
        assert validate_required_fields(data, ['name', 'email']) == (True, None)

    def test_validate_missing_and_empty_fields(self):
        """Test that missing, None and empty values are reported"""
        is_valid, error = validate_required_fields({'name': '', 'city': None}, ['name', 'city', 'email'])
        assert is_valid is False
        assert error == 'Missing required fields: name, city, email'


@pytest.mark.unit
class TestFormatValidators:
    """Tests for email, phone, URL, time and date formats"""

    def test_email(self):
        """Test valid and invalid emails"""
        assert validate_email('ana@colegio.es')[0] is True
        assert validate_email('not-an-email')[0] is False
        assert validate_email('')[0] is False
        assert validate_email('a' * 250 + '@x.es')[1] == 'Email address too long'

    def test_phone_ignores_separators(self):
        """Test that spaces, dashes and parentheses are ignored"""
        assert validate_phone('+34 (91) 123-45-67')[0] is True
        assert validate_phone('12345')[0] is False
        assert validate_phone('phone')[0] is False

    def test_url_requires_http(self):
        """Test that only http and https URLs pass"""
        assert validate_url('https://drive.google.com/file/1')[0] is True
        assert validate_url('http://example.com')[0] is True
        assert validate_url('ftp://example.com')[0] is False
        assert validate_url('https://example.com/' + 'a' * 2048)[1] == 'URL too long'

    def test_time_string(self):
        """Test 24h HH:MM times"""
        assert validate_time_string('09:30')[0] is True
        assert validate_time_string('23:59')[0] is True
        assert validate_time_string('24:00')[0] is False
        assert validate_time_string('9:30')[0] is False
        assert validate_time_string(None)[0] is False

    def test_date_string(self):
        """Test ISO dates and date objects"""
        assert validate_date_string('2024-05-10')[0] is True
        assert validate_date_string('2024-05-10T09:00:00')[0] is True
        assert validate_date_string(date(2024, 5, 10))[0] is True
        assert validate_date_string('10/05/2024')[0] is False
        assert validate_date_string(20240510)[0] is False


@pytest.mark.unit
class TestRangeValidators:
    """Tests for lengths, numbers and choices"""

    def test_string_length(self):
        """Test minimum and maximum lengths"""
        assert validate_string_length('abc', 1, 5)[0] is True
        assert validate_string_length('', 1, 5)[1] == 'Value too short (minimum 1 characters)'
        assert validate_string_length('abcdef', 1, 5)[1] == 'Value too long (maximum 5 characters)'
        assert validate_string_length(5)[0] is False

    def test_number_range(self):
        """Test numeric bounds and type checks"""
        assert validate_number_range(5, 0, 10)[0] is True
        assert validate_number_range(-1, min_value=0)[0] is False
        assert validate_number_range(11, max_value=10)[0] is False
        assert validate_number_range('5')[1] == 'Value must be a number'
        assert validate_number_range(True)[1] == 'Value must be a number'

    def test_choice(self):
        """Test that values must come from the allowed list"""
        assert validate_choice('Alta', ['Baja', 'Media', 'Alta'])[0] is True
        is_valid, error = validate_choice('Urgente', ['Baja', 'Alta'])
        assert is_valid is False
        assert error == "Invalid value 'Urgente'. Allowed: Baja, Alta"


@pytest.mark.unit
class TestSanitization:
    """Tests for string and filename sanitization"""

    def test_sanitize_string(self):
        """Test that null bytes and whitespace are removed and length capped"""
        assert sanitize_string('  hola\x00  ') == 'hola'
        assert sanitize_string('abcdef', max_length=3) == 'abc'
        assert sanitize_string(42) == '42'

    def test_sanitize_filename(self):
        """Test that path components are stripped"""
        assert sanitize_filename('../../etc/passwd') == 'etc_passwd'
        assert sanitize_filename('colegios.csv') == 'colegios.csv'
        assert sanitize_filename('../..') == 'file'

    def test_file_extension(self):
        """Test allowed and missing extensions"""
        assert validate_file_extension('data.CSV', {'csv'})[0] is True
        assert validate_file_extension('data', {'csv'})[1] == 'File must have an extension'
        assert validate_file_extension('data.xlsx', {'csv', 'txt'})[1] == \
            'File type not allowed. Allowed types: csv, txt'


@pytest.mark.unit
class TestImportUpload:
    """Tests for uploaded import files"""

    def test_valid_csv(self):
        """Test that a CSV upload passes with a safe name"""
        upload = FileStorage(stream=BytesIO(b'name,city\nA,Madrid\n'), filename='colegios.csv')
        assert validate_import_upload(upload) == (True, None, 'colegios.csv')

    def test_missing_file(self):
        """Test that no file is rejected"""
        assert validate_import_upload(None) == (False, 'No import file provided', None)

    def test_wrong_extension(self):
        """Test that non CSV/TXT files are rejected"""
        upload = FileStorage(stream=BytesIO(b'data'), filename='colegios.xlsx')
        assert validate_import_upload(upload)[0] is False

    def test_empty_file(self):
        """Test that empty uploads are rejected"""
        upload = FileStorage(stream=BytesIO(b''), filename='colegios.csv')
        assert validate_import_upload(upload) == (False, 'Import file is empty', None)

    def test_too_large(self):
        """Test the import size cap"""
        upload = FileStorage(stream=BytesIO(b'x' * (MAX_IMPORT_SIZE + 1)), filename='big.csv')
        is_valid, error, _ = validate_import_upload(upload)
        assert is_valid is False
        assert 'too large' in error


@pytest.mark.unit
class TestPayloadValidators:
    """Tests for school, task, activity and reminder payloads"""

    def test_school_requires_name(self):
        """Test that creating a school needs a name"""
        assert validate_school_data({'city': 'Madrid'})[0] is False
        assert validate_school_data({'city': 'Madrid'}, partial=True)[0] is True

    def test_school_field_checks(self):
        """Test email, phase, status and milestones checks"""
        assert validate_school_data({'name': 'A', 'email': 'bad'})[0] is False
        assert validate_school_data({'name': 'A', 'email': ''})[0] is True
        assert validate_school_data({'name': 'A', 'phase': 'Firmado', 'status': 'N/A'})[0] is True
        assert validate_school_data({'name': 'A', 'phase': 'Perdido'})[0] is False
        assert validate_school_data({'name': 'A', 'milestones': 'x'})[1] == 'milestones must be an array'

    def test_school_phone(self):
        """Test that a phone, when given, must look like a phone number"""
        assert validate_school_data({'name': 'A', 'phone': '+34 600 111 222'})[0] is True
        assert validate_school_data({'name': 'A', 'phone': ''})[0] is True
        assert validate_school_data({'name': 'A', 'phone': 'llamar luego'})[1] == \
            'Invalid phone: Invalid phone number format'

    def test_task_data(self):
        """Test task title, date, time and priority checks"""
        assert validate_task_data({'title': 'Llamar', 'due_date': '2024-05-10', 'due_time': '10:00',
                                   'priority': 'Alta'})[0] is True
        assert validate_task_data({'title': 'Llamar'})[0] is False
        assert validate_task_data({'due_time': '25:00'}, partial=True)[0] is False
        assert validate_task_data({'priority': 'Urgente'}, partial=True)[0] is False

    def test_activity_data(self):
        """Test that activity types are restricted"""
        assert validate_activity_data({'type': 'Llamada'})[0] is True
        assert validate_activity_data({'type': 'Fax'})[0] is False
        assert validate_activity_data({})[0] is False

    def test_reminder_settings(self):
        """Test minute ranges and boolean flags"""
        assert validate_reminder_settings({'check_interval_minutes': 5, 'notifications_enabled': False})[0] is True
        assert validate_reminder_settings({'check_interval_minutes': 0})[0] is False
        assert validate_reminder_settings({'remind_minutes_before': 10081})[0] is False
        assert validate_reminder_settings({'remind_minutes_before': '30'})[0] is False
        assert validate_reminder_settings({'remind_minutes_before': True})[0] is False
        assert validate_reminder_settings({'remind_for_tasks': 'yes'})[0] is False
        assert validate_reminder_settings([])[0] is False


@pytest.mark.unit
class TestResponseHelpers:
    """Tests for require_valid and response formatting"""

    def test_require_valid_raises(self):
        """Test that an invalid result raises with its field"""
        with pytest.raises(ValidationError) as exc_info:
            require_valid((False, 'Invalid email format'), 'email')
        assert exc_info.value.message == 'Invalid email format'
        assert exc_info.value.field == 'email'

        require_valid((True, None), 'email')

    def test_format_validation_error(self):
        """Test the error payload shape"""
        assert format_validation_error('email', 'Invalid') == {
            'success': False, 'error': 'Invalid', 'field': 'email'
        }
