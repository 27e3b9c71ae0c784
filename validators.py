"""
Input Validation & Sanitization Utilities
Provides validation for API payloads, CSV imports and reminder settings
"""
import re
import os
from datetime import datetime, date
from typing import Dict, Any, List, Optional, Tuple, Iterable
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename
import logging

logger = logging.getLogger(__name__)

# Allowed file extensions by category
ALLOWED_IMPORT_EXTENSIONS = {'csv', 'txt'}

# Maximum file sizes (in bytes)
MAX_IMPORT_SIZE = 5 * 1024 * 1024  # 5MB

# Regex patterns
EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
PHONE_PATTERN = re.compile(r'^\+?\d{6,15}$')
URL_PATTERN = re.compile(r'^https?://[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}.*$')
TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')

# Domain vocabularies
SCHOOL_PHASES = ['Lead', 'Contactado', 'Interesado', 'Negociación', 'Cerrado', 'Firmado']
COMMERCIAL_STATUSES = ['Periodo gratuito', 'Cliente pagando', 'N/A']
TASK_PRIORITIES = ['Baja', 'Media', 'Alta']
ACTIVITY_TYPES = ['Llamada', 'Email', 'Reunión', 'Nota']


class ValidationError(Exception):
    """Custom exception for validation errors"""
    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(self.message)


def validate_required_fields(data: Dict[str, Any], required_fields: List[str]) -> Tuple[bool, Optional[str]]:
    """
    Validate that all required fields are present in the data

    Args:
        data: Dictionary of input data
        required_fields: List of required field names

    Returns:
        Tuple of (is_valid, error_message)
    """
    missing_fields = [field for field in required_fields if field not in data or data[field] is None or data[field] == '']

    if missing_fields:
        return False, f"Missing required fields: {', '.join(missing_fields)}"

    return True, None


def validate_email(email: str) -> Tuple[bool, Optional[str]]:
    """
    Validate email format

    Args:
        email: Email address to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not email or not isinstance(email, str):
        return False, "Email must be a non-empty string"

    if not EMAIL_PATTERN.match(email):
        return False, "Invalid email format"

    if len(email) > 254:  # RFC 5321
        return False, "Email address too long"

    return True, None


def validate_phone(phone: str) -> Tuple[bool, Optional[str]]:
    """Validate phone number format (separators are ignored)"""
    if not phone or not isinstance(phone, str):
        return False, "Phone must be a non-empty string"

    cleaned_phone = re.sub(r'[\s\-\(\)\.]', '', phone)

    if not PHONE_PATTERN.match(cleaned_phone):
        return False, "Invalid phone number format"

    return True, None


def validate_url(url: str) -> Tuple[bool, Optional[str]]:
    """Validate URL format"""
    if not url or not isinstance(url, str):
        return False, "URL must be a non-empty string"

    if not URL_PATTERN.match(url):
        return False, "Invalid URL format"

    if len(url) > 2048:
        return False, "URL too long"

    return True, None


def validate_string_length(value: str, min_length: int = 0, max_length: int = 1000) -> Tuple[bool, Optional[str]]:
    """
    Validate string length is within acceptable range

    Args:
        value: String to validate
        min_length: Minimum allowed length
        max_length: Maximum allowed length

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(value, str):
        return False, "Value must be a string"

    if len(value) < min_length:
        return False, f"Value too short (minimum {min_length} characters)"

    if len(value) > max_length:
        return False, f"Value too long (maximum {max_length} characters)"

    return True, None


def validate_number_range(value: float, min_value: Optional[float] = None, max_value: Optional[float] = None) -> Tuple[bool, Optional[str]]:
    """
    Validate number is within acceptable range

    Args:
        value: Number to validate
        min_value: Minimum allowed value
        max_value: Maximum allowed value

    Returns:
        Tuple of (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False, "Value must be a number"

    if min_value is not None and value < min_value:
        return False, f"Value too small (minimum {min_value})"

    if max_value is not None and value > max_value:
        return False, f"Value too large (maximum {max_value})"

    return True, None


def validate_choice(value: Any, choices: Iterable[str]) -> Tuple[bool, Optional[str]]:
    """Validate that value is one of the allowed choices"""
    choices = list(choices)
    if value not in choices:
        return False, f"Invalid value '{value}'. Allowed: {', '.join(choices)}"
    return True, None


def validate_time_string(value: str) -> Tuple[bool, Optional[str]]:
    """Validate a 24h HH:MM time string"""
    if not isinstance(value, str) or not TIME_PATTERN.match(value):
        return False, "Time must use HH:MM format"
    return True, None


def validate_date_string(value: Any) -> Tuple[bool, Optional[str]]:
    """Validate an ISO date (YYYY-MM-DD) or a date object"""
    if isinstance(value, date):
        return True, None
    if not isinstance(value, str):
        return False, "Date must be a YYYY-MM-DD string"
    try:
        datetime.strptime(value[:10], '%Y-%m-%d')
    except ValueError:
        return False, "Date must be a YYYY-MM-DD string"
    return True, None


def sanitize_string(value: str, max_length: int = 1000) -> str:
    """
    Sanitize string input by removing potentially dangerous characters

    Args:
        value: String to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized string
    """
    if not isinstance(value, str):
        return str(value)

    # Remove null bytes
    sanitized = value.replace('\x00', '')

    # Trim whitespace
    sanitized = sanitized.strip()

    # Limit length
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized


def sanitize_filename(filename: str) -> str:
    """Sanitize filename to prevent directory traversal attacks"""
    safe_name = secure_filename(filename)

    if not safe_name:
        safe_name = 'file'

    return safe_name


def validate_file_extension(filename: str, allowed_extensions: set) -> Tuple[bool, Optional[str]]:
    """Validate file has an allowed extension"""
    if not filename or '.' not in filename:
        return False, "File must have an extension"

    extension = filename.rsplit('.', 1)[1].lower()

    if extension not in allowed_extensions:
        return False, f"File type not allowed. Allowed types: {', '.join(sorted(allowed_extensions))}"

    return True, None


def validate_import_upload(file: FileStorage) -> Tuple[bool, Optional[str], Optional[str]]:
    """
    Validate an uploaded school import file

    Args:
        file: FileStorage object from request.files

    Returns:
        Tuple of (is_valid, error_message, sanitized_filename)
    """
    if not file or not file.filename:
        return False, "No import file provided", None

    safe_filename = sanitize_filename(file.filename)

    is_valid, error = validate_file_extension(safe_filename, ALLOWED_IMPORT_EXTENSIONS)
    if not is_valid:
        return False, error, None

    file.seek(0, os.SEEK_END)
    file_size = file.tell()
    file.seek(0)

    if file_size > MAX_IMPORT_SIZE:
        max_mb = MAX_IMPORT_SIZE / (1024 * 1024)
        return False, f"Import file too large (maximum {max_mb:.1f}MB)", None

    if file_size == 0:
        return False, "Import file is empty", None

    logger.info(f"Import file validated: {safe_filename} ({file_size} bytes)")
    return True, None, safe_filename


def validate_school_data(data: Dict[str, Any], partial: bool = False) -> Tuple[bool, Optional[str]]:
    """
    Validate school create/update payloads

    Args:
        data: Request data dictionary
        partial: True for updates where every field is optional

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not partial:
        is_valid, error = validate_required_fields(data, ['name'])
        if not is_valid:
            return False, error

    if 'name' in data:
        is_valid, error = validate_string_length(data['name'] or '', min_length=1, max_length=255)
        if not is_valid:
            return False, f"Invalid name: {error}"

    if data.get('email'):
        is_valid, error = validate_email(data['email'])
        if not is_valid:
            return False, f"Invalid email: {error}"

    if data.get('phone'):
        is_valid, error = validate_phone(data['phone'])
        if not is_valid:
            return False, f"Invalid phone: {error}"

    if 'phase' in data:
        is_valid, error = validate_choice(data['phase'], SCHOOL_PHASES)
        if not is_valid:
            return False, f"Invalid phase: {error}"

    if 'status' in data:
        is_valid, error = validate_choice(data['status'], COMMERCIAL_STATUSES)
        if not is_valid:
            return False, f"Invalid status: {error}"

    if 'milestones' in data and not isinstance(data['milestones'], list):
        return False, "milestones must be an array"

    return True, None


def validate_task_data(data: Dict[str, Any], partial: bool = False) -> Tuple[bool, Optional[str]]:
    """Validate school task payloads"""
    if not partial:
        is_valid, error = validate_required_fields(data, ['title', 'due_date'])
        if not is_valid:
            return False, error

    if 'title' in data:
        is_valid, error = validate_string_length(data['title'] or '', min_length=1, max_length=500)
        if not is_valid:
            return False, f"Invalid title: {error}"

    if 'due_date' in data:
        is_valid, error = validate_date_string(data['due_date'])
        if not is_valid:
            return False, f"Invalid due_date: {error}"

    if data.get('due_time'):
        is_valid, error = validate_time_string(data['due_time'])
        if not is_valid:
            return False, f"Invalid due_time: {error}"

    if 'priority' in data:
        is_valid, error = validate_choice(data['priority'], TASK_PRIORITIES)
        if not is_valid:
            return False, f"Invalid priority: {error}"

    return True, None


def validate_activity_data(data: Dict[str, Any], partial: bool = False) -> Tuple[bool, Optional[str]]:
    """Validate activity payloads"""
    if not partial:
        is_valid, error = validate_required_fields(data, ['type'])
        if not is_valid:
            return False, error

    if 'type' in data:
        is_valid, error = validate_choice(data['type'], ACTIVITY_TYPES)
        if not is_valid:
            return False, f"Invalid type: {error}"

    return True, None


def validate_reminder_settings(data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate a (partial) reminder settings payload.

    Minute values must be positive integers; flags must be booleans.
    """
    if not isinstance(data, dict):
        return False, "Settings must be an object"

    for key in ('check_interval_minutes', 'remind_minutes_before', 'remind_minutes_before_follow_up'):
        if key in data:
            value = data[key]
            if isinstance(value, bool) or not isinstance(value, int):
                return False, f"{key} must be an integer"
            is_valid, error = validate_number_range(value, min_value=1, max_value=7 * 24 * 60)
            if not is_valid:
                return False, f"Invalid {key}: {error}"

    for key in ('notifications_enabled', 'remind_for_tasks', 'remind_for_meetings'):
        if key in data and not isinstance(data[key], bool):
            return False, f"{key} must be a boolean"

    return True, None


def require_valid(result: Tuple[bool, Optional[str]], field: Optional[str] = None):
    """Raise ValidationError when a (is_valid, error) tuple is invalid"""
    is_valid, error = result[0], result[1]
    if not is_valid:
        raise ValidationError(error, field)


def format_validation_error(field: str, message: str) -> Dict[str, Any]:
    """
    Format validation error for consistent API responses

    Args:
        field: Field name that failed validation
        message: Error message

    Returns:
        Error response dictionary
    """
    return {
        'success': False,
        'error': message,
        'field': field
    }
