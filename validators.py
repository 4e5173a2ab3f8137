"""
Input Validation & Sanitization Utilities
Provides validation for API requests, job photo uploads, and user input
"""
import re
import os
from datetime import date, datetime
from typing import Dict, Any, Iterable, List, Optional, Tuple
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename
import logging

from services.records import APPOINTMENT_STATUSES, INVOICE_STATUSES, JOB_STATUSES, QUOTE_STATUSES

logger = logging.getLogger(__name__)

# Allowed photo extensions
ALLOWED_IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp', 'heic'}

# Maximum file sizes (in bytes)
MAX_IMAGE_SIZE = 10 * 1024 * 1024  # 10MB

# Regex patterns
EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
PHONE_PATTERN = re.compile(r'^\+?1?\d{9,15}$')
TIME_PATTERN = re.compile(r'^([01]?\d|2[0-3]):[0-5]\d( ?[AaPp][Mm])?$')

PHOTO_TYPES = ('before', 'after')


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
    """
    Validate phone number format; (555) 123-4567 style is accepted

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not phone or not isinstance(phone, str):
        return False, "Phone must be a non-empty string"

    # Remove common separators
    cleaned_phone = re.sub(r'[\s\-\(\)\.]', '', phone)

    if not PHONE_PATTERN.match(cleaned_phone):
        return False, "Invalid phone number format"

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


def validate_date_string(value: str) -> Tuple[bool, Optional[str]]:
    """Accept YYYY-MM-DD or a full ISO timestamp"""
    if not value or not isinstance(value, str):
        return False, "Date must be a non-empty string"

    try:
        if len(value) == 10:
            date.fromisoformat(value)
        else:
            datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return False, "Invalid date format (expected YYYY-MM-DD or ISO 8601)"

    return True, None


def validate_time_string(value: str) -> Tuple[bool, Optional[str]]:
    if not isinstance(value, str) or not TIME_PATTERN.match(value.strip()):
        return False, "Invalid time format (expected HH:MM)"
    return True, None


def validate_choice(value: Any, allowed: Iterable[str], field: str = 'status') -> Tuple[bool, Optional[str]]:
    allowed = tuple(allowed)
    if value not in allowed:
        return False, f"Invalid {field}: {value!r} (allowed: {', '.join(allowed)})"
    return True, None


def validate_services(services: Any) -> Tuple[bool, Optional[str]]:
    """Service list of a quote or appointment"""
    if not isinstance(services, list):
        return False, "services must be an array"
    for idx, service in enumerate(services):
        is_valid, error = validate_string_length(service, min_length=1, max_length=200)
        if not is_valid:
            return False, f"Service {idx} invalid: {error}"
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

    sanitized = sanitized.strip()

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent directory traversal attacks

    Args:
        filename: Original filename

    Returns:
        Sanitized filename
    """
    safe_name = secure_filename(filename)

    # If secure_filename removes everything, generate a default name
    if not safe_name:
        safe_name = 'file'

    return safe_name


def validate_file_extension(filename: str, allowed_extensions: set) -> Tuple[bool, Optional[str]]:
    """
    Validate file has an allowed extension

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not filename or '.' not in filename:
        return False, "File must have an extension"

    extension = filename.rsplit('.', 1)[1].lower()

    if extension not in allowed_extensions:
        return False, f"File type not allowed. Allowed types: {', '.join(sorted(allowed_extensions))}"

    return True, None


def validate_file_upload(
    file: FileStorage,
    allowed_extensions: set,
    max_size: int,
    file_type: str = "file"
) -> Tuple[bool, Optional[str], Optional[str]]:
    """
    Comprehensive file upload validation

    Args:
        file: FileStorage object from request.files
        allowed_extensions: Set of allowed extensions
        max_size: Maximum file size in bytes
        file_type: Type of file for error messages

    Returns:
        Tuple of (is_valid, error_message, sanitized_filename)
    """
    if not file or not file.filename:
        return False, f"No {file_type} provided", None

    safe_filename = sanitize_filename(file.filename)

    is_valid, error = validate_file_extension(safe_filename, allowed_extensions)
    if not is_valid:
        return False, error, None

    # Check file size (read file to check actual size)
    file.seek(0, os.SEEK_END)
    file_size = file.tell()
    file.seek(0)  # Reset to beginning

    if file_size > max_size:
        max_mb = max_size / (1024 * 1024)
        return False, f"{file_type.capitalize()} too large (maximum {max_mb:.1f}MB)", None

    if file_size == 0:
        return False, f"{file_type.capitalize()} is empty", None

    logger.info(f"File validation successful: {safe_filename} ({file_size} bytes)")
    return True, None, safe_filename


def validate_image_upload(file: FileStorage) -> Tuple[bool, Optional[str], Optional[str]]:
    """Validate a before/after job photo"""
    return validate_file_upload(file, ALLOWED_IMAGE_EXTENSIONS, MAX_IMAGE_SIZE, "image")


# =============================================================================
# REQUEST VALIDATORS
# =============================================================================

def _validate_contact(data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    if 'name' in data:
        is_valid, error = validate_string_length(data['name'], min_length=1, max_length=200)
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

    return True, None


def validate_customer_request(data: Dict[str, Any], partial: bool = False) -> Tuple[bool, Optional[str]]:
    """
    Validate a customer create/update body

    Args:
        data: Request data dictionary
        partial: Update bodies need no required fields

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not partial:
        is_valid, error = validate_required_fields(data, ['name'])
        if not is_valid:
            return False, error

    is_valid, error = _validate_contact(data)
    if not is_valid:
        return False, error

    if 'status' in data:
        return validate_choice(data['status'], ('active', 'inactive'))

    return True, None


def validate_crew_member_request(data: Dict[str, Any], partial: bool = False) -> Tuple[bool, Optional[str]]:
    if not partial:
        is_valid, error = validate_required_fields(data, ['name'])
        if not is_valid:
            return False, error

    is_valid, error = _validate_contact(data)
    if not is_valid:
        return False, error

    if 'role' in data:
        is_valid, error = validate_string_length(data['role'], max_length=100)
        if not is_valid:
            return False, f"Invalid role: {error}"

    return True, None


def validate_quote_request(data: Dict[str, Any], partial: bool = False) -> Tuple[bool, Optional[str]]:
    """
    Validate a quote create/edit body

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not partial:
        is_valid, error = validate_required_fields(data, ['customerName', 'services'])
        if not is_valid:
            return False, error

    if 'customerName' in data:
        is_valid, error = validate_string_length(data['customerName'], min_length=1, max_length=200)
        if not is_valid:
            return False, f"Invalid customerName: {error}"

    if 'services' in data:
        is_valid, error = validate_services(data['services'])
        if not is_valid:
            return False, error

    if 'amount' in data:
        is_valid, error = validate_number_range(data['amount'], min_value=0)
        if not is_valid:
            return False, f"Invalid amount: {error}"

    if data.get('date'):
        is_valid, error = validate_date_string(data['date'])
        if not is_valid:
            return False, f"Invalid date: {error}"

    if data.get('time'):
        is_valid, error = validate_time_string(data['time'])
        if not is_valid:
            return False, f"Invalid time: {error}"

    if 'status' in data:
        return validate_choice(data['status'], QUOTE_STATUSES)

    return True, None


def validate_job_request(data: Dict[str, Any], partial: bool = False) -> Tuple[bool, Optional[str]]:
    if not partial:
        is_valid, error = validate_required_fields(data, ['customerName', 'scheduledDate'])
        if not is_valid:
            return False, error

    if data.get('scheduledDate'):
        is_valid, error = validate_date_string(data['scheduledDate'])
        if not is_valid:
            return False, f"Invalid scheduledDate: {error}"

    if data.get('scheduledTime'):
        is_valid, error = validate_time_string(data['scheduledTime'])
        if not is_valid:
            return False, f"Invalid scheduledTime: {error}"

    if 'status' in data:
        return validate_choice(data['status'], JOB_STATUSES)

    return True, None


def validate_appointment_request(data: Dict[str, Any], partial: bool = False) -> Tuple[bool, Optional[str]]:
    if not partial:
        is_valid, error = validate_required_fields(data, ['customerName', 'date'])
        if not is_valid:
            return False, error

    if data.get('date'):
        is_valid, error = validate_date_string(data['date'])
        if not is_valid:
            return False, f"Invalid date: {error}"

    if data.get('time'):
        is_valid, error = validate_time_string(data['time'])
        if not is_valid:
            return False, f"Invalid time: {error}"

    if 'services' in data:
        is_valid, error = validate_services(data['services'])
        if not is_valid:
            return False, error

    if 'status' in data:
        return validate_choice(data['status'], APPOINTMENT_STATUSES)

    return True, None


def validate_invoice_status_request(data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    is_valid, error = validate_required_fields(data, ['status'])
    if not is_valid:
        return False, error
    return validate_choice(data['status'], INVOICE_STATUSES)


def format_validation_error(field: Optional[str], message: str) -> Dict[str, Any]:
    """
    Format validation error for consistent API responses

    Returns:
        Error response dictionary
    """
    return {
        'success': False,
        'error': message,
        'field': field
    }
