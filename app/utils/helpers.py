"""
Helper utility functions for file operations, date parsing and common tasks.
"""

import os
import json
import logging
from datetime import datetime, date

from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)


def load_json_file(filepath, default=None):
    """
    Load JSON data from a file.

    Args:
        filepath: Path to the JSON file
        default: Default value if file doesn't exist or is unreadable (defaults to empty dict)

    Returns:
        Parsed JSON data or default value
    """
    if default is None:
        default = {}
    try:
        if filepath and os.path.exists(filepath):
            with open(filepath, 'r') as f:
                return json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Error loading {filepath}: {e}")
    return default


def save_json_file(filepath, data):
    """
    Save data to a JSON file, creating the parent directory if needed.

    Args:
        filepath: Path to the JSON file
        data: Data to save (must be JSON serializable)
    """
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(filepath, 'w') as f:
        json.dump(data, f, indent=2)


def parse_date(value):
    """Parse a date value (date, datetime or string). Returns None when unparsable."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        from dateutil import parser
        return parser.parse(str(value)).date()
    except (ValueError, OverflowError):
        return None


def parse_datetime(value):
    """Parse a datetime value. Timezone-aware inputs are converted to naive local time."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        try:
            from dateutil import parser
            parsed = parser.parse(str(value))
        except (ValueError, OverflowError):
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def month_bounds(day, offset=0):
    """First and last day of the month `offset` months away from `day`."""
    if isinstance(day, datetime):
        day = day.date()
    first = day.replace(day=1) + relativedelta(months=offset)
    last = first + relativedelta(months=1, days=-1)
    return first, last
