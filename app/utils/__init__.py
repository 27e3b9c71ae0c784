"""
Utilities Package

Shared helper functions used across the application.
"""

from app.utils.helpers import (
    load_json_file,
    save_json_file,
    parse_date,
    parse_datetime,
    month_bounds,
)

__all__ = [
    'load_json_file',
    'save_json_file',
    'parse_date',
    'parse_datetime',
    'month_bounds',
]
