"""
School Import - Bulk load schools from spreadsheet exports (CSV).

Expected column order: name, city, phone, email, contact person.
A first row mentioning 'nombre' or 'centro' is treated as a header.
"""

import csv
import io
import logging
from typing import Dict, List

from services.school_repository import SchoolRepository
from validators import ValidationError, sanitize_string

logger = logging.getLogger(__name__)

IMPORT_ROLE = 'Contacto General'
IMPORT_NOTES = 'Importado de Excel'
HEADER_MARKERS = ('nombre', 'centro')


def _detect_dialect(text: str):
    try:
        return csv.Sniffer().sniff(text[:2048], delimiters=',;\t')
    except csv.Error:
        return csv.excel


def parse_import_rows(text: str) -> List[List[str]]:
    """Split CSV text into rows, dropping a detected header row and blank lines."""
    reader = csv.reader(io.StringIO(text), _detect_dialect(text))
    rows = [row for row in reader if any(cell.strip() for cell in row)]

    if rows and any(marker in str(cell).lower() for cell in rows[0] for marker in HEADER_MARKERS):
        rows = rows[1:]

    return rows


def _cell(row: List[str], index: int) -> str:
    if index >= len(row) or row[index] is None:
        return ''
    return sanitize_string(str(row[index]))


def import_schools(session, rows: List[List[str]]) -> Dict:
    """
    Create or update schools from parsed rows.

    Rows without a name or email are skipped. A school matching the email
    (case-insensitive) or phone is updated; anything else is created as a Lead.

    Returns:
        Dict with total, created, updated, skipped and a list of row errors
    """
    repo = SchoolRepository(session)
    result = {'total': len(rows), 'created': 0, 'updated': 0, 'skipped': 0, 'errors': []}

    for index, row in enumerate(rows, start=1):
        name = _cell(row, 0)
        city = _cell(row, 1)
        phone = _cell(row, 2)
        email = _cell(row, 3).lower()
        contact = _cell(row, 4)

        if not name or not email:
            result['skipped'] += 1
            continue

        payload = {
            'name': name,
            'city': city,
            'region': city,
            'phone': phone,
            'email': email,
            'contact_person': contact,
            'role': IMPORT_ROLE,
            'notes': IMPORT_NOTES,
        }

        try:
            existing = repo.find_duplicate(email=email, phone=phone or None)
            if existing:
                repo.update_school(existing.id, payload)
                result['updated'] += 1
            else:
                repo.create_school(dict(payload, phase='Lead', status='N/A'))
                result['created'] += 1
        except ValidationError as e:
            logger.warning(f"Import row {index} failed: {e.message}")
            result['errors'].append({'row': index, 'message': f"Fila {index}: {e.message}"})

    logger.info(
        f"School import finished: {result['created']} created, "
        f"{result['updated']} updated, {len(result['errors'])} errors"
    )
    return result
