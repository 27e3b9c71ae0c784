"""
Expense Repository - Supplier expenses and accounting export.

Expenses are registered here and periodically exported as CSV to the
external accounting package. Exported rows are stamped with exported_at.
"""

import re
import logging
from datetime import datetime, date
from typing import List, Optional, Dict, Any
from sqlalchemy.orm import Session

from database.models import Expense
from app.utils.helpers import parse_date
from validators import validate_required_fields, validate_date_string, require_valid

logger = logging.getLogger(__name__)

# Column order of the accounting export
EXPORT_COLUMNS = [
    ('Date', 'date'),
    ('DocumentNumber', 'document_number'),
    ('SupplierName', 'supplier_name'),
    ('SupplierTaxId', 'supplier_tax_id'),
    ('AccountCode', 'account_code'),
    ('Description', 'description'),
    ('BaseAmount', 'amount_base'),
    ('TaxAmount', 'tax_amount'),
    ('TaxRate', 'tax_rate'),
    ('TotalAmount', 'total_amount'),
    ('Currency', 'currency'),
    ('CostCenter', 'cost_center'),
    ('Paid', 'paid'),
    ('PaymentMethod', 'payment_method'),
    ('SchoolId', 'school_id'),
    ('ExportedAt', 'exported_at'),
]

# Cells containing any of these must be quoted
CSV_SPECIAL_CHARS = re.compile(r'[",;\n]')

DATE_FIELDS = {'date', 'due_date', 'paid_date'}
EXPENSE_FIELDS = [
    'document_number', 'date', 'due_date', 'description', 'supplier_name',
    'supplier_tax_id', 'account_code', 'cost_center', 'currency', 'amount_base',
    'tax_rate', 'tax_amount', 'total_amount', 'payment_method', 'paid',
    'paid_date', 'school_id'
]


class ExpenseRepository:
    """Repository for accounting expenses."""

    def __init__(self, session: Session, user_id: str = None):
        self.session = session
        self.user_id = user_id

    def list_expenses(self, from_date=None, to_date=None,
                      only_unexported: bool = False) -> List[Dict]:
        """Expenses newest first, optionally bounded by date and export state."""
        query = self.session.query(Expense)
        if from_date:
            query = query.filter(Expense.date >= parse_date(from_date))
        if to_date:
            query = query.filter(Expense.date <= parse_date(to_date))
        if only_unexported:
            query = query.filter(Expense.exported_at.is_(None))
        expenses = query.order_by(Expense.date.desc(), Expense.created_at.desc()).all()
        return [e.to_dict() for e in expenses]

    def get_expense(self, expense_id: str) -> Optional[Dict]:
        expense = self.session.query(Expense).filter(Expense.id == expense_id).first()
        return expense.to_dict() if expense else None

    def _apply(self, expense: Expense, data: Dict):
        for key in EXPENSE_FIELDS:
            if key not in data:
                continue
            value = data[key]
            if key in DATE_FIELDS:
                value = parse_date(value)
            setattr(expense, key, value)

        # Derive missing amounts from the base and rate
        if 'tax_amount' not in data and ('amount_base' in data or 'tax_rate' in data):
            expense.tax_amount = round((expense.amount_base or 0) * (expense.tax_rate or 0) / 100, 2)
        if 'total_amount' not in data and ('amount_base' in data or 'tax_amount' in data or 'tax_rate' in data):
            expense.total_amount = round((expense.amount_base or 0) + (expense.tax_amount or 0), 2)

    def create_expense(self, data: Dict) -> Dict:
        """Register a new expense."""
        require_valid(validate_required_fields(data, ['date', 'supplier_name']))
        require_valid(validate_date_string(data['date']), 'date')

        expense = Expense(currency='EUR', created_by=self.user_id)
        self._apply(expense, data)
        self.session.add(expense)
        self.session.flush()

        logger.info(f"Created expense: {expense.id}")
        return expense.to_dict()

    def update_expense(self, expense_id: str, data: Dict) -> Optional[Dict]:
        """Update only the fields present in data."""
        if 'date' in data:
            require_valid(validate_date_string(data['date']), 'date')

        expense = self.session.query(Expense).filter(Expense.id == expense_id).first()
        if not expense:
            return None

        self._apply(expense, data)
        if 'exported_at' in data:
            expense.exported_at = data['exported_at']
        expense.updated_at = datetime.utcnow()
        self.session.flush()

        logger.info(f"Updated expense: {expense_id}")
        return expense.to_dict()

    def toggle_paid(self, expense_id: str, today: date = None) -> Optional[Dict]:
        """Flip the paid flag; paying stamps paid_date, unpaying clears it."""
        expense = self.session.query(Expense).filter(Expense.id == expense_id).first()
        if not expense:
            return None

        expense.paid = not expense.paid
        expense.paid_date = (today or date.today()) if expense.paid else None
        expense.updated_at = datetime.utcnow()
        self.session.flush()
        return expense.to_dict()

    def delete_expense(self, expense_id: str) -> bool:
        expense = self.session.query(Expense).filter(Expense.id == expense_id).first()
        if not expense:
            return False
        self.session.delete(expense)
        self.session.flush()
        return True

    def mark_exported(self, expense_ids: List[str], when: datetime = None) -> int:
        """Stamp exported_at on the given expenses. Returns the number updated."""
        if not expense_ids:
            return 0
        when = when or datetime.utcnow()
        expenses = self.session.query(Expense).filter(Expense.id.in_(expense_ids)).all()
        for expense in expenses:
            expense.exported_at = when
        self.session.flush()
        logger.info(f"Marked {len(expenses)} expense(s) as exported")
        return len(expenses)

    def export_csv(self, from_date=None, to_date=None, only_unexported: bool = False,
                   today: date = None) -> Dict[str, Any]:
        """
        Build the accounting CSV for a date range.

        The range defaults to the first of the current month through today.
        When only_unexported is set, the exported rows are stamped so the
        next export skips them.

        Returns:
            Dict with filename, content and count
        """
        from_date, to_date = export_range(from_date, to_date, today)
        expenses = self.list_expenses(from_date, to_date, only_unexported)
        rows = build_accounting_export_rows(expenses)
        content = render_csv(rows)

        if only_unexported and expenses:
            self.mark_exported([e['id'] for e in expenses])

        return {
            'filename': export_filename(from_date, to_date),
            'content': content,
            'count': len(rows)
        }


def build_accounting_export_rows(expenses: List[Dict]) -> List[Dict[str, Any]]:
    """Map expense dicts to export rows with the accounting column names."""
    rows = []
    for expense in expenses:
        row = {}
        for column, field in EXPORT_COLUMNS:
            value = expense.get(field)
            if value is None and field not in ('paid',):
                value = ''
            row[column] = value
        rows.append(row)
    return rows


def escape_csv_cell(value) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        text = 'true' if value else 'false'
    else:
        text = str(value)
    if CSV_SPECIAL_CHARS.search(text):
        return '"' + text.replace('"', '""') + '"'
    return text


def render_csv(rows: List[Dict[str, Any]]) -> str:
    """Render export rows as comma separated text (header from the first row)."""
    if not rows:
        return ''
    header = list(rows[0].keys())
    lines = [','.join(header)]
    for row in rows:
        lines.append(','.join(escape_csv_cell(row.get(key)) for key in header))
    return '\n'.join(lines)


def export_range(from_date=None, to_date=None, today: date = None):
    """Resolve the export range: from defaults to the first of the month, to defaults to today."""
    today = today or date.today()
    start = parse_date(from_date) or today.replace(day=1)
    end = parse_date(to_date) or today
    return start, end


def export_filename(from_date=None, to_date=None, today: date = None) -> str:
    """gastos-finomik-<from>.csv or gastos-finomik-<from>_a_<to>.csv"""
    start, end = export_range(from_date, to_date, today)
    if start == end:
        return f"gastos-finomik-{start.isoformat()}.csv"
    return f"gastos-finomik-{start.isoformat()}_a_{end.isoformat()}.csv"
