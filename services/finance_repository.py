"""
Finance Repository - Contracts, invoices, operating expenses and settings.

These records feed the finance dashboard (see finance_dashboard.py).
"""

import logging
from datetime import datetime, date
from typing import List, Optional, Dict, Any
from sqlalchemy.orm import Session, joinedload

from database.models import FinanceContract, FinanceInvoice, FinanceExpense, FinanceSettings
from app.utils.helpers import parse_date, month_bounds
from validators import (
    validate_required_fields, validate_choice, validate_date_string,
    validate_number_range, require_valid
)

logger = logging.getLogger(__name__)

CONTRACT_FREQUENCIES = ['monthly', 'quarterly', 'yearly']
CONTRACT_STATUSES = ['active', 'pending', 'cancelled', 'ended']
INVOICE_STATUSES = ['draft', 'sent', 'paid', 'overdue', 'cancelled']
EXPENSE_STATUSES = ['pending', 'paid', 'cancelled']

CONTRACT_FIELDS = ['client_id', 'title', 'start_date', 'end_date', 'frequency', 'amount',
                   'currency', 'status', 'external_source', 'external_id']
INVOICE_FIELDS = ['contract_id', 'title', 'amount', 'currency', 'issue_date', 'due_date',
                  'status', 'external_source', 'external_id']
EXPENSE_FIELDS = ['title', 'vendor', 'category', 'amount', 'currency', 'date', 'due_date',
                  'status', 'is_recurring', 'recurrence_rule', 'external_source', 'external_id']
DATE_FIELDS = {'start_date', 'end_date', 'issue_date', 'due_date', 'date'}


def _validate_record(data: Dict, required: List[str], status_choices: List[str],
                     partial: bool = False, frequency: bool = False):
    if not partial:
        require_valid(validate_required_fields(data, required))
    for field in required:
        if field in data and field in DATE_FIELDS:
            require_valid(validate_date_string(data[field]), field)
    if 'status' in data:
        require_valid(validate_choice(data['status'], status_choices), 'status')
    if frequency and 'frequency' in data:
        require_valid(validate_choice(data['frequency'], CONTRACT_FREQUENCIES), 'frequency')
    if 'amount' in data:
        require_valid(validate_number_range(data['amount'], min_value=0), 'amount')


def _apply(record, data: Dict, fields: List[str]):
    for key in fields:
        if key not in data:
            continue
        value = data[key]
        if key in DATE_FIELDS:
            value = parse_date(value)
        elif key == 'amount':
            value = float(value or 0)
        elif key == 'category':
            value = value or 'other'
        setattr(record, key, value)
    record.updated_at = datetime.utcnow()


class FinanceRepository:
    """Repository for the finance module."""

    def __init__(self, session: Session):
        self.session = session

    # =========================================================================
    # CONTRACTS
    # =========================================================================

    def list_contracts(self, status: str = None, client_id: str = None) -> List[Dict]:
        """Contracts with client name, newest start date first."""
        query = self.session.query(FinanceContract).options(joinedload(FinanceContract.client))
        if status:
            query = query.filter(FinanceContract.status == status)
        if client_id:
            query = query.filter(FinanceContract.client_id == client_id)
        contracts = query.order_by(FinanceContract.start_date.desc()).all()
        return [c.to_dict() for c in contracts]

    def get_contract(self, contract_id: str) -> Optional[Dict]:
        contract = self.session.query(FinanceContract).filter(FinanceContract.id == contract_id).first()
        return contract.to_dict() if contract else None

    def create_contract(self, data: Dict) -> Dict:
        _validate_record(data, ['title', 'start_date'], CONTRACT_STATUSES, frequency=True)

        contract = FinanceContract(frequency='monthly', currency='EUR', status='active')
        _apply(contract, data, CONTRACT_FIELDS)
        self.session.add(contract)
        self.session.flush()

        logger.info(f"Created finance contract: {contract.id}")
        return contract.to_dict()

    def update_contract(self, contract_id: str, data: Dict) -> Optional[Dict]:
        _validate_record(data, ['title', 'start_date'], CONTRACT_STATUSES, partial=True, frequency=True)

        contract = self.session.query(FinanceContract).filter(FinanceContract.id == contract_id).first()
        if not contract:
            return None
        _apply(contract, data, CONTRACT_FIELDS)
        self.session.flush()
        return contract.to_dict()

    def delete_contract(self, contract_id: str) -> bool:
        contract = self.session.query(FinanceContract).filter(FinanceContract.id == contract_id).first()
        if not contract:
            return False
        self.session.delete(contract)
        self.session.flush()
        logger.info(f"Deleted finance contract: {contract_id}")
        return True

    # =========================================================================
    # INVOICES
    # =========================================================================

    def list_invoices(self, status=None, issue_date_from=None, issue_date_to=None) -> List[Dict]:
        """
        Invoices with contract title, newest issue date first.

        Args:
            status: A single status or a list of statuses
            issue_date_from: Inclusive lower bound
            issue_date_to: Inclusive upper bound
        """
        query = self.session.query(FinanceInvoice).options(joinedload(FinanceInvoice.contract))
        if status:
            if isinstance(status, (list, tuple)):
                query = query.filter(FinanceInvoice.status.in_(status))
            else:
                query = query.filter(FinanceInvoice.status == status)
        if issue_date_from:
            query = query.filter(FinanceInvoice.issue_date >= parse_date(issue_date_from))
        if issue_date_to:
            query = query.filter(FinanceInvoice.issue_date <= parse_date(issue_date_to))
        invoices = query.order_by(FinanceInvoice.issue_date.desc()).all()
        return [i.to_dict() for i in invoices]

    def list_invoices_due(self, limit: int = 8) -> List[Dict]:
        """Sent or overdue invoices with a due date, earliest first."""
        invoices = self.session.query(FinanceInvoice).filter(
            FinanceInvoice.status.in_(['sent', 'overdue']),
            FinanceInvoice.due_date.isnot(None)
        ).order_by(FinanceInvoice.due_date.asc()).limit(limit).all()
        return [i.to_dict() for i in invoices]

    def get_invoice(self, invoice_id: str) -> Optional[Dict]:
        invoice = self.session.query(FinanceInvoice).filter(FinanceInvoice.id == invoice_id).first()
        return invoice.to_dict() if invoice else None

    def create_invoice(self, data: Dict) -> Dict:
        _validate_record(data, ['title', 'issue_date'], INVOICE_STATUSES)

        invoice = FinanceInvoice(currency='EUR', status='draft')
        _apply(invoice, data, INVOICE_FIELDS)
        self.session.add(invoice)
        self.session.flush()

        logger.info(f"Created finance invoice: {invoice.id}")
        return invoice.to_dict()

    def update_invoice(self, invoice_id: str, data: Dict) -> Optional[Dict]:
        _validate_record(data, ['title', 'issue_date'], INVOICE_STATUSES, partial=True)

        invoice = self.session.query(FinanceInvoice).filter(FinanceInvoice.id == invoice_id).first()
        if not invoice:
            return None
        _apply(invoice, data, INVOICE_FIELDS)
        self.session.flush()
        return invoice.to_dict()

    def delete_invoice(self, invoice_id: str) -> bool:
        invoice = self.session.query(FinanceInvoice).filter(FinanceInvoice.id == invoice_id).first()
        if not invoice:
            return False
        self.session.delete(invoice)
        self.session.flush()
        return True

    # =========================================================================
    # EXPENSES
    # =========================================================================

    def list_expenses(self, from_date=None, to_date=None, category: str = None,
                      status: str = None) -> List[Dict]:
        """Operating expenses, newest first."""
        query = self.session.query(FinanceExpense)
        if from_date:
            query = query.filter(FinanceExpense.date >= parse_date(from_date))
        if to_date:
            query = query.filter(FinanceExpense.date <= parse_date(to_date))
        if category:
            query = query.filter(FinanceExpense.category == category)
        if status:
            query = query.filter(FinanceExpense.status == status)
        expenses = query.order_by(FinanceExpense.date.desc()).all()
        return [e.to_dict() for e in expenses]

    def get_expense(self, expense_id: str) -> Optional[Dict]:
        expense = self.session.query(FinanceExpense).filter(FinanceExpense.id == expense_id).first()
        return expense.to_dict() if expense else None

    def create_expense(self, data: Dict) -> Dict:
        _validate_record(data, ['title', 'date'], EXPENSE_STATUSES)

        expense = FinanceExpense(category='other', currency='EUR', status='pending', is_recurring=False)
        _apply(expense, data, EXPENSE_FIELDS)
        self.session.add(expense)
        self.session.flush()

        logger.info(f"Created finance expense: {expense.id}")
        return expense.to_dict()

    def update_expense(self, expense_id: str, data: Dict) -> Optional[Dict]:
        _validate_record(data, ['title', 'date'], EXPENSE_STATUSES, partial=True)

        expense = self.session.query(FinanceExpense).filter(FinanceExpense.id == expense_id).first()
        if not expense:
            return None
        _apply(expense, data, EXPENSE_FIELDS)
        self.session.flush()
        return expense.to_dict()

    def delete_expense(self, expense_id: str) -> bool:
        expense = self.session.query(FinanceExpense).filter(FinanceExpense.id == expense_id).first()
        if not expense:
            return False
        self.session.delete(expense)
        self.session.flush()
        return True

    def get_expenses_summary(self, today: date = None) -> Dict[str, Any]:
        """Pending total, amount paid this month and active recurring count."""
        today = today or date.today()
        month_start, month_end = month_bounds(today)

        pending_total = 0.0
        paid_this_month = 0.0
        recurring_count = 0
        for expense in self.session.query(FinanceExpense).all():
            amount = expense.amount or 0.0
            if expense.status == 'pending':
                pending_total += amount
            if expense.status == 'paid' and expense.date and month_start <= expense.date <= month_end:
                paid_this_month += amount
            if expense.is_recurring and expense.status != 'cancelled':
                recurring_count += 1

        return {
            'pending_total': round(pending_total, 2),
            'paid_this_month': round(paid_this_month, 2),
            'recurring_count': recurring_count
        }

    def list_upcoming_recurring_expenses(self, limit: int = 8) -> List[Dict]:
        """Recurring, non-cancelled expenses by due date (undated last)."""
        expenses = self.session.query(FinanceExpense).filter(
            FinanceExpense.is_recurring.is_(True),
            FinanceExpense.status != 'cancelled'
        ).order_by(
            FinanceExpense.due_date.is_(None), FinanceExpense.due_date.asc()
        ).limit(limit).all()
        return [e.to_dict() for e in expenses]

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def _settings_row(self) -> FinanceSettings:
        settings = self.session.query(FinanceSettings).first()
        if not settings:
            settings = FinanceSettings(default_currency='EUR')
            self.session.add(settings)
            self.session.flush()
        return settings

    def get_settings(self) -> Dict:
        return self._settings_row().to_dict()

    def update_settings(self, data: Dict) -> Dict:
        """Update starting cash and/or default currency."""
        settings = self._settings_row()
        if 'starting_cash' in data:
            value = data['starting_cash']
            if value is not None and value != '':
                require_valid(validate_number_range(value), 'starting_cash')
                settings.starting_cash = float(value)
            else:
                settings.starting_cash = None
        if data.get('default_currency'):
            settings.default_currency = str(data['default_currency']).upper()[:3]
        settings.updated_at = datetime.utcnow()
        self.session.flush()

        logger.info("Updated finance settings")
        return settings.to_dict()
