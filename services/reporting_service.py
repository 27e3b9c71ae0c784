"""
Reporting Service - Operational and financial KPIs for the reporting screen.

Operational figures come from work tasks; financial figures reuse the
finance dashboard aggregations over a resolved date range.
"""

import logging
from collections import Counter
from datetime import date, datetime
from typing import Dict, Any, List
from dateutil.relativedelta import relativedelta
from sqlalchemy import func
from sqlalchemy.orm import Session

from database.models import FinanceInvoice, WorkTask
from services.finance_dashboard import FinanceDashboard
from services.work_task_repository import ACTIVE_STATUSES

logger = logging.getLogger(__name__)

PENDING_INVOICE_STATUSES = ['sent', 'overdue']
REPORT_FORECAST_DAYS = 60
BURN_RATE_MONTHS = 3


class ReportingService:
    """KPIs and chart series for the operational and financial report tabs."""

    def __init__(self, session: Session, today: date = None):
        self.session = session
        self.today = today or date.today()
        self.finance = FinanceDashboard(session, today=self.today)

    def _active_tasks(self):
        return self.session.query(WorkTask).filter(WorkTask.status.in_(ACTIVE_STATUSES))

    # =========================================================================
    # OPERATIONAL
    # =========================================================================

    def get_operational_kpis(self, now: datetime = None) -> Dict[str, int]:
        """Open, overdue and high-priority work tasks (open or in progress)."""
        now = now or datetime.now()
        count = func.count(WorkTask.id)
        return {
            'open_tasks': self._active_tasks().with_entities(count).scalar() or 0,
            'overdue_tasks': self._active_tasks().filter(
                WorkTask.due_at.isnot(None),
                WorkTask.due_at < now
            ).with_entities(count).scalar() or 0,
            'high_priority_tasks': self._active_tasks().filter(
                WorkTask.priority == 'high'
            ).with_entities(count).scalar() or 0,
        }

    def get_operational_charts(self) -> Dict[str, List[Dict[str, Any]]]:
        """Non-archived work tasks grouped by priority and by status."""
        rows = self.session.query(WorkTask.status, WorkTask.priority).filter(
            WorkTask.status != 'archived'
        ).all()
        by_priority = Counter(r.priority for r in rows)
        by_status = Counter(r.status for r in rows)
        return {
            'tasks_by_priority': [{'priority': k, 'count': v} for k, v in by_priority.items()],
            'tasks_by_status': [{'status': k, 'count': v} for k, v in by_status.items()],
        }

    # =========================================================================
    # FINANCIAL
    # =========================================================================

    def get_financial_kpis(self, from_date: date, to_date: date) -> Dict[str, Any]:
        """
        Financial headline numbers for a date range.

        Args:
            from_date: First day of the range (inclusive)
            to_date: Last day of the range (inclusive)

        Returns:
            Dict with paid income and expenses in the range, their net,
            the sum and count of pending (sent/overdue) invoices, the average
            monthly spend over the last three months and the projected cash
            60 days out (0 when nothing can be projected)
        """
        income = self.finance.paid_income(from_date, to_date)
        expenses = self.finance.paid_expenses(from_date, to_date)

        pending = self.session.query(
            func.count(FinanceInvoice.id), func.coalesce(func.sum(FinanceInvoice.amount), 0.0)
        ).filter(FinanceInvoice.status.in_(PENDING_INVOICE_STATUSES)).one()

        burn_from = self.today - relativedelta(months=BURN_RATE_MONTHS)
        burn_rate = self.finance.paid_expenses(burn_from, self.today) / BURN_RATE_MONTHS

        forecast = self.finance.get_forecast_projection(REPORT_FORECAST_DAYS)

        return {
            'income_in_range': income,
            'expenses_in_range': expenses,
            'net_result': income - expenses,
            'pending_invoices_sum': float(pending[1] or 0.0),
            'pending_invoices_count': pending[0] or 0,
            'burn_rate': burn_rate,
            'forecast_60_days': forecast[-1]['projected_cash'] if forecast else 0.0,
        }

    def get_financial_charts(self, from_date: date, to_date: date) -> Dict[str, Any]:
        return {
            'income_expenses_by_month': self.finance.get_income_expenses_by_month_range(from_date, to_date),
            'expenses_by_category': self.finance.get_expenses_by_category_range(from_date, to_date),
            'forecast': self.finance.get_forecast_projection(REPORT_FORECAST_DAYS),
        }
