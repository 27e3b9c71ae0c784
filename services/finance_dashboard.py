"""
Finance Dashboard - KPIs, monthly series, category breakdown, cash forecast
and payables/receivables aging.

Only paid invoices and paid expenses count as realised income and spend.
All amounts are plain floats in the default currency.
"""

import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import List, Dict, Any, Optional
from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from database.models import FinanceContract, FinanceInvoice, FinanceExpense, FinanceSettings
from app.utils.helpers import parse_date, month_bounds

logger = logging.getLogger(__name__)

# Monthly share of a contract amount by billing frequency
FREQUENCY_DIVISORS = {'monthly': 1, 'quarterly': 3, 'yearly': 12}
DAYS_PER_MONTH = 30
BURN_RATE_MONTHS = 3
FORECAST_KPI_DAYS = 30


class FinanceDashboard:
    """Read-only aggregations over the finance tables."""

    def __init__(self, session: Session, today: date = None):
        self.session = session
        self.today = today or date.today()

    # =========================================================================
    # QUERIES
    # =========================================================================

    def paid_income(self, from_date: date = None, to_date: date = None) -> float:
        query = self.session.query(FinanceInvoice).filter(FinanceInvoice.status == 'paid')
        if from_date:
            query = query.filter(FinanceInvoice.issue_date >= from_date)
        if to_date:
            query = query.filter(FinanceInvoice.issue_date <= to_date)
        return sum(i.amount or 0.0 for i in query.all())

    def paid_expenses(self, from_date: date = None, to_date: date = None) -> float:
        query = self.session.query(FinanceExpense).filter(FinanceExpense.status == 'paid')
        if from_date:
            query = query.filter(FinanceExpense.date >= from_date)
        if to_date:
            query = query.filter(FinanceExpense.date <= to_date)
        return sum(e.amount or 0.0 for e in query.all())

    def cumulative_net(self, to_date: date) -> float:
        """Paid income minus paid expenses up to and including to_date."""
        return self.paid_income(to_date=to_date) - self.paid_expenses(to_date=to_date)

    def starting_cash(self) -> Optional[float]:
        settings = self.session.query(FinanceSettings).first()
        return settings.starting_cash if settings else None

    # =========================================================================
    # KPIS
    # =========================================================================

    def get_kpis(self, starting_cash: Optional[float] = None) -> Dict[str, Any]:
        """
        Headline numbers for the current month.

        Args:
            starting_cash: Opening balance; read from settings when omitted

        Returns:
            Dict with income/expenses this and previous month, net result,
            cash position (None without an opening balance), burn rate and
            the projected cash 30 days out
        """
        if starting_cash is None:
            starting_cash = self.starting_cash()

        this_from, this_to = month_bounds(self.today)
        prev_from, prev_to = month_bounds(self.today, -1)
        burn_from, _ = month_bounds(self.today, -BURN_RATE_MONTHS)

        income_this_month = self.paid_income(this_from, this_to)
        expenses_this_month = self.paid_expenses(this_from, this_to)
        burn_rate = self.paid_expenses(burn_from, this_to) / BURN_RATE_MONTHS

        cash_position = None
        if starting_cash is not None:
            cash_position = starting_cash + self.cumulative_net(this_to)

        forecast_next_30_days = 0.0
        if cash_position is not None:
            projection = self.get_forecast_projection(FORECAST_KPI_DAYS, starting_cash)
            forecast_next_30_days = projection[-1]['projected_cash'] if projection else cash_position

        return {
            'income_this_month': income_this_month,
            'expenses_this_month': expenses_this_month,
            'net_result_this_month': income_this_month - expenses_this_month,
            'cash_position': cash_position,
            'forecast_next_30_days': forecast_next_30_days,
            'burn_rate_last_3_months': burn_rate,
            'income_prev_month': self.paid_income(prev_from, prev_to),
            'expenses_prev_month': self.paid_expenses(prev_from, prev_to)
        }

    # =========================================================================
    # SERIES
    # =========================================================================

    def get_income_expenses_by_month(self, months_back: int = 12) -> List[Dict[str, Any]]:
        start, _ = month_bounds(self.today, -months_back)
        _, end = month_bounds(self.today)
        return self.get_income_expenses_by_month_range(start, end)

    def get_income_expenses_by_month_range(self, from_date, to_date) -> List[Dict[str, Any]]:
        """Paid income and expenses per month; every month in the range is present."""
        from_date = parse_date(from_date)
        to_date = parse_date(to_date)
        if not from_date or not to_date:
            return []

        by_month = {}
        cursor = date(from_date.year, from_date.month, 1)
        while cursor <= to_date:
            by_month[cursor.strftime('%Y-%m')] = {'income': 0.0, 'expenses': 0.0}
            cursor += relativedelta(months=1)

        invoices = self.session.query(FinanceInvoice).filter(
            FinanceInvoice.status == 'paid',
            FinanceInvoice.issue_date >= from_date,
            FinanceInvoice.issue_date <= to_date
        ).all()
        for invoice in invoices:
            key = invoice.issue_date.strftime('%Y-%m')
            by_month.setdefault(key, {'income': 0.0, 'expenses': 0.0})['income'] += invoice.amount or 0.0

        expenses = self.session.query(FinanceExpense).filter(
            FinanceExpense.status == 'paid',
            FinanceExpense.date >= from_date,
            FinanceExpense.date <= to_date
        ).all()
        for expense in expenses:
            key = expense.date.strftime('%Y-%m')
            by_month.setdefault(key, {'income': 0.0, 'expenses': 0.0})['expenses'] += expense.amount or 0.0

        return [
            {'month': f"{key}-01", 'income': values['income'], 'expenses': values['expenses']}
            for key, values in sorted(by_month.items())
        ]

    def get_expenses_by_category(self, months_back: int = 3) -> List[Dict[str, Any]]:
        start, _ = month_bounds(self.today, -months_back)
        _, end = month_bounds(self.today)
        return self.get_expenses_by_category_range(start, end)

    def get_expenses_by_category_range(self, from_date, to_date) -> List[Dict[str, Any]]:
        """Paid expenses summed per category, largest first."""
        expenses = self.session.query(FinanceExpense).filter(
            FinanceExpense.status == 'paid',
            FinanceExpense.date >= parse_date(from_date),
            FinanceExpense.date <= parse_date(to_date)
        ).all()

        totals = defaultdict(float)
        for expense in expenses:
            totals[expense.category or 'other'] += expense.amount or 0.0

        items = [{'category': category, 'amount': amount} for category, amount in totals.items()]
        return sorted(items, key=lambda item: item['amount'], reverse=True)

    # =========================================================================
    # FORECAST
    # =========================================================================

    def get_forecast_projection(self, days: int = 90,
                                starting_cash: Optional[float] = None) -> List[Dict[str, Any]]:
        """
        Day-by-day projected cash for the next `days` days, starting today.

        Inflows: unpaid (sent/overdue) invoices on their due date, or today
        when already overdue; active contracts spread linearly as a monthly
        amount / 30 per day. Outflows: pending one-off expenses on their due
        date (or today); recurring expenses repeated monthly from their due
        date.
        """
        if starting_cash is None:
            starting_cash = self.starting_cash()
        today = self.today
        horizon = today + timedelta(days=days)

        cumulative = self.cumulative_net(today)
        base_cash = starting_cash + cumulative if starting_cash is not None else cumulative

        daily_income = defaultdict(float)
        daily_expense = defaultdict(float)

        unpaid_invoices = self.session.query(FinanceInvoice).filter(
            FinanceInvoice.status.in_(['sent', 'overdue']),
            FinanceInvoice.due_date.isnot(None)
        ).all()
        for invoice in unpaid_invoices:
            daily_income[max(invoice.due_date, today)] += invoice.amount or 0.0

        contracts = self.session.query(FinanceContract).filter(FinanceContract.status == 'active').all()
        for contract in contracts:
            per_month = (contract.amount or 0.0) / FREQUENCY_DIVISORS.get(contract.frequency, 1)
            per_day = per_month / DAYS_PER_MONTH
            for offset in range(days):
                daily_income[today + timedelta(days=offset)] += per_day

        pending_expenses = self.session.query(FinanceExpense).filter(
            FinanceExpense.status == 'pending',
            FinanceExpense.is_recurring.is_(False),
            FinanceExpense.due_date.isnot(None)
        ).all()
        for expense in pending_expenses:
            daily_expense[max(expense.due_date, today)] += expense.amount or 0.0

        recurring_expenses = self.session.query(FinanceExpense).filter(
            FinanceExpense.is_recurring.is_(True),
            FinanceExpense.status != 'cancelled'
        ).all()
        for expense in recurring_expenses:
            start = expense.due_date or today
            step = 0
            occurrence = start
            while occurrence < horizon:
                if occurrence >= today:
                    daily_expense[occurrence] += expense.amount or 0.0
                step += 1
                occurrence = start + relativedelta(months=step)

        result = []
        running = base_cash
        for offset in range(days):
            day = today + timedelta(days=offset)
            running += daily_income.get(day, 0.0)
            running -= daily_expense.get(day, 0.0)
            running = round(running, 2)
            result.append({'date': day.isoformat(), 'projected_cash': running})
        return result

    # =========================================================================
    # AGING
    # =========================================================================

    def _aging(self, records) -> Dict[str, float]:
        today = self.today
        in_30 = today + timedelta(days=30)
        minus_30 = today - timedelta(days=30)
        minus_60 = today - timedelta(days=60)

        buckets = {'coming_due': 0.0, 'overdue_1_30': 0.0, 'overdue_31_60': 0.0}
        for record in records:
            due = record.due_date
            amount = record.amount or 0.0
            if due > today:
                if due <= in_30:
                    buckets['coming_due'] += amount
            elif due >= minus_30:
                buckets['overdue_1_30'] += amount
            elif due >= minus_60:
                buckets['overdue_31_60'] += amount
        return buckets

    def get_payable_owing_summary(self) -> Dict[str, float]:
        """Receivables (sent/overdue invoices) and payables (pending expenses) by due bucket."""
        invoices = self.session.query(FinanceInvoice).filter(
            FinanceInvoice.status.in_(['sent', 'overdue']),
            FinanceInvoice.due_date.isnot(None)
        ).all()
        expenses = self.session.query(FinanceExpense).filter(
            FinanceExpense.status == 'pending',
            FinanceExpense.due_date.isnot(None)
        ).all()

        invoice_buckets = self._aging(invoices)
        expense_buckets = self._aging(expenses)
        return {
            'invoices_coming_due': invoice_buckets['coming_due'],
            'invoices_overdue_1_30': invoice_buckets['overdue_1_30'],
            'invoices_overdue_31_60': invoice_buckets['overdue_31_60'],
            'expenses_coming_due': expense_buckets['coming_due'],
            'expenses_overdue_1_30': expense_buckets['overdue_1_30'],
            'expenses_overdue_31_60': expense_buckets['overdue_31_60']
        }

    def get_overview(self) -> Dict[str, Any]:
        """Everything the finance dashboard screen shows."""
        return {
            'kpis': self.get_kpis(),
            'income_expenses_by_month': self.get_income_expenses_by_month(),
            'expenses_by_category': self.get_expenses_by_category(),
            'payable_owing': self.get_payable_owing_summary()
        }
