"""
Dashboard Service - Commercial pipeline metrics.
"""

import logging
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Dict, Any, Optional
from sqlalchemy.orm import Session

from database.models import School, Task
from app.utils.helpers import parse_date
from validators import SCHOOL_PHASES, ValidationError

logger = logging.getLogger(__name__)

DATE_RANGE_KEYS = ['last30', 'last90', 'ytd', 'custom']
WON_PHASE = 'Firmado'
PAYING_STATUS = 'Cliente pagando'
FREE_STATUS = 'Periodo gratuito'
TASKS_DUE_SOON_DAYS = 7
LATEST_UPDATED_LIMIT = 10


def get_date_range(key: str, custom_from=None, custom_to=None, today: date = None) -> Dict[str, Any]:
    """Resolve a named range to inclusive from/to dates."""
    today = today or date.today()
    if key == 'last30':
        start = today - timedelta(days=30)
    elif key == 'last90':
        start = today - timedelta(days=90)
    elif key == 'ytd':
        start = date(today.year, 1, 1)
    elif key == 'custom':
        end = parse_date(custom_to) or today
        return {'key': 'custom', 'from': parse_date(custom_from) or end, 'to': end}
    else:
        raise ValidationError(f"Invalid date range '{key}'. Allowed: {', '.join(DATE_RANGE_KEYS)}", 'range')
    return {'key': key, 'from': start, 'to': today}


def _percentage(part: int, total: int) -> Optional[int]:
    if not total:
        return None
    return round(part / total * 100)


class DashboardService:
    """Pipeline metrics for the home dashboard."""

    def __init__(self, session: Session, today: date = None):
        self.session = session
        self.today = today or date.today()

    def get_metrics(self, date_range: Dict[str, Any]) -> Dict[str, Any]:
        """
        Pipeline metrics for a resolved date range.

        Args:
            date_range: Output of get_date_range

        Returns:
            Dict with totals, phase breakdown, conversion rate, commercial
            status counts, tasks due soon, new schools by month and the
            latest updated schools
        """
        range_start = datetime.combine(date_range['from'], datetime.min.time())
        range_end = datetime.combine(date_range['to'], datetime.max.time())

        schools = self.session.query(School).all()
        total = len(schools)

        phase_counts = Counter(s.phase for s in schools)
        by_phase = [
            {'phase': phase, 'count': phase_counts.get(phase, 0),
             'percentage': _percentage(phase_counts.get(phase, 0), total) or 0}
            for phase in SCHOOL_PHASES
        ]

        new_schools = [s for s in schools if s.created_at and range_start <= s.created_at <= range_end]
        by_month = Counter(s.created_at.strftime('%Y-%m') for s in new_schools)
        new_by_month = [{'month': f"{month}-01", 'count': count} for month, count in sorted(by_month.items())]

        status_counts = Counter(s.status for s in schools)

        soon = self.today + timedelta(days=TASKS_DUE_SOON_DAYS)
        tasks_due_soon = self.session.query(Task).filter(
            Task.completed.is_(False),
            Task.due_date >= self.today,
            Task.due_date <= soon
        ).count()

        latest = sorted(
            (s for s in schools if s.updated_at),
            key=lambda s: s.updated_at, reverse=True
        )[:LATEST_UPDATED_LIMIT]

        return {
            'range': {
                'key': date_range['key'],
                'from': date_range['from'].isoformat(),
                'to': date_range['to'].isoformat()
            },
            'total_schools': total,
            'new_schools_in_range': len(new_schools),
            'schools_by_phase': by_phase,
            'conversion_rate': _percentage(phase_counts.get(WON_PHASE, 0), total),
            'paying_count': status_counts.get(PAYING_STATUS, 0),
            'free_trial_count': status_counts.get(FREE_STATUS, 0),
            'tasks_due_soon_count': tasks_due_soon,
            'new_schools_by_month': new_by_month,
            'latest_updated_schools': [
                {'id': s.id, 'name': s.name, 'phase': s.phase, 'updated_at': s.updated_at.isoformat()}
                for s in latest
            ]
        }
