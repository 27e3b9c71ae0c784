"""
API Blueprints Package

All HTTP route handlers for the application, organized by domain.
Each module defines a Flask Blueprint registered in app/__init__.py.

BLUEPRINT REFERENCE:
====================

Schools pipeline:
- schools.py       : Schools, pipeline phases, activities, tasks, CSV import
- reminders.py     : Reminder settings and upcoming task/meeting reminders
- calendar.py      : Merged CRM + Google calendar feed
- google.py        : Google Calendar OAuth and task sync
- dashboard.py     : Pipeline metrics

Team work:
- work_tasks.py    : Tasks tool (assignees, links, reminders)
- notifications.py : In-app notifications

Money:
- expenses.py      : Accounting expenses and CSV export
- finance.py       : Contracts, invoices, expenses, settings, finance dashboard

Libraries:
- documents.py     : Document categories and records
- resources.py     : Resources, entity links, aliases, folders

Other:
- scheduler.py     : Background job status and manual runs

Every handler returns {'success': True, ...} or {'success': False, 'error': ...}
with 400 for invalid input, 404 for missing records and 500 otherwise.
"""

__all__ = []
