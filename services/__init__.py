"""
Services package for Finomik CRM.
Contains repository classes for database access and domain services.
"""

from services.school_repository import SchoolRepository
from services.work_task_repository import WorkTaskRepository
from services.expense_repository import ExpenseRepository
from services.finance_repository import FinanceRepository
from services.document_repository import DocumentRepository
from services.resource_repository import ResourceRepository
from services.resource_folders import ResourceFolderRepository
from services.notification_service import NotificationService
from services.reminder_service import ReminderSettingsRepository

__all__ = [
    'SchoolRepository',
    'WorkTaskRepository',
    'ExpenseRepository',
    'FinanceRepository',
    'DocumentRepository',
    'ResourceRepository',
    'ResourceFolderRepository',
    'NotificationService',
    'ReminderSettingsRepository'
]
