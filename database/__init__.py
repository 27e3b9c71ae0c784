"""
Database package for Finomik CRM.
Provides SQLAlchemy models, connection management, and session handling.
"""

from database.connection import (
    Base,
    configure_engine,
    get_db_session,
    init_db,
    check_db_connection
)

from database.models import (
    Profile,
    ReminderSetting,
    School,
    Activity,
    Task,
    WorkTask,
    WorkTaskLink,
    Notification,
    Expense,
    FinanceContract,
    FinanceInvoice,
    FinanceExpense,
    FinanceSettings,
    DocumentCategory,
    DocumentRecord,
    ResourceFolder,
    Resource,
    ResourceLink,
    ResourceAlias
)

__all__ = [
    # Connection
    'Base',
    'configure_engine',
    'get_db_session',
    'init_db',
    'check_db_connection',
    # Models
    'Profile',
    'ReminderSetting',
    'School',
    'Activity',
    'Task',
    'WorkTask',
    'WorkTaskLink',
    'Notification',
    'Expense',
    'FinanceContract',
    'FinanceInvoice',
    'FinanceExpense',
    'FinanceSettings',
    'DocumentCategory',
    'DocumentRecord',
    'ResourceFolder',
    'Resource',
    'ResourceLink',
    'ResourceAlias'
]
