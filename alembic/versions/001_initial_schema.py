"""Initial database schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates all tables for Finomik CRM: profiles, schools pipeline, tasks,
work tasks, notifications, expenses, finance, documents and resources.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _id():
    return sa.Column('id', sa.String(36), nullable=False)


def _created_at():
    return sa.Column('created_at', sa.DateTime(), default=sa.func.now())


def _updated_at():
    return sa.Column('updated_at', sa.DateTime(), default=sa.func.now())


def _sync_columns():
    return [
        sa.Column('external_source', sa.String(50)),
        sa.Column('external_id', sa.String(100)),
        sa.Column('synced_at', sa.DateTime()),
    ]


def upgrade() -> None:
    # Profiles & settings
    op.create_table('profiles',
        _id(),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(255)),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    op.create_table('reminder_settings',
        _id(),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('settings', postgresql.JSONB, default={}),
        _updated_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )

    # Schools pipeline
    op.create_table('schools',
        _id(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('city', sa.String(255)),
        sa.Column('region', sa.String(255)),
        sa.Column('phone', sa.String(50)),
        sa.Column('email', sa.String(255)),
        sa.Column('contact_person', sa.String(255)),
        sa.Column('role', sa.String(255)),
        sa.Column('notes', sa.Text()),
        sa.Column('phase', sa.String(50), default='Lead'),
        sa.Column('status', sa.String(50), default='N/A'),
        sa.Column('milestones', postgresql.JSONB, default=[]),
        sa.Column('assigned_to_id', sa.String(36)),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['assigned_to_id'], ['profiles.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_schools_phase', 'schools', ['phase'])
    op.create_index('ix_schools_email', 'schools', ['email'])
    op.create_index('ix_schools_updated_at', 'schools', ['updated_at'])

    op.create_table('activities',
        _id(),
        sa.Column('school_id', sa.String(36), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('description', sa.Text(), default=''),
        sa.Column('date', sa.DateTime()),
        _created_at(),
        sa.ForeignKeyConstraint(['school_id'], ['schools.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('tasks',
        _id(),
        sa.Column('school_id', sa.String(36), nullable=False),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('due_time', sa.String(5)),
        sa.Column('priority', sa.String(10), default='Media'),
        sa.Column('completed', sa.Boolean(), default=False),
        sa.Column('assigned_to', sa.String(255)),
        sa.Column('is_meeting', sa.Boolean(), default=False),
        sa.Column('google_event_id', sa.String(255)),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['school_id'], ['schools.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_tasks_school', 'tasks', ['school_id'])
    op.create_index('ix_tasks_due_date', 'tasks', ['due_date'])

    # Work tasks
    op.create_table('work_tasks',
        _id(),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('status', sa.String(20), default='open'),
        sa.Column('priority', sa.String(10), default='medium'),
        sa.Column('due_at', sa.DateTime()),
        sa.Column('remind_at', sa.DateTime()),
        sa.Column('assignee_user_id', sa.String(36)),
        sa.Column('created_by_user_id', sa.String(36)),
        sa.Column('completed_at', sa.DateTime()),
        sa.Column('reminder_notified_at', sa.DateTime()),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['assignee_user_id'], ['profiles.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['profiles.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_work_tasks_assignee', 'work_tasks', ['assignee_user_id'])
    op.create_index('ix_work_tasks_status', 'work_tasks', ['status'])
    op.create_index('ix_work_tasks_remind_at', 'work_tasks', ['remind_at'])

    op.create_table('work_task_links',
        _id(),
        sa.Column('task_id', sa.String(36), nullable=False),
        sa.Column('entity_type', sa.String(20), nullable=False),
        sa.Column('entity_id', sa.String(36)),
        _created_at(),
        sa.ForeignKeyConstraint(['task_id'], ['work_tasks.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )

    # Notifications
    op.create_table('notifications',
        _id(),
        sa.Column('user_id', sa.String(36)),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text()),
        sa.Column('notification_type', sa.String(50), default='info'),
        sa.Column('priority', sa.String(20), default='normal'),
        sa.Column('entity_type', sa.String(50)),
        sa.Column('entity_id', sa.String(36)),
        sa.Column('is_read', sa.Boolean(), default=False),
        sa.Column('read_at', sa.DateTime()),
        sa.Column('sent_email', sa.Boolean(), default=False),
        sa.Column('extra_data', postgresql.JSONB, default={}),
        _created_at(),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_user', 'notifications', ['user_id'])
    op.create_index('ix_notifications_is_read', 'notifications', ['is_read'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])

    # Accounting expenses
    op.create_table('expenses',
        _id(),
        sa.Column('document_number', sa.String(100)),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date()),
        sa.Column('description', sa.Text(), default=''),
        sa.Column('supplier_name', sa.String(255), default=''),
        sa.Column('supplier_tax_id', sa.String(50)),
        sa.Column('account_code', sa.String(50), default=''),
        sa.Column('cost_center', sa.String(100)),
        sa.Column('currency', sa.String(3), default='EUR'),
        sa.Column('amount_base', sa.Float(), default=0.0),
        sa.Column('tax_rate', sa.Float(), default=0.0),
        sa.Column('tax_amount', sa.Float(), default=0.0),
        sa.Column('total_amount', sa.Float(), default=0.0),
        sa.Column('payment_method', sa.String(50), default=''),
        sa.Column('paid', sa.Boolean(), default=False),
        sa.Column('paid_date', sa.Date()),
        sa.Column('school_id', sa.String(36)),
        sa.Column('exported_at', sa.DateTime()),
        sa.Column('created_by', sa.String(36)),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['school_id'], ['schools.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_expenses_date', 'expenses', ['date'])
    op.create_index('ix_expenses_exported_at', 'expenses', ['exported_at'])

    # Finance
    op.create_table('finance_contracts',
        _id(),
        sa.Column('client_id', sa.String(36)),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date()),
        sa.Column('frequency', sa.String(20), default='monthly'),
        sa.Column('amount', sa.Float(), default=0.0),
        sa.Column('currency', sa.String(3), default='EUR'),
        sa.Column('status', sa.String(20), default='active'),
        *_sync_columns(),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['client_id'], ['schools.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('finance_invoices',
        _id(),
        sa.Column('contract_id', sa.String(36)),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('amount', sa.Float(), default=0.0),
        sa.Column('currency', sa.String(3), default='EUR'),
        sa.Column('issue_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date()),
        sa.Column('status', sa.String(20), default='draft'),
        *_sync_columns(),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['contract_id'], ['finance_contracts.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_finance_invoices_status', 'finance_invoices', ['status'])
    op.create_index('ix_finance_invoices_issue_date', 'finance_invoices', ['issue_date'])

    op.create_table('finance_expenses',
        _id(),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('vendor', sa.String(255), default=''),
        sa.Column('category', sa.String(100), default='other'),
        sa.Column('amount', sa.Float(), default=0.0),
        sa.Column('currency', sa.String(3), default='EUR'),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date()),
        sa.Column('status', sa.String(20), default='pending'),
        sa.Column('is_recurring', sa.Boolean(), default=False),
        sa.Column('recurrence_rule', sa.String(100)),
        *_sync_columns(),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_finance_expenses_status', 'finance_expenses', ['status'])
    op.create_index('ix_finance_expenses_date', 'finance_expenses', ['date'])

    op.create_table('finance_settings',
        _id(),
        sa.Column('starting_cash', sa.Float()),
        sa.Column('default_currency', sa.String(3), default='EUR'),
        _updated_at(),
        sa.PrimaryKeyConstraint('id')
    )

    # Documents
    op.create_table('document_categories',
        _id(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), default=''),
        _created_at(),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('documents',
        _id(),
        sa.Column('category_id', sa.String(36)),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), default=''),
        sa.Column('owner', sa.String(255), default=''),
        sa.Column('document_type', sa.String(100), default=''),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['category_id'], ['document_categories.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )

    # Resources library
    op.create_table('resource_folders',
        _id(),
        sa.Column('parent_id', sa.String(36)),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('school_id', sa.String(36)),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['parent_id'], ['resource_folders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['school_id'], ['schools.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('resources',
        _id(),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('normalized_title', sa.String(500)),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('source', sa.String(20), default='other'),
        sa.Column('type', sa.String(20), default='other'),
        sa.Column('status', sa.String(20), default='draft'),
        sa.Column('version', sa.String(50)),
        sa.Column('owner_user_id', sa.String(36)),
        sa.Column('description', sa.Text()),
        sa.Column('ai_summary', sa.Text()),
        sa.Column('folder_id', sa.String(36)),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['owner_user_id'], ['profiles.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['folder_id'], ['resource_folders.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_resources_status', 'resources', ['status'])
    op.create_index('ix_resources_folder', 'resources', ['folder_id'])

    op.create_table('resource_links',
        _id(),
        sa.Column('resource_id', sa.String(36), nullable=False),
        sa.Column('entity_type', sa.String(20), nullable=False),
        sa.Column('entity_id', sa.String(36)),
        sa.Column('is_primary', sa.Boolean(), default=False),
        _created_at(),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('resource_id', 'entity_type', 'entity_id', name='uq_resource_link')
    )

    op.create_table('resource_aliases',
        _id(),
        sa.Column('resource_id', sa.String(36), nullable=False),
        sa.Column('alias', sa.String(255), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    for table in [
        'resource_aliases', 'resource_links', 'resources', 'resource_folders',
        'documents', 'document_categories',
        'finance_settings', 'finance_expenses', 'finance_invoices', 'finance_contracts',
        'expenses', 'notifications', 'work_task_links', 'work_tasks',
        'tasks', 'activities', 'schools', 'reminder_settings', 'profiles',
    ]:
        op.drop_table(table)
