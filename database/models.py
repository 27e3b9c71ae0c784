"""
SQLAlchemy models for Finomik CRM.
Defines the tables for the schools pipeline, tasks, notifications,
accounting expenses, finance, documents and the resources library.
"""

import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Text, Float, Boolean, DateTime, Date,
    ForeignKey, JSON, Index, UniqueConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from database.connection import Base


# JSONB on PostgreSQL, plain JSON everywhere else (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), 'postgresql')


def generate_uuid():
    """Generate a new UUID."""
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


# =============================================================================
# PROFILES & SETTINGS
# =============================================================================

class Profile(Base):
    """Team member. Tasks are assigned to profiles and notifications target them."""
    __tablename__ = 'profiles'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, nullable=False)
    display_name = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'display_name': self.display_name,
            'created_at': _iso(self.created_at)
        }


class ReminderSetting(Base):
    """Per-user reminder preferences, stored as a partial JSON document."""
    __tablename__ = 'reminder_settings'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), unique=True, nullable=False)
    settings = Column(JSONType, default=dict)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# =============================================================================
# SCHOOLS PIPELINE
# =============================================================================

class School(Base):
    """A lead/client school moving through the commercial pipeline."""
    __tablename__ = 'schools'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    city = Column(String(255))
    region = Column(String(255))
    phone = Column(String(50))
    email = Column(String(255))
    contact_person = Column(String(255))
    role = Column(String(255))
    notes = Column(Text)
    phase = Column(String(50), default='Lead')
    status = Column(String(50), default='N/A')
    milestones = Column(JSONType, default=list)
    assigned_to_id = Column(String(36), ForeignKey('profiles.id', ondelete='SET NULL'))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    activities = relationship("Activity", back_populates="school", cascade="all, delete-orphan")
    tasks = relationship("Task", back_populates="school", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_schools_phase', 'phase'),
        Index('ix_schools_email', 'email'),
        Index('ix_schools_updated_at', 'updated_at'),
    )

    def to_dict(self, include_children=True):
        data = {
            'id': self.id,
            'name': self.name,
            'city': self.city or '',
            'region': self.region or '',
            'phone': self.phone or '',
            'email': self.email or '',
            'contact_person': self.contact_person or '',
            'role': self.role or '',
            'notes': self.notes or '',
            'phase': self.phase,
            'status': self.status,
            'milestones': self.milestones or [],
            'assigned_to_id': self.assigned_to_id,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }
        if include_children:
            activities = sorted(
                self.activities, key=lambda a: a.date or datetime.min, reverse=True
            )
            tasks = sorted(
                self.tasks, key=lambda t: (t.due_date.isoformat() if t.due_date else '', t.due_time or '')
            )
            data['activities'] = [a.to_dict() for a in activities]
            data['tasks'] = [t.to_dict() for t in tasks]
        return data


class Activity(Base):
    """Logged interaction with a school (call, email, meeting, note)."""
    __tablename__ = 'activities'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    school_id = Column(String(36), ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    type = Column(String(20), nullable=False)  # Llamada, Email, Reunión, Nota
    description = Column(Text, default='')
    date = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)

    school = relationship("School", back_populates="activities")

    def to_dict(self):
        return {
            'id': self.id,
            'school_id': self.school_id,
            'type': self.type,
            'description': self.description or '',
            'date': _iso(self.date),
            'created_at': _iso(self.created_at)
        }


class Task(Base):
    """Follow-up task or meeting attached to a school."""
    __tablename__ = 'tasks'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    school_id = Column(String(36), ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(500), nullable=False)
    due_date = Column(Date, nullable=False)
    due_time = Column(String(5))  # HH:MM, None = 09:00
    priority = Column(String(10), default='Media')  # Baja, Media, Alta
    completed = Column(Boolean, default=False)
    assigned_to = Column(String(255))
    is_meeting = Column(Boolean, default=False)
    google_event_id = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    school = relationship("School", back_populates="tasks")

    __table_args__ = (
        Index('ix_tasks_school', 'school_id'),
        Index('ix_tasks_due_date', 'due_date'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'school_id': self.school_id,
            'title': self.title,
            'due_date': _iso(self.due_date),
            'due_time': self.due_time,
            'priority': self.priority,
            'completed': bool(self.completed),
            'assigned_to': self.assigned_to,
            'is_meeting': bool(self.is_meeting),
            'google_event_id': self.google_event_id,
            'created_at': _iso(self.created_at)
        }


# =============================================================================
# WORK TASKS & NOTIFICATIONS
# =============================================================================

class WorkTask(Base):
    """Internal team task with due date, reminder and assignee."""
    __tablename__ = 'work_tasks'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(500), nullable=False)
    description = Column(Text)
    status = Column(String(20), default='open')  # open, in_progress, done, archived
    priority = Column(String(10), default='medium')  # low, medium, high
    due_at = Column(DateTime)
    remind_at = Column(DateTime)
    assignee_user_id = Column(String(36), ForeignKey('profiles.id', ondelete='SET NULL'))
    created_by_user_id = Column(String(36), ForeignKey('profiles.id', ondelete='SET NULL'))
    completed_at = Column(DateTime)
    reminder_notified_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    links = relationship("WorkTaskLink", back_populates="task", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_work_tasks_assignee', 'assignee_user_id'),
        Index('ix_work_tasks_status', 'status'),
        Index('ix_work_tasks_remind_at', 'remind_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'status': self.status,
            'priority': self.priority,
            'due_at': _iso(self.due_at),
            'remind_at': _iso(self.remind_at),
            'assignee_user_id': self.assignee_user_id,
            'created_by_user_id': self.created_by_user_id,
            'completed_at': _iso(self.completed_at),
            'reminder_notified_at': _iso(self.reminder_notified_at),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
            'links': [link.to_dict() for link in self.links]
        }


class WorkTaskLink(Base):
    """Associates a work task with a client, deal, project or nothing (internal)."""
    __tablename__ = 'work_task_links'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    task_id = Column(String(36), ForeignKey('work_tasks.id', ondelete='CASCADE'), nullable=False)
    entity_type = Column(String(20), nullable=False)  # client, deal, project, internal
    entity_id = Column(String(36))
    created_at = Column(DateTime, default=datetime.utcnow)

    task = relationship("WorkTask", back_populates="links")

    def to_dict(self):
        return {
            'id': self.id,
            'task_id': self.task_id,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'created_at': _iso(self.created_at)
        }


class Notification(Base):
    """In-app notifications for reminders and system messages."""
    __tablename__ = 'notifications'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey('profiles.id', ondelete='CASCADE'))  # None = broadcast
    title = Column(String(255), nullable=False)
    message = Column(Text)
    notification_type = Column(String(50), default='info')  # info, reminder, alert
    priority = Column(String(20), default='normal')  # low, normal, high, urgent
    entity_type = Column(String(50))
    entity_id = Column(String(36))
    is_read = Column(Boolean, default=False)
    read_at = Column(DateTime)
    sent_email = Column(Boolean, default=False)
    extra_data = Column(JSONType, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_notifications_user', 'user_id'),
        Index('ix_notifications_is_read', 'is_read'),
        Index('ix_notifications_created_at', 'created_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'title': self.title,
            'message': self.message,
            'notification_type': self.notification_type,
            'priority': self.priority,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'is_read': bool(self.is_read),
            'read_at': _iso(self.read_at),
            'sent_email': bool(self.sent_email),
            'metadata': self.extra_data or {},
            'created_at': _iso(self.created_at)
        }


# =============================================================================
# ACCOUNTING EXPENSES
# =============================================================================

class Expense(Base):
    """Supplier expense ready for export to the accounting package."""
    __tablename__ = 'expenses'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    document_number = Column(String(100))
    date = Column(Date, nullable=False)
    due_date = Column(Date)
    description = Column(Text, default='')
    supplier_name = Column(String(255), default='')
    supplier_tax_id = Column(String(50))
    account_code = Column(String(50), default='')
    cost_center = Column(String(100))
    currency = Column(String(3), default='EUR')
    amount_base = Column(Float, default=0.0)
    tax_rate = Column(Float, default=0.0)
    tax_amount = Column(Float, default=0.0)
    total_amount = Column(Float, default=0.0)
    payment_method = Column(String(50), default='')
    paid = Column(Boolean, default=False)
    paid_date = Column(Date)
    school_id = Column(String(36), ForeignKey('schools.id', ondelete='SET NULL'))
    exported_at = Column(DateTime)
    created_by = Column(String(36))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index('ix_expenses_date', 'date'),
        Index('ix_expenses_exported_at', 'exported_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'document_number': self.document_number,
            'date': _iso(self.date),
            'due_date': _iso(self.due_date),
            'description': self.description or '',
            'supplier_name': self.supplier_name or '',
            'supplier_tax_id': self.supplier_tax_id,
            'account_code': self.account_code or '',
            'cost_center': self.cost_center,
            'currency': self.currency,
            'amount_base': self.amount_base or 0.0,
            'tax_rate': self.tax_rate or 0.0,
            'tax_amount': self.tax_amount or 0.0,
            'total_amount': self.total_amount or 0.0,
            'payment_method': self.payment_method or '',
            'paid': bool(self.paid),
            'paid_date': _iso(self.paid_date),
            'school_id': self.school_id,
            'exported_at': _iso(self.exported_at),
            'created_by': self.created_by,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


# =============================================================================
# FINANCE
# =============================================================================

class FinanceContract(Base):
    """Recurring revenue agreement with a client school."""
    __tablename__ = 'finance_contracts'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    client_id = Column(String(36), ForeignKey('schools.id', ondelete='SET NULL'))
    title = Column(String(255), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date)
    frequency = Column(String(20), default='monthly')  # monthly, quarterly, yearly
    amount = Column(Float, default=0.0)
    currency = Column(String(3), default='EUR')
    status = Column(String(20), default='active')  # active, pending, cancelled, ended
    external_source = Column(String(50))
    external_id = Column(String(100))
    synced_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = relationship("School")

    def to_dict(self):
        return {
            'id': self.id,
            'client_id': self.client_id,
            'client_name': self.client.name if self.client else None,
            'title': self.title,
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'frequency': self.frequency,
            'amount': self.amount or 0.0,
            'currency': self.currency,
            'status': self.status,
            'external_source': self.external_source,
            'external_id': self.external_id,
            'synced_at': _iso(self.synced_at),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class FinanceInvoice(Base):
    """Issued invoice, optionally tied to a contract."""
    __tablename__ = 'finance_invoices'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    contract_id = Column(String(36), ForeignKey('finance_contracts.id', ondelete='SET NULL'))
    title = Column(String(255), nullable=False)
    amount = Column(Float, default=0.0)
    currency = Column(String(3), default='EUR')
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date)
    status = Column(String(20), default='draft')  # draft, sent, paid, overdue, cancelled
    external_source = Column(String(50))
    external_id = Column(String(100))
    synced_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    contract = relationship("FinanceContract")

    __table_args__ = (
        Index('ix_finance_invoices_status', 'status'),
        Index('ix_finance_invoices_issue_date', 'issue_date'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'contract_id': self.contract_id,
            'contract_title': self.contract.title if self.contract else None,
            'title': self.title,
            'amount': self.amount or 0.0,
            'currency': self.currency,
            'issue_date': _iso(self.issue_date),
            'due_date': _iso(self.due_date),
            'status': self.status,
            'external_source': self.external_source,
            'external_id': self.external_id,
            'synced_at': _iso(self.synced_at),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class FinanceExpense(Base):
    """Operating expense tracked for cash flow (distinct from accounting expenses)."""
    __tablename__ = 'finance_expenses'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    vendor = Column(String(255), default='')
    category = Column(String(100), default='other')
    amount = Column(Float, default=0.0)
    currency = Column(String(3), default='EUR')
    date = Column(Date, nullable=False)
    due_date = Column(Date)
    status = Column(String(20), default='pending')  # pending, paid, cancelled
    is_recurring = Column(Boolean, default=False)
    recurrence_rule = Column(String(100))
    external_source = Column(String(50))
    external_id = Column(String(100))
    synced_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index('ix_finance_expenses_status', 'status'),
        Index('ix_finance_expenses_date', 'date'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'vendor': self.vendor or '',
            'category': self.category or 'other',
            'amount': self.amount or 0.0,
            'currency': self.currency,
            'date': _iso(self.date),
            'due_date': _iso(self.due_date),
            'status': self.status,
            'is_recurring': bool(self.is_recurring),
            'recurrence_rule': self.recurrence_rule,
            'external_source': self.external_source,
            'external_id': self.external_id,
            'synced_at': _iso(self.synced_at),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class FinanceSettings(Base):
    """Singleton row with the opening cash balance and currency."""
    __tablename__ = 'finance_settings'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    starting_cash = Column(Float)
    default_currency = Column(String(3), default='EUR')
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'starting_cash': self.starting_cash,
            'default_currency': self.default_currency or 'EUR',
            'updated_at': _iso(self.updated_at)
        }


# =============================================================================
# DOCUMENTS
# =============================================================================

class DocumentCategory(Base):
    """Grouping for company documents."""
    __tablename__ = 'document_categories'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, default='')
    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description or '',
            'created_at': _iso(self.created_at)
        }


class DocumentRecord(Base):
    """Link to a company document (policies, templates, contracts...)."""
    __tablename__ = 'documents'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    category_id = Column(String(36), ForeignKey('document_categories.id', ondelete='SET NULL'))
    title = Column(String(255), nullable=False)
    url = Column(Text, nullable=False)
    description = Column(Text, default='')
    owner = Column(String(255), default='')
    document_type = Column(String(100), default='')
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("DocumentCategory")

    def to_dict(self):
        return {
            'id': self.id,
            'category_id': self.category_id,
            'category_name': self.category.name if self.category else None,
            'title': self.title,
            'url': self.url,
            'description': self.description or '',
            'owner': self.owner or '',
            'document_type': self.document_type or '',
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


# =============================================================================
# RESOURCES LIBRARY
# =============================================================================

class ResourceFolder(Base):
    """Folder in the resources tree. Folders may belong to a school."""
    __tablename__ = 'resource_folders'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    parent_id = Column(String(36), ForeignKey('resource_folders.id', ondelete='CASCADE'))
    name = Column(String(255), nullable=False)
    school_id = Column(String(36), ForeignKey('schools.id', ondelete='SET NULL'))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    children = relationship("ResourceFolder", cascade="all, delete-orphan")

    def to_dict(self):
        return {
            'id': self.id,
            'parent_id': self.parent_id,
            'name': self.name,
            'school_id': self.school_id,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class Resource(Base):
    """External asset (Drive file, Canva design, Loom video...) referenced by URL."""
    __tablename__ = 'resources'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(500), nullable=False)
    normalized_title = Column(String(500))
    url = Column(Text, nullable=False)
    source = Column(String(20), default='other')
    type = Column(String(20), default='other')
    status = Column(String(20), default='draft')  # draft, final, archived
    version = Column(String(50))
    owner_user_id = Column(String(36), ForeignKey('profiles.id', ondelete='SET NULL'))
    description = Column(Text)
    ai_summary = Column(Text)
    folder_id = Column(String(36), ForeignKey('resource_folders.id', ondelete='SET NULL'))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    links = relationship("ResourceLink", back_populates="resource", cascade="all, delete-orphan")
    aliases = relationship("ResourceAlias", back_populates="resource", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_resources_status', 'status'),
        Index('ix_resources_folder', 'folder_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'normalized_title': self.normalized_title,
            'url': self.url,
            'source': self.source,
            'type': self.type,
            'status': self.status,
            'version': self.version,
            'owner_user_id': self.owner_user_id,
            'description': self.description,
            'ai_summary': self.ai_summary,
            'folder_id': self.folder_id,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class ResourceLink(Base):
    """Attaches a resource to a CRM entity; one link per entity may be primary."""
    __tablename__ = 'resource_links'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    resource_id = Column(String(36), ForeignKey('resources.id', ondelete='CASCADE'), nullable=False)
    entity_type = Column(String(20), nullable=False)  # client, deal, project, task, internal
    entity_id = Column(String(36))
    is_primary = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    resource = relationship("Resource", back_populates="links")

    __table_args__ = (
        UniqueConstraint('resource_id', 'entity_type', 'entity_id', name='uq_resource_link'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'resource_id': self.resource_id,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'is_primary': bool(self.is_primary),
            'created_at': _iso(self.created_at)
        }


class ResourceAlias(Base):
    """Alternative name a resource can be found by."""
    __tablename__ = 'resource_aliases'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    resource_id = Column(String(36), ForeignKey('resources.id', ondelete='CASCADE'), nullable=False)
    alias = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    resource = relationship("Resource", back_populates="aliases")

    def to_dict(self):
        return {
            'id': self.id,
            'resource_id': self.resource_id,
            'alias': self.alias,
            'created_at': _iso(self.created_at)
        }
