"""
Work Task Repository - Team task management with reminders.

Work tasks are internal to-dos (distinct from school follow-up tasks).
When a task's remind_at passes, its assignee receives an in-app notification.
"""

import logging
from datetime import datetime
from typing import List, Optional, Dict, Any
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import or_, case, func, select

from database.models import WorkTask, WorkTaskLink
from app.utils.helpers import parse_datetime
from validators import validate_choice, validate_required_fields, require_valid

logger = logging.getLogger(__name__)

WORK_TASK_STATUSES = ['open', 'in_progress', 'done', 'archived']
WORK_TASK_PRIORITIES = ['low', 'medium', 'high']
WORK_TASK_LINK_TYPES = ['client', 'deal', 'project', 'internal']
ACTIVE_STATUSES = ['open', 'in_progress']
SORT_COLUMNS = ['due_at', 'priority', 'updated_at']

WORK_TASK_NOTIFICATION_TYPE = 'work_task_reminder'


class WorkTaskRepository:
    """Repository for work tasks, their links and reminder notifications."""

    def __init__(self, session: Session):
        self.session = session

    def _get(self, task_id: str) -> Optional[WorkTask]:
        return self.session.query(WorkTask).options(
            selectinload(WorkTask.links)
        ).filter(WorkTask.id == task_id).first()

    def _validate(self, data: Dict, partial: bool = False):
        if not partial:
            require_valid(validate_required_fields(data, ['title']), 'title')
        if 'title' in data and not str(data['title'] or '').strip():
            require_valid((False, "Title cannot be empty"), 'title')
        if 'status' in data:
            require_valid(validate_choice(data['status'], WORK_TASK_STATUSES), 'status')
        if 'priority' in data:
            require_valid(validate_choice(data['priority'], WORK_TASK_PRIORITIES), 'priority')

    def create_task(self, data: Dict, created_by_user_id: str = None) -> Dict:
        """Create an open task. The assignee defaults to the creator."""
        self._validate(data)

        description = (data.get('description') or '').strip() or None
        task = WorkTask(
            title=data['title'].strip(),
            description=description,
            status='open',
            priority=data.get('priority', 'medium'),
            due_at=parse_datetime(data.get('due_at')),
            remind_at=parse_datetime(data.get('remind_at')),
            assignee_user_id=data.get('assignee_user_id') or created_by_user_id,
            created_by_user_id=created_by_user_id
        )
        self.session.add(task)
        self.session.flush()

        if data.get('links'):
            self._replace_links(task, data['links'])

        logger.info(f"Created work task: {task.id}")
        return task.to_dict()

    def get_task(self, task_id: str) -> Optional[Dict]:
        task = self._get(task_id)
        return task.to_dict() if task else None

    def update_task(self, task_id: str, data: Dict) -> Optional[Dict]:
        """Partial update. Moving to 'done' stamps completed_at."""
        self._validate(data, partial=True)

        task = self._get(task_id)
        if not task:
            return None

        if 'title' in data:
            task.title = data['title'].strip()
        if 'description' in data:
            task.description = (data['description'] or '').strip() or None
        if 'status' in data:
            task.status = data['status']
            if data['status'] == 'done':
                task.completed_at = datetime.utcnow()
        if 'priority' in data:
            task.priority = data['priority']
        if 'due_at' in data:
            task.due_at = parse_datetime(data['due_at'])
        if 'remind_at' in data:
            task.remind_at = parse_datetime(data['remind_at'])
        if 'assignee_user_id' in data:
            task.assignee_user_id = data['assignee_user_id']
        if 'reminder_notified_at' in data:
            task.reminder_notified_at = parse_datetime(data['reminder_notified_at'])
        if 'links' in data:
            self._replace_links(task, data['links'] or [])

        task.updated_at = datetime.utcnow()
        self.session.flush()

        logger.info(f"Updated work task: {task_id}")
        return task.to_dict()

    def mark_done(self, task_id: str) -> Optional[Dict]:
        return self.update_task(task_id, {'status': 'done'})

    def snooze(self, task_id: str, remind_at) -> Optional[Dict]:
        """Push the reminder to a new time and re-arm it."""
        return self.update_task(task_id, {
            'remind_at': remind_at,
            'reminder_notified_at': None
        })

    def delete_task(self, task_id: str) -> bool:
        task = self._get(task_id)
        if not task:
            return False
        self.session.delete(task)
        self.session.flush()
        return True

    def _replace_links(self, task: WorkTask, links: List[Dict]):
        task.links.clear()
        for link in links:
            entity_type = link.get('entity_type', 'internal')
            require_valid(validate_choice(entity_type, WORK_TASK_LINK_TYPES), 'entity_type')
            task.links.append(WorkTaskLink(
                entity_type=entity_type,
                entity_id=None if entity_type == 'internal' else link.get('entity_id')
            ))
        self.session.flush()

    def update_links(self, task_id: str, links: List[Dict]) -> Optional[Dict]:
        """Replace every link of a task."""
        task = self._get(task_id)
        if not task:
            return None
        self._replace_links(task, links)
        return task.to_dict()

    # =========================================================================
    # LISTING
    # =========================================================================

    def list_my_tasks(self, assignee_user_id: str) -> List[Dict]:
        """Open and in-progress tasks for one person, soonest first."""
        tasks = self.session.query(WorkTask).options(
            selectinload(WorkTask.links)
        ).filter(
            WorkTask.assignee_user_id == assignee_user_id,
            WorkTask.status.in_(ACTIVE_STATUSES)
        ).order_by(
            WorkTask.due_at.is_(None), WorkTask.due_at.asc(),
            WorkTask.remind_at.is_(None), WorkTask.remind_at.asc()
        ).all()
        return [t.to_dict() for t in tasks]

    def list_all_tasks(self, filters: Dict[str, Any] = None, sort_by: str = 'updated_at',
                       sort_asc: bool = False, limit: int = 500, offset: int = 0,
                       now: datetime = None) -> List[Dict]:
        """
        List non-archived tasks.

        Args:
            filters: assignee_user_id, status (str or list), priority, due_from,
                     due_to, overdue, search, entity_type
            sort_by: due_at, priority or updated_at
            sort_asc: Ascending order when True
            limit: Page size
            offset: Page start
            now: Reference time for the overdue filter

        Returns:
            List of task dicts
        """
        filters = filters or {}
        query = self.session.query(WorkTask).options(
            selectinload(WorkTask.links)
        ).filter(WorkTask.status != 'archived')

        status = filters.get('status')
        due_to = parse_datetime(filters.get('due_to'))
        if filters.get('overdue'):
            status = ACTIVE_STATUSES
            due_to = now or datetime.now()

        if filters.get('assignee_user_id'):
            query = query.filter(WorkTask.assignee_user_id == filters['assignee_user_id'])
        if status:
            if isinstance(status, (list, tuple)):
                query = query.filter(WorkTask.status.in_(status))
            else:
                query = query.filter(WorkTask.status == status)
        if filters.get('priority'):
            query = query.filter(WorkTask.priority == filters['priority'])
        if filters.get('due_from'):
            query = query.filter(WorkTask.due_at >= parse_datetime(filters['due_from']))
        if due_to:
            query = query.filter(WorkTask.due_at <= due_to)
        if filters.get('search') and filters['search'].strip():
            term = f"%{filters['search'].strip().lower()}%"
            query = query.filter(or_(
                func.lower(WorkTask.title).like(term),
                func.lower(WorkTask.description).like(term)
            ))
        if filters.get('entity_type'):
            linked_ids = select(WorkTaskLink.task_id).where(
                WorkTaskLink.entity_type == filters['entity_type']
            )
            query = query.filter(WorkTask.id.in_(linked_ids))

        if sort_by not in SORT_COLUMNS:
            sort_by = 'updated_at'
        if sort_by == 'priority':
            column = case({'low': 0, 'medium': 1, 'high': 2}, value=WorkTask.priority, else_=1)
        else:
            column = getattr(WorkTask, sort_by)
        order = column.asc() if sort_asc else column.desc()
        if sort_by == 'due_at':
            query = query.order_by(WorkTask.due_at.is_(None), order)
        else:
            query = query.order_by(order)

        tasks = query.offset(offset).limit(limit).all()
        return [t.to_dict() for t in tasks]

    # =========================================================================
    # REMINDERS
    # =========================================================================

    def process_reminder_notifications(self, now: datetime = None, email_sender=None) -> int:
        """
        Notify assignees of tasks whose reminder time has passed.

        Each task is notified once: reminder_notified_at is stamped after the
        notification is created. The assignee is also mailed when SMTP
        is configured. Returns the number of notifications created.
        """
        from services.notification_service import NotificationService

        now = now or datetime.now()
        tasks = self.session.query(WorkTask).filter(
            WorkTask.remind_at.isnot(None),
            WorkTask.remind_at <= now,
            WorkTask.reminder_notified_at.is_(None),
            WorkTask.status.in_(ACTIVE_STATUSES)
        ).all()

        notifications = NotificationService(self.session, email_sender=email_sender)
        created = 0
        for task in tasks:
            if not task.assignee_user_id:
                continue
            notification = notifications.create_notification(
                title=f"Recordatorio: {task.title}",
                message=task.description or '',
                notification_type=WORK_TASK_NOTIFICATION_TYPE,
                user_id=task.assignee_user_id,
                entity_type='work_task',
                entity_id=task.id,
                send_email=True
            )
            if notification:
                task.reminder_notified_at = now
                created += 1

        self.session.flush()
        if created:
            logger.info(f"Created {created} work task reminder notification(s)")
        return created

    def get_unread_notification_count(self, user_id: str) -> int:
        from services.notification_service import NotificationService
        return NotificationService(self.session).get_unread_count(
            user_id, notification_type=WORK_TASK_NOTIFICATION_TYPE
        )

    def mark_notification_read(self, notification_id: str) -> bool:
        from services.notification_service import NotificationService
        return NotificationService(self.session).mark_as_read(notification_id)

    def mark_all_notifications_read(self, user_id: str) -> int:
        from services.notification_service import NotificationService
        return NotificationService(self.session).mark_all_as_read(
            user_id, notification_type=WORK_TASK_NOTIFICATION_TYPE
        )
