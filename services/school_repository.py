"""
School Repository - Database access layer for the commercial pipeline.
Handles schools, their activities and their follow-up tasks.
"""

import logging
from datetime import datetime
from typing import List, Optional, Dict
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import or_, func

from database.models import School, Activity, Task
from app.utils.helpers import parse_date, parse_datetime
from validators import (
    SCHOOL_PHASES, validate_school_data, validate_task_data,
    validate_activity_data, validate_choice, require_valid
)

logger = logging.getLogger(__name__)


class SchoolRepository:
    """Repository for schools, activities and school tasks."""

    SCHOOL_FIELDS = ['name', 'city', 'region', 'phone', 'email', 'contact_person',
                     'role', 'notes', 'phase', 'status', 'milestones', 'assigned_to_id']
    TASK_FIELDS = ['title', 'due_date', 'due_time', 'priority', 'completed',
                   'assigned_to', 'is_meeting', 'google_event_id']

    def __init__(self, session: Session):
        self.session = session

    def _school_query(self):
        # populate_existing keeps children current within a long-lived session
        return self.session.query(School).options(
            selectinload(School.activities),
            selectinload(School.tasks)
        ).populate_existing()

    def _get_school(self, school_id: str) -> Optional[School]:
        return self._school_query().filter(School.id == school_id).first()

    # =========================================================================
    # SCHOOLS
    # =========================================================================

    def list_schools(self, phase: str = None, status: str = None,
                     search: str = None) -> List[Dict]:
        """List schools, most recently updated first."""
        query = self._school_query()
        if phase:
            query = query.filter(School.phase == phase)
        if status:
            query = query.filter(School.status == status)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.filter(or_(
                func.lower(School.name).like(pattern),
                func.lower(School.email).like(pattern),
                func.lower(School.city).like(pattern)
            ))
        schools = query.order_by(School.updated_at.desc()).all()
        return [s.to_dict() for s in schools]

    def get_school(self, school_id: str) -> Optional[Dict]:
        """Get a school by ID with activities and tasks."""
        school = self._get_school(school_id)
        return school.to_dict() if school else None

    def search_schools(self, query: str) -> List[Dict]:
        """Search schools by name, email or city."""
        return self.list_schools(search=query)

    def create_school(self, data: Dict) -> Dict:
        """Create a new school (defaults to phase Lead, status N/A)."""
        require_valid(validate_school_data(data))

        school = School(
            name=data['name'].strip(),
            city=data.get('city', ''),
            region=data.get('region', ''),
            phone=data.get('phone', ''),
            email=(data.get('email') or '').strip(),
            contact_person=data.get('contact_person', ''),
            role=data.get('role', ''),
            notes=data.get('notes', ''),
            phase=data.get('phase', 'Lead'),
            status=data.get('status', 'N/A'),
            milestones=data.get('milestones', []),
            assigned_to_id=data.get('assigned_to_id')
        )
        self.session.add(school)
        self.session.flush()

        logger.info(f"Created school: {school.id}")
        return school.to_dict()

    def update_school(self, school_id: str, data: Dict) -> Optional[Dict]:
        """Update only the fields present in data."""
        require_valid(validate_school_data(data, partial=True))

        school = self._get_school(school_id)
        if not school:
            return None

        for key in self.SCHOOL_FIELDS:
            if key in data:
                setattr(school, key, data[key])

        school.updated_at = datetime.utcnow()
        self.session.flush()

        logger.info(f"Updated school: {school_id}")
        return school.to_dict()

    def delete_school(self, school_id: str) -> bool:
        """Delete a school together with its activities and tasks."""
        school = self._get_school(school_id)
        if not school:
            return False

        self.session.delete(school)
        self.session.flush()

        logger.info(f"Deleted school: {school_id}")
        return True

    def find_duplicate(self, email: str = None, phone: str = None) -> Optional[School]:
        """Find a school by case-insensitive email or exact phone."""
        conditions = []
        if email:
            conditions.append(func.lower(School.email) == email.strip().lower())
        if phone:
            conditions.append(School.phone == phone.strip())
        if not conditions:
            return None
        return self.session.query(School).filter(or_(*conditions)).first()

    # =========================================================================
    # PIPELINE
    # =========================================================================

    def move_to_phase(self, school_id: str, phase: str) -> Optional[Dict]:
        """Move a school to another pipeline phase."""
        require_valid(validate_choice(phase, SCHOOL_PHASES), 'phase')

        school = self._get_school(school_id)
        if not school:
            return None

        if school.phase == phase:
            return school.to_dict()

        old_phase = school.phase
        school.phase = phase
        school.updated_at = datetime.utcnow()
        self.session.flush()

        logger.info(f"Moved school {school_id} from {old_phase} to {phase}")
        return school.to_dict()

    def get_pipeline(self, status: str = None, search: str = None) -> List[Dict]:
        """Schools grouped by phase, in pipeline order."""
        columns = {phase: [] for phase in SCHOOL_PHASES}
        for school in self.list_schools(status=status, search=search):
            columns.setdefault(school['phase'], []).append(school)

        return [
            {'phase': phase, 'count': len(schools), 'schools': schools}
            for phase, schools in columns.items()
        ]

    # =========================================================================
    # ACTIVITIES
    # =========================================================================

    def list_activities(self, school_id: str) -> List[Dict]:
        """Activities for a school, newest first."""
        activities = self.session.query(Activity).filter(
            Activity.school_id == school_id
        ).order_by(Activity.date.desc()).all()
        return [a.to_dict() for a in activities]

    def add_activity(self, school_id: str, data: Dict) -> Optional[Dict]:
        """Log an activity against a school."""
        require_valid(validate_activity_data(data))

        school = self.session.query(School).filter(School.id == school_id).first()
        if not school:
            return None

        activity = Activity(
            school_id=school_id,
            type=data['type'],
            description=data.get('description', ''),
            date=parse_datetime(data.get('date')) or datetime.now()
        )
        school.activities.append(activity)
        school.updated_at = datetime.utcnow()
        self.session.flush()

        logger.info(f"Added {activity.type} activity to school {school_id}")
        return activity.to_dict()

    def update_activity(self, activity_id: str, data: Dict) -> Optional[Dict]:
        require_valid(validate_activity_data(data, partial=True))

        activity = self.session.query(Activity).filter(Activity.id == activity_id).first()
        if not activity:
            return None

        if 'type' in data:
            activity.type = data['type']
        if 'description' in data:
            activity.description = data['description']
        if 'date' in data:
            activity.date = parse_datetime(data['date']) or activity.date
        self.session.flush()
        return activity.to_dict()

    def delete_activity(self, activity_id: str) -> bool:
        activity = self.session.query(Activity).filter(Activity.id == activity_id).first()
        if not activity:
            return False
        self.session.delete(activity)
        self.session.flush()
        return True

    # =========================================================================
    # TASKS
    # =========================================================================

    def list_tasks(self, school_id: str = None, include_completed: bool = True) -> List[Dict]:
        """Tasks ordered by due date then due time."""
        query = self.session.query(Task)
        if school_id:
            query = query.filter(Task.school_id == school_id)
        if not include_completed:
            query = query.filter(Task.completed.is_(False))
        tasks = query.order_by(Task.due_date.asc(), Task.due_time.asc()).all()
        return [t.to_dict() for t in tasks]

    def get_task(self, task_id: str) -> Optional[Dict]:
        task = self.session.query(Task).filter(Task.id == task_id).first()
        return task.to_dict() if task else None

    def create_task(self, school_id: str, data: Dict) -> Optional[Dict]:
        """Create a task (or meeting) for a school."""
        require_valid(validate_task_data(data))

        school = self.session.query(School).filter(School.id == school_id).first()
        if not school:
            return None

        task = Task(
            school_id=school_id,
            title=data['title'].strip(),
            due_date=parse_date(data['due_date']),
            due_time=data.get('due_time') or None,
            priority=data.get('priority', 'Media'),
            completed=bool(data.get('completed', False)),
            assigned_to=data.get('assigned_to'),
            is_meeting=bool(data.get('is_meeting', False))
        )
        school.tasks.append(task)
        school.updated_at = datetime.utcnow()
        self.session.flush()

        logger.info(f"Created task {task.id} for school {school_id}")
        return task.to_dict()

    def update_task(self, task_id: str, data: Dict) -> Optional[Dict]:
        """Update only the task fields present in data."""
        require_valid(validate_task_data(data, partial=True))

        task = self.session.query(Task).filter(Task.id == task_id).first()
        if not task:
            return None

        for key in self.TASK_FIELDS:
            if key not in data:
                continue
            value = data[key]
            if key == 'due_date':
                value = parse_date(value)
            elif key == 'due_time':
                value = value or None
            setattr(task, key, value)

        self.session.flush()
        logger.info(f"Updated task: {task_id}")
        return task.to_dict()

    def toggle_task_completed(self, task_id: str) -> Optional[Dict]:
        """Flip the completed flag of a task."""
        task = self.session.query(Task).filter(Task.id == task_id).first()
        if not task:
            return None

        task.completed = not task.completed
        self.session.flush()
        return task.to_dict()

    def delete_task(self, task_id: str) -> bool:
        task = self.session.query(Task).filter(Task.id == task_id).first()
        if not task:
            return False
        self.session.delete(task)
        self.session.flush()
        return True
