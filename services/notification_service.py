"""
Notification Service - In-app notifications for reminders and work tasks.

A notification with no user_id is a broadcast and shows up for every
profile. When SMTP is configured, a notification can also be mailed to
the profile it targets.
"""

import logging
import smtplib
from datetime import datetime, timedelta
from email.mime.text import MIMEText
from typing import Dict, List, Optional

from sqlalchemy import or_, func

from database.models import Notification, Profile

logger = logging.getLogger(__name__)

EMAIL_FOOTER = "Notificación automática de Finomik CRM."
DEFAULT_FROM_EMAIL = 'noreply@finomik.com'


class EmailSender:
    """Plain-text mail over SMTP with STARTTLS."""

    def __init__(self, host: str = None, port: int = 587, user: str = None,
                 password: str = None, from_email: str = DEFAULT_FROM_EMAIL):
        self.host = host or ''
        self.port = int(port or 587)
        self.user = user or ''
        self.password = password or ''
        self.from_email = from_email or DEFAULT_FROM_EMAIL

    @classmethod
    def from_config(cls, config) -> 'EmailSender':
        """Build a sender from the SMTP_* keys of an app config."""
        return cls(
            host=config.get('SMTP_HOST'),
            port=config.get('SMTP_PORT', 587),
            user=config.get('SMTP_USER'),
            password=config.get('SMTP_PASSWORD'),
            from_email=config.get('SMTP_FROM_EMAIL'),
        )

    @property
    def enabled(self) -> bool:
        return bool(self.host and self.user)

    def send(self, to_email: str, subject: str, body: str):
        msg = MIMEText(body, 'plain', 'utf-8')
        msg['Subject'] = subject
        msg['From'] = self.from_email
        msg['To'] = to_email

        with smtplib.SMTP(self.host, self.port) as server:
            server.starttls()
            server.login(self.user, self.password)
            server.send_message(msg)


class NotificationService:
    """Reads and writes notifications within the caller's session."""

    def __init__(self, session, email_sender: EmailSender = None):
        self.session = session
        self.email = email_sender or get_email_sender()

    def _visible_to(self, query, user_id: Optional[str]):
        if user_id:
            query = query.filter(or_(Notification.user_id == user_id, Notification.user_id.is_(None)))
        return query

    def _unread(self, user_id: Optional[str], notification_type: Optional[str]):
        query = self._visible_to(
            self.session.query(Notification).filter(Notification.is_read.is_(False)), user_id
        )
        if notification_type:
            query = query.filter(Notification.notification_type == notification_type)
        return query

    def create_notification(self, title: str, message: str,
                            notification_type: str = 'info',
                            priority: str = 'normal',
                            user_id: str = None,
                            entity_type: str = None,
                            entity_id: str = None,
                            metadata: Dict = None,
                            send_email: bool = False) -> Dict:
        """
        Store a notification and optionally mail it.

        Args:
            title: Short headline
            message: Body text
            notification_type: info, reminder, work_task_reminder, alert
            priority: low, normal, high or urgent
            user_id: Target profile; None broadcasts to everyone
            entity_type: Related record kind (school, work_task)
            entity_id: Related record ID
            metadata: Extra JSON stored alongside
            send_email: Also mail the target profile when SMTP is configured

        Returns:
            The created notification as a dict
        """
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            notification_type=notification_type,
            priority=priority,
            entity_type=entity_type,
            entity_id=entity_id,
            extra_data=metadata or {},
            is_read=False,
            sent_email=False
        )
        self.session.add(notification)
        self.session.flush()

        if send_email and user_id and self.email.enabled:
            notification.sent_email = self._mail(notification)

        logger.info(f"Created {notification_type} notification: {title}")
        return notification.to_dict()

    def get_notifications(self, user_id: str = None, unread_only: bool = False,
                          notification_type: str = None, limit: int = 50) -> List[Dict]:
        """Newest first, including broadcasts."""
        if unread_only:
            query = self._unread(user_id, notification_type)
        else:
            query = self._visible_to(self.session.query(Notification), user_id)
            if notification_type:
                query = query.filter(Notification.notification_type == notification_type)

        rows = query.order_by(Notification.created_at.desc()).limit(limit).all()
        return [n.to_dict() for n in rows]

    def get_unread_count(self, user_id: str = None, notification_type: str = None) -> int:
        count = self._unread(user_id, notification_type).with_entities(func.count(Notification.id)).scalar()
        return count or 0

    def mark_as_read(self, notification_id: str) -> bool:
        notification = self.session.get(Notification, notification_id)
        if notification is None:
            return False
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.utcnow()
            self.session.flush()
        return True

    def mark_all_as_read(self, user_id: str = None, notification_type: str = None) -> int:
        """Returns how many notifications changed."""
        now = datetime.utcnow()
        rows = self._unread(user_id, notification_type).all()
        for notification in rows:
            notification.is_read = True
            notification.read_at = now
        self.session.flush()
        return len(rows)

    def delete_notification(self, notification_id: str) -> bool:
        notification = self.session.get(Notification, notification_id)
        if notification is None:
            return False
        self.session.delete(notification)
        self.session.flush()
        return True

    def cleanup_old_notifications(self, days: int = 30) -> int:
        """Delete read notifications created more than `days` ago."""
        cutoff = datetime.utcnow() - timedelta(days=days)
        deleted = self.session.query(Notification).filter(
            Notification.is_read.is_(True),
            Notification.created_at < cutoff
        ).delete(synchronize_session='fetch')
        self.session.flush()
        return deleted

    def _mail(self, notification: Notification) -> bool:
        profile = self.session.get(Profile, notification.user_id)
        if profile is None or not profile.email:
            return False

        body = f"{notification.title}\n\n{notification.message or ''}\n\n---\n{EMAIL_FOOTER}\n"
        try:
            self.email.send(profile.email, f"[Finomik CRM] {notification.title}", body)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Could not mail notification {notification.id} to {profile.email}: {e}")
            return False

        logger.info(f"Mailed notification {notification.id} to {profile.email}")
        return True


# Sender used when a NotificationService is built without one
_email_sender = EmailSender()


def configure_email(config) -> EmailSender:
    """Install the process-wide sender from app config."""
    global _email_sender
    _email_sender = EmailSender.from_config(config)
    if _email_sender.enabled:
        logger.info(f"Email notifications enabled via {_email_sender.host}:{_email_sender.port}")
    else:
        logger.info("Email notifications disabled (SMTP_HOST/SMTP_USER not set)")
    return _email_sender


def get_email_sender() -> EmailSender:
    return _email_sender
