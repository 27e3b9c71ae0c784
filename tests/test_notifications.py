"""
Tests for in-app notifications and their email delivery
"""
import smtplib
from datetime import datetime, timedelta

import pytest
from unittest.mock import Mock

from database.models import Notification, Profile
from services.notification_service import NotificationService


@pytest.fixture
def sender():
    email = Mock()
    email.enabled = True
    return email


@pytest.fixture
def service(db_session, sender):
    return NotificationService(db_session, email_sender=sender)


@pytest.mark.unit
class TestNotificationService:
    """Tests for reading and updating notifications"""

    def test_broadcasts_are_visible_to_everyone(self, service):
        """Test that notifications without user are listed for every profile"""
        service.create_notification('Para todos', 'hola')
        service.create_notification('Para u1', 'hola', user_id='u1')
        service.create_notification('Para u2', 'hola', user_id='u2')

        titles = {n['title'] for n in service.get_notifications(user_id='u1')}
        assert titles == {'Para todos', 'Para u1'}
        assert len(service.get_notifications()) == 3

    def test_unread_count_by_type(self, service):
        """Test counting unread notifications of one type"""
        service.create_notification('A', '', notification_type='reminder', user_id='u1')
        service.create_notification('B', '', notification_type='info', user_id='u1')

        assert service.get_unread_count('u1') == 2
        assert service.get_unread_count('u1', notification_type='reminder') == 1

    def test_mark_as_read(self, service):
        """Test marking one notification read"""
        created = service.create_notification('A', '', user_id='u1')

        assert service.mark_as_read(created['id']) is True
        assert service.get_unread_count('u1') == 0
        assert service.get_notifications(user_id='u1')[0]['read_at'] is not None
        assert service.mark_as_read('missing') is False

    def test_mark_all_as_read(self, service):
        """Test that only the caller's unread notifications change"""
        service.create_notification('A', '', user_id='u1')
        service.create_notification('B', '', user_id='u1')
        service.create_notification('C', '', user_id='u2')

        assert service.mark_all_as_read('u1') == 2
        assert service.get_unread_count('u2') == 1
        assert len(service.get_notifications(user_id='u1', unread_only=True)) == 0

    def test_delete(self, service):
        """Test deleting notifications"""
        created = service.create_notification('A', '')
        assert service.delete_notification(created['id']) is True
        assert service.delete_notification(created['id']) is False

    def test_cleanup_keeps_unread_and_recent(self, db_session, service):
        """Test that only old read notifications are deleted"""
        old_read = service.create_notification('Viejo leído', '')
        service.create_notification('Viejo sin leer', '')
        recent = service.create_notification('Reciente', '')
        service.mark_all_as_read()
        db_session.query(Notification).filter(Notification.title.like('Viejo%')).update(
            {Notification.created_at: datetime.utcnow() - timedelta(days=40)},
            synchronize_session='fetch'
        )
        db_session.query(Notification).filter(Notification.title == 'Viejo sin leer').update(
            {Notification.is_read: False}, synchronize_session='fetch'
        )

        assert service.cleanup_old_notifications(days=30) == 1
        remaining = {n['id'] for n in service.get_notifications()}
        assert old_read['id'] not in remaining
        assert recent['id'] in remaining


@pytest.mark.unit
class TestNotificationEmail:
    """Tests for mailing notifications"""

    def test_mail_sent_to_profile(self, db_session, service, sender):
        """Test that a targeted notification is mailed to its profile"""
        db_session.add(Profile(id='u1', email='ana@finomik.com'))
        db_session.flush()

        created = service.create_notification('Recordatorio', 'Llamar', user_id='u1', send_email=True)

        assert created['sent_email'] is True
        to_email, subject, body = sender.send.call_args.args
        assert to_email == 'ana@finomik.com'
        assert subject == '[Finomik CRM] Recordatorio'
        assert 'Llamar' in body

    def test_no_mail_for_broadcasts(self, service, sender):
        """Test that broadcasts are never mailed"""
        service.create_notification('Para todos', '', send_email=True)
        sender.send.assert_not_called()

    def test_smtp_failure_keeps_notification(self, db_session, service, sender):
        """Test that a mail error leaves the notification stored but unsent"""
        db_session.add(Profile(id='u1', email='ana@finomik.com'))
        db_session.flush()
        sender.send.side_effect = smtplib.SMTPException('refused')

        created = service.create_notification('A', '', user_id='u1', send_email=True)

        assert created['sent_email'] is False
        assert service.get_unread_count('u1') == 1


@pytest.mark.unit
class TestEmailConfig:
    """Tests for building the SMTP sender from app config"""

    def test_sender_from_config(self):
        """Test that the SMTP_* keys configure the sender"""
        from services.notification_service import EmailSender

        email = EmailSender.from_config({
            'SMTP_HOST': 'smtp.finomik.com',
            'SMTP_PORT': 2525,
            'SMTP_USER': 'crm',
            'SMTP_PASSWORD': 'pw',
            'SMTP_FROM_EMAIL': None,
        })

        assert email.enabled is True
        assert email.port == 2525
        assert email.from_email == 'noreply@finomik.com'
        assert EmailSender.from_config({}).enabled is False

    def test_configure_email_sets_default_sender(self, monkeypatch, db_session):
        """Test that services built without a sender use the configured one"""
        import services.notification_service as notification_service

        monkeypatch.setattr(notification_service, '_email_sender', notification_service.EmailSender())
        configured = notification_service.configure_email({'SMTP_HOST': 'smtp.finomik.com', 'SMTP_USER': 'crm'})

        assert notification_service.get_email_sender() is configured
        assert NotificationService(db_session).email is configured

    def test_testing_app_has_mail_disabled(self, app):
        """Test that the testing config never sends mail"""
        from services.notification_service import get_email_sender

        assert get_email_sender().enabled is False
