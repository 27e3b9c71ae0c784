"""
Database seeding for Finomik CRM.
Creates the default team profile, finance settings row and resource folders.
"""

import os
import logging
from database.connection import get_db_session
from database.models import Profile, FinanceSettings

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_EMAIL = os.environ.get('DEFAULT_PROFILE_EMAIL', 'equipo@finomik.com')
DEFAULT_PROFILE_NAME = "Equipo Finomik"


def seed_default_profile(session):
    """Create the default profile if no profile exists."""
    profile = session.query(Profile).first()
    if profile:
        logger.info(f"Profile already exists: {profile.email}")
        return profile

    profile = Profile(
        email=DEFAULT_PROFILE_EMAIL,
        display_name=DEFAULT_PROFILE_NAME
    )
    session.add(profile)
    session.flush()
    logger.info(f"Created default profile: {profile.email}")
    return profile


def seed_finance_settings(session):
    """Create the finance settings singleton if missing."""
    settings = session.query(FinanceSettings).first()
    if settings:
        return settings

    settings = FinanceSettings(starting_cash=None, default_currency='EUR')
    session.add(settings)
    session.flush()
    logger.info("Created default finance settings")
    return settings


def seed_database():
    """
    Seed the database with default data if empty.
    Call this at application startup.
    """
    from services.resource_folders import ResourceFolderRepository

    try:
        with get_db_session() as session:
            seed_default_profile(session)
            seed_finance_settings(session)
            ResourceFolderRepository(session).ensure_default_folders()
            logger.info("Database seeding completed successfully")
            return True
    except Exception as e:
        logger.error(f"Database seeding failed: {e}")
        raise


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    seed_database()
