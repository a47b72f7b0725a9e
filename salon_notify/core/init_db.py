import asyncio
import logging
import sys

from sqlalchemy import func, select

from salon_notify.core.config import ENVIRONMENT
from salon_notify.core.database import Base, async_session, db_manager, engine
from salon_notify.core.exceptions import ConfigurationError, PersistenceError

# Registers the notification tables on Base.metadata
from salon_notify.notifications.models import Notification, Staff

logger = logging.getLogger(__name__)


async def init_database():
    """Create the notification and staff tables if they are missing"""
    try:
        logger.info("Starting database initialization...")

        await db_manager.check_connection()
        logger.info("Database connection verified")

        await db_manager.create_tables()
        logger.info("Database tables created/verified")

    except PersistenceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during database initialization: {e}")
        raise PersistenceError(f"Database initialization failed: {str(e)}")


async def verify_database_setup():
    """Check that both tables answer queries and report their row counts"""
    try:
        async with async_session() as session:
            notifications = await session.scalar(select(func.count(Notification.id)))
            staff = await session.scalar(select(func.count(Staff.id)))

        logger.info(
            f"Database verification passed: {notifications} notifications, {staff} staff"
        )
        return {"notifications": notifications, "staff": staff}

    except Exception as e:
        logger.error(f"Database verification failed: {e}")
        raise PersistenceError(f"Database verification failed: {str(e)}")


async def reset_database():
    """Drop and recreate all tables (development/test only)"""
    if ENVIRONMENT.lower() not in ["development", "dev", "test"]:
        raise ConfigurationError(
            "ENVIRONMENT",
            "Database reset is only allowed in development or test environments",
        )

    logger.warning("RESETTING DATABASE - ALL NOTIFICATIONS WILL BE LOST")

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("All tables dropped")
    except Exception as e:
        logger.error(f"Database reset failed: {e}")
        raise PersistenceError(f"Database reset failed: {str(e)}")

    await init_database()
    logger.info("Database reset completed")


COMMANDS = {
    "init": init_database,
    "verify": verify_database_setup,
    "reset": reset_database,
}


if __name__ == "__main__":
    command = sys.argv[1] if len(sys.argv) > 1 else "init"
    if command not in COMMANDS:
        print(f"Unknown command: {command}")
        print(f"Available commands: {', '.join(COMMANDS)}")
        sys.exit(1)

    try:
        asyncio.run(COMMANDS[command]())
    except KeyboardInterrupt:
        logger.info("Database command cancelled by user")
    except Exception as e:
        logger.error(f"Database command '{command}' failed: {e}")
        sys.exit(1)
    finally:
        asyncio.run(db_manager.close_connections())
