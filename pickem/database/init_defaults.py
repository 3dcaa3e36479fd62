"""
Initialize default system settings.

Run on startup. Settings that already exist are left untouched, so values
changed by an admin survive restarts.
"""

import asyncio
import logging
import os

from pickem.services.interfaces import SystemSettingsService

logger = logging.getLogger(__name__)

# (category, key, env var, default, encrypted, description)
DEFAULT_SETTINGS = [
    ("smtp", "host", "SMTP_HOST", "", False, "SMTP server host"),
    ("smtp", "port", "SMTP_PORT", "587", False, "SMTP server port"),
    ("smtp", "user", "SMTP_USER", "", False, "SMTP username"),
    ("smtp", "pass", "SMTP_PASS", "", False, "SMTP password"),
    ("smtp", "from", "SMTP_FROM", "", False, "Sender email address"),
]


async def init_defaults(settings_service: SystemSettingsService) -> int:
    """
    Create missing default settings.

    Returns:
        Number of settings created
    """
    created = 0
    for category, key, env_var, default, encrypted, description in DEFAULT_SETTINGS:
        if await settings_service.get_setting(category, key):
            continue
        await settings_service.update_setting(
            category, key, os.getenv(env_var, default), encrypted=encrypted, description=description
        )
        created += 1
    logger.info(f"Default settings initialized ({created} created)")
    return created


async def main():
    from pickem.config import configure_logging
    from pickem.database.seed_teams import seed_teams
    from pickem.services.factory import close_services, init_services

    configure_logging()
    factory = await init_services()
    try:
        await seed_teams(factory.get_nfl_data_service())
        await init_defaults(factory.get_system_settings_service())
    finally:
        await close_services()


if __name__ == "__main__":
    asyncio.run(main())
