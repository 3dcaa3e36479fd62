"""
Tests for system settings and the default settings initializer.
"""
import pytest

from pickem.database.init_defaults import DEFAULT_SETTINGS, init_defaults
from pickem.errors import NotFoundError
from pickem.utils import constants as c


@pytest.mark.asyncio
async def test_update_setting_creates_then_updates(services):
    settings = services.get_system_settings_service()

    created = await settings.update_setting("smtp", "host", "smtp.example.com", description="SMTP server host")
    updated = await settings.update_setting("smtp", "host", "mail.example.com", encrypted=True)

    assert created["id"] == "smtp_host"
    assert updated["id"] == "smtp_host"
    assert updated["value"] == "mail.example.com"
    assert updated["encrypted"] is True
    # Description survives an update that does not supply one
    assert updated["description"] == "SMTP server host"
    assert updated["created_at"] == created["created_at"]
    assert len(await settings.get_settings_by_category("smtp")) == 1


@pytest.mark.asyncio
async def test_get_missing_setting(services):
    assert await services.get_system_settings_service().get_setting("smtp", "nope") is None


@pytest.mark.asyncio
async def test_settings_grouped_by_category(services):
    settings = services.get_system_settings_service()
    await settings.update_setting("smtp", "port", "587")
    await settings.update_setting("smtp", "host", "smtp.example.com")
    await settings.update_setting("features", "signups", "true")

    assert [s["key"] for s in await settings.get_settings_by_category("smtp")] == ["host", "port"]
    grouped = await settings.get_settings_for_categories(["smtp", "features", "empty"])
    assert {k: [s["key"] for s in v] for k, v in grouped.items()} == {
        "smtp": ["host", "port"],
        "features": ["signups"],
        "empty": [],
    }


@pytest.mark.asyncio
async def test_delete_setting(services):
    settings = services.get_system_settings_service()
    await settings.update_setting("smtp", "host", "smtp.example.com")

    await settings.delete_setting("smtp", "host")

    assert await settings.get_setting("smtp", "host") is None
    with pytest.raises(NotFoundError):
        await settings.delete_setting("smtp", "host")


@pytest.mark.asyncio
async def test_init_defaults_creates_missing_only(services, monkeypatch):
    settings = services.get_system_settings_service()
    monkeypatch.setenv("SMTP_HOST", "env.example.com")
    monkeypatch.delenv("SMTP_PORT", raising=False)
    await settings.update_setting("smtp", "user", "admin-set")

    created = await init_defaults(settings)

    assert created == len(DEFAULT_SETTINGS) - 1
    assert (await settings.get_setting("smtp", "host"))["value"] == "env.example.com"
    assert (await settings.get_setting("smtp", "port"))["value"] == "587"
    assert (await settings.get_setting("smtp", "user"))["value"] == "admin-set"
    assert (await settings.get_setting("smtp", "pass"))["encrypted"] is False
    assert await init_defaults(settings) == 0


@pytest.mark.asyncio
async def test_setting_stored_under_foreign_id(services, provider):
    """Rows written by other tools keep their own id and are still found by category and key."""
    settings = services.get_system_settings_service()
    await provider.put(
        c.SYSTEM_SETTINGS,
        {"id": "legacy-1", "category": "smtp", "key": "host", "value": "old.example.com", "encrypted": False},
    )

    assert (await settings.get_setting("smtp", "host"))["id"] == "legacy-1"
    updated = await settings.update_setting("smtp", "host", "new.example.com")
    assert updated["id"] == "legacy-1"
    assert len(await settings.get_settings_by_category("smtp")) == 1

    await settings.delete_setting("smtp", "host")
    assert await settings.get_setting("smtp", "host") is None
