"""
Service factory.

Selects the SQLite or DynamoDB implementation set once, from the provider's
type, and hands out one instance of each service per factory. Call sites only
ever see the interfaces in pickem.services.interfaces.

Usage:
    from pickem.services.factory import init_services, get_services

    factory = await init_services()
    user = await factory.get_user_service().get_user_by_email("a@example.com")
"""

import logging
from typing import Any, Dict, Optional

from pickem.providers.base import StorageProvider
from pickem.providers.factory import close_provider, init_provider
from pickem.services.dynamodb.game_service import DynamoDBGameService
from pickem.services.dynamodb.invitation_service import DynamoDBInvitationService
from pickem.services.dynamodb.nfl_data_service import DynamoDBNFLDataService
from pickem.services.dynamodb.pick_service import DynamoDBPickService
from pickem.services.dynamodb.season_service import DynamoDBSeasonService
from pickem.services.dynamodb.standings_service import DynamoDBStandingsService
from pickem.services.dynamodb.system_settings_service import DynamoDBSystemSettingsService
from pickem.services.dynamodb.user_service import DynamoDBUserService
from pickem.services.interfaces import (
    GameService,
    InvitationService,
    NFLDataService,
    PickService,
    SeasonService,
    StandingsService,
    SystemSettingsService,
    UserService,
)
from pickem.services.pick_calculator import PickCalculatorService
from pickem.services.sqlite.game_service import SQLiteGameService
from pickem.services.sqlite.invitation_service import SQLiteInvitationService
from pickem.services.sqlite.nfl_data_service import SQLiteNFLDataService
from pickem.services.sqlite.pick_service import SQLitePickService
from pickem.services.sqlite.season_service import SQLiteSeasonService
from pickem.services.sqlite.standings_service import SQLiteStandingsService
from pickem.services.sqlite.system_settings_service import SQLiteSystemSettingsService
from pickem.services.sqlite.user_service import SQLiteUserService

logger = logging.getLogger(__name__)

IMPLEMENTATIONS = {
    "sqlite": {
        "user": SQLiteUserService,
        "season": SQLiteSeasonService,
        "nfl_data": SQLiteNFLDataService,
        "game": SQLiteGameService,
        "pick": SQLitePickService,
        "invitation": SQLiteInvitationService,
        "system_settings": SQLiteSystemSettingsService,
        "standings": SQLiteStandingsService,
    },
    "dynamodb": {
        "user": DynamoDBUserService,
        "season": DynamoDBSeasonService,
        "nfl_data": DynamoDBNFLDataService,
        "game": DynamoDBGameService,
        "pick": DynamoDBPickService,
        "invitation": DynamoDBInvitationService,
        "system_settings": DynamoDBSystemSettingsService,
        "standings": DynamoDBStandingsService,
    },
}


class ServiceFactory:
    """Caches one service instance per name for a single provider."""

    def __init__(self, provider: StorageProvider):
        provider_type = provider.get_type()
        if provider_type not in IMPLEMENTATIONS:
            raise ValueError(f"No service implementations for provider type: {provider_type}")
        self.provider = provider
        self.provider_type = provider_type
        self._classes = IMPLEMENTATIONS[provider_type]
        self._services: Dict[str, Any] = {}

    def _get(self, name: str):
        if name not in self._services:
            cls = self._classes[name]
            if name == "nfl_data":
                self._services[name] = cls(self.provider, season_service=self.get_season_service())
            else:
                self._services[name] = cls(self.provider)
            logger.debug(f"Created {cls.__name__}")
        return self._services[name]

    def get_user_service(self) -> UserService:
        return self._get("user")

    def get_season_service(self) -> SeasonService:
        return self._get("season")

    def get_nfl_data_service(self) -> NFLDataService:
        return self._get("nfl_data")

    def get_game_service(self) -> GameService:
        return self._get("game")

    def get_pick_service(self) -> PickService:
        return self._get("pick")

    def get_invitation_service(self) -> InvitationService:
        return self._get("invitation")

    def get_system_settings_service(self) -> SystemSettingsService:
        return self._get("system_settings")

    def get_standings_service(self) -> StandingsService:
        return self._get("standings")

    def get_pick_calculator(self) -> PickCalculatorService:
        if "pick_calculator" not in self._services:
            self._services["pick_calculator"] = PickCalculatorService(
                self.get_nfl_data_service(), self.get_pick_service()
            )
        return self._services["pick_calculator"]

    def clear_cache(self):
        """Drop cached instances; the next getter call builds fresh ones."""
        self._services.clear()


_factory: Optional[ServiceFactory] = None


async def init_services(config: Optional[Dict[str, Any]] = None) -> ServiceFactory:
    """
    Initialize the process-wide provider and service factory.

    Args:
        config: Storage configuration; read from the environment when omitted

    Returns:
        The process-wide ServiceFactory
    """
    global _factory
    if _factory is None:
        provider = await init_provider(config)
        _factory = ServiceFactory(provider)
        logger.info(f"Services initialized for {_factory.provider_type}")
    return _factory


def get_services() -> ServiceFactory:
    """
    Raises:
        RuntimeError: If init_services() has not run
    """
    if _factory is None:
        raise RuntimeError("Services not initialized; call init_services() at startup")
    return _factory


async def close_services():
    """Forget the service factory and close the storage provider."""
    global _factory
    if _factory is not None:
        _factory.clear_cache()
        _factory = None
    await close_provider()
