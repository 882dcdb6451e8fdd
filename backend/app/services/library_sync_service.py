import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional
from app.core.config import Settings, get_settings
from app.core.exceptions import UpstreamServiceException
from app.core.identifiers import AppId
from app.core.interfaces import (
    AchievementStats, EmbeddingRepositoryInterface, LibraryProviderInterface,
    OwnedGame, OwnedItemSignal, PreferenceRepositoryInterface
)
from app.core.steam_client import SteamError
from app.repositories.user_repository import UserProfileRepository
from app.schemas.library import BuildOptions, LibrarySyncResult
from app.services.preference_vector_service import PreferenceVectorService

logger = logging.getLogger(__name__)

class LibrarySyncService:
    """Pulls a user's library upstream, stores the signals and rebuilds the preference vector"""

    def __init__(self, library_provider: LibraryProviderInterface,
                 preference_repo: PreferenceRepositoryInterface,
                 embedding_repo: EmbeddingRepositoryInterface,
                 preference_service: PreferenceVectorService,
                 profile_repo: Optional[UserProfileRepository] = None,
                 settings: Optional[Settings] = None):
        self.library_provider = library_provider
        self.preference_repo = preference_repo
        self.embedding_repo = embedding_repo
        self.preference_service = preference_service
        self.profile_repo = profile_repo
        self.settings = settings or get_settings()

    def sync_library(self, user_id: str, steam_id: str, fetch_achievements: bool = False,
                     options: Optional[BuildOptions] = None) -> LibrarySyncResult:
        """Fetch, store and rebuild; nothing is written unless the rebuild succeeds"""
        try:
            owned = self.library_provider.get_owned_games(steam_id)
        except SteamError as e:
            logger.error(f"Library fetch failed for user {user_id}: {e.message}")
            raise UpstreamServiceException("Could not fetch your game library. Is your profile public?")

        # Never-launched titles are stored too; the weighting threshold skips them
        catalog = self.embedding_repo.get_items(g.app_id for g in owned)
        in_catalog = [g for g in owned if g.app_id in catalog]
        not_in_catalog = len(owned) - len(in_catalog)
        if not_in_catalog:
            logger.info(f"{not_in_catalog} owned titles for user {user_id} are not in the catalog")

        achievements: Dict[AppId, Optional[AchievementStats]] = {}
        failures = 0
        played = [g for g in in_catalog if g.playtime_minutes > 0]
        if fetch_achievements and played:
            achievements, failures = self._fetch_achievements(steam_id, played)

        signals: List[OwnedItemSignal] = []
        for game in in_catalog:
            stats = achievements.get(game.app_id)
            signals.append(OwnedItemSignal(
                user_id=user_id,
                app_id=game.app_id,
                playtime_minutes=game.playtime_minutes,
                last_played=game.last_played,
                achievements_earned=stats.earned if stats else None,
                achievements_total=stats.total if stats else None,
                genres=list(catalog[game.app_id].metadata.genres),
            ))

        result = self.preference_service.replace_and_rebuild(
            user_id, signals, options, enable_quality_weighting=fetch_achievements
        )
        if self.profile_repo is not None:
            self.profile_repo.set_steam_id(user_id, steam_id)

        logger.info(f"Library sync for user {user_id}: {len(owned)} owned, {len(signals)} stored")
        return LibrarySyncResult(
            games_fetched=len(owned),
            games_stored=len(signals),
            games_not_in_catalog=not_in_catalog,
            achievements_fetched=sum(1 for s in achievements.values() if s is not None),
            achievement_failures=failures,
            preference_vector=result.summary(),
        )

    def _fetch_achievements(self, steam_id: str, games: List[OwnedGame]):
        """Per-title fetch on a bounded pool; a failed title only loses its quality data"""
        results: Dict[AppId, Optional[AchievementStats]] = {}
        failures = 0
        with ThreadPoolExecutor(max_workers=self.settings.SYNC_MAX_WORKERS) as executor:
            futures = {
                executor.submit(self.library_provider.get_achievements, steam_id, game.app_id): game.app_id
                for game in games
            }
            for future, app_id in futures.items():
                try:
                    results[app_id] = future.result()
                except Exception as e:
                    failures += 1
                    logger.warning(f"Achievements unavailable for app {app_id}: {str(e)}")
        return results, failures

    def unlink_library(self, user_id: str) -> int:
        """Drop every owned-item signal and the derived preference vector; the learned vector stays"""
        deleted = self.preference_repo.delete_signals(user_id)
        self.preference_repo.clear_preference_vector(user_id)
        if self.profile_repo is not None:
            self.profile_repo.set_steam_id(user_id, None)
        logger.info(f"Unlinked library for user {user_id}: {deleted} signals removed")
        return deleted
