import requests
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional
from .identifiers import AppId
from .interfaces import AchievementStats, LibraryProviderInterface, OwnedGame

logger = logging.getLogger(__name__)

@dataclass
class SteamConfig:
    """Configuration for the Steam Web API"""
    api_key: str
    base_url: str = "https://api.steampowered.com"
    timeout: float = 10.0

class SteamError(Exception):
    """Steam Web API call failed"""
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

class SteamClient(LibraryProviderInterface):
    """Owned games and achievements from the Steam Web API"""

    def __init__(self, config: SteamConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        self.session.headers.update({
            "accept": "application/json"
        })

    def make_request(self, endpoint: str, params: Dict = None) -> requests.Response:
        """GET an endpoint with the API key attached; every call is timeout-bound"""
        url = f"{self.config.base_url}/{endpoint.lstrip('/')}"
        params = dict(params or {})
        params["key"] = self.config.api_key
        params["format"] = "json"
        try:
            return self.session.get(url, params=params, timeout=self.config.timeout)
        except requests.exceptions.Timeout:
            logger.warning(f"Steam request timed out: {endpoint}")
            raise SteamError(f"Request timed out: {endpoint}")
        except requests.exceptions.RequestException as e:
            logger.error(f"Steam request exception: {str(e)}")
            raise SteamError(f"Request failed: {str(e)}")

    @staticmethod
    def parse_json(response: requests.Response, endpoint: str) -> Dict:
        """Decode a JSON object body; anything else counts as an upstream failure"""
        try:
            payload = response.json()
        except ValueError:
            logger.error(f"Steam returned a non-JSON body for {endpoint}: {response.text[:200]}")
            raise SteamError(f"Invalid response from {endpoint}", response.status_code)
        if not isinstance(payload, dict):
            raise SteamError(f"Unexpected response shape from {endpoint}", response.status_code)
        return payload

    def get_owned_games(self, steam_id: str) -> List[OwnedGame]:
        response = self.make_request("IPlayerService/GetOwnedGames/v0001/", {
            "steamid": steam_id,
            "include_appinfo": 0,
            "include_played_free_games": 1
        })
        if response.status_code != 200:
            logger.error(f"GetOwnedGames failed: {response.status_code} - {response.text[:200]}")
            raise SteamError("Could not fetch owned games", response.status_code)

        games = (self.parse_json(response, "GetOwnedGames").get("response") or {}).get("games") or []
        owned = []
        for game in games:
            last_played = game.get("rtime_last_played") or 0
            owned.append(OwnedGame(
                app_id=AppId(game["appid"]),
                playtime_minutes=int(game.get("playtime_forever") or 0),
                playtime_recent_minutes=game.get("playtime_2weeks"),
                last_played=datetime.fromtimestamp(last_played, tz=timezone.utc) if last_played else None,
            ))
        logger.info(f"Fetched {len(owned)} owned games for steam id {steam_id}")
        return owned

    def get_achievements(self, steam_id: str, app_id: AppId) -> Optional[AchievementStats]:
        """None when the title has no achievements or stats are private"""
        response = self.make_request("ISteamUserStats/GetPlayerAchievements/v0001/", {
            "steamid": steam_id,
            "appid": int(app_id)
        })
        if response.status_code == 400:
            return None
        if response.status_code != 200:
            raise SteamError(f"Could not fetch achievements for app {app_id}", response.status_code)

        stats = self.parse_json(response, "GetPlayerAchievements").get("playerstats") or {}
        if not stats.get("success", False):
            return None
        achievements = stats.get("achievements") or []
        if not achievements:
            return None
        earned = sum(1 for a in achievements if a.get("achieved"))
        return AchievementStats(earned=earned, total=len(achievements))
