from datetime import datetime, timezone

import pytest
import requests
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core.auth import decode_access_token, get_current_user
from app.core.cache import CacheService
from app.core.config import get_settings
from app.core.steam_client import SteamClient, SteamConfig, SteamError
from tests.fakes import FakeRedis

class FakeResponse:

    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = str(self._payload)

    def json(self):
        return self._payload

class HtmlResponse(FakeResponse):
    """Error page served with a 200 by a proxy in front of the API"""

    def __init__(self):
        super().__init__()
        self.text = "<html>Service Unavailable</html>"

    def json(self):
        raise ValueError("Expecting value: line 1 column 1 (char 0)")

class FakeSession:

    def __init__(self, responses=None, error=None):
        self.headers = {}
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        if self.error:
            raise self.error
        return self.responses.pop(0)

def steam(session):
    return SteamClient(SteamConfig(api_key="k", base_url="https://steam.test", timeout=2.5), session=session)

class TestSteamClient:

    def test_owned_games(self):
        session = FakeSession([FakeResponse(payload={"response": {"games": [
            {"appid": 570, "playtime_forever": 1200, "playtime_2weeks": 60, "rtime_last_played": 1700000000},
            {"appid": 440, "playtime_forever": 0, "rtime_last_played": 0},
        ]}})])
        games = steam(session).get_owned_games("765")
        assert [(g.app_id, g.playtime_minutes) for g in games] == [(570, 1200), (440, 0)]
        assert games[0].last_played == datetime.fromtimestamp(1700000000, tz=timezone.utc)
        assert games[1].last_played is None
        url, params, timeout = session.calls[0]
        assert url == "https://steam.test/IPlayerService/GetOwnedGames/v0001/"
        assert params["steamid"] == "765" and params["key"] == "k"
        assert timeout == 2.5

    def test_private_profile_returns_empty_library(self):
        games = steam(FakeSession([FakeResponse(payload={"response": {}})])).get_owned_games("765")
        assert games == []

    def test_http_error(self):
        with pytest.raises(SteamError) as excinfo:
            steam(FakeSession([FakeResponse(status_code=403)])).get_owned_games("765")
        assert excinfo.value.status_code == 403

    def test_network_error(self):
        with pytest.raises(SteamError):
            steam(FakeSession(error=requests.exceptions.ConnectionError("down"))).get_owned_games("765")
        with pytest.raises(SteamError):
            steam(FakeSession(error=requests.exceptions.Timeout())).get_owned_games("765")

    def test_achievements(self):
        payload = {"playerstats": {"success": True, "achievements": [
            {"apiname": "a", "achieved": 1}, {"apiname": "b", "achieved": 0}, {"apiname": "c", "achieved": 1},
        ]}}
        stats = steam(FakeSession([FakeResponse(payload=payload)])).get_achievements("765", 570)
        assert (stats.earned, stats.total) == (2, 3)

    def test_achievements_unavailable(self):
        assert steam(FakeSession([FakeResponse(status_code=400)])).get_achievements("765", 1) is None
        no_stats = FakeResponse(payload={"playerstats": {"success": False}})
        assert steam(FakeSession([no_stats])).get_achievements("765", 1) is None
        with pytest.raises(SteamError):
            steam(FakeSession([FakeResponse(status_code=500)])).get_achievements("765", 1)

    def test_non_json_body_is_a_steam_error(self):
        with pytest.raises(SteamError) as excinfo:
            steam(FakeSession([HtmlResponse()])).get_owned_games("765")
        assert excinfo.value.status_code == 200
        with pytest.raises(SteamError):
            steam(FakeSession([HtmlResponse()])).get_achievements("765", 570)

    def test_non_object_body_is_a_steam_error(self):
        with pytest.raises(SteamError):
            steam(FakeSession([FakeResponse(payload=["unexpected"])])).get_owned_games("765")

class BrokenRedis(FakeRedis):

    def get(self, key):
        raise RedisConnectionError("down")

    def setex(self, key, ttl, value):
        raise RedisConnectionError("down")

class TestCache:

    def test_round_trip(self):
        redis_client = FakeRedis()
        cache = CacheService(client=redis_client)
        assert cache.set_json("k", {"app_id": "570", "n": [1, 2]}, 0)
        assert redis_client.ttls["k"] == 1
        assert cache.get_json("k") == {"app_id": "570", "n": [1, 2]}
        assert cache.get_json("missing") is None

    def test_uncompressed(self):
        redis_client = FakeRedis()
        cache = CacheService(client=redis_client, compress=False)
        cache.set_json("k", [1], 60)
        assert redis_client.data["k"] == b"[1]"
        assert cache.get_json("k") == [1]

    def test_redis_outage_degrades_to_miss(self):
        cache = CacheService(client=BrokenRedis())
        assert cache.get_json("k") is None
        assert cache.set_json("k", 1, 60) is False

class TestAuth:

    def token(self, claims, secret=None):
        settings = get_settings()
        return jwt.encode(claims, secret or settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    def test_decode(self):
        assert decode_access_token(self.token({"sub": "user-9"})) == "user-9"
        assert decode_access_token(self.token({"sub": "user-9"}, secret="other")) is None
        assert decode_access_token(self.token({"role": "x"})) is None
        assert decode_access_token("not-a-token") is None

    def test_current_user(self):
        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=self.token({"sub": "user-9"}))
        assert get_current_user(credentials) == "user-9"
        with pytest.raises(HTTPException) as excinfo:
            get_current_user(None)
        assert excinfo.value.status_code == 401
