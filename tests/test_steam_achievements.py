from __future__ import annotations

import pytest


def test_completion_percentage() -> None:
    from game_enricher.clients.steam_client import GameAchievements

    assert GameAchievements(total=0, unlocked=0).completion_percentage == 0.0
    assert GameAchievements(total=100, unlocked=37).completion_percentage == 37.0


def test_join_treats_missing_player_entries_as_locked() -> None:
    from game_enricher.clients.steam_client import join_achievements

    schema = [
        {"name": "ACH_A", "displayName": "First", "description": "d", "icon": "i", "icongray": "g"},
        {"name": "ACH_B", "displayName": "Second", "hidden": 1},
        {"name": "ACH_C", "displayName": "Third"},
    ]
    player = [
        {"apiname": "ACH_A", "achieved": 1, "unlocktime": 1700000000},
        {"apiname": "ACH_B", "achieved": 0, "unlocktime": 0},
    ]
    out = join_achievements(schema, player)

    assert out.total == 3
    assert out.unlocked == 1
    assert [a.achieved for a in out.achievements] == [True, False, False]
    assert out.achievements[0].unlock_time == 1700000000
    assert out.achievements[1].unlock_time is None
    assert out.achievements[1].hidden is True
    assert out.achievements[0].name == "First"


def _resp(status: int, payload):
    class Resp:
        status_code = status
        headers = {}

        def raise_for_status(self):
            return None

        def json(self):
            return payload

    return Resp()


def test_fetch_achievements_joins_schema_and_player(monkeypatch) -> None:
    from game_enricher.clients.steam_client import SteamAchievementsClient

    seen: list[tuple[str, dict]] = []

    def fake_get(_self, url, params=None, **kwargs):
        seen.append((url, dict(params or {})))
        if "GetSchemaForGame" in url:
            return _resp(
                200,
                {
                    "game": {
                        "availableGameStats": {
                            "achievements": [
                                {"name": f"ACH_{i}", "displayName": f"A{i}"} for i in range(100)
                            ]
                        }
                    }
                },
            )
        if "GetPlayerAchievements" in url:
            return _resp(
                200,
                {
                    "playerstats": {
                        "success": True,
                        "achievements": [
                            {"apiname": f"ACH_{i}", "achieved": 1 if i < 37 else 0} for i in range(100)
                        ],
                    }
                },
            )
        raise AssertionError(f"unexpected url {url}")

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)
    client = SteamAchievementsClient(api_key="k", steam_id="7656", min_interval_s=0.0)
    out = client.fetch_achievements(367520)

    assert out is not None
    assert out.total == 100
    assert out.unlocked == 37
    assert out.completion_percentage == 37.0
    player_params = [p for u, p in seen if "GetPlayerAchievements" in u][0]
    assert player_params == {"appid": 367520, "key": "k", "steamid": "7656"}


@pytest.mark.parametrize(
    "player_status,player_payload",
    [
        (200, {"playerstats": {"error": "Profile is not public", "success": False}}),
        (403, {"playerstats": {"error": "Profile is not public", "success": False}}),
        (400, {"playerstats": {"error": "Requested app has no stats", "success": False}}),
    ],
)
def test_private_profile_means_no_unlocks(monkeypatch, player_status, player_payload) -> None:
    from game_enricher.clients.steam_client import SteamAchievementsClient

    def fake_get(_self, url, params=None, **kwargs):
        if "GetSchemaForGame" in url:
            return _resp(
                200,
                {"game": {"availableGameStats": {"achievements": [{"name": "A", "displayName": "A"}]}}},
            )
        return _resp(player_status, player_payload)

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)
    out = SteamAchievementsClient(api_key="k", steam_id="s", min_interval_s=0.0).fetch_achievements(1)
    assert out is not None
    assert out.total == 1
    assert out.unlocked == 0


def test_empty_schema_is_not_applicable(monkeypatch) -> None:
    from game_enricher.clients.steam_client import SteamAchievementsClient

    def fake_get(_self, url, params=None, **kwargs):
        if "GetSchemaForGame" in url:
            return _resp(200, {"game": {"gameName": "Tool", "gameVersion": "1"}})
        return _resp(200, {"playerstats": {"success": True}})

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)
    assert SteamAchievementsClient(api_key="k", steam_id="s", min_interval_s=0.0).fetch_achievements(1) is None


def test_schema_error_propagates(monkeypatch) -> None:
    from game_enricher.clients.steam_client import SteamAchievementsClient
    from game_enricher.errors import ProviderHTTPError

    def fake_get(_self, url, params=None, **kwargs):
        if "GetSchemaForGame" in url:
            return _resp(500, None)
        return _resp(200, {"playerstats": {"success": True, "achievements": []}})

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)
    with pytest.raises(ProviderHTTPError):
        SteamAchievementsClient(api_key="k", steam_id="s", min_interval_s=0.0).fetch_achievements(1)


def test_requires_key_and_steam_id(monkeypatch) -> None:
    from game_enricher.clients.steam_client import SteamAchievementsClient

    def fake_get(*_args, **_kwargs):
        raise AssertionError("no request expected")

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)
    client = SteamAchievementsClient(api_key="k", steam_id="")
    assert client.can_fetch() is False
    assert client.fetch_achievements(1) is None
