from __future__ import annotations

import pytest

HOLLOW_KNIGHT = {
    "id": 14593,
    "name": "Hollow Knight",
    "summary": "A 2D action adventure.",
    "storyline": "Beneath the fading town of Dirtmouth sleeps a kingdom.",
    "rating": 91.5,
    "aggregated_rating": 87.0,
    "first_release_date": 1487894400,
    "genres": [{"id": 8, "name": "Platform"}, {"id": 31, "name": "Adventure"}],
    "involved_companies": [
        {"company": {"name": "Fangamer"}, "developer": False, "publisher": False},
        {"company": {"name": "Team Cherry"}, "developer": True, "publisher": True},
        {"company": {"name": "Other Dev"}, "developer": True, "publisher": False},
    ],
    "external_games": [
        {"category": 5, "uid": "1308320804"},
        {"category": 1, "uid": "367520"},
        {"external_game_source": 26, "uid": "epic-hk"},
    ],
    "cover": {"image_id": "co93cr"},
}


def _resp(status: int, payload):
    class Resp:
        status_code = status
        headers = {}

        def raise_for_status(self):
            return None

        def json(self):
            return payload

    return Resp()


def test_parse_metadata_extracts_fields() -> None:
    from game_enricher.clients.igdb_client import parse_metadata

    meta = parse_metadata(HOLLOW_KNIGHT)
    assert meta is not None
    assert meta.igdb_id == 14593
    assert meta.developer == "Team Cherry"
    assert meta.publisher == "Team Cherry"
    assert meta.genres == ["Platform", "Adventure"]
    assert meta.release_date == "2017-02-24"
    assert meta.steam_app_id == 367520
    assert meta.gog_id == "1308320804"
    assert meta.epic_id == "epic-hk"
    assert meta.amazon_id is None
    assert meta.cover_url == "https://images.igdb.com/igdb/image/upload/t_cover_big/co93cr.jpg"
    assert meta.description == HOLLOW_KNIGHT["storyline"]


def test_description_falls_back_to_summary() -> None:
    from game_enricher.clients.igdb_client import parse_metadata

    meta = parse_metadata({"id": 1, "name": "X", "summary": "Short."})
    assert meta.description == "Short."
    assert meta.genres == []
    assert meta.steam_app_id is None


def test_search_query_escapes_quotes() -> None:
    from game_enricher.clients.igdb_client import build_search_query

    q = build_search_query('Say "Hi"\\now')
    assert q.startswith('search "Say \\"Hi\\"\\\\now";')
    assert "fields name, summary, storyline" in q
    assert "external_games.uid" in q
    assert q.endswith("limit 1;")


def test_fetch_metadata_acquires_token_lazily(monkeypatch) -> None:
    from game_enricher.clients.igdb_client import IGDBClient

    calls: list[tuple[str, dict | None]] = []

    def fake_post(_self, url, headers=None, data=None, **kwargs):
        calls.append((url, headers))
        if url.startswith("https://id.twitch.tv/"):
            assert data["grant_type"] == "client_credentials"
            return _resp(200, {"access_token": "tok1", "expires_in": 5000})
        assert url == "https://api.igdb.com/v4/games"
        assert data.startswith('search "Hollow Knight";')
        return _resp(200, [HOLLOW_KNIGHT])

    monkeypatch.setattr("requests.sessions.Session.post", fake_post)
    client = IGDBClient(client_id="cid", client_secret="secret", min_interval_s=0.0)
    assert calls == []

    meta = client.fetch_metadata("Hollow Knight")
    assert meta.igdb_id == 14593
    meta = client.fetch_metadata("Hollow Knight")
    assert client.stats["http_oauth_token"] == 1
    assert calls[1][1]["Authorization"] == "Bearer tok1"
    assert calls[1][1]["Client-ID"] == "cid"


def test_401_reauthenticates_once(monkeypatch) -> None:
    from game_enricher.clients.igdb_client import IGDBClient

    tokens = iter(["fresh"])
    seen_auth: list[str] = []

    def fake_post(_self, url, headers=None, data=None, **kwargs):
        if url.startswith("https://id.twitch.tv/"):
            return _resp(200, {"access_token": next(tokens)})
        seen_auth.append(headers["Authorization"])
        if headers["Authorization"] == "Bearer expired":
            return _resp(401, {"message": "Authorization Failure"})
        return _resp(200, [HOLLOW_KNIGHT])

    monkeypatch.setattr("requests.sessions.Session.post", fake_post)
    client = IGDBClient(client_id="cid", client_secret="secret", min_interval_s=0.0)
    client._token = "expired"

    meta = client.fetch_metadata("Hollow Knight")
    assert meta is not None
    assert seen_auth == ["Bearer expired", "Bearer fresh"]
    assert client.stats["reauth"] == 1


def test_second_401_is_an_error(monkeypatch) -> None:
    from game_enricher.clients.igdb_client import IGDBClient
    from game_enricher.errors import ProviderHTTPError

    def fake_post(_self, url, **kwargs):
        if url.startswith("https://id.twitch.tv/"):
            return _resp(200, {"access_token": "still-bad"})
        return _resp(401, {})

    monkeypatch.setattr("requests.sessions.Session.post", fake_post)
    client = IGDBClient(client_id="cid", client_secret="secret", min_interval_s=0.0)
    with pytest.raises(ProviderHTTPError) as exc:
        client.fetch_metadata("Hollow Knight")
    assert exc.value.status == 401
    assert client.stats["http_post"] == 2


def test_rate_limit_and_empty_results(monkeypatch) -> None:
    from game_enricher.clients.igdb_client import IGDBClient
    from game_enricher.errors import RateLimitedError

    client = IGDBClient(client_id="cid", client_secret="secret", min_interval_s=0.0)
    client._token = "tok"

    monkeypatch.setattr("requests.sessions.Session.post", lambda _self, url, **kwargs: _resp(429, None))
    with pytest.raises(RateLimitedError):
        client.fetch_metadata("Hollow Knight")

    monkeypatch.setattr("requests.sessions.Session.post", lambda _self, url, **kwargs: _resp(200, []))
    assert client.fetch_metadata("Zzznotagame12345XYZ") is None
    assert client.stats["not_found"] == 1


def test_token_failure_raises_provider_error(monkeypatch) -> None:
    from game_enricher.clients.igdb_client import IGDBClient
    from game_enricher.errors import ProviderHTTPError

    monkeypatch.setattr("requests.sessions.Session.post", lambda _self, url, **kwargs: _resp(400, {}))
    with pytest.raises(ProviderHTTPError):
        IGDBClient(client_id="bad", client_secret="bad", min_interval_s=0.0).fetch_metadata("Doom")
