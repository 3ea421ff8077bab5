"""Tests for provider payload parsing and the sync operations"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from onlylocks.models import Game, Player, PlayerGameStats, Team, TeamGameStats
from onlylocks.utils.data_sync import DataSync, DataSyncError, parse_stat_line

TEAMS_RESPONSE = [
    {
        "id": 17,
        "name": "Los Angeles Lakers",
        "nickname": "Lakers",
        "code": "LAL",
        "city": "Los Angeles",
        "logo": "https://example.com/lal.png",
        "allStar": False,
        "nbaFranchise": True,
        "leagues": {"standard": {"conference": "West", "division": "Pacific"}},
    },
    {
        "id": 2,
        "name": "Boston Celtics",
        "nickname": "Celtics",
        "code": "BOS",
        "city": "Boston",
        "allStar": False,
        "nbaFranchise": True,
        "leagues": {"standard": {"conference": "East", "division": "Atlantic"}},
    },
    {
        "id": 37,
        "name": "Team LeBron",
        "nickname": "Team LeBron",
        "code": "LBN",
        "allStar": True,
        "nbaFranchise": False,
        "leagues": {},
    },
]


def _game_payload(status_short, home_points=None, away_points=None):
    return {
        "id": 12478,
        "season": 2024,
        "date": {"start": "2024-10-22T23:30:00.000Z"},
        "status": {"clock": None, "short": status_short},
        "periods": {"current": 4},
        "arena": {"name": "Crypto.com Arena", "city": "Los Angeles"},
        "teams": {
            "home": {"id": 17, "name": "Los Angeles Lakers", "nickname": "Lakers", "code": "LAL"},
            "visitors": {"id": 2, "name": "Boston Celtics", "nickname": "Celtics", "code": "BOS"},
        },
        "scores": {
            "home": {"points": home_points},
            "visitors": {"points": away_points},
        },
    }


def _player_line(player_id, minutes, points, team_id=17):
    return {
        "player": {"id": player_id, "firstname": "Anthony", "lastname": "Davis"},
        "team": {"id": team_id},
        "game": {"id": 12478},
        "points": points,
        "min": minutes,
        "fgm": 10,
        "fga": 18,
        "fgp": "55.6",
        "offReb": 4,
        "defReb": 8,
        "pFouls": 3,
        "plusMinus": "+7",
    }


@pytest.fixture
def data_sync(app):
    return DataSync()


def _respond(mapping):
    """Fake _make_api_request answering by endpoint"""

    def fake(endpoint, params=None):
        return mapping[endpoint]

    return fake


class TestParseStatLine:
    def test_maps_provider_fields(self):
        values = parse_stat_line(_player_line(1, "34:12", 27))

        assert values["points"] == 27
        assert values["minutes"] == 34
        assert values["off_reb"] == 4
        assert values["def_reb"] == 8
        assert values["fouls"] == 3
        assert values["plus_minus"] == 7
        assert values["fgp"] == 55.6
        assert values["assists"] == 0
        assert "fast_break_points" not in values

    def test_team_line_includes_extras(self):
        values = parse_stat_line({"points": "112", "pointsInPaint": 48, "min": "240"}, team=True)

        assert values["points"] == 112
        assert values["points_in_paint"] == 48
        assert values["fast_break_points"] == 0
        assert values["minutes"] == 240


class TestSyncTeams:
    def test_only_nba_franchises(self, data_sync):
        with patch.object(data_sync, "_make_api_request", side_effect=_respond({"teams": TEAMS_RESPONSE})):
            success, message = data_sync.sync_teams()

        assert success is True
        assert Team.query.count() == 2
        lakers = Team.get_by_api_id(17)
        assert lakers.conference == "West"
        assert lakers.division == "Pacific"

    def test_provider_error_is_reported(self, data_sync):
        with patch.object(data_sync, "_make_api_request", side_effect=DataSyncError("bad key")):
            success, message = data_sync.sync_teams()

        assert success is False
        assert "bad key" in message


class TestGames:
    @pytest.mark.parametrize(
        "short, expected",
        [(1, Game.SCHEDULED), (2, Game.IN_PLAY), (3, Game.FINISHED)],
    )
    def test_status_mapping(self, data_sync, short, expected):
        payload = _game_payload(short, 100, 95)
        with patch.object(data_sync, "_make_api_request", return_value=[payload]):
            success, _ = data_sync.sync_season_games()

        assert success is True
        game = Game.get_by_api_id(12478)
        assert game.status == expected
        assert game.location == "Crypto.com Arena, Los Angeles"
        if expected == Game.SCHEDULED:
            assert game.score is None
        else:
            assert game.score == (100, 95)

    def test_finished_game_records_winner(self, data_sync):
        with patch.object(data_sync, "_make_api_request", return_value=[_game_payload(3, 98, 105)]):
            data_sync.sync_season_games()

        game = Game.get_by_api_id(12478)
        assert game.winner.code == "BOS"
        assert game.game_time.isoformat() == "2024-10-22T23:30:00"

    def test_resync_updates_existing_game(self, data_sync):
        with patch.object(data_sync, "_make_api_request", return_value=[_game_payload(2, 50, 48)]):
            data_sync.sync_season_games()
        with patch.object(data_sync, "_make_api_request", return_value=[_game_payload(3, 101, 99)]):
            data_sync.sync_season_games()

        assert Game.query.count() == 1
        assert Game.get_by_api_id(12478).is_final

    def test_new_game_without_start_time_is_skipped(self, data_sync):
        undated = _game_payload(1)
        undated["id"] = 12479
        undated["date"] = {"start": None}
        with patch.object(data_sync, "_make_api_request", return_value=[undated, _game_payload(1)]):
            success, _ = data_sync.sync_season_games()

        assert success is True
        assert Game.get_by_api_id(12479) is None
        assert Game.get_by_api_id(12478) is not None


class TestBoxScores:
    @pytest.fixture
    def finished_game(self, data_sync):
        with patch.object(data_sync, "_make_api_request", return_value=[_game_payload(3, 110, 100)]):
            data_sync.sync_season_games()
        return Game.get_by_api_id(12478)

    def test_player_stats_skip_did_not_play(self, data_sync, finished_game):
        lines = [_player_line(237, "36:10", 31), _player_line(238, "0:00", 0), _player_line(239, None, 0)]
        with patch.object(data_sync, "_make_api_request", return_value=lines):
            success, _ = data_sync.update_player_game_stats("all")

        assert success is True
        assert PlayerGameStats.query.count() == 1
        # Unknown players are created on the fly
        player = Player.get_by_api_id(237)
        assert player.full_name == "Anthony Davis"
        row = PlayerGameStats.get_for(player.id, finished_game.id)
        assert row.points == 31
        assert row.total_reb == 12
        assert row.team_id == finished_game.home_team_id

    def test_team_stats(self, data_sync, finished_game):
        entries = [
            {"team": {"id": 17}, "statistics": [{"points": 110, "fastBreakPoints": 18, "offReb": 9}]},
            {"team": {"id": 2}, "statistics": [{"points": 100, "fastBreakPoints": 11}]},
        ]
        with patch.object(data_sync, "_make_api_request", return_value=entries):
            success, _ = data_sync.update_team_game_stats("all")

        assert success is True
        home = TeamGameStats.get_for(finished_game.home_team_id, finished_game.id)
        assert home.points == 110
        assert home.fast_break_points == 18

    def test_one_bad_game_does_not_block_others(self, data_sync, finished_game):
        with patch.object(data_sync, "_make_api_request", side_effect=DataSyncError("rate limited")):
            success, message = data_sync.update_team_game_stats("all")

        assert success is False
        assert TeamGameStats.query.count() == 0


class TestMakeApiRequest:
    def test_returns_response_list(self, data_sync):
        response = MagicMock()
        response.json.return_value = {"errors": [], "response": [{"id": 1}]}
        with patch.object(data_sync.session, "get", return_value=response) as get:
            result = data_sync._make_api_request("teams")

        assert result == [{"id": 1}]
        url = get.call_args[0][0]
        assert url == "https://v2.nba.api-sports.io/teams"
        assert data_sync.session.headers["x-rapidapi-key"] == "test-key"

    def test_error_payload_raises(self, data_sync):
        response = MagicMock()
        response.json.return_value = {"errors": {"token": "Invalid key"}, "response": []}
        with patch.object(data_sync.session, "get", return_value=response):
            with pytest.raises(DataSyncError):
                data_sync._make_api_request("teams")

    @patch("onlylocks.utils.data_sync.time.sleep")
    def test_retries_server_errors(self, sleep, data_sync):
        failure = MagicMock()
        failure.raise_for_status.side_effect = requests.exceptions.HTTPError(
            response=MagicMock(status_code=503)
        )
        ok = MagicMock()
        ok.json.return_value = {"errors": [], "response": []}
        with patch.object(data_sync.session, "get", side_effect=[failure, ok]) as get:
            assert data_sync._make_api_request("games", {"date": "2024-10-22"}) == []

        assert get.call_count == 2
