"""HTTP tests for the /api blueprints"""

from unittest.mock import patch

import pytest

from onlylocks import db
from onlylocks.models import Game, PickStatus, TeamPick, TeamSeasonStats
from onlylocks.utils.scoring import grade_open_picks


@pytest.fixture
def finished_game(matchup, make_game, add_team_stats, add_player_stats):
    game = make_game(matchup["home"], matchup["away"], Game.FINISHED, 112, 104)
    add_team_stats(matchup["home"], game, points=112, fast_break_points=20)
    add_team_stats(matchup["away"], game, points=104, fast_break_points=9)
    add_player_stats(matchup["home_player"], game, points=31, assists=8, off_reb=2, def_reb=8, minutes=37)
    add_player_stats(matchup["away_player"], game, points=27, assists=4, off_reb=1, def_reb=6, minutes=39)
    return game


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


class TestGames:
    def test_list_and_filter(self, client, finished_game, matchup, make_game):
        make_game(matchup["away"], matchup["home"])

        assert len(client.get("/api/games").get_json()["games"]) == 2
        finished = client.get("/api/games?status=finished").get_json()["games"]
        assert [g["id"] for g in finished] == [finished_game.id]

    def test_bad_status(self, client, app):
        response = client.get("/api/games?status=postponed")

        assert response.status_code == 400
        assert response.get_json()["error"]["status"] == 400

    def test_get_game(self, client, finished_game):
        data = client.get(f"/api/games/{finished_game.id}").get_json()["game"]

        assert data["score"] == {"home": 112, "away": 104}
        assert data["home_team"]["code"] == "LAL"

    def test_missing_game(self, client, app):
        response = client.get("/api/games/999")

        assert response.status_code == 404
        assert "999" in response.get_json()["error"]["message"]

    def test_team_box_scores(self, client, finished_game):
        data = client.get(f"/api/games/{finished_game.id}/stats").get_json()

        assert data["home"]["fast_break_points"] == 20
        assert data["away"]["points"] == 104

    def test_top_performers(self, client, finished_game):
        data = client.get(f"/api/games/{finished_game.id}/top").get_json()

        assert data["top_performers"]["LAL"]["points"]["value"] == 31
        assert data["top_performers"]["BOS"]["total_reb"]["value"] == 7

    def test_by_date(self, client, matchup, make_game):
        game = make_game(matchup["home"], matchup["away"])

        data = client.get("/api/games/date/tomorrow").get_json()

        assert [g["id"] for g in data["games"]] == [game.id]
        assert client.get("/api/games/date/season").status_code == 400
        assert client.get("/api/games/date/not-a-date").status_code == 400

    def test_head_to_head(self, client, finished_game, matchup):
        home, away = matchup["home"], matchup["away"]

        data = client.get(f"/api/games/h2h/{home.id}/{away.id}").get_json()

        assert len(data["games"]) == 1
        assert data["totals"]["LAL"]["wins"] == 1
        assert data["totals"]["BOS"]["losses"] == 1
        assert data["totals"]["LAL"]["per_game"]["points"] == 112

    def test_head_to_head_needs_two_teams(self, client, matchup):
        home = matchup["home"]

        assert client.get(f"/api/games/h2h/{home.id}/{home.id}").status_code == 400


class TestTeams:
    def test_list(self, client, matchup):
        codes = [t["code"] for t in client.get("/api/teams").get_json()["teams"]]

        assert codes == ["BOS", "LAL"]

    def test_team_with_record(self, client, finished_game, matchup):
        data = client.get(f"/api/teams/{matchup['home'].id}").get_json()["team"]

        assert (data["wins"], data["losses"]) == (1, 0)

    def test_roster_and_games(self, client, finished_game, matchup):
        team_id = matchup["home"].id

        players = client.get(f"/api/teams/{team_id}/players").get_json()["players"]
        games = client.get(f"/api/teams/{team_id}/games").get_json()["games"]

        assert [p["last_name"] for p in players] == ["James"]
        assert [g["id"] for g in games] == [finished_game.id]

    def test_season_stats_without_rebuild(self, client, matchup):
        data = client.get(f"/api/teams/{matchup['home'].id}/stats").get_json()

        assert data["season_stats"]["games"] == 0
        assert data["season_stats"]["stats"]["points"] == 0

    def test_season_stats_views(self, client, finished_game, matchup):
        TeamSeasonStats.rebuild_all(2024)
        db.session.commit()

        data = client.get(f"/api/teams/{matchup['home'].id}/stats?view=totals").get_json()

        assert data["season_stats"]["stats"]["fast_break_points"] == 20
        assert client.get(f"/api/teams/{matchup['home'].id}/stats?view=per_48").status_code == 400

    def test_sort(self, client, finished_game):
        TeamSeasonStats.rebuild_all(2024)
        db.session.commit()

        response = client.post("/api/teams/stats/sort", json={"stat": "points", "direction": "asc"})

        assert response.status_code == 200
        codes = [row["team"]["code"] for row in response.get_json()["teams"]]
        assert codes == ["BOS", "LAL"]

    def test_sort_accepts_order_alias(self, client, finished_game):
        TeamSeasonStats.rebuild_all(2024)
        db.session.commit()

        data = client.post("/api/teams/stats/sort", json={"stat": "points", "order": "ASC"}).get_json()

        assert data["direction"] == "ASC"
        assert [row["team"]["code"] for row in data["teams"]] == ["BOS", "LAL"]

    def test_sort_direction_defaults_to_desc(self, client, finished_game):
        TeamSeasonStats.rebuild_all(2024)
        db.session.commit()

        data = client.post("/api/teams/stats/sort", json={"stat": "points"}).get_json()

        assert data["direction"] == "DESC"
        assert [row["team"]["code"] for row in data["teams"]] == ["LAL", "BOS"]

    def test_sort_rejects_unknown_stat(self, client, app):
        response = client.post("/api/teams/stats/sort", json={"stat": "vibes"})

        assert response.status_code == 400

    def test_standings(self, client, finished_game):
        TeamSeasonStats.update_standings(2024)
        db.session.commit()

        data = client.get("/api/teams/standings").get_json()["standings"]

        assert data["West"][0]["team"]["code"] == "LAL"
        assert data["West"][0]["wins"] == 1
        assert data["East"][0]["losses"] == 1

    def test_top_players(self, client, matchup):
        data = client.get(f"/api/teams/{matchup['home'].id}/stats/top").get_json()

        assert data["leaders"]["points"]["player"]["last_name"] == "James"


class TestPlayers:
    def test_search(self, client, matchup):
        data = client.get("/api/players?name=tat").get_json()

        assert [p["last_name"] for p in data["players"]] == ["Tatum"]

    def test_get_player(self, client, matchup):
        data = client.get(f"/api/players/{matchup['home_player'].id}").get_json()["player"]

        assert data["team"]["code"] == "LAL"

    def test_game_stats(self, client, finished_game, matchup):
        player_id = matchup["home_player"].id

        data = client.get(f"/api/players/{player_id}/stats/game/{finished_game.id}").get_json()

        assert data["stats"]["points"] == 31
        assert data["stats"]["total_reb"] == 10

    def test_game_stats_missing_row(self, client, matchup, make_game):
        game = make_game(matchup["home"], matchup["away"])

        response = client.get(f"/api/players/{matchup['home_player'].id}/stats/game/{game.id}")

        assert response.status_code == 404

    def test_season_stats_default_view(self, client, matchup):
        data = client.get(f"/api/players/{matchup['home_player'].id}/stats/season").get_json()

        assert data["season_stats"]["view"] == "per_game"
        assert data["season_stats"]["games"] == 0

    def test_sort_by_game(self, client, finished_game):
        response = client.post(
            "/api/players/stats/sort",
            json={"stat": "POINTS", "direction": "DESC", "gameId": finished_game.id},
        )

        rows = response.get_json()["players"]
        assert [row["stats"]["points"] for row in rows] == [31, 27]

    def test_sort_accepts_order_alias(self, client, finished_game):
        data = client.post(
            "/api/players/stats/sort",
            json={"stat": "points", "order": "asc", "gameId": finished_game.id},
        ).get_json()

        assert data["direction"] == "ASC"
        assert [row["stats"]["points"] for row in data["players"]] == [27, 31]

    def test_pick_options(self, client, matchup, make_game):
        game = make_game(matchup["home"], matchup["away"])

        data = client.post("/api/players/stats/picks", json={"games": [game.id]}).get_json()

        entry = data["games"][0]
        assert entry["home"]["team"]["code"] == "LAL"
        assert [row["player"]["last_name"] for row in entry["away"]["players"]] == ["Tatum"]

    def test_pick_options_requires_games(self, client, app):
        assert client.post("/api/players/stats/picks", json={}).status_code == 400


class TestUsers:
    def test_register(self, client, app):
        response = client.post("/api/users", json={"username": "newbie", "password": "long-enough"})

        assert response.status_code == 201
        assert response.get_json()["user"] == {
            "username": "newbie",
            "wins": 0,
            "losses": 0,
            "points": 0,
        }

    def test_register_validation(self, client, make_user):
        make_user("taken")

        assert client.post("/api/users", json={"username": "x", "password": "long-enough"}).status_code == 400
        assert client.post("/api/users", json={"username": "shorty", "password": "short"}).status_code == 400
        assert client.post("/api/users", json={"username": "taken", "password": "long-enough"}).status_code == 400

    def test_follow_and_unfollow(self, client, make_user, matchup):
        make_user("fan")
        team_id = matchup["home"].id
        player_id = matchup["away_player"].id

        client.post(f"/api/users/fan/teams/{team_id}")
        data = client.post(f"/api/users/fan/players/{player_id}").get_json()["user"]
        assert data["followed_teams"] == [team_id]
        assert data["followed_players"] == [player_id]

        data = client.delete(f"/api/users/fan/teams/{team_id}").get_json()["user"]
        assert data["followed_teams"] == []

    def test_unknown_user(self, client, app):
        assert client.get("/api/users/ghost").status_code == 404

    def test_player_pick_lifecycle(self, client, make_user, matchup, make_game):
        make_user("picker")
        game = make_game(matchup["home"], matchup["away"])
        body = {
            "playerId": matchup["home_player"].id,
            "gameId": game.id,
            "stat": "points",
            "over_under": "over",
            "value": 24.5,
        }

        response = client.post("/api/users/picker/picks/players", json=body)
        assert response.status_code == 201
        pick = response.get_json()
        assert pick["direction"] == "OVER"
        assert pick["threshold"] == 24.5
        assert pick["status"] == "open"

        assert client.post("/api/users/picker/picks/players", json=body).status_code == 400

        picks = client.get("/api/users/picker/picks?status=open").get_json()["picks"]
        assert [p["id"] for p in picks] == [pick["id"]]

        response = client.delete(f"/api/users/picker/picks/{pick['id']}")
        assert response.status_code == 200
        assert client.get("/api/users/picker/picks").get_json()["picks"] == []

    def test_team_pick_on_started_game(self, client, make_user, matchup, finished_game):
        make_user("late")

        response = client.post(
            "/api/users/late/picks/teams",
            json={"teamId": matchup["home"].id, "gameId": finished_game.id},
        )

        assert response.status_code == 400

    def test_graded_pick_cannot_be_deleted(self, client, make_user, matchup, make_game):
        user = make_user("graded")
        game = make_game(matchup["home"], matchup["away"])
        pick = TeamPick.create(user, matchup["home"].id, game.id)
        db.session.commit()
        pick.mark(True)
        db.session.commit()

        response = client.delete(f"/api/users/graded/picks/{pick.id}")

        assert response.status_code == 400
        assert pick.status == PickStatus.WON

    def test_pick_cannot_be_deleted_after_tip_off(self, client, make_user, matchup, make_game):
        user = make_user("regret")
        game = make_game(matchup["home"], matchup["away"])
        pick = TeamPick.create(user, matchup["home"].id, game.id)
        db.session.commit()
        game.apply_update(Game.FINISHED, 100, 110)
        db.session.commit()

        response = client.delete(f"/api/users/regret/picks/{pick.id}")

        assert response.status_code == 400
        grade_open_picks()
        assert pick.status == PickStatus.LOST
        assert user.losses == 1

    def test_client_reward_is_ignored(self, client, app, make_user, matchup, make_game):
        make_user("greedy")
        game = make_game(matchup["home"], matchup["away"])

        player_pick = client.post(
            "/api/users/greedy/picks/players",
            json={
                "playerId": matchup["home_player"].id,
                "gameId": game.id,
                "stat": "points",
                "direction": "OVER",
                "threshold": 0.5,
                "reward": 1000000000,
            },
        ).get_json()
        team_pick = client.post(
            "/api/users/greedy/picks/teams",
            json={"teamId": matchup["home"].id, "gameId": game.id, "reward": 1000000000},
        ).get_json()

        expected = app.config["DEFAULT_PICK_REWARD"]
        assert player_pick["reward"] == expected
        assert team_pick["reward"] == expected

    def test_leaderboard(self, client, make_user):
        make_user("first").points = 500
        make_user("second").points = 200
        db.session.commit()

        rows = client.get("/api/users/leaderboard").get_json()["leaderboard"]

        assert [(row["rank"], row["username"]) for row in rows] == [(1, "first"), (2, "second")]

    def test_bad_status_filter(self, client, make_user):
        make_user("filter")

        assert client.get("/api/users/filter/picks?status=pending").status_code == 400


class TestUpdates:
    def test_update_key_required_when_configured(self, client, app):
        app.config["UPDATE_API_KEY"] = "sekrit"

        assert client.get("/api/updates/scheduler").status_code == 401
        response = client.get("/api/updates/scheduler", headers={"X-Update-Key": "sekrit"})
        assert response.status_code == 200
        assert response.get_json()["is_running"] is False

    def test_grade_picks(self, client, make_user, matchup, make_game):
        user = make_user("hopeful")
        game = make_game(matchup["home"], matchup["away"])
        TeamPick.create(user, matchup["home"].id, game.id)
        db.session.commit()
        game.apply_update(Game.FINISHED, 120, 100)
        db.session.commit()

        data = client.patch("/api/updates/picks?kind=team").get_json()

        assert data["report"]["won"] == 1
        assert client.patch("/api/updates/picks?kind=parlay").status_code == 400

    def test_rebuild_endpoints(self, client, finished_game, matchup):
        assert client.patch("/api/updates/teams/season").get_json()["count"] == 2
        assert client.patch("/api/updates/players/season").get_json()["count"] == 2
        assert client.patch("/api/updates/standings").status_code == 200

        assert matchup["home"].season_stats.wins == 1
        assert matchup["home_player"].season_stats.points == 31

    def test_sync_failure_maps_to_bad_gateway(self, client, app):
        with patch(
            "onlylocks.routes.updates.routes.DataSync.update_recent_games",
            return_value=(False, "provider down"),
        ):
            response = client.patch("/api/updates/games/recent")

        assert response.status_code == 502
        assert response.get_json()["error"]["message"] == "provider down"

    def test_box_score_method_validation(self, client, app):
        assert client.patch("/api/updates/teams/games?method=weekly").status_code == 400

    def test_run_tier(self, client, app):
        response = client.post("/api/updates/tiers/hourly")

        assert response.status_code == 200
        report = response.get_json()["report"]
        assert [task["name"] for task in report["tasks"]] == ["grade_player_picks", "grade_team_picks"]
        assert client.post("/api/updates/tiers/weekly").status_code == 400
