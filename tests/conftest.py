"""
Pytest configuration and shared fixtures for Only Locks tests.

Every test gets a fresh app on an in-memory SQLite database with an
application context pushed for the duration of the test.
"""

import itertools
from datetime import datetime, time, timedelta

import pytest

from onlylocks import create_app, db
from onlylocks.models import Game, Player, PlayerGameStats, Team, TeamGameStats, User
from onlylocks.utils.timezone_utils import get_app_timezone, get_local_date, to_naive_utc

_api_ids = itertools.count(1000)


@pytest.fixture
def app():
    app = create_app("testing")
    ctx = app.app_context()
    ctx.push()
    yield app
    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def client(app):
    return app.test_client()


def local_time(day, hour=19):
    """Naive UTC datetime for a local clock time on a local calendar day"""
    local = get_app_timezone().localize(datetime.combine(day, time(hour=hour)))
    return to_naive_utc(local)


@pytest.fixture
def make_team(app):
    def _make_team(code, name=None, conference="East", division="Atlantic"):
        team = Team(
            api_id=next(_api_ids),
            name=name or f"{code} Team",
            nickname=code.title(),
            code=code,
            conference=conference,
            division=division,
        )
        db.session.add(team)
        db.session.commit()
        return team

    return _make_team


@pytest.fixture
def make_player(app):
    def _make_player(team, first_name="Test", last_name="Player", position="G"):
        player = Player(
            api_id=next(_api_ids),
            first_name=first_name,
            last_name=last_name,
            position=position,
            team_id=team.id if team else None,
        )
        db.session.add(player)
        db.session.commit()
        return player

    return _make_player


@pytest.fixture
def make_game(app):
    def _make_game(
        home,
        away,
        status=Game.SCHEDULED,
        home_score=None,
        away_score=None,
        game_time=None,
        season=2024,
    ):
        game = Game(
            api_id=next(_api_ids),
            season=season,
            home_team_id=home.id,
            away_team_id=away.id,
            game_time=game_time or local_time(get_local_date() + timedelta(days=1)),
        )
        db.session.add(game)
        db.session.flush()
        game.apply_update(status, home_score, away_score)
        db.session.commit()
        return game

    return _make_game


@pytest.fixture
def make_user(app):
    def _make_user(username="bettor", password="correct-horse"):
        user = User(username=username)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def add_player_stats(app):
    def _add_player_stats(player, game, **values):
        row, _ = PlayerGameStats.upsert(player.id, game.id, values, team_id=player.team_id)
        db.session.commit()
        return row

    return _add_player_stats


@pytest.fixture
def add_team_stats(app):
    def _add_team_stats(team, game, **values):
        row, _ = TeamGameStats.upsert(team.id, game.id, values)
        db.session.commit()
        return row

    return _add_team_stats


@pytest.fixture
def matchup(make_team, make_player):
    """Two teams with one player each"""
    lakers = make_team("LAL", "Los Angeles Lakers", conference="West", division="Pacific")
    celtics = make_team("BOS", "Boston Celtics", conference="East", division="Atlantic")
    lebron = make_player(lakers, "LeBron", "James", "F")
    tatum = make_player(celtics, "Jayson", "Tatum", "F")
    return {"home": lakers, "away": celtics, "home_player": lebron, "away_player": tatum}
