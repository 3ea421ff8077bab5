"""
Read-model formatting for stat listings.

Validates sort requests, resolves the requested scope (season, a single
game, or a calendar date) and shapes rows into the listings served by the
player and team endpoints.
"""

import logging
from datetime import date, timedelta

from onlylocks import db
from onlylocks.errors import NotFoundError, ValidationError
from onlylocks.models import (
    Game,
    Player,
    PlayerGameStats,
    PlayerSeasonStats,
    Team,
    TeamGameStats,
    TeamSeasonStats,
)
from onlylocks.models.box_score import TEAM_EXTRA_STATS
from onlylocks.utils.stats import VIEWS, totals, view_of
from onlylocks.utils.timezone_utils import get_local_date, utc_bounds_for_local_date

logger = logging.getLogger(__name__)

STAT_NAMES = (
    "points",
    "fgm",
    "fga",
    "fgp",
    "ftm",
    "fta",
    "ftp",
    "tpm",
    "tpa",
    "tpp",
    "off_reb",
    "def_reb",
    "total_reb",
    "assists",
    "fouls",
    "steals",
    "turnovers",
    "blocks",
    "plus_minus",
)
PLAYER_SORT_STATS = STAT_NAMES + ("minutes",)
TEAM_SORT_STATS = STAT_NAMES + ("games", "wins", "losses") + TEAM_EXTRA_STATS
DIRECTIONS = ("ASC", "DESC")
DEFAULT_VIEW = "per_game"


def validate_sort(stat, direction=None, allowed=STAT_NAMES):
    """
    Normalize a sort request, case-insensitively.

    Returns:
        (stat, direction) with stat lower-cased and direction upper-cased;
        an omitted direction means DESC

    Raises:
        ValidationError: unknown stat or direction
    """
    if not stat or not isinstance(stat, str):
        raise ValidationError("A sort stat is required")

    normalized = stat.strip().lower()
    if normalized not in allowed:
        raise ValidationError(
            f"Invalid sort stat '{stat}'; expected one of {', '.join(allowed)}"
        )

    if direction is None:
        return normalized, "DESC"
    if not isinstance(direction, str) or direction.strip().upper() not in DIRECTIONS:
        raise ValidationError(f"Invalid sort direction '{direction}'; expected ASC or DESC")
    return normalized, direction.strip().upper()


def validate_view(view):
    if view is None:
        return DEFAULT_VIEW
    normalized = str(view).lower()
    if normalized not in VIEWS:
        raise ValidationError(f"Invalid view '{view}'; expected one of {', '.join(VIEWS)}")
    return normalized


def resolve_date(value, allow_tomorrow=False):
    """
    Turn a date selector into a local calendar date.

    Accepts "today", "yesterday", ISO "YYYY-MM-DD" and, where allowed,
    "tomorrow". Returns None for "season".
    """
    if value is None:
        return None
    selector = str(value).strip().lower()
    today = get_local_date()

    if selector == "season":
        return None
    if selector == "today":
        return today
    if selector == "yesterday":
        return today - timedelta(days=1)
    if selector == "tomorrow" and allow_tomorrow:
        return today + timedelta(days=1)
    try:
        return date.fromisoformat(selector)
    except ValueError:
        raise ValidationError(
            f"Invalid date '{value}'; expected YYYY-MM-DD, today, yesterday or season"
        )


def games_on(day):
    start, end = utc_bounds_for_local_date(day)
    return Game.between(start, end)


def sort_rows(rows, stat, direction):
    """Sort listing rows on row["stats"][stat]; missing values sort as 0"""
    return sorted(
        rows,
        key=lambda row: row["stats"].get(stat) or 0,
        reverse=direction == "DESC",
    )


def _player_row(player, stats, games):
    return {"player": player.to_dict(), "games": games, "stats": stats}


def _team_row(team, stats, games):
    return {"team": team.to_dict(), "games": games, "stats": stats}


def player_season_rows(players, view):
    rows = []
    for player in players:
        aggregate_row = player.season_stats
        if aggregate_row is None:
            rows.append(_player_row(player, view_of(_empty_totals(), 0, view), 0))
        else:
            rows.append(
                _player_row(
                    player,
                    view_of(aggregate_row.totals_dict(), aggregate_row.games, view),
                    aggregate_row.games,
                )
            )
    return rows


def _empty_totals(extra_stats=()):
    return totals([], extra_stats)


def _box_score_rows(box_rows, row_builder, entity_attr):
    return [row_builder(getattr(row, entity_attr), row.stat_dict(), 1) for row in box_rows]


def sort_player_stats(
    stat, direction=None, time="season", team_id=None, game_id=None, view=None, limit=None
):
    """
    Sorted player stat listing.

    A game id scopes to that game's box scores; otherwise ``time`` selects
    season aggregates or a calendar date. A date with no box scores yet
    lists the players of teams scheduled that day with their season
    aggregates, flagged as a fallback.
    """
    stat, direction = validate_sort(stat, direction, PLAYER_SORT_STATS)
    view = validate_view(view)
    result = {"stat": stat, "direction": direction, "fallback": False}

    if team_id is not None and db.session.get(Team, team_id) is None:
        raise NotFoundError(f"No team: {team_id}")

    if game_id is not None:
        if db.session.get(Game, game_id) is None:
            raise NotFoundError(f"No game: {game_id}")
        query = PlayerGameStats.query.filter_by(game_id=game_id)
        if team_id is not None:
            query = query.filter(PlayerGameStats.team_id == team_id)
        rows = _box_score_rows(query.all(), _player_row, "player")
        result.update({"scope": "game", "game_id": game_id, "view": "totals"})

    else:
        day = resolve_date(time)
        if day is None:
            query = Player.query.join(PlayerSeasonStats)
            if team_id is not None:
                query = query.filter(Player.team_id == team_id)
            rows = player_season_rows(query.all(), view)
            result.update({"scope": "season", "view": view})
        else:
            game_ids = [game.id for game in games_on(day)]
            query = PlayerGameStats.query.filter(PlayerGameStats.game_id.in_(game_ids))
            if team_id is not None:
                query = query.filter(PlayerGameStats.team_id == team_id)
            box_rows = query.all() if game_ids else []
            result.update({"scope": "date", "date": day.isoformat(), "view": "totals"})

            if box_rows:
                rows = _box_score_rows(box_rows, _player_row, "player")
            else:
                rows = player_season_rows(scheduled_players(game_ids, team_id), view)
                result.update({"fallback": True, "view": view})
                logger.debug(f"No box scores for {day}; listing scheduled players")

    rows = sort_rows(rows, stat, direction)
    result["players"] = rows[:limit] if limit else rows
    return result


def scheduled_players(game_ids, team_id=None):
    """Players on the teams playing in the given games"""
    if not game_ids:
        return []
    team_ids = set()
    for game in Game.query.filter(Game.id.in_(game_ids)).all():
        team_ids.update((game.home_team_id, game.away_team_id))
    if team_id is not None:
        team_ids &= {team_id}
    if not team_ids:
        return []
    return (
        Player.query.filter(Player.team_id.in_(team_ids))
        .order_by(Player.last_name, Player.first_name)
        .all()
    )


def _team_season_row(team, view):
    aggregate_row = team.season_stats
    if aggregate_row is None:
        stats = view_of(_empty_totals(TEAM_EXTRA_STATS), 0, view)
        stats.update({"games": 0, "wins": 0, "losses": 0})
        return _team_row(team, stats, 0)

    data = aggregate_row.to_dict(view)
    stats = data["stats"]
    stats.update(
        {"games": aggregate_row.games, "wins": aggregate_row.wins, "losses": aggregate_row.losses}
    )
    row = _team_row(team, stats, aggregate_row.games)
    row.update(
        {
            "conference_rank": aggregate_row.conference_rank,
            "division_rank": aggregate_row.division_rank,
        }
    )
    return row


def sort_team_stats(stat, direction=None, time="season", game_id=None, view=None, limit=None):
    """Sorted team stat listing, scoped like sort_player_stats"""
    stat, direction = validate_sort(stat, direction, TEAM_SORT_STATS)
    view = validate_view(view)
    result = {"stat": stat, "direction": direction, "fallback": False}

    if game_id is not None:
        if db.session.get(Game, game_id) is None:
            raise NotFoundError(f"No game: {game_id}")
        box_rows = TeamGameStats.query.filter_by(game_id=game_id).all()
        rows = _box_score_rows(box_rows, _team_row, "team")
        result.update({"scope": "game", "game_id": game_id, "view": "totals"})
    else:
        day = resolve_date(time)
        if day is None:
            rows = [_team_season_row(team, view) for team in Team.query.order_by(Team.name).all()]
            result.update({"scope": "season", "view": view})
        else:
            games = games_on(day)
            game_ids = [game.id for game in games]
            box_rows = (
                TeamGameStats.query.filter(TeamGameStats.game_id.in_(game_ids)).all()
                if game_ids
                else []
            )
            result.update({"scope": "date", "date": day.isoformat(), "view": "totals"})
            if box_rows:
                rows = _box_score_rows(box_rows, _team_row, "team")
            else:
                team_ids = {tid for game in games for tid in (game.home_team_id, game.away_team_id)}
                teams = Team.query.filter(Team.id.in_(team_ids)).order_by(Team.name).all() if team_ids else []
                rows = [_team_season_row(team, view) for team in teams]
                result.update({"fallback": True, "view": view})

    rows = sort_rows(rows, stat, direction)
    result["teams"] = rows[:limit] if limit else rows
    return result


def standings():
    """Teams grouped by conference, ordered by conference rank"""
    conferences = {}
    for team in Team.query.order_by(Team.name).all():
        row = _team_season_row(team, "totals")
        conferences.setdefault(team.conference or "Unknown", []).append(
            {
                "team": row["team"],
                "wins": row["stats"]["wins"],
                "losses": row["stats"]["losses"],
                "conference_rank": row.get("conference_rank"),
                "division_rank": row.get("division_rank"),
            }
        )
    for rows in conferences.values():
        rows.sort(key=lambda r: (r["conference_rank"] is None, r["conference_rank"] or 0))
    return conferences


TOP_PERFORMER_STATS = ("points", "total_reb", "assists")


def top_performers(box_rows, stats=TOP_PERFORMER_STATS):
    """Leader for each stat among box-score rows, keyed by stat name"""
    leaders = {}
    for stat in stats:
        best = None
        for row in box_rows:
            if best is None or row.value_for(stat) > best.value_for(stat):
                best = row
        if best is not None:
            leaders[stat] = {
                "player": best.player.to_dict(),
                "value": best.value_for(stat),
            }
    return leaders


def game_top_performers(game):
    """Stat leaders for each side of a game"""
    result = {}
    for team in (game.home_team, game.away_team):
        rows = PlayerGameStats.query.filter_by(game_id=game.id, team_id=team.id).all()
        result[team.code] = top_performers(rows)
    return result


def team_top_players(team, view=None, stats=TOP_PERFORMER_STATS):
    """Season leaders on a team's roster"""
    view = validate_view(view)
    rows = player_season_rows(team.players.all(), view)
    leaders = {}
    for stat in stats:
        ranked = sort_rows(rows, stat, "DESC")
        if ranked:
            leaders[stat] = {"player": ranked[0]["player"], "value": ranked[0]["stats"][stat]}
    return {"team": team.to_dict(), "view": view, "leaders": leaders}
