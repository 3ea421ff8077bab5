from flask import request

from onlylocks.models import Game, Player, Team
from onlylocks.models.box_score import TEAM_EXTRA_STATS
from onlylocks.routes.helpers import body_value, get_json_body, get_or_404, optional_int
from onlylocks.routes.teams import bp
from onlylocks.utils.cache_utils import GAMES, PLAYERS, STATS, TEAMS, cached_route
from onlylocks.utils.sorting import (
    sort_team_stats,
    standings,
    team_top_players,
    validate_view,
)
from onlylocks.utils.stats import totals, view_of


@bp.route("")
@cached_route(timeout=3600, key_prefix="teams", groups=(TEAMS,))
def list_teams():
    teams = Team.query.order_by(Team.name).all()
    return {"teams": [team.to_dict() for team in teams]}


@bp.route("/<int:team_id>")
@cached_route(timeout=3600, key_prefix="team", groups=(TEAMS, GAMES))
def get_team(team_id):
    team = get_or_404(Team, team_id)
    data = team.to_dict()
    data["wins"], data["losses"] = team.get_record()
    return {"team": data}


@bp.route("/<int:team_id>/players")
@cached_route(timeout=300, key_prefix="team_players", groups=(TEAMS, PLAYERS))
def team_players(team_id):
    team = get_or_404(Team, team_id)
    players = team.players.order_by(Player.last_name, Player.first_name).all()
    return {"team": team.to_dict(), "players": [player.to_dict() for player in players]}


@bp.route("/<int:team_id>/games")
@cached_route(timeout=300, key_prefix="team_games", groups=(GAMES, TEAMS))
def team_games(team_id):
    team = get_or_404(Team, team_id)
    games = Game.for_team(team.id).order_by(Game.game_time).all()
    return {"team": team.to_dict(), "games": [game.to_dict() for game in games]}


@bp.route("/<int:team_id>/stats")
@cached_route(timeout=300, key_prefix="team_stats", groups=(TEAMS, STATS))
def team_stats(team_id):
    """Season aggregate as totals, per_game or per_36"""
    team = get_or_404(Team, team_id)
    view = validate_view(request.args.get("view"))
    if team.season_stats is None:
        season_stats = {
            "team_id": team.id,
            "games": 0,
            "wins": 0,
            "losses": 0,
            "view": view,
            "stats": view_of(totals([], TEAM_EXTRA_STATS), 0, view),
        }
    else:
        season_stats = team.season_stats.to_dict(view)
    return {"team": team.to_dict(), "season_stats": season_stats}


@bp.route("/<int:team_id>/stats/top")
@cached_route(timeout=300, key_prefix="team_top", groups=(TEAMS, PLAYERS, STATS))
def team_top(team_id):
    """Roster leaders in points, rebounds and assists"""
    team = get_or_404(Team, team_id)
    return team_top_players(team, request.args.get("view"))


@bp.route("/stats")
@cached_route(timeout=300, key_prefix="teams_stats", groups=(TEAMS, STATS))
def all_team_stats():
    view = request.args.get("view")
    return sort_team_stats("points", "DESC", view=view)


@bp.route("/stats/sort", methods=["POST"])
def sort_stats():
    """
    Body: { stat, direction, time, gameId, view, limit }

    ``order`` is accepted for direction; an omitted direction sorts DESC and
    the applied direction is echoed in the response.
    """
    data = get_json_body()
    return sort_team_stats(
        body_value(data, "stat"),
        body_value(data, "direction", "order"),
        time=body_value(data, "time", default="season"),
        game_id=optional_int(body_value(data, "gameId", "game_id"), "gameId"),
        view=body_value(data, "view"),
        limit=optional_int(body_value(data, "limit"), "limit"),
    )


@bp.route("/standings")
@cached_route(timeout=900, key_prefix="standings", groups=(TEAMS, STATS))
def get_standings():
    return {"standings": standings()}
