from flask import current_app, request

from onlylocks.errors import NotFoundError, ValidationError
from onlylocks.models import Game, Player, PlayerGameStats, Team
from onlylocks.routes.helpers import body_value, get_json_body, get_or_404, optional_int
from onlylocks.routes.players import bp
from onlylocks.utils.cache_utils import PLAYERS, STATS, TEAMS, cached_route
from onlylocks.utils.sorting import (
    player_season_rows,
    sort_player_stats,
    validate_view,
)
from onlylocks.utils.stats import totals, view_of


@bp.route("")
@cached_route(timeout=300, key_prefix="players", groups=(PLAYERS, TEAMS))
def list_players():
    """Players, optionally filtered by name fragment or team"""
    name = request.args.get("name")
    team_id = optional_int(request.args.get("team_id"), "team_id")

    query = Player.search(name) if name else Player.query
    if team_id is not None:
        query = query.filter(Player.team_id == team_id)

    limit = optional_int(request.args.get("limit"), "limit") or current_app.config.get(
        "ITEMS_PER_PAGE", 50
    )
    players = query.order_by(Player.last_name, Player.first_name).limit(limit).all()
    return {"players": [player.to_dict() for player in players]}


@bp.route("/<int:player_id>")
@cached_route(timeout=300, key_prefix="player", groups=(PLAYERS, TEAMS))
def get_player(player_id):
    player = get_or_404(Player, player_id)
    return {"player": player.to_dict(include_team=True)}


@bp.route("/<int:player_id>/stats/season")
@cached_route(timeout=300, key_prefix="player_season", groups=(PLAYERS, STATS))
def player_season_stats(player_id):
    """Season aggregate as totals, per_game or per_36"""
    player = get_or_404(Player, player_id)
    view = validate_view(request.args.get("view"))
    if player.season_stats is None:
        return {
            "player": player.to_dict(),
            "season_stats": {
                "player_id": player.id,
                "games": 0,
                "view": view,
                "stats": view_of(totals([]), 0, view),
            },
        }
    return {"player": player.to_dict(), "season_stats": player.season_stats.to_dict(view)}


@bp.route("/<int:player_id>/stats/game/<int:game_id>")
@cached_route(timeout=60, key_prefix="player_game", groups=(PLAYERS, STATS))
def player_game_stats(player_id, game_id):
    player = get_or_404(Player, player_id)
    game = get_or_404(Game, game_id)
    row = PlayerGameStats.get_for(player.id, game.id)
    if row is None:
        raise NotFoundError(f"No stats for {player.full_name} in game {game.id}")
    return {"player": player.to_dict(), "game": game.to_dict(), "stats": row.to_dict()}


@bp.route("/stats/sort", methods=["POST"])
def sort_stats():
    """
    Body: { stat, direction, time, teamId, gameId, view, limit }

    ``time`` is "season" (default), "today", "yesterday" or YYYY-MM-DD.
    ``order`` is accepted for direction; an omitted direction sorts DESC and
    the applied direction is echoed in the response.
    """
    data = get_json_body()
    return sort_player_stats(
        body_value(data, "stat"),
        body_value(data, "direction", "order"),
        time=body_value(data, "time", default="season"),
        team_id=optional_int(body_value(data, "teamId", "team_id"), "teamId"),
        game_id=optional_int(body_value(data, "gameId", "game_id"), "gameId"),
        view=body_value(data, "view"),
        limit=optional_int(body_value(data, "limit"), "limit"),
    )


@bp.route("/stats/picks", methods=["POST"])
def pick_options():
    """
    Body: { games: [gameId, ...] }

    Players on both sides of each game with season per-game averages,
    the figures a user weighs before making a player pick.
    """
    data = get_json_body()
    game_ids = body_value(data, "games", "gameIds", "game_ids")
    if not isinstance(game_ids, list) or not game_ids:
        raise ValidationError("games must be a non-empty list of game ids")

    result = []
    for raw_id in game_ids:
        game = get_or_404(Game, optional_int(raw_id, "game id"))
        sides = {}
        for side, team in (("home", game.home_team), ("away", game.away_team)):
            players = team.players.order_by(Player.last_name, Player.first_name).all()
            sides[side] = {
                "team": team.to_dict(),
                "players": player_season_rows(players, "per_game"),
            }
        result.append({"game": game.to_dict(), **sides})
    return {"games": result}


@bp.route("/team/<int:team_id>")
@cached_route(timeout=300, key_prefix="players_team", groups=(PLAYERS, TEAMS))
def players_by_team(team_id):
    team = get_or_404(Team, team_id)
    players = team.players.order_by(Player.last_name, Player.first_name).all()
    return {"team": team.to_dict(), "players": [player.to_dict() for player in players]}
