from flask import current_app, request

from onlylocks import db
from onlylocks.errors import ValidationError
from onlylocks.models import Game, Team, TeamGameStats
from onlylocks.models.box_score import TEAM_EXTRA_STATS
from onlylocks.routes.games import bp
from onlylocks.routes.helpers import get_or_404, optional_int
from onlylocks.utils.cache_utils import GAMES, PLAYERS, STATS, TEAMS, cached_route
from onlylocks.utils.sorting import game_top_performers, games_on, resolve_date
from onlylocks.utils.stats import aggregate


@bp.route("")
@cached_route(timeout=300, key_prefix="games", groups=(GAMES, TEAMS))
def list_games():
    """All games, optionally filtered by status and season"""
    query = Game.query
    status = request.args.get("status")
    if status:
        if status not in Game.STATUSES:
            raise ValidationError(
                f"Invalid status '{status}'; expected one of {', '.join(Game.STATUSES)}"
            )
        query = query.filter(Game.status == status)

    season = optional_int(request.args.get("season"), "season")
    if season is not None:
        query = query.filter(Game.season == season)

    limit = optional_int(request.args.get("limit"), "limit") or current_app.config.get(
        "ITEMS_PER_PAGE", 50
    )
    games = query.order_by(Game.game_time.desc()).limit(limit).all()
    return {"games": [game.to_dict() for game in games]}


@bp.route("/<int:game_id>")
@cached_route(timeout=60, key_prefix="game", groups=(GAMES, TEAMS))
def get_game(game_id):
    game = get_or_404(Game, game_id)
    return {"game": game.to_dict()}


@bp.route("/<int:game_id>/stats")
@cached_route(timeout=60, key_prefix="game_stats", groups=(GAMES, STATS))
def game_stats(game_id):
    """Team box scores for a game"""
    game = get_or_404(Game, game_id)
    home = TeamGameStats.get_for(game.home_team_id, game.id)
    away = TeamGameStats.get_for(game.away_team_id, game.id)
    return {
        "game": game.to_dict(),
        "home": home.to_dict() if home else None,
        "away": away.to_dict() if away else None,
    }


@bp.route("/<int:game_id>/top")
@cached_route(timeout=60, key_prefix="game_top", groups=(GAMES, PLAYERS, STATS))
def game_top(game_id):
    """Points, rebounds and assists leaders for each side"""
    game = get_or_404(Game, game_id)
    return {"game": game.to_dict(), "top_performers": game_top_performers(game)}


@bp.route("/date/<date_str>")
@cached_route(timeout=60, key_prefix="games_date", groups=(GAMES, TEAMS))
def games_by_date(date_str):
    if date_str.lower() == "season":
        raise ValidationError("A single date is required: YYYY-MM-DD, today, yesterday or tomorrow")
    day = resolve_date(date_str, allow_tomorrow=True)
    return {"date": day.isoformat(), "games": [game.to_dict() for game in games_on(day)]}


@bp.route("/team/<int:team_id>")
@cached_route(timeout=300, key_prefix="games_team", groups=(GAMES, TEAMS))
def games_by_team(team_id):
    get_or_404(Team, team_id)
    games = Game.for_team(team_id).order_by(Game.game_time).all()
    return {"games": [game.to_dict() for game in games]}


@bp.route("/h2h/<int:team1_id>/<int:team2_id>")
@cached_route(timeout=300, key_prefix="games_h2h", groups=(GAMES, TEAMS))
def head_to_head(team1_id, team2_id):
    """Season series between two teams with per-game box-score averages"""
    if team1_id == team2_id:
        raise ValidationError("Head-to-head needs two different teams")
    team1 = get_or_404(Team, team1_id)
    team2 = get_or_404(Team, team2_id)

    games = (
        Game.query.filter(
            db.or_(
                db.and_(Game.home_team_id == team1.id, Game.away_team_id == team2.id),
                db.and_(Game.home_team_id == team2.id, Game.away_team_id == team1.id),
            )
        )
        .order_by(Game.game_time)
        .all()
    )
    finished_ids = [game.id for game in games if game.is_final]

    totals = {}
    for team in (team1, team2):
        rows = (
            TeamGameStats.query.filter(
                TeamGameStats.team_id == team.id, TeamGameStats.game_id.in_(finished_ids)
            ).all()
            if finished_ids
            else []
        )
        summary = aggregate(rows, TEAM_EXTRA_STATS)
        wins = sum(1 for game in games if game.is_final and game.winner_id == team.id)
        totals[team.code] = {
            "team": team.to_dict(),
            "wins": wins,
            "losses": len(finished_ids) - wins,
            "games": summary["games"],
            "per_game": summary["per_game"],
        }

    return {"games": [game.to_dict() for game in games], "totals": totals}
