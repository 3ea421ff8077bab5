"""
Manual refresh endpoints.

Each one runs a single refresh operation on demand, the same work the
scheduler tiers run on the clock. Guarded by the X-Update-Key header when
UPDATE_API_KEY is configured.
"""

import logging

from flask import current_app, request

from onlylocks import db, limiter
from onlylocks.errors import ApiError, ValidationError
from onlylocks.routes.helpers import require_update_key
from onlylocks.routes.updates import bp
from onlylocks.services.scheduler_service import (
    rebuild_player_season_stats,
    rebuild_team_season_stats,
    scheduler_service,
    update_standings,
)
from onlylocks.utils.cache_utils import GAMES, PLAYERS, STATS, TEAMS, invalidate
from onlylocks.utils.data_sync import DataSync
from onlylocks.utils.scoring import PICK_KINDS, grade_open_picks

logger = logging.getLogger(__name__)

STAT_METHODS = ("recent", "all")


def _sync_response(result, *groups):
    """Turn a (success, message) sync result into a response"""
    success, message = result
    invalidate(*groups)
    if not success:
        raise ApiError(message, 502)
    return {"success": True, "message": message}


def _count_response(name, func, *groups):
    try:
        count = func()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error in {name}: {e}", exc_info=True)
        raise ApiError(f"{name} failed: {e}", 500)
    invalidate(*groups)
    return {"success": True, "message": f"{name}: {count} rows", "count": count}


def _stats_method():
    method = request.args.get("method", "recent").lower()
    if method not in STAT_METHODS:
        raise ValidationError(f"Invalid method '{method}'; expected recent or all")
    return method


@bp.route("/games/recent", methods=["PATCH"])
@require_update_key
@limiter.limit("30 per hour")
def update_recent_games():
    return _sync_response(DataSync().update_recent_games(), GAMES, TEAMS)


@bp.route("/games/all", methods=["PATCH"])
@require_update_key
@limiter.limit("5 per hour")
def update_all_games():
    return _sync_response(DataSync().update_all_games(), GAMES, TEAMS)


@bp.route("/teams/info", methods=["PATCH"])
@require_update_key
@limiter.limit("5 per hour")
def update_teams():
    return _sync_response(DataSync().sync_teams(), TEAMS)


@bp.route("/teams/games", methods=["PATCH"])
@require_update_key
@limiter.limit("30 per hour")
def update_team_game_stats():
    return _sync_response(DataSync().update_team_game_stats(_stats_method()), STATS)


@bp.route("/players/games", methods=["PATCH"])
@require_update_key
@limiter.limit("30 per hour")
def update_player_game_stats():
    return _sync_response(DataSync().update_player_game_stats(_stats_method()), PLAYERS, STATS)


@bp.route("/players/info", methods=["PATCH"])
@require_update_key
@limiter.limit("5 per hour")
def update_players():
    return _sync_response(DataSync().sync_players(), PLAYERS)


@bp.route("/teams/season", methods=["PATCH"])
@require_update_key
@limiter.limit("30 per hour")
def update_team_season():
    return _count_response("rebuild_team_season_stats", rebuild_team_season_stats, STATS)


@bp.route("/players/season", methods=["PATCH"])
@require_update_key
@limiter.limit("30 per hour")
def update_player_season():
    return _count_response("rebuild_player_season_stats", rebuild_player_season_stats, STATS)


@bp.route("/standings", methods=["PATCH"])
@require_update_key
@limiter.limit("30 per hour")
def update_team_standings():
    return _count_response("update_standings", update_standings, STATS)


@bp.route("/picks", methods=["PATCH"])
@require_update_key
@limiter.limit("30 per hour")
def grade_picks():
    """Grade open picks on finished games; ?kind=player|team|all"""
    kind = request.args.get("kind", "all").lower()
    if kind not in PICK_KINDS:
        raise ValidationError(f"Invalid kind '{kind}'; expected one of {', '.join(PICK_KINDS)}")
    report = grade_open_picks(kind)
    return {"success": report["failed"] == 0, "report": report}


@bp.route("/tiers/<tier>", methods=["POST"])
@require_update_key
@limiter.limit("20 per hour")
def run_tier(tier):
    try:
        report = scheduler_service.run_tier(tier)
    except ValueError as e:
        raise ValidationError(str(e))
    return {"success": report["failed"] == 0, "report": report}


@bp.route("/scheduler")
@require_update_key
def scheduler_status():
    status = scheduler_service.get_status()
    status["enabled"] = current_app.config.get("SCHEDULER_ENABLED", False)
    return status
