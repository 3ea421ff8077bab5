import logging
import re

from flask import current_app, request
from sqlalchemy.exc import IntegrityError

from onlylocks import db, limiter
from onlylocks.errors import NotFoundError, ValidationError
from onlylocks.models import Pick, PickStatus, Player, PlayerPick, Team, TeamPick, User
from onlylocks.routes.helpers import body_value, get_json_body, get_or_404, optional_int
from onlylocks.routes.users import bp

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{3,25}$")
MIN_PASSWORD_LENGTH = 8


def _get_user(username):
    user = User.get_by_username(username)
    if user is None:
        raise NotFoundError(f"No user: {username}")
    return user


def _commit_pick(pick):
    """Commit a staged pick; a unique-constraint race surfaces as a duplicate"""
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("Duplicate pick")
    logger.info(f"Pick created: {pick!r}")
    return pick.to_dict(), 201


@bp.route("", methods=["POST"])
@limiter.limit("10 per hour")
def register():
    """
    Body: { username, password }
    """
    data = get_json_body()
    username = (body_value(data, "username") or "").strip()
    password = body_value(data, "password") or ""

    if not USERNAME_PATTERN.match(username):
        raise ValidationError(
            "Username must be 3-25 characters of letters, digits, '.', '_' or '-'"
        )
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if User.get_by_username(username):
        raise ValidationError(f"Username '{username}' is taken")

    user = User(username=username)
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(f"Username '{username}' is taken")

    logger.info(f"New user registered: {username}")
    return {"user": user.to_dict()}, 201


@bp.route("/leaderboard")
def leaderboard():
    limit = optional_int(request.args.get("limit"), "limit") or current_app.config.get(
        "ITEMS_PER_PAGE", 50
    )
    users = User.leaderboard(limit)
    return {
        "leaderboard": [
            {"rank": rank, **user.to_dict()} for rank, user in enumerate(users, start=1)
        ]
    }


@bp.route("/<username>")
def get_user(username):
    user = _get_user(username)
    return {"user": user.to_dict(include_follows=True)}


@bp.route("/<username>/teams/<int:team_id>", methods=["POST", "DELETE"])
def follow_team(username, team_id):
    user = _get_user(username)
    team = get_or_404(Team, team_id)
    if request.method == "POST":
        user.follow_team(team)
    else:
        user.unfollow_team(team)
    db.session.commit()
    return {"user": user.to_dict(include_follows=True)}


@bp.route("/<username>/players/<int:player_id>", methods=["POST", "DELETE"])
def follow_player(username, player_id):
    user = _get_user(username)
    player = get_or_404(Player, player_id)
    if request.method == "POST":
        user.follow_player(player)
    else:
        user.unfollow_player(player)
    db.session.commit()
    return {"user": user.to_dict(include_follows=True)}


@bp.route("/<username>/picks")
def user_picks(username):
    """A user's picks, newest first, optionally filtered by status"""
    user = _get_user(username)
    query = user.picks

    status = request.args.get("status")
    if status:
        try:
            query = query.filter(Pick.status == PickStatus(status.lower()))
        except ValueError:
            raise ValidationError(
                f"Invalid status '{status}'; expected one of "
                f"{', '.join(s.value for s in PickStatus)}"
            )

    picks = query.order_by(Pick.created_at.desc(), Pick.id.desc()).all()
    return {"user": user.to_dict(), "picks": [pick.to_dict() for pick in picks]}


@bp.route("/<username>/picks/players", methods=["POST"])
@limiter.limit("60 per hour")
def create_player_pick(username):
    """
    Body: { playerId, gameId, stat, direction, threshold }

    ``over_under`` and ``value`` are accepted for direction and threshold.
    The reward is always DEFAULT_PICK_REWARD.
    """
    user = _get_user(username)
    data = get_json_body()
    pick = PlayerPick.create(
        user,
        optional_int(body_value(data, "playerId", "player_id"), "playerId"),
        optional_int(body_value(data, "gameId", "game_id"), "gameId"),
        body_value(data, "stat"),
        body_value(data, "direction", "over_under"),
        body_value(data, "threshold", "value"),
    )
    return _commit_pick(pick)


@bp.route("/<username>/picks/teams", methods=["POST"])
@limiter.limit("60 per hour")
def create_team_pick(username):
    """
    Body: { teamId, gameId }
    """
    user = _get_user(username)
    data = get_json_body()
    pick = TeamPick.create(
        user,
        optional_int(body_value(data, "teamId", "team_id"), "teamId"),
        optional_int(body_value(data, "gameId", "game_id"), "gameId"),
    )
    return _commit_pick(pick)


@bp.route("/<username>/picks/<int:pick_id>", methods=["DELETE"])
def delete_pick(username, pick_id):
    user = _get_user(username)
    pick = user.picks.filter(Pick.id == pick_id).first()
    if pick is None:
        raise NotFoundError(f"No pick {pick_id} for {username}")
    if not pick.is_open:
        raise ValidationError("Graded picks cannot be deleted")
    if not pick.game.is_scheduled:
        raise ValidationError(f"Game {pick.game_id} is {pick.game.status}; picks lock at tip-off")

    db.session.delete(pick)
    db.session.commit()
    logger.info(f"Pick {pick_id} deleted by {username}")
    return {"deleted": pick_id}
