"""
Pick grading for Only Locks

Resolves open picks whose game has finished. Each pick is graded and
committed on its own so one bad row never blocks the rest of the batch;
anything left open is picked up again on the next pass.
"""

import logging

from onlylocks import db
from onlylocks.models import Game, Pick, PickStatus, PlayerPick, TeamPick

logger = logging.getLogger(__name__)

PICK_KINDS = {"player": PlayerPick, "team": TeamPick, "all": Pick}


def open_picks_for_finished_games(kind="all"):
    model = PICK_KINDS[kind]
    return (
        model.query.join(Game, Pick.game_id == Game.id)
        .filter(Pick.status == PickStatus.OPEN, Game.status == Game.FINISHED)
        .order_by(Pick.id)
        .all()
    )


def grade_open_picks(kind="all"):
    """
    Grade every open pick of the given kind on a finished game.

    Args:
        kind: "player", "team" or "all"

    Returns:
        dict report with graded/won/lost/skipped/failed counts
    """
    if kind not in PICK_KINDS:
        raise ValueError(f"Unknown pick kind: {kind}")

    report = {"kind": kind, "graded": 0, "won": 0, "lost": 0, "skipped": 0, "failed": 0}

    # Ids only: a rollback below expires every loaded instance
    pick_ids = [pick.id for pick in open_picks_for_finished_games(kind)]

    for pick_id in pick_ids:
        try:
            pick = db.session.get(Pick, pick_id)
            if pick is None or not pick.is_open:
                continue

            outcome = pick.grade()
            if outcome is None:
                report["skipped"] += 1
                continue

            db.session.commit()
            report["graded"] += 1
            report["won" if outcome else "lost"] += 1

        except Exception as e:
            db.session.rollback()
            report["failed"] += 1
            logger.error(f"Error grading pick {pick_id}: {e}", exc_info=True)

    if report["graded"] or report["failed"]:
        logger.info(
            f"Graded {report['graded']} {kind} picks "
            f"({report['won']} won, {report['lost']} lost, "
            f"{report['skipped']} skipped, {report['failed']} failed)"
        )
    return report


def grade_player_picks():
    return grade_open_picks("player")


def grade_team_picks():
    return grade_open_picks("team")
