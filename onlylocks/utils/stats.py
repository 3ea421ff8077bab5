"""
Stat aggregation for box scores.

Derives the totals, per-game and per-36-minute views of a set of box-score
rows for one player or team. Everything here is a pure function over rows
(model instances or plain dicts); persisting the result is the job of the
season stat models.
"""

from onlylocks.models.box_score import COUNTING_STATS, PERCENTAGE_STATS

VIEWS = ("totals", "per_game", "per_36")

# made/attempted pairs behind each shooting percentage
SHOOTING_PAIRS = {"fgp": ("fgm", "fga"), "ftp": ("ftm", "fta"), "tpp": ("tpm", "tpa")}


def _value(row, stat):
    if isinstance(row, dict):
        value = row.get(stat)
    else:
        value = getattr(row, stat, None)
    return value or 0


def percentage(made, attempted):
    """Shooting percentage on a 0-100 scale, 0 when nothing was attempted"""
    if not attempted:
        return 0.0
    return round(made * 100.0 / attempted, 1)


def totals(rows, extra_stats=()):
    stats = tuple(COUNTING_STATS) + tuple(extra_stats)
    result = {stat: 0 for stat in stats}
    for row in rows:
        for stat in stats:
            result[stat] += _value(row, stat)

    result["total_reb"] = result["off_reb"] + result["def_reb"]
    for pct, (made, attempted) in SHOOTING_PAIRS.items():
        result[pct] = percentage(result[made], result[attempted])
    return result


def _scaled(total_view, multiplier, divisor):
    view = {}
    for stat, value in total_view.items():
        if stat in PERCENTAGE_STATS or stat == "total_reb":
            continue
        view[stat] = value * multiplier / divisor if divisor else 0
    # Rebounds are rederived so the sum holds exactly in every view
    view["total_reb"] = view["off_reb"] + view["def_reb"]
    for stat in PERCENTAGE_STATS:
        view[stat] = total_view[stat]
    return view


def per_game(total_view, games):
    """Each counting stat divided by games played; all zero with no games"""
    return _scaled(total_view, 1, games)


def per_36(total_view, minutes=None):
    """Each counting stat projected to 36 minutes; all zero with no minutes"""
    if minutes is None:
        minutes = total_view.get("minutes", 0)
    return _scaled(total_view, 36, minutes)


def aggregate(rows, extra_stats=()):
    """
    Aggregate box-score rows into all three views.

    Args:
        rows: iterable of box-score rows for a single entity, one per game
        extra_stats: additional counting stats to sum (team-only columns)

    Returns:
        dict with ``games`` plus ``totals``, ``per_game`` and ``per_36`` views
    """
    rows = list(rows)
    games = len(rows)
    total_view = totals(rows, extra_stats)
    return {
        "games": games,
        "totals": total_view,
        "per_game": per_game(total_view, games),
        "per_36": per_36(total_view),
    }


def view_of(total_view, games, view):
    """Render a stored totals row as the requested view"""
    if view == "totals":
        return dict(total_view)
    if view == "per_game":
        return per_game(total_view, games)
    if view == "per_36":
        return per_36(total_view)
    raise ValueError(f"Unknown stat view: {view}")
