import logging
from datetime import datetime, timezone

from onlylocks import db
from onlylocks.models.box_score import (
    BoxScoreMixin,
    PlayerGameStats,
    TEAM_EXTRA_STATS,
    TeamGameStats,
)

logger = logging.getLogger(__name__)


class SeasonStatsMixin(BoxScoreMixin):
    games = db.Column(db.Integer, nullable=False, default=0)
    total_reb_value = db.Column("total_reb", db.Integer, nullable=False, default=0)
    rebuilt_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    @property
    def total_reb(self):
        return self.total_reb_value or 0

    def replace(self, aggregate_totals, games):
        """Overwrite every aggregate column from a freshly computed totals view"""
        for stat, value in aggregate_totals.items():
            if stat == "total_reb":
                self.total_reb_value = value
            else:
                setattr(self, stat, value)
        self.games = games
        self.rebuilt_at = datetime.now(timezone.utc)

    def totals_dict(self):
        data = self.stat_dict()
        data["total_reb"] = self.total_reb
        return data


def _rows_by_entity(model, key, season=None):
    from .game import Game

    query = model.query.join(Game, model.game_id == Game.id)
    if season is not None:
        query = query.filter(Game.season == season)

    grouped = {}
    for row in query.all():
        grouped.setdefault(getattr(row, key), []).append(row)
    return grouped


class PlayerSeasonStats(SeasonStatsMixin, db.Model):
    __tablename__ = "player_season_stats"

    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(
        db.Integer, db.ForeignKey("players.id"), nullable=False, unique=True
    )

    def __repr__(self):
        return f"<PlayerSeasonStats player_id={self.player_id} games={self.games}>"

    @staticmethod
    def rebuild_all(season=None):
        """
        Rebuild every player's season aggregate from box-score rows.

        Rows are replaced, never patched; aggregates for players with no
        box scores left are removed. Returns the number of players rebuilt.
        """
        from onlylocks.utils.stats import totals

        grouped = _rows_by_entity(PlayerGameStats, "player_id", season)
        existing = {row.player_id: row for row in PlayerSeasonStats.query.all()}

        for player_id, rows in grouped.items():
            aggregate_row = existing.pop(player_id, None)
            if aggregate_row is None:
                aggregate_row = PlayerSeasonStats(player_id=player_id)
                db.session.add(aggregate_row)
            aggregate_row.replace(totals(rows), len(rows))

        for stale in existing.values():
            db.session.delete(stale)

        return len(grouped)

    def to_dict(self, view="totals"):
        from onlylocks.utils.stats import view_of

        return {
            "player_id": self.player_id,
            "games": self.games,
            "view": view,
            "stats": view_of(self.totals_dict(), self.games, view),
        }


class TeamSeasonStats(SeasonStatsMixin, db.Model):
    __tablename__ = "team_season_stats"

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False, unique=True)

    fast_break_points = db.Column(db.Integer, nullable=False, default=0)
    points_in_paint = db.Column(db.Integer, nullable=False, default=0)
    second_chance_points = db.Column(db.Integer, nullable=False, default=0)
    points_off_turnovers = db.Column(db.Integer, nullable=False, default=0)

    # Standings, written by the standings refresh
    wins = db.Column(db.Integer, nullable=False, default=0)
    losses = db.Column(db.Integer, nullable=False, default=0)
    conference_rank = db.Column(db.Integer)
    division_rank = db.Column(db.Integer)

    def __repr__(self):
        return f"<TeamSeasonStats team_id={self.team_id} games={self.games}>"

    @property
    def win_pct(self):
        played = (self.wins or 0) + (self.losses or 0)
        return round(self.wins / played, 3) if played else 0.0

    @staticmethod
    def get_or_create(team_id):
        row = TeamSeasonStats.query.filter_by(team_id=team_id).first()
        if row is None:
            row = TeamSeasonStats(team_id=team_id, wins=0, losses=0)
            db.session.add(row)
        return row

    @staticmethod
    def rebuild_all(season=None):
        """
        Rebuild every team's box-score aggregate. Teams without box scores
        are reset to zero; standings columns are left to update_standings.
        """
        from onlylocks.models.team import Team
        from onlylocks.utils.stats import totals

        grouped = _rows_by_entity(TeamGameStats, "team_id", season)

        for team in Team.query.all():
            rows = grouped.get(team.id, [])
            TeamSeasonStats.get_or_create(team.id).replace(
                totals(rows, TEAM_EXTRA_STATS), len(rows)
            )

        return len(grouped)

    @staticmethod
    def update_standings(season=None):
        """
        Recompute wins, losses and conference/division ranks from finished games.

        Ranks order by win percentage, then wins; ties keep team name order.
        """
        from onlylocks.models.game import Game
        from onlylocks.models.team import Team

        query = Game.query.filter(Game.status == Game.FINISHED, Game.winner_id.isnot(None))
        if season is not None:
            query = query.filter(Game.season == season)

        records = {team.id: [0, 0] for team in Team.query.all()}
        for game in query.all():
            loser = game.get_opponent(game.winner_id)
            if loser is None:
                logger.warning(f"Skipping {game!r} in standings: winner {game.winner_id} did not play")
                continue
            loser_id = loser.id
            if game.winner_id in records:
                records[game.winner_id][0] += 1
            if loser_id in records:
                records[loser_id][1] += 1

        rows = {}
        for team_id, (wins, losses) in records.items():
            row = TeamSeasonStats.get_or_create(team_id)
            row.wins = wins
            row.losses = losses
            rows[team_id] = row

        def rank(group_attr, rank_attr):
            groups = {}
            for team in Team.query.order_by(Team.name).all():
                groups.setdefault(getattr(team, group_attr), []).append(rows[team.id])
            for members in groups.values():
                members.sort(key=lambda r: (r.win_pct, r.wins), reverse=True)
                for position, row in enumerate(members, start=1):
                    setattr(row, rank_attr, position)

        rank("conference", "conference_rank")
        rank("division", "division_rank")
        return len(rows)

    def to_dict(self, view="totals"):
        from onlylocks.utils.stats import view_of

        totals_view = self.totals_dict()
        for stat in TEAM_EXTRA_STATS:
            totals_view[stat] = getattr(self, stat) or 0
        return {
            "team_id": self.team_id,
            "games": self.games,
            "wins": self.wins,
            "losses": self.losses,
            "win_pct": self.win_pct,
            "conference_rank": self.conference_rank,
            "division_rank": self.division_rank,
            "view": view,
            "stats": view_of(totals_view, self.games, view),
        }
