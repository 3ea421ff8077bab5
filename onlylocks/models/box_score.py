from datetime import datetime, timezone

from onlylocks import db

# Counting stats shared by player and team box scores
COUNTING_STATS = (
    "points",
    "fgm",
    "fga",
    "ftm",
    "fta",
    "tpm",
    "tpa",
    "off_reb",
    "def_reb",
    "assists",
    "fouls",
    "steals",
    "turnovers",
    "blocks",
    "plus_minus",
    "minutes",
)
PERCENTAGE_STATS = ("fgp", "ftp", "tpp")
TEAM_EXTRA_STATS = (
    "fast_break_points",
    "points_in_paint",
    "second_chance_points",
    "points_off_turnovers",
)


class BoxScoreMixin:
    points = db.Column(db.Integer, nullable=False, default=0)
    fgm = db.Column(db.Integer, nullable=False, default=0)
    fga = db.Column(db.Integer, nullable=False, default=0)
    fgp = db.Column(db.Float, nullable=False, default=0.0)
    ftm = db.Column(db.Integer, nullable=False, default=0)
    fta = db.Column(db.Integer, nullable=False, default=0)
    ftp = db.Column(db.Float, nullable=False, default=0.0)
    tpm = db.Column(db.Integer, nullable=False, default=0)
    tpa = db.Column(db.Integer, nullable=False, default=0)
    tpp = db.Column(db.Float, nullable=False, default=0.0)
    off_reb = db.Column(db.Integer, nullable=False, default=0)
    def_reb = db.Column(db.Integer, nullable=False, default=0)
    assists = db.Column(db.Integer, nullable=False, default=0)
    fouls = db.Column(db.Integer, nullable=False, default=0)
    steals = db.Column(db.Integer, nullable=False, default=0)
    turnovers = db.Column(db.Integer, nullable=False, default=0)
    blocks = db.Column(db.Integer, nullable=False, default=0)
    plus_minus = db.Column(db.Integer, nullable=False, default=0)
    minutes = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def total_reb(self):
        return (self.off_reb or 0) + (self.def_reb or 0)

    def value_for(self, stat):
        """Value of a named stat; "rebounds" is derived, not stored"""
        if stat in ("rebounds", "total_reb"):
            return self.total_reb
        return getattr(self, stat) or 0

    def stat_dict(self):
        data = {stat: getattr(self, stat) or 0 for stat in COUNTING_STATS}
        for stat in PERCENTAGE_STATS:
            data[stat] = getattr(self, stat) or 0.0
        data["total_reb"] = self.total_reb
        return data

    def apply_stats(self, values):
        """Set stat columns from a dict, returns True when anything changed"""
        changed = False
        for field, value in values.items():
            if getattr(self, field) != value:
                setattr(self, field, value)
                changed = True
        return changed


class PlayerGameStats(BoxScoreMixin, db.Model):
    __tablename__ = "player_game_stats"

    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(db.Integer, db.ForeignKey("players.id"), nullable=False)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False)
    # Team the player appeared for in this game
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=True)

    player = db.relationship("Player", backref=db.backref("game_stats", lazy="dynamic"))
    game = db.relationship("Game", backref=db.backref("player_stats", lazy="dynamic"))

    __table_args__ = (
        db.UniqueConstraint("player_id", "game_id", name="unique_player_game_stats"),
        db.Index("idx_player_game_stats_game", "game_id"),
    )

    def __repr__(self):
        return f"<PlayerGameStats player_id={self.player_id} game_id={self.game_id}>"

    @staticmethod
    def get_for(player_id, game_id):
        return PlayerGameStats.query.filter_by(
            player_id=player_id, game_id=game_id
        ).first()

    @staticmethod
    def upsert(player_id, game_id, values, team_id=None):
        """Insert or update the (player, game) row; returns (row, changed)"""
        row = PlayerGameStats.get_for(player_id, game_id)
        if row is None:
            row = PlayerGameStats(player_id=player_id, game_id=game_id)
            db.session.add(row)
            changed = True
        else:
            changed = False
        if team_id is not None and row.team_id != team_id:
            row.team_id = team_id
            changed = True
        return row, row.apply_stats(values) or changed

    def to_dict(self):
        data = {
            "id": self.id,
            "player_id": self.player_id,
            "game_id": self.game_id,
            "team_id": self.team_id,
        }
        data.update(self.stat_dict())
        return data


class TeamGameStats(BoxScoreMixin, db.Model):
    __tablename__ = "team_game_stats"

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False)

    fast_break_points = db.Column(db.Integer, nullable=False, default=0)
    points_in_paint = db.Column(db.Integer, nullable=False, default=0)
    second_chance_points = db.Column(db.Integer, nullable=False, default=0)
    points_off_turnovers = db.Column(db.Integer, nullable=False, default=0)

    team = db.relationship("Team", backref=db.backref("game_stats", lazy="dynamic"))
    game = db.relationship("Game", backref=db.backref("team_stats", lazy="dynamic"))

    __table_args__ = (
        db.UniqueConstraint("team_id", "game_id", name="unique_team_game_stats"),
        db.Index("idx_team_game_stats_game", "game_id"),
    )

    def __repr__(self):
        return f"<TeamGameStats team_id={self.team_id} game_id={self.game_id}>"

    @staticmethod
    def get_for(team_id, game_id):
        return TeamGameStats.query.filter_by(team_id=team_id, game_id=game_id).first()

    @staticmethod
    def upsert(team_id, game_id, values):
        """Insert or update the (team, game) row; returns (row, changed)"""
        row = TeamGameStats.get_for(team_id, game_id)
        created = row is None
        if created:
            row = TeamGameStats(team_id=team_id, game_id=game_id)
            db.session.add(row)
        return row, row.apply_stats(values) or created

    def stat_dict(self):
        data = super().stat_dict()
        for stat in TEAM_EXTRA_STATS:
            data[stat] = getattr(self, stat) or 0
        return data

    def to_dict(self):
        data = {"id": self.id, "team_id": self.team_id, "game_id": self.game_id}
        data.update(self.stat_dict())
        return data
