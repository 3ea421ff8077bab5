from datetime import datetime, timezone

from onlylocks import db


class Game(db.Model):
    __tablename__ = "games"

    SCHEDULED = "scheduled"
    IN_PLAY = "in_play"
    FINISHED = "finished"
    STATUSES = (SCHEDULED, IN_PLAY, FINISHED)

    id = db.Column(db.Integer, primary_key=True)
    api_id = db.Column(db.Integer, unique=True, index=True)
    season = db.Column(db.Integer, index=True)

    # Teams
    home_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)
    away_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)

    # Game timing, stored as naive UTC
    game_time = db.Column(db.DateTime, nullable=False)
    location = db.Column(db.String(200))

    # Lifecycle
    status = db.Column(db.String(20), nullable=False, default=SCHEDULED)
    clock = db.Column(db.String(20))
    quarter = db.Column(db.Integer)

    # Scores stay null until the game leaves the scheduled state
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)
    winner_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    winner = db.relationship("Team", foreign_keys=[winner_id])
    picks = db.relationship(
        "Pick", backref="game", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.Index("idx_game_time", "game_time"),
        db.Index("idx_game_status", "status"),
        db.CheckConstraint("home_team_id != away_team_id", name="different_teams"),
    )

    def __repr__(self):
        return f'<Game {self.away_team.code if self.away_team else "TBD"} @ {self.home_team.code if self.home_team else "TBD"} {self.game_time}>'

    @property
    def is_final(self):
        return self.status == self.FINISHED

    @property
    def is_scheduled(self):
        return self.status == self.SCHEDULED

    @property
    def score(self):
        """(home, away) pair, None while the game is scheduled"""
        if self.is_scheduled or self.home_score is None or self.away_score is None:
            return None
        return self.home_score, self.away_score

    @property
    def local_game_time(self):
        """Get game time in the application's timezone"""
        # Lazy import to avoid circular imports
        from onlylocks.utils.timezone_utils import convert_to_app_timezone

        return convert_to_app_timezone(self.game_time)

    def get_opponent(self, team_id):
        if team_id == self.home_team_id:
            return self.away_team
        elif team_id == self.away_team_id:
            return self.home_team
        return None

    def involves(self, team_id):
        return team_id in (self.home_team_id, self.away_team_id)

    def apply_update(self, status, home_score=None, away_score=None, clock=None, quarter=None):
        """
        Apply a provider snapshot to this game.

        Returns True when anything changed. The winner is only recorded once
        the game is finished; a scheduled game carries no score.
        """
        if status not in self.STATUSES:
            raise ValueError(f"Unknown game status: {status}")

        if status == self.SCHEDULED:
            home_score = away_score = None

        winner_id = None
        if status == self.FINISHED and home_score is not None and away_score is not None:
            if home_score > away_score:
                winner_id = self.home_team_id
            elif away_score > home_score:
                winner_id = self.away_team_id

        new_values = {
            "status": status,
            "home_score": home_score,
            "away_score": away_score,
            "clock": clock,
            "quarter": quarter,
            "winner_id": winner_id,
        }
        changed = False
        for field, value in new_values.items():
            if getattr(self, field) != value:
                setattr(self, field, value)
                changed = True
        return changed

    @staticmethod
    def get_by_api_id(api_id):
        return Game.query.filter_by(api_id=api_id).first()

    @staticmethod
    def for_team(team_id):
        return Game.query.filter(
            db.or_(Game.home_team_id == team_id, Game.away_team_id == team_id)
        )

    @staticmethod
    def between(start, end):
        """Games starting in [start, end), naive UTC bounds"""
        return (
            Game.query.filter(Game.game_time >= start, Game.game_time < end)
            .order_by(Game.game_time)
            .all()
        )

    def to_dict(self):
        """Convert game to dictionary for API responses"""
        score = self.score
        return {
            "id": self.id,
            "api_id": self.api_id,
            "season": self.season,
            "game_time": self.game_time.isoformat() if self.game_time else None,
            "local_game_time": (
                self.local_game_time.isoformat() if self.game_time else None
            ),
            "location": self.location,
            "home_team": self.home_team.to_dict() if self.home_team else None,
            "away_team": self.away_team.to_dict() if self.away_team else None,
            "status": self.status,
            "clock": self.clock,
            "quarter": self.quarter,
            "score": {"home": score[0], "away": score[1]} if score else None,
            "winner_id": self.winner_id,
        }
