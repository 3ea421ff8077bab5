from datetime import datetime, timezone

from onlylocks import db


class Team(db.Model):
    __tablename__ = "teams"

    id = db.Column(db.Integer, primary_key=True)

    # External ID for API integration
    api_id = db.Column(db.Integer, unique=True, index=True)

    # Team identification
    name = db.Column(db.String(100), nullable=False)
    nickname = db.Column(db.String(50), nullable=False)
    code = db.Column(db.String(5), nullable=False, index=True)
    city = db.Column(db.String(100))
    logo_url = db.Column(db.String(500))

    conference = db.Column(db.String(10))  # East or West
    division = db.Column(db.String(20))

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    home_games = db.relationship(
        "Game",
        foreign_keys="Game.home_team_id",
        backref=db.backref("home_team", lazy="joined"),
        lazy="dynamic",
    )
    away_games = db.relationship(
        "Game",
        foreign_keys="Game.away_team_id",
        backref=db.backref("away_team", lazy="joined"),
        lazy="dynamic",
    )
    players = db.relationship("Player", backref="team", lazy="dynamic")
    season_stats = db.relationship(
        "TeamSeasonStats",
        backref=db.backref("team", lazy="joined"),
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Team {self.code}>"

    def get_all_games(self, finished_only=False):
        """Get all games for this team (home and away)"""
        from .game import Game

        query = Game.query.filter(
            db.or_(Game.home_team_id == self.id, Game.away_team_id == self.id)
        )
        if finished_only:
            query = query.filter(Game.status == Game.FINISHED)
        return query.order_by(Game.game_time).all()

    def get_record(self):
        """Get team's win-loss record from finished games"""
        wins = 0
        losses = 0

        for game in self.get_all_games(finished_only=True):
            if game.winner_id is None:
                continue
            if game.winner_id == self.id:
                wins += 1
            else:
                losses += 1

        return wins, losses

    @staticmethod
    def get_by_api_id(api_id):
        return Team.query.filter_by(api_id=api_id).first()

    def to_dict(self):
        """Convert team to dictionary for API responses"""
        return {
            "id": self.id,
            "api_id": self.api_id,
            "name": self.name,
            "nickname": self.nickname,
            "code": self.code,
            "city": self.city,
            "logo_url": self.logo_url,
            "conference": self.conference,
            "division": self.division,
        }
