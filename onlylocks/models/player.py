from datetime import datetime, timezone

from onlylocks import db


class Player(db.Model):
    __tablename__ = "players"

    id = db.Column(db.Integer, primary_key=True)
    api_id = db.Column(db.Integer, unique=True, index=True)

    first_name = db.Column(db.String(80), nullable=False)
    last_name = db.Column(db.String(80), nullable=False)
    birthday = db.Column(db.String(20))
    height = db.Column(db.String(20))
    weight = db.Column(db.String(20))
    college = db.Column(db.String(120))
    number = db.Column(db.Integer)
    position = db.Column(db.String(5))

    # Changes when the roster refresh sees a trade
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    season_stats = db.relationship(
        "PlayerSeasonStats",
        backref=db.backref("player", lazy="joined"),
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.Index("idx_player_team", "team_id"),
        db.Index("idx_player_name", "last_name", "first_name"),
    )

    def __repr__(self):
        return f"<Player {self.full_name}>"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @staticmethod
    def get_by_api_id(api_id):
        return Player.query.filter_by(api_id=api_id).first()

    @staticmethod
    def search(name):
        """Case-insensitive match on first or last name"""
        pattern = f"%{name}%"
        return Player.query.filter(
            db.or_(Player.first_name.ilike(pattern), Player.last_name.ilike(pattern))
        )

    def to_dict(self, include_team=False):
        data = {
            "id": self.id,
            "api_id": self.api_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "birthday": self.birthday,
            "height": self.height,
            "weight": self.weight,
            "college": self.college,
            "number": self.number,
            "position": self.position,
            "team_id": self.team_id,
        }
        if include_team:
            data["team"] = self.team.to_dict() if self.team else None
        return data
