from datetime import datetime, timezone

from werkzeug.security import generate_password_hash

from onlylocks import db

followed_teams = db.Table(
    "followed_teams",
    db.Column("user_id", db.Integer, db.ForeignKey("users.id"), primary_key=True),
    db.Column("team_id", db.Integer, db.ForeignKey("teams.id"), primary_key=True),
)

followed_players = db.Table(
    "followed_players",
    db.Column("user_id", db.Integer, db.ForeignKey("users.id"), primary_key=True),
    db.Column("player_id", db.Integer, db.ForeignKey("players.id"), primary_key=True),
)


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(25), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    is_admin = db.Column(db.Boolean, default=False)

    # Pick record, only changed by grading
    wins = db.Column(db.Integer, nullable=False, default=0)
    losses = db.Column(db.Integer, nullable=False, default=0)
    points = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    picks = db.relationship(
        "Pick", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    teams = db.relationship("Team", secondary=followed_teams, lazy="select")
    players = db.relationship("Player", secondary=followed_players, lazy="select")

    __table_args__ = (db.Index("idx_user_points", "points"),)

    def __repr__(self):
        return f"<User {self.username}>"

    def set_password(self, password):
        """Set password hash"""
        self.password_hash = generate_password_hash(password)

    def follow_team(self, team):
        if team not in self.teams:
            self.teams.append(team)

    def unfollow_team(self, team):
        if team in self.teams:
            self.teams.remove(team)

    def follow_player(self, player):
        if player not in self.players:
            self.players.append(player)

    def unfollow_player(self, player):
        if player in self.players:
            self.players.remove(player)

    @staticmethod
    def get_by_username(username):
        return User.query.filter_by(username=username).first()

    @staticmethod
    def leaderboard(limit=25):
        return (
            User.query.order_by(User.points.desc(), User.wins.desc(), User.username)
            .limit(limit)
            .all()
        )

    def to_dict(self, include_follows=False):
        data = {
            "username": self.username,
            "wins": self.wins or 0,
            "losses": self.losses or 0,
            "points": self.points or 0,
        }
        if include_follows:
            data["followed_teams"] = sorted(team.id for team in self.teams)
            data["followed_players"] = sorted(player.id for player in self.players)
        return data
