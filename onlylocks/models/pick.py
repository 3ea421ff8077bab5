import enum
from datetime import datetime, timezone

from sqlalchemy import text

from onlylocks import db
from onlylocks.errors import NotFoundError, ValidationError

# Stats a player pick can be made on; "rebounds" is offensive + defensive
PICK_STATS = ("points", "rebounds", "assists", "steals", "blocks", "tpm")
DIRECTIONS = ("OVER", "UNDER")


class PickStatus(enum.Enum):
    OPEN = "open"
    WON = "won"
    LOST = "lost"


class Pick(db.Model):
    """
    A user's prediction on a game.

    Player picks and team picks share this table, told apart by ``kind``.
    Status moves OPEN -> WON or OPEN -> LOST exactly once.
    """

    __tablename__ = "picks"

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(10), nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False)

    reward = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(
        db.Enum(PickStatus, native_enum=False, length=10),
        nullable=False,
        default=PickStatus.OPEN,
    )

    # Player pick payload
    player_id = db.Column(db.Integer, db.ForeignKey("players.id"), nullable=True)
    stat = db.Column(db.String(20))
    direction = db.Column(db.String(5))
    threshold = db.Column(db.Float)

    # Team pick payload
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    graded_at = db.Column(db.DateTime)

    __mapper_args__ = {"polymorphic_on": kind, "polymorphic_identity": "pick"}

    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "player_id", "game_id", "stat", name="unique_user_player_game_stat"
        ),
        db.Index(
            "unique_user_game_team_pick",
            "user_id",
            "game_id",
            unique=True,
            sqlite_where=text("kind = 'team'"),
            postgresql_where=text("kind = 'team'"),
        ),
        db.Index("idx_pick_status_game", "status", "game_id"),
        db.Index("idx_pick_user", "user_id"),
    )

    def __repr__(self):
        return f"<Pick {self.kind} user_id={self.user_id} game_id={self.game_id} {self.status.name if self.status else 'OPEN'}>"

    @property
    def result(self):
        """None while open, True when won, False when lost"""
        if self.status == PickStatus.WON:
            return True
        if self.status == PickStatus.LOST:
            return False
        return None

    @property
    def is_open(self):
        return self.status in (None, PickStatus.OPEN)

    def evaluate(self):
        """Outcome against the recorded game data, None if it cannot be decided yet"""
        raise NotImplementedError

    def mark(self, won):
        """Close an open pick and update the owner's tallies"""
        if not self.is_open:
            raise ValueError(f"Pick {self.id} is already graded ({self.status.name})")

        self.status = PickStatus.WON if won else PickStatus.LOST
        self.graded_at = datetime.now(timezone.utc)

        if won:
            self.user.wins = (self.user.wins or 0) + 1
            self.user.points = (self.user.points or 0) + (self.reward or 0)
        else:
            self.user.losses = (self.user.losses or 0) + 1

    def grade(self):
        """Evaluate and close the pick; returns the outcome or None when skipped"""
        if not self.is_open:
            return self.result
        outcome = self.evaluate()
        if outcome is None:
            return None
        self.mark(outcome)
        return outcome

    @staticmethod
    def _load_open_game(game_id):
        from .game import Game

        game = db.session.get(Game, game_id) if game_id is not None else None
        if game is None:
            raise NotFoundError(f"No game: {game_id}")
        if not game.is_scheduled:
            raise ValidationError(f"Game {game_id} is {game.status}; picks close at tip-off")
        return game

    @staticmethod
    def _reward(reward):
        if reward is None:
            from flask import current_app

            return current_app.config.get("DEFAULT_PICK_REWARD", 100)
        try:
            reward = int(reward)
        except (TypeError, ValueError):
            raise ValidationError("reward must be an integer")
        if reward < 0:
            raise ValidationError("reward must not be negative")
        return reward

    def to_dict(self):
        return {
            "id": self.id,
            "kind": self.kind,
            "user_id": self.user_id,
            "game_id": self.game_id,
            "reward": self.reward,
            "status": self.status.value if self.status else PickStatus.OPEN.value,
            "result": self.result,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "graded_at": self.graded_at.isoformat() if self.graded_at else None,
        }


class PlayerPick(Pick):
    __mapper_args__ = {"polymorphic_identity": "player"}

    player = db.relationship("Player", foreign_keys="Pick.player_id")

    def evaluate(self):
        from .box_score import PlayerGameStats

        if self.game is None or not self.game.is_final:
            return None

        # No box score (did not play, or not ingested yet): stays open
        row = PlayerGameStats.get_for(self.player_id, self.game_id)
        if row is None:
            return None

        value = row.value_for(self.stat)
        if self.direction == "OVER":
            return value > self.threshold
        return value < self.threshold

    @staticmethod
    def create(user, player_id, game_id, stat, direction, threshold, reward=None):
        """Validate and stage a player pick; raises ValidationError/NotFoundError"""
        from .player import Player

        if stat is None or direction is None or threshold is None:
            raise ValidationError("playerId, gameId, stat, direction and threshold are required")

        stat = str(stat).lower()
        if stat not in PICK_STATS:
            raise ValidationError(f"Invalid stat '{stat}'; expected one of {', '.join(PICK_STATS)}")

        direction = str(direction).upper()
        if direction not in DIRECTIONS:
            raise ValidationError(f"Invalid direction '{direction}'; expected OVER or UNDER")

        try:
            threshold = float(threshold)
        except (TypeError, ValueError):
            raise ValidationError("threshold must be a number")

        player = db.session.get(Player, player_id) if player_id is not None else None
        if player is None:
            raise NotFoundError(f"No player: {player_id}")

        game = Pick._load_open_game(game_id)
        if player.team_id is not None and not game.involves(player.team_id):
            raise ValidationError(f"{player.full_name} is not playing in game {game.id}")

        existing = PlayerPick.query.filter_by(
            user_id=user.id, player_id=player.id, game_id=game.id, stat=stat
        ).first()
        if existing:
            raise ValidationError(
                f"Duplicate pick: {user.username} already has a {stat} pick on {player.full_name} for game {game.id}"
            )

        pick = PlayerPick(
            user=user,
            player_id=player.id,
            game_id=game.id,
            stat=stat,
            direction=direction,
            threshold=threshold,
            reward=Pick._reward(reward),
            status=PickStatus.OPEN,
        )
        db.session.add(pick)
        return pick

    def to_dict(self):
        data = super().to_dict()
        data.update(
            {
                "player_id": self.player_id,
                "player": self.player.full_name if self.player else None,
                "stat": self.stat,
                "direction": self.direction,
                "threshold": self.threshold,
            }
        )
        return data


class TeamPick(Pick):
    __mapper_args__ = {"polymorphic_identity": "team"}

    team = db.relationship("Team", foreign_keys="Pick.team_id")

    def evaluate(self):
        if self.game is None or not self.game.is_final or self.game.winner_id is None:
            return None
        return self.game.winner_id == self.team_id

    @staticmethod
    def create(user, team_id, game_id, reward=None):
        """Validate and stage a team pick; raises ValidationError/NotFoundError"""
        from .team import Team

        team = db.session.get(Team, team_id) if team_id is not None else None
        if team is None:
            raise NotFoundError(f"No team: {team_id}")

        game = Pick._load_open_game(game_id)
        if not game.involves(team.id):
            raise ValidationError(f"{team.name} is not playing in game {game.id}")

        existing = TeamPick.query.filter_by(user_id=user.id, game_id=game.id).first()
        if existing:
            raise ValidationError(
                f"Duplicate pick: {user.username} already picked a team for game {game.id}"
            )

        pick = TeamPick(
            user=user,
            team_id=team.id,
            game_id=game.id,
            reward=Pick._reward(reward),
            status=PickStatus.OPEN,
        )
        db.session.add(pick)
        return pick

    def to_dict(self):
        data = super().to_dict()
        data.update({"team_id": self.team_id, "team": self.team.code if self.team else None})
        return data
