from onlylocks import db  # noqa: F401 - imported for model imports

from .box_score import PlayerGameStats, TeamGameStats
from .game import Game
from .pick import Pick, PickStatus, PlayerPick, TeamPick
from .player import Player
from .season_stats import PlayerSeasonStats, TeamSeasonStats
from .team import Team
from .user import User

__all__ = [
    "User",
    "Team",
    "Player",
    "Game",
    "PlayerGameStats",
    "TeamGameStats",
    "PlayerSeasonStats",
    "TeamSeasonStats",
    "Pick",
    "PickStatus",
    "PlayerPick",
    "TeamPick",
]
