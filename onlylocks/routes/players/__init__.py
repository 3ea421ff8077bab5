from flask import Blueprint

bp = Blueprint("players", __name__)

from onlylocks.routes.players import routes  # noqa: F401, E402
