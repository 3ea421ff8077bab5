from flask import Blueprint

bp = Blueprint("games", __name__)

from onlylocks.routes.games import routes  # noqa: F401, E402
