from flask import Blueprint

bp = Blueprint("teams", __name__)

from onlylocks.routes.teams import routes  # noqa: F401, E402
