from flask import Blueprint

bp = Blueprint("updates", __name__)

from onlylocks.routes.updates import routes  # noqa: F401, E402
